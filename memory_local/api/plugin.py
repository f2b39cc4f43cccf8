"""
Host plugin protocol: init(config), three verbs (memory_store, memory_recall,
memory_forget) and shutdown().

Each MemoryPlugin owns its own orchestrator, so several independent stores can live
in one process. `plugin` is the default instance handed to the host.
"""

from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from ..core.config import VERSION
from ..core.errors import NotInitializedError, ValidationError
from ..core.orchestrator import MemoryOrchestrator
from .schemas import ForgetRequest, RecallRequest, StoreRequest

PLUGIN_ID = "memory-local"
PLUGIN_NAME = "Local Memory"
PLUGIN_SLOT = "memory"

RequestT = TypeVar("RequestT", bound=BaseModel)


def parse_request(model: Type[RequestT], params: Optional[Dict[str, Any]]) -> RequestT:
    """Validate host params, raising the store's ValidationError."""
    try:
        return model.model_validate(params or {})
    except SchemaValidationError as e:
        raise ValidationError(f"Invalid {model.__name__}: {e}") from e


class MemoryPlugin:
    """Memory slot plugin exposing store/recall/forget to the host."""

    id = PLUGIN_ID
    name = PLUGIN_NAME
    version = VERSION
    slot = PLUGIN_SLOT

    def __init__(self):
        self._memory: Optional[MemoryOrchestrator] = None

    @property
    def initialized(self) -> bool:
        return self._memory is not None

    @property
    def memory(self) -> MemoryOrchestrator:
        if self._memory is None:
            raise NotInitializedError("Plugin not initialized")
        return self._memory

    def init(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Open the store. Re-initializing shuts the previous store down first."""
        if self._memory is not None:
            self.shutdown()
        self._memory = MemoryOrchestrator(config)

    @property
    def handlers(self) -> Dict[str, Callable]:
        return {
            "memory_store": self.memory_store,
            "memory_recall": self.memory_recall,
            "memory_forget": self.memory_forget,
        }

    def memory_store(self, params: Dict[str, Any]) -> Dict[str, Any]:
        memory = self.memory
        request = parse_request(StoreRequest, params)
        record = memory.store(
            request.text,
            category=request.category,
            importance=request.importance,
            session_key=request.session_key,
            metadata=request.metadata,
        )
        return record.to_dict()

    def memory_recall(self, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        memory = self.memory
        request = parse_request(RecallRequest, params)
        records = memory.recall(
            request.query,
            limit=request.limit,
            mode=request.mode,
            category=request.category,
            date_from=request.date_from,
            date_to=request.date_to,
            filter_noise=request.filter_noise,
            match=request.match,
        )
        return [record.to_dict() for record in records]

    def memory_forget(self, params: Dict[str, Any]) -> Dict[str, int]:
        memory = self.memory
        request = parse_request(ForgetRequest, params)
        deleted = memory.forget(memory_id=request.memory_id, query=request.query, mode=request.mode)
        return {"deleted": deleted}

    def stats(self) -> Dict[str, Any]:
        return self.memory.stats()

    def shutdown(self, drain: bool = False) -> None:
        if self._memory is not None:
            self._memory.close(drain=drain)
            self._memory = None


# Default instance for the host
plugin = MemoryPlugin()
