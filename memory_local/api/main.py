"""
HTTP shim over the plugin: the same three verbs plus stats and health.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.config import VERSION, debug_enabled
from ..core.db import health_check
from ..core.errors import NotInitializedError, PersistenceError, ValidationError
from .plugin import MemoryPlugin
from .schemas import ErrorResponse, ForgetResponse, HealthResponse, MemoryResponse, StatsResponse


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=error, detail=detail).model_dump())


def create_app(config: Optional[Dict[str, Any]] = None, plugin: Optional[MemoryPlugin] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The plugin is initialized with `config` on startup and shut down on shutdown.
    """
    memory_plugin = plugin or MemoryPlugin()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        memory_plugin.init(config)
        try:
            yield
        finally:
            memory_plugin.shutdown()

    app = FastAPI(
        title="Local Memory API",
        version=VERSION,
        description="Local dual-backend memory store (SQLite + vector index)",
        docs_url="/docs" if debug_enabled() else None,
        redoc_url="/redoc" if debug_enabled() else None,
        lifespan=lifespan,
    )
    app.state.plugin = memory_plugin

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error(400, "validation_error", str(exc))

    @app.exception_handler(NotInitializedError)
    async def not_initialized_handler(request: Request, exc: NotInitializedError):
        return _error(503, "not_initialized", str(exc))

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        return _error(500, "persistence_error", str(exc))

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint():
        """Check system health."""
        if not memory_plugin.initialized:
            return HealthResponse(status="unhealthy", version=VERSION, db_health=False,
                                  vector_available=False, memory_count=0)

        memory = memory_plugin.memory
        db_health = health_check(memory.config.db_path)
        return HealthResponse(
            status="healthy" if db_health else "unhealthy",
            version=VERSION,
            db_health=db_health,
            vector_available=memory.vector_available,
            memory_count=memory.structured.count() if db_health else 0,
        )

    @app.post("/memory/store", response_model=MemoryResponse)
    def store_endpoint(params: Dict[str, Any]):
        return memory_plugin.memory_store(params)

    @app.post("/memory/recall", response_model=List[MemoryResponse], response_model_exclude_none=True)
    def recall_endpoint(params: Dict[str, Any]):
        return memory_plugin.memory_recall(params)

    @app.post("/memory/forget", response_model=ForgetResponse)
    def forget_endpoint(params: Dict[str, Any]):
        return memory_plugin.memory_forget(params)

    @app.get("/memory/stats", response_model=StatsResponse)
    def stats_endpoint():
        return memory_plugin.stats()

    return app


app = create_app()
