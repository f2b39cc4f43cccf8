"""
Memory orchestrator: one store/recall/forget contract over the structured index and
the vector index.

Consistency model:
- SQLite is written synchronously; a record exists once its row is inserted.
- Embedding and vector insertion happen on the background worker. On success the
  record's has_embedding flag is set. Until then the record is structured-only.
- Deletes hit SQLite first (authoritative count) and the vector index best-effort.
- No transaction spans both indexes. They are reconciled through has_embedding and
  delete-of-absent-id being a no-op.
"""

import re
from typing import Any, Dict, List, Optional, Sequence

from .config import (
    MemoryConfig,
    load_config,
    ensure_data_directory,
    get_vector_store,
    get_embedding_provider,
)
from .dao import StructuredIndex, tokenize_query, inclusive_upper_bound, MATCH_ALL, MATCH_ANY
from .errors import (
    EmbeddingError,
    NotInitializedError,
    PersistenceError,
    ValidationError,
    VectorIndexError,
)
from .retention import enforce_retention
from .router import MODE_SEMANTIC, MODE_STRUCTURED, resolve_mode
from .schema import MemoryRecord, new_record
from .worker import EmbeddingWorker
from ..util.logging import logger
from ..vector.embeddings import EmbeddingGateway
from ..vector.vector_index import VectorIndex

DEFAULT_RECALL_LIMIT = 5
# Candidates fetched per requested result, leaving room for noise filtering
FETCH_MULTIPLIER = 2
SEMANTIC_FORGET_LIMIT = 100


class MemoryOrchestrator:
    """Public contract of the memory store: store, recall, forget, stats."""

    def __init__(self,
                 config: Optional[Any] = None,
                 structured: Optional[StructuredIndex] = None,
                 vector_index: Optional[VectorIndex] = None,
                 embeddings: Optional[EmbeddingGateway] = None):
        """
        Open both indexes.

        Args:
            config: MemoryConfig or a mapping of init options
            structured: structured index to use instead of the SQLite file in the data directory
            vector_index: vector index to use instead of the configured provider
            embeddings: embedding gateway to use instead of the configured provider

        Raises:
            ValidationError: invalid configuration
            PersistenceError: the structured store cannot be opened
        """
        self.config: MemoryConfig = load_config(config)
        try:
            ensure_data_directory(self.config)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory '{self.config.data_directory}': {e}") from e

        self.structured = structured or StructuredIndex(self.config.db_path)
        self.noise_patterns = [re.compile(p, re.IGNORECASE) for p in self.config.noise_patterns]

        self.embeddings: Optional[EmbeddingGateway] = None
        self.vector_index: Optional[VectorIndex] = None
        self._worker: Optional[EmbeddingWorker] = None
        self._closed = False

        if self.config.enable_embeddings:
            config_ref = self.config
            self.embeddings = embeddings or EmbeddingGateway(
                lambda: get_embedding_provider(config_ref), config_ref.embedding_model
            )
            self.vector_index = vector_index or VectorIndex(lambda: get_vector_store(config_ref))
            if self.vector_index.initialize():
                self._worker = EmbeddingWorker(self._embed_record)
                if self.config.reconcile_on_init:
                    self.reconcile()
            else:
                logger.warning("Vector index unavailable; recall is structured-only for this session")

        logger.log_operation("memory.init", "success", {
            "data_directory": self.config.data_directory,
            "embeddings": self.config.enable_embeddings,
            "vector_available": self.vector_available,
        })

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def vector_available(self) -> bool:
        return self.vector_index is not None and self.vector_index.available()

    def _ensure_open(self):
        if self._closed:
            raise NotInitializedError("Memory store is shut down")

    def _vector_ready(self) -> bool:
        return not self._closed and self.embeddings is not None and self.vector_available

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def store(self,
              text: str,
              category: Optional[str] = None,
              importance: Optional[float] = None,
              session_key: Optional[str] = None,
              metadata: Optional[Dict[str, Any]] = None) -> MemoryRecord:
        """
        Store a new memory.

        The SQLite insert is synchronous and must succeed. Embedding is queued and
        does not block the return, so the returned record has has_embedding=False.
        Retention runs before returning.
        """
        self._ensure_open()

        record = new_record(
            text,
            category=category,
            importance=importance,
            session_key=session_key,
            metadata=metadata,
            default_importance=self.config.default_importance,
        )
        self.structured.insert(record)
        logger.log_memory_operation("store", record.id, record.text, {
            "category": record.category,
            "importance": record.importance,
        })

        if self._vector_ready() and self._worker is not None:
            self._worker.submit(record.id, record.text)

        enforce_retention(self.structured, self.config.max_memories, self._delete_vectors)
        return record

    def _embed_record(self, record_id: str, text: str) -> bool:
        """Embed one record and index it. Failures leave the record structured-only."""
        if not self._vector_ready():
            return False

        try:
            if self.structured.get(record_id) is None:
                return False
        except PersistenceError as e:
            logger.log_vector_operation("embed", record_id, {"error": str(e)[:100]}, status="skipped")
            return False

        try:
            vector = self.embeddings.embed(text)
            self.vector_index.upsert(record_id, vector, text)
        except (EmbeddingError, VectorIndexError) as e:
            logger.log_vector_operation("embed", record_id, {"error": str(e)[:100]}, status="failed")
            return False

        try:
            marked = self.structured.mark_embedded(record_id)
        except PersistenceError as e:
            logger.log_vector_operation("mark_embedded", record_id, {"error": str(e)[:100]}, status="failed")
            marked = False

        if not marked:
            # Deleted while the embedding was in flight: drop the vector just written
            self._delete_vectors([record_id])
            logger.log_vector_operation("orphan_removed", record_id)
            return False

        logger.log_vector_operation("added", record_id, {"dimension": int(vector.size)})
        return True

    # ------------------------------------------------------------------
    # Recall
    # ------------------------------------------------------------------

    def recall(self,
               query: str = "",
               limit: Optional[int] = None,
               mode: Optional[str] = None,
               category: Optional[str] = None,
               date_from: Optional[str] = None,
               date_to: Optional[str] = None,
               filter_noise: bool = True,
               match: str = MATCH_ALL) -> List[MemoryRecord]:
        """
        Recall memories for a query.

        The mode is explicit (structured|semantic) or routed from the query text.
        Semantic recall falls back to structured recall when the vector path is
        unavailable, fails, or hydrates nothing. Records carry `score` only when
        they came from the semantic path.
        """
        self._ensure_open()

        if match not in (MATCH_ALL, MATCH_ANY):
            raise ValidationError(f"match must be one of: {[MATCH_ALL, MATCH_ANY]}")

        limit = self._clamp_limit(limit)
        resolved = resolve_mode(query or "", mode)
        fetch_limit = limit * FETCH_MULTIPLIER

        candidates = None
        if resolved == MODE_SEMANTIC and self._vector_ready():
            candidates = self._semantic_candidates(query or "", fetch_limit, category, date_from, date_to)

        if candidates is None:
            candidates = self.structured.query(
                tokenize_query(query),
                category=category,
                date_from=date_from,
                date_to=date_to,
                limit=fetch_limit,
                match=match,
            )

        if filter_noise:
            candidates = [record for record in candidates if not self.is_noise(record.text)]

        return candidates[:limit]

    @staticmethod
    def _clamp_limit(limit: Optional[int]) -> int:
        if limit is None:
            return DEFAULT_RECALL_LIMIT
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValidationError("limit must be an integer")
        return max(1, limit)

    def _semantic_candidates(self,
                             query: str,
                             fetch_limit: int,
                             category: Optional[str],
                             date_from: Optional[str],
                             date_to: Optional[str]) -> Optional[List[MemoryRecord]]:
        """Vector search hydrated from SQLite, in vector order. None means fall back."""
        try:
            vector = self.embeddings.embed(query)
            hits = self.vector_index.top_k(vector, fetch_limit)
        except (EmbeddingError, VectorIndexError) as e:
            logger.log_fallback("recall", str(e), query)
            return None

        hydrated = self.structured.get_by_ids([hit.id for hit in hits])
        upper = inclusive_upper_bound(date_to) if date_to else None

        results = []
        for hit in hits:
            record = hydrated.get(hit.id)
            if record is None:
                continue
            if category and record.category != category:
                continue
            if date_from and record.created_at < date_from:
                continue
            if upper and record.created_at > upper:
                continue
            record.score = hit.score
            results.append(record)

        if not results:
            logger.log_fallback("recall", "semantic search hydrated no records", query)
            return None
        return results

    def is_noise(self, text: str) -> bool:
        """True when the whole (trimmed) text matches a configured noise pattern."""
        stripped = text.strip()
        return any(pattern.search(stripped) for pattern in self.noise_patterns)

    # ------------------------------------------------------------------
    # Forget
    # ------------------------------------------------------------------

    def forget(self,
               memory_id: Optional[str] = None,
               query: Optional[str] = None,
               mode: Optional[str] = None) -> int:
        """
        Delete by id, or every memory a query matches. Returns the SQLite delete count.

        Forget-by-query uses the recall path without the noise filter. It defaults to
        structured matching and is unbounded unless forget_query_limit is configured;
        an explicit semantic mode is capped at forget_query_limit (or 100).
        """
        self._ensure_open()

        if memory_id:
            target_ids = [memory_id]
        elif query and query.strip():
            target_ids = self._forget_candidates(query, mode)
        else:
            raise ValidationError("forget requires memoryId or query")

        deleted = self.structured.delete_by_ids(target_ids) if target_ids else 0
        self._delete_vectors(target_ids)

        logger.log_operation("memory.forget", "success", {
            "memory_id": memory_id,
            "targets": len(target_ids),
            "deleted": deleted,
        })
        return deleted

    def _forget_candidates(self, query: str, mode: Optional[str]) -> List[str]:
        resolved = mode or MODE_STRUCTURED
        if resolved not in (MODE_STRUCTURED, MODE_SEMANTIC):
            raise ValidationError(f"forget mode must be one of: {[MODE_STRUCTURED, MODE_SEMANTIC]}")

        tokens = tokenize_query(query)
        if not tokens:
            # Only stop words: never "match everything", in either mode
            logger.warning(f"Forget query {query!r} has no searchable terms; nothing deleted")
            return []

        if resolved == MODE_SEMANTIC:
            limit = self.config.forget_query_limit or SEMANTIC_FORGET_LIMIT
            return [r.id for r in self.recall(query, limit=limit, mode=MODE_SEMANTIC, filter_noise=False)]

        records = self.structured.query(tokens, limit=self.config.forget_query_limit)
        return [record.id for record in records]

    def _delete_vectors(self, record_ids: Sequence[str]):
        """Best-effort vector delete; failures are logged, never raised."""
        if not record_ids or not self.vector_available:
            return
        self.vector_index.delete_many(list(record_ids))

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def get(self, memory_id: str) -> Optional[MemoryRecord]:
        """Fetch one record by id."""
        self._ensure_open()
        return self.structured.get(memory_id)

    def stats(self) -> Dict[str, Any]:
        """Counts for observability."""
        self._ensure_open()
        return {
            "total": self.structured.count(),
            "withEmbeddings": self.structured.count_embedded(),
            "byCategory": self.structured.count_by_category(),
            "vectorAvailable": self.vector_available,
            "pendingEmbeddings": self._worker.pending if self._worker else 0,
        }

    def reconcile(self) -> Dict[str, Any]:
        """
        Repair drift between the two indexes.

        Removes vectors whose record no longer exists, clears has_embedding on
        records missing from the vector index, and queues every record without an
        embedding.
        """
        self._ensure_open()
        summary = {"vector_available": self._vector_ready(), "orphans_removed": 0,
                   "flags_cleared": 0, "queued": 0}
        if not summary["vector_available"]:
            return summary

        try:
            vector_ids = self.vector_index.ids()
        except VectorIndexError as e:
            logger.warning(f"Reconcile skipped: {e}")
            return summary

        orphans = sorted(vector_ids - self.structured.all_ids())
        if orphans:
            failed = self.vector_index.delete_many(orphans)
            summary["orphans_removed"] = len(orphans) - len(failed)

        missing = sorted(self.structured.embedded_ids() - vector_ids)
        if missing:
            summary["flags_cleared"] = self.structured.clear_embedded(missing)

        if self._worker is not None:
            for record_id, text in self.structured.unembedded():
                if self._worker.submit(record_id, text):
                    summary["queued"] += 1

        logger.log_operation("memory.reconcile", "success", summary)
        return summary

    def rebuild_vector_index(self) -> Dict[str, Any]:
        """Drop every vector and re-embed all records synchronously."""
        self._ensure_open()
        summary = {"vector_available": self._vector_ready(), "embedded": 0, "failed": 0}
        if not summary["vector_available"]:
            return summary

        self.wait_for_embeddings()
        try:
            self.vector_index.clear()
        except VectorIndexError as e:
            logger.error(f"Vector index rebuild aborted: {e}")
            return summary
        self.structured.clear_embedded()

        for record_id, text in self.structured.unembedded():
            if self._embed_record(record_id, text):
                summary["embedded"] += 1
            else:
                summary["failed"] += 1

        logger.log_operation("memory.rebuild_vector_index", "success", summary)
        return summary

    def wait_for_embeddings(self, timeout: Optional[float] = None) -> bool:
        """Block until queued embedding jobs are done. Returns False on timeout."""
        if self._worker is None:
            return True
        return self._worker.wait_idle(timeout)

    def close(self, drain: bool = False):
        """
        Shut down. Queued embedding jobs are abandoned unless drain=True; an in-flight
        job is not awaited and fails quietly once the vector index is closed.
        """
        if self._closed:
            return
        if self._worker is not None:
            self._worker.shutdown(drain=drain)
        self._closed = True
        if self.vector_index is not None:
            self.vector_index.close()
        logger.log_operation("memory.shutdown", "success", {"drain": drain})
