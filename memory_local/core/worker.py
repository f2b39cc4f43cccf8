"""
Background embedding worker.

store() never blocks on embedding: it hands (record_id, text) to this worker, which
runs the embed -> vector upsert -> mark embedded chain on its own thread.
"""

import queue
import threading
from typing import Any, Callable, Optional

from ..util.logging import logger

_STOP = object()


class EmbeddingWorker:
    """Single-thread job queue owned by the orchestrator."""

    def __init__(self, handler: Callable[[str, str], Any], name: str = "memory-embedding-worker"):
        self._handler = handler
        self._queue: "queue.Queue" = queue.Queue()
        self._pending = 0
        self._idle = threading.Condition()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def pending(self) -> int:
        """Jobs queued or in flight."""
        with self._idle:
            return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, record_id: str, text: str) -> bool:
        """Queue an embedding job. Returns False once the worker is shut down."""
        with self._idle:
            if self._closed:
                return False
            self._pending += 1
        self._queue.put((record_id, text))
        return True

    def _job_done(self):
        with self._idle:
            self._pending -= 1
            if self._pending <= 0:
                self._pending = 0
                self._idle.notify_all()

    def _run(self):
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            record_id, text = item
            try:
                self._handler(record_id, text)
            except Exception as e:
                # handler errors are logged; the worker keeps running
                logger.log_vector_operation("embed", record_id, {"error": str(e)[:100]}, status="failed")
            finally:
                self._job_done()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every queued job has finished. Returns False on timeout."""
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def shutdown(self, drain: bool = False, timeout: Optional[float] = None):
        """
        Stop accepting jobs.

        With drain=False queued jobs are abandoned and an in-flight job is not awaited;
        its failures (if the stores are closed underneath it) are logged, not raised.
        With drain=True queued jobs run first and the thread is joined.
        """
        with self._idle:
            if self._closed:
                return
            self._closed = True

        if not drain:
            abandoned = 0
            while True:
                try:
                    item = self._queue.get_nowait()
                except queue.Empty:
                    break
                if item is not _STOP:
                    abandoned += 1
                    self._job_done()
            if abandoned:
                logger.info(f"Embedding worker abandoned {abandoned} queued job(s) on shutdown")

        self._queue.put(_STOP)
        if drain:
            self._thread.join(timeout)
