"""
Structured logging for store, recall, forget, vector and retention operations.
"""

import logging
from typing import Any, Dict, Iterable


def _truncate(text: str, limit: int = 50) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class StructuredLogger:
    """Structured logger for memory operations."""

    def __init__(self, name: str = "memory_local"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    def log_memory_operation(self, operation: str, record_id: str, text: str = None,
                             details: Dict[str, Any] = None, status: str = "success"):
        """Log a store/recall/forget operation touching a single record."""
        log_details = {"record_id": record_id}
        if text is not None:
            log_details["text"] = _truncate(text)
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"memory.{operation}", status, log_details, level)

    def log_vector_operation(self, operation: str, record_id: str, details: Dict[str, Any] = None, status: str = "success"):
        """Log a vector operation. Anything but success is a degradation and logs as a warning."""
        log_details = {"record_id": record_id}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.WARNING
        self.log_operation(f"vector.{operation}", status, log_details, level)

    def log_retention(self, total: int, max_memories: int, evicted: Iterable[str]):
        """Log a retention pass that evicted records."""
        evicted = list(evicted)
        log_details = {
            "total": total,
            "max_memories": max_memories,
            "evicted_count": len(evicted),
            "evicted_ids": evicted[:10],
        }
        self.log_operation("retention.evict", "success", log_details)

    def log_fallback(self, operation: str, reason: str, query: str = ""):
        """Log a semantic-to-structured fallback."""
        self.log_operation(f"{operation}.fallback", "degraded", {
            "reason": _truncate(reason, 100),
            "query": _truncate(query),
        }, logging.WARNING)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
