"""
Record model: the canonical memory entity shared by both indexes.
"""

import json
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import ValidationError

MEMORY_CATEGORIES = ("preference", "fact", "decision", "entity", "conversation", "other")
DEFAULT_CATEGORY = "other"


def utc_now() -> str:
    """Current time as a fixed-width, lexically sortable ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def normalize_category(category: Any) -> str:
    """Unknown or missing categories fall back to 'other'; they are never rejected."""
    if isinstance(category, str):
        candidate = category.strip().lower()
        if candidate in MEMORY_CATEGORIES:
            return candidate
    return DEFAULT_CATEGORY


def clamp_importance(importance: Optional[float], default: float) -> float:
    if importance is None or isinstance(importance, bool):
        return default
    try:
        value = float(importance)
    except (TypeError, ValueError):
        return default
    if math.isnan(value):
        return default
    return min(1.0, max(0.0, value))


@dataclass
class MemoryRecord:
    """A single memory. `score` is set only on results of a similarity query."""

    id: str
    text: str
    category: str
    importance: float
    created_at: str
    updated_at: str
    session_key: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    has_embedding: bool = False
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Host-facing representation (camelCase keys, no score unless set)."""
        data = {
            "id": self.id,
            "text": self.text,
            "category": self.category,
            "importance": self.importance,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "sessionKey": self.session_key,
            "metadata": self.metadata,
            "hasEmbedding": self.has_embedding,
        }
        if self.score is not None:
            data["score"] = self.score
        return data


def new_record(text: str,
               category: Optional[str] = None,
               importance: Optional[float] = None,
               session_key: Optional[str] = None,
               metadata: Optional[Dict[str, Any]] = None,
               default_importance: float = 0.7) -> MemoryRecord:
    """
    Construct a record for storing: validates text, applies defaults and clamping,
    assigns the id and both timestamps.

    Raises:
        ValidationError: empty text, or metadata that cannot be round-tripped as JSON.
    """
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("text cannot be empty")

    if metadata is not None:
        if not isinstance(metadata, dict):
            raise ValidationError("metadata must be a mapping")
        try:
            json.dumps(metadata)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"metadata is not JSON-serializable: {e}") from e

    if session_key is not None and not isinstance(session_key, str):
        session_key = str(session_key)

    now = utc_now()
    return MemoryRecord(
        id=str(uuid.uuid4()),
        text=text,
        category=normalize_category(category),
        importance=clamp_importance(importance, default_importance),
        created_at=now,
        updated_at=now,
        session_key=session_key,
        metadata=metadata,
    )
