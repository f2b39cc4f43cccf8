"""
Structured index: SQLite-backed exact/substring, category and date-range lookup.

SQLite is the canonical store. A record exists once its row is inserted here; the
vector index is an advisory overlay reconciled through the has_embedding flag.
"""

import json
import re
import sqlite3
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .db import get_db, init_db, PathLike
from .errors import PersistenceError
from .schema import MemoryRecord, utc_now
from ..util.logging import logger

STOP_WORDS = frozenset({
    "what", "did", "when", "where", "how", "the", "is", "are",
    "was", "were", "my", "you", "last", "this",
})

MATCH_ALL = "all"
MATCH_ANY = "any"

# Stay well below SQLITE_MAX_VARIABLE_NUMBER
_ID_CHUNK = 500

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EDGE_PUNCTUATION = ".,!?;:\"'()[]{}<>`"

_COLUMNS = "id, text, category, importance, created_at, updated_at, session_key, metadata, has_embedding"


def tokenize_query(query: Optional[str]) -> List[str]:
    """
    Split a query into lowercase substring tokens.

    Stop words and single characters are dropped. An empty result means
    "no text constraint", not "no results".
    """
    if not query:
        return []

    tokens = []
    for word in query.lower().split():
        word = word.strip(_EDGE_PUNCTUATION)
        if len(word) <= 1 or word in STOP_WORDS:
            continue
        if word not in tokens:
            tokens.append(word)
    return tokens


def inclusive_upper_bound(value: str) -> str:
    """Make a date-only upper bound inclusive of the whole day."""
    if _DATE_ONLY.match(value):
        return f"{value}T23:59:59.999999+00:00"
    return value


def _chunks(ids: Sequence[str]) -> Iterable[Sequence[str]]:
    for start in range(0, len(ids), _ID_CHUNK):
        yield ids[start:start + _ID_CHUNK]


def _row_to_record(row: sqlite3.Row) -> MemoryRecord:
    metadata = json.loads(row["metadata"]) if row["metadata"] is not None else None
    return MemoryRecord(
        id=row["id"],
        text=row["text"],
        category=row["category"],
        importance=row["importance"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        session_key=row["session_key"],
        metadata=metadata,
        has_embedding=bool(row["has_embedding"]),
    )


class StructuredIndex:
    """Adapter over the SQLite memories table."""

    def __init__(self, db_path: PathLike):
        self.db_path = db_path
        try:
            init_db(db_path)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to initialize structured index at '{db_path}': {e}")
            raise PersistenceError(f"Cannot open structured index at '{db_path}': {e}") from e

    @contextmanager
    def _connection(self, operation: str):
        """Yield a connection; engine and decode failures surface as PersistenceError."""
        try:
            with get_db(self.db_path) as conn:
                conn.create_function("py_lower", 1, lambda s: s.lower() if s is not None else None,
                                     deterministic=True)
                yield conn
        except sqlite3.Error as e:
            logger.error(f"Structured index {operation} failed: {e}")
            raise PersistenceError(f"Structured index {operation} failed: {e}") from e
        except json.JSONDecodeError as e:
            logger.error(f"Structured index {operation} found corrupt metadata: {e}")
            raise PersistenceError(f"Structured index {operation} found corrupt metadata: {e}") from e

    def insert(self, record: MemoryRecord) -> None:
        """Persist all fields of a record. The only write that must succeed before store returns."""
        with self._connection("insert") as conn:
            conn.execute(
                f"INSERT INTO memories ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.text,
                    record.category,
                    record.importance,
                    record.created_at,
                    record.updated_at,
                    record.session_key,
                    json.dumps(record.metadata) if record.metadata is not None else None,
                    1 if record.has_embedding else 0,
                )
            )
            conn.commit()

    def get(self, record_id: str) -> Optional[MemoryRecord]:
        """Get a single record by id."""
        with self._connection("get") as conn:
            row = conn.execute(f"SELECT {_COLUMNS} FROM memories WHERE id = ?", (record_id,)).fetchone()
            return _row_to_record(row) if row else None

    def get_by_ids(self, ids: Sequence[str]) -> Dict[str, MemoryRecord]:
        """Hydrate records by id. Missing ids are simply absent from the result."""
        ids = list(dict.fromkeys(ids))
        found = {}
        if not ids:
            return found

        with self._connection("get_by_ids") as conn:
            for chunk in _chunks(ids):
                placeholders = ",".join("?" for _ in chunk)
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM memories WHERE id IN ({placeholders})", tuple(chunk)
                ).fetchall()
                for row in rows:
                    found[row["id"]] = _row_to_record(row)
        return found

    def query(self,
              tokens: Optional[Sequence[str]] = None,
              category: Optional[str] = None,
              date_from: Optional[str] = None,
              date_to: Optional[str] = None,
              limit: Optional[int] = None,
              match: str = MATCH_ALL) -> List[MemoryRecord]:
        """
        Filtered lookup ordered by importance desc, then created_at desc.

        Args:
            tokens: lowercase substrings the text must contain (all of them, or any of
                them with match="any"). Empty or None means no text constraint.
            category: exact category filter
            date_from: inclusive lower bound on created_at
            date_to: inclusive upper bound on created_at; a bare YYYY-MM-DD covers the whole day
            limit: maximum rows; None for no limit
        """
        conditions = []
        values: List[object] = []

        if tokens:
            token_clauses = ["instr(py_lower(text), ?) > 0" for _ in tokens]
            joiner = " OR " if match == MATCH_ANY else " AND "
            conditions.append("(" + joiner.join(token_clauses) + ")")
            values.extend(tokens)

        if category:
            conditions.append("category = ?")
            values.append(category)

        if date_from:
            conditions.append("created_at >= ?")
            values.append(date_from)

        if date_to:
            conditions.append("created_at <= ?")
            values.append(inclusive_upper_bound(date_to))

        sql = f"SELECT {_COLUMNS} FROM memories"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY importance DESC, created_at DESC, rowid DESC"
        if limit is not None:
            sql += " LIMIT ?"
            values.append(int(limit))

        with self._connection("query") as conn:
            rows = conn.execute(sql, tuple(values)).fetchall()
            return [_row_to_record(row) for row in rows]

    def delete_by_ids(self, ids: Sequence[str]) -> int:
        """Delete records; returns the number of rows actually removed."""
        ids = list(dict.fromkeys(ids))
        if not ids:
            return 0

        deleted = 0
        with self._connection("delete") as conn:
            for chunk in _chunks(ids):
                placeholders = ",".join("?" for _ in chunk)
                cursor = conn.execute(f"DELETE FROM memories WHERE id IN ({placeholders})", tuple(chunk))
                deleted += cursor.rowcount
            conn.commit()
        return deleted

    def mark_embedded(self, record_id: str) -> bool:
        """Set has_embedding and bump updated_at. Returns False if the record is gone."""
        with self._connection("mark_embedded") as conn:
            cursor = conn.execute(
                "UPDATE memories SET has_embedding = 1, updated_at = ? WHERE id = ?",
                (utc_now(), record_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    def clear_embedded(self, ids: Optional[Sequence[str]] = None) -> int:
        """Reset has_embedding for the given ids, or for every record when ids is None."""
        now = utc_now()
        with self._connection("clear_embedded") as conn:
            if ids is None:
                cursor = conn.execute(
                    "UPDATE memories SET has_embedding = 0, updated_at = ? WHERE has_embedding = 1", (now,)
                )
                changed = cursor.rowcount
            else:
                changed = 0
                for chunk in _chunks(list(dict.fromkeys(ids))):
                    placeholders = ",".join("?" for _ in chunk)
                    cursor = conn.execute(
                        f"UPDATE memories SET has_embedding = 0, updated_at = ? WHERE id IN ({placeholders})",
                        (now, *chunk)
                    )
                    changed += cursor.rowcount
            conn.commit()
            return changed

    def count(self) -> int:
        with self._connection("count") as conn:
            return conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]

    def count_by_category(self) -> Dict[str, int]:
        with self._connection("count_by_category") as conn:
            rows = conn.execute("SELECT category, COUNT(*) FROM memories GROUP BY category").fetchall()
            return {row[0]: row[1] for row in rows}

    def count_embedded(self) -> int:
        with self._connection("count_embedded") as conn:
            return conn.execute("SELECT COUNT(*) FROM memories WHERE has_embedding = 1").fetchone()[0]

    def eviction_candidates(self, count: int) -> List[str]:
        """The `count` lowest-priority ids: least important first, then oldest first."""
        if count <= 0:
            return []
        with self._connection("eviction_candidates") as conn:
            rows = conn.execute(
                "SELECT id FROM memories ORDER BY importance ASC, created_at ASC, rowid ASC LIMIT ?",
                (count,)
            ).fetchall()
            return [row[0] for row in rows]

    def all_ids(self) -> Set[str]:
        with self._connection("all_ids") as conn:
            return {row[0] for row in conn.execute("SELECT id FROM memories")}

    def embedded_ids(self) -> Set[str]:
        with self._connection("embedded_ids") as conn:
            return {row[0] for row in conn.execute("SELECT id FROM memories WHERE has_embedding = 1")}

    def unembedded(self, limit: Optional[int] = None) -> List[Tuple[str, str]]:
        """(id, text) pairs still waiting for an embedding, most important first."""
        sql = "SELECT id, text FROM memories WHERE has_embedding = 0 ORDER BY importance DESC, created_at DESC"
        values: Tuple = ()
        if limit is not None:
            sql += " LIMIT ?"
            values = (limit,)
        with self._connection("unembedded") as conn:
            return [(row[0], row[1]) for row in conn.execute(sql, values)]
