"""
SQLite connection and schema helpers for the structured index.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Union

PathLike = Union[str, Path]


@contextmanager
def get_db(db_path: PathLike) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection. One connection per call; sqlite serializes writes."""
    conn = sqlite3.connect(str(db_path), timeout=30)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: PathLike):
    """Initialize the database with required tables."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                text TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT 'other',
                importance REAL NOT NULL DEFAULT 0.7,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                session_key TEXT,
                metadata TEXT,
                has_embedding INTEGER NOT NULL DEFAULT 0
            )
        ''')

        # Indexes for filters, ordering and eviction
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_category ON memories(category)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_created_at ON memories(created_at)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_rank ON memories(importance, created_at)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_memories_has_embedding ON memories(has_embedding)')

        conn.commit()


def health_check(db_path: PathLike) -> bool:
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='memories'")
            return cursor.fetchone() is not None
    except sqlite3.Error:
        return False
