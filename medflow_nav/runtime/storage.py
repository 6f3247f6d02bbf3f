"""
storage.py - Key-value stores for persisted navigation state.

The state manager persists its snapshot as opaque bytes through the
KeyValueStore protocol. Three adapters are provided:

    InMemoryKeyValueStore  - dict-backed, for tests and ephemeral sessions
    JsonFileKeyValueStore  - one ``<key>.json`` file per key, written atomically
    DuckDBKeyValueStore    - a single ``kv_store`` table in a DuckDB database

Stores raise on I/O failure; callers decide whether a failure is fatal. The
state manager logs and continues.

Usage:
    from medflow_nav.runtime.storage import DuckDBKeyValueStore

    store = DuckDBKeyValueStore(Path(".medflow/navigation.duckdb"))
    store.save("medflow_navigation_state", payload)
    payload = store.load("medflow_navigation_state")
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol

import duckdb

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStore(Protocol):
    """Durable byte store keyed by string."""

    def load(self, key: str) -> Optional[bytes]:
        ...

    def save(self, key: str, value: bytes) -> None:
        ...


class InMemoryKeyValueStore:
    """Dict-backed store; contents live as long as the instance."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}

    def load(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def save(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def __contains__(self, key: str) -> bool:
        return key in self._data


# =============================================================================
# File store
# =============================================================================


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to a file atomically (temp file + os.replace)."""
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    # Same directory keeps the rename on one filesystem
    fd, tmp_path = tempfile.mkstemp(suffix=".tmp", prefix=path.name + ".", dir=parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class JsonFileKeyValueStore:
    """Stores each key as ``<directory>/<key>.json``.

    Keys are reduced to ``[A-Za-z0-9_.-]`` for the file name.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self.directory / (_SAFE_KEY.sub("_", key) + ".json")

    def load(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def save(self, key: str, value: bytes) -> None:
        _atomic_write_bytes(self._path_for(key), value)


# =============================================================================
# DuckDB store
# =============================================================================

CREATE_KV_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key VARCHAR PRIMARY KEY,
    value BLOB NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
)
"""


class DuckDBKeyValueStore:
    """DuckDB-backed key-value store.

    Attributes:
        db_path: Path to the DuckDB file. None uses an in-memory database.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path is not None else None
        self._connection = None
        self._lock = threading.RLock()

    @property
    def connection(self):
        """Get or create the DuckDB connection (schema created on first use)."""
        if self._connection is None:
            with self._lock:
                if self._connection is None:
                    if self.db_path:
                        self.db_path.parent.mkdir(parents=True, exist_ok=True)
                        self._connection = duckdb.connect(str(self.db_path))
                    else:
                        self._connection = duckdb.connect(":memory:")
                    self._connection.execute(CREATE_KV_TABLE_SQL)
                    logger.debug("kv_store schema initialized at %s", self.db_path or ":memory:")
        return self._connection

    def load(self, key: str) -> Optional[bytes]:
        with self._lock:
            row = self.connection.execute(
                "SELECT value FROM kv_store WHERE key = ?", [key]
            ).fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def save(self, key: str, value: bytes) -> None:
        with self._lock:
            self.connection.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT (key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                [key, bytes(value)],
            )

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            with self._lock:
                self._connection.close()
                self._connection = None
