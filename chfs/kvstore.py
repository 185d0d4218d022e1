"""A persistent ordered key-value store kept in an SQLite file."""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator

from .errors import KVError, KVErrorCode

log = logging.getLogger(__name__)


def _as_bytes(data: bytes | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8", "surrogateescape")
    return bytes(data)


class KVStore:
    """Byte keys mapped to byte values; iteration is in key order."""

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = os.fspath(path)
        self._lock = threading.RLock()
        try:
            self._conn = sqlite3.connect(self.path, check_same_thread=False)
            with self._conn:
                self._conn.execute(
                    "CREATE TABLE IF NOT EXISTS kv "
                    "(key BLOB PRIMARY KEY, value BLOB NOT NULL)"
                )
        except sqlite3.Error as exc:
            raise KVError(KVErrorCode.UNKNOWN, f"{self.path}: {exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                raise KVError(KVErrorCode.UNKNOWN, str(exc)) from exc

    @staticmethod
    def _fetch(conn: sqlite3.Connection, key: bytes) -> bytes:
        row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            raise KVError(KVErrorCode.NO_ENTRY)
        return bytes(row[0])

    def put(self, key: bytes | str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        raw = _as_bytes(key)
        log.debug("put: key=%r", raw)
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (raw, bytes(value)),
            )

    def get(self, key: bytes | str) -> bytes:
        """Return the value of ``key``."""
        with self._transaction() as conn:
            return self._fetch(conn, _as_bytes(key))

    def get_size(self, key: bytes | str) -> int:
        """Return the length of the value of ``key``."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT length(value) FROM kv WHERE key = ?", (_as_bytes(key),)
            ).fetchone()
        if row is None:
            raise KVError(KVErrorCode.NO_ENTRY)
        return int(row[0])

    def update(self, key: bytes | str, offset: int, value: bytes) -> int:
        """Overwrite part of a value in place and return the bytes written.

        The value never grows: data past its end is dropped.
        """
        if offset < 0:
            raise ValueError("offset must not be negative")
        raw = _as_bytes(key)
        data = bytes(value)
        with self._transaction() as conn:
            current = self._fetch(conn, raw)
            if offset > len(current):
                return 0
            count = min(len(data), len(current) - offset)
            if count == 0:
                return 0
            updated = current[:offset] + data[:count] + current[offset + count:]
            conn.execute("UPDATE kv SET value = ? WHERE key = ?", (updated, raw))
            return count

    def pget(self, key: bytes | str, offset: int, size: int) -> bytes:
        """Return up to ``size`` bytes of a value starting at ``offset``."""
        if offset < 0 or size < 0:
            raise ValueError("offset and size must not be negative")
        current = self.get(key)
        if offset > len(current):
            return b""
        return current[offset:offset + size]

    def remove(self, key: bytes | str) -> None:
        """Delete ``key``."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM kv WHERE key = ?", (_as_bytes(key),))
            if cursor.rowcount == 0:
                raise KVError(KVErrorCode.NO_ENTRY)

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        """Yield every ``(key, value)`` pair in key order."""
        with self._transaction() as conn:
            rows = conn.execute("SELECT key, value FROM kv ORDER BY key").fetchall()
        for key, value in rows:
            yield bytes(key), bytes(value)

    def close(self) -> None:
        """Close the underlying database."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> KVStore:
        return self

    def __exit__(self, *args) -> None:
        self.close()


def open_store(db_dir: str | os.PathLike, engine: str = "cmap",
               path: str = "kv.db", size: int = 1 << 30) -> KVStore:
    """Open the store in ``db_dir/path``, or in ``db_dir`` itself when it is not a directory."""
    if db_dir is None or engine is None or path is None:
        raise ValueError("kv_init: invalid argument")
    db_dir = os.fspath(db_dir)
    if os.path.isdir(db_dir):
        target = os.path.join(db_dir, path)
    else:
        os.stat(db_dir)
        target = db_dir
    log.info("kv_init: engine %s, path %s, size %d", engine, target, size)
    return KVStore(target)