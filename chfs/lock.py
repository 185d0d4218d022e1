"""A fixed table of per-bucket locks for serialising updates to one key."""

from __future__ import annotations

import logging
import threading
import time
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from .keys import key_index

log = logging.getLogger(__name__)

LOCK_TABLE_SIZE = 16381
KEYBUF_SIZE = 256


def _as_bytes(key: bytes | str) -> bytes:
    if isinstance(key, str):
        return key.encode("utf-8", "surrogateescape")
    return bytes(key)


def _key_text(raw: bytes) -> str:
    return raw.partition(b"\0")[0].decode("utf-8", "replace")


@dataclass
class _Holder:
    diag: str = ""
    key: bytes = b""
    lock_time: float = 0.0
    unlock_time: float = 0.0


class KeyLockTable:
    """Locks keyed by a hash of the key; contention is logged with the previous holder."""

    def __init__(self, size: int = LOCK_TABLE_SIZE) -> None:
        if size < 1:
            raise ValueError("lock table size must be positive")
        self._size = size
        self._locks = [threading.Lock() for _ in range(size)]
        self._holders = [_Holder() for _ in range(size)]

    def bucket(self, key: bytes | str) -> int:
        """Return the table slot that guards ``key``."""
        return zlib.crc32(_as_bytes(key)) % self._size

    def lock(self, key: bytes | str, diag: str = "", size: int = 0, offset: int = 0) -> None:
        """Take the lock guarding ``key``, waiting if another holder has it."""
        raw = _as_bytes(key)
        n = self.bucket(raw)
        mutex = self._locks[n]
        if not mutex.acquire(blocking=False):
            started = time.time()
            mutex.acquire()
            acquired = time.time()
            holder = self._holders[n]
            waited = acquired - started
            level = logging.WARNING if waited >= 1.0 else logging.INFO
            log.log(
                level,
                "kv_lock (%s): %s:%d size %d offset %d wait %.9f sec for lock of "
                "%s:%d (%s) hold %.9f sec before %.9f sec",
                diag, _key_text(raw), key_index(raw), size, offset, waited,
                _key_text(holder.key), key_index(holder.key), holder.diag,
                holder.unlock_time - holder.lock_time,
                acquired - holder.unlock_time,
            )
        held = raw[:KEYBUF_SIZE]
        if len(held) == KEYBUF_SIZE:
            held = held[:-1] + b"\0"
        holder = self._holders[n]
        holder.diag = diag
        holder.key = held
        holder.lock_time = time.time()

    def unlock(self, key: bytes | str) -> None:
        """Release the lock guarding ``key``; RuntimeError if it is not held."""
        n = self.bucket(key)
        self._holders[n].unlock_time = time.time()
        self._locks[n].release()

    @contextmanager
    def hold(self, key: bytes | str, diag: str = "", size: int = 0,
             offset: int = 0) -> Iterator[None]:
        """Hold the lock guarding ``key`` for the duration of a with block."""
        self.lock(key, diag, size, offset)
        try:
            yield
        finally:
            self.unlock(key)