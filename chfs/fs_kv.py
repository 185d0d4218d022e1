"""File chunks kept as values of a key-value store, each behind a metadata header."""

from __future__ import annotations

import logging
import time
from typing import Callable

from .errors import KVError, KVErrorCode
from .inode import FS_MSIZE, SIZE_FORMAT, SIZE_OFFSET, FsStat, Inode
from .keys import chunk_key
from .kvstore import KVStore
from .lock import KeyLockTable

log = logging.getLogger(__name__)


def _now() -> tuple[int, int]:
    sec, nsec = divmod(time.time_ns(), 1_000_000_000)
    return sec, nsec


class KVFileSystem:
    """Chunk operations over a :class:`KVStore`.

    Every value is a header followed by ``chunk_size`` bytes of data.
    ``in_charge`` tells whether a chunk key belongs to this server; when it
    is not given, every key does.
    """

    def __init__(self, store: KVStore,
                 in_charge: Callable[[bytes], bool] | None = None) -> None:
        self.store = store
        self.in_charge = in_charge
        self._locks = KeyLockTable()

    def _owns(self, key: bytes) -> bool:
        return self.in_charge is None or bool(self.in_charge(key))

    def _create_data(self, key, uid: int, gid: int, mode: int, chunk_size: int,
                     data: bytes | None, offset: int) -> int:
        payload = bytes(data) if data is not None else b""
        if offset > chunk_size:
            raise KVError(KVErrorCode.OUT_OF_RANGE,
                          f"offset {offset} beyond chunk size {chunk_size}")
        count = min(len(payload), chunk_size - offset)
        if count == 0:
            offset = 0
        now = _now()
        inode = Inode(mode=mode, uid=uid, gid=gid, size=offset + count,
                      chunk_size=chunk_size, mtime=now, ctime=now)
        body = bytes(offset) + payload[:count]
        body += bytes(chunk_size - len(body))
        try:
            self.store.put(key, inode.pack() + body)
        except KVError as exc:
            log.error("fs_inode_create: %r: %s", key, exc)
            raise
        return count

    def create(self, key, uid: int, gid: int, mode: int, chunk_size: int,
               data: bytes | None = None) -> None:
        """Create a chunk holding ``data`` (cut to ``chunk_size``)."""
        self._create_data(key, uid, gid, mode, chunk_size, data, 0)

    def create_stat(self, key, stat: FsStat, data: bytes) -> None:
        """Store a chunk whose value, header included, is ``data``."""
        try:
            self.store.put(key, bytes(data))
        except KVError as exc:
            log.error("fs_inode_create_stat: %r: %s", key, exc)
            raise

    def _header(self, key) -> Inode:
        raw = self.store.pget(key, 0, FS_MSIZE)
        if len(raw) < FS_MSIZE:
            raise KVError(KVErrorCode.METADATA_SIZE_MISMATCH)
        inode = Inode.unpack(raw)
        if inode.msize != FS_MSIZE:
            raise KVError(KVErrorCode.METADATA_SIZE_MISMATCH)
        return inode

    def stat(self, key) -> FsStat:
        """Return the attributes of a chunk."""
        return self._header(key).to_stat()

    def _update_size(self, key, size: int) -> None:
        try:
            self.store.update(key, SIZE_OFFSET, SIZE_FORMAT.pack(size))
        except KVError as exc:
            log.error("fs_inode_update_size: %r: %s", key, exc)
            raise

    def write(self, key, data: bytes, offset: int, mode: int,
              chunk_size: int) -> int:
        """Write ``data`` at ``offset``, creating the chunk if missing.

        Returns the number of bytes stored.
        """
        diag = "fs_inode_write"
        with self._locks.hold(key, diag, len(data), offset):
            try:
                inode = self._header(key)
            except KVError as exc:
                if exc.code is not KVErrorCode.NO_ENTRY:
                    raise
                return self._create_data(key, 0, 0, mode, chunk_size,
                                         data, offset)
            count = self.store.update(key, FS_MSIZE + offset, data)
            end = offset + count
            if inode.size < end:
                self._update_size(key, end)
            return count

    def read(self, key, size: int, offset: int) -> bytes:
        """Return up to ``size`` bytes from ``offset``, stopping at the file size."""
        inode = self._header(key)
        if offset + size > inode.size:
            if offset >= inode.size:
                return b""
            size = inode.size - offset
        return self.store.pget(key, FS_MSIZE + offset, size)

    def truncate(self, key, length: int) -> None:
        """Set the size of a chunk; it cannot exceed the chunk size."""
        diag = "fs_inode_truncate"
        with self._locks.hold(key, diag, length, 0):
            inode = self._header(key)
            if inode.chunk_size < length or length < 0:
                log.error("%s: %r: out of range", diag, key)
                raise KVError(KVErrorCode.OUT_OF_RANGE)
            if inode.size != length:
                self._update_size(key, length)

    def remove(self, key) -> None:
        """Delete a chunk."""
        self.store.remove(key)

    def unlink_chunk_all(self, path, index: int) -> None:
        """Remove this server's chunks of ``path`` from ``index`` until one is missing."""
        if path is None:
            return
        i = index
        while True:
            key = chunk_key(path, i)
            i += 1
            if not self._owns(key):
                continue
            try:
                self.store.remove(key)
            except KVError:
                break