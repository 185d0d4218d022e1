"""On-disk layout of the metadata header stored in front of each chunk."""

from __future__ import annotations

import struct
from dataclasses import dataclass

_HEAD = struct.Struct("<4I")
_FORMAT = struct.Struct("<4I2Q4q")

FS_MSIZE = _FORMAT.size
"""Size in bytes of the packed metadata header."""

SIZE_OFFSET = _HEAD.size
"""Byte offset of the ``size`` field inside the packed header."""

SIZE_FORMAT = struct.Struct("<Q")
"""Encoding of the ``size`` field."""


@dataclass
class FsStat:
    """Attributes of a stored file, directory or link."""

    mode: int
    uid: int = 0
    gid: int = 0
    size: int = 0
    chunk_size: int = 0
    mtime: tuple[int, int] = (0, 0)
    ctime: tuple[int, int] = (0, 0)


@dataclass
class Inode:
    """Metadata header of one chunk, with times as ``(seconds, nanoseconds)``."""

    mode: int
    uid: int = 0
    gid: int = 0
    size: int = 0
    chunk_size: int = 0
    mtime: tuple[int, int] = (0, 0)
    ctime: tuple[int, int] = (0, 0)
    msize: int = FS_MSIZE

    def pack(self) -> bytes:
        """Return the header as bytes."""
        return _FORMAT.pack(
            self.mode, self.uid, self.gid, self.msize,
            self.size, self.chunk_size,
            self.mtime[0], self.mtime[1], self.ctime[0], self.ctime[1],
        )

    @classmethod
    def unpack(cls, data: bytes) -> Inode:
        """Decode a header from the start of ``data``."""
        if len(data) < FS_MSIZE:
            raise ValueError(
                f"inode header needs {FS_MSIZE} bytes, got {len(data)}"
            )
        (mode, uid, gid, msize, size, chunk_size,
         msec, mnsec, csec, cnsec) = _FORMAT.unpack_from(data)
        return cls(mode=mode, uid=uid, gid=gid, size=size,
                   chunk_size=chunk_size, mtime=(msec, mnsec),
                   ctime=(csec, cnsec), msize=msize)

    def to_stat(self) -> FsStat:
        """Return the attributes held in this header."""
        return FsStat(mode=self.mode, uid=self.uid, gid=self.gid,
                      size=self.size, chunk_size=self.chunk_size,
                      mtime=self.mtime, ctime=self.ctime)