"""Directory listings assembled from a key-value store or from a directory tree."""

from __future__ import annotations

import logging
import stat as stmod
from dataclasses import dataclass
from typing import Callable

from .errors import KVError, KVErrorCode
from .fs_posix import PosixFileSystem
from .inode import FS_MSIZE, FsStat, Inode
from .kvstore import KVStore

log = logging.getLogger(__name__)

PATH_MAX = 4096

REPLICA_FLAG = 0o1000000
"""Bit set in a listed mode when the entry belongs to another server."""

_ENCODING = "utf-8"


def _as_bytes(text: bytes | str) -> bytes:
    if isinstance(text, str):
        return text.encode(_ENCODING, "surrogateescape")
    return bytes(text)


def _decode(raw: bytes) -> str:
    return raw.decode(_ENCODING, "surrogateescape")


def _is_replica(in_charge: Callable[[bytes], bool] | None, key: bytes) -> bool:
    return in_charge is not None and not in_charge(key)


@dataclass(frozen=True)
class DirEntry:
    """One name in a directory listing with its attributes."""

    name: str
    stat: FsStat


def _directory_prefix(path: bytes | str) -> bytes:
    prefix = _as_bytes(path)
    if len(prefix) > PATH_MAX - 2:
        log.error("inode_readdir: too long path: %r (%d)", prefix, len(prefix))
        raise KVError(KVErrorCode.TOO_LONG)
    if prefix and not prefix.endswith(b"/"):
        prefix += b"/"
    return prefix


def readdir_kv(store: KVStore, path: bytes | str,
               in_charge: Callable[[bytes], bool] | None = None) -> list[DirEntry]:
    """List the entries directly below ``path`` among the store's first chunks.

    Names found only as ancestors of deeper keys are listed as directories
    marked with :data:`REPLICA_FLAG`, unless a directory entry of that name
    exists. Without ``in_charge`` every key belongs to this server.
    """
    prefix = _directory_prefix(path)
    entries: list[DirEntry] = []
    subdirs: dict[bytes, int] = {}

    for key, value in store.items():
        nul = key.find(b"\0")
        if nul < 0 or nul + 1 != len(key):
            continue
        if len(prefix) >= nul or not key.startswith(prefix):
            continue
        name = key[len(prefix):nul]
        slash = name.find(b"/")
        if slash >= 0:
            subdirs.setdefault(name[:slash], 1)
            continue
        if len(value) < FS_MSIZE:
            continue
        inode = Inode.unpack(value)
        if stmod.S_ISDIR(inode.mode):
            subdirs[name] = 2
        if inode.msize != FS_MSIZE:
            continue
        mode = inode.mode
        if _is_replica(in_charge, key):
            mode |= REPLICA_FLAG
        entries.append(DirEntry(_decode(name), FsStat(
            mode=mode, uid=inode.uid, gid=inode.gid, size=inode.size,
            mtime=inode.mtime, ctime=inode.ctime)))

    for name, state in subdirs.items():
        if state == 2:
            continue
        entries.append(DirEntry(_decode(name),
                                FsStat(mode=stmod.S_IFDIR | REPLICA_FLAG)))
    return entries


def readdir_posix(fs: PosixFileSystem, path: bytes | str,
                  in_charge: Callable[[bytes], bool] | None = None) -> list[DirEntry]:
    """List a directory of a :class:`PosixFileSystem`, marking entries of other servers."""
    prefix = _directory_prefix(path)
    entries: list[DirEntry] = []
    for name, sb in fs.readdir(_decode(_as_bytes(path))):
        raw_name = _as_bytes(name)
        full = prefix + raw_name
        if len(full) + 1 > PATH_MAX:
            log.error("fs_add_entry: too long: %r (%d)", full, len(full) + 1)
            continue
        mode = sb.mode
        if _is_replica(in_charge, full + b"\0"):
            mode |= REPLICA_FLAG
        entries.append(DirEntry(name, FsStat(
            mode=mode, uid=sb.uid, gid=sb.gid, size=sb.size,
            mtime=sb.mtime, ctime=sb.ctime)))
    return entries