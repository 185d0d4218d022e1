"""File chunks kept as ordinary files below a root directory."""

from __future__ import annotations

import errno
import logging
import os
import stat as stmod
import struct
from contextlib import contextmanager, suppress
from typing import Callable, Iterator

from .errors import KVError, KVErrorCode
from .fileutil import mkdir_p, parent_dir, rmdir_r
from .inode import FsStat
from .keys import chunk_key, key_to_path

log = logging.getLogger(__name__)

_META = struct.Struct("<Q")
META_SIZE = _META.size
"""Bytes of metadata (the chunk size) stored at the start of each regular file."""

_ACCMODE = os.O_WRONLY | os.O_RDWR

_ERRNO_CODES = {
    errno.EEXIST: KVErrorCode.EXIST,
    errno.ENOENT: KVErrorCode.NO_ENTRY,
    errno.ENOMEM: KVErrorCode.NO_MEMORY,
    errno.ENOTSUP: KVErrorCode.NOT_SUPPORTED,
    errno.EOPNOTSUPP: KVErrorCode.NOT_SUPPORTED,
}


@contextmanager
def _fs_errors(diag: str, path: str) -> Iterator[None]:
    try:
        yield
    except OSError as exc:
        code = _ERRNO_CODES.get(exc.errno, KVErrorCode.UNKNOWN)
        if code is KVErrorCode.UNKNOWN:
            log.warning("fs_err (%s): %s", diag, exc.strerror)
        raise KVError(code, f"{diag}: {path}: {exc.strerror}") from exc


def _timespec(ns: int) -> tuple[int, int]:
    sec, nsec = divmod(ns, 1_000_000_000)
    return sec, nsec


def _mkdir_parent(path: str) -> None:
    parent = parent_dir(path)
    if parent:
        # may fail when another request creates it concurrently
        with suppress(OSError):
            mkdir_p(parent, 0o755)


class PosixFileSystem:
    """Chunk operations over files below ``root``.

    A chunk key ``path\\0index\\0`` is the file ``path:index``; each regular
    file starts with its chunk size. Without ``in_charge`` every key
    belongs to this server.
    """

    def __init__(self, root: str | os.PathLike,
                 in_charge: Callable[[bytes], bool] | None = None) -> None:
        self.root = os.path.abspath(os.fspath(root))
        self.in_charge = in_charge
        if not os.path.isdir(self.root):
            mkdir_p(self.root, 0o755)
        log.info("fs_inode_init: path %s", self.root)

    def _owns(self, key: bytes) -> bool:
        return self.in_charge is None or bool(self.in_charge(key))

    def _path(self, key) -> str:
        return os.path.join(self.root, key_to_path(key))

    @staticmethod
    def _get_chunk_size(path: str) -> int:
        with open(path, "rb") as f:
            raw = f.read(META_SIZE)
        if len(raw) != META_SIZE:
            log.error("get_chunk_size (read): %d of %d bytes read",
                      len(raw), META_SIZE)
            raise OSError(errno.EIO, os.strerror(errno.EIO), path)
        return _META.unpack(raw)[0]

    @staticmethod
    def _set_chunk_size(path: str, size: int) -> None:
        fd = os.open(path, os.O_WRONLY)
        try:
            if os.write(fd, _META.pack(size)) != META_SIZE:
                raise OSError(errno.ENOSPC, os.strerror(errno.ENOSPC), path)
        finally:
            os.close(fd)

    def _open(self, path: str, flags: int, mode: int,
              chunk_size: int = 0) -> tuple[int, int]:
        readonly = not flags & _ACCMODE
        if readonly:
            chunk_size = self._get_chunk_size(path)
        try:
            fd = os.open(path, flags, mode)
        except OSError:
            if readonly:
                raise
            _mkdir_parent(path)
            flags |= os.O_CREAT
            fd = os.open(path, flags, mode)
        if flags & os.O_CREAT:
            try:
                self._set_chunk_size(path, chunk_size)
            except OSError:
                os.close(fd)
                raise
        return fd, chunk_size

    def create(self, key, uid: int, gid: int, mode: int, chunk_size: int,
               data: bytes | str | None = None) -> None:
        """Create a regular file, a directory or a symbolic link to ``data``."""
        path = self._path(key)
        diag = "fs_inode_create"
        log.debug("%s: %s mode %o chunk_size %d", diag, path, mode, chunk_size)
        with _fs_errors(diag, path):
            if stmod.S_ISREG(mode):
                fd, chunk_size = self._open(
                    path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC,
                    stmod.S_IMODE(mode), chunk_size)
                try:
                    if data:
                        os.pwrite(fd, bytes(data)[:chunk_size], META_SIZE)
                finally:
                    os.close(fd)
            elif stmod.S_ISDIR(mode):
                mkdir_p(path, stmod.S_IMODE(mode))
            elif stmod.S_ISLNK(mode):
                target = data.decode("utf-8", "surrogateescape") \
                    if isinstance(data, (bytes, bytearray)) else str(data or "")
                target = target.split("\0", 1)[0]
                try:
                    os.symlink(target, path)
                except OSError:
                    _mkdir_parent(path)
                    os.symlink(target, path)
            else:
                raise OSError(errno.ENOTSUP, os.strerror(errno.ENOTSUP), path)

    def create_stat(self, key, stat: FsStat, data: bytes | None) -> None:
        """Recreate an entry from its attributes; for a regular file ``data`` includes the metadata."""
        path = self._path(key)
        diag = "fs_inode_create_stat"
        if stmod.S_ISREG(stat.mode):
            with _fs_errors(diag, path):
                fd, chunk_size = self._open(
                    path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC,
                    stmod.S_IMODE(stat.mode), stat.chunk_size)
                try:
                    if data:
                        os.pwrite(fd, bytes(data)[:chunk_size + META_SIZE], 0)
                finally:
                    os.close(fd)
        else:
            self.create(key, stat.uid, stat.gid, stat.mode, stat.chunk_size,
                        data)
        mtime_ns = stat.mtime[0] * 1_000_000_000 + stat.mtime[1]
        with suppress(OSError, NotImplementedError):
            os.utime(path, ns=(mtime_ns, mtime_ns), follow_symlinks=False)

    def stat(self, key) -> FsStat:
        """Return the attributes of an entry."""
        path = self._path(key)
        with _fs_errors("fs_inode_stat", path):
            sb = os.lstat(path)
            regular = stmod.S_ISREG(sb.st_mode)
            chunk_size = self._get_chunk_size(path) if regular else 0
        size = sb.st_size - META_SIZE if regular else sb.st_size
        return FsStat(mode=sb.st_mode, uid=sb.st_uid, gid=sb.st_gid,
                      size=size, chunk_size=chunk_size,
                      mtime=_timespec(sb.st_mtime_ns),
                      ctime=_timespec(sb.st_ctime_ns))

    def write(self, key, data: bytes, offset: int, mode: int,
              chunk_size: int) -> int:
        """Write ``data`` at ``offset``, creating the file if missing; returns bytes written."""
        path = self._path(key)
        count = len(data)
        if count + offset > chunk_size:
            if offset >= chunk_size:
                return 0
            count = chunk_size - offset
        with _fs_errors("fs_inode_write", path):
            fd, _ = self._open(path, os.O_WRONLY, stmod.S_IMODE(mode),
                               chunk_size)
            try:
                return os.pwrite(fd, bytes(data)[:count], offset + META_SIZE)
            finally:
                os.close(fd)

    def read(self, key, size: int, offset: int) -> bytes:
        """Return up to ``size`` bytes from ``offset``; for a link, its target."""
        path = self._path(key)
        with _fs_errors("fs_inode_read", path):
            with suppress(OSError):
                if stmod.S_ISLNK(os.lstat(path).st_mode):
                    return os.fsencode(os.readlink(path))[:size]
            fd, chunk_size = self._open(path, os.O_RDONLY, 0o644)
            try:
                count = size
                if count + offset > chunk_size:
                    count = 0 if offset >= chunk_size else chunk_size - offset
                if count == 0:
                    return b""
                return os.pread(fd, count, offset + META_SIZE)
            finally:
                os.close(fd)

    def truncate(self, key, length: int) -> None:
        """Set the data length of a regular file."""
        path = self._path(key)
        with _fs_errors("fs_inode_truncate", path):
            os.truncate(path, length + META_SIZE)

    def remove(self, key) -> None:
        """Remove a file or link, or a directory with the directories below it."""
        path = self._path(key)
        with _fs_errors("fs_inode_remove", path):
            if stmod.S_ISDIR(os.lstat(path).st_mode):
                rmdir_r(path)
            else:
                os.unlink(path)

    def readdir(self, path) -> list[tuple[str, FsStat]]:
        """List a directory as ``(name, attributes)``, leaving out chunk files."""
        directory = self._path(path)
        entries: list[tuple[str, FsStat]] = []
        with _fs_errors("fs_inode_readdir", directory):
            names = os.listdir(directory)
        for name in names:
            if ":" in name:
                continue
            try:
                sb = os.lstat(os.path.join(directory, name))
            except OSError:
                continue
            size = sb.st_size
            if stmod.S_ISREG(sb.st_mode):
                size -= META_SIZE
            entries.append((name, FsStat(
                mode=sb.st_mode, uid=sb.st_uid, gid=sb.st_gid, size=size,
                mtime=_timespec(sb.st_mtime_ns),
                ctime=_timespec(sb.st_ctime_ns))))
        return entries

    def unlink_chunk_all(self, path, index: int) -> None:
        """Remove this server's chunk files of ``path`` from ``index`` until one is missing."""
        if path is None:
            return
        i = index
        while True:
            key = chunk_key(path, i)
            i += 1
            if not self._owns(key):
                continue
            try:
                os.unlink(self._path(key))
            except OSError:
                break