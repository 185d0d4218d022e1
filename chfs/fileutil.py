"""Directory helpers used by the storage back ends."""

from __future__ import annotations

import errno
import logging
import os

log = logging.getLogger(__name__)

DIR_LEVEL = 20


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


def _mkdir_existing_ok(path: str, mode: int) -> None:
    try:
        os.mkdir(path, mode)
    except FileExistsError:
        pass


def mkdir_p(path: str | os.PathLike, mode: int = 0o755) -> None:
    """Create ``path`` and up to 20 missing ancestors.

    Raises FileExistsError when ``path`` itself already exists.
    """
    path = os.fspath(path)
    log.debug("mkdir_p: %s", path)
    try:
        os.mkdir(path, mode)
        return
    except FileNotFoundError:
        pass

    end = len(path) - 1
    while end > 0 and path[end] == "/":
        end -= 1
    cuts: list[int] = []
    for level in range(DIR_LEVEL):
        while end > 0 and path[end] != "/":
            end -= 1
        if end == 0:
            raise _not_found(path)
        cuts.append(end)
        prefix = path[:end]
        log.debug("mkdir_p: [%d] %s", level, prefix)
        try:
            os.mkdir(prefix, mode)
        except FileNotFoundError:
            end -= 1
            continue
        except FileExistsError:
            pass
        for cut in reversed(cuts[:-1]):
            _mkdir_existing_ok(path[:cut], mode)
        _mkdir_existing_ok(path, mode)
        return
    raise _not_found(path)


def rmdir_r(path: str | os.PathLike) -> None:
    """Remove a directory together with the directories below it.

    Every entry is removed as a directory, so a plain file inside a
    non-empty directory makes the removal fail.
    """
    path = os.fspath(path)
    try:
        os.rmdir(path)
        return
    except OSError as exc:
        if exc.errno not in (errno.ENOTEMPTY, errno.EEXIST):
            raise
    with os.scandir(path) as entries:
        for entry in entries:
            rmdir_r(os.path.join(path, entry.name))
    os.rmdir(path)


def parent_dir(path: str) -> str | None:
    """Return the part of ``path`` before its last slash, or None at the top."""
    end = len(path) - 1
    while end > 0 and path[end] != "/":
        end -= 1
    if end <= 0:
        return None
    return path[:end]