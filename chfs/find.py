"""Search the file system for entries matching name, size, age and type tests."""

from __future__ import annotations

import fnmatch
import logging
import os
import re
import stat as stmod
from collections import deque
from dataclasses import dataclass, replace
from typing import Callable, Iterable

from .errors import KVError
from .inode import FsStat
from .readdir import REPLICA_FLAG, DirEntry

log = logging.getLogger(__name__)

USAGE = ("usage: chfind [-qv] [dir ...] [-name pat] [-size size] [-newer file]\n"
         "\t[-type type] [-version]")

_UNITS = {
    "b": 512,
    "c": 1,
    "w": 2,
    "k": 1024,
    "M": 1024 * 1024,
    "G": 1024 * 1024 * 1024,
}

_LONG_OPTIONS = {
    "name": True,
    "size": True,
    "newer": True,
    "type": True,
    "version": False,
    "mpi_rank": True,
    "mpi_size": True,
}
_SHORT_OPTIONS = "qv"
_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


@dataclass(frozen=True)
class SizeFilter:
    """A ``-size`` test: compare a size counted in ``unit`` blocks with ``count``."""

    prefix: int
    count: int
    unit: int

    def matches(self, size: int) -> bool:
        """Tell whether ``size`` is an exact number of units that passes the test."""
        blocks, rest = divmod(size, self.unit)
        if rest:
            return False
        if self.prefix < 0:
            return blocks < self.count
        if self.prefix > 0:
            return blocks > self.count
        return blocks == self.count


def parse_size(text: str) -> SizeFilter:
    """Parse ``[+-]N[bcwkMG]``; no suffix means 512-byte blocks."""
    prefix = 0
    body = text
    if body[:1] == "-":
        prefix, body = -1, body[1:]
    elif body[:1] == "+":
        prefix, body = 1, body[1:]
    digits = re.match(r"[0-9]*", body).group(0)
    count = int(digits) if digits else 0
    suffix = body[len(digits):]
    if suffix == "":
        unit = 512
    elif suffix in _UNITS:
        unit = _UNITS[suffix]
    else:
        raise ValueError(f"invalid size: {text}")
    return SizeFilter(prefix, count, unit)


@dataclass
class FindOptions:
    """Tests and settings given on the command line."""

    name: str | None = None
    type: str | None = None
    newer: str | None = None
    newer_mtime: tuple[int, int] | None = None
    size: SizeFilter | None = None
    quiet: bool = False
    verbose: int = 0
    version: bool = False
    mpi_rank: int = 0
    mpi_size: int = 1

    def matches(self, name: str, st: FsStat) -> bool:
        """Tell whether an entry called ``name`` with attributes ``st`` passes every test."""
        if self.newer is not None and self.newer_mtime is not None:
            if tuple(st.mtime) <= tuple(self.newer_mtime):
                return False
        if self.size is not None and not self.size.matches(st.size):
            return False
        if self.name is not None and not fnmatch.fnmatchcase(name, self.name):
            return False
        if self.type == "f" and not stmod.S_ISREG(st.mode):
            return False
        if self.type == "d" and not stmod.S_ISDIR(st.mode):
            return False
        return True


def _match_long(name: str) -> str | None:
    if name in _LONG_OPTIONS:
        return name
    candidates = [option for option in _LONG_OPTIONS if option.startswith(name)]
    return candidates[0] if name and len(candidates) == 1 else None


def _apply(options: FindOptions, option: str, value: str | None) -> None:
    if option == "name":
        options.name = value
    elif option == "size":
        options.size = parse_size(value)
    elif option == "newer":
        options.newer = value
    elif option == "type":
        options.type = value[:1] or None
    elif option == "version":
        options.version = True
    elif option == "mpi_rank":
        options.mpi_rank = _atoi(value)
    elif option == "mpi_size":
        options.mpi_size = _atoi(value)


def parse_args(argv: Iterable[str]) -> tuple[FindOptions, list[str]]:
    """Parse the command line into options and the starting paths.

    Long options take one or two dashes; raises ValueError on a bad option.
    """
    options = FindOptions()
    paths: list[str] = []
    args = iter(argv)
    for arg in args:
        if arg == "--":
            paths.extend(args)
            break
        if not arg.startswith("-") or arg == "-":
            paths.append(arg)
            continue
        double = arg.startswith("--")
        body = arg[2:] if double else arg[1:]
        name, sep, value = body.partition("=")
        if (not double and body and all(c in _SHORT_OPTIONS for c in body)
                and (len(body) == 1 or _match_long(name) is None)):
            for flag in body:
                if flag == "q":
                    options.quiet = True
                else:
                    options.verbose += 1
            continue
        option = _match_long(name)
        if option is None:
            raise ValueError(f"unrecognized option '{arg}'\n{USAGE}")
        if _LONG_OPTIONS[option]:
            if not sep:
                value = next(args, None)
                if value is None:
                    raise ValueError(
                        f"option '{arg}' requires an argument\n{USAGE}")
        elif sep:
            raise ValueError(f"option '{arg}' doesn't allow an argument\n{USAGE}")
        else:
            value = None
        _apply(options, option, value)
    return options, paths


def _split_entry(entry) -> tuple[str, FsStat]:
    if isinstance(entry, DirEntry):
        return entry.name, entry.stat
    name, st = entry
    return name, st


class Finder:
    """Walk directories breadth first and collect the paths that match.

    ``stat(path)`` returns an :class:`FsStat`; ``readdir(path)`` (or
    ``readdir(path, rank)`` when ``size`` is above one) yields
    :class:`DirEntry` items or ``(name, FsStat)`` pairs.
    """

    def __init__(self, options: FindOptions, stat: Callable[[str], FsStat],
                 readdir: Callable[..., Iterable], rank: int = 0,
                 size: int = 1) -> None:
        self._stat = stat
        self._readdir = readdir
        self.rank = rank
        self.size = size
        self.found = 0
        self.total = 0
        self.errors: list[tuple[str, Exception]] = []
        if options.newer is not None and options.newer_mtime is None:
            options = replace(options,
                              newer_mtime=self._newer_mtime(options.newer))
        self.options = options

    def _newer_mtime(self, path: str) -> tuple[int, int]:
        try:
            return tuple(self._stat(path).mtime)
        except (OSError, KVError):
            sb = os.lstat(path)
            sec, nsec = divmod(sb.st_mtime_ns, 1_000_000_000)
            return sec, nsec

    def _check(self, name: str, st: FsStat) -> bool:
        if self.options.matches(name, st):
            self.found += 1
            return True
        return False

    def _list(self, directory: str) -> Iterable:
        if self.size > 1:
            return self._readdir(directory, self.rank)
        return self._readdir(directory)

    def run(self, paths: Iterable[str] = ()) -> list[str]:
        """Search below ``paths`` (``.`` when empty) and return the matching paths."""
        matched: list[str] = []
        queue: deque[str] = deque()
        for path in list(paths) or ["."]:
            try:
                st = self._stat(path)
            except (OSError, KVError) as exc:
                if self.rank == 0:
                    log.error("%s: %s", path, exc)
                    self.errors.append((path, exc))
                continue
            if self.rank == 0:
                if self._check(path, st):
                    matched.append(path)
                self.total += 1
            queue.append(path)

        while queue:
            directory = queue.popleft()
            try:
                entries = list(self._list(directory))
            except (OSError, KVError) as exc:
                log.error("%s: %s", directory, exc)
                self.errors.append((directory, exc))
                continue
            for entry in entries:
                name, st = _split_entry(entry)
                self.total += 1
                if name in (".", ".."):
                    continue
                if stmod.S_ISDIR(st.mode):
                    queue.append(f"{directory}/{name}")
                if st.mode & REPLICA_FLAG:
                    continue
                if self._check(name, st):
                    matched.append(f"{directory}/{name}")
        return matched