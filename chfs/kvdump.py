"""Print the keys of key-value stores, optionally with their chunk metadata."""

from __future__ import annotations

import getopt
import logging
import os
import re
import sys
import time
from typing import TextIO

from .errors import KVError, KVErrorCode
from .inode import FS_MSIZE, FsStat, Inode
from .kvstore import KVStore, open_store

log = logging.getLogger(__name__)

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


def _atol(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def format_time(seconds: int, nanoseconds: int) -> str:
    """Format a timestamp in local time with nanoseconds and the UTC offset."""
    tm = time.localtime(seconds)
    stamp = time.strftime("%Y-%m-%d %H:%M:%S", tm)
    return f"{stamp}.{nanoseconds:09d} {time.strftime('%z', tm)}"


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", "backslashreplace")


def _value_stat(value: bytes) -> FsStat:
    if len(value) < FS_MSIZE:
        raise KVError(KVErrorCode.METADATA_SIZE_MISMATCH)
    inode = Inode.unpack(value)
    if inode.msize != FS_MSIZE:
        raise KVError(KVErrorCode.METADATA_SIZE_MISMATCH)
    return inode.to_stat()


def _write_stat(out: TextIO, st: FsStat) -> None:
    out.write(f"  Mode: ({st.mode:o}) Uid: ({st.uid}) Gid: ({st.gid}) "
              f"Size: {st.size} Chunk size: {st.chunk_size}\n")
    out.write(f"Modify: {format_time(*st.mtime)}\n")
    out.write(f"Change: {format_time(*st.ctime)}\n")


def dump_store(store: KVStore, out: TextIO | None = None,
               show_stat: bool = False, length: int = 0) -> None:
    """Write every key with its value size; with ``show_stat`` add metadata and data."""
    out = out if out is not None else sys.stdout
    for key, value in store.items():
        out.write(f"   Key: {_decode(key.replace(b'\0', b'_'))} "
                  f"Value size: {len(value)}\n")
        if not show_stat:
            continue
        try:
            st = _value_stat(value)
        except KVError as exc:
            log.error("%s", exc)
        else:
            _write_stat(out, st)
            if length > 0:
                data = value[FS_MSIZE:]
                count = min(len(data), st.size, length)
                out.write(_decode(data[:count]) + "\n")
        out.write("\n")


def main(argv: list[str] | None = None) -> int:
    """Dump each store named on the command line."""
    if argv is None:
        argv = sys.argv[1:]
    prog = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "chkvdump"
    try:
        opts, files = getopt.gnu_getopt(argv, "l:s")
    except getopt.GetoptError:
        print(f"Usage: {prog} [-s] [-l #char] kv.db ...", file=sys.stderr)
        return 1
    show_stat = False
    length = 0
    for flag, value in opts:
        if flag == "-l":
            length = _atol(value)
        elif flag == "-s":
            show_stat = True
    for name in files:
        print(name)
        try:
            with open_store(name, "cmap", "kv.db", 256 * 1024 * 1024) as store:
                dump_store(store, sys.stdout, show_stat, length)
        except (OSError, KVError) as exc:
            log.error("%s: %s", name, exc)
    return 0