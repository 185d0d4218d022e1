"""Keys of stored chunks: a path, a NUL byte, then optionally a decimal chunk index and a NUL."""

from __future__ import annotations

import re

_ENCODING = "utf-8"
_INT_PREFIX = re.compile(rb"\s*([+-]?\d+)")


def _as_bytes(key: bytes | str) -> bytes:
    if isinstance(key, str):
        return key.encode(_ENCODING, "surrogateescape")
    return bytes(key)


def _decode(raw: bytes) -> str:
    return raw.decode(_ENCODING, "surrogateescape")


def _leading_int(text: bytes) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def key_index(key: bytes | str) -> int:
    """Return the chunk index carried after the first NUL of a key, or 0."""
    raw = _as_bytes(key)
    nul = raw.find(b"\0")
    if nul < 0 or nul + 1 >= len(raw):
        return 0
    return _leading_int(raw[nul + 1:])


def key_path(key: bytes | str) -> str:
    """Return the path part of a key."""
    return _decode(_as_bytes(key).partition(b"\0")[0])


def chunk_key(path: bytes | str, index: int) -> bytes:
    """Build the key of chunk ``index`` of ``path``."""
    raw = _as_bytes(path)
    if b"\0" in raw:
        raise ValueError("path must not contain a NUL byte")
    return raw + b"\0" + str(int(index)).encode("ascii") + b"\0"


def key_to_path(key: bytes | str) -> str:
    """Map a key to a relative file name: ``path:index``, leading slashes removed."""
    raw = _as_bytes(key)
    head, sep, rest = raw.partition(b"\0")
    if sep and rest:
        head = head + b":" + rest.partition(b"\0")[0]
    head = head.lstrip(b"/")
    if not head:
        return "."
    return _decode(head)