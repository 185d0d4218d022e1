"""Error codes reported by the key-value store and the file system layers."""

from __future__ import annotations

from enum import Enum


class KVErrorCode(Enum):
    """Kinds of failure a store or file system operation can report."""

    EXIST = "entry already exists"
    NO_ENTRY = "no such entry"
    NO_MEMORY = "no memory"
    NO_SPACE = "no space left"
    NOT_SUPPORTED = "operation not supported"
    OUT_OF_RANGE = "out of range"
    TOO_LONG = "name too long"
    METADATA_SIZE_MISMATCH = "metadata size mismatch"
    SERVER_DOWN = "server down"
    LOOKUP = "address lookup failed"
    BULK_CREATE = "bulk create failed"
    BULK_TRANSFER = "bulk transfer failed"
    UNKNOWN = "unknown error"


class KVError(Exception):
    """An operation failed with one of the codes in :class:`KVErrorCode`."""

    def __init__(self, code: KVErrorCode, message: str | None = None) -> None:
        self.code = code
        super().__init__(message if message else code.value)