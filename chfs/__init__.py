"""Chunk storage backends, directory listing, ring neighbours, search logic and a store dump tool for a consistent-hashing distributed file system."""

__version__ = "0.1.0"

__all__ = [
    "daemon",
    "errors",
    "fileutil",
    "find",
    "fs_kv",
    "fs_posix",
    "host",
    "inode",
    "keys",
    "kvdump",
    "kvstore",
    "lock",
    "readdir",
    "ring",
]