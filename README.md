# chfs

`chfs` provides the storage-side pieces of a file system that spreads file
chunks over a ring of servers by consistent hashing. Each server keeps the
chunks it is in charge of in a local backend. The backend is either a
key-value store or a plain directory tree.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

- `chfs.keys`: chunk keys. A key is a path, a NUL byte, and then optionally
  a decimal chunk index and another NUL. `chunk_key(path, index)` builds a
  key. `key_index(key)` returns the index, or 0 when the key has none.
  `key_path(key)` returns the path part. `key_to_path(key)` maps a key to a
  relative file name of the form `path:index`, with leading slashes removed.
  It returns `.` when nothing is left.
- `chfs.errors`: `KVErrorCode`, an enum of failure kinds, and `KVError`,
  the exception the store and the file system backends raise. It carries a
  `code`.
- `chfs.kvstore`: `KVStore`, a persistent key-value store kept in an SQLite
  file. Byte keys map to byte values. It offers `put`, `get`, `get_size`,
  `pget` (partial read), `update` (an in-place overwrite that never grows
  the value), `remove`, `items` (in key order) and `close`, and it works as
  a context manager. `open_store(db_dir, engine, path, size)` opens
  `db_dir/path`, or `db_dir` itself when it is not a directory.
- `chfs.inode`: `Inode`, the packed metadata header stored in front of each
  chunk. It has `pack`, `unpack` and `to_stat`. `FsStat` holds the
  attributes of an entry.
- `chfs.fs_kv`: `KVFileSystem`, the chunk operations on a `KVStore`:
  `create`, `create_stat`, `stat`, `write`, `read`, `truncate`, `remove`
  and `unlink_chunk_all`. `write` creates a missing chunk. `truncate`
  cannot go beyond the chunk size.
- `chfs.fs_posix`: `PosixFileSystem`, the same operations on files below a
  root directory. Each regular file starts with its chunk size. Directories
  and symbolic links are supported. It also has `readdir`, which skips
  chunk files (names containing `:`).
- `chfs.readdir`: `readdir_kv(store, path, in_charge)` and
  `readdir_posix(fs, path, in_charge)`. Both list a directory as
  `DirEntry` values. Entries that belong to another server are marked with
  `REPLICA_FLAG` in their mode.
- `chfs.lock`: `KeyLockTable`, a fixed table of locks chosen by a hash of
  the key. It has `lock`, `unlock` and the `hold` context manager. When a
  lock is contended, it logs the previous holder, how long that holder had
  the lock, and how long the caller waited.
- `chfs.ring`: `Ring`, which holds a server's address and name and its
  `next`, `next_next`, `prev` and `prev_prev` neighbours. Each neighbour is
  a `RingNode`. You can replace a node with `set` while readers hold it
  through `acquire`/`release` or `holding`. The new address takes effect
  when the last holder releases the node.
- `chfs.find`: the logic of a `find`-like search. It covers `parse_args`
  (`-name`, `-size`, `-newer`, `-type`, `-q`, `-v`, `-mpi_rank`,
  `-mpi_size`), `parse_size`, `SizeFilter`, `FindOptions` and `Finder`.
  `Finder` walks breadth first over the `stat` and `readdir` callables you
  give it and returns the matching paths.
- `chfs.daemon`: start-up helpers for a storage server. It provides
  `DaemonOptions`, `parse_args`, `address_name_dup`, `check_directory`,
  `write_pid` and `info_string`.
- `chfs.kvdump`: `dump_store`, `format_time` and the `chkvdump` command.

## Example

```python
from chfs.kvstore import KVStore
from chfs.fs_kv import KVFileSystem
from chfs.keys import chunk_key

with KVStore("/tmp/chfs-kv.db") as store:
    fs = KVFileSystem(store, in_charge=lambda key: True)
    key = chunk_key("/dir/file", 0)
    fs.create(key, 0, 0, 0o100644, 4096, b"hello")
    fs.write(key, b" world", 5, 0o100644, 4096)
    print(fs.read(key, 64, 0))   # b'hello world'
    print(fs.stat(key).size)     # 11
```

## Dumping a store

```
chkvdump [-s] [-l #char] kv.db ...
```

For each store named, this prints the name and then every key with its
value size. NUL bytes in keys are shown as `_`. With `-s` it also prints
each chunk's mode, owner, size, chunk size and modify and change times.
`-l N` adds up to `N` bytes of the stored data.

## What this package does not do

There is no server process here. Nothing listens for requests, nothing
forwards requests to the server in charge of a key, and no heartbeat or
election runs between servers. `chfs.ring` only tracks neighbour
addresses, and `chfs.daemon` only parses options and prepares files.
There is no client library and no mount of the file system. `chfs.find`
provides the search logic, but the package installs no command for it.
The only command installed is `chkvdump`.