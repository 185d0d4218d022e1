import os
import stat as stmod

import pytest

from chfs.errors import KVError, KVErrorCode
from chfs.fs_posix import META_SIZE, PosixFileSystem
from chfs.inode import FsStat
from chfs.keys import chunk_key

MODE = stmod.S_IFREG | 0o644


@pytest.fixture
def fs(tmp_path):
    return PosixFileSystem(tmp_path / "root")


def test_init_creates_missing_root(tmp_path):
    root = tmp_path / "a" / "b"
    PosixFileSystem(root)
    assert root.is_dir()


def test_create_and_stat_regular(fs):
    fs.create("/f", 1, 2, MODE, 16, b"hello")
    st = fs.stat("/f")
    assert stmod.S_ISREG(st.mode)
    assert (st.size, st.chunk_size) == (5, 16)
    assert os.path.getsize(os.path.join(fs.root, "f")) == META_SIZE + 5


def test_create_cuts_to_chunk_size(fs):
    fs.create("/f", 0, 0, MODE, 4, b"abcdefgh")
    assert fs.read("/f", 100, 0) == b"abcd"


def test_read_offset_and_beyond_chunk(fs):
    fs.create("/f", 0, 0, MODE, 8, b"hello")
    assert fs.read("/f", 3, 1) == b"ell"
    assert fs.read("/f", 4, 8) == b""


def test_write_creates_nested_file(fs):
    key = b"/d1/d2/f\0"
    assert fs.write(key, b"abc", 0, MODE, 32) == 3
    assert fs.stat(key).chunk_size == 32
    assert fs.read(key, 10, 0) == b"abc"


def test_write_clamps_to_chunk(fs):
    fs.create("/f", 0, 0, MODE, 8, b"")
    assert fs.write("/f", b"x" * 10, 6, MODE, 8) == 2
    assert fs.write("/f", b"x", 8, MODE, 8) == 0
    assert fs.stat("/f").size == 8


def test_chunk_key_maps_to_colon_file(fs):
    assert fs.write(chunk_key("/f", 1), b"data", 0, MODE, 8) == 4
    assert os.path.isfile(os.path.join(fs.root, "f:1"))
    assert fs.stat(chunk_key("/f", 1)).size == 4


def test_directory(fs):
    fs.create("/dir", 0, 0, stmod.S_IFDIR | 0o755, 0, None)
    st = fs.stat("/dir")
    assert stmod.S_ISDIR(st.mode)
    assert st.chunk_size == 0
    with pytest.raises(KVError) as info:
        fs.create("/dir", 0, 0, stmod.S_IFDIR | 0o755, 0, None)
    assert info.value.code is KVErrorCode.EXIST


def test_symlink(fs):
    fs.create("/sub/link", 0, 0, stmod.S_IFLNK | 0o777, 0, b"target\0")
    assert stmod.S_ISLNK(fs.stat("/sub/link").mode)
    assert fs.read("/sub/link", 100, 0) == b"target"


def test_unsupported_type(fs):
    with pytest.raises(KVError) as info:
        fs.create("/fifo", 0, 0, stmod.S_IFIFO | 0o644, 0, None)
    assert info.value.code is KVErrorCode.NOT_SUPPORTED


def test_stat_missing(fs):
    with pytest.raises(KVError) as info:
        fs.stat("/none")
    assert info.value.code is KVErrorCode.NO_ENTRY


def test_short_metadata_is_unknown_error(fs):
    with open(os.path.join(fs.root, "bad"), "wb") as f:
        f.write(b"abc")
    with pytest.raises(KVError) as info:
        fs.stat("/bad")
    assert info.value.code is KVErrorCode.UNKNOWN


def test_truncate(fs):
    fs.create("/f", 0, 0, MODE, 16, b"hello")
    fs.truncate("/f", 2)
    assert fs.stat("/f").size == 2
    assert fs.read("/f", 10, 0) == b"he"


def test_remove_file_and_tree(fs):
    fs.create("/f", 0, 0, MODE, 8, b"x")
    fs.remove("/f")
    fs.create("/t/u/v", 0, 0, stmod.S_IFDIR | 0o755, 0, None)
    fs.remove("/t")
    assert not os.path.exists(os.path.join(fs.root, "f"))
    assert not os.path.exists(os.path.join(fs.root, "t"))
    with pytest.raises(KVError) as info:
        fs.remove("/t")
    assert info.value.code is KVErrorCode.NO_ENTRY


def test_readdir_skips_chunks_and_adjusts_size(fs):
    fs.create("/a", 0, 0, MODE, 16, b"hello")
    fs.create("/d", 0, 0, stmod.S_IFDIR | 0o755, 0, None)
    fs.write(chunk_key("/a", 1), b"zz", 0, MODE, 16)
    entries = dict(fs.readdir("/"))
    assert sorted(entries) == ["a", "d"]
    assert entries["a"].size == 5
    assert stmod.S_ISDIR(entries["d"].mode)


def test_readdir_missing(fs):
    with pytest.raises(KVError) as info:
        fs.readdir("/none")
    assert info.value.code is KVErrorCode.NO_ENTRY


def test_unlink_chunk_all(fs):
    for i in (1, 2, 4):
        fs.write(chunk_key("/f", i), b"a", 0, MODE, 8)
    fs.unlink_chunk_all("/f", 1)
    assert sorted(os.listdir(fs.root)) == ["f:4"]


def test_create_stat_copies_file_and_mtime(fs):
    fs.create("/src", 0, 0, MODE, 8, b"abc")
    with open(os.path.join(fs.root, "src"), "rb") as f:
        raw = f.read()
    src = fs.stat("/src")
    attrs = FsStat(mode=src.mode, size=src.size, chunk_size=8,
                   mtime=(1000, 5), ctime=(1000, 5))
    fs.create_stat("/dst", attrs, raw)
    dst = fs.stat("/dst")
    assert fs.read("/dst", 8, 0) == b"abc"
    assert dst.chunk_size == 8
    assert dst.mtime[0] == 1000