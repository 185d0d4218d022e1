import os

import pytest

from chfs.fileutil import mkdir_p, parent_dir, rmdir_r


def test_mkdir_p_creates_missing_ancestors(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    mkdir_p(str(target))
    assert target.is_dir()


def test_mkdir_p_trailing_slash(tmp_path):
    target = str(tmp_path / "x" / "y") + "//"
    mkdir_p(target)
    with pytest.raises(FileExistsError):
        mkdir_p(str(tmp_path / "x" / "y"))


def test_mkdir_p_existing_raises(tmp_path):
    (tmp_path / "here").mkdir()
    with pytest.raises(FileExistsError):
        mkdir_p(str(tmp_path / "here"))


def test_mkdir_p_uses_mode(tmp_path):
    target = tmp_path / "m" / "n"
    mkdir_p(str(target), 0o700)
    assert target.stat().st_mode & 0o777 == 0o700


def test_mkdir_p_too_deep(tmp_path):
    parts = [f"d{i}" for i in range(22)]
    target = os.path.join(str(tmp_path), *parts)
    with pytest.raises(FileNotFoundError):
        mkdir_p(target)
    assert not (tmp_path / "d0").exists()


def test_rmdir_r_nested(tmp_path):
    mkdir_p(str(tmp_path / "r" / "s" / "t"))
    (tmp_path / "r" / "u").mkdir()
    rmdir_r(str(tmp_path / "r"))
    assert not (tmp_path / "r").exists()


def test_rmdir_r_file_inside_fails(tmp_path):
    (tmp_path / "r").mkdir()
    (tmp_path / "r" / "f").write_bytes(b"data")
    with pytest.raises(NotADirectoryError):
        rmdir_r(str(tmp_path / "r"))
    assert (tmp_path / "r" / "f").exists()


def test_rmdir_r_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        rmdir_r(str(tmp_path / "nope"))


def test_parent_dir():
    assert parent_dir("a/b/c") == "a/b"
    assert parent_dir("abc") is None
    assert parent_dir("/abc") is None
    assert parent_dir("") is None


def test_parent_dir_then_mkdir_p(tmp_path):
    path = str(tmp_path / "p" / "q" / "file")
    parent = parent_dir(path)
    assert parent == str(tmp_path / "p" / "q")
    mkdir_p(parent)
    with pytest.raises(FileExistsError):
        mkdir_p(parent)