import stat as stmod

import pytest

from chfs.find import FindOptions, Finder, SizeFilter, parse_args, parse_size
from chfs.inode import FsStat
from chfs.readdir import REPLICA_FLAG, DirEntry

DIR = stmod.S_IFDIR | 0o755
REG = stmod.S_IFREG | 0o644


def test_parse_size_with_prefix_and_unit():
    assert parse_size("+10k") == SizeFilter(1, 10, 1024)
    assert parse_size("-3c") == SizeFilter(-1, 3, 1)


def test_parse_size_without_unit_uses_blocks():
    assert parse_size("5") == SizeFilter(0, 5, 512)


def test_parse_size_rejects_garbage():
    with pytest.raises(ValueError):
        parse_size("10x")


def test_size_filter_requires_exact_units():
    exact = SizeFilter(0, 2, 1024)
    assert exact.matches(2 * 1024)
    assert not exact.matches(2 * 1024 + 1)


def test_size_filter_prefixes():
    less = SizeFilter(-1, 3, 1)
    more = SizeFilter(1, 3, 1)
    assert less.matches(2) and not less.matches(3)
    assert more.matches(4) and not more.matches(3)


def test_options_match_name_and_type():
    options = FindOptions(name="*.c", type="f")
    assert options.matches("x.c", FsStat(mode=REG))
    assert not options.matches("x.h", FsStat(mode=REG))
    assert not options.matches("x.c", FsStat(mode=DIR))


def test_options_match_newer():
    options = FindOptions(newer="ref", newer_mtime=(5, 0))
    assert options.matches("a", FsStat(mode=REG, mtime=(5, 1)))
    assert not options.matches("a", FsStat(mode=REG, mtime=(5, 0)))


def test_parse_args_options_and_paths():
    options, paths = parse_args(["dir", "-name", "*.c", "-type", "f", "-q"])
    assert paths == ["dir"]
    assert options.name == "*.c"
    assert options.type == "f"
    assert options.quiet


def test_parse_args_combined_flags_and_equals():
    options, paths = parse_args(["-vv", "--size=+1k"])
    assert options.verbose == 2
    assert options.size == parse_size("+1k")
    assert paths == []


def test_parse_args_rank_and_version():
    options, _ = parse_args(["-mpi_rank", "3", "-mpi_size", "4", "-version"])
    assert (options.mpi_rank, options.mpi_size, options.version) == (3, 4, True)


def test_parse_args_rejects_unknown_option():
    with pytest.raises(ValueError):
        parse_args(["-bogus"])


def test_parse_args_rejects_bad_size():
    with pytest.raises(ValueError):
        parse_args(["-size", "10x"])


@pytest.fixture
def tree():
    stats = {
        "top": FsStat(mode=DIR),
        "ref": FsStat(mode=REG, mtime=(5, 0)),
    }
    listings = {
        "top": [
            DirEntry("a.c", FsStat(mode=REG, size=10, mtime=(6, 0))),
            DirEntry("sub", FsStat(mode=DIR, mtime=(5, 0))),
            DirEntry("r.c", FsStat(mode=REG | REPLICA_FLAG, mtime=(9, 0))),
            (".", FsStat(mode=DIR)),
        ],
        "top/sub": [("b.c", FsStat(mode=REG, mtime=(4, 0)))],
    }
    calls = []

    def stat(path):
        try:
            return stats[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def readdir(path, index=None):
        calls.append((path, index))
        return listings.get(path, [])

    return stat, readdir, listings, calls


def test_finder_walks_and_skips_replicas(tree):
    stat, readdir, listings, _ = tree
    finder = Finder(FindOptions(name="*.c"), stat, readdir, 0, 1)
    assert finder.run(["top"]) == ["top/a.c", "top/sub/b.c"]
    assert finder.found == 2
    assert finder.total == 1 + len(listings["top"]) + len(listings["top/sub"])


def test_finder_records_missing_path(tree):
    stat, readdir, _, _ = tree
    finder = Finder(FindOptions(), stat, readdir, 0, 1)
    assert finder.run(["missing"]) == []
    assert [path for path, _ in finder.errors] == ["missing"]


def test_finder_partitioned_by_rank(tree):
    stat, readdir, _, calls = tree
    finder = Finder(FindOptions(), stat, readdir, 1, 2)
    result = finder.run(["top"])
    assert "top" not in result
    assert ("top", 1) in calls
    assert "top/sub" in result


def test_finder_newer_uses_reference_mtime(tree):
    stat, readdir, _, _ = tree
    finder = Finder(FindOptions(newer="ref", type="f"), stat, readdir, 0, 1)
    assert finder.options.newer_mtime == (5, 0)
    assert finder.run(["top"]) == ["top/a.c"]