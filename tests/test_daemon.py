import logging
import os

import pytest

from chfs.daemon import (
    DaemonOptions,
    address_name_dup,
    check_directory,
    info_string,
    parse_args,
    write_pid,
)


def test_defaults():
    options = parse_args([])
    assert options == DaemonOptions()
    assert options.db_dir == "/tmp"
    assert options.rpc_timeout_msec == 30000


def test_debug_sets_priority_unless_given():
    assert parse_args(["-d"]).log_priority == logging.DEBUG
    assert parse_args(["-d"]).foreground
    assert parse_args(["-L", "info", "-d"]).log_priority == logging.INFO
    assert parse_args(["-d", "-L", "info"]).log_priority == logging.INFO


def test_numeric_and_string_options():
    options = parse_args(["-c", "/data", "-T", "8", "-H", "5", "-S", "  info.txt",
                          "-p", "tcp", "server-addr"])
    assert options.db_dir == "/data"
    assert options.nthreads == 8
    assert options.heartbeat_interval == 5
    assert options.server_info_file == "info.txt"
    assert options.protocol == "tcp"
    assert options.server == "server-addr"


def test_bad_option():
    with pytest.raises(ValueError):
        parse_args(["-z"])


def test_address_name_dup_replaces_port():
    assert address_name_dup("sockets://10.0.0.1:4000", "vn") == "sockets://10.0.0.1:vn"
    assert address_name_dup("sockets://10.0.0.1:4000") == "sockets://10.0.0.1:"


def test_address_name_dup_keeps_port_when_hashing():
    assert address_name_dup("host:4000", "vn", hash_port=True) == "host:4000:vn"
    assert address_name_dup(None, "vn") is None


def test_check_directory_creates(tmp_path):
    target = tmp_path / "a" / "b"
    check_directory(str(target))
    assert target.is_dir()
    check_directory(str(target))
    assert target.is_dir()


def test_check_directory_rejects_file(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")
    with pytest.raises(NotADirectoryError):
        check_directory(str(target))


def test_write_pid(tmp_path):
    target = tmp_path / "pid"
    write_pid(str(target))
    assert target.read_text() == f"{os.getpid()}\n"


def test_info_string():
    assert info_string("sockets") == "sockets"
    assert info_string("tcp", "127.0.0.1:1234") == "tcp://127.0.0.1:1234"