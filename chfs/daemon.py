"""Start-up helpers of the storage server: options, names and files."""

from __future__ import annotations

import errno
import getopt
import logging
import os
import re
import stat as stmod
from dataclasses import dataclass

from .fileutil import mkdir_p
from .host import host_getaddr

log = logging.getLogger(__name__)

USAGE = ("Usage: chfsd [-d] [-f] [-c db_dir] [-s db_size] [-p protocol]\n"
         "\t[-h host[:port]/device] [-n vname] [-N virtual_name] [-P pid_file]\n"
         "\t[-l log_file] [-S server_info_file] [-t rpc_timeout_msec] "
         "[-T nthreads]\n\t[-I niothreads] [-H heartbeat_interval] "
         "[-L log_priority] [server]")

_PRIORITIES = {
    "emerg": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "crit": logging.CRITICAL,
    "err": logging.ERROR,
    "warning": logging.WARNING,
    "notice": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


@dataclass
class DaemonOptions:
    """Settings of one server process."""

    db_dir: str = "/tmp"
    db_size: int = 1024 * 1024 * 1024
    protocol: str = "sockets"
    hostname: str | None = None
    vname: str | None = None
    virtual_name: str | None = None
    pid_file: str | None = None
    log_file: str | None = None
    server_info_file: str | None = None
    rpc_timeout_msec: int = 30000
    nthreads: int = 4
    niothreads: int = 2
    heartbeat_interval: int = 60
    log_priority: int | None = None
    foreground: bool = False
    server: str | None = None


def parse_args(argv: list[str]) -> DaemonOptions:
    """Parse the server command line; raises ValueError on a bad option."""
    try:
        opts, rest = getopt.gnu_getopt(argv, "c:dfh:H:I:l:L:n:N:p:P:s:S:t:T:")
    except getopt.GetoptError as exc:
        raise ValueError(f"{exc}\n{USAGE}") from exc
    options = DaemonOptions()
    for flag, value in opts:
        if flag == "-c":
            options.db_dir = value
        elif flag == "-d":
            options.foreground = True
            if options.log_priority is None:
                options.log_priority = logging.DEBUG
        elif flag == "-f":
            options.foreground = True
        elif flag == "-h":
            options.hostname = value
        elif flag == "-H":
            options.heartbeat_interval = _atoi(value)
        elif flag == "-I":
            options.niothreads = _atoi(value)
        elif flag == "-l":
            options.log_file = value
        elif flag == "-L":
            level = _PRIORITIES.get(value.lower())
            if level is None:
                log.error("%s: invalid log priority", value)
            options.log_priority = level
        elif flag == "-n":
            options.vname = value
        elif flag == "-N":
            options.virtual_name = value
        elif flag == "-p":
            options.protocol = value
        elif flag == "-P":
            options.pid_file = value
        elif flag == "-s":
            options.db_size = _atoi(value)
        elif flag == "-S":
            options.server_info_file = value.lstrip(" ")
        elif flag == "-t":
            options.rpc_timeout_msec = _atoi(value)
        elif flag == "-T":
            options.nthreads = _atoi(value)
    if rest:
        options.server = rest[0]
    return options


def address_name_dup(address: str | None, name: str | None = None,
                     hash_port: bool = False) -> str | None:
    """Return the server's virtual name: its address with the port replaced by ``name``.

    With ``hash_port`` the port is kept and ``:name`` appended.
    """
    if address is None:
        return None
    if not hash_port:
        head, sep, _ = address.rpartition(":")
        if sep:
            address = head
    return f"{address}:{name or ''}"


def check_directory(path: str) -> None:
    """Make sure ``path`` is a directory or a character device, creating it if missing."""
    try:
        sb = os.stat(path)
    except FileNotFoundError:
        mkdir_p(path, 0o755)
        log.info("%s: created", path)
        return
    if not stmod.S_ISDIR(sb.st_mode) and not stmod.S_ISCHR(sb.st_mode):
        raise NotADirectoryError(
            errno.ENOTDIR, "not a directory or a character device", path)


def write_pid(path: str | None) -> None:
    """Write the process id to ``path``, if one is given."""
    if path is None:
        return
    with open(path, "w") as f:
        f.write(f"{os.getpid()}\n")


def info_string(protocol: str, hostname: str | None = None) -> str:
    """Build the transport address string from a protocol and ``host[:port]``."""
    if hostname is None:
        return protocol
    address = host_getaddr(hostname)
    if address is None:
        address = hostname.partition(":")[0]
    return f"{protocol}://{address}"