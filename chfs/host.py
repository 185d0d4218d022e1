"""Resolve a ``host[:port]`` string to a numeric address."""

from __future__ import annotations

import logging
import socket
from typing import Optional

log = logging.getLogger(__name__)


def host_getaddr(hostname: str) -> Optional[str]:
    """Return the numeric address of ``hostname``, keeping any ``:port`` suffix.

    Returns None when the name cannot be resolved.
    """
    host, sep, port = hostname.partition(":")
    try:
        results = socket.getaddrinfo(
            host, None, socket.AF_UNSPEC, socket.SOCK_STREAM
        )
    except (socket.gaierror, UnicodeError) as exc:
        log.info("getaddrinfo: %s", exc)
        return None
    if not results:
        return None
    family = results[0][0]
    sockaddr = results[0][4]
    if family not in (socket.AF_INET, socket.AF_INET6):
        log.info("getaddr: unsupported family: %s", family)
        return None
    address = str(sockaddr[0]).split("%", 1)[0]
    if sep:
        address = address + ":" + port
    return address