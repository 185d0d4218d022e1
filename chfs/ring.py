"""Neighbours of this server in the ring of servers."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

log = logging.getLogger(__name__)


class RingNode:
    """Address of one neighbour, swapped safely while readers hold it.

    A new address set while the node is held becomes current when the last
    holder releases it; new holders wait until then.
    """

    def __init__(self, host: str | None, label: str | None = None) -> None:
        self.label = label
        self._host: str | None = host
        self._pending: str | None = None
        self._refs = 0
        self._cond = threading.Condition()
        self._report()

    def _report(self) -> None:
        if self.label is None:
            return
        host = self.current()
        if host is not None:
            log.info("%s: %s", self.label, host)

    def set(self, host: str | None) -> None:
        """Replace the address, deferring the change while it is held."""
        if host is None:
            return
        with self._cond:
            if self._refs > 0:
                self._pending = host
            else:
                self._host = host
        self._report()

    def acquire(self) -> str | None:
        """Hold the node and return its address."""
        with self._cond:
            while self._refs > 0 and self._pending is not None:
                self._cond.wait()
            self._refs += 1
            return self._host

    def release(self) -> None:
        """Drop a hold; the last one applies any pending address."""
        with self._cond:
            if self._refs == 0:
                raise RuntimeError(f"ring node {self.label} is not held")
            self._refs -= 1
            if self._refs == 0 and self._pending is not None:
                self._host = self._pending
                self._pending = None
                self._cond.notify_all()

    def current(self) -> str | None:
        """Return the newest address, pending or not."""
        with self._cond:
            if self._refs > 0 and self._pending is not None:
                return self._pending
            return self._host

    @contextmanager
    def holding(self) -> Iterator[str | None]:
        """Hold the node for a with block, yielding its address."""
        host = self.acquire()
        try:
            yield host
        finally:
            self.release()


class Ring:
    """This server's address and name with its four neighbours."""

    def __init__(self, address: str, name: str | None = None) -> None:
        if address is None:
            raise ValueError("ring_init: NULL address")
        self.address = address
        self.name = name if name is not None else ""
        self.next = RingNode(address, "next")
        self.next_next = RingNode(address, "next_next")
        self.prev = RingNode(address, "prev")
        self.prev_prev = RingNode(address, "prev_prev")