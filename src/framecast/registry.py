from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Tuple

from .constants import DEFAULT_LOCK_TIMEOUT_S
from .errors import RegistryUnavailable

log = logging.getLogger(__name__)

Address = Tuple[str, int]


def address_key(addr: Address) -> str:
    host, port = addr[0], addr[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class ClientRegistry:
    """Receivers that asked for the stream, keyed by "host:port".

    Shared by the registration listener (writer) and the distribution loop
    (reader). The guard is only held while the membership is read or changed.
    There is no removal: a receiver that goes away stays a send target for the
    life of the process.
    """

    def __init__(self, lock_timeout_s: float = DEFAULT_LOCK_TIMEOUT_S):
        self._lock = threading.Lock()
        self._lock_timeout_s = lock_timeout_s
        self._clients: dict[str, Address] = {}

    @contextmanager
    def _guard(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout_s):
            raise RegistryUnavailable(f"registry lock not acquired within {self._lock_timeout_s}s")
        try:
            yield
        finally:
            self._lock.release()

    def register(self, addr: Address) -> bool:
        """Add a receiver; return False if it was already known."""
        key = address_key(addr)
        with self._guard():
            if key in self._clients:
                return False
            self._clients[key] = (addr[0], addr[1])
        log.info("new client registered: %s", key)
        return True

    def snapshot(self) -> list[Address]:
        with self._guard():
            return list(self._clients.values())

    def __len__(self) -> int:
        with self._guard():
            return len(self._clients)

    def __contains__(self, addr: object) -> bool:
        if not isinstance(addr, tuple) or len(addr) < 2:
            return False
        key = address_key(addr)  # type: ignore[arg-type]
        with self._guard():
            return key in self._clients
