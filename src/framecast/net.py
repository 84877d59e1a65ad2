from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass, field
from typing import Tuple

from .constants import HEADER_SIZE, MAX_DATAGRAM

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Impairment:
    """Simulated misbehaviour of the datagram medium.

    Everything applies on send; loss applies on receive as well.
    """

    loss_rate: float = 0.0
    delay_ms: int = 0
    duplicate_rate: float = 0.0
    reorder_rate: float = 0.0
    corrupt_rate: float = 0.0
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    @property
    def active(self) -> bool:
        return any(
            (self.loss_rate, self.delay_ms, self.duplicate_rate, self.reorder_rate, self.corrupt_rate)
        )

    def should_drop(self) -> bool:
        return self.rng.random() < self.loss_rate

    def should_duplicate(self) -> bool:
        return self.rng.random() < self.duplicate_rate

    def should_reorder(self) -> bool:
        return self.rng.random() < self.reorder_rate

    def maybe_corrupt(self, data: bytes) -> bytes:
        if not data or self.rng.random() >= self.corrupt_rate:
            return data
        # flip one bit past the header so the damage lands in the payload
        buf = bytearray(data)
        i = self.rng.randrange(min(len(buf) - 1, HEADER_SIZE), len(buf))
        buf[i] ^= 1 << self.rng.randrange(8)
        return bytes(buf)

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()
        self._held: tuple[bytes, Tuple[str, int]] | None = None
        self.peer: Tuple[str, int] | None = None

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((host, port))
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        return cls(sock, impairment)

    @classmethod
    def sending(
        cls,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        return cls(sock, impairment)

    @classmethod
    def connected(
        cls,
        host: str,
        port: int,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        """A socket that only exchanges datagrams with host:port."""
        ep = cls.sending(timeout_ms=timeout_ms, impairment=impairment)
        ep.sock.connect((host, port))
        host, port = ep.sock.getpeername()[:2]
        ep.peer = (host, port)
        return ep

    @property
    def address(self) -> Tuple[str, int]:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def sendto(self, data: bytes, addr: Tuple[str, int]) -> None:
        imp = self.impairment
        if not imp.active:
            self._send(data, addr)
            return

        if imp.should_drop():
            log.debug("impairment dropped %d bytes to %s", len(data), addr)
            return
        imp.sleep_if_needed()
        data = imp.maybe_corrupt(data)

        if self._held is None and imp.should_reorder():
            self._held = (data, addr)
            return

        self._send(data, addr)
        if imp.should_duplicate():
            self._send(data, addr)
        self.flush()

    def flush(self) -> None:
        """Release a datagram held back for reordering."""
        if self._held is not None:
            data, addr = self._held
            self._held = None
            self._send(data, addr)

    def _send(self, data: bytes, addr: Tuple[str, int]) -> None:
        # connected sockets reject an explicit destination on some platforms
        if self.peer is not None:
            self.sock.send(data)
        else:
            self.sock.sendto(data, addr)

    def recvfrom(self, bufsize: int = MAX_DATAGRAM) -> Tuple[bytes, Tuple[str, int]]:
        while True:
            data, addr = self.sock.recvfrom(bufsize)
            if self.impairment.loss_rate and self.impairment.should_drop():
                continue
            return data, addr

    def close(self) -> None:
        try:
            self.flush()
        except OSError:
            log.debug("dropping held datagram on close", exc_info=True)
        self.sock.close()
