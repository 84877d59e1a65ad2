from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from .constants import (
    DEFAULT_INTERVAL_MS,
    DEFAULT_MAX_PAYLOAD,
    DEFAULT_TIMEOUT_MS,
    MAX_FRAME_ID,
    REGISTER_SIGNAL,
)
from .errors import RegistryUnavailable, SendFailure
from .fragmenter import Fragments, fragment
from .net import Impairment, UdpEndpoint
from .registry import Address, ClientRegistry, address_key
from .sources import FrameSource

log = logging.getLogger(__name__)


class FrameCounter:
    """Process-wide frame id source; ids start at 1 and wrap at 2**32."""

    def __init__(self, start: int = 0):
        self._lock = threading.Lock()
        self._value = start & MAX_FRAME_ID

    @property
    def value(self) -> int:
        return self._value

    def next(self) -> int:
        with self._lock:
            self._value = (self._value + 1) & MAX_FRAME_ID
            return self._value


@dataclass(slots=True)
class DistributionStats:
    frames_sent: int = 0
    packets_sent: int = 0
    skipped: int = 0
    failed: int = 0
    send_failures: int = 0


@dataclass(slots=True)
class Distributor:
    udp: UdpEndpoint
    registry: ClientRegistry
    source: FrameSource
    max_payload: int = DEFAULT_MAX_PAYLOAD
    interval_ms: int = DEFAULT_INTERVAL_MS
    counter: FrameCounter = field(default_factory=FrameCounter)
    stats: DistributionStats = field(default_factory=DistributionStats)

    def send_frame(self, fragments: Fragments, addr: Address) -> None:
        try:
            for packet in fragments:
                self.udp.sendto(packet.to_bytes(), addr)
                self.stats.packets_sent += 1
            self.udp.flush()
        except OSError as e:
            raise SendFailure(addr, e) from e

    def run_cycle(self) -> int | None:
        """Distribute one frame; return its id, or None if the cycle was skipped."""
        try:
            blob = self.source.next_blob()
        except Exception:
            log.warning("frame capture failed, skipping cycle", exc_info=True)
            self.stats.skipped += 1
            return None
        if not blob:
            log.debug("no frame available, skipping cycle")
            self.stats.skipped += 1
            return None

        frame_id = self.counter.next()
        try:
            fragments = fragment(blob, frame_id, self.max_payload)
        except ValueError as e:
            log.warning("frame %d not sent: %s", frame_id, e)
            self.stats.failed += 1
            return None

        try:
            clients = self.registry.snapshot()
        except RegistryUnavailable as e:
            log.warning("frame %d not sent: %s", frame_id, e)
            self.stats.failed += 1
            return None

        for addr in clients:
            try:
                self.send_frame(fragments, addr)
            except SendFailure as e:
                log.warning("%s", e)
                self.stats.send_failures += 1

        self.stats.frames_sent += 1
        log.debug(
            "frame %d: %d bytes in %d fragments to %d clients",
            frame_id,
            len(blob),
            len(fragments),
            len(clients),
        )
        return frame_id

    def run(self, stop: threading.Event | None = None) -> DistributionStats:
        stop = stop or threading.Event()
        while not stop.is_set():
            self.run_cycle()
            stop.wait(self.interval_ms / 1000.0)
        return self.stats


@dataclass(slots=True)
class RegistrationListener:
    udp: UdpEndpoint
    registry: ClientRegistry

    def handle(self, data: bytes, addr: Address) -> bool:
        if data != REGISTER_SIGNAL:
            log.debug("ignoring %d byte datagram from %s", len(data), address_key(addr))
            return False
        try:
            self.registry.register(addr)
        except RegistryUnavailable as e:
            log.warning("registration from %s dropped: %s", address_key(addr), e)
            return False
        return True

    def run(self, stop: threading.Event | None = None) -> None:
        stop = stop or threading.Event()
        while not stop.is_set():
            try:
                data, addr = self.udp.recvfrom()
            except TimeoutError:
                continue
            except (ConnectionResetError, ConnectionRefusedError):
                # ICMP port unreachable from a receiver that went away
                continue
            except OSError:
                if not stop.is_set():
                    log.error("registration listener stopped", exc_info=True)
                return
            self.handle(data, addr)


class StreamServer:
    """One socket shared by the registration listener and the distributor."""

    def __init__(
        self,
        udp: UdpEndpoint,
        source: FrameSource,
        *,
        registry: ClientRegistry | None = None,
        max_payload: int = DEFAULT_MAX_PAYLOAD,
        interval_ms: int = DEFAULT_INTERVAL_MS,
    ):
        self.udp = udp
        self.registry = registry if registry is not None else ClientRegistry()
        self.listener = RegistrationListener(self.udp, self.registry)
        self.distributor = Distributor(
            self.udp,
            self.registry,
            source,
            max_payload=max_payload,
            interval_ms=interval_ms,
        )
        self.stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def bind(
        cls,
        host: str,
        port: int,
        source: FrameSource,
        *,
        impairment: Impairment | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        **kwargs,
    ) -> "StreamServer":
        udp = UdpEndpoint.listening(host, port, timeout_ms=timeout_ms, impairment=impairment)
        return cls(udp, source, **kwargs)

    @property
    def address(self) -> Address:
        return self.udp.address

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self.listener.run,
            args=(self.stop_event,),
            name="framecast-registration",
            daemon=True,
        )
        self._thread.start()
        log.info("server started on %s", address_key(self.address))

    def serve_forever(self) -> DistributionStats:
        if self._thread is None:
            self.start()
        return self.distributor.run(self.stop_event)

    def stop(self) -> None:
        self.stop_event.set()

    def close(self) -> None:
        self.stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        self.udp.close()
