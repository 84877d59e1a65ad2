from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Tuple

from .assembler import FrameAssembler
from .constants import DEFAULT_TIMEOUT_MS, REGISTER_SIGNAL
from .errors import ChecksumMismatch, IncompleteFrame, MalformedHeader
from .net import Impairment, UdpEndpoint
from .packet import Packet
from .sources import is_jpeg

log = logging.getLogger(__name__)


@dataclass(slots=True)
class Metrics:
    datagrams: int = 0
    malformed: int = 0
    frames: int = 0
    rejected: int = 0
    foreign: int = 0
    sink_errors: int = 0
    bytes_received: int = 0
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    @property
    def duration_s(self) -> float:
        end = self.end_ts if self.end_ts is not None else time.monotonic()
        return max(0.0, end - self.start_ts)

    @property
    def fps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return self.frames / self.duration_s


@dataclass(slots=True)
class FrameReceiver:
    """Registers with a server and turns its datagrams back into frames."""

    udp: UdpEndpoint
    server: Tuple[str, int]
    on_frame: Callable[[bytes], None]
    require_jpeg: bool = False
    assembler: FrameAssembler = field(default_factory=FrameAssembler)
    metrics: Metrics = field(default_factory=Metrics)

    @classmethod
    def connect(
        cls,
        server: Tuple[str, int],
        on_frame: Callable[[bytes], None],
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        impairment: Impairment | None = None,
        require_jpeg: bool = False,
    ) -> "FrameReceiver":
        udp = UdpEndpoint.connected(server[0], server[1], timeout_ms=timeout_ms, impairment=impairment)
        return cls(udp, udp.peer or server, on_frame, require_jpeg=require_jpeg)

    def register(self) -> None:
        self.udp.sendto(REGISTER_SIGNAL, self.server)
        self.udp.flush()

    def handle_datagram(self, raw: bytes) -> bytes | None:
        self.metrics.datagrams += 1
        try:
            packet = Packet.from_bytes(raw)
        except MalformedHeader as e:
            self.metrics.malformed += 1
            log.warning("dropping datagram: %s", e)
            return None

        try:
            frame = self.assembler.add_packet(packet)
        except ChecksumMismatch as e:
            log.warning("%s", e)
            return None
        except IncompleteFrame as e:
            log.warning("%s", e)
            return None
        if frame is None:
            return None

        if self.require_jpeg and not is_jpeg(frame):
            self.metrics.rejected += 1
            log.warning("frame %d is not a JPEG image, dropped", packet.header.frame_id)
            return None

        self.metrics.frames += 1
        self.metrics.bytes_received += len(frame)
        log.debug("frame %d complete, %d bytes", packet.header.frame_id, len(frame))
        try:
            self.on_frame(frame)
        except Exception:
            self.metrics.sink_errors += 1
            log.warning("frame consumer failed on frame %d", packet.header.frame_id, exc_info=True)
            return None
        return frame

    def run(self, stop: threading.Event | None = None, max_frames: int | None = None) -> Metrics:
        stop = stop or threading.Event()
        while not stop.is_set():
            try:
                raw, addr = self.udp.recvfrom()
            except TimeoutError:
                continue
            except (ConnectionResetError, ConnectionRefusedError):
                log.debug("server port unreachable")
                continue
            except OSError:
                if not stop.is_set():
                    log.error("receive loop stopped", exc_info=True)
                break

            if tuple(addr[:2]) != tuple(self.server[:2]):
                self.metrics.foreign += 1
                log.warning("ignoring datagram from %s:%d, not the server", addr[0], addr[1])
                continue
            self.handle_datagram(raw)
            if max_frames is not None and self.metrics.frames >= max_frames:
                break

        self.metrics.end_ts = time.monotonic()
        return self.metrics

    def close(self) -> None:
        self.udp.close()
