from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass

from .errors import ChecksumMismatch, IncompleteFrame
from .packet import Packet, checksum

log = logging.getLogger(__name__)


class AssemblerState(enum.Enum):
    IDLE = "idle"
    COLLECTING = "collecting"


@dataclass(slots=True)
class AssemblerStats:
    frames_completed: int = 0
    frames_abandoned: int = 0
    checksum_failures: int = 0
    duplicates: int = 0
    incomplete: int = 0


class FrameAssembler:
    """Rebuilds frames from fragments, one frame in flight at a time.

    A fragment carrying a different frame id than the one being collected
    discards the partial frame and starts over with the newcomer. Nothing is
    reported for the abandoned frame.

    Transitions on add_packet():
      IDLE       --any fragment-->            COLLECTING(frame_id, total)
      COLLECTING --other frame_id-->          COLLECTING(new frame_id, new total)
      COLLECTING --bad checksum-->            unchanged, ChecksumMismatch raised
      COLLECTING --last missing fragment-->   IDLE, frame returned
      COLLECTING --count full but gap-->      IDLE, IncompleteFrame raised
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.stats = AssemblerStats()
        self._state = AssemblerState.IDLE
        self._frame_id = 0
        self._total = 0
        self._parts: dict[int, bytes] = {}
        self._received: set[int] = set()

    @property
    def state(self) -> AssemblerState:
        with self._lock:
            return self._state

    @property
    def frame_id(self) -> int | None:
        with self._lock:
            return self._frame_id if self._state is AssemblerState.COLLECTING else None

    @property
    def received_count(self) -> int:
        with self._lock:
            return len(self._received)

    def reset(self) -> None:
        with self._lock:
            self._reset()

    def _reset(self) -> None:
        self._state = AssemblerState.IDLE
        self._frame_id = 0
        self._total = 0
        self._parts = {}
        self._received = set()

    def _begin(self, frame_id: int, total: int) -> None:
        if self._state is AssemblerState.COLLECTING and self._received:
            self.stats.frames_abandoned += 1
            log.debug(
                "abandoning frame %d with %d/%d fragments",
                self._frame_id,
                len(self._received),
                self._total,
            )
        self._reset()
        self._state = AssemblerState.COLLECTING
        self._frame_id = frame_id
        self._total = total
        log.debug("new frame started: id=%d total=%d", frame_id, total)

    def add_packet(self, packet: Packet) -> bytes | None:
        """Feed one fragment; return the frame if it is now complete.

        Raises ChecksumMismatch for a corrupt fragment (state otherwise untouched
        apart from the frame switch) and IncompleteFrame when the fragment count
        is reached with a hole in the sequence range.
        """
        header = packet.header
        with self._lock:
            if self._state is AssemblerState.IDLE or header.frame_id != self._frame_id:
                self._begin(header.frame_id, header.total)

            actual = checksum(packet.payload)
            if actual != header.checksum:
                self.stats.checksum_failures += 1
                raise ChecksumMismatch(header.frame_id, header.seq, header.checksum, actual)

            if header.seq in self._received:
                self.stats.duplicates += 1
            self._parts[header.seq] = packet.payload
            self._received.add(header.seq)

            if len(self._received) != self._total:
                return None
            return self._assemble()

    def _assemble(self) -> bytes:
        frame_id = self._frame_id
        missing = [seq for seq in range(self._total) if seq not in self._parts]
        if missing:
            # a later fragment can only grow the count past total, never fill the hole
            self.stats.incomplete += 1
            self._reset()
            raise IncompleteFrame(frame_id, missing)

        frame = b"".join(self._parts[seq] for seq in range(self._total))
        self.stats.frames_completed += 1
        self._reset()
        log.debug("frame %d assembled, %d bytes", frame_id, len(frame))
        return frame
