from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .constants import DEFAULT_MAX_PAYLOAD, HEADER_SIZE, MAX_DATAGRAM, MAX_FRAGMENTS, MAX_FRAME_ID
from .errors import FrameTooLarge
from .packet import Packet


def fragment_count(size: int, max_payload: int) -> int:
    return (size + max_payload - 1) // max_payload


@dataclass(frozen=True, slots=True)
class Fragments:
    """The packets of one frame.

    Iterating slices the blob on demand, so the same object can be walked once
    per destination without holding every packet in memory.
    """

    blob: bytes
    frame_id: int
    max_payload: int
    total: int

    def __len__(self) -> int:
        return self.total

    def __iter__(self) -> Iterator[Packet]:
        for seq in range(self.total):
            start = seq * self.max_payload
            yield Packet.build(
                self.frame_id,
                seq,
                self.total,
                self.blob[start : start + self.max_payload],
            )


def fragment(blob: bytes, frame_id: int, max_payload: int = DEFAULT_MAX_PAYLOAD) -> Fragments:
    if max_payload <= 0:
        raise ValueError(f"max_payload must be positive, got {max_payload}")
    if max_payload > MAX_DATAGRAM - HEADER_SIZE:
        raise ValueError(f"max_payload {max_payload} does not fit in one datagram")
    if not 0 <= frame_id <= MAX_FRAME_ID:
        raise ValueError(f"frame_id out of range: {frame_id}")
    if not blob:
        raise ValueError("cannot fragment an empty frame")

    total = fragment_count(len(blob), max_payload)
    if total > MAX_FRAGMENTS:
        raise FrameTooLarge(
            f"{len(blob)} bytes needs {total} fragments of {max_payload}; limit is {MAX_FRAGMENTS}"
        )
    return Fragments(blob=bytes(blob), frame_id=frame_id, max_payload=max_payload, total=total)
