from __future__ import annotations

import struct
import zlib
from dataclasses import dataclass

from .constants import HEADER_FORMAT, HEADER_SIZE
from .errors import MalformedHeader

_HEADER = struct.Struct(HEADER_FORMAT)
assert _HEADER.size == HEADER_SIZE


def checksum(payload: bytes) -> int:
    """CRC-32 (IEEE) of the payload bytes only."""
    return zlib.crc32(payload) & 0xFFFFFFFF


@dataclass(frozen=True, slots=True)
class PacketHeader:
    frame_id: int
    seq: int
    total: int
    payload_size: int
    checksum: int

    def to_bytes(self) -> bytes:
        try:
            return _HEADER.pack(
                self.frame_id,
                self.seq,
                self.total,
                self.payload_size,
                self.checksum,
            )
        except struct.error as e:
            raise ValueError(f"header field out of range: {e}") from e

    @staticmethod
    def from_bytes(raw: bytes) -> "PacketHeader":
        if len(raw) < HEADER_SIZE:
            raise MalformedHeader(f"need {HEADER_SIZE} header bytes, got {len(raw)}")
        frame_id, seq, total, payload_size, crc = _HEADER.unpack_from(raw)
        return PacketHeader(
            frame_id=frame_id,
            seq=seq,
            total=total,
            payload_size=payload_size,
            checksum=crc,
        )


@dataclass(frozen=True, slots=True)
class Packet:
    header: PacketHeader
    payload: bytes

    @property
    def valid(self) -> bool:
        return checksum(self.payload) == self.header.checksum

    def to_bytes(self) -> bytes:
        return self.header.to_bytes() + self.payload

    @staticmethod
    def from_bytes(raw: bytes) -> "Packet":
        # the payload length is whatever followed the header, not payload_size
        if len(raw) < HEADER_SIZE + 1:
            raise MalformedHeader(f"datagram too small to be a fragment: {len(raw)} bytes")
        return Packet(header=PacketHeader.from_bytes(raw), payload=bytes(raw[HEADER_SIZE:]))

    @staticmethod
    def build(frame_id: int, seq: int, total: int, payload: bytes) -> "Packet":
        header = PacketHeader(
            frame_id=frame_id,
            seq=seq,
            total=total,
            payload_size=len(payload),
            checksum=checksum(payload),
        )
        return Packet(header=header, payload=payload)


def encode_header(header: PacketHeader) -> bytes:
    return header.to_bytes()


def decode_header(raw: bytes) -> PacketHeader:
    return PacketHeader.from_bytes(raw)


def parse_datagram(raw: bytes) -> Packet:
    return Packet.from_bytes(raw)
