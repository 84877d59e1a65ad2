from __future__ import annotations

import random
import threading

import pytest

from framecast.assembler import AssemblerState, FrameAssembler
from framecast.errors import ChecksumMismatch, IncompleteFrame
from framecast.fragmenter import fragment
from framecast.packet import Packet


def corrupt(p: Packet) -> Packet:
    payload = bytearray(p.payload)
    payload[0] ^= 0x01
    return Packet(header=p.header, payload=bytes(payload))


def feed(asm: FrameAssembler, packets) -> list[bytes]:
    out = []
    for p in packets:
        frame = asm.add_packet(p)
        if frame is not None:
            out.append(frame)
    return out


@pytest.mark.parametrize("size,max_payload", [(1, 1024), (2600, 1024), (10_000, 333), (4096, 1024)])
def test_roundtrip_any_order(size, max_payload):
    blob = random.Random(size).randbytes(size)
    packets = list(fragment(blob, frame_id=1, max_payload=max_payload))
    random.Random(max_payload).shuffle(packets)

    asm = FrameAssembler()
    assert feed(asm, packets) == [blob]
    assert asm.state is AssemblerState.IDLE
    assert asm.stats.frames_completed == 1


def test_out_of_order_completion():
    blob = b"AAAABBBBCCCCDD"
    packets = list(fragment(blob, frame_id=5, max_payload=4))
    assert len(packets) == 4

    asm = FrameAssembler()
    for i in (2, 0, 3):
        assert asm.add_packet(packets[i]) is None
    assert asm.state is AssemblerState.COLLECTING
    assert asm.add_packet(packets[1]) == blob


def test_duplicates_are_idempotent():
    blob = b"0123456789"
    p0, p1, p2 = fragment(blob, frame_id=1, max_payload=4)

    asm = FrameAssembler()
    assert asm.add_packet(p0) is None
    assert asm.add_packet(p0) is None
    assert asm.received_count == 1
    assert asm.stats.duplicates == 1
    assert asm.add_packet(p1) is None
    assert asm.add_packet(p2) == blob


def test_corrupt_fragment_is_dropped_until_replaced():
    blob = b"x" * 3000
    p0, p1, p2 = fragment(blob, frame_id=1, max_payload=1024)

    asm = FrameAssembler()
    asm.add_packet(p0)
    with pytest.raises(ChecksumMismatch) as exc:
        asm.add_packet(corrupt(p1))
    assert exc.value.seq == 1
    assert asm.received_count == 1
    assert asm.state is AssemblerState.COLLECTING
    assert asm.stats.checksum_failures == 1

    assert asm.add_packet(p2) is None
    assert asm.add_packet(p1) == blob


def test_new_frame_discards_partial_frame():
    old = list(fragment(b"a" * 30, frame_id=1, max_payload=10))
    new = list(fragment(b"b" * 20, frame_id=2, max_payload=10))

    asm = FrameAssembler()
    asm.add_packet(old[0])
    asm.add_packet(old[1])
    asm.add_packet(new[0])
    assert asm.frame_id == 2
    assert asm.received_count == 1
    assert asm.stats.frames_abandoned == 1

    # the rest of frame 1 restarts collection of frame 1 and can never complete it
    assert asm.add_packet(old[2]) is None
    assert asm.frame_id == 1
    assert asm.received_count == 1


def test_corrupt_fragment_of_new_frame_still_switches_frame():
    old = list(fragment(b"a" * 30, frame_id=1, max_payload=10))
    new = list(fragment(b"b" * 20, frame_id=2, max_payload=10))

    asm = FrameAssembler()
    asm.add_packet(old[0])
    with pytest.raises(ChecksumMismatch):
        asm.add_packet(corrupt(new[0]))
    assert asm.frame_id == 2
    assert asm.received_count == 0


def test_completion_returns_to_idle():
    blob = b"hello world"
    packets = list(fragment(blob, frame_id=4, max_payload=5))

    asm = FrameAssembler()
    assert feed(asm, packets) == [blob]
    assert asm.state is AssemblerState.IDLE
    assert asm.frame_id is None

    # a stray repeat of the same frame id starts from scratch
    assert asm.add_packet(packets[0]) is None
    assert asm.received_count == 1


def test_gap_at_completion_raises_and_resets():
    asm = FrameAssembler()
    asm.add_packet(Packet.build(frame_id=3, seq=0, total=2, payload=b"a"))
    with pytest.raises(IncompleteFrame) as exc:
        asm.add_packet(Packet.build(frame_id=3, seq=5, total=2, payload=b"b"))
    assert exc.value.missing == [1]
    assert asm.state is AssemblerState.IDLE
    assert asm.stats.incomplete == 1


def test_consecutive_frames():
    asm = FrameAssembler()
    frames = [bytes([i]) * 2500 for i in range(3)]
    out = []
    for fid, blob in enumerate(frames, start=1):
        out += feed(asm, fragment(blob, frame_id=fid))
    assert out == frames
    assert asm.stats.frames_abandoned == 0


def test_state_read_waits_for_the_lock():
    asm = FrameAssembler()
    seen: list[AssemblerState] = []
    asm._lock.acquire()
    t = threading.Thread(target=lambda: seen.append(asm.state))
    try:
        t.start()
        t.join(timeout=0.1)
        assert t.is_alive()
        assert seen == []
    finally:
        asm._lock.release()
    t.join(timeout=2.0)
    assert seen == [AssemblerState.IDLE]
