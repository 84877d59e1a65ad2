from __future__ import annotations

import pytest

from framecast.constants import MAX_FRAGMENTS
from framecast.errors import FrameTooLarge
from framecast.fragmenter import fragment, fragment_count
from framecast.packet import checksum


def test_2600_bytes_in_1024_byte_fragments():
    blob = bytes(range(256)) * 10 + bytes(40)
    assert len(blob) == 2600

    packets = list(fragment(blob, frame_id=7, max_payload=1024))
    assert [len(p.payload) for p in packets] == [1024, 1024, 552]
    assert [p.header.seq for p in packets] == [0, 1, 2]
    for p in packets:
        assert p.header.frame_id == 7
        assert p.header.total == 3
        assert p.header.payload_size == len(p.payload)
        assert p.header.checksum == checksum(p.payload)
    assert b"".join(p.payload for p in packets) == blob


def test_exact_multiple():
    frags = fragment(b"a" * 2048, frame_id=1, max_payload=1024)
    assert len(frags) == 2
    assert [len(p.payload) for p in frags] == [1024, 1024]


def test_single_short_fragment():
    (p,) = fragment(b"xyz", frame_id=3)
    assert p.header.total == 1
    assert p.payload == b"xyz"


def test_iteration_is_restartable():
    frags = fragment(b"0123456789", frame_id=2, max_payload=3)
    assert list(frags) == list(frags)
    assert len(list(frags)) == 4


def test_too_many_fragments():
    assert fragment_count(MAX_FRAGMENTS, 1) == MAX_FRAGMENTS
    fragment(b"\x00" * MAX_FRAGMENTS, frame_id=1, max_payload=1)
    with pytest.raises(FrameTooLarge):
        fragment(b"\x00" * (MAX_FRAGMENTS + 1), frame_id=1, max_payload=1)


@pytest.mark.parametrize("max_payload", [0, -1, 70_000])
def test_bad_max_payload(max_payload):
    with pytest.raises(ValueError):
        fragment(b"abc", frame_id=1, max_payload=max_payload)


def test_empty_blob_rejected():
    with pytest.raises(ValueError):
        fragment(b"", frame_id=1)
