from __future__ import annotations

from typing import Tuple


class FramecastError(Exception):
    """Base class for every recoverable transport error."""


class MalformedHeader(FramecastError, ValueError):
    pass


class ChecksumMismatch(FramecastError, ValueError):
    def __init__(self, frame_id: int, seq: int, expected: int, actual: int):
        super().__init__(
            f"checksum mismatch for fragment {seq} of frame {frame_id}: "
            f"header={expected:#010x} payload={actual:#010x}"
        )
        self.frame_id = frame_id
        self.seq = seq


class IncompleteFrame(FramecastError, ValueError):
    def __init__(self, frame_id: int, missing: list[int]):
        super().__init__(f"frame {frame_id} is missing fragments {missing}")
        self.frame_id = frame_id
        self.missing = missing


class FrameTooLarge(FramecastError, ValueError):
    pass


class SendFailure(FramecastError):
    def __init__(self, addr: Tuple[str, int], cause: OSError):
        super().__init__(f"send to {addr[0]}:{addr[1]} failed: {cause}")
        self.addr = addr
        self.cause = cause


class RegistryUnavailable(FramecastError):
    pass
