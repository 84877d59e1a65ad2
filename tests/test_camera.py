from __future__ import annotations

import pytest

cv2 = pytest.importorskip("cv2")
np = pytest.importorskip("numpy")

from framecast.camera import CameraFrameSource  # noqa: E402
from framecast.sources import is_jpeg  # noqa: E402


class FakeCapture:
    def __init__(self, frames):
        self.frames = list(frames)
        self.released = False

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


def test_encodes_jpeg():
    image = np.zeros((48, 64, 3), dtype=np.uint8)
    image[:, 32:] = 255
    src = CameraFrameSource(FakeCapture([image]), quality=70)
    blob = src.next_blob()
    assert blob is not None and is_jpeg(blob)
    decoded = cv2.imdecode(np.frombuffer(blob, dtype=np.uint8), cv2.IMREAD_COLOR)
    assert decoded.shape == (48, 64, 3)


def test_failed_or_empty_capture_yields_nothing():
    empty = np.zeros((0, 0, 3), dtype=np.uint8)
    cap = FakeCapture([empty])
    src = CameraFrameSource(cap)
    assert src.next_blob() is None
    assert src.next_blob() is None
    src.close()
    assert cap.released
