from __future__ import annotations

import logging
from typing import Any

import cv2

log = logging.getLogger(__name__)


class CameraFrameSource:
    """Grabs webcam frames and JPEG-encodes them. Needs the ``camera`` extra."""

    def __init__(self, capture: Any, quality: int = 80):
        self.capture = capture
        self.params = [cv2.IMWRITE_JPEG_QUALITY, quality]

    @classmethod
    def open(cls, index: int = 0, quality: int = 80) -> "CameraFrameSource":
        capture = cv2.VideoCapture(index)
        if not capture.isOpened():
            raise OSError(f"could not open camera {index}")
        return cls(capture, quality=quality)

    def next_blob(self) -> bytes | None:
        ok, image = self.capture.read()
        if not ok or image is None or image.size == 0:
            log.warning("captured frame is empty")
            return None

        ok, buf = cv2.imencode(".jpg", image, self.params)
        if not ok:
            log.warning("JPEG encoding failed")
            return None
        log.debug("captured %dx%d, encoded %d bytes", image.shape[1], image.shape[0], buf.size)
        return buf.tobytes()

    def close(self) -> None:
        self.capture.release()
