from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import Iterator, Protocol

log = logging.getLogger(__name__)

JPEG_SOI = b"\xff\xd8"


class FrameSource(Protocol):
    def next_blob(self) -> bytes | None:
        """Return the next frame, or None/b"" when nothing is available."""
        ...


class FrameSink(Protocol):
    def on_frame(self, frame: bytes) -> None: ...


def is_jpeg(blob: bytes) -> bool:
    return blob[:2] == JPEG_SOI


class DirectoryFrameSource:
    """Replays the files of a directory in name order, forever."""

    def __init__(self, directory: str | Path, pattern: str = "*"):
        self.directory = Path(directory)
        paths = sorted(p for p in self.directory.glob(pattern) if p.is_file())
        if not paths:
            raise FileNotFoundError(f"no frames matching {pattern!r} in {self.directory}")
        self.paths = paths
        self._cycle: Iterator[Path] = itertools.cycle(paths)

    def next_blob(self) -> bytes | None:
        path = next(self._cycle)
        try:
            return path.read_bytes()
        except OSError as e:
            log.warning("could not read frame %s: %s", path, e)
            return None


class DirectoryFrameSink:
    def __init__(self, directory: str | Path, suffix: str = ".jpg"):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.suffix = suffix
        self.count = 0

    def on_frame(self, frame: bytes) -> None:
        path = self.directory / f"frame-{self.count:06d}{self.suffix}"
        path.write_bytes(frame)
        self.count += 1
        log.debug("wrote %s (%d bytes)", path, len(frame))
