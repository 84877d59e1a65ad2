from __future__ import annotations

import os
import random
import threading
import time
from dataclasses import dataclass

from .constants import DEFAULT_MAX_PAYLOAD
from .net import Impairment
from .receiver import FrameReceiver
from .server import StreamServer


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    frames_sent: int
    frames_received: list[int]
    delivery_ratio: float
    checksum_failures: int
    abandoned: int
    malformed: int
    duration_s: float


class _SyntheticSource:
    """Random frames of a fixed size; every one is kept for verification."""

    def __init__(self, size_bytes: int, frames: int):
        self.remaining = frames
        self.size_bytes = size_bytes
        self.sent: set[bytes] = set()

    def next_blob(self) -> bytes | None:
        if self.remaining <= 0:
            return None
        self.remaining -= 1
        blob = os.urandom(self.size_bytes)
        self.sent.add(blob)
        return blob


def run_benchmark(
    *,
    frames: int = 100,
    size_bytes: int = 50_000,
    receivers: int = 2,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    duplicate_rate: float = 0.0,
    reorder_rate: float = 0.0,
    corrupt_rate: float = 0.0,
    max_payload: int = DEFAULT_MAX_PAYLOAD,
    interval_ms: int = 5,
    seed: int | None = None,
) -> BenchmarkResult:
    impair = Impairment(
        loss_rate=loss_rate,
        delay_ms=delay_ms,
        duplicate_rate=duplicate_rate,
        reorder_rate=reorder_rate,
        corrupt_rate=corrupt_rate,
        rng=random.Random(seed),
    )
    source = _SyntheticSource(size_bytes, frames)
    server = StreamServer.bind(
        "127.0.0.1",
        0,
        source,
        impairment=impair,
        max_payload=max_payload,
        interval_ms=interval_ms,
    )
    server.start()
    host, port = server.address

    corrupted: list[int] = [0]

    def check(frame: bytes) -> None:
        if frame not in source.sent:
            corrupted[0] += 1

    clients = [FrameReceiver.connect((host, port), check) for _ in range(receivers)]
    stop = threading.Event()
    for c in clients:
        c.register()
    threads = [threading.Thread(target=c.run, args=(stop,), daemon=True) for c in clients]
    for t in threads:
        t.start()

    try:
        deadline = time.monotonic() + 5.0
        while len(server.registry) < receivers:
            if time.monotonic() > deadline:
                raise TimeoutError(f"only {len(server.registry)}/{receivers} receivers registered")
            for c in clients:
                c.register()
            time.sleep(0.05)

        start = time.monotonic()
        while source.remaining > 0:
            server.distributor.run_cycle()
            time.sleep(interval_ms / 1000.0)
        duration_s = time.monotonic() - start

        # let the last datagrams land
        time.sleep(0.2)
    finally:
        stop.set()
        for t in threads:
            t.join(timeout=2.0)
        for c in clients:
            c.close()
        server.close()

    assert corrupted[0] == 0, f"{corrupted[0]} frames were delivered with wrong contents"

    received = [c.metrics.frames for c in clients]
    sent = server.distributor.stats.frames_sent
    return BenchmarkResult(
        frames_sent=sent,
        frames_received=received,
        delivery_ratio=sum(received) / (sent * receivers) if sent else 0.0,
        checksum_failures=sum(c.assembler.stats.checksum_failures for c in clients),
        abandoned=sum(c.assembler.stats.frames_abandoned for c in clients),
        malformed=sum(c.metrics.malformed for c in clients),
        duration_s=duration_s,
    )
