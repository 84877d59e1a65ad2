from __future__ import annotations

from framecast.bench import run_benchmark


def test_clean_loopback_delivers_everything():
    r = run_benchmark(frames=5, size_bytes=5000, receivers=2, interval_ms=5, seed=1)
    assert r.frames_sent == 5
    assert r.frames_received == [5, 5]
    assert r.delivery_ratio == 1.0
    assert r.checksum_failures == 0


def test_corruption_is_caught_not_delivered():
    # run_benchmark asserts that no delivered frame differs from what was sent
    r = run_benchmark(frames=10, size_bytes=3000, receivers=1, corrupt_rate=0.2, seed=7)
    assert r.frames_sent == 10
    assert r.checksum_failures > 0
    assert r.frames_received[0] < 10
