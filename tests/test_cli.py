from __future__ import annotations

import json

from framecast.cli import main


def test_bench_command(capsys):
    rc = main(["--log-level", "WARNING", "bench", "--frames", "3", "--size-bytes", "2000", "--receivers", "1", "--json"])
    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["role"] == "bench"
    assert out["frames_sent"] == 3
    assert out["frames_received"] == [3]
