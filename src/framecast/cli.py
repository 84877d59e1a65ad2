from __future__ import annotations

import argparse
import json
import logging
import threading
from dataclasses import asdict

from .bench import run_benchmark
from .constants import DEFAULT_INTERVAL_MS, DEFAULT_MAX_PAYLOAD, DEFAULT_PORT, DEFAULT_TIMEOUT_MS
from .net import Impairment
from .receiver import FrameReceiver
from .server import StreamServer
from .sources import DirectoryFrameSink, DirectoryFrameSource, FrameSource

log = logging.getLogger("framecast")


def _emit(payload: dict, as_json: bool) -> None:
    print(json.dumps(payload, indent=2) if as_json else payload)


def _open_source(args: argparse.Namespace) -> FrameSource:
    if args.frames_dir:
        return DirectoryFrameSource(args.frames_dir, pattern=args.pattern)
    from .camera import CameraFrameSource

    return CameraFrameSource.open(args.camera, quality=args.quality)


def cmd_serve(args: argparse.Namespace) -> int:
    impair = Impairment(args.loss_rate, args.delay_ms)
    source = _open_source(args)
    server = StreamServer.bind(
        args.listen_host,
        args.listen_port,
        source,
        impairment=impair,
        timeout_ms=args.timeout_ms,
        max_payload=args.max_payload,
        interval_ms=args.interval_ms,
    )
    try:
        stats = server.serve_forever()
    except KeyboardInterrupt:
        stats = server.distributor.stats
    finally:
        server.close()
        close = getattr(source, "close", None)
        if close is not None:
            close()

    _emit({"role": "server", "clients": len(server.registry), **asdict(stats)}, args.json)
    return 0


def cmd_recv(args: argparse.Namespace) -> int:
    sink = DirectoryFrameSink(args.out_dir)
    receiver = FrameReceiver.connect(
        (args.server_host, args.server_port),
        sink.on_frame,
        timeout_ms=args.timeout_ms,
        impairment=Impairment(args.loss_rate, args.delay_ms),
        require_jpeg=args.require_jpeg,
    )
    receiver.register()
    log.info("registered with %s:%d", args.server_host, args.server_port)

    stop = threading.Event()
    try:
        metrics = receiver.run(stop, max_frames=args.max_frames)
    except KeyboardInterrupt:
        metrics = receiver.metrics
    finally:
        receiver.close()

    payload = {
        "role": "receiver",
        "frames": metrics.frames,
        "bytes": metrics.bytes_received,
        "datagrams": metrics.datagrams,
        "malformed": metrics.malformed,
        "checksum_failures": receiver.assembler.stats.checksum_failures,
        "abandoned": receiver.assembler.stats.frames_abandoned,
        "seconds": metrics.duration_s,
        "fps": metrics.fps,
    }
    _emit(payload, args.json)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        frames=args.frames,
        size_bytes=args.size_bytes,
        receivers=args.receivers,
        loss_rate=args.loss_rate,
        delay_ms=args.delay_ms,
        duplicate_rate=args.duplicate_rate,
        reorder_rate=args.reorder_rate,
        corrupt_rate=args.corrupt_rate,
        max_payload=args.max_payload,
        seed=args.seed,
    )
    _emit({"role": "bench", **asdict(r)}, args.json)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="framecast", description="Fragmented frame streaming over UDP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS)
        x.add_argument("--loss-rate", type=float, default=0.0)
        x.add_argument("--delay-ms", type=int, default=0)
        x.add_argument("--json", action="store_true")

    serve = sub.add_parser("serve", help="stream frames to every registered receiver")
    add_common(serve)
    serve.add_argument("--listen-host", default="0.0.0.0")
    serve.add_argument("--listen-port", type=int, default=DEFAULT_PORT)
    serve.add_argument("--max-payload", type=int, default=DEFAULT_MAX_PAYLOAD)
    serve.add_argument("--interval-ms", type=int, default=DEFAULT_INTERVAL_MS)
    src = serve.add_mutually_exclusive_group()
    src.add_argument("--frames-dir", help="replay the files of this directory")
    src.add_argument("--camera", type=int, default=0, help="cv2.VideoCapture index")
    serve.add_argument("--pattern", default="*", help="glob for --frames-dir")
    serve.add_argument("--quality", type=int, default=80, help="JPEG quality for --camera")
    serve.set_defaults(func=cmd_serve)

    recv = sub.add_parser("recv", help="register with a server and save reassembled frames")
    add_common(recv)
    recv.add_argument("--server-host", default="localhost")
    recv.add_argument("--server-port", type=int, default=DEFAULT_PORT)
    recv.add_argument("--out-dir", required=True)
    recv.add_argument("--max-frames", type=int, default=None)
    recv.add_argument("--require-jpeg", action="store_true")
    recv.set_defaults(func=cmd_recv)

    bench = sub.add_parser("bench", help="loopback run with simulated impairment")
    add_common(bench)
    bench.add_argument("--frames", type=int, default=100)
    bench.add_argument("--size-bytes", type=int, default=50_000)
    bench.add_argument("--receivers", type=int, default=2)
    bench.add_argument("--duplicate-rate", type=float, default=0.0)
    bench.add_argument("--reorder-rate", type=float, default=0.0)
    bench.add_argument("--corrupt-rate", type=float, default=0.0)
    bench.add_argument("--max-payload", type=int, default=DEFAULT_MAX_PAYLOAD)
    bench.add_argument("--seed", type=int, default=None)
    bench.set_defaults(func=cmd_bench)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
