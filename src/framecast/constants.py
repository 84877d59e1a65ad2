from __future__ import annotations

HEADER_FORMAT = "!IHHHI"  # frame_id, seq, total, payload_size, crc32
HEADER_SIZE = 14

REGISTER_SIGNAL = b"register"

MAX_DATAGRAM = 65507
MAX_FRAGMENTS = 0xFFFF
MAX_FRAME_ID = 0xFFFFFFFF

DEFAULT_MAX_PAYLOAD = 1024
DEFAULT_PORT = 8000
DEFAULT_INTERVAL_MS = 33
DEFAULT_TIMEOUT_MS = 250
DEFAULT_LOCK_TIMEOUT_S = 1.0
