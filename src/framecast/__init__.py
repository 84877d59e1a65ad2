"""Framecast: best-effort fragmented frame streaming over UDP.

One producer cuts large opaque frames (camera images, typically JPEG) into
bounded datagrams and fans them out to every registered receiver. Each
receiver reassembles frames independently and tolerates loss, reordering,
duplication and corruption by dropping what it cannot complete.

Layout:
- packet / fragmenter: wire format and frame slicing
- assembler: per-receiver reassembly state machine
- registry / server: receiver bookkeeping and the distribution loop
- receiver: the client side receive loop
"""

__all__ = []
