"""Primary keys: time-ordered UUIDv7 strings."""

from __future__ import annotations

import secrets
import threading
import time
import uuid

_SEQ_MASK = 0xFFF

_lock = threading.Lock()
_last_ms = 0
_seq = 0


def _next_tick() -> tuple:
    global _last_ms, _seq
    with _lock:
        now_ms = time.time_ns() // 1_000_000
        if now_ms > _last_ms:
            _last_ms = now_ms
            # leave room above the starting point for ids in the same ms
            _seq = secrets.randbits(10)
        else:
            _seq = (_seq + 1) & _SEQ_MASK
            if _seq == 0:
                _last_ms += 1
        return _last_ms, _seq


def generate_uuid7() -> str:
    """
    48-bit millisecond timestamp, version 7, 12-bit sequence in ``rand_a``,
    62 random bits.

    Ids made in the same process are strictly increasing, so rows written in
    one millisecond (ledger entries of a single distribution, say) still
    sort in insertion order when ``created_at`` ties.
    """
    ms, seq = _next_tick()
    value = (ms & 0xFFFFFFFFFFFF) << 80
    value |= 0x7 << 76
    value |= seq << 64
    value |= 0b10 << 62
    value |= secrets.randbits(62)
    return str(uuid.UUID(int=value))
