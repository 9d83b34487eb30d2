from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock

from apisign.errors import ClockError


def system_now_ms() -> int:
    return time.time_ns() // 1_000_000


def _checked_now_ms(now_ms_fn: Callable[[], int]) -> int:
    now_ms = int(now_ms_fn())
    if now_ms < 0:
        raise ClockError(f"system clock reports {now_ms} ms, which is before the Unix epoch")
    return now_ms


def next_nonce(now_ms_fn: Callable[[], int] = system_now_ms) -> str:
    """Return the current time as a millisecond nonce string."""
    return str(_checked_now_ms(now_ms_fn))


@dataclass
class NonceSource:
    """Millisecond nonces that strictly increase across calls on one instance.

    When the clock has not advanced (or stepped backwards) since the previous
    call, the previous value plus one is returned instead.
    """

    now_ms_fn: Callable[[], int] = field(default=system_now_ms)
    _last_nonce_ms: int | None = field(default=None, init=False, repr=False)
    _lock: Lock = field(default_factory=Lock, init=False, repr=False, compare=False)

    def next_nonce(self) -> str:
        now_ms = _checked_now_ms(self.now_ms_fn)
        with self._lock:
            if self._last_nonce_ms is not None:
                now_ms = max(now_ms, self._last_nonce_ms + 1)
            self._last_nonce_ms = now_ms
        return str(now_ms)
