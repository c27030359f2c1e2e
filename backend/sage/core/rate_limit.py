"""Sliding-Window Rate Limiter — per (tier, client) request admission.

Invariants:
    - Sliding window: timestamps with now - ts >= window_ms are discarded before counting
    - Denied iff count >= max_requests; denied checks are NOT recorded
    - Allowed checks record `now` in the same call (check + record is one step)
    - retry_after_ms on denial is never below 1000 (clients must not hot-loop)
    - Tiers are keyed separately: exhausting one never affects another

Design Decisions:
    - Explicitly constructed store (no module-level dict): app lifespan owns one,
      tests build their own
    - Clock injected as a callable returning milliseconds: deterministic tests
    - No locks: the event loop is single-threaded and check() never awaits, so
      filter + count + append cannot interleave with another check
"""

import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RateLimitConfig:
    window_ms: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_ms: int


MIN_RETRY_AFTER_MS = 1000


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class RateLimitStore:
    """In-memory timestamp store keyed by '<tier>:<client_key>'."""

    def __init__(self, clock: Callable[[], int] = _monotonic_ms):
        self._clock = clock
        self._entries: dict[str, list[int]] = {}

    def check_rate_limit(
        self, client_key: str, tier: str, config: RateLimitConfig,
    ) -> RateLimitDecision:
        """Admit or deny one request for client_key under tier."""
        store_key = f"{tier}:{client_key}"
        now = self._clock()
        timestamps = [
            ts for ts in self._entries.get(store_key, [])
            if now - ts < config.window_ms
        ]

        if len(timestamps) >= config.max_requests:
            self._entries[store_key] = timestamps
            retry_after = timestamps[0] + config.window_ms - now
            return RateLimitDecision(
                allowed=False,
                remaining=0,
                retry_after_ms=max(retry_after, MIN_RETRY_AFTER_MS),
            )

        timestamps.append(now)
        self._entries[store_key] = timestamps
        return RateLimitDecision(
            allowed=True,
            remaining=config.max_requests - len(timestamps),
            retry_after_ms=0,
        )

    def compact(self, window_ms: int) -> int:
        """Drop keys with no timestamps inside window_ms. Returns keys removed.

        Filtering is monotonic (only ever removes expired timestamps), so a
        compaction between two checks cannot change either check's outcome.
        """
        now = self._clock()
        removed = 0
        for key in list(self._entries):
            live = [ts for ts in self._entries[key] if now - ts < window_ms]
            if live:
                self._entries[key] = live
            else:
                del self._entries[key]
                removed += 1
        return removed

    def reset(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def get_client_key(
    user_id: str | None,
    forwarded_for: str | None,
    peer_host: str | None,
) -> str:
    """Derive a stable client identity: authenticated user, else network address."""
    if user_id:
        return f"user:{user_id}"
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return f"ip:{first}"
    return f"ip:{peer_host or 'unknown'}"
