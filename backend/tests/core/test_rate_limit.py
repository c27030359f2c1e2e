"""Tests for the sliding-window rate limiter (pure store, injected clock)."""

from sage.core.rate_limit import (
    MIN_RETRY_AFTER_MS, RateLimitConfig, RateLimitStore, get_client_key,
)


class _Clock:
    def __init__(self, now=1_000_000):
        self.now = now

    def __call__(self):
        return self.now


CONFIG = RateLimitConfig(window_ms=60_000, max_requests=3)


def test_burst_allows_exactly_max_requests():
    store = RateLimitStore(clock=_Clock())
    decisions = [store.check_rate_limit("ip:1", "chat", CONFIG) for _ in range(4)]
    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]


def test_denied_retry_after_counts_down_to_oldest_expiry():
    clock = _Clock()
    store = RateLimitStore(clock=clock)
    for _ in range(3):
        store.check_rate_limit("ip:1", "chat", CONFIG)
    clock.now += 20_000
    denied = store.check_rate_limit("ip:1", "chat", CONFIG)
    assert not denied.allowed
    assert denied.retry_after_ms == 40_000


def test_retry_after_never_below_minimum():
    clock = _Clock()
    store = RateLimitStore(clock=clock)
    for _ in range(3):
        store.check_rate_limit("ip:1", "chat", CONFIG)
    clock.now += 59_900
    denied = store.check_rate_limit("ip:1", "chat", CONFIG)
    assert denied.retry_after_ms == MIN_RETRY_AFTER_MS


def test_window_expiry_restores_full_budget():
    clock = _Clock()
    store = RateLimitStore(clock=clock)
    for _ in range(4):
        store.check_rate_limit("ip:1", "chat", CONFIG)
    clock.now += 60_000
    decision = store.check_rate_limit("ip:1", "chat", CONFIG)
    assert decision.allowed
    assert decision.remaining == CONFIG.max_requests - 1


def test_denied_requests_are_not_recorded():
    clock = _Clock()
    store = RateLimitStore(clock=clock)
    for _ in range(3):
        store.check_rate_limit("ip:1", "chat", CONFIG)
    clock.now += 30_000
    for _ in range(5):
        store.check_rate_limit("ip:1", "chat", CONFIG)
    clock.now += 30_000
    assert store.check_rate_limit("ip:1", "chat", CONFIG).allowed


def test_keys_and_tiers_are_independent():
    store = RateLimitStore(clock=_Clock())
    for _ in range(3):
        store.check_rate_limit("ip:1", "chat", CONFIG)
    assert not store.check_rate_limit("ip:1", "chat", CONFIG).allowed
    assert store.check_rate_limit("ip:2", "chat", CONFIG).remaining == 2
    assert store.check_rate_limit("ip:1", "general", CONFIG).remaining == 2


def test_compact_drops_only_idle_keys():
    clock = _Clock()
    store = RateLimitStore(clock=clock)
    store.check_rate_limit("ip:old", "chat", CONFIG)
    clock.now += 50_000
    store.check_rate_limit("ip:new", "chat", CONFIG)
    clock.now += 20_000

    assert store.compact(60_000) == 1
    assert len(store) == 1
    assert store.check_rate_limit("ip:new", "chat", CONFIG).remaining == 1


def test_reset_clears_everything():
    store = RateLimitStore(clock=_Clock())
    store.check_rate_limit("ip:1", "chat", CONFIG)
    store.reset()
    assert len(store) == 0


def test_client_key_prefers_user_then_forwarded_then_peer():
    assert get_client_key("u1", "1.1.1.1", "2.2.2.2") == "user:u1"
    assert get_client_key(None, " 1.1.1.1 , 3.3.3.3", "2.2.2.2") == "ip:1.1.1.1"
    assert get_client_key(None, None, "2.2.2.2") == "ip:2.2.2.2"
    assert get_client_key(None, "", None) == "ip:unknown"
