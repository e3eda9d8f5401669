"""Unit tests for the single-use proxy token registry.

WHY: The registry is the only shared state between the Slack handlers and
the public proxy. A token that resolves twice leaks a private file; a
token that never goes away leaks memory. These tests pin down both.

HOW: Tests are organized by class, one per TokenRegistry operation:
  - TestMint: identifier shape and uniqueness
  - TestResolveAndConsume: round-trip and at-most-once semantics
  - TestInvalidate: cleanup and idempotence
  - TestExpire: TTL sweep boundaries
  - TestThreadSafety: concurrent consumers of the same token

RULES:
- Each test creates its own TokenRegistry
- Time-dependent tests pass ``now`` explicitly instead of sleeping
"""

from __future__ import annotations

import re
import threading
import time

from cdn_relay.proxy.tokens import DEFAULT_TTL_SECONDS, TokenRegistry

_HEX_32 = re.compile(r"^[0-9a-f]{32}$")


# ---------------------------------------------------------------------------
# TestMint
# ---------------------------------------------------------------------------


class TestMint:
    """TokenRegistry.mint() stores a locator under a fresh token."""

    def test_token_is_32_hex_chars(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/a")
        assert _HEX_32.match(token)

    def test_minted_token_is_live(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/a")
        assert token in registry
        assert len(registry) == 1

    def test_tokens_are_unique(self):
        registry = TokenRegistry()
        tokens = {registry.mint("https://files.slack.com/{}".format(i)) for i in range(200)}
        assert len(tokens) == 200
        assert len(registry) == 200

    def test_same_locator_gets_distinct_tokens(self):
        registry = TokenRegistry()
        first = registry.mint("https://files.slack.com/same")
        second = registry.mint("https://files.slack.com/same")
        assert first != second

    def test_retries_on_live_collision(self, monkeypatch):
        registry = TokenRegistry()
        values = iter(["a" * 32, "a" * 32, "b" * 32])
        monkeypatch.setattr("cdn_relay.proxy.tokens.secrets.token_hex", lambda n: next(values))

        assert registry.mint("https://files.slack.com/1") == "a" * 32
        assert registry.mint("https://files.slack.com/2") == "b" * 32
        assert registry.resolve_and_consume("a" * 32) == "https://files.slack.com/1"


# ---------------------------------------------------------------------------
# TestResolveAndConsume
# ---------------------------------------------------------------------------


class TestResolveAndConsume:
    """resolve_and_consume() hands out each locator exactly once."""

    def test_round_trip_returns_locator(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/files-pri/T1-F1/report.pdf")
        assert registry.resolve_and_consume(token) == (
            "https://files.slack.com/files-pri/T1-F1/report.pdf"
        )

    def test_second_resolve_returns_none(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/a")
        registry.resolve_and_consume(token)
        assert registry.resolve_and_consume(token) is None

    def test_consumed_token_is_removed(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/a")
        registry.resolve_and_consume(token)
        assert token not in registry
        assert len(registry) == 0

    def test_unknown_token_returns_none(self):
        registry = TokenRegistry()
        assert registry.resolve_and_consume("doesnotexist") is None

    def test_other_tokens_unaffected(self):
        registry = TokenRegistry()
        a = registry.mint("https://files.slack.com/a")
        b = registry.mint("https://files.slack.com/b")
        registry.resolve_and_consume(a)
        assert registry.resolve_and_consume(b) == "https://files.slack.com/b"


# ---------------------------------------------------------------------------
# TestInvalidate
# ---------------------------------------------------------------------------


class TestInvalidate:
    """invalidate() drops live tokens and ignores everything else."""

    def test_removes_live_tokens(self):
        registry = TokenRegistry()
        tokens = [registry.mint("https://files.slack.com/{}".format(i)) for i in range(3)]
        assert registry.invalidate(tokens) == 3
        assert len(registry) == 0
        for token in tokens:
            assert registry.resolve_and_consume(token) is None

    def test_consumed_token_is_noop(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/a")
        registry.resolve_and_consume(token)
        assert registry.invalidate([token]) == 0

    def test_unknown_token_is_noop(self):
        registry = TokenRegistry()
        keep = registry.mint("https://files.slack.com/keep")
        assert registry.invalidate(["nope", "also-nope"]) == 0
        assert keep in registry

    def test_idempotent(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/a")
        registry.invalidate([token])
        registry.invalidate([token])
        assert len(registry) == 0

    def test_mixed_batch_counts_only_live(self):
        registry = TokenRegistry()
        consumed = registry.mint("https://files.slack.com/a")
        live = registry.mint("https://files.slack.com/b")
        registry.resolve_and_consume(consumed)
        assert registry.invalidate([consumed, live]) == 1

    def test_empty_batch(self):
        registry = TokenRegistry()
        assert registry.invalidate([]) == 0


# ---------------------------------------------------------------------------
# TestExpire
# ---------------------------------------------------------------------------


class TestExpire:
    """expire() drops tokens older than the TTL."""

    def test_default_ttl(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/a")
        assert registry.expire(now=time.time() + DEFAULT_TTL_SECONDS + 1) == 1
        assert token not in registry

    def test_keeps_fresh_tokens(self):
        registry = TokenRegistry(ttl_seconds=60)
        token = registry.mint("https://files.slack.com/a")
        assert registry.expire(now=time.time() + 30) == 0
        assert token in registry

    def test_only_old_tokens_removed(self, monkeypatch):
        registry = TokenRegistry(ttl_seconds=60)
        monkeypatch.setattr("cdn_relay.proxy.tokens.time.time", lambda: 1000.0)
        old = registry.mint("https://files.slack.com/old")
        monkeypatch.setattr("cdn_relay.proxy.tokens.time.time", lambda: 1050.0)
        new = registry.mint("https://files.slack.com/new")

        assert registry.expire(now=1070.0) == 1
        assert old not in registry
        assert new in registry

    def test_boundary_is_not_expired(self, monkeypatch):
        registry = TokenRegistry(ttl_seconds=60)
        monkeypatch.setattr("cdn_relay.proxy.tokens.time.time", lambda: 1000.0)
        token = registry.mint("https://files.slack.com/a")
        assert registry.expire(now=1060.0) == 0
        assert token in registry


# ---------------------------------------------------------------------------
# TestThreadSafety
# ---------------------------------------------------------------------------


class TestThreadSafety:
    """Concurrent access never hands out a locator twice."""

    def test_only_one_concurrent_consumer_wins(self):
        registry = TokenRegistry()
        token = registry.mint("https://files.slack.com/a")
        barrier = threading.Barrier(16)
        results = []
        results_lock = threading.Lock()

        def consume():
            barrier.wait()
            value = registry.resolve_and_consume(token)
            with results_lock:
                results.append(value)

        threads = [threading.Thread(target=consume) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("https://files.slack.com/a") == 1
        assert results.count(None) == 15

    def test_concurrent_mints_are_unique(self):
        registry = TokenRegistry()
        minted = []
        minted_lock = threading.Lock()

        def mint_many():
            local = [registry.mint("https://files.slack.com/x") for _ in range(50)]
            with minted_lock:
                minted.extend(local)

        threads = [threading.Thread(target=mint_many) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(minted)) == 400
        assert len(registry) == 400
