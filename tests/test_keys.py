"""Tests for key resolvers — per-kid cache and miss rate limiting."""

from __future__ import annotations

from types import SimpleNamespace

import jwt
import pytest

from chat_relay.auth.keys import JWKSKeyResolver, MissRateLimiter, StaticKeyResolver
from chat_relay.relay.errors import KeyResolutionError


class FakeJWKClient:
    """Stands in for ``jwt.PyJWKClient``; counts remote lookups."""

    def __init__(self, keys: dict[str, object]) -> None:
        self.keys = dict(keys)
        self.calls: list[str] = []

    def get_signing_key(self, kid: str):
        self.calls.append(kid)
        if kid not in self.keys:
            raise jwt.PyJWKClientError(f'Unable to find a signing key that matches: "{kid}"')
        return SimpleNamespace(key=self.keys[kid])


class TestStaticKeyResolver:
    async def test_known_kid(self):
        resolver = StaticKeyResolver({"a": "key-a"})
        assert await resolver.resolve("a") == "key-a"

    async def test_unknown_kid_raises_resolution_error(self):
        with pytest.raises(KeyResolutionError):
            await StaticKeyResolver({}).resolve("missing")


class TestMissRateLimiter:
    def test_allows_up_to_limit_per_key(self, clock):
        limiter = MissRateLimiter(limit=2, window_s=60, clock=clock)
        assert limiter.allow("k") is True
        assert limiter.allow("k") is True
        assert limiter.allow("k") is False
        # other keys have their own budget
        assert limiter.allow("other") is True

    def test_window_slides(self, clock):
        limiter = MissRateLimiter(limit=1, window_s=60, clock=clock)
        assert limiter.allow("k") is True
        clock.advance(59)
        assert limiter.allow("k") is False
        clock.advance(1)
        assert limiter.allow("k") is True

    def test_global_budget_is_shared_by_all_keys(self, clock):
        limiter = MissRateLimiter(limit=5, window_s=60, clock=clock, global_limit=3)
        assert [limiter.allow(f"kid-{i}") for i in range(5)] == [True, True, True, False, False]
        clock.advance(60)
        assert limiter.allow("kid-9") is True

    def test_refused_call_spends_no_budget(self, clock):
        limiter = MissRateLimiter(limit=1, window_s=60, clock=clock, global_limit=2)
        assert limiter.allow("k") is True
        assert limiter.allow("k") is False
        assert limiter.allow("other") is True

    def test_idle_keys_are_forgotten(self, clock):
        limiter = MissRateLimiter(limit=1, window_s=60, clock=clock)
        for i in range(100):
            limiter.allow(f"kid-{i}")
        assert len(limiter) == 100
        clock.advance(3600)
        limiter.allow("fresh")
        assert len(limiter) == 1


class TestJWKSKeyResolver:
    async def test_resolved_key_is_cached(self, clock):
        client = FakeJWKClient({"k1": "pub-1"})
        resolver = JWKSKeyResolver("https://idp/jwks", client=client, clock=clock)

        assert await resolver.resolve("k1") == "pub-1"
        assert await resolver.resolve("k1") == "pub-1"
        assert client.calls == ["k1"]

    async def test_cache_entry_expires(self, clock):
        client = FakeJWKClient({"k1": "pub-1"})
        resolver = JWKSKeyResolver("https://idp/jwks", cache_ttl_s=100, client=client, clock=clock)

        await resolver.resolve("k1")
        clock.advance(101)
        await resolver.resolve("k1")
        assert client.calls == ["k1", "k1"]

    async def test_unknown_kid_lookups_are_rate_limited(self, clock):
        client = FakeJWKClient({})
        resolver = JWKSKeyResolver(
            "https://idp/jwks", miss_limit=3, miss_window_s=60, client=client, clock=clock,
        )

        for _ in range(5):
            with pytest.raises(KeyResolutionError):
                await resolver.resolve("ghost")
        assert len(client.calls) == 3

        clock.advance(60)
        with pytest.raises(KeyResolutionError):
            await resolver.resolve("ghost")
        assert len(client.calls) == 4

    async def test_rotated_in_key_resolves_after_miss(self, clock):
        client = FakeJWKClient({})
        resolver = JWKSKeyResolver("https://idp/jwks", client=client, clock=clock)

        with pytest.raises(KeyResolutionError):
            await resolver.resolve("new-key")
        client.keys["new-key"] = "pub-new"
        assert await resolver.resolve("new-key") == "pub-new"

    async def test_connection_failure_is_resolution_error(self, clock):
        class Unreachable:
            def get_signing_key(self, kid):
                raise jwt.PyJWKClientConnectionError("Fail to fetch data from the url")

        resolver = JWKSKeyResolver("https://idp/jwks", client=Unreachable(), clock=clock)
        with pytest.raises(KeyResolutionError):
            await resolver.resolve("k1")

    async def test_random_kid_flood_is_capped_globally(self, clock):
        client = FakeJWKClient({})
        resolver = JWKSKeyResolver(
            "https://idp/jwks", miss_limit=10, global_miss_limit=10, client=client, clock=clock,
        )

        for i in range(1000):
            with pytest.raises(KeyResolutionError):
                await resolver.resolve(f"random-{i}")
        assert len(client.calls) <= 10

        clock.advance(3600)
        with pytest.raises(KeyResolutionError):
            await resolver.resolve("after-the-flood")
        assert len(resolver._limiter) == 1
