"""Signing-key resolution — ABC, static keys, and a cached, rate-limited JWKS client."""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Callable, Deque

import jwt

from chat_relay.relay.errors import KeyResolutionError

logger = logging.getLogger(__name__)


class KeyResolver(ABC):
    """Maps a key id (``kid``) to a public key usable by ``jwt.decode``."""

    @abstractmethod
    async def resolve(self, kid: str) -> Any: ...


class StaticKeyResolver(KeyResolver):
    """Fixed ``{kid: key}`` mapping — for tests and pinned-key deployments."""

    def __init__(self, keys: dict[str, Any]) -> None:
        self._keys = dict(keys)

    async def resolve(self, kid: str) -> Any:
        key = self._keys.get(kid)
        if key is None:
            raise KeyResolutionError(f"no key for kid={kid}")
        return key


class MissRateLimiter:
    """Sliding-window limit on remote lookups.

    Each key id gets ``limit`` lookups per window, and all key ids together
    share ``global_limit`` (unbounded when ``None``). A refused call uses up
    neither budget. Keys whose window has emptied are forgotten.
    """

    def __init__(
        self,
        limit: int = 10,
        window_s: float = 60.0,
        clock: Callable[[], float] = time.time,
        global_limit: int | None = None,
    ) -> None:
        self.limit = max(1, limit)
        self.window_s = window_s
        self.global_limit = None if global_limit is None else max(1, global_limit)
        self._clock = clock
        self._events: dict[str, Deque[float]] = {}
        self._all: Deque[float] = deque()
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._events)

    def _expire(self, events: Deque[float], now: float) -> None:
        while events and now - events[0] >= self.window_s:
            events.popleft()

    def _sweep(self, now: float) -> None:
        for key in list(self._events):
            events = self._events[key]
            self._expire(events, now)
            if not events:
                del self._events[key]
        self._last_sweep = now

    def allow(self, key: str) -> bool:
        now = self._clock()
        if now - self._last_sweep >= self.window_s:
            self._sweep(now)

        self._expire(self._all, now)
        if self.global_limit is not None and len(self._all) >= self.global_limit:
            return False

        events = self._events.get(key)
        if events is not None:
            self._expire(events, now)
            if len(events) >= self.limit:
                return False
        else:
            events = self._events[key] = deque()

        events.append(now)
        self._all.append(now)
        return True


class JWKSKeyResolver(KeyResolver):
    """Resolves keys from a JWKS endpoint through ``jwt.PyJWKClient``.

    Resolved keys are cached per kid for ``cache_ttl_s``. Cache misses go
    to the identity provider, at most ``miss_limit`` times per
    ``miss_window_s`` for any one kid and ``global_miss_limit`` times per
    window across all kids, so neither a repeated unknown kid nor a stream
    of fresh random kids can hammer the endpoint.
    """

    def __init__(
        self,
        jwks_uri: str,
        cache_ttl_s: float = 36000.0,
        miss_limit: int = 10,
        miss_window_s: float = 60.0,
        global_miss_limit: int | None = 30,
        client: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if client is None:
            client = jwt.PyJWKClient(jwks_uri, cache_keys=False, cache_jwk_set=True, lifespan=300)
        self._client = client
        self._ttl = cache_ttl_s
        self._clock = clock
        self._cache: dict[str, tuple[float, Any]] = {}
        self._limiter = MissRateLimiter(miss_limit, miss_window_s, clock, global_limit=global_miss_limit)

    async def resolve(self, kid: str) -> Any:
        cached = self._cache.get(kid)
        if cached is not None:
            fetched_at, key = cached
            if self._clock() - fetched_at < self._ttl:
                return key
            self._cache.pop(kid, None)

        if not self._limiter.allow(kid):
            raise KeyResolutionError(f"lookup rate limit reached for kid={kid}")

        try:
            signing_key = await asyncio.to_thread(self._client.get_signing_key, kid)
        except (jwt.PyJWKClientError, jwt.PyJWKError) as exc:
            raise KeyResolutionError(f"kid={kid} not resolvable: {exc}") from exc

        self._cache[kid] = (self._clock(), signing_key.key)
        logger.info("Cached signing key kid=%s", kid)
        return signing_key.key
