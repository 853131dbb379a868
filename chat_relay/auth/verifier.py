"""Bearer-token verification against a rotating key set."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import jwt

from chat_relay.auth.keys import KeyResolver
from chat_relay.relay.errors import AuthenticationError, InvalidTokenError, MalformedTokenError
from chat_relay.relay.models import AuthResult

logger = logging.getLogger(__name__)


class TokenVerifier:
    """Three-step check: read ``kid`` unverified, resolve the key, verify.

    ``verify`` raises the specific :class:`AuthenticationError`;
    ``authenticate`` collapses every failure into an unauthorized
    :class:`AuthResult` whose ``failure`` code is for diagnostics only.
    """

    def __init__(
        self,
        resolver: KeyResolver,
        issuer: str,
        audience: str,
        algorithms: Sequence[str] = ("RS256",),
        leeway: float = 0.0,
    ) -> None:
        self._resolver = resolver
        self._issuer = issuer
        self._audience = audience
        self._algorithms = list(algorithms)
        self._leeway = leeway
        if not issuer:
            logger.warning("No issuer configured; tokens from any issuer will be accepted")
        if not audience:
            logger.warning("No audience configured; tokens carrying an aud claim will be rejected")

    @staticmethod
    def key_id(token: str) -> str:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            raise MalformedTokenError(f"undecodable token: {exc}") from exc
        kid = header.get("kid")
        if not kid:
            raise MalformedTokenError("token header has no kid")
        return kid

    async def verify(self, token: str) -> dict[str, Any]:
        kid = self.key_id(token)
        key = await self._resolver.resolve(kid)
        try:
            return jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                audience=self._audience or None,
                issuer=self._issuer or None,
                leeway=self._leeway,
                options={"require": ["exp"]},
            )
        except (jwt.InvalidTokenError, jwt.InvalidKeyError, TypeError) as exc:
            # key type does not fit the token algorithm, e.g. an EC key for RS256
            raise InvalidTokenError(f"{type(exc).__name__}: {exc}") from exc

    async def authenticate(self, token: str) -> AuthResult:
        try:
            claims = await self.verify(token)
        except AuthenticationError as exc:
            logger.warning("Token rejected (%s): %s", exc.code, exc)
            return AuthResult(authorized=False, failure=exc.code)
        return AuthResult(authorized=True, subject=claims.get("sub"))
