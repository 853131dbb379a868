from chat_relay.auth.keys import JWKSKeyResolver, KeyResolver, MissRateLimiter, StaticKeyResolver
from chat_relay.auth.verifier import TokenVerifier

__all__ = [
    "JWKSKeyResolver",
    "KeyResolver",
    "MissRateLimiter",
    "StaticKeyResolver",
    "TokenVerifier",
]
