"""Error taxonomy for the relay pipeline."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for every error raised inside the relay core."""


# ---------------------------------------------------------------------------
# Authentication (collapsed to a single "unauthorized" outcome externally)
# ---------------------------------------------------------------------------

class AuthenticationError(RelayError):
    code: str = "unauthorized"


class MalformedTokenError(AuthenticationError):
    code = "malformed_token"


class KeyResolutionError(AuthenticationError):
    code = "key_resolution"


class InvalidTokenError(AuthenticationError):
    code = "invalid_token"


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class MalformedRequestError(RelayError):
    """Inbound body is not valid JSON or lacks ``token`` / ``data``."""


class GenerationError(RelayError):
    """The downstream generation call failed."""


class DeliveryError(RelayError):
    """A frame could not be delivered to the connection."""


class StaleConnectionError(DeliveryError):
    """The target connection no longer exists."""


class PersistenceError(RelayError):
    """The session store could not be read or written."""
