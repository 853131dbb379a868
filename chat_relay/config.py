"""Environment-driven settings and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

LOG_FORMAT = "%(levelname)s %(asctime)s [%(name)s:%(lineno)d] %(message)s"

SESSION_BACKENDS = {"memory", "dynamodb"}
GENERATION_BACKENDS = {"bedrock", "openai", "demo"}
FRAME_FORMATS = {"text", "json"}
TRACE_BACKENDS = {"jsonl", "log", "none"}


def _split(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _choice(name: str, default: str, allowed: set[str]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in allowed:
        raise ValueError(f"{name}={value!r} is not one of {sorted(allowed)}")
    return value


@dataclass
class Settings:
    # token verification
    jwks_uri: str = ""
    issuer: str = ""
    audience: str = ""
    jwt_algorithms: list[str] = field(default_factory=lambda: ["RS256"])
    jwks_cache_ttl_s: float = 36000.0
    jwks_miss_limit: int = 10
    jwks_miss_window_s: float = 60.0
    jwks_global_miss_limit: int = 30

    # session store
    session_backend: str = "memory"
    session_table: str = "bedrock_sessions"
    session_ttl_s: int = 7 * 24 * 60 * 60

    # generation backend
    generation_backend: str = "demo"
    knowledge_base_id: str = ""
    model_identifier: str = "anthropic.claude-instant-v1"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    aws_region: str = "us-east-1"

    # delivery
    api_gw_endpoint: str = ""
    frame_format: str = "text"

    # diagnostics
    trace_backend: str = "jsonl"
    trace_dir: str = "./traces"
    trace_max_files: int = 1000
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build :class:`Settings` from the process environment.

    Raises ``ValueError`` for unknown backend, frame-format or trace-backend names.
    """
    return Settings(
        jwks_uri=os.getenv("JWKS_URI", "").strip(),
        issuer=os.getenv("ISSUER", "").strip(),
        audience=os.getenv("AUDIENCE", "").strip(),
        jwt_algorithms=_split(os.getenv("JWT_ALGORITHMS", "RS256")) or ["RS256"],
        jwks_cache_ttl_s=float(os.getenv("JWKS_CACHE_TTL_S", "36000")),
        jwks_miss_limit=int(os.getenv("JWKS_MISS_LIMIT", "10")),
        jwks_miss_window_s=float(os.getenv("JWKS_MISS_WINDOW_S", "60")),
        jwks_global_miss_limit=int(os.getenv("JWKS_GLOBAL_MISS_LIMIT", "30")),
        session_backend=_choice("SESSION_BACKEND", "memory", SESSION_BACKENDS),
        session_table=os.getenv("SESSION_TABLE", "bedrock_sessions").strip(),
        session_ttl_s=int(os.getenv("SESSION_TTL_S", str(7 * 24 * 60 * 60))),
        generation_backend=_choice("GENERATION_BACKEND", "demo", GENERATION_BACKENDS),
        knowledge_base_id=os.getenv("KNOWLEDGE_BASE_ID", "").strip(),
        model_identifier=os.getenv("MODEL_IDENTIFIER", "anthropic.claude-instant-v1").strip(),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini").strip(),
        aws_region=os.getenv("AWS_REGION", "us-east-1").strip(),
        api_gw_endpoint=os.getenv("API_GW_ENDPOINT", "").strip(),
        frame_format=_choice("FRAME_FORMAT", "text", FRAME_FORMATS),
        trace_backend=_choice("TRACE_BACKEND", "jsonl", TRACE_BACKENDS),
        trace_dir=os.getenv("TRACE_DIR", "./traces"),
        trace_max_files=int(os.getenv("TRACE_MAX_FILES", "1000")),
        log_level=(os.getenv("LOG_LEVEL", "INFO") or "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_chat_relay", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._chat_relay = True  # type: ignore[attr-defined]
        root.addHandler(handler)
