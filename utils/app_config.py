"""Environment-driven configuration for the screening backend."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:5177",
    "http://192.168.29.86:5177",
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _env_list(name: str, default: tuple) -> List[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class AppConfig:
    """Settings read once at startup and attached to `app.state.config`.

    Attributes:
        openai_api_key: Provider key; the app refuses to start without it.
        openai_model: Multimodal model used for screening.
        openai_timeout: Per-request timeout in seconds for the provider call.
        openai_max_retries: Retries on transient provider failures.
        cors_origins: Front-end origins allowed to call the API.
        max_image_bytes: Ceiling on decoded image size.
        max_body_bytes: Ceiling on request body size.
        cache_capacity: Maximum cached classification results.
        cache_ttl_seconds: Age after which a cached result is a miss.
        fail_open: Return a flagged low-risk result when the provider fails.
        reset_database: Wipe the SQLite file on startup.
        log_level: Root logging level name.
    """

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_timeout: float = 45.0
    openai_max_retries: int = 1
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    max_image_bytes: int = 5 * 1024 * 1024
    max_body_bytes: int = 50 * 1024 * 1024
    cache_capacity: int = 100
    cache_ttl_seconds: int = 24 * 60 * 60
    fail_open: bool = True
    reset_database: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build the configuration from environment variables."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            openai_timeout=_env_float("OPENAI_TIMEOUT_SECONDS", 45.0),
            openai_max_retries=_env_int("OPENAI_MAX_RETRIES", 1),
            cors_origins=_env_list("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
            max_image_bytes=_env_int("MAX_IMAGE_BYTES", 5 * 1024 * 1024),
            max_body_bytes=_env_int("MAX_BODY_BYTES", 50 * 1024 * 1024),
            cache_capacity=_env_int("CACHE_CAPACITY", 100),
            cache_ttl_seconds=_env_int("CACHE_TTL_SECONDS", 24 * 60 * 60),
            fail_open=_env_bool("FAIL_OPEN", True),
            reset_database=_env_bool("RESET_DATABASE", False),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def require_api_key(self) -> str:
        """Return the provider key or raise the fatal startup error."""
        if not self.openai_api_key or not self.openai_api_key.strip():
            raise RuntimeError("OPENAI_API_KEY environment variable is not set")
        return self.openai_api_key
