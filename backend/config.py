"""
Live Preview configuration — all environment variables in one place.

Read from environment at runtime. Every setting has a default, so the
service starts with an empty environment.
"""

from __future__ import annotations

import os

from engine.kernel.types import PreviewConfig


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def _list_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


class Settings:
    """Application settings from environment variables."""

    # Validator
    PREVIEW_MAX_CODE_SIZE: int = _int_env("PREVIEW_MAX_CODE_SIZE", 100_000)  # bytes
    PREVIEW_BLOCKED_KEYWORDS: tuple[str, ...] = _list_env("PREVIEW_BLOCKED_KEYWORDS", ("eval(", "Function("))
    PREVIEW_MAX_STATEFUL_CALLS: int = _int_env("PREVIEW_MAX_STATEFUL_CALLS", 10)

    # Sandbox runtime
    PREVIEW_MAX_RENDER_TIME_MS: int = _int_env("PREVIEW_MAX_RENDER_TIME_MS", 5000)
    PREVIEW_DEBOUNCE_MS: int = _int_env("PREVIEW_DEBOUNCE_MS", 1000)
    PREVIEW_RETRY_LIMIT: int = _int_env("PREVIEW_RETRY_LIMIT", 3)
    PREVIEW_SETTLE_DELAY_MS: int = _int_env("PREVIEW_SETTLE_DELAY_MS", 100)
    PREVIEW_RUNTIME_CDN: str = os.environ.get("PREVIEW_RUNTIME_CDN", "https://unpkg.com")
    PREVIEW_ENABLE_TAILWIND: bool = os.environ.get("PREVIEW_ENABLE_TAILWIND", "true").lower() != "false"

    # Sessions
    PREVIEW_SESSION_TTL_MINUTES: int = _int_env("PREVIEW_SESSION_TTL_MINUTES", 60)

    # Rate Limits
    PREVIEW_RATE_LIMIT_PER_MINUTE: int = _int_env("PREVIEW_RATE_LIMIT_PER_MINUTE", 120)  # per client IP

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")

    @property
    def PUBLIC_URL(self) -> str:
        url = os.environ.get("PUBLIC_URL")
        if url:
            return url
        return "http://localhost:8000" if self.ENVIRONMENT == "development" else ""

    def preview_config(self) -> PreviewConfig:
        """Kernel configuration built from the current settings."""
        return PreviewConfig(
            max_code_size=self.PREVIEW_MAX_CODE_SIZE,
            blocked_keywords=self.PREVIEW_BLOCKED_KEYWORDS,
            max_render_time_ms=self.PREVIEW_MAX_RENDER_TIME_MS,
            debounce_ms=self.PREVIEW_DEBOUNCE_MS,
            retry_limit=self.PREVIEW_RETRY_LIMIT,
            max_stateful_calls=self.PREVIEW_MAX_STATEFUL_CALLS,
            settle_delay_ms=self.PREVIEW_SETTLE_DELAY_MS,
            runtime_cdn=self.PREVIEW_RUNTIME_CDN,
            enable_tailwind=self.PREVIEW_ENABLE_TAILWIND,
        )


# Singleton instance
settings = Settings()

if settings.PREVIEW_MAX_CODE_SIZE <= 0:
    raise RuntimeError("PREVIEW_MAX_CODE_SIZE must be positive")
if settings.PREVIEW_RETRY_LIMIT < 0:
    raise RuntimeError("PREVIEW_RETRY_LIMIT must not be negative")
