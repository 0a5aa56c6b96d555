"""
Configuration for the Live Preview CLI.

Environment resolution order for the API URL:
  1. PREVIEW_API_URL environment variable
  2. --api-url command line flag (passed to Config)
  3. Fallback: http://localhost:8000

Timing defaults come from the same variables the server reads, so a CLI
started next to a local server debounces the way that server expects.
The server's response carries its own limits, which win once known.

Usage:
  export PREVIEW_API_URL=http://localhost:8000
  preview watch src/Counter.jsx

  # Or use --api-url flag
  preview watch src/Counter.jsx --api-url http://localhost:9000
"""

from __future__ import annotations

import os

DEFAULT_API_URL = "http://localhost:8000"
DEFAULT_DEBOUNCE_MS = 1000
DEFAULT_MAX_RENDER_TIME_MS = 5000


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"Warning: ignoring {name}={raw!r} (not an integer)")
        return default


class Config:
    """Config for one CLI invocation."""

    def __init__(self, api_url_override: str | None = None):
        """
        Initialize config.

        Args:
            api_url_override: Optional --api-url flag value
        """
        self._api_url_override = api_url_override

    @property
    def api_url(self) -> str:
        """
        Get current API URL.

        Resolution order:
        1. PREVIEW_API_URL environment variable
        2. --api-url flag (passed to constructor)
        3. Fallback: http://localhost:8000
        """
        env_url = os.environ.get("PREVIEW_API_URL")
        if env_url:
            return env_url.rstrip("/")

        if self._api_url_override:
            return self._api_url_override.rstrip("/")

        return DEFAULT_API_URL

    @property
    def ws_url(self) -> str:
        """API URL with the scheme switched to ws/wss."""
        url = self.api_url
        if url.startswith("https://"):
            return "wss://" + url[len("https://") :]
        if url.startswith("http://"):
            return "ws://" + url[len("http://") :]
        return url

    @property
    def debounce_ms(self) -> int:
        return _int_env("PREVIEW_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS)

    @property
    def max_render_time_ms(self) -> int:
        return _int_env("PREVIEW_MAX_RENDER_TIME_MS", DEFAULT_MAX_RENDER_TIME_MS)
