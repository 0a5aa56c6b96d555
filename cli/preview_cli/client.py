"""HTTP and WebSocket client for the Live Preview API."""
from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import websockets


class TransportError(Exception):
    """The backend could not be reached or failed without a preview verdict."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PreviewClient:
    """Async client for POST /api/live-preview and the lifecycle relay."""

    def __init__(
        self,
        api_url: str,
        ws_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.ws_url = (ws_url or self.api_url.replace("https://", "wss://").replace("http://", "ws://")).rstrip("/")
        self.async_client = httpx.AsyncClient(base_url=self.api_url, timeout=timeout, transport=transport)

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "Accept": "application/json"}

    def preview_url(self, session_id: str) -> str:
        """Host page URL for a session."""
        return f"{self.api_url}/preview/{session_id}"

    async def request_preview(
        self,
        code: str,
        *,
        session_id: str,
        version: int,
        options: dict[str, Any] | None = None,
        collaboration: bool = False,
    ) -> dict[str, Any]:
        """
        Ask the backend to build a preview document.

        Returns the response body for both verdicts: success (200) and
        validation failure (400). Anything else is a TransportError.
        """
        payload = {
            "code": code,
            "type": "component",
            "options": options or {},
            "sessionId": session_id,
            "version": version,
            "collaboration": collaboration,
        }
        try:
            res = await self.async_client.post("/api/live-preview", json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            raise TransportError(f"Preview request failed: {e}") from e

        if res.status_code in (200, 400):
            try:
                return res.json()
            except ValueError as e:
                raise TransportError("Backend returned invalid JSON", res.status_code) from e

        raise TransportError(_describe_failure(res), res.status_code)

    async def latest_version(self, session_id: str) -> dict[str, Any] | None:
        """Latest stored version for a session, or None if the backend has none."""
        try:
            res = await self.async_client.get(f"/api/live-preview/{session_id}", headers=self._headers())
        except httpx.HTTPError as e:
            raise TransportError(f"Version lookup failed: {e}") from e
        if res.status_code == 404:
            return None
        if res.status_code != 200:
            raise TransportError(_describe_failure(res), res.status_code)
        return res.json()

    async def lifecycle_messages(self, session_id: str) -> AsyncIterator[dict[str, Any]]:
        """
        Subscribe to the session's lifecycle relay.

        Yields each decoded message. Frames that are not JSON objects are
        skipped. Ends when the server closes the connection normally.
        """
        url = f"{self.ws_url}/ws/preview/{session_id}"
        try:
            async with websockets.connect(url) as ws:
                async for raw in ws:
                    try:
                        data = json.loads(raw)
                    except (json.JSONDecodeError, TypeError):
                        continue
                    if isinstance(data, dict):
                        yield data
        except (OSError, websockets.exceptions.WebSocketException) as e:
            raise TransportError(f"Lifecycle relay failed: {e}") from e

    async def aclose(self):
        """Close client."""
        await self.async_client.aclose()


def _describe_failure(res: httpx.Response) -> str:
    detail = None
    try:
        body = res.json()
        if isinstance(body, dict):
            detail = body.get("error") or body.get("detail")
            if body.get("details"):
                detail = f"{detail}: {body['details']}"
    except ValueError:
        pass
    return f"Backend returned {res.status_code}" + (f" ({detail})" if detail else "")
