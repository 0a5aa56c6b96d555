"""Where a preview is shown. The controller only talks to PreviewSurface."""

from __future__ import annotations

import webbrowser
from typing import Protocol


class PreviewSurface(Protocol):
    def show(self, session_id: str, version: int, html: str) -> None: ...

    def fullscreen(self, session_id: str) -> None: ...

    def close(self) -> None: ...


class BrowserSurface:
    """
    Shows previews through the backend host page in the user's browser.

    The page reloads itself when a newer version is stored, so the browser
    is opened once per session. `fullscreen` opens the page with the
    toolbar hidden.
    """

    def __init__(self, api_url: str, open_browser: bool = True):
        self.api_url = api_url.rstrip("/")
        self.open_browser = open_browser
        self._opened: set[str] = set()

    def page_url(self, session_id: str) -> str:
        return f"{self.api_url}/preview/{session_id}"

    def show(self, session_id: str, version: int, html: str) -> None:
        if session_id in self._opened:
            return
        self._opened.add(session_id)
        url = self.page_url(session_id)
        print(f"  Preview: {url}")
        if self.open_browser:
            webbrowser.open(url)

    def fullscreen(self, session_id: str) -> None:
        url = self.page_url(session_id) + "#fullscreen"
        print(f"  Fullscreen: {url}")
        if self.open_browser:
            webbrowser.open(url)

    def close(self) -> None:
        self._opened.clear()
