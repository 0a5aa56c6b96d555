"""
In-memory store of the latest preview document per session.

Each session keeps exactly one document (the newest version seen) and its
own StubRegistry. Older versions arriving late are ignored, so a slow
request can never replace a newer document.

Single-process only. Sessions expire after PREVIEW_SESSION_TTL_MINUTES of
inactivity; the cleanup runs from the app lifespan task.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from engine.kernel.types import PreviewDocument, PreviewSession, StubRegistry

logger = logging.getLogger(__name__)


@dataclass
class StoredPreview:
    session_id: str
    version: int
    document: PreviewDocument | None = None
    registry: StubRegistry = field(default_factory=StubRegistry)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class PreviewStore:
    """Session id → StoredPreview."""

    def __init__(self):
        self._sessions: dict[str, StoredPreview] = {}

    def registry_for(self, session_id: str) -> StubRegistry:
        """The session's stub registry, created on first use."""
        entry = self._sessions.get(session_id)
        if entry is None:
            entry = StoredPreview(session_id=session_id, version=0)
            self._sessions[session_id] = entry
        return entry.registry

    def save(self, session: PreviewSession, document: PreviewDocument) -> bool:
        """
        Record a built document.

        Returns:
            True if stored, False if a newer version is already present
        """
        entry = self._sessions.get(session.session_id)
        if entry is None:
            entry = StoredPreview(session_id=session.session_id, version=0)
            self._sessions[session.session_id] = entry

        if session.version < entry.version:
            logger.info(
                "preview_store: ignoring stale v%d for %s (have v%d)",
                session.version,
                session.session_id,
                entry.version,
            )
            return False

        entry.version = session.version
        entry.document = document
        entry.updated_at = datetime.now(UTC)
        return True

    def latest(self, session_id: str) -> StoredPreview | None:
        entry = self._sessions.get(session_id)
        if entry is None or entry.document is None:
            return None
        return entry

    def cleanup_expired(self, max_age_minutes: int = 60) -> int:
        """
        Drop sessions idle for longer than max_age_minutes.

        Returns:
            Number of sessions removed
        """
        cutoff = datetime.now(UTC) - timedelta(minutes=max_age_minutes)
        expired = [sid for sid, entry in self._sessions.items() if entry.updated_at < cutoff]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


# Global store instance
preview_store = PreviewStore()
