"""Live preview request/response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PreviewRequest(BaseModel):
    """What the host sends to POST /api/live-preview."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    code: str
    type: str = "component"
    options: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = Field(default=None, alias="sessionId", max_length=128, pattern=r"^[\w\-.]+$")
    version: int = Field(default=1, ge=1)
    collaboration: bool = False


class PreviewVersionResponse(BaseModel):
    """Latest document version stored for a session."""

    model_config = {"populate_by_name": True}

    session_id: str = Field(alias="sessionId")
    version: int
    component_name: str = Field(alias="componentName")
    document_hash: str = Field(alias="documentHash")
    updated_at: datetime = Field(alias="updatedAt")
