"""
Pydantic models for Live Preview.

All data shapes defined here. No imports from services or routes.
"""

from backend.models.preview import PreviewRequest, PreviewVersionResponse

__all__ = [
    "PreviewRequest",
    "PreviewVersionResponse",
]
