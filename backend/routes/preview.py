"""Live preview API — POST /api/live-preview builds a sandbox document."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from backend import config
from backend.middleware.rate_limit import rate_limiter
from backend.models.preview import PreviewRequest, PreviewVersionResponse
from backend.services.preview_store import preview_store
from engine.kernel.pipeline import build_preview, new_session_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["preview"])

# Headers on every preview API response. The document itself carries its
# own CSP; this one covers the JSON response.
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "1; mode=block",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'self'",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


@router.post("/live-preview")
async def create_preview(req: PreviewRequest, request: Request) -> JSONResponse:
    """
    Analyze, validate and build a preview document.

    Status codes:
    - 200: document built; body carries previewHTML and metadata
    - 400: validation failed; body carries error, suggestions, partialAnalysis
    - 429: too many requests from this IP
    - 500: unexpected pipeline failure
    """
    client_ip = request.client.host if request.client else "unknown"
    limit = config.settings.PREVIEW_RATE_LIMIT_PER_MINUTE
    if not rate_limiter.check_rate_limit(f"preview:{client_ip}", max_requests=limit, window_minutes=1):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many preview requests. Maximum {limit} per minute.",
            headers={"Retry-After": "60"},
        )

    session_id = req.session_id or new_session_id()

    result = build_preview(
        req.code,
        options=req.options,
        session_id=session_id,
        version=req.version,
        collaboration=req.collaboration,
        config=config.settings.preview_config(),
        registry=preview_store.registry_for(session_id),
    )

    if result.ok and result.session is not None and result.document is not None:
        stored = preview_store.save(result.session, result.document)
        logger.info(
            "preview: built %s v%d component=%s stubs=%d stored=%s",
            session_id,
            req.version,
            result.document.component_name,
            len(result.document.stub_names),
            stored,
        )

    return JSONResponse(status_code=result.status, content=result.body, headers=SECURITY_HEADERS)


@router.get("/live-preview/{session_id}")
async def get_preview_version(session_id: str) -> PreviewVersionResponse:
    """Latest stored version for a session. The host page polls this to reload."""
    entry = preview_store.latest(session_id)
    if entry is None or entry.document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preview not found.")

    return PreviewVersionResponse(
        session_id=entry.session_id,
        version=entry.version,
        component_name=entry.document.component_name,
        document_hash=entry.document.content_hash,
        updated_at=entry.updated_at,
    )
