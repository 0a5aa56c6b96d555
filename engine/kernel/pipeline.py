"""
Live Preview Kernel: Pipeline

One synchronous call per request:

  SourceUnit → analyze → validate ─┬─ invalid → failure response (400)
                                   └─ valid   → stubs → transform → document

build_preview() never raises. Validation failures and unexpected
exceptions both come back as a PreviewResult carrying the HTTP status and
the JSON body the backend returns verbatim.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

from engine.kernel.analyzer import analyze
from engine.kernel.reports import build_additional_data
from engine.kernel.sandbox import build_document
from engine.kernel.stubs import StubResolver, synthesize_stubs
from engine.kernel.transform import RegexTransform, Transform
from engine.kernel.types import (
    PreviewConfig,
    PreviewDocument,
    PreviewSession,
    SourceUnit,
    StubRegistry,
    now_iso,
)
from engine.kernel.validator import validate

logger = logging.getLogger(__name__)

_DEFAULT_TRANSFORM = RegexTransform()


@dataclass
class PreviewResult:
    status: int
    body: dict[str, Any]
    session: PreviewSession | None = None
    document: PreviewDocument | None = None

    @property
    def ok(self) -> bool:
        return self.status == 200


def new_session_id() -> str:
    return f"session_{uuid.uuid4().hex[:16]}"


def build_preview(
    code: str,
    *,
    options: dict[str, Any] | None = None,
    session_id: str | None = None,
    version: int = 1,
    collaboration: bool = False,
    config: PreviewConfig | None = None,
    registry: StubRegistry | None = None,
    transform: Transform | None = None,
) -> PreviewResult:
    """
    Run the full preview pipeline for one submitted source.

    Args:
        code: Component source as submitted
        options: Overlay switches (debug, performance, accessibility, info)
                 and `stubs`, symbol names to pre-seed as placeholders
        session_id: Host session; generated when absent
        version: Monotonic per session, echoed back in metadata
        collaboration: Echoed back in metadata
        config: Limits; defaults to PreviewConfig()
        registry: The session's stub registry; a fresh one when absent
        transform: Transform implementation; RegexTransform when absent

    Returns:
        PreviewResult with status 200, 400 or 500
    """
    options = options or {}
    config = config or PreviewConfig()
    registry = registry if registry is not None else StubRegistry()
    transform = transform or _DEFAULT_TRANSFORM

    try:
        source = SourceUnit.from_text(code)
        analysis = analyze(source)
        validation = validate(source, analysis, config)

        if not validation.is_valid:
            logger.info(
                "pipeline: rejected %s (%s): %s",
                source.short_hash,
                validation.error_kind.value if validation.error_kind else "?",
                validation.error,
            )
            return PreviewResult(
                status=400,
                body={
                    "success": False,
                    "error": validation.error,
                    "errorKind": validation.error_kind.value if validation.error_kind else None,
                    "suggestions": validation.suggestions,
                    "warnings": validation.warnings,
                    "partialAnalysis": analysis.to_dict(),
                },
            )

        session = PreviewSession(
            session_id=session_id or new_session_id(),
            version=version,
            collaboration=collaboration,
            code_hash=source.content_hash,
            generated_at=now_iso(),
        )

        unresolved: list[str] = []
        resolver = StubResolver(registry, on_failure=lambda name, reason: unresolved.append(f"{name}: {reason}"))
        stubs = synthesize_stubs(source, resolver, seeded=_seeded_symbols(options))

        transformed = transform.apply(source.text)
        document = build_document(analysis, stubs, transformed, config, options)

        logger.info(
            "pipeline: built %s v%d component=%s stubs=%d diagnostics=%d",
            session.session_id,
            session.version,
            analysis.component_name,
            len(stubs),
            len(transformed.diagnostics),
        )

        metadata = {
            **session.to_dict(),
            "documentHash": document.content_hash,
            "sandbox": document.sandbox_attribute,
            "estimatedBundleSize": analysis.estimated_bundle_size,
            "stubs": [{"name": s.name, "origin": s.origin} for s in stubs],
            "unresolved": unresolved,
            "diagnostics": list(transformed.diagnostics),
            "warnings": validation.warnings,
            "suggestions": validation.suggestions,
            "limits": {
                "maxRenderTimeMs": config.max_render_time_ms,
                "debounceMs": config.debounce_ms,
                "retryLimit": config.retry_limit,
                "settleDelayMs": config.settle_delay_ms,
            },
        }

        return PreviewResult(
            status=200,
            body={
                "success": True,
                "previewHTML": document.html,
                "analysis": analysis.to_dict(),
                "metadata": metadata,
                "additionalData": build_additional_data(source, analysis),
                "timestamp": session.generated_at,
            },
            session=session,
            document=document,
        )

    except Exception as e:
        logger.exception("pipeline: preview generation failed")
        return PreviewResult(
            status=500,
            body={
                "success": False,
                "error": "Enhanced preview generation failed",
                "details": str(e),
            },
        )


def _seeded_symbols(options: dict[str, Any]) -> list[str]:
    seeded = options.get("stubs") or []
    if not isinstance(seeded, list | tuple):
        return []
    return [name for name in seeded if isinstance(name, str)]
