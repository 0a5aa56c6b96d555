"""
Live Preview Kernel: Sandbox Document Builder

Assembles the self-contained HTML document a host loads into a sandboxed
iframe (sandbox="allow-scripts", no same-origin). The document carries:

- runtime script references (React, ReactDOM, Babel standalone) with a
  fallback CDN, and optionally Tailwind
- a restrictive Content-Security-Policy meta tag
- stub definitions for every symbol the static pass resolved
- the transformed source as a JSON string literal, compiled in-sandbox
- the error boundary, the runtime symbol trap and the Ready/Error handshake

The document is a pure function of its inputs: no session ids, no clocks,
no random values. Identical inputs give byte-identical HTML.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from typing import Any

from engine.kernel.sandbox_runtime import (
    LOADER_SCRIPT,
    PREVIEW_CSS,
    REACT_GLOBALS,
    RUNTIME_PRELUDE,
    TAILWIND_CDN,
    content_security_policy,
    runtime_scripts,
)
from engine.kernel.types import (
    ENTRY_SLOT,
    SANDBOX_FLAGS,
    AnalysisReport,
    PreviewConfig,
    PreviewDocument,
    Stub,
    TransformResult,
)


def build_document(
    analysis: AnalysisReport,
    stubs: Iterable[Stub],
    transformed: TransformResult,
    config: PreviewConfig,
    options: dict[str, Any] | None = None,
) -> PreviewDocument:
    """
    Build the preview document.

    Args:
        analysis: Analysis of the submitted source (component name, overlays)
        stubs: Placeholders to install before the source runs
        transformed: Output of the transform pipeline
        config: Runtime limits and CDN settings
        options: Overlay switches: debug, performance, accessibility, info

    Returns:
        PreviewDocument with the HTML and its content hash
    """
    options = options or {}
    stubs = list(stubs)
    name = analysis.component_name

    runtime_config = {
        "componentName": name,
        "retryLimit": config.retry_limit,
        "settleDelayMs": config.settle_delay_ms,
        "reactGlobals": list(REACT_GLOBALS),
    }
    source = transformed.code + entry_fallback(name)
    stub_block = "\n".join(stub.definition for stub in stubs)

    html = f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta http-equiv="Content-Security-Policy" content="{_escape_html(content_security_policy(config.runtime_cdn, config.enable_tailwind))}">
<title>{_escape_html(name)} - Live Preview</title>
<script>{LOADER_SCRIPT}</script>
{_runtime_tags(config)}
<style>
{PREVIEW_CSS}
</style>
</head>
<body>
{_overlays(analysis, options)}
<div class="preview-container">
{_component_info(analysis) if options.get("info") else ""}
<div id="root"></div>
</div>
<script>
window.__PREVIEW_CONFIG__ = {script_json(runtime_config)};
window.__PREVIEW_SOURCE__ = {script_json(source)};
{RUNTIME_PRELUDE}
{stub_block}
</script>
</body>
</html>"""

    return PreviewDocument(
        html=html,
        component_name=name,
        stub_names=tuple(stub.name for stub in stubs),
        content_hash=hashlib.sha256(html.encode("utf-8")).hexdigest(),
        sandbox_flags=SANDBOX_FLAGS,
    )


def entry_fallback(component_name: str) -> str:
    """Assign the entry slot from the named component when nothing was exported."""
    return (
        f"\n;if (typeof {ENTRY_SLOT} === 'undefined' && typeof {component_name} !== 'undefined') "
        f"{{ {ENTRY_SLOT} = {component_name}; }}\n"
    )


def script_json(value: Any) -> str:
    """JSON safe to place inside an inline <script> element."""
    return (
        json.dumps(value, ensure_ascii=False)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


# ---------------------------------------------------------------------------
# Fragments
# ---------------------------------------------------------------------------


def _runtime_tags(config: PreviewConfig) -> str:
    tags = [
        f'<script crossorigin src="{primary}" data-fallback="{fallback}" onerror="__runtimeFallback(this)"></script>'
        for primary, fallback in runtime_scripts(config.runtime_cdn)
    ]
    if config.enable_tailwind:
        tags.append(f'<script src="{TAILWIND_CDN}"></script>')
    return "\n".join(tags)


def _overlays(analysis: AnalysisReport, options: dict[str, Any]) -> str:
    parts: list[str] = []

    if options.get("debug"):
        metrics = [
            ("Component", analysis.component_name),
            ("Type", analysis.component_type),
            ("Lines", analysis.lines_of_code),
            ("Hooks", len(analysis.hooks)),
            ("Imports", len(analysis.imports)),
            ("Complexity", analysis.complexity),
        ]
        rows = "\n".join(
            f'<div class="metric"><span>{label}:</span><span class="value">{_escape_html(str(value))}</span></div>'
            for label, value in metrics
        )
        parts.append(f'<div class="debug-panel">\n<h4>🔧 Debug Info</h4>\n{rows}\n</div>')

    if options.get("performance"):
        parts.append('<div class="performance-monitor">⚡ Render: <span id="renderTime">-</span>ms</div>')

    if options.get("accessibility"):
        report = analysis.accessibility
        issues = "".join(f"<li>{_escape_html(issue)}</li>" for issue in report.issues) or "<li>No issues found</li>"
        parts.append(
            f'<details class="accessibility-checker">\n'
            f"<summary>♿ A11Y: {report.score}</summary>\n<ul>{issues}</ul>\n</details>"
        )

    return "\n".join(parts)


def _component_info(analysis: AnalysisReport) -> str:
    items = [
        ("Name", analysis.component_name),
        ("Type", analysis.component_type),
        ("Lines of Code", analysis.lines_of_code),
        ("Complexity", analysis.complexity),
        ("Hooks", ", ".join(analysis.hooks) or "none"),
        ("Accessibility", f"{analysis.accessibility.score}/100"),
    ]
    rows = "\n".join(
        f'<div class="info-item"><span class="info-label">{label}:</span>'
        f'<span class="info-value">{_escape_html(str(value))}</span></div>'
        for label, value in items
    )
    return f'<div class="component-info">\n<h3>📊 Component Analysis</h3>\n<div class="info-grid">\n{rows}\n</div>\n</div>'


def _escape_html(text: str) -> str:
    """HTML-escape text for safe embedding."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")
