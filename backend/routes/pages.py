"""Host page serving — GET /preview/{session_id} embeds the latest document."""

from __future__ import annotations

import hashlib
import html
import json

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, Response

from backend.services.preview_store import preview_store
from engine.kernel.types import PreviewDocument

router = APIRouter(tags=["pages"])

# Documents change on every edit; the page polls for new versions itself.
_CACHE_CONTROL = "no-store"

# How often the host page checks for a newer version.
POLL_INTERVAL_MS = 1500

_HOST_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{title}</title>
<style>
  html, body {{ margin: 0; height: 100%; background: #f3f4f6; font-family: system-ui, sans-serif; }}
  .toolbar {{ display: flex; align-items: center; gap: 8px; padding: 6px 12px;
             background: #111827; color: #e5e7eb; font-size: 13px; }}
  .toolbar .status {{ margin-left: auto; }}
  .toolbar button {{ background: #374151; color: inherit; border: 0; border-radius: 4px;
                    padding: 4px 10px; cursor: pointer; }}
  .status[data-state="ready"] {{ color: #34d399; }}
  .status[data-state="errored"] {{ color: #f87171; }}
  iframe {{ display: block; width: 100%; height: calc(100% - 34px); border: 0; background: white; }}
  body.fullscreen .toolbar {{ display: none; }}
  body.fullscreen iframe {{ height: 100%; }}
</style>
</head>
<body>
<div class="toolbar">
  <strong>{name}</strong><span>v{version}</span>
  <button type="button" id="fullscreen">Fullscreen</button>
  <span class="status" id="status" data-state="rendering">rendering…</span>
</div>
<iframe id="preview" title="{name} preview" sandbox="{sandbox}" srcdoc="{srcdoc}"></iframe>
<script>
(function () {{
  var state = {state};
  var frame = document.getElementById('preview');
  var statusEl = document.getElementById('status');
  var socket = null;
  var pending = [];

  if (location.hash === '#fullscreen') document.body.classList.add('fullscreen');

  function setStatus(kind, text) {{
    statusEl.dataset.state = kind;
    statusEl.textContent = text;
  }}

  function send(payload) {{
    var data = JSON.stringify(payload);
    if (socket && socket.readyState === WebSocket.OPEN) socket.send(data);
    else pending.push(data);
  }}

  try {{
    var scheme = location.protocol === 'https:' ? 'wss://' : 'ws://';
    socket = new WebSocket(scheme + location.host + '/ws/preview/' + encodeURIComponent(state.sessionId));
    socket.onopen = function () {{
      while (pending.length) socket.send(pending.shift());
    }};
  }} catch (e) {{
    socket = null;
  }}

  window.addEventListener('message', function (event) {{
    if (event.source !== frame.contentWindow) return;
    var data = event.data;
    if (!data || (data.type !== 'Ready' && data.type !== 'Error')) return;
    if (data.type === 'Ready') setStatus('ready', 'ready');
    else setStatus('errored', (data.error && data.error.message) || 'error');
    var payload = Object.assign({{}}, data, {{ sessionId: state.sessionId, version: state.version }});
    send(payload);
  }});

  document.getElementById('fullscreen').addEventListener('click', function () {{
    if (frame.requestFullscreen) frame.requestFullscreen();
  }});

  setInterval(function () {{
    fetch('/api/live-preview/' + encodeURIComponent(state.sessionId), {{ cache: 'no-store' }})
      .then(function (res) {{ return res.ok ? res.json() : null; }})
      .then(function (info) {{
        if (info && info.version > state.version) location.reload();
      }})
      .catch(function () {{}});
  }}, state.pollMs);
}})();
</script>
</body>
</html>
"""


def _script_literal(value: object) -> str:
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def render_host_page(session_id: str, version: int, document: PreviewDocument) -> str:
    """Host page HTML for one stored document."""
    state = {"sessionId": session_id, "version": version, "pollMs": POLL_INTERVAL_MS}
    return _HOST_TEMPLATE.format(
        title=html.escape(f"{document.component_name} - Live Preview"),
        name=html.escape(document.component_name),
        version=version,
        sandbox=html.escape(document.sandbox_attribute),
        srcdoc=html.escape(document.html, quote=True),
        state=_script_literal(state),
    )


@router.get("/preview/{session_id}", response_class=HTMLResponse)
async def serve_preview_page(session_id: str) -> Response:
    """
    Serve the host page for a preview session.

    Embeds the latest document in an iframe sandboxed to allow-scripts
    only, relays its Ready/Error messages to /ws/preview/{session_id} and
    reloads when a newer version is stored. Returns 404 if the session has
    no document.

    Cache headers:
    - Cache-Control: no-store
    - ETag: MD5 of the page content
    """
    entry = preview_store.latest(session_id)

    if entry is None or entry.document is None:
        return HTMLResponse(
            content="<html><body><h1>404 - Preview not found</h1></body></html>",
            status_code=404,
        )

    page = render_host_page(entry.session_id, entry.version, entry.document).encode("utf-8")
    etag = f'"{hashlib.md5(page, usedforsecurity=False).hexdigest()}"'

    return Response(
        content=page,
        media_type="text/html; charset=utf-8",
        headers={
            "Cache-Control": _CACHE_CONTROL,
            "ETag": etag,
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "SAMEORIGIN",
        },
    )
