"""
Live Preview Kernel: Sandbox Runtime

Static CSS and JavaScript embedded in every preview document. Nothing in
here depends on the request; per-document values reach the script through
`window.__PREVIEW_CONFIG__` and `window.__PREVIEW_SOURCE__`, which the
document builder writes before RUNTIME_PRELUDE.

The runtime:
- exposes React's named exports as globals (imports are stripped upstream)
- compiles the source with Babel standalone; a compile failure becomes a
  "Syntax Error" entry component
- provides working stand-ins for common library imports (LIBRARY_BINDINGS)
- traps "X is not defined" once per symbol, installs a stub and retries
- wraps the entry in an error boundary with a bounded retry button
- posts Ready once, settle delay after the first successful mount (never
  for a Syntax Error, Runtime Error or Nothing to Render display), and
  Error from the boundary and the global error/unhandledrejection handlers
"""

from __future__ import annotations

# Pinned runtime builds. Production React builds don't replay errors caught
# by boundaries to window.onerror, so each failure is posted once.
REACT_VERSION = "18.2.0"
BABEL_VERSION = "7.22.0"
FALLBACK_CDN = "https://cdn.jsdelivr.net/npm"
TAILWIND_CDN = "https://cdn.tailwindcss.com"

# React exports the runtime binds on window.
REACT_GLOBALS: tuple[str, ...] = (
    "useState",
    "useEffect",
    "useContext",
    "useReducer",
    "useCallback",
    "useMemo",
    "useRef",
    "useLayoutEffect",
    "useImperativeHandle",
    "useDebugValue",
    "useId",
    "useTransition",
    "useDeferredValue",
    "useSyncExternalStore",
    "Children",
    "Component",
    "PureComponent",
    "Fragment",
    "Suspense",
    "StrictMode",
    "Profiler",
    "createContext",
    "createElement",
    "cloneElement",
    "forwardRef",
    "memo",
    "lazy",
    "startTransition",
)

# Working stand-ins for common library imports, by module. The names must
# match __previewLibraries in RUNTIME_PRELUDE.
LIBRARY_BINDINGS: dict[str, tuple[str, ...]] = {
    "react-router-dom": (
        "BrowserRouter",
        "MemoryRouter",
        "Routes",
        "Route",
        "Link",
        "NavLink",
        "Outlet",
        "useNavigate",
        "useParams",
        "useLocation",
        "useSearchParams",
    ),
}


def runtime_scripts(cdn: str) -> list[tuple[str, str]]:
    """(primary, fallback) script URLs in load order."""
    cdn = cdn.rstrip("/")
    return [
        (
            f"{cdn}/react@{REACT_VERSION}/umd/react.production.min.js",
            f"{FALLBACK_CDN}/react@{REACT_VERSION}/umd/react.production.min.js",
        ),
        (
            f"{cdn}/react-dom@{REACT_VERSION}/umd/react-dom.production.min.js",
            f"{FALLBACK_CDN}/react-dom@{REACT_VERSION}/umd/react-dom.production.min.js",
        ),
        (
            f"{cdn}/@babel/standalone@{BABEL_VERSION}/babel.min.js",
            f"{FALLBACK_CDN}/@babel/standalone@{BABEL_VERSION}/babel.min.js",
        ),
    ]


def content_security_policy(cdn: str, tailwind: bool) -> str:
    script_sources = ["'unsafe-inline'", "'unsafe-eval'", cdn.rstrip("/"), "https://cdn.jsdelivr.net"]
    if tailwind:
        script_sources.append(TAILWIND_CDN)
    directives = [
        "default-src 'none'",
        f"script-src {' '.join(script_sources)}",
        "style-src 'unsafe-inline' https:",
        "img-src https: data: blob:",
        "font-src https: data:",
        "media-src https: data: blob:",
        "connect-src https:",
        "form-action 'none'",
        "base-uri 'none'",
    ]
    return "; ".join(directives)


# ─────────────────────────────────────────────────────────────────────────────
# CSS
# ─────────────────────────────────────────────────────────────────────────────

PREVIEW_CSS = """
*, *::before, *::after { box-sizing: border-box; }

body {
  margin: 0;
  font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
  background: #ffffff;
  color: #111827;
}

.preview-container { min-height: 100vh; padding: 20px; }

/* ── Placeholders ── */
.preview-stub {
  border: 2px dashed #3b82f6;
  border-radius: 8px;
  background: #eff6ff;
  color: #1e3a8a;
  padding: 16px;
  margin: 8px 0;
}
.preview-stub-title { font-weight: 600; margin-bottom: 4px; }
.preview-stub-note { font-size: 12px; color: #3b82f6; }
.preview-stub-children { margin-top: 8px; }

/* ── Errors ── */
.error-boundary {
  background: #fef2f2;
  border: 1px solid #fecaca;
  border-radius: 8px;
  padding: 16px;
  margin: 16px 0;
  font-family: 'Monaco', 'Menlo', monospace;
}
.error-title { color: #dc2626; font-weight: 600; margin-bottom: 8px; }
.error-message { color: #991b1b; margin-bottom: 12px; line-height: 1.5; white-space: pre-wrap; }
.error-location { color: #7f1d1d; font-size: 12px; margin-bottom: 12px; }
.error-stack {
  background: #7f1d1d;
  color: #fecaca;
  padding: 12px;
  border-radius: 6px;
  font-size: 12px;
  overflow: auto;
  max-height: 200px;
}
.retry-button {
  background: #dc2626;
  color: #ffffff;
  border: none;
  border-radius: 6px;
  padding: 6px 12px;
  cursor: pointer;
}
.retry-button:disabled { background: #9ca3af; cursor: not-allowed; }

/* ── Component info ── */
.component-info {
  border: 1px solid #e5e7eb;
  border-radius: 8px;
  padding: 12px;
  margin-bottom: 16px;
  font-size: 14px;
}
.component-info h3 { margin: 0 0 8px 0; color: #374151; font-size: 16px; }
.info-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(160px, 1fr)); gap: 8px; }
.info-item { display: flex; justify-content: space-between; padding: 4px 0; }
.info-label { color: #6b7280; font-weight: 500; }
.info-value { color: #374151; font-weight: 600; }

/* ── Overlays ── */
.debug-panel {
  position: fixed;
  top: 10px;
  right: 10px;
  background: rgba(0, 0, 0, 0.8);
  color: #ffffff;
  padding: 10px;
  border-radius: 8px;
  font-size: 12px;
  max-width: 300px;
  z-index: 1000;
}
.debug-panel h4 { margin: 0 0 8px 0; color: #60a5fa; }
.debug-panel .metric { margin: 4px 0; display: flex; justify-content: space-between; gap: 12px; }
.debug-panel .metric .value { color: #34d399; }

.performance-monitor {
  position: fixed;
  bottom: 10px;
  left: 10px;
  background: rgba(59, 130, 246, 0.9);
  color: #ffffff;
  padding: 8px 12px;
  border-radius: 6px;
  font-size: 11px;
  z-index: 1000;
}

.accessibility-checker {
  position: fixed;
  bottom: 10px;
  right: 10px;
  background: rgba(16, 185, 129, 0.9);
  color: #ffffff;
  padding: 8px 12px;
  border-radius: 6px;
  font-size: 11px;
  z-index: 1000;
  max-width: 320px;
}
.accessibility-checker summary { cursor: pointer; }
.accessibility-checker ul { margin: 6px 0 0 0; padding-left: 16px; }
"""


# ─────────────────────────────────────────────────────────────────────────────
# JavaScript
# ─────────────────────────────────────────────────────────────────────────────

# Runs in <head> before the runtime <script> tags so their onerror can use it.
LOADER_SCRIPT = """
function __runtimeFallback(el) {
  var url = el.getAttribute('data-fallback');
  if (!url) return;
  var script = document.createElement('script');
  script.src = url;
  script.crossOrigin = 'anonymous';
  script.async = false;
  document.head.appendChild(script);
}
"""

RUNTIME_PRELUDE = r"""
var __PREVIEW__ = window.__PREVIEW_CONFIG__;
var __trapped = {};
var __readySent = false;
var __root = null;
var __Boundary = null;

function h() {
  return React.createElement.apply(React, arguments);
}

function __post(message) {
  try {
    window.parent.postMessage(message, '*');
  } catch (err) {
    console.error('preview: postMessage failed', err);
  }
}

function __errorPayload(error, extra) {
  var payload = { message: String((error && error.message) || error || 'Unknown error') };
  if (error && error.stack) payload.stack = String(error.stack);
  if (extra) {
    Object.keys(extra).forEach(function (key) {
      if (extra[key] !== undefined && extra[key] !== null && extra[key] !== '') payload[key] = extra[key];
    });
  }
  return payload;
}

function __postError(error, extra) {
  __post({ type: 'Error', error: __errorPayload(error, extra) });
}

// ── Placeholders ──

window.__previewStub = function (name) {
  var Stub = function (props) {
    return h('div', {
        'data-preview-stub': name,
        className: 'preview-stub',
        role: 'note',
        'aria-label': name + ' placeholder'
      },
      h('div', { className: 'preview-stub-title' }, '🔧 ' + name + ' Component'),
      h('div', { className: 'preview-stub-note' }, name + ' is not available in the preview'),
      props && props.children ? h('div', { className: 'preview-stub-children' }, props.children) : null
    );
  };
  Stub.displayName = name;
  Stub.__previewStub = true;
  return Stub;
};

// ── Library bindings ──

function __passThrough(props) {
  return props.children === undefined ? null : h(React.Fragment, null, props.children);
}

function __routerLink(props) {
  var attrs = Object.assign({}, props);
  var to = attrs.to;
  delete attrs.to;
  delete attrs.end;
  delete attrs.children;
  attrs.href = typeof to === 'string' ? to : '#';
  if (typeof attrs.className === 'function') attrs.className = attrs.className({ isActive: false });
  attrs.onClick = function (event) {
    event.preventDefault();
    console.log('preview: navigate to', to);
    if (props.onClick) props.onClick(event);
  };
  var children = typeof props.children === 'function' ? props.children({ isActive: false }) : props.children;
  return h('a', attrs, children);
}

var __previewLibraries = {
  'react-router-dom': {
    BrowserRouter: __passThrough,
    MemoryRouter: __passThrough,
    Routes: function (props) {
      var routes = React.Children.toArray(props.children);
      var home = routes.filter(function (route) {
        return route.props && (route.props.index || route.props.path === '/');
      })[0];
      return home || routes[0] || null;
    },
    Route: function (props) {
      return props.element !== undefined ? props.element : __passThrough(props);
    },
    Link: __routerLink,
    NavLink: __routerLink,
    Outlet: function () { return null; },
    useNavigate: function () {
      return function (to) { console.log('preview: navigate to', to); };
    },
    useParams: function () { return {}; },
    useLocation: function () {
      return { pathname: '/', search: '', hash: '', state: null, key: 'default' };
    },
    useSearchParams: function () {
      return [new URLSearchParams(), function () {}];
    }
  }
};

// Without a name, the whole module object (namespace imports).
window.__previewLibrary = function (module, name) {
  var library = __previewLibraries[module] || {};
  if (name === undefined) return library;
  return library[name] !== undefined ? library[name] : window.__previewStub(name);
};

function __missingSymbol(error) {
  if (!error) return null;
  var match = /([A-Za-z_$][\w$]*) is not defined/.exec(String(error.message || error));
  return match ? match[1] : null;
}

// One stub and one retry per symbol.
function __trapUnresolved(error) {
  var name = __missingSymbol(error);
  if (!name || __trapped[name]) return false;
  __trapped[name] = true;
  window[name] = window.__previewStub(name);
  console.warn('preview: stubbed unresolved symbol ' + name);
  return true;
}

// ── Entry points ──

function __errorEntry(title, error, location) {
  var Display = function PreviewErrorDisplay() {
    return h('div', { className: 'error-boundary', role: 'alert' },
      h('div', { className: 'error-title' }, '⚠️ ' + title),
      h('div', { className: 'error-message' }, String((error && error.message) || error)),
      location ? h('div', { className: 'error-location' }, location) : null
    );
  };
  Display.__previewFailed = true;
  return Display;
}

function __resolveEntry() {
  var entry = window.__previewEntry__;
  if (typeof entry === 'function') return entry;
  if (entry && typeof entry === 'object' && entry.$$typeof) return entry;
  return null;
}

function __compile(source) {
  try {
    return { code: Babel.transform(source, { presets: ['react'], filename: 'component.jsx' }).code };
  } catch (error) {
    return { error: error };
  }
}

function __execute(code) {
  for (;;) {
    try {
      new Function(code)();
      return;
    } catch (error) {
      if (!__trapUnresolved(error)) throw error;
    }
  }
}

// ── Boundary and handshake ──

function __createBoundary() {
  class PreviewErrorBoundary extends React.Component {
    constructor(props) {
      super(props);
      this.state = { error: null, retryCount: 0 };
      this.retry = this.retry.bind(this);
    }

    static getDerivedStateFromError(error) {
      return { error: error };
    }

    componentDidCatch(error, info) {
      if (__trapUnresolved(error)) {
        this.setState({ error: null });
        return;
      }
      __postError(error, { componentStack: info && info.componentStack });
    }

    retry() {
      if (this.state.retryCount >= __PREVIEW__.retryLimit) return;
      this.setState(function (state) {
        return { error: null, retryCount: state.retryCount + 1 };
      });
    }

    render() {
      var error = this.state.error;
      if (!error) return this.props.children;
      var left = __PREVIEW__.retryLimit - this.state.retryCount;
      return h('div', { className: 'error-boundary', role: 'alert' },
        h('div', { className: 'error-title' }, '⚠️ Component Error'),
        h('div', { className: 'error-message' }, String(error.message || error)),
        error.stack ? h('pre', { className: 'error-stack' }, String(error.stack)) : null,
        h('button', { className: 'retry-button', onClick: this.retry, disabled: left <= 0 },
          left > 0 ? 'Retry (' + left + ' left)' : 'Retry limit reached')
      );
    }
  }
  return PreviewErrorBoundary;
}

function ReadySignal(props) {
  React.useEffect(function () {
    if (__readySent) return;
    __readySent = true;
    var started = window.__previewStartedAt;
    setTimeout(function () {
      __post({ type: 'Ready', componentName: __PREVIEW__.componentName, timestamp: new Date().toISOString() });
      var monitor = document.getElementById('renderTime');
      if (monitor && started) monitor.textContent = (performance.now() - started).toFixed(1);
    }, __PREVIEW__.settleDelayMs);
  }, []);
  return props.children;
}

function __render() {
  var entry = __resolveEntry();
  if (!entry) {
    var missing = new Error('No renderable component found. Export a component as default.');
    entry = __errorEntry('Nothing to Render', missing);
    __postError(missing);
  }
  if (!__root) __root = ReactDOM.createRoot(document.getElementById('root'));
  // Error displays never signal Ready.
  var content = entry.__previewFailed ? h(entry) : h(ReadySignal, null, h(entry));
  __root.render(h(__Boundary, null, content));
}

// ── Global handlers ──

window.addEventListener('error', function (event) {
  var error = event.error || event.message;
  if (__trapUnresolved(error)) {
    event.preventDefault();
    if (__Boundary) __render();
    return;
  }
  __postError(error, { filename: event.filename, lineno: event.lineno, colno: event.colno });
});

window.addEventListener('unhandledrejection', function (event) {
  var reason = event.reason;
  if (__trapUnresolved(reason)) {
    event.preventDefault();
    return;
  }
  __postError(reason instanceof Error ? reason : new Error(String(reason)));
});

// ── Boot ──

function __boot() {
  var missing = ['React', 'ReactDOM', 'Babel'].filter(function (name) { return !window[name]; });
  if (missing.length) {
    var failure = new Error('Preview runtime failed to load: ' + missing.join(', '));
    document.getElementById('root').textContent = failure.message;
    __postError(failure);
    return;
  }

  __PREVIEW__.reactGlobals.forEach(function (name) {
    if (React[name] !== undefined && window[name] === undefined) window[name] = React[name];
  });
  __Boundary = __createBoundary();

  var compiled = __compile(window.__PREVIEW_SOURCE__);
  if (compiled.error) {
    var loc = compiled.error.loc || {};
    var where = loc.line ? 'Line ' + loc.line + ', column ' + (loc.column + 1) : null;
    window.__previewEntry__ = __errorEntry('Syntax Error', compiled.error, where);
    __postError(compiled.error, { filename: 'component.jsx', lineno: loc.line, colno: loc.line ? loc.column + 1 : null });
  } else {
    try {
      __execute(compiled.code);
    } catch (error) {
      window.__previewEntry__ = __errorEntry('Runtime Error', error);
      __postError(error);
    }
  }

  window.__previewStartedAt = performance.now();
  __render();
}

window.addEventListener('load', __boot);
"""
