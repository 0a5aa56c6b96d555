"""
Live Preview Sandbox Runtime — Tests

Runs RUNTIME_PRELUDE under node against a minimal React/ReactDOM/Babel
stand-in and records what the sandbox posts to its parent:
  - Ready only after a successful mount, never after an error display
  - compile, execution and render failures post Error
  - library bindings behave like the library
  - placeholders never replace globals the window already has
"""

import json
import re
import shutil
import subprocess

import pytest

from engine.kernel.sandbox_runtime import LIBRARY_BINDINGS, REACT_GLOBALS, RUNTIME_PRELUDE
from engine.kernel.stubs import library_stubs, stub_definition

NODE = shutil.which("node")

needs_node = pytest.mark.skipif(NODE is None, reason="node not installed")

# Reads {prelude, stubs, source, config, syntaxError} from stdin, boots the
# runtime in a vm context and prints {posted, text}.
HARNESS = r"""
const vm = require('vm');
const input = JSON.parse(require('fs').readFileSync(0, 'utf8'));
const posted = [];
const listeners = {};
const effects = [];
const rendered = [];

class Component {
  constructor(props) { this.props = props; }
  setState() {}
}

function createElement(type, props) {
  const children = Array.prototype.slice.call(arguments, 2);
  const merged = Object.assign({}, props);
  if (children.length === 1) merged.children = children[0];
  else if (children.length > 1) merged.children = children;
  return { type: type, props: merged };
}

const React = {
  createElement: createElement,
  Component: Component,
  Fragment: Symbol('Fragment'),
  useEffect: function (fn) { effects.push(fn); },
  Children: {
    toArray: function (children) {
      if (children === undefined || children === null) return [];
      return [].concat(children).flat().filter(function (c) { return c !== null && c !== undefined && c !== false; });
    }
  }
};

function renderTree(node) {
  if (node === null || node === undefined || node === false || node === true) return;
  if (typeof node === 'string' || typeof node === 'number') { rendered.push(String(node)); return; }
  if (Array.isArray(node)) { node.forEach(renderTree); return; }
  const type = node.type;
  const props = node.props || {};
  if (type === React.Fragment) { renderTree(props.children); return; }
  if (typeof type === 'string') {
    if (props.href !== undefined) rendered.push('<' + type + ' href=' + props.href + '>');
    renderTree(props.children);
    return;
  }
  if (type.prototype && type.prototype.render) {
    const instance = new type(props);
    if (!instance.componentDidCatch) { renderTree(instance.render()); return; }
    const effectMark = effects.length;
    const textMark = rendered.length;
    try {
      renderTree(instance.render());
    } catch (error) {
      effects.length = effectMark;
      rendered.length = textMark;
      instance.state = Object.assign({}, instance.state, type.getDerivedStateFromError(error));
      instance.componentDidCatch(error, { componentStack: '' });
      renderTree(instance.render());
    }
    return;
  }
  renderTree(type(props));
}

const ReactDOM = {
  createRoot: function () {
    return {
      render: function (tree) {
        renderTree(tree);
        effects.splice(0).forEach(function (fn) { fn(); });
      }
    };
  }
};

const Babel = {
  transform: function (source) {
    if (input.syntaxError) {
      const error = new Error(input.syntaxError);
      error.loc = { line: 2, column: 26 };
      throw error;
    }
    return { code: source };
  }
};

const sandbox = {
  console: { log: function () {}, warn: function () {}, error: function () {} },
  setTimeout: function (fn) { fn(); return 0; },
  performance: { now: function () { return 0; } },
  URLSearchParams: URLSearchParams,
  document: { getElementById: function () { return { textContent: '' }; } },
  parent: { postMessage: function (message) { posted.push(message); } },
  addEventListener: function (type, fn) { (listeners[type] = listeners[type] || []).push(fn); },
  React: React,
  ReactDOM: ReactDOM,
  Babel: Babel,
  __PREVIEW_CONFIG__: input.config,
  __PREVIEW_SOURCE__: input.source
};
vm.createContext(sandbox);
vm.runInContext('var window = globalThis;', sandbox);
vm.runInContext(input.prelude + '\n' + input.stubs, sandbox);
(listeners.load || []).forEach(function (fn) { fn(); });

process.stdout.write(JSON.stringify({
  posted: posted.map(function (m) { return m.type === 'Error' ? 'Error:' + m.error.message : m.type; }),
  text: rendered
}));
"""


def boot(source, stubs=(), syntax_error=None):
    payload = {
        "prelude": RUNTIME_PRELUDE,
        "stubs": "\n".join(stubs),
        "source": source,
        "syntaxError": syntax_error,
        "config": {
            "componentName": "App",
            "retryLimit": 3,
            "settleDelayMs": 0,
            "reactGlobals": list(REACT_GLOBALS),
        },
    }
    proc = subprocess.run(
        [NODE, "-e", HARNESS],
        input=json.dumps(payload),
        capture_output=True,
        text=True,
        timeout=30,
        check=True,
    )
    result = json.loads(proc.stdout)
    return result["posted"], " ".join(result["text"])


ENTRY = "window.__previewEntry__ = function App() { return h('p', null, 'hi'); };"


# ============================================================================
# Handshake
# ============================================================================


@needs_node
class TestHandshake:
    def test_ready_after_successful_mount(self):
        posted, text = boot(ENTRY)
        assert posted == ["Ready"]
        assert "hi" in text

    def test_syntax_error_posts_error_and_never_ready(self):
        posted, text = boot(ENTRY, syntax_error="Unexpected token (2:27)")
        assert posted == ["Error:Unexpected token (2:27)"]
        assert "Syntax Error" in text
        assert "Line 2, column 27" in text

    def test_execution_error_posts_error_and_never_ready(self):
        posted, text = boot("throw new Error('kaput');")
        assert posted == ["Error:kaput"]
        assert "Runtime Error" in text

    def test_missing_entry_posts_error_and_never_ready(self):
        posted, text = boot("var x = 1;")
        assert posted == ["Error:No renderable component found. Export a component as default."]
        assert "Nothing to Render" in text

    def test_render_error_caught_by_boundary(self):
        posted, text = boot("window.__previewEntry__ = function App() { throw new Error('render failed'); };")
        assert posted == ["Error:render failed"]
        assert "Component Error" in text

    def test_unresolved_symbol_trapped_during_execution(self):
        """`Widget is not defined` at top level → stub installed, execution retried, Ready."""
        posted, text = boot(ENTRY + "\nWidget;")
        assert posted == ["Ready"]
        assert "hi" in text


# ============================================================================
# Bindings
# ============================================================================


ROUTER_IMPORTS = "import { BrowserRouter, Routes, Route, Link, useNavigate, useLocation } from 'react-router-dom';"

ROUTER_ENTRY = """
window.__previewEntry__ = function App() {
  var navigate = useNavigate();
  var location = useLocation();
  return h(BrowserRouter, null,
    h('p', null, typeof navigate + ':' + location.pathname),
    h(Link, { to: '/profile' }, 'Profile'),
    h(Routes, null,
      h(Route, { path: '/', element: h('p', null, 'home page') }),
      h(Route, { path: '/other', element: h('p', null, 'other page') })
    )
  );
};
"""


@needs_node
class TestLibraryBindings:
    def test_router_stand_ins(self):
        stubs = [stub.definition for stub in library_stubs(ROUTER_IMPORTS)]
        posted, text = boot(ROUTER_ENTRY, stubs)
        assert posted == ["Ready"]
        assert "function:/" in text
        assert "<a href=/profile> Profile" in text
        assert "home page" in text
        assert "other page" not in text


@needs_node
class TestPlaceholders:
    def test_placeholder_rendered_with_name(self):
        entry = "window.__previewEntry__ = function App() { return h(Header); };"
        posted, text = boot(entry, [stub_definition("Header")])
        assert posted == ["Ready"]
        assert "Header Component" in text

    def test_host_global_not_replaced(self):
        entry = "window.__previewEntry__ = function App() { return h('p', null, typeof new Map().set); };"
        posted, text = boot(entry, [stub_definition("Map")])
        assert posted == ["Ready"]
        assert "function" in text


# ============================================================================
# Static checks
# ============================================================================


class TestLibraryTable:
    def test_every_binding_defined_in_runtime(self):
        runtime = RUNTIME_PRELUDE.split("var __previewLibraries = {", 1)[1].split("\n};", 1)[0]
        for module, exports in LIBRARY_BINDINGS.items():
            assert f"'{module}': {{" in runtime
            defined = set(re.findall(r"^    ([A-Za-z]\w*):", runtime, re.MULTILINE))
            assert defined == set(exports)
