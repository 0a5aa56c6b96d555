"""
Live Preview Kernel: Stub Synthesizer

Guarantees that untrusted source never fails to execute because a
capitalized identifier it treats as a UI component is unresolved.

Static pass (this module, per request):
  a) names bound by import statements
  b) uppercase-leading markup tags, minus runtime-provided symbols
  c) every name from (a) ∪ (b) that the source does not declare itself
     gets a placeholder that renders a visible block labeled with the
     exact symbol name, unless the window already defines it

Imports from a module in LIBRARY_BINDINGS (react-router-dom) bind to
working stand-ins instead of placeholders; see library_stubs().

Runtime pass (sandbox_runtime.RUNTIME_PRELUDE): an "X is not defined"
error that still surfaces during execution installs a stub for X,
suppresses that single occurrence, and retries the render once.

Resolution goes through the SymbolResolver protocol so the registry is an
explicit per-session value, never ambient global state.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterable
from typing import Protocol

from engine.kernel.analyzer import extract_imports
from engine.kernel.sandbox_runtime import LIBRARY_BINDINGS, REACT_GLOBALS
from engine.kernel.types import SourceUnit, Stub, StubOrigin, StubRegistry

logger = logging.getLogger(__name__)

# Symbols the sandbox runtime binds globally. Never stubbed.
RUNTIME_BINDINGS: frozenset[str] = frozenset({"React", "ReactDOM", *REACT_GLOBALS})

# Modules whose imports the runtime satisfies.
RUNTIME_MODULES: frozenset[str] = frozenset({"react", "react-dom", "react-dom/client"})

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")
_MARKUP_TAG = re.compile(r"(?<![\w$.])<([A-Z][\w$]*)")
_DECLARATION = re.compile(r"\b(?:function\*?|class|const|let|var)\s+([A-Za-z_$][\w$]*)")
_NOT_DEFINED = re.compile(r"([A-Za-z_$][\w$]*) is not defined")
_NAMED_IMPORT = re.compile(
    r"import\s+(?:[A-Za-z_$][\w$]*\s*,\s*)?\{([^}]*)\}\s*from\s*['\"]([^'\"]+)['\"]"
)
_NAMESPACE_IMPORT = re.compile(r"import\s+\*\s+as\s+([A-Za-z_$][\w$]*)\s+from\s*['\"]([^'\"]+)['\"]")
_ALIAS = re.compile(r"\s+as\s+")

FailureCallback = Callable[[str, str], None]


# ---------------------------------------------------------------------------
# Resolver protocol
# ---------------------------------------------------------------------------


class SymbolResolver(Protocol):
    """Turns an unresolved symbol name into a Stub, or reports why it can't."""

    def resolve(self, name: str, origin: StubOrigin = "markup") -> Stub | None: ...


class StubResolver:
    """
    Registry-backed SymbolResolver.

    resolve() returns the registered stub for a name, synthesizing and
    registering one on first sight. Names that cannot be stubbed (not an
    identifier, or bound by the runtime) are reported through on_failure
    and yield None.
    """

    def __init__(self, registry: StubRegistry, on_failure: FailureCallback | None = None) -> None:
        self.registry = registry
        self._on_failure = on_failure

    def resolve(self, name: str, origin: StubOrigin = "markup") -> Stub | None:
        existing = self.registry.get(name)
        if existing is not None:
            return existing

        if not _IDENTIFIER.match(name):
            self._fail(name, "not a valid identifier")
            return None
        if name in RUNTIME_BINDINGS:
            self._fail(name, "bound by the sandbox runtime")
            return None

        return self.registry.add(Stub(name=name, origin=origin, definition=stub_definition(name)))

    def _fail(self, name: str, reason: str) -> None:
        logger.debug("stubs: cannot resolve %r: %s", name, reason)
        if self._on_failure is not None:
            self._on_failure(name, reason)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def synthesize_stubs(
    source: SourceUnit,
    resolver: SymbolResolver,
    seeded: Iterable[str] = (),
) -> list[Stub]:
    """
    Run the static pass and return the stubs it produced, in document order.

    `seeded` names come from the host (symbols a previous render trapped at
    runtime) and are resolved first, unless the source now declares them.
    """
    code = source.text
    declared = declared_names(code)
    produced = [stub for stub in library_stubs(code) if stub.name not in declared]
    bound = declared | {stub.name for stub in produced}

    def _take(name: str, origin: StubOrigin) -> None:
        if name in bound or name in RUNTIME_BINDINGS:
            return
        stub = resolver.resolve(name, origin)
        if stub is not None and stub not in produced:
            produced.append(stub)

    for name in seeded:
        _take(name, "seeded")

    for name in imported_component_names(code):
        _take(name, "import")

    for name in markup_component_names(code):
        _take(name, "markup")

    return produced


def library_stubs(code: str) -> list[Stub]:
    """
    Working bindings for imports from modules listed in LIBRARY_BINDINGS.

    Named imports the runtime knows (aliases included) and namespace
    imports of such a module bind to the runtime's stand-ins. Other names
    from the same module fall through to placeholders.
    """
    stubs: dict[str, Stub] = {}

    for match in _NAMED_IMPORT.finditer(code):
        specifiers, module = match.groups()
        exports = LIBRARY_BINDINGS.get(module)
        if not exports:
            continue
        for part in specifiers.split(","):
            pieces = _ALIAS.split(part.strip())
            export, local = pieces[0], pieces[-1]
            if export in exports and _IDENTIFIER.match(local):
                definition = library_definition(local, module, export)
                stubs.setdefault(local, Stub(name=local, origin="library", definition=definition))

    for match in _NAMESPACE_IMPORT.finditer(code):
        local, module = match.groups()
        if module in LIBRARY_BINDINGS:
            stubs.setdefault(local, Stub(name=local, origin="library", definition=library_definition(local, module)))

    return list(stubs.values())


def imported_component_names(code: str) -> list[str]:
    """Capitalized names bound by imports from modules the runtime doesn't provide."""
    names: list[str] = []
    for imp in extract_imports(code):
        if imp.source in RUNTIME_MODULES:
            continue
        names.extend(n for n in imp.names if n[:1].isupper())
    return list(dict.fromkeys(names))


def markup_component_names(code: str) -> list[str]:
    return list(dict.fromkeys(_MARKUP_TAG.findall(code)))


def declared_names(code: str) -> set[str]:
    return set(_DECLARATION.findall(code))


def symbol_from_error(message: str) -> str | None:
    """Extract X from a runtime "X is not defined" message."""
    match = _NOT_DEFINED.search(message or "")
    return match.group(1) if match else None


def stub_definition(name: str) -> str:
    """JS statement installing the placeholder for `name`, unless the window already has it."""
    literal = json.dumps(name)
    return f"if (!({literal} in window)) window[{literal}] = __previewStub({literal});"


def library_definition(local: str, module: str, export: str | None = None) -> str:
    """JS statement binding `local` to a runtime stand-in; the whole module when export is None."""
    args = json.dumps(module) if export is None else f"{json.dumps(module)}, {json.dumps(export)}"
    return f"window[{json.dumps(local)}] = __previewLibrary({args});"
