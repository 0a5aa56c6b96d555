"""
Live Preview Kernel: Shared Types

Data classes used across analyzer, validator, stubs, transform, sandbox
and pipeline. These are the contracts that bind the kernel together.

Immutability rules:
- SourceUnit, PreviewSession and PreviewDocument are frozen. A new edit
  produces new values, nothing is updated in place.
- StubRegistry is the only mutable value and is scoped to one session.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

ComponentType = Literal["functional", "class", "unknown"]
Complexity = Literal["low", "medium", "high"]
RiskLevel = Literal["low", "medium", "high", "critical"]
StubOrigin = Literal["import", "markup", "runtime", "seeded", "library"]
MessageType = Literal["Ready", "Error"]


class ErrorKind(str, Enum):
    """Failure taxonomy shared by the pipeline, the API and the host."""

    INPUT = "InputError"
    SECURITY = "SecurityError"
    SYNTAX = "SyntaxError"
    RUNTIME = "RuntimeError"
    UNRESOLVED_SYMBOL = "UnresolvedSymbolError"
    TRANSPORT = "TransportError"


# Sandbox iframe permissions. Scripts run; everything else stays locked.
SANDBOX_FLAGS: tuple[str, ...] = ("allow-scripts",)

# Well-known slot the rewritten default export is assigned to.
ENTRY_SLOT = "window.__previewEntry__"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PreviewConfig:
    """
    Flat, read-only configuration for one pipeline run.

    Defaults mirror the production preview settings. The backend builds one
    from environment variables (backend/config.py); tests construct it
    directly.
    """

    max_code_size: int = 100_000  # bytes
    blocked_keywords: tuple[str, ...] = ("eval(", "Function(")
    max_render_time_ms: int = 5000
    debounce_ms: int = 1000
    retry_limit: int = 3
    max_stateful_calls: int = 10
    settle_delay_ms: int = 100
    runtime_cdn: str = "https://unpkg.com"
    enable_tailwind: bool = True


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceUnit:
    """Raw submitted component text. Immutable once submitted."""

    text: str
    byte_length: int
    content_hash: str

    @classmethod
    def from_text(cls, text: str) -> SourceUnit:
        encoded = text.encode("utf-8")
        return cls(
            text=text,
            byte_length=len(encoded),
            content_hash=hashlib.sha256(encoded).hexdigest(),
        )

    @property
    def short_hash(self) -> str:
        return self.content_hash[:16]


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportRef:
    """One import statement: the local names it binds and its module."""

    names: tuple[str, ...]
    source: str


@dataclass(frozen=True)
class AccessibilityReport:
    score: int = 100
    issues: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class PerformanceReport:
    has_memoization: bool = False
    has_optimization: bool = False
    has_lazy_loading: bool = False
    has_code_splitting: bool = False
    estimated_renders: int = 1
    potential_bottlenecks: tuple[str, ...] = ()


@dataclass(frozen=True)
class SecurityReport:
    risk_level: RiskLevel = "low"
    issues: tuple[str, ...] = ()
    suggestions: tuple[str, ...] = ()
    has_dynamic_code: bool = False
    has_html_injection: bool = False


@dataclass(frozen=True)
class AnalysisReport:
    """
    Structural facts extracted from a SourceUnit.

    Always produced, even for input the validator rejects. Analysis is a
    heuristic and never fails the way a parser would.
    """

    component_name: str
    component_type: ComponentType
    imports: tuple[ImportRef, ...]
    hooks: tuple[str, ...]
    lines_of_code: int
    complexity: Complexity
    accessibility: AccessibilityReport
    performance: PerformanceReport
    security: SecurityReport
    maintainability: int
    testability: int
    description: str
    has_state: bool = False
    has_effects: bool = False
    has_props: bool = False
    has_imports: bool = False
    has_exports: bool = False
    estimated_bundle_size: int = 0
    render_optimizations: tuple[str, ...] = ()

    @property
    def imported_names(self) -> list[str]:
        names: list[str] = []
        for imp in self.imports:
            names.extend(imp.names)
        return names

    def scores(self) -> dict[str, int]:
        """The numeric sub-scores, used for determinism checks and display."""
        return {
            "accessibility": self.accessibility.score,
            "maintainability": self.maintainability,
            "testability": self.testability,
        }

    def to_dict(self) -> dict[str, Any]:
        """camelCase dict for the JSON API."""
        return {
            "componentName": self.component_name,
            "componentType": self.component_type,
            "hasState": self.has_state,
            "hasEffects": self.has_effects,
            "hasProps": self.has_props,
            "linesOfCode": self.lines_of_code,
            "hasImports": self.has_imports,
            "hasExports": self.has_exports,
            "imports": [{"names": list(i.names), "source": i.source} for i in self.imports],
            "hooks": list(self.hooks),
            "complexity": self.complexity,
            "performance": {
                "hasMemoization": self.performance.has_memoization,
                "hasOptimization": self.performance.has_optimization,
                "hasLazyLoading": self.performance.has_lazy_loading,
                "hasCodeSplitting": self.performance.has_code_splitting,
                "estimatedRenders": self.performance.estimated_renders,
                "potentialBottlenecks": list(self.performance.potential_bottlenecks),
            },
            "accessibility": {
                "score": self.accessibility.score,
                "issues": list(self.accessibility.issues),
                "suggestions": list(self.accessibility.suggestions),
            },
            "security": {
                "riskLevel": self.security.risk_level,
                "issues": list(self.security.issues),
                "suggestions": list(self.security.suggestions),
            },
            "maintainability": self.maintainability,
            "testability": self.testability,
            "description": self.description,
            "estimatedBundleSize": self.estimated_bundle_size,
            "renderOptimization": list(self.render_optimizations),
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationIssue:
    kind: ErrorKind
    message: str


@dataclass
class ValidationResult:
    """Outcome of the validator. A value, never an exception."""

    is_valid: bool
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    partial_analysis: AnalysisReport | None = None

    @property
    def error(self) -> str | None:
        if not self.errors:
            return None
        return "; ".join(e.message for e in self.errors)

    @property
    def error_kind(self) -> ErrorKind | None:
        return self.errors[0].kind if self.errors else None


# ---------------------------------------------------------------------------
# Stubs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Stub:
    """A visible placeholder standing in for an unresolved symbol."""

    name: str
    origin: StubOrigin
    definition: str  # JS statement installing the placeholder


class StubRegistry:
    """
    Symbol name → Stub for one preview session.

    Insertion order is preserved so the emitted document is stable.
    Never share an instance between sessions.
    """

    def __init__(self) -> None:
        self._stubs: dict[str, Stub] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._stubs

    def __len__(self) -> int:
        return len(self._stubs)

    def __iter__(self):
        return iter(self._stubs.values())

    def get(self, name: str) -> Stub | None:
        return self._stubs.get(name)

    def add(self, stub: Stub) -> Stub:
        """Register a stub. The first registration of a name wins."""
        return self._stubs.setdefault(stub.name, stub)

    def names(self) -> list[str]:
        return list(self._stubs)


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransformResult:
    code: str
    diagnostics: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Sessions and documents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PreviewSession:
    """One preview request. Superseded, never mutated."""

    session_id: str
    version: int
    collaboration: bool
    code_hash: str
    generated_at: str

    def token(self) -> tuple[str, int]:
        return (self.session_id, self.version)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "version": self.version,
            "collaboration": self.collaboration,
            "codeHash": self.code_hash,
            "generatedAt": self.generated_at,
        }


@dataclass(frozen=True)
class PreviewDocument:
    """A self-contained renderable unit for the sandboxed iframe."""

    html: str
    component_name: str
    stub_names: tuple[str, ...]
    content_hash: str
    sandbox_flags: tuple[str, ...] = SANDBOX_FLAGS

    @property
    def sandbox_attribute(self) -> str:
        return " ".join(self.sandbox_flags)


# ---------------------------------------------------------------------------
# Lifecycle messages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorPayload:
    message: str
    stack: str | None = None
    component_stack: str | None = None
    filename: str | None = None
    lineno: int | None = None
    colno: int | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"message": self.message}
        extras = {
            "stack": self.stack,
            "componentStack": self.component_stack,
            "filename": self.filename,
            "lineno": self.lineno,
            "colno": self.colno,
        }
        out.update({k: v for k, v in extras.items() if v is not None})
        return out


@dataclass(frozen=True)
class LifecycleMessage:
    """Produced by the sandbox, consumed by the host that owns it."""

    type: MessageType
    session_id: str
    version: int | None = None
    component_name: str | None = None
    timestamp: str | None = None
    error: ErrorPayload | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "sessionId": self.session_id}
        if self.version is not None:
            out["version"] = self.version
        if self.type == "Ready":
            out["componentName"] = self.component_name
            out["timestamp"] = self.timestamp
        elif self.error is not None:
            out["error"] = self.error.to_dict()
        return out


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def now_iso() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
