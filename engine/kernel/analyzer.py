"""
Live Preview Kernel: Code Analyzer

Extracts structural facts from raw component source text.
Pure, synchronous, no IO. Regex heuristics only, no AST: the input is
often incomplete or malformed generated code that a real parser would
reject outright, and analysis must still produce a report.

Scoring tables follow the detailed analyzer variant:
  accessibility   100, -20 image without alt, -15 click without keyboard
                  or ARIA support, -10 clickable div/span
  maintainability 100, -20 over 100 lines, -30 more over 200 lines,
                  -15 more than 10 branches
  testability     100, -10 effects, -15 listener registration,
                  -20 more than 5 useState calls
All scores floor at 0.
"""

from __future__ import annotations

import re

from engine.kernel.types import (
    AccessibilityReport,
    AnalysisReport,
    Complexity,
    ComponentType,
    ImportRef,
    PerformanceReport,
    RiskLevel,
    SecurityReport,
    SourceUnit,
)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# Component name, in priority order. First match wins.
_NAME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"export\s+default\s+function\s+([A-Za-z_$][\w$]*)"),
    re.compile(r"\bfunction\s+([A-Za-z_$][\w$]*)"),
    re.compile(r"\bconst\s+([A-Za-z_$][\w$]*)\s*(?::[^=\n]+)?="),
    re.compile(r"export\s+default\s+(?!function\b|class\b)([A-Za-z_$][\w$]*)"),
    re.compile(r"\bclass\s+([A-Za-z_$][\w$]*)\s+extends\b"),
)
DEFAULT_COMPONENT_NAME = "App"

_CLASS_COMPONENT = re.compile(r"\bclass\s+[A-Za-z_$][\w$]*\s+extends\b")
_FUNCTION_KEYWORD = re.compile(r"\bfunction\b")

_IMPORT = re.compile(r"""\bimport\s+([\w$*{}\s,]+?)\s+from\s+['"]([^'"]+)['"]""")
_IMPORT_ALIAS = re.compile(r"\s+as\s+")

_HOOK = re.compile(r"\buse[A-Z][A-Za-z0-9]*")
_USE_STATE_CALL = re.compile(r"\buseState\b")
_STATE_PAIR = re.compile(r"const\s*\[\s*([A-Za-z_$][\w$]*)\s*,\s*(set[A-Z][\w$]*)\s*\]\s*=\s*(?:React\.)?useState\b")

_IMAGE_TAG = re.compile(r"<(?:img|Image)\b[^>]*>", re.DOTALL)
_ALT_ATTR = re.compile(r"\balt\s*=")
_CLICK_HANDLER = re.compile(r"\bonClick\b")
_KEY_HANDLER = re.compile(r"\bonKey(?:Down|Up|Press)\b")
_ARIA_LABEL = re.compile(r"\baria-label(?:ledby)?\b")
_CLICKABLE_CONTAINER = re.compile(r"<(?:div|span)\b[^>]*\bonClick\s*=", re.DOTALL)

_EMPTY_DEPS = re.compile(r",\s*\[\s*\]\s*\)")
_LIST_MAP = re.compile(r"\.map\s*\(")
_KEY_ATTR = re.compile(r"\bkey\s*=")
_INDEX_KEY = re.compile(r"\bkey\s*=\s*\{\s*(?:index|idx|i)\s*\}")
_CLASS_STALE_STATE = re.compile(r"this\.setState\(\s*\{[^}]*this\.state\.", re.DOTALL)

_BRANCH = re.compile(r"\b(?:if|else|switch)\b")

# Dynamic code execution primitives. Any match is a critical risk.
DYNAMIC_CODE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?<![\w$])eval\s*\("), "eval()"),
    (re.compile(r"(?<![\w$.])Function\s*\("), "Function()"),
    (re.compile(r"\bset(?:Timeout|Interval)\s*\(\s*['\"`]"), "string-based timer"),
)

# Unsanitized HTML injection sinks. Any match is a high risk.
HTML_SINK_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bdangerouslySetInnerHTML\b"), "dangerouslySetInnerHTML"),
    (re.compile(r"\binnerHTML\b"), "innerHTML"),
    (re.compile(r"\bouterHTML\b"), "outerHTML"),
    (re.compile(r"\bdocument\.write\s*\("), "document.write()"),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def analyze(source: SourceUnit) -> AnalysisReport:
    """
    Build the full AnalysisReport for a source unit.

    Deterministic: the same text always yields the same report.
    """
    code = source.text
    name = extract_component_name(code)
    imports = extract_imports(code)
    hooks = extract_hooks(code)
    loc = count_lines(code)

    return AnalysisReport(
        component_name=name,
        component_type=detect_component_type(code),
        imports=imports,
        hooks=hooks,
        lines_of_code=loc,
        complexity=classify_complexity(loc, len(hooks), len(imports)),
        accessibility=analyze_accessibility(code),
        performance=analyze_performance(code),
        security=analyze_security(code),
        maintainability=maintainability_score(code),
        testability=testability_score(code),
        description=describe_component(code, hooks, imports),
        has_state="useState" in code or "this.state" in code,
        has_effects="useEffect" in code,
        has_props=bool(re.search(r"\bprops\b|\(\s*\{", code)),
        has_imports=bool(imports) or bool(re.search(r"\bimport\b", code)),
        has_exports=bool(re.search(r"\bexport\b", code)),
        estimated_bundle_size=estimate_bundle_size(code, imports),
        render_optimizations=render_optimizations(code),
    )


def extract_component_name(code: str) -> str:
    for pattern in _NAME_PATTERNS:
        match = pattern.search(code)
        if match:
            return match.group(1)
    return DEFAULT_COMPONENT_NAME


def detect_component_type(code: str) -> ComponentType:
    if _CLASS_COMPONENT.search(code):
        return "class"
    if _FUNCTION_KEYWORD.search(code) or "=>" in code:
        return "functional"
    return "unknown"


def extract_imports(code: str) -> tuple[ImportRef, ...]:
    """
    Scan `import <specifier> from '<module>'` statements.

    The specifier is split on commas. Braces, `type` modifiers and aliases are
    reduced to the local names the statement binds:
      import React, { useState as useLocal } from 'react'
        → ImportRef(names=("React", "useLocal"), source="react")
    """
    imports: list[ImportRef] = []
    for match in _IMPORT.finditer(code):
        names = _bound_names(match.group(1))
        imports.append(ImportRef(names=tuple(names), source=match.group(2)))
    return tuple(imports)


def extract_hooks(code: str) -> tuple[str, ...]:
    """Stateful calls following the use<Capitalized> convention, deduplicated."""
    return tuple(dict.fromkeys(_HOOK.findall(code)))


def count_lines(code: str) -> int:
    return len(code.split("\n"))


def classify_complexity(lines: int, hooks: int, imports: int) -> Complexity:
    """Thresholds are strict greater-than. First matching rule wins."""
    if lines > 100 or hooks > 5 or imports > 10:
        return "high"
    if lines > 50 or hooks > 3 or imports > 5:
        return "medium"
    return "low"


def analyze_accessibility(code: str) -> AccessibilityReport:
    issues: list[str] = []
    suggestions: list[str] = []
    score = 100

    if any(not _ALT_ATTR.search(tag) for tag in _IMAGE_TAG.findall(code)):
        score -= 20
        issues.append("Missing alt attribute on images")
        suggestions.append("Add alt attributes to all images for screen readers")

    has_click = bool(_CLICK_HANDLER.search(code))
    if has_click and not _KEY_HANDLER.search(code) and not _ARIA_LABEL.search(code):
        score -= 15
        issues.append("Missing keyboard support for interactive elements")
        suggestions.append("Add onKeyDown handlers or ARIA labels to clickable elements")

    if _CLICKABLE_CONTAINER.search(code):
        score -= 10
        issues.append("Clickable non-semantic container")
        suggestions.append("Use semantic HTML elements (button, link) instead of div with onClick")

    return AccessibilityReport(score=max(0, score), issues=tuple(issues), suggestions=tuple(suggestions))


def analyze_performance(code: str) -> PerformanceReport:
    memo = any(token in code for token in ("React.memo", "useMemo", "useCallback"))
    lazy = "React.lazy" in code or "Suspense" in code
    return PerformanceReport(
        has_memoization=memo,
        has_optimization=memo or "shouldComponentUpdate" in code or "PureComponent" in code,
        has_lazy_loading=lazy,
        has_code_splitting="React.lazy" in code or bool(re.search(r"\bimport\s*\(", code)),
        estimated_renders=_estimate_renders(code),
        potential_bottlenecks=tuple(_detect_bottlenecks(code)),
    )


def analyze_security(code: str) -> SecurityReport:
    issues: list[str] = []
    suggestions: list[str] = []
    risk: RiskLevel = "low"

    sinks = [label for pattern, label in HTML_SINK_PATTERNS if pattern.search(code)]
    if sinks:
        risk = "high"
        for label in sinks:
            issues.append(f"Using {label} - potential XSS risk")
        suggestions.append("Sanitize HTML content before injecting it into the page")

    dynamic = dynamic_code_usages(code)
    if dynamic:
        risk = "critical"
        for label in dynamic:
            issues.append(f"Using {label} - dynamic code execution")
        suggestions.append("Avoid eval() and Function() - use plain functions instead")

    return SecurityReport(
        risk_level=risk,
        issues=tuple(issues),
        suggestions=tuple(suggestions),
        has_dynamic_code=bool(dynamic),
        has_html_injection=bool(sinks),
    )


def dynamic_code_usages(code: str) -> list[str]:
    return [label for pattern, label in DYNAMIC_CODE_PATTERNS if pattern.search(code)]


def maintainability_score(code: str) -> int:
    score = 100
    lines = count_lines(code)
    if lines > 100:
        score -= 20
    if lines > 200:
        score -= 30
    if len(_BRANCH.findall(code)) > 10:
        score -= 15
    return max(0, score)


def testability_score(code: str) -> int:
    score = 100
    if "useEffect" in code:
        score -= 10
    if "addEventListener" in code:
        score -= 15
    if len(_USE_STATE_CALL.findall(code)) > 5:
        score -= 20
    return max(0, score)


def describe_component(code: str, hooks: tuple[str, ...], imports: tuple[ImportRef, ...]) -> str:
    parts: list[str] = []
    if hooks:
        parts.append(f"Uses {', '.join(hooks)} hooks")
    if imports:
        parts.append(f"Imports from {', '.join(imp.source for imp in imports)}")
    if "className" in code:
        parts.append("Uses CSS class styling")
    if "onClick" in code or "onSubmit" in code:
        parts.append("Has interactive elements")
    return ". ".join(parts) if parts else "A React component"


def estimate_bundle_size(code: str, imports: tuple[ImportRef, ...]) -> int:
    size = len(code) * 0.1
    for imp in imports:
        if "react" in imp.source:
            size += 50
        elif "@" in imp.source:
            size += 30
        else:
            size += 20
    return int(size + 0.5)


def render_optimizations(code: str) -> tuple[str, ...]:
    found: list[str] = []
    if "React.memo" in code:
        found.append("Component memoization")
    if "useMemo" in code:
        found.append("Value memoization")
    if "useCallback" in code:
        found.append("Function memoization")
    if "shouldComponentUpdate" in code:
        found.append("Custom render optimization")
    return tuple(found)


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _bound_names(spec: str) -> list[str]:
    spec = re.sub(r"^\s*type\s+", "", spec)
    names: list[str] = []
    for part in re.split(r"[{},]", spec):
        part = part.strip()
        if not part:
            continue
        part = re.sub(r"^type\s+", "", part)
        part = _IMPORT_ALIAS.split(part)[-1].strip()
        if part and part != "*":
            names.append(part)
    return names


def _estimate_renders(code: str) -> int:
    count = 1
    if "useState" in code:
        count += 2
    if "useEffect" in code:
        count += 1
    if "useContext" in code:
        count += 1
    return count


def _detect_bottlenecks(code: str) -> list[str]:
    bottlenecks: list[str] = []

    stale = _CLASS_STALE_STATE.search(code) is not None
    for value, setter in _STATE_PAIR.findall(code):
        # setCount(count + 1) reads the value captured by the closure
        if re.search(rf"\b{re.escape(setter)}\(\s*{re.escape(value)}\b", code):
            stale = True
            break
    if stale:
        bottlenecks.append("Potential stale closure in state updates")

    if "useEffect" in code and _EMPTY_DEPS.search(code):
        bottlenecks.append("Empty dependency array might miss dependencies")

    if _LIST_MAP.search(code):
        if not _KEY_ATTR.search(code):
            bottlenecks.append("Missing key prop in list rendering")
        elif _INDEX_KEY.search(code):
            bottlenecks.append("Array index used as list key")

    return bottlenecks
