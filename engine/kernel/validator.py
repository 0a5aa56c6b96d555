"""
Live Preview Kernel: Security / Quality Validator

Gates submitted source before anything is built from it.

Hard errors reject the input, no document is built:
  - empty code                               InputError
  - byte length over config.max_code_size    InputError
  - dynamic code execution / blocked keyword SecurityError

Soft warnings pass through with the preview:
  - unsanitized HTML sinks
  - missing accessibility attributes
  - deprecated lifecycle methods
  - stateful call count above config.max_stateful_calls

The validator never raises. It always returns a ValidationResult that
carries the analysis computed so far, so callers can render diagnostics.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from engine.kernel.analyzer import dynamic_code_usages
from engine.kernel.types import (
    AnalysisReport,
    ErrorKind,
    PreviewConfig,
    SourceUnit,
    ValidationIssue,
    ValidationResult,
)

EMPTY_CODE_MESSAGE = "Empty code provided"

DEPRECATED_LIFECYCLE = ("componentWillMount", "componentWillReceiveProps", "componentWillUpdate")

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate(source: SourceUnit, analysis: AnalysisReport, config: PreviewConfig) -> ValidationResult:
    """
    Validate a source unit against size, security and quality rules.

    Hard checks run first and accumulate; an empty input short-circuits
    since nothing else can be said about it.
    """
    errors: list[ValidationIssue] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    if not source.text.strip():
        return ValidationResult(
            is_valid=False,
            errors=[ValidationIssue(ErrorKind.INPUT, EMPTY_CODE_MESSAGE)],
            suggestions=["Please provide valid React component code"],
            partial_analysis=analysis,
        )

    for check in _HARD_CHECKS:
        errors.extend(check(source, config))

    for check in _SOFT_CHECKS:
        warnings.extend(check(source, analysis, config))

    suggestions.extend(_syntax_suggestions(source.text))

    if errors:
        suggestions = [_fix_hint(e) for e in errors] + warnings + suggestions
    else:
        suggestions = warnings + suggestions

    return ValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        suggestions=list(dict.fromkeys(suggestions)),
        partial_analysis=analysis,
    )


def size_limit_message(config: PreviewConfig) -> str:
    limit = config.max_code_size
    if limit % 1000 == 0:
        return f"Code too large (max {limit // 1000}KB)"
    return f"Code too large (max {limit} bytes)"


def contains_blocked_keyword(code: str, keywords: tuple[str, ...]) -> list[str]:
    """Return the configured blocked keywords that appear in code."""
    return [kw for kw in keywords if _keyword_pattern(kw).search(code)]


# ---------------------------------------------------------------------------
# Hard checks
# ---------------------------------------------------------------------------


def _check_size(source: SourceUnit, config: PreviewConfig) -> list[ValidationIssue]:
    if source.byte_length > config.max_code_size:
        return [ValidationIssue(ErrorKind.INPUT, size_limit_message(config))]
    return []


def _check_security(source: SourceUnit, config: PreviewConfig) -> list[ValidationIssue]:
    found = dynamic_code_usages(source.text)
    for kw in contains_blocked_keyword(source.text, config.blocked_keywords):
        label = kw.rstrip("(") + "()" if kw.endswith("(") else kw
        if label not in found:
            found.append(label)
    if not found:
        return []
    return [ValidationIssue(ErrorKind.SECURITY, f"Security risk: {', '.join(found)} usage detected")]


# ---------------------------------------------------------------------------
# Soft checks
# ---------------------------------------------------------------------------


def _warn_html_sinks(source: SourceUnit, analysis: AnalysisReport, config: PreviewConfig) -> list[str]:
    if analysis.security.has_html_injection:
        return ["Potential XSS risk with unsanitized HTML injection"]
    return []


def _warn_accessibility(source: SourceUnit, analysis: AnalysisReport, config: PreviewConfig) -> list[str]:
    warnings: list[str] = []
    issues = analysis.accessibility.issues
    if "Missing alt attribute on images" in issues:
        warnings.append("Missing alt attributes on images")
    if "Missing keyboard support for interactive elements" in issues:
        warnings.append("Interactive elements should have keyboard support")
    return warnings


def _warn_deprecated(source: SourceUnit, analysis: AnalysisReport, config: PreviewConfig) -> list[str]:
    found = [name for name in DEPRECATED_LIFECYCLE if re.search(rf"\b{name}\b", source.text)]
    if found:
        return [f"Deprecated lifecycle methods detected: {', '.join(found)}"]
    return []


def _warn_stateful_calls(source: SourceUnit, analysis: AnalysisReport, config: PreviewConfig) -> list[str]:
    count = len(re.findall(r"\buse(?:State|Effect)\b", source.text))
    if count > config.max_stateful_calls:
        return [f"High number of state/effect hooks ({count}) may impact performance"]
    return []


_HARD_CHECKS: tuple[Callable[[SourceUnit, PreviewConfig], list[ValidationIssue]], ...] = (
    _check_size,
    _check_security,
)

_SOFT_CHECKS: tuple[Callable[[SourceUnit, AnalysisReport, PreviewConfig], list[str]], ...] = (
    _warn_html_sinks,
    _warn_accessibility,
    _warn_deprecated,
    _warn_stateful_calls,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _syntax_suggestions(code: str) -> list[str]:
    suggestions: list[str] = []
    if "ReactDOM.render" in code and "createRoot" not in code:
        suggestions.append("Consider using React 18 createRoot instead of ReactDOM.render")
    if "addEventListener" in code and "removeEventListener" not in code:
        suggestions.append("Consider cleaning up event listeners to prevent memory leaks")
    if "setState" in code and "prevState" in code:
        suggestions.append("Consider using functional updates for state to avoid stale closures")
    return suggestions


def _fix_hint(issue: ValidationIssue) -> str:
    if issue.kind is ErrorKind.SECURITY:
        return "Remove dynamic code execution (eval, Function) from the component"
    return "Split the component into smaller files"


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # "eval(" matches "eval (" and "window.eval(" but not "medieval("
    if keyword.endswith("("):
        return re.compile(rf"(?<![\w$]){re.escape(keyword[:-1])}\s*\(")
    return re.compile(rf"(?<![\w$]){re.escape(keyword)}(?![\w$])")
