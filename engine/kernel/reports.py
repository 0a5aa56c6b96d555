"""
Live Preview Kernel: Derived Reports

Secondary reports shipped with a successful preview as `additionalData`:
code metrics, prioritized suggestions, optimization tips, and the
accessibility / performance / security summaries shown by the host.

Everything here is computed from the source text and the AnalysisReport.
No IO, no clock.
"""

from __future__ import annotations

from typing import Any

from engine.kernel.types import AnalysisReport, SourceUnit


def build_additional_data(source: SourceUnit, analysis: AnalysisReport) -> dict[str, Any]:
    code = source.text
    return {
        "codeMetrics": code_metrics(code),
        "suggestions": code_suggestions(analysis),
        "optimizationTips": optimization_tips(code, analysis),
        "accessibilityReport": accessibility_report(analysis),
        "performanceReport": performance_report(code, analysis),
        "securityReport": security_report(analysis),
    }


def code_metrics(code: str) -> dict[str, Any]:
    lines = code.split("\n")
    non_empty = [line for line in lines if line.strip()]
    comments = [line for line in non_empty if line.strip().startswith(("//", "/*", "*"))]
    total_chars = sum(len(line) for line in non_empty)

    return {
        "totalLines": len(lines),
        "nonEmptyLines": len(non_empty),
        "commentLines": len(comments),
        "codeLines": len(non_empty) - len(comments),
        "commentRatio": round(len(comments) / len(non_empty), 3) if non_empty else 0.0,
        "averageLineLength": round(total_chars / len(non_empty), 1) if non_empty else 0.0,
    }


def code_suggestions(analysis: AnalysisReport) -> list[dict[str, Any]]:
    suggestions: list[dict[str, Any]] = []

    if analysis.performance.potential_bottlenecks:
        suggestions.append(
            {
                "category": "performance",
                "priority": "high",
                "message": "Performance optimizations recommended",
                "details": list(analysis.performance.potential_bottlenecks),
            }
        )

    if analysis.accessibility.issues:
        suggestions.append(
            {
                "category": "accessibility",
                "priority": "medium",
                "message": "Accessibility improvements needed",
                "details": list(analysis.accessibility.issues),
            }
        )

    if analysis.security.issues:
        suggestions.append(
            {
                "category": "security",
                "priority": "high",
                "message": "Security concerns detected",
                "details": list(analysis.security.issues),
            }
        )

    return suggestions


def optimization_tips(code: str, analysis: AnalysisReport) -> list[str]:
    tips: list[str] = []
    if not analysis.performance.has_memoization and "useState" in code:
        tips.append("Consider using React.memo for component memoization")
    if "useEffect" in code and "useCallback" not in code:
        tips.append("Consider using useCallback to prevent unnecessary re-renders")
    if "Missing key prop in list rendering" in analysis.performance.potential_bottlenecks:
        tips.append("Add key props to list items for better performance")
    return tips


def accessibility_report(analysis: AnalysisReport) -> dict[str, Any]:
    return {
        "score": analysis.accessibility.score,
        "issues": list(analysis.accessibility.issues),
        "recommendations": list(analysis.accessibility.suggestions),
    }


def performance_report(code: str, analysis: AnalysisReport) -> dict[str, Any]:
    score = 100
    issues: list[str] = []
    recommendations: list[str] = []

    if code.count("useState") > 5:
        score -= 20
        issues.append("High number of state updates may cause performance issues")
        recommendations.append("Consider using useReducer for complex state management")

    if "Empty dependency array might miss dependencies" in analysis.performance.potential_bottlenecks:
        score -= 10
        issues.append("Empty dependency arrays may miss required dependencies")
        recommendations.append("Review useEffect dependencies carefully")

    return {"score": max(0, score), "issues": issues, "recommendations": recommendations}


def security_report(analysis: AnalysisReport) -> dict[str, Any]:
    return {
        "riskLevel": analysis.security.risk_level,
        "issues": list(analysis.security.issues),
        "recommendations": list(analysis.security.suggestions),
    }
