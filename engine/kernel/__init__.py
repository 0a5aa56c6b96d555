"""
Live Preview Kernel: the pure engine.

Components:
  analyzer   — source → AnalysisReport (heuristic, never fails)
  validator  — hard errors (size, dynamic code) and soft warnings
  stubs      — placeholders for unresolved component symbols
  transform  — type/module syntax stripping, default export rewrite
  sandbox    — self-contained iframe document with the Ready/Error handshake
  messages   — lifecycle message parsing and per-session bus
  pipeline   — analyze → validate → stubs → transform → document
"""

from engine.kernel.analyzer import analyze
from engine.kernel.messages import MessageBus, parse_message
from engine.kernel.pipeline import PreviewResult, build_preview
from engine.kernel.sandbox import build_document
from engine.kernel.stubs import StubResolver, SymbolResolver, symbol_from_error, synthesize_stubs
from engine.kernel.transform import RegexTransform, Transform
from engine.kernel.types import PreviewConfig, SourceUnit, StubRegistry
from engine.kernel.validator import validate

__all__ = [
    "analyze",
    "validate",
    "synthesize_stubs",
    "symbol_from_error",
    "StubResolver",
    "SymbolResolver",
    "RegexTransform",
    "Transform",
    "build_document",
    "parse_message",
    "MessageBus",
    "build_preview",
    "PreviewResult",
    "PreviewConfig",
    "SourceUnit",
    "StubRegistry",
]
