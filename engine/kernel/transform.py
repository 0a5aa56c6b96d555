"""
Live Preview Kernel: Transform Pipeline

Turns submitted component source into plain script the sandbox can hand
to its markup compiler. Type annotations, module syntax and the default
export are rewritten here; markup itself is compiled inside the sandbox.

RegexTransform applies its rules in a fixed order:
  1. strip interface and type alias declarations
  2. strip function and method return types
  3. strip arrow function return types
  4. strip parameter types
  5. strip residual binding annotations (`const x: T =`, `useState<T>(`)
  6. remove import statements
  7. rewrite `export default` to assign the entry slot
  8. remove remaining `export` keywords

This is a heuristic, not a TypeScript parser. Generic type parameters
that look like markup (`<T,>(x: T) => x`) are not handled.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from engine.kernel.types import ENTRY_SLOT, TransformResult

logger = logging.getLogger(__name__)


class Transform(Protocol):
    def apply(self, text: str) -> TransformResult: ...


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

_INTERFACE_HEAD = re.compile(r"^[ \t]*(?:export\s+)?(?:declare\s+)?interface\s+[\w$]+[^{]*\{", re.MULTILINE)
_TYPE_ALIAS_HEAD = re.compile(r"^[ \t]*(?:export\s+)?(?:declare\s+)?type\s+[\w$]+\s*(?:<[^=]*>)?\s*=", re.MULTILINE)

_RETURN_TYPE = re.compile(r"\)\s*:\s*[A-Za-z_$][^{};=()]*?(?=\s*\{)")
_ARROW_RETURN_TYPE = re.compile(r"\)\s*:\s*[A-Za-z_$][^{};=()]*?\s*=>")
_PARAM_LIST = re.compile(r"\(((?:[^()]|\([^()]*\))*)\)(?=\s*(?:=>|\{))")
_PARAM_NAME = re.compile(r"^(\s*(?:\.\.\.)?[A-Za-z_$][\w$]*)\s*\??\s*:")

_BINDING_ANNOTATION = re.compile(r"\b((?:const|let|var)\s+[A-Za-z_$][\w$]*)\s*:\s*[^=;\n]+?(?=\s*=[^=>])")
_DESTRUCTURED_ANNOTATION = re.compile(r"\b((?:const|let|var)\s+[{\[][^=;]*?[}\]])\s*:\s*[^=;\n]+?(?=\s*=[^=>])")
_HOOK_GENERIC = re.compile(r"\b(use[A-Z][\w$]*)\s*<[^<>()=;]*(?:<[^<>()=;]*>)?[^<>()=;]*>\s*\(")

_IMPORT_FROM = re.compile(r"^[ \t]*import\b[^'\"]*?\bfrom\s*['\"][^'\"]*['\"][ \t]*;?[ \t]*\n?", re.MULTILINE)
_IMPORT_BARE = re.compile(r"^[ \t]*import\s*['\"][^'\"]*['\"][ \t]*;?[ \t]*\n?", re.MULTILINE)

_EXPORT_DEFAULT = re.compile(r"\bexport\s+default\s+")
_EXPORT_LIST = re.compile(r"^[ \t]*export\s*(?:\*|\{[^}]*\})\s*(?:from\s*['\"][^'\"]*['\"])?[ \t]*;?[ \t]*\n?", re.MULTILINE)
_EXPORT_KEYWORD = re.compile(r"\bexport\s+(?=(?:async\s+)?(?:const|let|var|function|class)\b)")

_OPEN_TAG = re.compile(r"<([A-Za-z][\w.]*)")
_CLOSE_TAG = re.compile(r"</([A-Za-z][\w.]*)\s*>")

VOID_ELEMENTS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "track", "wbr"}
)


# ---------------------------------------------------------------------------
# RegexTransform
# ---------------------------------------------------------------------------


class RegexTransform:
    """Ordered regex rewrites. Stateless; one instance can serve every request."""

    def __init__(self, entry_slot: str = ENTRY_SLOT) -> None:
        self.entry_slot = entry_slot
        self.rules = (
            strip_type_declarations,
            strip_return_types,
            strip_arrow_return_types,
            strip_parameter_types,
            strip_binding_annotations,
            remove_imports,
            self.rewrite_default_export,
            remove_exports,
        )

    def apply(self, text: str) -> TransformResult:
        code = text
        for rule in self.rules:
            code = rule(code)
        diagnostics = markup_diagnostics(code)
        if diagnostics:
            logger.debug("transform: %d markup diagnostic(s)", len(diagnostics))
        return TransformResult(code=code, diagnostics=tuple(diagnostics))

    def rewrite_default_export(self, code: str) -> str:
        return _EXPORT_DEFAULT.sub(f"{self.entry_slot} = ", code)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def strip_type_declarations(code: str) -> str:
    """Remove `interface X {...}` blocks (nested braces included) and `type X = ...;` aliases."""
    while True:
        match = _INTERFACE_HEAD.search(code)
        if not match:
            break
        end = _matching_brace(code, match.end() - 1)
        code = code[: match.start()] + code[end + 1 :].lstrip(" \t;")

    while True:
        match = _TYPE_ALIAS_HEAD.search(code)
        if not match:
            break
        end = _alias_end(code, match.end())
        code = code[: match.start()] + code[end:]

    return code


def strip_return_types(code: str) -> str:
    return _RETURN_TYPE.sub(")", code)


def strip_arrow_return_types(code: str) -> str:
    return _ARROW_RETURN_TYPE.sub(") =>", code)


def strip_parameter_types(code: str) -> str:
    return _PARAM_LIST.sub(lambda m: "(" + _strip_params(m.group(1)) + ")", code)


def strip_binding_annotations(code: str) -> str:
    code = _BINDING_ANNOTATION.sub(r"\1", code)
    code = _DESTRUCTURED_ANNOTATION.sub(r"\1", code)
    return _HOOK_GENERIC.sub(r"\1(", code)


def remove_imports(code: str) -> str:
    code = _IMPORT_FROM.sub("", code)
    return _IMPORT_BARE.sub("", code)


def remove_exports(code: str) -> str:
    code = _EXPORT_LIST.sub("", code)
    return _EXPORT_KEYWORD.sub("", code)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def markup_diagnostics(code: str) -> list[str]:
    """
    Heuristic markup balance check.

    Counts opening and closing tags per name; self-closing and void
    elements are skipped. Findings are warnings, the document is still
    built and the in-sandbox compiler has the final word.
    """
    opened: dict[str, int] = {}
    closed: dict[str, int] = {}

    for match in _OPEN_TAG.finditer(code):
        if match.start() > 0 and (code[match.start() - 1].isalnum() or code[match.start() - 1] in "_$"):
            continue  # comparison or generic, not markup
        name = match.group(1)
        end = _tag_end(code, match.end())
        if end is None:
            continue
        if code[end - 1] == "/" or name.lower() in VOID_ELEMENTS:
            continue
        opened[name] = opened.get(name, 0) + 1

    for match in _CLOSE_TAG.finditer(code):
        closed[match.group(1)] = closed.get(match.group(1), 0) + 1

    diagnostics: list[str] = []
    for name, count in opened.items():
        closes = closed.get(name, 0)
        if count > closes:
            diagnostics.append(f"Possibly unclosed <{name}> tag ({count} opened, {closes} closed)")
    for name, closes in closed.items():
        if closes > opened.get(name, 0):
            diagnostics.append(f"Closing </{name}> without matching opening tag")
    return diagnostics


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _strip_params(params: str) -> str:
    items = _split_top_level(params)
    return ",".join(_strip_param(item) for item in items)


def _strip_param(item: str) -> str:
    stripped = item.lstrip()
    if stripped and stripped[0] in "{[":
        # destructured: `{ a, b }: Props`
        offset = len(item) - len(stripped)
        close = _matching_brace(item, offset)
        head, rest = item[: close + 1], item[close + 1 :]
        if rest.lstrip().startswith(":"):
            return head + _drop_type(rest)
        return item

    match = _PARAM_NAME.match(item)
    if not match:
        return item
    return match.group(1) + _drop_type(item[match.end() - 1 :])


def _drop_type(rest: str) -> str:
    """`: T = default` -> ` = default`; `: T` -> ``."""
    depth = 0
    for i, ch in enumerate(rest):
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>" and not (ch == ">" and i > 0 and rest[i - 1] == "="):
            depth -= 1
        elif ch == "=" and depth == 0 and rest[i + 1 : i + 2] != ">":
            return " " + rest[i:]
    return ""


def _split_top_level(text: str) -> list[str]:
    items: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(text):
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>" and not (ch == ">" and i > 0 and text[i - 1] == "="):
            depth -= 1
        elif ch == "," and depth == 0:
            items.append(text[start:i])
            start = i + 1
    items.append(text[start:])
    return items


def _matching_brace(code: str, open_index: int) -> int:
    pairs = {"{": "}", "[": "]", "(": ")"}
    opener = code[open_index]
    closer = pairs[opener]
    depth = 0
    for i in range(open_index, len(code)):
        if code[i] == opener:
            depth += 1
        elif code[i] == closer:
            depth -= 1
            if depth == 0:
                return i
    return len(code) - 1


def _alias_end(code: str, start: int) -> int:
    """End of a type alias body: `;` or newline at bracket depth 0."""
    depth = 0
    i = start
    while i < len(code):
        ch = code[i]
        if ch in "({[<":
            depth += 1
        elif ch in ")}]>" and not (ch == ">" and code[i - 1] == "="):
            depth -= 1
        elif depth <= 0 and ch == ";":
            return i + 1
        elif depth <= 0 and ch == "\n" and code[start:i].strip():
            # union continued on the next line: `type A =\n  | "x"\n  | "y"`
            if code[i + 1 :].lstrip(" \t")[:1] not in ("|", "&"):
                return i + 1
        i += 1
    return len(code)


def _tag_end(code: str, start: int) -> int | None:
    """Index of the `>` closing a tag opened before `start`, skipping `{...}` attribute values."""
    depth = 0
    quote: str | None = None
    for i in range(start, len(code)):
        ch = code[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in "\"'`":
            quote = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == ">" and depth == 0:
            return i
        elif ch == "<" and depth == 0:
            return None
    return None
