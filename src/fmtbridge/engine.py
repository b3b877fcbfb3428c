"""Formatting engine boundary.

The layout algorithm itself is an opaque collaborator behind `NativeEngine`.
`TemplateEngine` is the built-in engine: it does not re-layout code, it only
normalizes line endings and the trailing newline, and hands the parts that
belong to the host (tagged template literals, Tailwind class lists) to the
engine callbacks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from typing import Protocol

from fmtbridge.delegate import EngineCallbacks, ExternalDelegate
from fmtbridge.diagnostics import Diagnostic
from fmtbridge.exceptions import DelegateError, DiagnosticsError
from fmtbridge.json_types import JSONObject
from fmtbridge.options import CanonicalFormatOptions
from fmtbridge.strategy import FileStrategy

logger = logging.getLogger(__name__)

# Tag expression -> host parser name for embedded code.
_EMBEDDED_TAGS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(?:^|[^\w.$])(css|keyframes|createGlobalStyle)\s*$"), "css"),
    (re.compile(r"(?:^|[^\w$])styled(?:\.\w+|\([^()]*\))(?:\.attrs\([^()]*\))?\s*$"), "css"),
    (re.compile(r"(?:^|[^\w.$])(graphql|gql)\s*$"), "graphql"),
    (re.compile(r"(?:^|[^\w.$])html\s*$"), "html"),
    (re.compile(r"(?:^|[^\w.$])(markdown|md)\s*$"), "markdown"),
)
_DEFAULT_CLASS_ATTRIBUTES = ("class", "className")
_TAG_LOOKBEHIND = 80


@dataclass(frozen=True)
class TemplateLiteral:
    start: int
    end: int
    tag: str | None
    has_substitutions: bool

    @property
    def content_span(self) -> tuple[int, int]:
        return self.start + 1, self.end - 1


class NativeEngine(Protocol):
    def format(
        self,
        source_text: str,
        strategy: FileStrategy,
        options: CanonicalFormatOptions,
        callbacks: EngineCallbacks,
    ) -> str:
        """Return formatted text or raise `DiagnosticsError` anchored in source_text."""
        ...


def _skip_string(text: str, index: int, quote: str) -> int:
    index += 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == quote or char == "\n":
            return index + 1
        index += 1
    return index


def _skip_template(text: str, index: int, path: str) -> tuple[int, bool]:
    """Return the index after the closing backtick and whether `${` occurred."""
    start = index
    index += 1
    substitutions = False
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "`":
            return index + 1, substitutions
        if char == "$" and text.startswith("${", index):
            substitutions = True
            index = _skip_substitution(text, index + 2, path)
            continue
        index += 1
    raise DiagnosticsError(
        [Diagnostic.error("Unterminated template literal").with_span(path, start, len(text))]
    )


def _skip_substitution(text: str, index: int, path: str) -> int:
    depth = 1
    while index < len(text):
        char = text[index]
        if char in "'\"":
            index = _skip_string(text, index, char)
            continue
        if char == "`":
            index, _ = _skip_template(text, index, path)
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
        index += 1
    return index


def scan_template_literals(text: str, path: str) -> list[TemplateLiteral]:
    """Find top-level template literals, skipping strings and comments."""
    found: list[TemplateLiteral] = []
    index = 0
    while index < len(text):
        char = text[index]
        if char in "'\"":
            index = _skip_string(text, index, char)
        elif text.startswith("//", index):
            newline = text.find("\n", index)
            index = len(text) if newline < 0 else newline
        elif text.startswith("/*", index):
            close = text.find("*/", index + 2)
            index = len(text) if close < 0 else close + 2
        elif char == "`":
            end, substitutions = _skip_template(text, index, path)
            found.append(
                TemplateLiteral(
                    start=index,
                    end=end,
                    tag=_embedded_parser(text[max(0, index - _TAG_LOOKBEHIND) : index]),
                    has_substitutions=substitutions,
                )
            )
            index = end
        else:
            index += 1
    return found


def _embedded_parser(prefix: str) -> str | None:
    for pattern, parser_name in _EMBEDDED_TAGS:
        if pattern.search(prefix):
            return parser_name
    return None


def _line_indent(text: str, offset: int) -> str:
    line_start = text.rfind("\n", 0, offset) + 1
    line = text[line_start:offset]
    return line[: len(line) - len(line.lstrip(" \t"))]


def _reindent(formatted: str, base_indent: str, unit: str) -> str:
    body = formatted.strip("\n")
    if "\n" not in body and "\n" not in formatted:
        return body
    lines = [f"{base_indent}{unit}{line}" if line.strip() else "" for line in body.split("\n")]
    return "\n" + "\n".join(lines) + "\n" + base_indent


class TemplateEngine:
    def format(
        self,
        source_text: str,
        strategy: FileStrategy,
        options: CanonicalFormatOptions,
        callbacks: EngineCallbacks,
    ) -> str:
        literals = scan_template_literals(source_text, strategy.path)
        edits: list[tuple[int, int, str]] = []
        for literal in literals:
            if literal.tag is None or literal.has_substitutions:
                continue
            start, end = literal.content_span
            content = source_text[start:end]
            formatted = callbacks.embedded(literal.tag, content)
            if formatted == content:
                continue
            replacement = _reindent(
                formatted, _line_indent(source_text, literal.start), options.indent_unit
            )
            edits.append((start, end, replacement))
        if callbacks.sorts_classes and strategy.has_jsx:
            edits.extend(self._class_edits(source_text, options, callbacks, literals))
        text = _apply_edits(source_text, edits)
        return _finish_lines(text, options)

    def _class_edits(
        self,
        source_text: str,
        options: CanonicalFormatOptions,
        callbacks: EngineCallbacks,
        literals: list[TemplateLiteral],
    ) -> list[tuple[int, int, str]]:
        tailwind = options.tailwindcss
        attributes = _DEFAULT_CLASS_ATTRIBUTES + (tailwind.attributes if tailwind else ())
        functions = tailwind.functions if tailwind else ()
        names = "|".join(re.escape(name) for name in attributes)
        patterns = [re.compile(rf"\b(?:{names})=(?P<q>[\"'])(?P<value>[^\"'\n]*)(?P=q)")]
        if functions:
            called = "|".join(re.escape(name) for name in functions)
            patterns.append(
                re.compile(rf"\b(?:{called})\(\s*(?P<q>[\"'])(?P<value>[^\"'\n]*)(?P=q)")
            )
        edits: list[tuple[int, int, str]] = []
        for pattern in patterns:
            for match in pattern.finditer(source_text):
                start, end = match.span("value")
                if any(item.start <= start < item.end for item in literals):
                    continue
                classes = match.group("value").split()
                if len(classes) < 2:
                    continue
                ordered = callbacks.sort_classes(classes)
                if ordered != classes:
                    edits.append((start, end, " ".join(ordered)))
        return edits


def _apply_edits(text: str, edits: list[tuple[int, int, str]]) -> str:
    if not edits:
        return text
    pieces: list[str] = []
    cursor = 0
    for start, end, replacement in sorted(edits):
        if start < cursor:
            continue
        pieces.append(text[cursor:start])
        pieces.append(replacement)
        cursor = end
    pieces.append(text[cursor:])
    return "".join(pieces)


def _finish_lines(text: str, options: CanonicalFormatOptions) -> str:
    unified = text.replace("\r\n", "\n").replace("\r", "\n").rstrip("\n")
    if not unified:
        return ""
    return (unified + "\n").replace("\n", options.line_ending.text)


@dataclass(frozen=True)
class FormatResult:
    code: str
    original: str
    diagnostics: tuple[Diagnostic, ...] = ()
    failed: bool = False

    @property
    def changed(self) -> bool:
        return self.code != self.original


@dataclass
class SourceFormatter:
    engine: NativeEngine = field(default_factory=TemplateEngine)
    delegate: ExternalDelegate | None = None

    def with_external_delegate(self, delegate: ExternalDelegate | None) -> "SourceFormatter":
        self.delegate = delegate
        return self

    def format(
        self,
        strategy: FileStrategy,
        source_text: str,
        options: CanonicalFormatOptions,
        *,
        host_options: JSONObject,
    ) -> FormatResult:
        if strategy.is_external:
            return self._format_external(strategy, source_text, host_options)
        sink: list[Diagnostic] = []
        if self.delegate is not None:
            callbacks = self.delegate.callbacks(
                host_options,
                strategy.path,
                tailwind=options.tailwindcss is not None,
                sink=sink,
            )
        else:
            callbacks = EngineCallbacks(diagnostics=sink)
        try:
            code = self.engine.format(source_text, strategy, options, callbacks)
        except DiagnosticsError as exc:
            return FormatResult(
                code=source_text,
                original=source_text,
                diagnostics=tuple(sink) + exc.diagnostics,
                failed=True,
            )
        return FormatResult(code=code, original=source_text, diagnostics=tuple(sink))

    def _format_external(
        self, strategy: FileStrategy, source_text: str, host_options: JSONObject
    ) -> FormatResult:
        if self.delegate is None:
            return FormatResult(
                code=source_text,
                original=source_text,
                diagnostics=(
                    Diagnostic.error(f"No external formatter available for {strategy.path}"),
                ),
                failed=True,
            )
        try:
            code = self.delegate.format_file(
                host_options, strategy.parser_name, strategy.path, source_text
            )
        except DelegateError as exc:
            logger.warning("host formatting of %s failed, keeping original", strategy.path)
            return FormatResult(
                code=source_text, original=source_text, diagnostics=(exc.diagnostic,)
            )
        return FormatResult(code=code, original=source_text)
