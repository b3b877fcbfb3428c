"""Structured diagnostics, the unit of failure reporting across the bridge."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Span:
    path: str
    start: int
    end: int


@dataclass(frozen=True)
class Diagnostic:
    message: str
    note: str | None = None
    span: Span | None = None
    severity: Severity = Severity.ERROR

    @classmethod
    def error(cls, message: str) -> "Diagnostic":
        return cls(message=message)

    @classmethod
    def warning(cls, message: str) -> "Diagnostic":
        return cls(message=message, severity=Severity.WARNING)

    def with_note(self, note: str) -> "Diagnostic":
        return replace(self, note=note)

    def with_span(self, path: str, start: int, end: int) -> "Diagnostic":
        return replace(self, span=Span(path=path, start=start, end=end))


def line_col(source_text: str, offset: int) -> tuple[int, int]:
    """Return the 1-based line and column for a character offset."""
    offset = max(0, min(offset, len(source_text)))
    line = source_text.count("\n", 0, offset) + 1
    line_start = source_text.rfind("\n", 0, offset) + 1
    return line, offset - line_start + 1


def render_diagnostic(diagnostic: Diagnostic, source_text: str | None = None) -> str:
    lines = [f"{diagnostic.severity.value}: {diagnostic.message}"]
    if diagnostic.span is not None:
        if source_text is not None:
            line, col = line_col(source_text, diagnostic.span.start)
            lines.append(f"  --> {diagnostic.span.path}:{line}:{col}")
        else:
            lines.append(f"  --> {diagnostic.span.path}")
    if diagnostic.note:
        lines.append(f"  note: {diagnostic.note}")
    return "\n".join(lines)


def render_diagnostics(
    diagnostics: Iterable[Diagnostic], source_text: str | None = None
) -> str:
    return "\n".join(render_diagnostic(item, source_text) for item in diagnostics)


def has_errors(diagnostics: Iterable[Diagnostic]) -> bool:
    return any(item.severity is Severity.ERROR for item in diagnostics)
