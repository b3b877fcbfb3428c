"""Exception types shared across the fmtbridge boundary."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from fmtbridge.diagnostics import Diagnostic


class NeverRaise(RuntimeError):
    """Sentinel exception for code paths that must be unreachable.

    Raising this exception signals a programming error (for example a host
    callback driven from the event-loop thread itself). It is never converted
    into a Diagnostic and never caught by the bridge.
    """

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.reason = message
        self.env = dict(env or {})


class NeverThrown(NeverRaise):
    """Alias for NeverRaise used by the explicit never() marker."""


class DiagnosticsError(Exception):
    """A stage failed; the ordered diagnostics explain why."""

    def __init__(self, diagnostics: Iterable[Diagnostic]):
        self.diagnostics: tuple[Diagnostic, ...] = tuple(diagnostics)
        summary = "; ".join(diagnostic.message for diagnostic in self.diagnostics)
        super().__init__(summary or "unknown failure")


class DelegateError(Exception):
    """A delegated host operation could not produce a usable response."""

    def __init__(self, diagnostic: Diagnostic):
        super().__init__(diagnostic.message)
        self.diagnostic = diagnostic


class HostOperationError(DelegateError):
    """The host ran the operation and reported a failure."""


class HostDecodeError(DelegateError):
    """The host answered with a payload of the wrong shape."""


class UnsupportedParserError(ValueError):
    """Raised host-side when no formatter is registered for a parser name."""
