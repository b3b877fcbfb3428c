from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_DID_SAVE,
    TEXT_DOCUMENT_FORMATTING,
    Diagnostic as LspDiagnostic,
    DiagnosticSeverity,
    DidOpenTextDocumentParams,
    DidSaveTextDocumentParams,
    DocumentFormattingParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextEdit,
)
from pygls.lsp.server import LanguageServer

from fmtbridge import __version__
from fmtbridge.config import ConfigResolver, discover_host_configs
from fmtbridge.delegate import ExternalDelegate
from fmtbridge.diagnostics import Diagnostic, Severity, line_col, render_diagnostics
from fmtbridge.engine import FormatResult, SourceFormatter
from fmtbridge.exceptions import DelegateError, DiagnosticsError
from fmtbridge.host_config import HostConfigLoader
from fmtbridge.runner import is_ignored
from fmtbridge.runtime.host_runtime import HostRuntime
from fmtbridge.strategy import is_supported, resolve_strategy

logger = logging.getLogger(__name__)

server = LanguageServer("fmtbridge", __version__)
_DELEGATE: dict[str, ExternalDelegate | None] = {"current": None}
_CONFIG_LOADER: dict[str, HostConfigLoader | None] = {"current": None}


def set_delegate(delegate: ExternalDelegate | None) -> None:
    _DELEGATE["current"] = delegate


def set_config_loader(loader: HostConfigLoader | None) -> None:
    _CONFIG_LOADER["current"] = loader


def host_ignored(path: str) -> bool:
    """Whether the nearest host configs list `path` in their `ignorePatterns`."""
    loader = _CONFIG_LOADER["current"]
    if loader is None:
        return False
    document = Path(path)
    for directory in document.parents:
        configs = discover_host_configs(directory)
        if configs:
            break
    else:
        return False
    try:
        entries = loader([str(item) for item in configs])
    except DiagnosticsError as exc:
        logger.warning("host configs skipped:\n%s", render_diagnostics(exc.diagnostics))
        return False
    relative = document.relative_to(directory).as_posix()
    patterns = [pattern for entry in entries for pattern in entry.config.ignorePatterns]
    return is_ignored(relative, patterns)


def _active_delegate() -> ExternalDelegate | None:
    delegate = _DELEGATE["current"]
    if delegate is None:
        return None
    try:
        delegate.init(1)
    except DelegateError as exc:
        logger.warning("external formatter unavailable: %s", exc.diagnostic.message)
        return None
    return delegate


def format_document(path: str, source_text: str) -> FormatResult | None:
    """Format one open document; `None` when the file type is not handled."""
    if not is_supported(path) or host_ignored(path):
        return None
    strategy = resolve_strategy(path)
    resolver = ConfigResolver.from_config_file(root=Path(path).parent)
    try:
        resolver.build_and_validate()
    except DiagnosticsError as exc:
        return FormatResult(
            code=source_text, original=source_text, diagnostics=exc.diagnostics, failed=True
        )
    return (
        SourceFormatter()
        .with_external_delegate(_active_delegate())
        .format(
            strategy,
            source_text,
            resolver.resolve(strategy),
            host_options=resolver.host_options(strategy),
        )
    )


def _position(source_text: str, offset: int) -> Position:
    line, col = line_col(source_text, offset)
    return Position(line=line - 1, character=col - 1)


def full_range(source_text: str) -> Range:
    return Range(start=Position(line=0, character=0), end=_position(source_text, len(source_text)))


def to_lsp_diagnostic(diagnostic: Diagnostic, source_text: str) -> LspDiagnostic:
    if diagnostic.span is not None:
        span_range = Range(
            start=_position(source_text, diagnostic.span.start),
            end=_position(source_text, diagnostic.span.end),
        )
    else:
        span_range = Range(start=Position(line=0, character=0), end=Position(line=0, character=0))
    message = diagnostic.message
    if diagnostic.note:
        message = f"{message}\n{diagnostic.note}"
    return LspDiagnostic(
        range=span_range,
        message=message,
        severity=(
            DiagnosticSeverity.Error
            if diagnostic.severity is Severity.ERROR
            else DiagnosticSeverity.Warning
        ),
        source="fmtbridge",
    )


async def _document_diagnostics(ls: LanguageServer, uri: str) -> list[LspDiagnostic]:
    document = ls.workspace.get_text_document(uri)
    source_text = document.source
    result = await HostRuntime.current().block_in_place(
        format_document, document.path, source_text
    )
    if result is None:
        return []
    return [to_lsp_diagnostic(item, source_text) for item in result.diagnostics]


@server.feature(TEXT_DOCUMENT_FORMATTING)
async def formatting(ls: LanguageServer, params: DocumentFormattingParams) -> list[TextEdit] | None:
    document = ls.workspace.get_text_document(params.text_document.uri)
    source_text = document.source
    result = await HostRuntime.current().block_in_place(
        format_document, document.path, source_text
    )
    if result is None or result.failed or not result.changed:
        return None
    return [TextEdit(range=full_range(source_text), new_text=result.code)]


@server.feature(TEXT_DOCUMENT_DID_OPEN)
async def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    uri = params.text_document.uri
    diagnostics = await _document_diagnostics(ls, uri)
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_SAVE)
async def did_save(ls: LanguageServer, params: DidSaveTextDocumentParams) -> None:
    uri = params.text_document.uri
    diagnostics = await _document_diagnostics(ls, uri)
    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


def start(start_fn: Callable[[], None] | None = None) -> None:
    (start_fn or server.start_io)()


def run_lsp(
    delegate: ExternalDelegate | None,
    *,
    config_loader: HostConfigLoader | None = None,
    start_fn: Callable[[], None] | None = None,
) -> int:
    """Serve on stdio until the client disconnects."""
    set_delegate(delegate)
    set_config_loader(config_loader)
    try:
        start(start_fn)
    finally:
        set_delegate(None)
        set_config_loader(None)
    return 0
