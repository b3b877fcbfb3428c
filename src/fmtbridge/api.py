"""Host-side entry points.

Each coroutine here runs on the host's event loop, builds the delegate from
the host's own callbacks, and moves the native work onto a worker thread
with `HostRuntime.block_in_place`. Nothing below blocks the loop.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
import sys
from typing import Sequence, TextIO

from fmtbridge.bridge import (
    FORMAT_EMBEDDED_OPERATION,
    SORT_CLASSES_OPERATION,
    CallbackBridge,
    HostHandle,
)
from fmtbridge.config import ConfigResolver
from fmtbridge.delegate import (
    EngineCallbacks,
    ExternalDelegate,
    fallback_class_sorter,
    fallback_embedded,
)
from fmtbridge.diagnostics import Diagnostic, render_diagnostic
from fmtbridge.engine import SourceFormatter, TemplateEngine
from fmtbridge.exceptions import DelegateError, DiagnosticsError
from fmtbridge.host_config import create_config_loader
from fmtbridge.invariants import never
from fmtbridge.json_types import JSONValue
from fmtbridge.options import tailwind_enabled
from fmtbridge.router import Mode, route
from fmtbridge.runner import FormatRunner, StdinRunner
from fmtbridge.runtime.host_runtime import HostRuntime
from fmtbridge.schema import FormatErrorDTO, FormatResultDTO
from fmtbridge.strategy import resolve_strategy, strategy_for_source_type

logger = logging.getLogger(__name__)


def untranslated(stream: TextIO) -> TextIO:
    """Turn off newline translation on a process stream before first use."""
    if isinstance(stream, io.TextIOWrapper):
        stream.reconfigure(newline="")
    return stream


async def run_cli(
    argv: Sequence[str],
    *,
    init: HostHandle,
    format_embedded: HostHandle,
    format_file: HostHandle,
    sort_classes: HostHandle,
    load_configs: HostHandle | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    cwd: Path | None = None,
) -> tuple[str, int | None]:
    """Route a command line and run it.

    Returns the mode label and the completion code. A `None` code means the
    mode belongs to the host (`init`, `migrate:*`) and nothing ran here.
    """
    decision = route(list(argv))
    if decision.completion_code is not None:
        return decision.label, decision.completion_code
    if decision.host_only:
        return decision.label, None
    command = decision.command
    if command is None:
        never("native mode routed without a command", label=decision.label)

    runtime = HostRuntime.current()
    delegate = ExternalDelegate.new(
        init, format_embedded, format_file, sort_classes, runtime=runtime
    )
    config_loader = (
        create_config_loader(load_configs, runtime=runtime) if load_configs is not None else None
    )
    logger.debug("running mode %s", decision.label)

    if command.mode is Mode.LSP:
        from fmtbridge.server import run_lsp

        return decision.label, await runtime.block_in_place(
            run_lsp, delegate, config_loader=config_loader
        )
    if command.mode is Mode.STDIN:
        stdin_runner = StdinRunner(
            command,
            delegate,
            stdin=stdin if stdin is not None else untranslated(sys.stdin),
            stdout=stdout if stdout is not None else untranslated(sys.stdout),
        )
        result = await runtime.block_in_place(stdin_runner.run)
        return decision.label, result.exit_code()

    runner = FormatRunner(command, delegate, cwd=cwd, config_loader=config_loader)
    result = await runtime.block_in_place(runner.run)
    return decision.label, result.exit_code()


def _error_dto(diagnostic: Diagnostic) -> FormatErrorDTO:
    span = diagnostic.span
    return FormatErrorDTO(
        message=diagnostic.message,
        severity=diagnostic.severity.value,
        note=diagnostic.note,
        path=span.path if span is not None else None,
        start=span.start if span is not None else None,
        end=span.end if span is not None else None,
    )


def _failed(source_text: str, diagnostics: Sequence[Diagnostic]) -> FormatResultDTO:
    return FormatResultDTO(code=source_text, errors=[_error_dto(item) for item in diagnostics])


def format_source(
    delegate: ExternalDelegate,
    file_name: str,
    source_text: str,
    options: JSONValue,
) -> FormatResultDTO:
    resolver = ConfigResolver.from_value(options)
    try:
        resolver.build_and_validate()
    except DiagnosticsError as exc:
        return _failed(source_text, exc.diagnostics)
    try:
        delegate.init(1)
    except DelegateError as exc:
        return _failed(
            source_text,
            [
                Diagnostic.error("Failed to setup external formatter").with_note(
                    exc.diagnostic.message
                )
            ],
        )
    try:
        strategy = resolve_strategy(file_name)
    except DiagnosticsError as exc:
        return _failed(source_text, exc.diagnostics)
    outcome = SourceFormatter().with_external_delegate(delegate).format(
        strategy,
        source_text,
        resolver.resolve(strategy),
        host_options=resolver.host_options(strategy),
    )
    return FormatResultDTO(
        code=outcome.code, errors=[_error_dto(item) for item in outcome.diagnostics]
    )


async def format(
    file_name: str,
    source_text: str,
    options: JSONValue,
    *,
    init: HostHandle,
    format_embedded: HostHandle,
    format_file: HostHandle,
    sort_classes: HostHandle,
) -> FormatResultDTO:
    """Format one in-memory file; failures come back as `errors`, never raised."""
    runtime = HostRuntime.current()
    delegate = ExternalDelegate.new(
        init, format_embedded, format_file, sort_classes, runtime=runtime
    )
    return await runtime.block_in_place(
        format_source, delegate, file_name, source_text, options
    )


def _plugin_callbacks(
    runtime: HostRuntime,
    host_options: dict[str, JSONValue],
    file_path: str,
    *,
    format_embedded: HostHandle | None,
    sort_classes: HostHandle | None,
    sink: list[Diagnostic],
) -> EngineCallbacks:
    callbacks = EngineCallbacks(diagnostics=sink)
    if format_embedded is not None:
        embedded: CallbackBridge[str] = CallbackBridge(
            FORMAT_EMBEDDED_OPERATION, format_embedded, runtime=runtime, response_type=str
        )
        callbacks.embedded_formatter = fallback_embedded(
            lambda parser_name, code: embedded.invoke(host_options, parser_name, code), sink
        )
    if sort_classes is not None:
        sorter: CallbackBridge[list[str]] = CallbackBridge(
            SORT_CLASSES_OPERATION, sort_classes, runtime=runtime, response_type=list[str]
        )
        callbacks.class_sorter = fallback_class_sorter(
            lambda classes: sorter.invoke(file_path, host_options, classes), sink
        )
    return callbacks


async def format_to_doc(
    source_text: str,
    source_type: str,
    file_path: str,
    options: JSONValue,
    *,
    format_embedded: HostHandle | None = None,
    sort_classes: HostHandle | None = None,
) -> str:
    """Format a JS/TS source for the host's plugin path.

    `source_type` is one of `js`, `jsx`, `ts`, `tsx`; anything else raises
    `ValueError`. The class sorter is only wired when the options enable
    Tailwind sorting. Host callback failures keep the original text and are
    logged as warnings. Engine failures raise `DiagnosticsError`.
    """
    strategy = strategy_for_source_type(source_type, file_path)
    resolver = ConfigResolver.from_value(options)
    runtime = HostRuntime.current()
    host_options = resolver.host_options(strategy)
    sink: list[Diagnostic] = []
    callbacks = _plugin_callbacks(
        runtime,
        host_options,
        file_path,
        format_embedded=format_embedded,
        sort_classes=sort_classes if tailwind_enabled(resolver.raw) else None,
        sink=sink,
    )
    formatted = await runtime.block_in_place(
        TemplateEngine().format, source_text, strategy, resolver.resolve(strategy), callbacks
    )
    for diagnostic in sink:
        logger.warning("%s: %s", file_path, render_diagnostic(diagnostic, source_text))
    return formatted
