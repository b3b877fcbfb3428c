from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, TextIO

import typer

from fmtbridge.config import ConfigResolver, discover_host_configs, load_lint_config
from fmtbridge.delegate import ExternalDelegate
from fmtbridge.diagnostics import Diagnostic, render_diagnostic
from fmtbridge.engine import FormatResult, SourceFormatter
from fmtbridge.exceptions import DelegateError, DiagnosticsError
from fmtbridge.host_config import HostConfigLoader
from fmtbridge.router import FormatCommand
from fmtbridge.strategy import is_supported, resolve_strategy

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset({"node_modules", ".git", ".hg", ".svn", ".jj", "__pycache__"})
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


@dataclass(frozen=True)
class FileOutcome:
    path: Path
    result: FormatResult | None = None
    diagnostics: tuple[Diagnostic, ...] = ()

    @property
    def unsupported(self) -> bool:
        return self.result is None

    @property
    def all_diagnostics(self) -> tuple[Diagnostic, ...]:
        if self.result is None:
            return self.diagnostics
        return self.diagnostics + self.result.diagnostics


@dataclass
class RunResult:
    check: bool = False
    outcomes: list[FileOutcome] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    usage_error: bool = False

    @property
    def changed(self) -> list[Path]:
        return [
            item.path for item in self.outcomes if item.result is not None and item.result.changed
        ]

    @property
    def failed(self) -> list[Path]:
        return [item.path for item in self.outcomes if item.result is not None and item.result.failed]

    @property
    def unsupported(self) -> list[Path]:
        return [item.path for item in self.outcomes if item.unsupported]

    def exit_code(self) -> int:
        if self.usage_error:
            return EXIT_USAGE
        if self.failed:
            return EXIT_FAILURE
        if self.unsupported and len(self.outcomes) == 1:
            return EXIT_FAILURE
        if self.check and self.changed:
            return EXIT_FAILURE
        return EXIT_OK


def _echo_diagnostics(diagnostics: Iterable[Diagnostic], source_text: str | None = None) -> None:
    for diagnostic in diagnostics:
        typer.echo(render_diagnostic(diagnostic, source_text), err=True)


def is_ignored(relative: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatch(relative, pattern) for pattern in patterns)


class FormatRunner:
    def __init__(
        self,
        command: FormatCommand,
        delegate: ExternalDelegate | None = None,
        *,
        cwd: Path | None = None,
        config_loader: HostConfigLoader | None = None,
    ) -> None:
        self.command = command
        self.delegate = delegate
        self.cwd = cwd if cwd is not None else Path.cwd()
        self.config_loader = config_loader

    def _threads(self) -> int:
        return self.command.threads or os.cpu_count() or 1

    def _config_path(self) -> Path | None:
        return self.cwd / self.command.config if self.command.config else None

    def _resolver(self, result: RunResult) -> ConfigResolver | None:
        config_path = self._config_path()
        if config_path is not None and not config_path.is_file():
            result.diagnostics.append(Diagnostic.error(f"Config file not found: {config_path}"))
            return None
        resolver = ConfigResolver.from_config_file(root=self.cwd, config_path=config_path)
        try:
            resolver.build_and_validate()
        except DiagnosticsError as exc:
            result.diagnostics.extend(exc.diagnostics)
            return None
        return resolver

    def _lint_ignore_patterns(self, result: RunResult) -> list[str]:
        try:
            lint = load_lint_config(root=self.cwd, config_path=self._config_path())
        except DiagnosticsError as exc:
            result.diagnostics.extend(exc.diagnostics)
            return []
        return list(lint.ignorePatterns)

    def _host_ignore_patterns(self, result: RunResult) -> list[str]:
        if self.config_loader is None:
            return []
        paths = [str(path) for path in discover_host_configs(self.cwd)]
        if not paths:
            return []
        try:
            entries = self.config_loader(paths)
        except DiagnosticsError as exc:
            # The batch is dropped as a whole; formatting goes on without it.
            result.diagnostics.extend(exc.diagnostics)
            return []
        patterns: list[str] = []
        for entry in entries:
            patterns.extend(entry.config.ignorePatterns)
        return patterns

    def _expand(self, patterns: list[str], result: RunResult) -> list[Path]:
        targets: list[Path] = []
        seen: set[Path] = set()
        for raw in self.command.paths or (".",):
            path = Path(raw)
            if not path.is_absolute():
                path = self.cwd / path
            if path.is_file():
                if path not in seen:
                    seen.add(path)
                    targets.append(path)
                continue
            if not path.is_dir():
                if not self.command.no_error_on_unmatched_pattern:
                    result.diagnostics.append(
                        Diagnostic.error(f"No files found matching pattern: {raw}")
                    )
                continue
            for dirpath, dirnames, filenames in os.walk(path):
                dirnames[:] = sorted(name for name in dirnames if name not in IGNORED_DIRS)
                for name in sorted(filenames):
                    candidate = Path(dirpath) / name
                    if candidate in seen or not is_supported(name):
                        continue
                    relative = (
                        candidate.relative_to(self.cwd)
                        if candidate.is_relative_to(self.cwd)
                        else candidate
                    ).as_posix()
                    if is_ignored(relative, patterns):
                        continue
                    seen.add(candidate)
                    targets.append(candidate)
        return targets

    def _format_one(
        self, formatter: SourceFormatter, resolver: ConfigResolver, path: Path
    ) -> FileOutcome:
        try:
            strategy = resolve_strategy(path)
        except DiagnosticsError as exc:
            return FileOutcome(path=path, diagnostics=exc.diagnostics)
        try:
            # No newline translation: `\r\n` must reach the line-ending check.
            source_text = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return FileOutcome(
                path=path,
                result=FormatResult(
                    code="",
                    original="",
                    diagnostics=(Diagnostic.error(f"Failed to read {path}").with_note(str(exc)),),
                    failed=True,
                ),
            )
        outcome = formatter.format(
            strategy,
            source_text,
            resolver.resolve(strategy),
            host_options=resolver.host_options(strategy),
        )
        if outcome.changed and self.command.write and not outcome.failed:
            try:
                path.write_text(outcome.code, encoding="utf-8", newline="")
            except OSError as exc:
                failure = Diagnostic.error(f"Failed to write {path}").with_note(str(exc))
                outcome = replace(
                    outcome, diagnostics=outcome.diagnostics + (failure,), failed=True
                )
        return FileOutcome(path=path, result=outcome)

    def run(self) -> RunResult:
        result = RunResult(check=self.command.check or self.command.list_different)
        resolver = self._resolver(result)
        if resolver is None:
            _echo_diagnostics(result.diagnostics)
            result.usage_error = True
            return result
        patterns = [
            *resolver.ignore_patterns,
            *self._lint_ignore_patterns(result),
            *self._host_ignore_patterns(result),
        ]
        targets = self._expand(patterns, result)
        if not targets:
            _echo_diagnostics(result.diagnostics)
            if not self.command.no_error_on_unmatched_pattern:
                typer.echo("Expected at least one target file", err=True)
                result.usage_error = True
            return result

        delegate = self.delegate
        if delegate is not None:
            try:
                delegate.init(self._threads())
            except DelegateError as exc:
                result.diagnostics.append(
                    Diagnostic.error("Failed to setup external formatter").with_note(
                        exc.diagnostic.message
                    )
                )
                delegate = None
        formatter = SourceFormatter().with_external_delegate(delegate)

        with ThreadPoolExecutor(max_workers=self._threads()) as pool:
            outcomes = list(
                pool.map(lambda path: self._format_one(formatter, resolver, path), targets)
            )
        result.outcomes.extend(outcomes)
        self._report(result)
        return result

    def _report(self, result: RunResult) -> None:
        _echo_diagnostics(result.diagnostics)
        for outcome in result.outcomes:
            source = outcome.result.original if outcome.result is not None else None
            _echo_diagnostics(outcome.all_diagnostics, source)
            if outcome.result is None or not outcome.result.changed:
                continue
            if self.command.list_different:
                typer.echo(str(outcome.path))
            elif self.command.check:
                typer.echo(f"{outcome.path} (not formatted)")
        if self.command.check:
            changed = len(result.changed)
            if changed:
                typer.echo(f"Format issues found in above {changed} files.", err=True)
            else:
                typer.echo("All matched files use the correct format.")
        logger.info(
            "formatted %d files (%d changed, %d failed)",
            len(result.outcomes),
            len(result.changed),
            len(result.failed),
        )


class StdinRunner:
    def __init__(
        self,
        command: FormatCommand,
        delegate: ExternalDelegate | None = None,
        *,
        stdin: TextIO,
        stdout: TextIO,
    ) -> None:
        self.command = command
        self.delegate = delegate
        self.stdin = stdin
        self.stdout = stdout

    def run(self) -> RunResult:
        result = RunResult()
        file_path = Path(self.command.stdin_filepath or "stdin")
        source_text = self.stdin.read()
        config_path = Path(self.command.config) if self.command.config else None
        resolver = ConfigResolver.from_config_file(
            root=file_path.parent if file_path.parent != Path("") else None,
            config_path=config_path,
        )
        try:
            resolver.build_and_validate()
            strategy = resolve_strategy(file_path)
        except DiagnosticsError as exc:
            _echo_diagnostics(exc.diagnostics)
            self.stdout.write(source_text)
            result.outcomes.append(FileOutcome(path=file_path, diagnostics=exc.diagnostics))
            return result
        delegate = self.delegate
        if delegate is not None:
            try:
                delegate.init(1)
            except DelegateError as exc:
                _echo_diagnostics([exc.diagnostic])
                delegate = None
        outcome = (
            SourceFormatter()
            .with_external_delegate(delegate)
            .format(
                strategy,
                source_text,
                resolver.resolve(strategy),
                host_options=resolver.host_options(strategy),
            )
        )
        _echo_diagnostics(outcome.diagnostics, source_text)
        self.stdout.write(outcome.code)
        self.stdout.flush()
        result.outcomes.append(FileOutcome(path=file_path, result=outcome))
        return result
