# fmtbridge:decision_protocol_module
from __future__ import annotations

import argparse
from dataclasses import dataclass
from enum import Enum

from fmtbridge import __version__
from fmtbridge.invariants import decision_protocol, never


class Mode(str, Enum):
    CLI = "cli"
    STDIN = "stdin"
    LSP = "lsp"
    INIT = "init"
    MIGRATE = "migrate"


MIGRATE_SOURCES = ("prettier",)
HOST_ONLY_LABELS = frozenset({"init", *(f"migrate:{source}" for source in MIGRATE_SOURCES)})


@dataclass(frozen=True)
class FormatCommand:
    mode: Mode
    paths: tuple[str, ...] = ()
    check: bool = False
    list_different: bool = False
    write: bool = True
    config: str | None = None
    threads: int | None = None
    stdin_filepath: str | None = None
    migrate_source: str | None = None
    no_error_on_unmatched_pattern: bool = False


@dataclass(frozen=True)
class ModeDecision:
    label: str
    completion_code: int | None = None
    command: FormatCommand | None = None

    @property
    def host_only(self) -> bool:
        return self.completion_code is None and self.label in HOST_ONLY_LABELS

    @property
    def continues_natively(self) -> bool:
        return self.completion_code is None and not self.host_only


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid thread count: {text!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError(f"thread count must be positive: {text!r}")
    return value


def format_command_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fmtbridge",
        description="Format JavaScript/TypeScript sources, delegating other files to the host.",
    )
    parser.add_argument("paths", nargs="*", help="Files or directories to format.")
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument("--init", action="store_true", help="Write a default fmtbridge.toml.")
    modes.add_argument(
        "--migrate",
        choices=MIGRATE_SOURCES,
        default=None,
        help="Convert a foreign formatter config into fmtbridge.toml.",
    )
    modes.add_argument("--lsp", action="store_true", help="Run the language server on stdio.")
    modes.add_argument(
        "--stdin-filepath",
        default=None,
        help="Format stdin as if it were this file and print the result.",
    )
    output = parser.add_mutually_exclusive_group()
    output.add_argument("--check", action="store_true", help="Report files that would change.")
    output.add_argument(
        "--list-different",
        action="store_true",
        help="Print the paths of files that would change.",
    )
    output.add_argument("--write", action="store_true", help="Rewrite files in place (default).")
    parser.add_argument("-c", "--config", default=None, help="Path to fmtbridge.toml.")
    parser.add_argument("--threads", type=_positive_int, default=None)
    parser.add_argument("--no-error-on-unmatched-pattern", action="store_true")
    parser.add_argument("--version", action="version", version=f"fmtbridge {__version__}")
    return parser


def _exit_status(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    # sys.exit("message") reports failure.
    return 1


def _command_from_namespace(namespace: argparse.Namespace) -> FormatCommand:
    if namespace.init:
        mode = Mode.INIT
    elif namespace.migrate is not None:
        mode = Mode.MIGRATE
    elif namespace.lsp:
        mode = Mode.LSP
    elif namespace.stdin_filepath is not None:
        mode = Mode.STDIN
    else:
        mode = Mode.CLI
    return FormatCommand(
        mode=mode,
        paths=tuple(namespace.paths),
        check=bool(namespace.check),
        list_different=bool(namespace.list_different),
        write=not (namespace.check or namespace.list_different),
        config=namespace.config,
        threads=namespace.threads,
        stdin_filepath=namespace.stdin_filepath,
        migrate_source=namespace.migrate,
        no_error_on_unmatched_pattern=bool(namespace.no_error_on_unmatched_pattern),
    )


def _label(command: FormatCommand) -> str:
    if command.mode is Mode.MIGRATE:
        if command.migrate_source not in MIGRATE_SOURCES:
            never("unknown migrate source", source=command.migrate_source)
        return f"migrate:{command.migrate_source}"
    return command.mode.value


@decision_protocol
def route(
    argv: list[str],
    *,
    parser: argparse.ArgumentParser | None = None,
) -> ModeDecision:
    """Decide where a command line runs.

    Parse failures, help and version requests finish immediately with a
    completion code (1 for a failing parse, 0 otherwise). Host-only modes
    (`init`, `migrate:*`) and native modes return no completion code; the
    native continuation produces the real one.
    """
    active = parser or format_command_parser()
    try:
        namespace = active.parse_args(argv)
    except SystemExit as exc:
        return ModeDecision(label=Mode.CLI.value, completion_code=int(_exit_status(exc.code) != 0))
    command = _command_from_namespace(namespace)
    return ModeDecision(label=_label(command), command=command)
