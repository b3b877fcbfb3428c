from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Sequence

import typer

from fmtbridge import api
from fmtbridge.host import LocalHost, run_init, run_migrate_prettier
from fmtbridge.invariants import never
from fmtbridge.logging_setup import configure_logging

app = typer.Typer(add_completion=False)


def run_host_only(label: str, root: Path) -> int:
    if label == "init":
        code = run_init(root)
        if code == 0:
            typer.echo("Created fmtbridge.toml")
        else:
            typer.echo("fmtbridge.toml already exists", err=True)
        return code
    if label == "migrate:prettier":
        code = run_migrate_prettier(root)
        if code == 0:
            typer.echo("Migrated prettier config to fmtbridge.toml")
        else:
            typer.echo("Prettier config migration failed", err=True)
        return code
    never("unknown host-only mode", label=label)


def run(argv: Sequence[str], *, host: LocalHost | None = None, cwd: Path | None = None) -> int:
    local = host if host is not None else LocalHost()
    label, code = asyncio.run(
        api.run_cli(
            list(argv),
            init=local.init,
            format_embedded=local.format_embedded,
            format_file=local.format_file,
            sort_classes=local.sort_classes,
            load_configs=local.load_configs,
            cwd=cwd,
        )
    )
    if code is not None:
        return code
    return run_host_only(label, cwd if cwd is not None else Path.cwd())


@app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "help_option_names": [],
    }
)
def format_command(ctx: typer.Context) -> None:
    """Format files; all arguments are parsed by the format command grammar."""
    configure_logging()
    raise typer.Exit(code=run(list(ctx.args)))


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()  # pragma: no cover
