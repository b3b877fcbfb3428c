# fmtbridge:decision_protocol_module
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath

from fmtbridge.diagnostics import Diagnostic
from fmtbridge.exceptions import DiagnosticsError
from fmtbridge.invariants import decision_protocol


class StrategyKind(str, Enum):
    SCRIPT = "script"
    MODULE = "module"
    JSX = "jsx"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    EXTERNAL = "external"


_NATIVE_EXTENSIONS: dict[str, StrategyKind] = {
    ".js": StrategyKind.SCRIPT,
    ".cjs": StrategyKind.SCRIPT,
    ".mjs": StrategyKind.MODULE,
    ".jsx": StrategyKind.JSX,
    ".ts": StrategyKind.TYPESCRIPT,
    ".mts": StrategyKind.TYPESCRIPT,
    ".cts": StrategyKind.TYPESCRIPT,
    ".tsx": StrategyKind.TSX,
}

# Whole-file formatting delegated to the host, keyed to the host parser name.
_EXTERNAL_PARSERS: dict[str, str] = {
    ".json": "json",
    ".jsonc": "jsonc",
    ".json5": "json5",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".html": "html",
    ".htm": "html",
    ".vue": "vue",
    ".md": "markdown",
    ".markdown": "markdown",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".graphql": "graphql",
    ".gql": "graphql",
    ".hbs": "glimmer",
    ".handlebars": "glimmer",
}

_SPECIAL_FILE_PARSERS: dict[str, str] = {
    "package.json": "json-stringify",
    "package-lock.json": "json-stringify",
    "composer.json": "json-stringify",
}

_NATIVE_PARSERS: dict[StrategyKind, str] = {
    StrategyKind.SCRIPT: "babel",
    StrategyKind.MODULE: "babel",
    StrategyKind.JSX: "babel",
    StrategyKind.TYPESCRIPT: "typescript",
    StrategyKind.TSX: "typescript",
}


@dataclass(frozen=True)
class FileStrategy:
    kind: StrategyKind
    path: str
    parser_name: str
    jsx: bool = False

    @property
    def has_jsx(self) -> bool:
        # `.js` files may carry JSX, as the babel parser accepts it.
        return self.jsx or self.kind in {StrategyKind.JSX, StrategyKind.TSX, StrategyKind.SCRIPT}

    @property
    def is_external(self) -> bool:
        return self.kind is StrategyKind.EXTERNAL

    @property
    def is_typescript(self) -> bool:
        return self.kind in {StrategyKind.TYPESCRIPT, StrategyKind.TSX}


def _classify(path: str) -> FileStrategy | None:
    pure = PurePath(path)
    name = pure.name.lower()
    special = _SPECIAL_FILE_PARSERS.get(name)
    if special is not None:
        return FileStrategy(kind=StrategyKind.EXTERNAL, path=path, parser_name=special)
    suffix = pure.suffix.lower()
    kind = _NATIVE_EXTENSIONS.get(suffix)
    if kind is not None:
        return FileStrategy(kind=kind, path=path, parser_name=_NATIVE_PARSERS[kind])
    parser = _EXTERNAL_PARSERS.get(suffix)
    if parser is not None:
        return FileStrategy(kind=StrategyKind.EXTERNAL, path=path, parser_name=parser)
    return None


def is_supported(path: str) -> bool:
    return _classify(str(path)) is not None


@decision_protocol
def resolve_strategy(path: str | PurePath) -> FileStrategy:
    """Classify a file by name; raises `DiagnosticsError` when unsupported."""
    text = str(path)
    strategy = _classify(text)
    if strategy is None:
        raise DiagnosticsError([Diagnostic.error(f"Unsupported file type: {text}")])
    return strategy


def strategy_for_source_type(source_type: str, path: str) -> FileStrategy:
    """Map the host plugin's `js`/`jsx`/`ts`/`tsx` tag onto a strategy.

    Plugin sources always allow JSX, whatever the tag says.
    """
    kinds = {
        "js": StrategyKind.MODULE,
        "jsx": StrategyKind.JSX,
        "ts": StrategyKind.TYPESCRIPT,
        "tsx": StrategyKind.TSX,
    }
    kind = kinds.get(source_type)
    if kind is None:
        raise ValueError(
            f"Invalid source type: {source_type}. Expected 'js', 'ts', 'jsx', or 'tsx'"
        )
    return FileStrategy(kind=kind, path=path, parser_name=_NATIVE_PARSERS[kind], jsx=True)
