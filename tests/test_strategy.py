from __future__ import annotations

from pathlib import Path

import pytest

from fmtbridge.exceptions import DiagnosticsError
from fmtbridge.strategy import (
    StrategyKind,
    is_supported,
    resolve_strategy,
    strategy_for_source_type,
)


@pytest.mark.parametrize(
    ("name", "kind", "parser"),
    [
        ("app.js", StrategyKind.SCRIPT, "babel"),
        ("app.cjs", StrategyKind.SCRIPT, "babel"),
        ("app.mjs", StrategyKind.MODULE, "babel"),
        ("App.jsx", StrategyKind.JSX, "babel"),
        ("lib.ts", StrategyKind.TYPESCRIPT, "typescript"),
        ("lib.d.mts", StrategyKind.TYPESCRIPT, "typescript"),
        ("View.tsx", StrategyKind.TSX, "typescript"),
        ("data.json", StrategyKind.EXTERNAL, "json"),
        ("README.MD", StrategyKind.EXTERNAL, "markdown"),
        ("ci.yml", StrategyKind.EXTERNAL, "yaml"),
        ("package.json", StrategyKind.EXTERNAL, "json-stringify"),
    ],
)
def test_resolve_strategy_classifies_by_name(
    name: str, kind: StrategyKind, parser: str
) -> None:
    strategy = resolve_strategy(name)
    assert strategy.kind is kind
    assert strategy.parser_name == parser
    assert strategy.path == name
    assert strategy.is_external is (kind is StrategyKind.EXTERNAL)


def test_resolve_strategy_accepts_paths() -> None:
    strategy = resolve_strategy(Path("pkg") / "index.ts")
    assert strategy.is_typescript
    assert strategy.path.endswith("index.ts")


def test_unsupported_file_type_raises_diagnostic() -> None:
    with pytest.raises(DiagnosticsError) as excinfo:
        resolve_strategy("archive.tar.gz")
    assert [item.message for item in excinfo.value.diagnostics] == [
        "Unsupported file type: archive.tar.gz"
    ]
    assert not is_supported("archive.tar.gz")
    assert is_supported("component.vue")


def test_jsx_capability() -> None:
    assert resolve_strategy("a.js").has_jsx
    assert resolve_strategy("a.tsx").has_jsx
    assert not resolve_strategy("a.ts").has_jsx
    assert not resolve_strategy("a.mjs").has_jsx


def test_strategy_for_source_type() -> None:
    assert strategy_for_source_type("tsx", "x.tsx").kind is StrategyKind.TSX
    assert strategy_for_source_type("js", "x.js").kind is StrategyKind.MODULE
    with pytest.raises(ValueError, match="Invalid source type: coffee"):
        strategy_for_source_type("coffee", "x.coffee")


def test_unknown_extension_is_unsupported() -> None:
    with pytest.raises(DiagnosticsError) as excinfo:
        resolve_strategy("a.unknownext")
    assert len(excinfo.value.diagnostics) == 1
    assert excinfo.value.diagnostics[0].message == "Unsupported file type: a.unknownext"


@pytest.mark.parametrize("source_type", ["js", "jsx", "ts", "tsx"])
def test_plugin_source_types_always_allow_jsx(source_type: str) -> None:
    assert strategy_for_source_type(source_type, f"x.{source_type}").has_jsx
