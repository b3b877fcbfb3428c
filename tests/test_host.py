from __future__ import annotations

import asyncio
from pathlib import Path
import tomllib

import pytest

from fmtbridge.exceptions import UnsupportedParserError
from fmtbridge.host import LocalHost, format_json, run_init, run_migrate_prettier


def test_init_reports_configured_plugins(local_host: LocalHost) -> None:
    assert asyncio.run(local_host.init(4)) == ["prettier-plugin-tailwindcss"]
    assert local_host.init_calls == 1


def test_format_json_honors_indentation() -> None:
    assert format_json({"tabWidth": 4}, '{"a":[1]}') == '{\n    "a": [\n        1\n    ]\n}\n'
    assert format_json({"useTabs": True}, '{"a":1}') == '{\n\t"a": 1\n}\n'
    assert format_json({"tabWidth": True}, "[]") == "[]\n"


def test_format_file_rejects_non_json_parsers(local_host: LocalHost) -> None:
    assert asyncio.run(local_host.format_file({}, "json-stringify", "package.json", "{}")) == "{}\n"
    with pytest.raises(UnsupportedParserError):
        asyncio.run(local_host.format_file({}, "css", "a.css", "a{}"))


def test_format_embedded_strips_trailing_newline(local_host: LocalHost) -> None:
    assert asyncio.run(local_host.format_embedded({}, "json", '{"a":1}')) == '{\n  "a": 1\n}'
    with pytest.raises(UnsupportedParserError):
        asyncio.run(local_host.format_embedded({}, "graphql", "{ a }"))


def test_sort_classes_puts_variants_last_and_keeps_duplicates(local_host: LocalHost) -> None:
    classes = ["p-2", "hover:bg-red", "flex", "md:p-4", "flex"]
    result = asyncio.run(local_host.sort_classes("a.tsx", {}, classes))
    assert result == ["flex", "flex", "p-2", "hover:bg-red", "md:p-4"]


def test_run_init_writes_once(tmp_path: Path) -> None:
    assert run_init(tmp_path) == 0
    written = tomllib.loads((tmp_path / "fmtbridge.toml").read_text())
    assert written["format"]["printWidth"] == 100
    assert run_init(tmp_path) == 1


def test_migrate_prettier_json(tmp_path: Path) -> None:
    (tmp_path / ".prettierrc.json").write_text(
        '{"semi": false, "tabWidth": 4, "singleQuote": true, "plugins": ["x"], "endOfLine": "crlf"}'
    )
    assert run_migrate_prettier(tmp_path) == 0
    written = tomllib.loads((tmp_path / "fmtbridge.toml").read_text())
    assert written == {
        "format": {"tabWidth": 4, "singleQuote": True, "semi": False, "endOfLine": "crlf"}
    }


def test_migrate_prettier_yaml(tmp_path: Path) -> None:
    (tmp_path / ".prettierrc").write_text("useTabs: true\nprintWidth: 120\n")
    assert run_migrate_prettier(tmp_path) == 0
    written = tomllib.loads((tmp_path / "fmtbridge.toml").read_text())
    assert written["format"] == {"useTabs": True, "printWidth": 120}


def test_migrate_prettier_failures(tmp_path: Path) -> None:
    assert run_migrate_prettier(tmp_path) == 1
    (tmp_path / ".prettierrc").write_text("a: [unclosed\n")
    assert run_migrate_prettier(tmp_path) == 1
    (tmp_path / "fmtbridge.toml").write_text("")
    assert run_migrate_prettier(tmp_path) == 1
