from __future__ import annotations

import asyncio
import importlib.util
from pathlib import Path

import pytest

from fmtbridge.diagnostics import Diagnostic
from fmtbridge.host import LocalHost


def _has_pygls() -> bool:
    return importlib.util.find_spec("pygls") is not None


pytestmark = pytest.mark.skipif(not _has_pygls(), reason="pygls not installed")


class _Document:
    def __init__(self, path: Path, source: str) -> None:
        self.path = str(path)
        self.source = source


class _Workspace:
    def __init__(self, document: _Document) -> None:
        self._document = document

    def get_text_document(self, uri: str) -> _Document:
        return self._document


class _FakeServer:
    def __init__(self, document: _Document) -> None:
        self.workspace = _Workspace(document)
        self.published: list[object] = []

    def text_document_publish_diagnostics(self, params) -> None:
        self.published.append(params)


def _text_document(path: Path):
    from lsprotocol.types import TextDocumentIdentifier

    return TextDocumentIdentifier(uri=path.as_uri())


def test_full_range_covers_the_document() -> None:
    from fmtbridge.server import full_range

    end = full_range("ab\ncd").end
    assert (end.line, end.character) == (1, 2)
    end = full_range("ab\n").end
    assert (end.line, end.character) == (1, 0)


def test_to_lsp_diagnostic_maps_span_and_note() -> None:
    from lsprotocol.types import DiagnosticSeverity

    from fmtbridge.server import to_lsp_diagnostic

    source = "a\nb = `x"
    diagnostic = (
        Diagnostic.error("Unterminated template literal").with_span("a.js", 6, 8).with_note("n")
    )
    lsp = to_lsp_diagnostic(diagnostic, source)
    assert (lsp.range.start.line, lsp.range.start.character) == (1, 4)
    assert lsp.severity == DiagnosticSeverity.Error
    assert lsp.message == "Unterminated template literal\nn"
    assert to_lsp_diagnostic(Diagnostic.warning("w"), source).severity == DiagnosticSeverity.Warning


def test_format_document_skips_unknown_files(tmp_path: Path) -> None:
    from fmtbridge.server import format_document

    assert format_document(str(tmp_path / "a.txt"), "x") is None
    result = format_document(str(tmp_path / "a.ts"), "x")
    assert result is not None and result.code == "x\n"


def test_formatting_returns_a_full_document_edit(tmp_path: Path) -> None:
    from lsprotocol.types import DocumentFormattingParams, FormattingOptions

    from fmtbridge.server import formatting

    path = tmp_path / "a.ts"
    server = _FakeServer(_Document(path, "let a = 1\r\n"))
    params = DocumentFormattingParams(
        text_document=_text_document(path),
        options=FormattingOptions(tab_size=2, insert_spaces=True),
    )
    edits = asyncio.run(formatting(server, params))
    assert edits is not None and len(edits) == 1
    assert edits[0].new_text == "let a = 1\n"

    server = _FakeServer(_Document(path, "let a = 1\n"))
    assert asyncio.run(formatting(server, params)) is None


def test_did_open_publishes_diagnostics(tmp_path: Path) -> None:
    from lsprotocol.types import DidOpenTextDocumentParams, TextDocumentItem

    from fmtbridge.server import did_open

    path = tmp_path / "a.js"
    source = "const a = `open"
    server = _FakeServer(_Document(path, source))
    params = DidOpenTextDocumentParams(
        text_document=TextDocumentItem(
            uri=path.as_uri(), language_id="javascript", version=1, text=source
        )
    )
    asyncio.run(did_open(server, params))
    published = server.published[0]
    assert published.uri == path.as_uri()
    assert [item.message for item in published.diagnostics] == ["Unterminated template literal"]


def test_run_lsp_installs_delegate_for_the_session(host_runtime, tmp_path: Path) -> None:
    from fmtbridge import server as server_module
    from fmtbridge.delegate import ExternalDelegate

    host = LocalHost()
    delegate = ExternalDelegate.new(
        host.init, host.format_embedded, host.format_file, host.sort_classes, runtime=host_runtime
    )
    seen: list[object] = []

    def _start() -> None:
        seen.append(server_module.format_document(str(tmp_path / "a.json"), "[1]"))

    assert server_module.run_lsp(delegate, start_fn=_start) == 0
    assert seen[0].code == "[\n  1\n]\n"
    assert host.init_calls == 1
    assert server_module.format_document(str(tmp_path / "b.json"), "[1]").failed


def test_run_lsp_skips_documents_ignored_by_host_configs(host_runtime, tmp_path: Path) -> None:
    from fmtbridge import server as server_module
    from fmtbridge.host_config import create_config_loader

    (tmp_path / "oxlint.config.py").write_text("config = {'ignorePatterns': ['gen/*']}\n")
    loader = create_config_loader(LocalHost().load_configs, runtime=host_runtime)
    ignored = str(tmp_path / "gen" / "a.ts")
    seen: list[object] = []

    def _start() -> None:
        seen.append(server_module.format_document(ignored, "x"))
        seen.append(server_module.format_document(str(tmp_path / "src" / "b.ts"), "x"))

    assert server_module.run_lsp(None, config_loader=loader, start_fn=_start) == 0
    assert seen[0] is None
    assert seen[1].code == "x\n"
    assert not server_module.host_ignored(ignored)
