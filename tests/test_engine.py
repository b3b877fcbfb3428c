from __future__ import annotations

import pytest

from fmtbridge.delegate import EngineCallbacks
from fmtbridge.diagnostics import Diagnostic
from fmtbridge.engine import SourceFormatter, TemplateEngine, scan_template_literals
from fmtbridge.exceptions import DelegateError, DiagnosticsError
from fmtbridge.options import normalize
from fmtbridge.strategy import resolve_strategy


def _upper_css(parser_name: str, code: str) -> str:
    assert parser_name == "css"
    return code.strip().upper() + "\n"


def test_scan_skips_strings_and_comments() -> None:
    source = "const a = '`';\n// `comment`\n/* `block` */\nconst b = css`x`;\n"
    literals = scan_template_literals(source, "a.js")
    assert len(literals) == 1
    assert literals[0].tag == "css"
    assert source[literals[0].start : literals[0].end] == "`x`"


def test_scan_recognizes_tags_and_substitutions() -> None:
    source = "styled.div`a`; gql`b`; html`${x}`; plain`c`;"
    literals = scan_template_literals(source, "a.js")
    assert [item.tag for item in literals] == ["css", "graphql", "html", None]
    assert [item.has_substitutions for item in literals] == [False, False, True, False]


def test_unterminated_template_literal_is_a_spanned_diagnostic() -> None:
    source = "const a = css`color: red;\n"
    with pytest.raises(DiagnosticsError) as excinfo:
        TemplateEngine().format(source, resolve_strategy("a.ts"), normalize({}), EngineCallbacks())
    diagnostic = excinfo.value.diagnostics[0]
    assert diagnostic.message == "Unterminated template literal"
    assert diagnostic.span is not None
    assert diagnostic.span.start == source.index("`")


def test_embedded_code_is_formatted_and_reindented() -> None:
    source = "function f() {\n  return css`\ncolor:red;\n`;\n}"
    callbacks = EngineCallbacks(embedded_formatter=_upper_css)
    out = TemplateEngine().format(source, resolve_strategy("a.ts"), normalize({}), callbacks)
    assert out == "function f() {\n  return css`\n    COLOR:RED;\n  `;\n}\n"


def test_line_endings_and_trailing_newline_follow_options() -> None:
    out = TemplateEngine().format(
        "a\r\nb\n\n\n", resolve_strategy("a.ts"), normalize({"endOfLine": "crlf"}), EngineCallbacks()
    )
    assert out == "a\r\nb\r\n"
    assert TemplateEngine().format("", resolve_strategy("a.ts"), normalize({}), EngineCallbacks()) == ""


def test_class_lists_sorted_only_for_jsx_capable_files() -> None:
    source = '<div className="p-2 m-1 flex" class="one" />\n'
    callbacks = EngineCallbacks(class_sorter=sorted)
    options = normalize({"experimentalTailwindcss": {}})
    jsx = TemplateEngine().format(source, resolve_strategy("a.tsx"), options, callbacks)
    assert jsx == '<div className="flex m-1 p-2" class="one" />\n'
    ts = TemplateEngine().format(source, resolve_strategy("a.ts"), options, callbacks)
    assert ts == source


def test_tailwind_functions_and_attributes_are_sorted() -> None:
    source = 'const c = clsx("p-2 m-1");\n<a tw="b a" />\n'
    options = normalize({"experimentalTailwindcss": {"functions": ["clsx"], "attributes": ["tw"]}})
    callbacks = EngineCallbacks(class_sorter=sorted)
    out = TemplateEngine().format(source, resolve_strategy("a.jsx"), options, callbacks)
    assert out == 'const c = clsx("m-1 p-2");\n<a tw="a b" />\n'


class _FakeDelegate:
    def __init__(self, *, fail: bool) -> None:
        self.fail = fail

    def format_file(self, options, parser_name, file_name, code):
        if self.fail:
            raise DelegateError(Diagnostic.error("`formatFile` threw an error: nope"))
        return code.replace(" ", "")

    def callbacks(self, options, file_path, *, tailwind, sink):
        return EngineCallbacks(diagnostics=sink)


def test_source_formatter_delegates_external_files() -> None:
    formatter = SourceFormatter().with_external_delegate(_FakeDelegate(fail=False))
    strategy = resolve_strategy("a.json")
    result = formatter.format(strategy, '{ "a": 1 }', normalize({}), host_options={})
    assert result.code == '{"a":1}'
    assert result.changed
    assert not result.failed


def test_source_formatter_keeps_original_when_delegate_fails() -> None:
    formatter = SourceFormatter().with_external_delegate(_FakeDelegate(fail=True))
    result = formatter.format(resolve_strategy("a.css"), "a { }", normalize({}), host_options={})
    assert result.code == "a { }"
    assert not result.changed
    assert not result.failed
    assert [item.message for item in result.diagnostics] == ["`formatFile` threw an error: nope"]


def test_source_formatter_without_delegate_cannot_format_external_files() -> None:
    result = SourceFormatter().format(resolve_strategy("a.md"), "# x", normalize({}), host_options={})
    assert result.failed
    assert result.diagnostics[0].message == "No external formatter available for a.md"


def test_source_formatter_engine_failure_returns_original() -> None:
    source = "x = `open"
    result = SourceFormatter().format(resolve_strategy("a.js"), source, normalize({}), host_options={})
    assert result.failed
    assert result.code == source
