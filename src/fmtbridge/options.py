# fmtbridge:boundary_normalization_module
"""Canonical formatting options and the lenient host-payload normalizer.

`normalize` is total: whatever the host sends, every field of the returned
`CanonicalFormatOptions` is populated. A recognized key holding a value of
the wrong shape is treated as absent; unknown keys are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from fmtbridge.invariants import boundary_normalization
from fmtbridge.json_types import JSONObject, RawOptionValue


class IndentStyle(str, Enum):
    SPACE = "space"
    TAB = "tab"


class QuoteStyle(str, Enum):
    DOUBLE = "double"
    SINGLE = "single"

    @property
    def char(self) -> str:
        return "'" if self is QuoteStyle.SINGLE else '"'


class Semicolons(str, Enum):
    ALWAYS = "always"
    AS_NEEDED = "as-needed"


class LineEnding(str, Enum):
    LF = "lf"
    CRLF = "crlf"
    CR = "cr"

    @property
    def text(self) -> str:
        return {"lf": "\n", "crlf": "\r\n", "cr": "\r"}[self.value]


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


DEFAULT_INDENT_WIDTH = 2
MIN_INDENT_WIDTH = 0
MAX_INDENT_WIDTH = 24
DEFAULT_LINE_WIDTH = 100
MIN_LINE_WIDTH = 1
MAX_LINE_WIDTH = 320

TAILWIND_PLUGIN_FLAG = "_tailwindPluginEnabled"
TAILWIND_KEY = "experimentalTailwindcss"
SORT_IMPORTS_KEY = "experimentalSortImports"


@dataclass(frozen=True)
class TailwindcssOptions:
    config: str | None = None
    stylesheet: str | None = None
    functions: tuple[str, ...] = ()
    attributes: tuple[str, ...] = ()
    preserve_whitespace: bool = False
    preserve_duplicates: bool = False

    def to_host(self) -> JSONObject:
        payload: JSONObject = {
            "functions": list(self.functions),
            "attributes": list(self.attributes),
            "preserveWhitespace": self.preserve_whitespace,
            "preserveDuplicates": self.preserve_duplicates,
        }
        if self.config is not None:
            payload["config"] = self.config
        if self.stylesheet is not None:
            payload["stylesheet"] = self.stylesheet
        return payload


@dataclass(frozen=True)
class SortImportsOptions:
    ignore_case: bool = True
    newlines_between: bool = True
    order: SortOrder = SortOrder.ASC
    partition_by_newline: bool = False
    partition_by_comment: bool = False

    def to_host(self) -> JSONObject:
        return {
            "ignoreCase": self.ignore_case,
            "newlinesBetween": self.newlines_between,
            "order": self.order.value,
            "partitionByNewline": self.partition_by_newline,
            "partitionByComment": self.partition_by_comment,
        }


@dataclass(frozen=True)
class CanonicalFormatOptions:
    indent_style: IndentStyle = IndentStyle.SPACE
    indent_width: int = DEFAULT_INDENT_WIDTH
    line_width: int = DEFAULT_LINE_WIDTH
    quote_style: QuoteStyle = QuoteStyle.DOUBLE
    jsx_quote_style: QuoteStyle = QuoteStyle.DOUBLE
    semicolons: Semicolons = Semicolons.ALWAYS
    line_ending: LineEnding = LineEnding.LF
    tailwindcss: TailwindcssOptions | None = None
    sort_imports: SortImportsOptions | None = None

    @property
    def indent_unit(self) -> str:
        if self.indent_style is IndentStyle.TAB:
            return "\t"
        return " " * self.indent_width

    def to_host_options(self) -> JSONObject:
        """Render back into the camelCase option dictionary the host expects."""
        payload: JSONObject = {
            "useTabs": self.indent_style is IndentStyle.TAB,
            "tabWidth": self.indent_width,
            "printWidth": self.line_width,
            "singleQuote": self.quote_style is QuoteStyle.SINGLE,
            "jsxSingleQuote": self.jsx_quote_style is QuoteStyle.SINGLE,
            "semi": self.semicolons is Semicolons.ALWAYS,
            "endOfLine": self.line_ending.value,
        }
        if self.tailwindcss is not None:
            payload[TAILWIND_KEY] = self.tailwindcss.to_host()
        if self.sort_imports is not None:
            payload[SORT_IMPORTS_KEY] = self.sort_imports.to_host()
        return payload


def _as_bool(value: RawOptionValue) -> bool | None:
    return value if isinstance(value, bool) else None


def _as_int(value: RawOptionValue) -> int | None:
    # bool is an int subclass; `true` is never a width.
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _bounded(value: RawOptionValue, *, low: int, high: int, default: int) -> int:
    number = _as_int(value)
    if number is None or number < low or number > high:
        return default
    return number


def _as_str_tuple(value: RawOptionValue) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _quote(flag: bool | None, default: QuoteStyle) -> QuoteStyle:
    if flag is None:
        return default
    return QuoteStyle.SINGLE if flag else QuoteStyle.DOUBLE


def _line_ending(value: RawOptionValue) -> LineEnding:
    if isinstance(value, str):
        try:
            return LineEnding(value)
        except ValueError:
            return LineEnding.LF
    return LineEnding.LF


def normalize_tailwindcss(value: RawOptionValue) -> TailwindcssOptions:
    if not isinstance(value, Mapping):
        return TailwindcssOptions()
    config = value.get("config")
    stylesheet = value.get("stylesheet")
    return TailwindcssOptions(
        config=config if isinstance(config, str) else None,
        stylesheet=stylesheet if isinstance(stylesheet, str) else None,
        functions=_as_str_tuple(value.get("functions")),
        attributes=_as_str_tuple(value.get("attributes")),
        preserve_whitespace=_as_bool(value.get("preserveWhitespace")) or False,
        preserve_duplicates=_as_bool(value.get("preserveDuplicates")) or False,
    )


def normalize_sort_imports(value: RawOptionValue) -> SortImportsOptions:
    if not isinstance(value, Mapping):
        return SortImportsOptions()
    defaults = SortImportsOptions()
    order = value.get("order")
    ignore_case = _as_bool(value.get("ignoreCase"))
    newlines_between = _as_bool(value.get("newlinesBetween"))
    return SortImportsOptions(
        ignore_case=defaults.ignore_case if ignore_case is None else ignore_case,
        newlines_between=(
            defaults.newlines_between if newlines_between is None else newlines_between
        ),
        order=SortOrder.DESC if order == "desc" else SortOrder.ASC,
        partition_by_newline=_as_bool(value.get("partitionByNewline")) or False,
        partition_by_comment=_as_bool(value.get("partitionByComment")) or False,
    )


def tailwind_enabled(raw: Mapping[str, RawOptionValue]) -> bool:
    return _as_bool(raw.get(TAILWIND_PLUGIN_FLAG)) is True or TAILWIND_KEY in raw


@boundary_normalization
def normalize(raw: RawOptionValue) -> CanonicalFormatOptions:
    if not isinstance(raw, Mapping):
        return CanonicalFormatOptions()
    use_tabs = _as_bool(raw.get("useTabs"))
    semi = _as_bool(raw.get("semi"))
    return CanonicalFormatOptions(
        indent_style=IndentStyle.TAB if use_tabs else IndentStyle.SPACE,
        indent_width=_bounded(
            raw.get("tabWidth"),
            low=MIN_INDENT_WIDTH,
            high=MAX_INDENT_WIDTH,
            default=DEFAULT_INDENT_WIDTH,
        ),
        line_width=_bounded(
            raw.get("printWidth"),
            low=MIN_LINE_WIDTH,
            high=MAX_LINE_WIDTH,
            default=DEFAULT_LINE_WIDTH,
        ),
        quote_style=_quote(_as_bool(raw.get("singleQuote")), QuoteStyle.DOUBLE),
        jsx_quote_style=_quote(_as_bool(raw.get("jsxSingleQuote")), QuoteStyle.DOUBLE),
        semicolons=Semicolons.AS_NEEDED if semi is False else Semicolons.ALWAYS,
        line_ending=_line_ending(raw.get("endOfLine")),
        tailwindcss=(
            normalize_tailwindcss(raw.get(TAILWIND_KEY)) if tailwind_enabled(raw) else None
        ),
        sort_imports=(
            normalize_sort_imports(raw.get(SORT_IMPORTS_KEY))
            if SORT_IMPORTS_KEY in raw
            else None
        ),
    )
