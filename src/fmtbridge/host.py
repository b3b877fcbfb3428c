"""Default in-process host.

When fmtbridge runs as its own console program there is no foreign host to
call back into, so `LocalHost` supplies coroutine implementations of the
host operations. It only formats the JSON family itself; every other parser
is rejected, and the bridge reports that as a host-operation failure.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping, Sequence

import yaml

from fmtbridge.config import DEFAULT_CONFIG_NAME
from fmtbridge.exceptions import UnsupportedParserError
from fmtbridge.host_config import load_host_configs
from fmtbridge.json_types import JSONObject, JSONValue

logger = logging.getLogger(__name__)

JSON_PARSERS = frozenset({"json", "json-stringify"})
PRETTIER_CONFIG_NAMES = (".prettierrc", ".prettierrc.json", ".prettierrc.yaml", ".prettierrc.yml")
# Prettier keys carried over by `--migrate prettier`.
MIGRATED_KEYS = (
    "useTabs",
    "tabWidth",
    "printWidth",
    "singleQuote",
    "jsxSingleQuote",
    "semi",
    "endOfLine",
)
DEFAULT_CONFIG_TEXT = """\
[format]
useTabs = false
tabWidth = 2
printWidth = 100
singleQuote = false
semi = true
endOfLine = "lf"
ignorePatterns = []
"""


def _json_indent(options: Mapping[str, JSONValue]) -> str | int:
    if options.get("useTabs") is True:
        return "\t"
    width = options.get("tabWidth")
    if isinstance(width, int) and not isinstance(width, bool):
        return width
    return 2


def format_json(options: Mapping[str, JSONValue], code: str) -> str:
    value = json.loads(code)
    return json.dumps(value, indent=_json_indent(options), ensure_ascii=False) + "\n"


def _variant_key(name: str) -> tuple[int, str]:
    return (1 if ":" in name else 0, name)


class LocalHost:
    def __init__(self, plugins: Sequence[str] = ()) -> None:
        self.plugins = list(plugins)
        self.init_calls = 0

    async def init(self, num_threads: int) -> list[str]:
        self.init_calls += 1
        logger.debug("local host initialized for %d threads", num_threads)
        return list(self.plugins)

    async def format_embedded(self, options: JSONObject, parser_name: str, code: str) -> str:
        if parser_name not in JSON_PARSERS:
            raise UnsupportedParserError(f"no embedded formatter for parser `{parser_name}`")
        return format_json(options, code).rstrip("\n")

    async def format_file(
        self, options: JSONObject, parser_name: str, file_name: str, code: str
    ) -> str:
        if parser_name not in JSON_PARSERS:
            raise UnsupportedParserError(f"cannot format {file_name} with parser `{parser_name}`")
        return format_json(options, code)

    async def sort_classes(
        self, file_path: str, options: JSONObject, classes: list[str]
    ) -> list[str]:
        return sorted(classes, key=_variant_key)

    async def load_configs(self, paths: list[str]) -> str:
        return await load_host_configs(paths)


def _toml_value(value: object) -> str | None:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return "[" + ", ".join(json.dumps(item) for item in value) + "]"
    return None


def run_init(root: Path) -> int:
    target = root / DEFAULT_CONFIG_NAME
    if target.exists():
        logger.error("%s already exists", target)
        return 1
    target.write_text(DEFAULT_CONFIG_TEXT, encoding="utf-8")
    logger.info("wrote %s", target)
    return 0


def _read_prettier_config(root: Path) -> tuple[Path, Mapping[str, object]] | None:
    for name in PRETTIER_CONFIG_NAMES:
        candidate = root / name
        if not candidate.is_file():
            continue
        # YAML accepts the JSON form as well.
        loaded = yaml.safe_load(candidate.read_text(encoding="utf-8"))
        return candidate, loaded if isinstance(loaded, Mapping) else {}
    return None


def run_migrate_prettier(root: Path) -> int:
    target = root / DEFAULT_CONFIG_NAME
    if target.exists():
        logger.error("%s already exists", target)
        return 1
    try:
        found = _read_prettier_config(root)
    except yaml.YAMLError as exc:
        logger.error("cannot read prettier config: %s", exc)
        return 1
    if found is None:
        logger.error("no prettier config found in %s", root)
        return 1
    source, settings = found
    lines = ["[format]"]
    for key in MIGRATED_KEYS:
        if key not in settings:
            continue
        rendered = _toml_value(settings[key])
        if rendered is None:
            logger.warning("skipping %s from %s: unsupported value", key, source)
            continue
        lines.append(f"{key} = {rendered}")
    target.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info("migrated %s to %s", source, target)
    return 0
