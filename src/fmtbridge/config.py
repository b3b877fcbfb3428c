from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time
import logging
from pathlib import Path
import threading
from typing import Mapping, TypeAlias
import tomllib

from pydantic import ValidationError

from fmtbridge.diagnostics import Diagnostic
from fmtbridge.exceptions import DiagnosticsError
from fmtbridge.json_types import JSONObject, RawOptionValue
from fmtbridge.options import CanonicalFormatOptions, normalize
from fmtbridge.schema import FormatConfigDTO, LintConfig
from fmtbridge.strategy import FileStrategy, StrategyKind

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "fmtbridge.toml"
HOST_CONFIG_NAMES = ("fmtbridge.config.py", "oxlint.config.py")

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        logger.warning("ignoring invalid config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def discover_config(start: Path | None = None) -> Path | None:
    """Walk from `start` towards the filesystem root looking for the config."""
    base = (start if start is not None else Path.cwd()).resolve()
    if base.is_file():
        base = base.parent
    for directory in (base, *base.parents):
        candidate = directory / DEFAULT_CONFIG_NAME
        if candidate.is_file():
            return candidate
    return None


def discover_host_configs(root: Path) -> list[Path]:
    """Config files that only the host can evaluate (Python modules)."""
    found: list[Path] = []
    for name in HOST_CONFIG_NAMES:
        candidate = root / name
        if candidate.is_file():
            found.append(candidate.resolve())
    return found


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        discovered = discover_config(root)
        if discovered is None:
            return {}
        config_path = discovered
    return _load_toml(config_path)


def format_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("format", {})
    return section if isinstance(section, dict) else {}


def lint_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("lint", {})
    return section if isinstance(section, dict) else {}


def load_lint_config(
    root: Path | None = None, config_path: Path | None = None
) -> LintConfig:
    """The `[lint]` table as a `LintConfig`; raises `DiagnosticsError` when invalid."""
    try:
        return LintConfig.model_validate(lint_defaults(root=root, config_path=config_path))
    except ValidationError as exc:
        raise DiagnosticsError(
            [
                Diagnostic.error("Failed to parse lint configuration").with_note(
                    _first_validation_failure(exc)
                )
            ]
        ) from exc


def merge_payload(payload: Mapping[str, object], defaults: Mapping[str, object]) -> dict[str, object]:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def _first_validation_failure(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}" if location else message


class ConfigResolver:
    """Turns one host option payload into per-strategy canonical options.

    Canonical options are computed once per strategy kind and cached; the
    cache is guarded so worker threads may resolve concurrently.
    """

    def __init__(self, raw: Mapping[str, RawOptionValue] | None = None) -> None:
        self._raw: dict[str, RawOptionValue] = dict(raw or {})
        self._base = normalize(self._raw)
        self._cache: dict[tuple[StrategyKind, bool], CanonicalFormatOptions] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_value(cls, value: RawOptionValue) -> "ConfigResolver":
        if value is None:
            return cls({})
        if not isinstance(value, Mapping):
            logger.debug("ignoring non-mapping option payload of type %s", type(value).__name__)
            return cls({})
        return cls(value)

    @classmethod
    def from_config_file(
        cls,
        root: Path | None = None,
        config_path: Path | None = None,
        overrides: Mapping[str, object] | None = None,
    ) -> "ConfigResolver":
        defaults = format_defaults(root=root, config_path=config_path)
        return cls(merge_payload(overrides or {}, defaults))

    @property
    def raw(self) -> dict[str, RawOptionValue]:
        return dict(self._raw)

    @property
    def ignore_patterns(self) -> tuple[str, ...]:
        patterns = self._raw.get("ignorePatterns")
        if not isinstance(patterns, list):
            return ()
        return tuple(item for item in patterns if isinstance(item, str))

    def build_and_validate(self) -> CanonicalFormatOptions:
        """Normalize and additionally reject ill-typed or conflicting options.

        Raises `DiagnosticsError` with exactly one diagnostic describing the
        first failure found.
        """
        try:
            FormatConfigDTO.model_validate(self._raw)
        except ValidationError as exc:
            raise DiagnosticsError(
                [
                    Diagnostic.error("Failed to parse configuration").with_note(
                        _first_validation_failure(exc)
                    )
                ]
            ) from exc
        return self._base

    def resolve(self, strategy: FileStrategy) -> CanonicalFormatOptions:
        key = (strategy.kind, strategy.has_jsx)
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            resolved = self._base
            if not strategy.has_jsx:
                resolved = replace(resolved, jsx_quote_style=resolved.quote_style)
            self._cache[key] = resolved
            return resolved

    def host_options(self, strategy: FileStrategy) -> JSONObject:
        """Options for host callbacks: raw pass-through keys, canonical values on top."""
        payload: JSONObject = {
            key: value for key, value in self._raw.items() if not key.startswith("_")
        }
        payload.update(self.resolve(strategy).to_host_options())
        payload["filepath"] = strategy.path
        payload["parser"] = strategy.parser_name
        return payload
