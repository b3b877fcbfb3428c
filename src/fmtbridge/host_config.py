# fmtbridge:boundary_normalization_module
"""Decoding of batched host-evaluated lint configs.

The host answers a `loadConfigs(paths)` request with JSON text holding one of
three tagged shapes, tried in this order:

* ``{"Success": [{"path": ..., "config": {...}}, ...]}``
* ``{"Failures": [{"path": ..., "error": ...}, ...]}``
* ``{"Error": "..."}``

A batch is atomic: if any entry of a success batch fails to validate, only
the diagnostics are returned.
"""

from __future__ import annotations

from dataclasses import dataclass
import importlib.util
import json
import logging
from pathlib import Path
from typing import Callable, Mapping, Sequence

from pydantic import TypeAdapter, ValidationError

from fmtbridge.bridge import LOAD_CONFIGS_OPERATION, CallbackBridge, HostHandle
from fmtbridge.diagnostics import Diagnostic
from fmtbridge.exceptions import DelegateError, DiagnosticsError
from fmtbridge.invariants import boundary_normalization
from fmtbridge.runtime.host_runtime import HostRuntime
from fmtbridge.schema import (
    HostConfigErrorDTO,
    HostConfigFailuresDTO,
    HostConfigResponseDTO,
    HostConfigSuccessDTO,
    LintConfig,
)

logger = logging.getLogger(__name__)

_RESPONSE_ADAPTER: TypeAdapter[
    HostConfigSuccessDTO | HostConfigFailuresDTO | HostConfigErrorDTO
] = TypeAdapter(HostConfigResponseDTO)

HostConfigLoader = Callable[[Sequence[str]], "list[HostConfigEntry]"]


@dataclass(frozen=True)
class HostConfigEntry:
    path: Path
    config: LintConfig


@boundary_normalization
def parse_host_config_response(text: str) -> list[HostConfigEntry]:
    try:
        response = _RESPONSE_ADAPTER.validate_json(text)
    except ValidationError as exc:
        raise DiagnosticsError(
            [Diagnostic.error("Failed to parse host config response").with_note(str(exc))]
        ) from exc

    if isinstance(response, HostConfigSuccessDTO):
        entries: list[HostConfigEntry] = []
        errors: list[Diagnostic] = []
        for item in response.Success:
            try:
                config = LintConfig.model_validate(item.config)
            except ValidationError as exc:
                errors.append(
                    Diagnostic.error(f"Failed to parse config from {item.path}").with_note(
                        str(exc)
                    )
                )
                continue
            if config.extends:
                errors.append(
                    Diagnostic.error(
                        f"`extends` in host configs is not yet supported (found in {item.path})"
                    )
                )
                continue
            path = Path(item.path)
            entries.append(
                HostConfigEntry(path=path, config=config.model_copy(update={"path": item.path}))
            )
        if errors:
            raise DiagnosticsError(errors)
        return entries

    if isinstance(response, HostConfigFailuresDTO):
        raise DiagnosticsError(
            [
                Diagnostic.error(f"Failed to load config: {failure.path}").with_note(failure.error)
                for failure in response.Failures
            ]
        )

    raise DiagnosticsError(
        [Diagnostic.error("Failed to load config files").with_note(response.Error)]
    )


def create_config_loader(handle: HostHandle, *, runtime: HostRuntime) -> HostConfigLoader:
    """Wrap the host's `loadConfigs` coroutine as a blocking loader.

    The returned callable must be used from a native worker thread, never
    from the host loop thread.
    """
    bridge: CallbackBridge[str] = CallbackBridge(
        LOAD_CONFIGS_OPERATION, handle, runtime=runtime, response_type=str
    )

    def _load(paths: Sequence[str]) -> list[HostConfigEntry]:
        try:
            text = bridge.invoke(list(paths))
        except DelegateError as exc:
            raise DiagnosticsError([exc.diagnostic]) from exc
        return parse_host_config_response(text)

    return _load


def _load_config_module(path: str) -> Mapping[str, object]:
    spec = importlib.util.spec_from_file_location(f"_fmtbridge_config_{abs(hash(path))}", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot import config module {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    config = getattr(module, "config", None)
    if not isinstance(config, Mapping):
        raise TypeError(f"Config at {path} must define a module-level `config` mapping")
    return config


async def load_host_configs(paths: list[str]) -> str:
    """Host-side default `loadConfigs`: evaluate Python config modules.

    Every path is attempted; if any fails, all failures are reported.
    """
    try:
        successes: list[dict[str, object]] = []
        failures: list[dict[str, str]] = []
        for path in paths:
            try:
                config = _load_config_module(path)
            except Exception as exc:  # config modules run arbitrary user code
                failures.append({"path": path, "error": f"{type(exc).__name__}: {exc}"})
                continue
            successes.append({"path": path, "config": dict(config)})
        if failures:
            return json.dumps({"Failures": failures})
        return json.dumps({"Success": successes})
    except (TypeError, ValueError) as exc:
        logger.debug("host config serialization failed", exc_info=True)
        return json.dumps({"Error": str(exc)})
