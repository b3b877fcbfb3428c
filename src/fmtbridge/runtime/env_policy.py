# fmtbridge:decision_protocol_module
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import logging
import os
import re

from fmtbridge.invariants import never

HOST_TIMEOUT_ENV = "FMTBRIDGE_HOST_TIMEOUT"
LOG_LEVEL_ENV = "FMTBRIDGE_LOG"

_DURATION_TOKEN_RE = re.compile(r"(?P<value>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h)")
_DURATION_UNIT_SECONDS: dict[str, Decimal] = {
    "ms": Decimal("0.001"),
    "s": Decimal("1"),
    "m": Decimal("60"),
    "h": Decimal("3600"),
}


@dataclass(frozen=True)
class HostTimeoutConfig:
    seconds: float | None = None

    def __post_init__(self) -> None:
        if self.seconds is not None and self.seconds <= 0:
            never("invalid host timeout", seconds=self.seconds)


_HOST_TIMEOUT_OVERRIDE: ContextVar[HostTimeoutConfig | None] = ContextVar(
    "fmtbridge_host_timeout_override",
    default=None,
)


def env_text(name: str, *, default: str = "") -> str:
    return os.getenv(name, default).strip()


def parse_duration_seconds(duration: str, *, field_name: str = "timeout") -> float:
    """Parse `1.5s`, `500ms`, `2m30s` or a bare number of seconds."""
    text = str(duration).strip().lower()
    if not text:
        never(f"invalid {field_name} duration", duration=duration)
    try:
        bare = Decimal(text)
    except InvalidOperation:
        bare = None
    if bare is not None:
        if bare <= 0:
            never(f"invalid {field_name} duration", duration=duration)
        return float(bare)
    idx = 0
    total = Decimal("0")
    while idx < len(text):
        match = _DURATION_TOKEN_RE.match(text, idx)
        if match is None:
            never(f"invalid {field_name} duration", duration=duration)
        value = Decimal(match.group("value"))
        if value <= 0:
            never(f"invalid {field_name} duration", duration=duration)
        total += value * _DURATION_UNIT_SECONDS[match.group("unit")]
        idx = match.end()
    return float(total)


def host_timeout_override() -> HostTimeoutConfig | None:
    return _HOST_TIMEOUT_OVERRIDE.get()


def set_host_timeout_override(
    timeout: HostTimeoutConfig | None,
) -> Token[HostTimeoutConfig | None]:
    return _HOST_TIMEOUT_OVERRIDE.set(timeout)


def reset_host_timeout_override(token: Token[HostTimeoutConfig | None]) -> None:
    _HOST_TIMEOUT_OVERRIDE.reset(token)


@contextmanager
def host_timeout_scope(timeout: HostTimeoutConfig | None):
    token = set_host_timeout_override(timeout)
    try:
        yield
    finally:
        reset_host_timeout_override(token)


def host_timeout_seconds() -> float | None:
    """Timeout applied to every bridged host call; `None` means wait forever."""
    override = host_timeout_override()
    if override is not None:
        return override.seconds
    raw = env_text(HOST_TIMEOUT_ENV)
    if not raw:
        return None
    return parse_duration_seconds(raw, field_name="host timeout")


def log_level_from_env(default: int = logging.WARNING) -> int:
    raw = env_text(LOG_LEVEL_ENV).upper()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default
