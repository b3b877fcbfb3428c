"""Invariant markers for fmtbridge."""

from __future__ import annotations

from typing import Callable, NoReturn, TypeVar

from fmtbridge.exceptions import NeverThrown

FuncT = TypeVar("FuncT", bound=Callable[..., object])


def never(reason: str = "", **env: object) -> NoReturn:
    """Mark a code path as intentionally unreachable.

    The optional env payload is metadata only; it is attached to the raised
    exception for debugging and is not evaluated.
    """
    raise NeverThrown(reason or "never() marker reached", env=env)


def decision_protocol(func: FuncT) -> FuncT:
    """Marker decorator for explicit decision-protocol control surfaces."""
    return func


def boundary_normalization(func: FuncT) -> FuncT:
    """Marker decorator for boundary normalization surfaces."""
    return func
