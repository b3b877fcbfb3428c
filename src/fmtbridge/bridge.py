"""Synchronous wrapper around one host-side asynchronous operation."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from fmtbridge.diagnostics import Diagnostic
from fmtbridge.exceptions import HostDecodeError, HostOperationError, NeverRaise
from fmtbridge.runtime.host_runtime import HostRuntime

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT")
HostHandle = Callable[..., Awaitable[object]]

INIT_OPERATION = "initExternalFormatter"
FORMAT_EMBEDDED_OPERATION = "formatEmbeddedCode"
FORMAT_FILE_OPERATION = "formatFile"
SORT_CLASSES_OPERATION = "sortTailwindClasses"
LOAD_CONFIGS_OPERATION = "loadConfigs"


class CallbackBridge(Generic[ResponseT]):
    """Call a host coroutine from blocking native code.

    The bridge owns nothing but the host handle and the response decoder, so
    one instance may be invoked concurrently from any number of worker
    threads. `invoke` must not be called from the host loop thread; doing so
    raises `NeverThrown` (see `HostRuntime.block_on`).
    """

    def __init__(
        self,
        operation: str,
        handle: HostHandle,
        *,
        runtime: HostRuntime,
        response_type: type[ResponseT] | object,
    ) -> None:
        self.operation = operation
        self._handle = handle
        self._runtime = runtime
        self._adapter: TypeAdapter[ResponseT] = TypeAdapter(response_type)

    @property
    def runtime(self) -> HostRuntime:
        return self._runtime

    def invoke(self, *request: object) -> ResponseT:
        logger.debug("invoking host operation %s", self.operation)
        try:
            raw = self._runtime.block_on(self.operation, lambda: self._handle(*request))
        except NeverRaise:
            raise
        except Exception as exc:
            raise HostOperationError(
                Diagnostic.error(f"`{self.operation}` threw an error: {exc}")
            ) from exc
        try:
            return self._adapter.validate_python(raw, strict=True)
        except ValidationError as exc:
            raise HostDecodeError(
                Diagnostic.error(f"Failed to decode `{self.operation}` response").with_note(
                    str(exc)
                )
            ) from exc
