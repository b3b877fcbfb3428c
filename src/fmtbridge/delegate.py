"""The capability object handed to the formatting engine.

`ExternalDelegate` bundles the four host callbacks. Delegation failures are
never fatal to a format run: `EngineCallbacks` wraps the embedded formatter
and the class sorter so a failure yields the original input plus a
diagnostic in the per-file sink.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import threading
from typing import Callable, Sequence

from fmtbridge.bridge import (
    FORMAT_EMBEDDED_OPERATION,
    FORMAT_FILE_OPERATION,
    INIT_OPERATION,
    SORT_CLASSES_OPERATION,
    CallbackBridge,
    HostHandle,
)
from fmtbridge.diagnostics import Diagnostic
from fmtbridge.exceptions import DelegateError
from fmtbridge.json_types import JSONObject
from fmtbridge.runtime.host_runtime import HostRuntime

logger = logging.getLogger(__name__)

EmbeddedFormatter = Callable[[str, str], str]
ClassSorter = Callable[[list[str]], list[str]]


@dataclass(frozen=True)
class _InitOutcome:
    plugins: tuple[str, ...] = ()
    error: DelegateError | None = None


class ExternalDelegate:
    def __init__(
        self,
        init: CallbackBridge[list[str]],
        format_embedded: CallbackBridge[str],
        format_file: CallbackBridge[str],
        sort_classes: CallbackBridge[list[str]],
    ) -> None:
        self._init = init
        self._format_embedded = format_embedded
        self._format_file = format_file
        self._sort_classes = sort_classes
        self._init_lock = threading.Lock()
        self._init_outcome: _InitOutcome | None = None

    @classmethod
    def new(
        cls,
        init: HostHandle,
        format_embedded: HostHandle,
        format_file: HostHandle,
        sort_classes: HostHandle,
        *,
        runtime: HostRuntime,
    ) -> "ExternalDelegate":
        return cls(
            CallbackBridge(INIT_OPERATION, init, runtime=runtime, response_type=list[str]),
            CallbackBridge(
                FORMAT_EMBEDDED_OPERATION, format_embedded, runtime=runtime, response_type=str
            ),
            CallbackBridge(FORMAT_FILE_OPERATION, format_file, runtime=runtime, response_type=str),
            CallbackBridge(
                SORT_CLASSES_OPERATION, sort_classes, runtime=runtime, response_type=list[str]
            ),
        )

    @property
    def runtime(self) -> HostRuntime:
        return self._init.runtime

    @property
    def initialized(self) -> bool:
        with self._init_lock:
            return self._init_outcome is not None

    def init(self, num_threads: int) -> list[str]:
        """Initialize the host formatter once and return its plugin names.

        The first caller runs the host operation while holding the lock;
        every other caller, concurrent or later, sees the same outcome. A
        failed initialization is remembered and reported again rather than
        retried.
        """
        with self._init_lock:
            if self._init_outcome is None:
                try:
                    plugins = self._init.invoke(num_threads)
                except DelegateError as exc:
                    self._init_outcome = _InitOutcome(error=exc)
                else:
                    self._init_outcome = _InitOutcome(plugins=tuple(plugins))
                    logger.debug("host formatter initialized with plugins %s", plugins)
            else:
                logger.debug("host formatter already initialized")
            outcome = self._init_outcome
        if outcome.error is not None:
            raise type(outcome.error)(outcome.error.diagnostic)
        return list(outcome.plugins)

    def format_embedded(self, options: JSONObject, parser_name: str, code: str) -> str:
        return self._format_embedded.invoke(options, parser_name, code)

    def format_file(
        self, options: JSONObject, parser_name: str, file_name: str, code: str
    ) -> str:
        return self._format_file.invoke(options, parser_name, file_name, code)

    def sort_classes(
        self, file_path: str, options: JSONObject, classes: Sequence[str]
    ) -> list[str]:
        return self._sort_classes.invoke(file_path, options, list(classes))

    def callbacks(
        self,
        options: JSONObject,
        file_path: str,
        *,
        tailwind: bool,
        sink: list[Diagnostic],
    ) -> "EngineCallbacks":
        embedded = fallback_embedded(
            lambda parser_name, code: self.format_embedded(options, parser_name, code),
            sink,
        )
        sorter = None
        if tailwind:
            sorter = fallback_class_sorter(
                lambda classes: self.sort_classes(file_path, options, classes),
                sink,
            )
        return EngineCallbacks(embedded_formatter=embedded, class_sorter=sorter, diagnostics=sink)


def fallback_embedded(
    call: Callable[[str, str], str], sink: list[Diagnostic]
) -> EmbeddedFormatter:
    def _embedded(parser_name: str, code: str) -> str:
        try:
            return call(parser_name, code)
        except DelegateError as exc:
            logger.warning("embedded %s formatting failed, keeping original", parser_name)
            sink.append(exc.diagnostic)
            return code

    return _embedded


def fallback_class_sorter(
    call: Callable[[list[str]], list[str]], sink: list[Diagnostic]
) -> ClassSorter:
    def _sort(classes: list[str]) -> list[str]:
        try:
            return call(list(classes))
        except DelegateError as exc:
            logger.warning("class sorting failed, keeping original order")
            sink.append(exc.diagnostic)
            return list(classes)

    return _sort


@dataclass
class EngineCallbacks:
    """Hooks the engine calls for embedded regions and class lists."""

    embedded_formatter: EmbeddedFormatter | None = None
    class_sorter: ClassSorter | None = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def sorts_classes(self) -> bool:
        return self.class_sorter is not None

    def embedded(self, parser_name: str, code: str) -> str:
        if self.embedded_formatter is None:
            return code
        return self.embedded_formatter(parser_name, code)

    def sort_classes(self, classes: list[str]) -> list[str]:
        if self.class_sorter is None:
            return list(classes)
        return self.class_sorter(classes)
