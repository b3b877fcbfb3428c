from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
import threading

import pytest

from fmtbridge.delegate import ExternalDelegate, fallback_class_sorter, fallback_embedded
from fmtbridge.diagnostics import Diagnostic
from fmtbridge.exceptions import DelegateError, HostOperationError
from fmtbridge.runtime.host_runtime import HostRuntime


class _RecordingHost:
    def __init__(self, *, fail_init: bool = False, delay: float = 0.0) -> None:
        self.fail_init = fail_init
        self.delay = delay
        self.init_calls = 0
        self.format_calls = 0
        self._lock = threading.Lock()

    async def init(self, num_threads: int) -> list[str]:
        with self._lock:
            self.init_calls += 1
        await asyncio.sleep(self.delay)
        if self.fail_init:
            raise RuntimeError("plugin missing")
        return ["prettier-plugin-tailwindcss"]

    async def format_embedded(self, options, parser_name: str, code: str) -> str:
        if parser_name == "graphql":
            raise ValueError("no graphql")
        return code.strip()

    async def format_file(self, options, parser_name: str, file_name: str, code: str) -> str:
        with self._lock:
            self.format_calls += 1
        await asyncio.sleep(self.delay)
        return f"{file_name}:{code}"

    async def sort_classes(self, file_path: str, options, classes: list[str]) -> list[str]:
        if "bad" in classes:
            return "not a list"
        return sorted(classes)

    def delegate(self, runtime: HostRuntime) -> ExternalDelegate:
        return ExternalDelegate.new(
            self.init,
            self.format_embedded,
            self.format_file,
            self.sort_classes,
            runtime=runtime,
        )


def test_init_runs_once_and_reports_plugins(host_runtime: HostRuntime) -> None:
    host = _RecordingHost()
    delegate = host.delegate(host_runtime)
    assert not delegate.initialized
    assert delegate.init(4) == ["prettier-plugin-tailwindcss"]
    assert delegate.init(8) == ["prettier-plugin-tailwindcss"]
    assert delegate.initialized
    assert host.init_calls == 1


def test_concurrent_init_calls_the_host_once(host_runtime: HostRuntime) -> None:
    host = _RecordingHost(delay=0.05)
    delegate = host.delegate(host_runtime)
    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: delegate.init(16), range(32)))
    assert host.init_calls == 1
    assert all(result == ["prettier-plugin-tailwindcss"] for result in results)


def test_failed_init_is_remembered_not_retried(host_runtime: HostRuntime) -> None:
    host = _RecordingHost(fail_init=True)
    delegate = host.delegate(host_runtime)
    for _ in range(3):
        with pytest.raises(HostOperationError) as excinfo:
            delegate.init(1)
        assert "plugin missing" in excinfo.value.diagnostic.message
    assert host.init_calls == 1


def test_many_threads_format_concurrently(host_runtime: HostRuntime) -> None:
    host = _RecordingHost(delay=0.01)
    delegate = host.delegate(host_runtime)
    names = [f"f{index}.json" for index in range(100)]
    with ThreadPoolExecutor(max_workers=100) as pool:
        results = list(pool.map(lambda name: delegate.format_file({}, "json", name, "{}"), names))
    assert results == [f"{name}:{{}}" for name in names]
    assert host.format_calls == 100


def test_callbacks_fall_back_to_original_input(host_runtime: HostRuntime) -> None:
    host = _RecordingHost()
    delegate = host.delegate(host_runtime)
    sink: list[Diagnostic] = []
    callbacks = delegate.callbacks({}, "a.tsx", tailwind=True, sink=sink)
    assert callbacks.embedded("css", "  a{}  ") == "a{}"
    assert callbacks.embedded("graphql", "query { a }") == "query { a }"
    assert callbacks.sort_classes(["p-2", "m-1"]) == ["m-1", "p-2"]
    assert callbacks.sort_classes(["bad", "a"]) == ["bad", "a"]
    assert [item.message for item in sink] == [
        "`formatEmbeddedCode` threw an error: no graphql",
        "Failed to decode `sortTailwindClasses` response",
    ]


def test_callbacks_without_tailwind_do_not_sort(host_runtime: HostRuntime) -> None:
    delegate = _RecordingHost().delegate(host_runtime)
    callbacks = delegate.callbacks({}, "a.tsx", tailwind=False, sink=[])
    assert not callbacks.sorts_classes
    assert callbacks.sort_classes(["z", "a"]) == ["z", "a"]


def test_fallback_helpers_only_catch_delegate_errors() -> None:
    sink: list[Diagnostic] = []

    def _fails(*_args):
        raise DelegateError(Diagnostic.error("host down"))

    assert fallback_embedded(_fails, sink)("css", "a{}") == "a{}"
    assert fallback_class_sorter(_fails, sink)(["b", "a"]) == ["b", "a"]
    assert [item.message for item in sink] == ["host down", "host down"]

    def _bug(*_args):
        raise KeyError("bug")

    with pytest.raises(KeyError):
        fallback_embedded(_bug, sink)("css", "a{}")
