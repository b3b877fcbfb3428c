"""Handle on the host's asyncio loop plus the block-yield discipline.

Native (synchronous) work started from a host coroutine must go through
`HostRuntime.block_in_place`, which moves it to a worker thread so the loop
keeps running. Native code then reaches back into the host with
`HostRuntime.block_on`, which schedules the host coroutine on the loop and
blocks only the worker thread until it completes.

`block_on` must never run on the loop thread itself: the loop would be
waiting on a future only it can complete. That is a programming error and
raises `NeverThrown`.
"""

from __future__ import annotations

import asyncio
import contextvars
import functools
import inspect
import logging
import threading
from concurrent.futures import Executor
from typing import Awaitable, Callable, TypeVar

from fmtbridge.invariants import never
from fmtbridge.runtime.env_policy import host_timeout_seconds

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _drive(make_awaitable: Callable[[], Awaitable[T] | T]) -> T:
    result = make_awaitable()
    if inspect.isawaitable(result):
        result = await result
    return result


class HostRuntime:
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        *,
        executor: Executor | None = None,
        timeout: float | None = None,
    ) -> None:
        self._loop = loop
        self._executor = executor
        self._timeout = timeout

    @classmethod
    def current(
        cls,
        *,
        executor: Executor | None = None,
        timeout: float | None = None,
    ) -> "HostRuntime":
        """Bind to the running loop; only callable from host coroutines."""
        loop = asyncio.get_running_loop()
        if timeout is None:
            timeout = host_timeout_seconds()
        return cls(loop, executor=executor, timeout=timeout)

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def on_loop_thread(self) -> bool:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            return False
        return running is self._loop

    async def block_in_place(self, fn: Callable[..., T], *args: object, **kwargs: object) -> T:
        """Run blocking native work off the loop thread and await its result."""
        if not self.on_loop_thread():
            never("block_in_place awaited outside the host loop", function=repr(fn))
        call = functools.partial(fn, *args, **kwargs)
        context = contextvars.copy_context()
        return await self._loop.run_in_executor(self._executor, context.run, call)

    def block_on(self, operation: str, make_awaitable: Callable[[], Awaitable[T] | T]) -> T:
        """Drive a host coroutine to completion from a native worker thread.

        Precondition: the caller is not the loop thread. The awaitable is
        created on the loop thread, so host handles always run in host
        context. Exceptions raised by the host propagate unchanged.
        """
        if self.on_loop_thread():
            never(
                "host operation invoked from the host event loop thread",
                operation=operation,
                thread=threading.current_thread().name,
            )
        if self._loop.is_closed() or not self._loop.is_running():
            never("host runtime is not running", operation=operation)
        logger.debug("block_on %s (timeout=%s)", operation, self._timeout)
        future = asyncio.run_coroutine_threadsafe(_drive(make_awaitable), self._loop)
        try:
            return future.result(self._timeout)
        except TimeoutError:
            if future.done():
                raise
            future.cancel()
            raise TimeoutError(
                f"host did not respond within {self._timeout}s"
            ) from None
