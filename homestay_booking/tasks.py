"""Cancellable task handles for polling, countdowns and debounced checks.

Every timer the booking screens start is one of these handles, so the owner
can stop it on teardown and tests can assert nothing is left running.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

AsyncCallback = Callable[[], Awaitable[Any]]


class PeriodicTask:
    """Run ``func`` every ``interval`` seconds until stopped."""

    def __init__(
        self,
        func: AsyncCallback,
        interval: float,
        *,
        immediate: bool = True,
        name: Optional[str] = None,
    ) -> None:
        self.func = func
        self.interval = interval
        self.immediate = immediate
        self.name = name or getattr(func, "__name__", "periodic")
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    def start(self) -> "PeriodicTask":
        if self._task is not None:
            raise RuntimeError(f"Task {self.name} already started")
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return self

    async def _run(self) -> None:
        if not self.immediate:
            await asyncio.sleep(self.interval)
        while not self._stopped:
            try:
                await self.func()
            except Exception as exc:
                logger.warning(f"[TASK] {self.name} iteration failed: {exc}")
            if self._stopped:
                break
            await asyncio.sleep(self.interval)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopped

    def stop(self) -> None:
        self._stopped = True
        task = self._task
        if task is None or task.done():
            return
        # A callback may stop its own task; let the loop exit on its own then.
        if task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> None:
        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class DelayedTask:
    """Run ``func`` once after ``delay`` seconds; cancelling only works before it fires."""

    def __init__(self, func: AsyncCallback, delay: float, *, name: Optional[str] = None) -> None:
        self.func = func
        self.delay = delay
        self.name = name or getattr(func, "__name__", "delayed")
        self.fired = False
        self._task: Optional[asyncio.Task] = None

    def start(self) -> "DelayedTask":
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        return self

    async def _run(self) -> Any:
        await asyncio.sleep(self.delay)
        self.fired = True
        return await self.func()

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self) -> bool:
        """Drop the call if it has not fired yet. In-flight work is left to finish."""

        if self._task is None or self.fired or self._task.done():
            return False
        self._task.cancel()
        return True

    async def wait(self) -> None:
        if self._task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
