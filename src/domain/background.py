"""Best-effort execution of work scheduled after the response is sent.

Work runs as FastAPI background tasks. The runner only adds exception
isolation and an in-flight count so shutdown can wait a bounded time for
pending work. Anything still running after the flush timeout is abandoned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from src.observability import incr_metric, log_event


class BackgroundRunner:
    def __init__(self) -> None:
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def run(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        task_name: str = "background_task",
        request_id: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._in_flight += 1
        self._idle.clear()
        try:
            await func(*args, **kwargs)
        except Exception as exc:
            incr_metric("background.tasks.failed", task=task_name)
            log_event(
                "background_task_failed",
                level=logging.ERROR,
                request_id=request_id,
                task=task_name,
                error=str(exc),
            )
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

    async def flush(self, timeout_seconds: float) -> bool:
        if self._in_flight == 0:
            return True
        try:
            await asyncio.wait_for(self._idle.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            log_event(
                "background_flush_timeout",
                level=logging.WARNING,
                abandoned=self._in_flight,
                timeout_seconds=timeout_seconds,
            )
            return False
        return True


runner = BackgroundRunner()
