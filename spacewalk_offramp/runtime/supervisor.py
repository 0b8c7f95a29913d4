from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable


class LoopSupervisor:
    """Keeps long-running stream loops alive, restarting them with bounded backoff.

    A loop that stayed up for ``healthy_after`` seconds before failing starts
    again from ``base_delay``.
    """

    def __init__(self, *, base_delay: float = 1.0, max_delay: float = 60.0, healthy_after: float = 30.0):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.healthy_after = healthy_after
        self.restarts: dict[str, int] = {}

    async def run_forever(self, name: str, fn: Callable[[], Awaitable[None]], log: logging.Logger) -> None:
        delay = self.base_delay
        while True:
            started = time.monotonic()
            try:
                await fn()
                log.warning("loop %s exited cleanly; restarting", name)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                log.exception("loop %s crashed: %s", name, exc)
            if time.monotonic() - started >= self.healthy_after:
                delay = self.base_delay
            self.restarts[name] = self.restarts.get(name, 0) + 1
            await asyncio.sleep(delay)
            delay = min(self.max_delay, max(self.base_delay, delay * 2))

    def spawn(self, name: str, fn: Callable[[], Awaitable[None]], log: logging.Logger) -> asyncio.Task:
        return asyncio.get_running_loop().create_task(self.run_forever(name, fn, log), name=name)
