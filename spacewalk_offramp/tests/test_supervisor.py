import asyncio
import logging

import pytest

from spacewalk_offramp.runtime.supervisor import LoopSupervisor


def test_crashing_loop_is_restarted_until_cancelled() -> None:
    calls: list[int] = []

    async def flaky() -> None:
        calls.append(len(calls))
        raise ConnectionError("stream dropped")

    async def scenario() -> LoopSupervisor:
        supervisor = LoopSupervisor(base_delay=0.01, max_delay=0.02)
        task = supervisor.spawn("flaky", flaky, logging.getLogger("test-supervisor"))
        while len(calls) < 3:
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return supervisor

    supervisor = asyncio.run(scenario())
    assert supervisor.restarts["flaky"] >= 2
