from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from spacewalk_offramp.domain.models import RawEvent, RedeemExecution
from spacewalk_offramp.errors import CoordinatorError, WaitTimeoutError
from spacewalk_offramp.redeem.events import is_execute_event, normalize_redeem_id, parse_redeem_execution

if TYPE_CHECKING:
    from spacewalk_offramp.chain.connection import ChainConnection

T = TypeVar("T")

_REGISTER = "register"
_EVENTS = "events"
_EXPIRE = "expire"
_DROP = "drop"


@dataclass(eq=False)
class PendingWaiter(Generic[T]):
    predicate: Callable[[RawEvent], T | None]
    future: asyncio.Future
    deadline_ms: int
    what: str = "event"
    redeem_id: str | None = None
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)


class EventCorrelator:
    """Fans the connection's finalized event stream out to pending waiters.

    Registrations, inbound batches and deadline expiries all go through one
    mailbox drained by a single dispatcher task, so a waiter resolves at most
    once and is gone from the registry as soon as it does. Build it through
    ``ChainSession.correlator`` so a connection never gets a second one.
    """

    def __init__(self, connection: ChainConnection, *, log: logging.Logger | None = None):
        self.log = log or logging.getLogger(__name__)
        self._loop = asyncio.get_running_loop()
        self._inbox: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()
        self._pending: list[PendingWaiter] = []
        self._closed = False
        self._task = self._loop.create_task(self._dispatch(), name="event-correlator")
        connection.subscribe_events(self.on_events)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def on_events(self, batch: Sequence[RawEvent]) -> None:
        """Subscription callback; safe to call from any thread."""
        if self._closed:
            return
        self._loop.call_soon_threadsafe(self._inbox.put_nowait, (_EVENTS, tuple(batch)))

    async def wait_for(
        self,
        predicate: Callable[[RawEvent], T | None],
        deadline_ms: int,
        *,
        what: str = "event",
        redeem_id: str | None = None,
    ) -> T:
        if self._closed:
            raise CoordinatorError("event correlator closed")
        waiter: PendingWaiter[T] = PendingWaiter(
            predicate=predicate,
            future=self._loop.create_future(),
            deadline_ms=int(deadline_ms),
            what=what,
            redeem_id=redeem_id,
        )
        self._inbox.put_nowait((_REGISTER, waiter))
        waiter.timer = self._loop.call_later(
            max(0, deadline_ms) / 1000.0, self._inbox.put_nowait, (_EXPIRE, waiter)
        )
        try:
            return await waiter.future
        finally:
            waiter.timer.cancel()
            if waiter.future.cancelled():
                self._inbox.put_nowait((_DROP, waiter))

    async def wait_for_redeem_execute_event(self, redeem_id: str, deadline_ms: int) -> RedeemExecution:
        wanted = normalize_redeem_id(redeem_id)

        def match(event: RawEvent) -> RedeemExecution | None:
            if not is_execute_event(event):
                return None
            execution = parse_redeem_execution(event)
            return execution if execution.redeem_id == wanted else None

        return await self.wait_for(match, deadline_ms, what="Redeem Execution", redeem_id=wanted)

    async def settle(self) -> None:
        """Wait until every queued registration, batch and expiry is processed."""
        await self._inbox.join()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        while not self._inbox.empty():
            kind, payload = self._inbox.get_nowait()
            self._inbox.task_done()
            if kind == _REGISTER:
                self._register(payload)
        for waiter in self._pending:
            if waiter.timer is not None:
                waiter.timer.cancel()
            if not waiter.future.done():
                waiter.future.set_exception(CoordinatorError("event correlator closed"))
        self._pending.clear()

    async def _dispatch(self) -> None:
        while True:
            kind, payload = await self._inbox.get()
            try:
                if kind == _REGISTER:
                    self._register(payload)
                elif kind == _EVENTS:
                    self._deliver(payload)
                elif kind == _EXPIRE:
                    self._expire(payload)
                elif kind == _DROP:
                    self._remove(payload)
            finally:
                self._inbox.task_done()

    def _register(self, waiter: PendingWaiter) -> None:
        if waiter.future.done():
            return
        self._pending.append(waiter)

    def _remove(self, waiter: PendingWaiter) -> bool:
        try:
            self._pending.remove(waiter)
        except ValueError:
            return False
        return True

    def _deliver(self, batch: Sequence[RawEvent]) -> None:
        for event in batch:
            for waiter in list(self._pending):
                if waiter.future.done():
                    self._remove(waiter)
                    continue
                try:
                    value = waiter.predicate(event)
                except Exception as exc:
                    self._remove(waiter)
                    self.log.error("waiter predicate failed for %s: %s", waiter.what, exc)
                    waiter.future.set_exception(exc)
                    continue
                if value is None:
                    continue
                self._remove(waiter)
                waiter.future.set_result(value)

    def _expire(self, waiter: PendingWaiter) -> None:
        if not self._remove(waiter) or waiter.future.done():
            return
        self.log.warning("wait for %s %s timed out after %sms", waiter.what, waiter.redeem_id or "", waiter.deadline_ms)
        waiter.future.set_exception(
            WaitTimeoutError(waiter.deadline_ms, what=waiter.what, redeem_id=waiter.redeem_id)
        )
