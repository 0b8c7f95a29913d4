from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class SlotToken:
    __slots__ = ("identity", "released")

    def __init__(self, identity: str):
        self.identity = identity
        self.released = False

    def __repr__(self) -> str:
        return f"SlotToken(identity={self.identity!r}, released={self.released})"


class SubmissionSerializer:
    """One in-flight signed submission per signing identity.

    Identities never wait on each other. A lock is dropped once nobody holds
    or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    async def acquire(self, identity: str) -> SlotToken:
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        self._users[identity] = self._users.get(identity, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget(identity)
            raise
        return SlotToken(identity)

    def release(self, token: SlotToken) -> None:
        if token.released:
            raise RuntimeError(f"submission slot for {token.identity} released twice")
        token.released = True
        self._locks[token.identity].release()
        self._forget(token.identity)

    @asynccontextmanager
    async def slot(self, identity: str) -> AsyncIterator[SlotToken]:
        token = await self.acquire(identity)
        try:
            yield token
        finally:
            self.release(token)

    def busy(self, identity: str) -> bool:
        lock = self._locks.get(identity)
        return lock is not None and lock.locked()

    def _forget(self, identity: str) -> None:
        left = self._users.get(identity, 0) - 1
        if left > 0:
            self._users[identity] = left
            return
        self._users.pop(identity, None)
        self._locks.pop(identity, None)
