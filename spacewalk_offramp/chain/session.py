from __future__ import annotations

import logging

from spacewalk_offramp.chain.connection import ChainConnection
from spacewalk_offramp.domain.models import VaultIdentity
from spacewalk_offramp.redeem.correlator import EventCorrelator
from spacewalk_offramp.redeem.requester import RedeemRequester
from spacewalk_offramp.redeem.serializer import SubmissionSerializer


class ChainSession:
    """Owns one connection plus the serializer and correlator bound to it."""

    def __init__(self, connection: ChainConnection, *, log: logging.Logger | None = None):
        self.connection = connection
        self.log = log or logging.getLogger("spacewalk-offramp")
        self.serializer = SubmissionSerializer()
        self._correlator: EventCorrelator | None = None

    @property
    def correlator(self) -> EventCorrelator:
        # Must first be touched from inside the running loop.
        if self._correlator is None:
            self._correlator = EventCorrelator(self.connection, log=self.log)
        return self._correlator

    def requester(self, vault: VaultIdentity) -> RedeemRequester:
        return RedeemRequester(self, vault, log=self.log)

    async def close(self) -> None:
        if self._correlator is not None:
            await self._correlator.close()
            self._correlator = None
        await self.connection.close()

    async def __aenter__(self) -> ChainSession:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
