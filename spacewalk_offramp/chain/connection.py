from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from spacewalk_offramp.domain.models import (
    FinalizationResult,
    ModuleErrorInfo,
    RawEvent,
    RedeemCall,
    SigningIdentity,
)

EventCallback = Callable[[Sequence[RawEvent]], None]


class ChainConnection(Protocol):
    """What the redeem coordinator needs from a custody chain client."""

    async def submit_signed(
        self, call: RedeemCall, identity: SigningIdentity, nonce: int
    ) -> FinalizationResult:
        """Sign with ``identity`` at ``nonce`` and resolve once the block is final."""
        ...

    async def next_nonce(self, address: str) -> int:
        ...

    def subscribe_events(self, callback: EventCallback) -> None:
        """Deliver every finalized block's events, once each, in order."""
        ...

    def decode_module_error(self, dispatch_error: Any) -> ModuleErrorInfo:
        """Raise ValueError or LookupError when ``dispatch_error`` is not a module error."""
        ...

    async def close(self) -> None:
        ...
