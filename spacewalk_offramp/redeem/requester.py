from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from spacewalk_offramp.assets.codec import describe
from spacewalk_offramp.domain.models import (
    RawEvent,
    RedeemCall,
    RedeemExecution,
    RedeemRequest,
    SigningIdentity,
    VaultIdentity,
)
from spacewalk_offramp.errors import (
    CoordinatorError,
    CorrelationNotFound,
    ModuleDispatchError,
    SubmissionError,
    UnknownDispatchError,
)
from spacewalk_offramp.redeem.events import is_request_event, parse_redeem_request, request_redeemer
from spacewalk_offramp.redeem.outcome import (
    DispatchSuccess,
    ExtrinsicFailedUnknown,
    ModuleFailure,
    classify_dispatch,
)

if TYPE_CHECKING:
    from spacewalk_offramp.chain.session import ChainSession

CALL_NAME = "Redeem Request"


def _raw_len(data: Any) -> int:
    try:
        return len(data)
    except TypeError:
        return 0


class RedeemRequester:
    """Submits redeem requests against one vault and pulls out the redeem id."""

    def __init__(self, session: ChainSession, vault: VaultIdentity, *, log: logging.Logger | None = None):
        self.session = session
        self.vault = vault
        self.log = log or session.log

    async def request_redeem(
        self,
        identity: SigningIdentity,
        amount_raw: int,
        destination_raw: bytes,
    ) -> RedeemRequest:
        call = RedeemCall(amount_raw=int(amount_raw), destination_raw=bytes(destination_raw), vault=self.vault)
        connection = self.session.connection
        async with self.session.serializer.slot(identity.address):
            try:
                nonce = await connection.next_nonce(identity.address)
                result = await connection.submit_signed(call, identity, nonce)
            except CoordinatorError:
                raise
            except Exception as exc:
                raise SubmissionError(f"{CALL_NAME} submission failed: {exc}") from exc

        if not result.finalized:
            raise SubmissionError(f"{CALL_NAME} ended with status {result.status}")

        self.log.info(
            "requested redeem of %s for vault %s with status %s",
            call.amount_raw,
            describe(self.vault),
            result.status,
        )

        outcome = classify_dispatch(result, connection.decode_module_error)
        if isinstance(outcome, ModuleFailure):
            raise ModuleDispatchError(outcome.section, outcome.method, outcome.name, call=CALL_NAME)
        if isinstance(outcome, ExtrinsicFailedUnknown):
            raw_len = _raw_len(outcome.raw_data)
            self.log.error(
                "failed to dispatch %s phase=%s section=%s method=%s raw_data_len=%s",
                CALL_NAME,
                outcome.phase,
                outcome.section,
                outcome.method,
                raw_len,
            )
            raise UnknownDispatchError(
                f"Failed to dispatch {CALL_NAME}",
                phase=outcome.phase,
                section=outcome.section,
                method=outcome.method,
                raw_data_len=raw_len,
            )
        if not isinstance(outcome, DispatchSuccess):
            self.log.error("unknown error during %s: %s", CALL_NAME, outcome.description)
            raise UnknownDispatchError(f"Unknown error during {CALL_NAME}")

        return self._own_request(result.events, identity.address)

    def _own_request(self, events: Sequence[RawEvent], address: str) -> RedeemRequest:
        matches: list[RedeemRequest] = []
        for event in events:
            if not is_request_event(event) or request_redeemer(event) != address:
                continue
            try:
                request = parse_redeem_request(event)
            except (ValueError, LookupError, TypeError) as exc:
                raise UnknownDispatchError(f"Malformed redeem request event: {exc}") from exc
            matches.append(request)

        if not matches:
            raise CorrelationNotFound(address)
        if len(matches) > 1:
            self.log.error("%s redeem request events for account %s", len(matches), address)
            raise UnknownDispatchError("Inconsistent amount of redeem request events for account")
        return matches[0]

    async def wait_for_execution(self, request: RedeemRequest, deadline_ms: int) -> RedeemExecution:
        return await self.session.correlator.wait_for_redeem_execute_event(request.redeem_id, deadline_ms)
