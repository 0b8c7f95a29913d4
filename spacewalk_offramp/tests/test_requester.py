import asyncio

import pytest
from fakes import (
    DESTINATION,
    FakeConnection,
    drain,
    execute_event,
    failed_event,
    finalized,
    make_identity,
    make_vault,
    request_event,
)

from spacewalk_offramp.chain.session import ChainSession
from spacewalk_offramp.domain.models import ModuleErrorInfo, RawEvent
from spacewalk_offramp.errors import (
    CorrelationNotFound,
    ModuleDispatchError,
    SubmissionError,
    UnknownDispatchError,
)


def _request(conn: FakeConnection, address: str = "alice", amount: int = 100_000_000_000):
    async def scenario():
        session = ChainSession(conn)
        requester = session.requester(make_vault())
        try:
            return await requester.request_redeem(make_identity(address), amount, DESTINATION)
        finally:
            assert not session.serializer.busy(address)

    return asyncio.run(scenario())


def test_single_matching_event_returns_request() -> None:
    conn = FakeConnection(
        results=[
            finalized(
                request_event("0x99", "bob"),
                request_event("0xABC123", "alice", amount=100_000_000_000),
            )
        ]
    )
    request = _request(conn)
    assert request.redeem_id == "0xabc123"
    assert request.requester == "alice"
    assert request.amount_raw == 100_000_000_000
    assert request.destination_raw == DESTINATION
    assert request.vault == make_vault()
    call, address, nonce = conn.submitted[0]
    assert call.amount_raw == 100_000_000_000
    assert call.destination_raw == DESTINATION
    assert (address, nonce) == ("alice", 0)


def test_no_matching_event_is_correlation_not_found() -> None:
    conn = FakeConnection(results=[finalized(request_event("0x01", "bob"))])
    with pytest.raises(CorrelationNotFound) as info:
        _request(conn)
    assert "alice" in str(info.value)


def test_two_matching_events_is_unknown_dispatch_error() -> None:
    conn = FakeConnection(results=[finalized(request_event("0x01", "alice"), request_event("0x02", "alice"))])
    with pytest.raises(UnknownDispatchError, match="Inconsistent amount"):
        _request(conn)


def _without_amount(event: RawEvent) -> RawEvent:
    data = {key: value for key, value in event.data.items() if key != "amount"}
    return RawEvent(section=event.section, method=event.method, data=data, phase=event.phase)


def test_malformed_event_from_other_account_is_ignored() -> None:
    conn = FakeConnection(
        results=[finalized(_without_amount(request_event("0x99", "bob")), request_event("0x01", "alice"))]
    )
    request = _request(conn)
    assert (request.redeem_id, request.requester) == ("0x01", "alice")


def test_malformed_own_event_is_unknown_dispatch_error() -> None:
    conn = FakeConnection(results=[finalized(_without_amount(request_event("0x01", "alice")))])
    with pytest.raises(UnknownDispatchError, match="Malformed redeem request event"):
        _request(conn)


def test_module_error_is_decoded() -> None:
    info = ModuleErrorInfo(section="redeem", method="AmountBelowDustAmount", name="AmountBelowDustAmount")
    conn = FakeConnection(
        results=[finalized(failed_event({"Module": {"index": 60, "error": 3}}))],
        module_errors={(60, 3): info},
    )
    with pytest.raises(ModuleDispatchError) as err:
        _request(conn)
    assert str(err.value) == "Dispatch error: redeem.AmountBelowDustAmount:: AmountBelowDustAmount"
    assert err.value.section == "redeem"


def test_undecodable_failure_keeps_event_context() -> None:
    conn = FakeConnection(results=[finalized(failed_event("Other"))])
    with pytest.raises(UnknownDispatchError, match="Failed to dispatch Redeem Request") as err:
        _request(conn)
    context = err.value.context()
    assert context["phase"] == "ApplyExtrinsic"
    assert context["section"] == "System"
    assert context["method"] == "ExtrinsicFailed"
    assert context["raw_data_len"] == 2


def test_opaque_dispatch_error() -> None:
    conn = FakeConnection(results=[finalized(dispatch_error={"BadOrigin": None})])
    with pytest.raises(UnknownDispatchError, match="Unknown error during Redeem Request"):
        _request(conn)


def test_connection_failure_is_submission_error() -> None:
    conn = FakeConnection(submit_error=ConnectionError("socket closed"))
    with pytest.raises(SubmissionError) as err:
        _request(conn)
    assert isinstance(err.value.__cause__, ConnectionError)


def test_non_finalized_result_is_submission_error() -> None:
    conn = FakeConnection(results=[finalized(request_event("0x01", "alice"), status="inBlock")])
    with pytest.raises(SubmissionError):
        _request(conn)


def test_same_identity_submissions_never_overlap() -> None:
    async def scenario() -> FakeConnection:
        conn = FakeConnection(delay=0.02)
        requester = ChainSession(conn).requester(make_vault())
        identity = make_identity("alice")
        await asyncio.gather(*(requester.request_redeem(identity, 1, DESTINATION) for _ in range(3)))
        return conn

    conn = asyncio.run(scenario())
    assert conn.max_active["alice"] == 1
    assert [nonce for _, _, nonce in conn.submitted] == [0, 1, 2]


def test_different_identities_submit_concurrently() -> None:
    async def scenario() -> FakeConnection:
        conn = FakeConnection(delay=0.05)
        requester = ChainSession(conn).requester(make_vault())
        await asyncio.gather(
            requester.request_redeem(make_identity("alice"), 1, DESTINATION),
            requester.request_redeem(make_identity("bob"), 1, DESTINATION),
        )
        return conn

    conn = asyncio.run(scenario())
    assert conn.max_total_active == 2


def test_request_then_execution_end_to_end() -> None:
    async def scenario():
        conn = FakeConnection(results=[finalized(request_event("0xabc123", "alice"))])
        session = ChainSession(conn)
        correlator = session.correlator
        requester = session.requester(make_vault())
        request = await requester.request_redeem(make_identity("alice"), 100_000_000_000, DESTINATION)

        waiting = asyncio.create_task(requester.wait_for_execution(request, 1000))
        await drain(correlator)
        conn.emit(execute_event("0xabc123", amount=100_000_000_000))
        execution = await asyncio.wait_for(waiting, timeout=1)
        await session.close()
        return request, execution

    request, execution = asyncio.run(scenario())
    assert request.redeem_id == "0xabc123"
    assert execution.redeem_id == "0xabc123"
    assert execution.amount == 100_000_000_000
