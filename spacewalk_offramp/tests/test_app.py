import asyncio
import json

import pytest
from fakes import EURC_ISSUER, FakeConnection, drain, execute_event, finalized, make_identity, request_event
from stellar_sdk import Keypair

from spacewalk_offramp.chain.session import ChainSession
from spacewalk_offramp.config import get_token
from spacewalk_offramp.config.settings import Settings
from spacewalk_offramp.errors import WaitTimeoutError
from spacewalk_offramp.main import main
from spacewalk_offramp.runtime.app import App, build_vault


def _settings(tmp_path, **overrides) -> Settings:
    values = dict(
        custody_ws_url="wss://example.invalid",
        custody_ss58_format=56,
        horizon_url="https://horizon-testnet.stellar.org",
        stellar_network="testnet",
        base_fee=1_000_000,
        redeem_wait_ms=1000,
        sep24_poll_sec=0.01,
        http_timeout_sec=5.0,
        collateral_xcm=None,
        log_level="WARNING",
        data_dir=str(tmp_path),
        event_log_enabled=True,
    )
    values.update(overrides)
    return Settings(**values)


def test_build_vault_uses_token_and_collateral_override() -> None:
    token = get_token("eurc")
    vault = build_vault(token)
    assert vault.account_id == token.vault_account_id
    assert vault.collateral.describe() == "XCM(0)"
    assert vault.wrapped.issuer_id == EURC_ISSUER
    assert build_vault(token, 6).collateral.describe() == "XCM(6)"


def test_execute_redeem_waits_for_execution(tmp_path) -> None:
    target = Keypair.random().public_key

    async def scenario():
        conn = FakeConnection(results=[finalized(request_event("0xabc123", "alice"))])
        app = App(_settings(tmp_path), get_token("eurc"), connection_factory=lambda: conn)
        async with ChainSession(conn, log=app.log) as session:
            task = asyncio.create_task(app.execute_redeem(session, make_identity("alice"), target, "0.1"))
            while not conn.submitted:
                await asyncio.sleep(0.01)
            await drain(session.correlator)
            conn.emit(execute_event("0xabc123"))
            execution = await asyncio.wait_for(task, timeout=1)
        return conn, app, execution

    conn, app, execution = asyncio.run(scenario())
    call, _, _ = conn.submitted[0]
    assert call.amount_raw == 100_000_000_000
    assert call.destination_raw == Keypair.from_public_key(target).raw_public_key()
    assert execution.redeem_id == "0xabc123"
    rows = [json.loads(line) for line in app.events.path.read_text().splitlines()]
    assert [row["event"] for row in rows] == ["redeem.requested", "redeem.executed"]


def test_execute_redeem_timeout_is_logged(tmp_path) -> None:
    async def scenario():
        conn = FakeConnection(results=[finalized(request_event("0x01", "alice"))])
        app = App(_settings(tmp_path, redeem_wait_ms=30), get_token("brl"), connection_factory=lambda: conn)
        async with ChainSession(conn, log=app.log) as session:
            with pytest.raises(WaitTimeoutError):
                await app.execute_redeem(session, make_identity("alice"), Keypair.random().public_key, "1")
        return app

    app = asyncio.run(scenario())
    rows = [json.loads(line) for line in app.events.path.read_text().splitlines()]
    assert rows[-1]["event"] == "redeem.timeout"
    assert rows[-1]["waited_ms"] == 30


def test_unknown_token_exits_with_allowed_list(capsys) -> None:
    assert main(["usd"]) == 1
    err = capsys.readouterr().err
    assert '"brl"' in err and '"eurc"' in err
