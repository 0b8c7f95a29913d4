import asyncio
import logging

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer
from stellar_sdk import Keypair, Network, TransactionEnvelope
from stellar_sdk.sep.stellar_web_authentication import build_challenge_transaction

from spacewalk_offramp.anchor import (
    AnchorError,
    authenticate,
    fetch_anchor_info,
    parse_toml_value,
    sign_challenge,
    start_withdrawal,
)
from spacewalk_offramp.data.http_service import HttpError, HttpService

LOG = logging.getLogger("test-anchor")
PASSPHRASE = Network.TESTNET_NETWORK_PASSPHRASE
SERVER_KP = Keypair.random()


def _challenge(client: Keypair) -> str:
    return build_challenge_transaction(
        server_secret=SERVER_KP.secret,
        client_account_id=client.public_key,
        home_domain="anchor.test",
        web_auth_domain="anchor.test",
        network_passphrase=PASSPHRASE,
        timeout=300,
    )


def test_parse_toml_value() -> None:
    content = '# comment\nSIGNING_KEY = "GABC"\n  WEB_AUTH_ENDPOINT="https://a/auth"  \nX = 3\n'
    assert parse_toml_value(content, "SIGNING_KEY") == "GABC"
    assert parse_toml_value(content, "WEB_AUTH_ENDPOINT") == "https://a/auth"
    assert parse_toml_value(content, "X") is None
    assert parse_toml_value(content, "MISSING") is None


def test_sign_challenge_checks_source() -> None:
    client = Keypair.random()
    challenge = _challenge(client)
    signed = sign_challenge(challenge, signing_key=SERVER_KP.public_key, keypair=client, network_passphrase=PASSPHRASE)
    assert len(TransactionEnvelope.from_xdr(signed, PASSPHRASE).signatures) == 2
    with pytest.raises(AnchorError, match="Invalid source account"):
        sign_challenge(
            challenge,
            signing_key=Keypair.random().public_key,
            keypair=client,
            network_passphrase=PASSPHRASE,
        )


def _anchor_app(state: dict) -> web.Application:
    async def toml(request: web.Request) -> web.Response:
        base = f"http://{request.host}"
        return web.Response(
            text=(
                f'SIGNING_KEY = "{SERVER_KP.public_key}"\n'
                f'WEB_AUTH_ENDPOINT = "{base}/auth"\n'
                f'TRANSFER_SERVER_SEP0024 = "{base}/sep24/"\n'
            )
        )

    async def challenge(request: web.Request) -> web.Response:
        client = Keypair.from_public_key(request.query["account"])
        state["challenged"] = client.public_key
        return web.json_response({"transaction": _challenge(client), "network_passphrase": state["passphrase"]})

    async def token(request: web.Request) -> web.Response:
        body = await request.json()
        state["signed"] = body["transaction"]
        return web.json_response({"token": "jwt-123"})

    async def interactive(request: web.Request) -> web.Response:
        form = await request.post()
        state["asset_code"] = form["asset_code"]
        state["auth"] = request.headers.get("Authorization")
        return web.json_response({"type": "interactive_customer_info_needed", "url": "https://form", "id": "tx1"})

    async def transaction(request: web.Request) -> web.Response:
        state["polls"] = state.get("polls", 0) + 1
        if state["polls"] == 1:
            return web.Response(status=503)
        status = "incomplete" if state["polls"] < 3 else "pending_user_transfer_start"
        return web.json_response(
            {
                "transaction": {
                    "id": request.query["id"],
                    "status": status,
                    "amount_in": "10.5",
                    "withdraw_memo": "12345",
                    "withdraw_memo_type": "text",
                    "withdraw_anchor_account": SERVER_KP.public_key,
                }
            }
        )

    app = web.Application()
    app.router.add_get("/.well-known/stellar.toml", toml)
    app.router.add_get("/auth", challenge)
    app.router.add_post("/auth", token)
    app.router.add_post("/sep24/transactions/withdraw/interactive", interactive)
    app.router.add_get("/sep24/transaction", transaction)
    return app


def test_full_anchor_handshake() -> None:
    state: dict = {"passphrase": PASSPHRASE}
    opened: list[str] = []
    client = Keypair.random()

    async def scenario():
        async with TestServer(_anchor_app(state)) as server:
            async with HttpService(timeout=5, log=LOG) as http:
                info = await fetch_anchor_info(http, str(server.make_url("/.well-known/stellar.toml")))
                jwt = await authenticate(
                    http,
                    web_auth_endpoint=info.web_auth_endpoint,
                    signing_key=info.signing_key,
                    keypair=client,
                    network_passphrase=PASSPHRASE,
                    log=LOG,
                )
                result = await start_withdrawal(
                    http,
                    sep24_url=info.sep24_url,
                    token=jwt,
                    asset_code="EURC",
                    log=LOG,
                    open_url=opened.append,
                    poll_sec=0.01,
                )
                return info, jwt, result

    info, jwt, result = asyncio.run(scenario())
    assert info.signing_key == SERVER_KP.public_key
    assert info.sep24_url.endswith("/sep24")
    assert jwt == "jwt-123"
    assert state["challenged"] == client.public_key
    assert state["asset_code"] == "EURC"
    assert state["auth"] == "Bearer jwt-123"
    assert opened == ["https://form"]
    assert result.amount == "10.5"
    assert result.memo_type == "text"
    assert result.offramping_account == SERVER_KP.public_key


def test_wrong_network_passphrase_is_rejected() -> None:
    state: dict = {"passphrase": Network.PUBLIC_NETWORK_PASSPHRASE}

    async def scenario() -> None:
        async with TestServer(_anchor_app(state)) as server:
            async with HttpService(timeout=5, log=LOG) as http:
                await authenticate(
                    http,
                    web_auth_endpoint=str(server.make_url("/auth")),
                    signing_key=SERVER_KP.public_key,
                    keypair=Keypair.random(),
                    network_passphrase=PASSPHRASE,
                    log=LOG,
                )

    with pytest.raises(AnchorError, match="Invalid network passphrase"):
        asyncio.run(scenario())


def test_http_error_carries_status() -> None:
    async def scenario() -> None:
        async with TestServer(web.Application()) as server:
            async with HttpService(timeout=5, retries_5xx=0, log=LOG) as http:
                await http.get_json(str(server.make_url("/missing")))

    with pytest.raises(HttpError) as err:
        asyncio.run(scenario())
    assert err.value.status == 404
