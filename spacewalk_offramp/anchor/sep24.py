from __future__ import annotations

import asyncio
import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass

from spacewalk_offramp.anchor.toml import AnchorError
from spacewalk_offramp.data.http_service import HttpService

INTERACTIVE = "interactive_customer_info_needed"
READY = "pending_user_transfer_start"


@dataclass(frozen=True)
class Sep24Result:
    amount: str
    memo: str
    memo_type: str
    offramping_account: str


async def start_withdrawal(
    http: HttpService,
    *,
    sep24_url: str,
    token: str,
    asset_code: str,
    log: logging.Logger,
    open_url: Callable[[str], object] = webbrowser.open,
    poll_sec: float = 1.0,
) -> Sep24Result:
    auth = {"Authorization": f"Bearer {token}"}
    log.info("initiate SEP-24 withdraw of %s", asset_code)
    started = await http.post_form(
        f"{sep24_url}/transactions/withdraw/interactive",
        {"asset_code": asset_code},
        headers=auth,
    )
    if started.get("type") != INTERACTIVE:
        raise AnchorError(f"Unexpected SEP-24 type: {started.get('type')}")

    log.info("SEP-24 initiated, complete the form at %s", started["url"])
    open_url(started["url"])

    log.info("waiting for interactive form to be completed")
    while True:
        await asyncio.sleep(poll_sec)
        status = await http.get_json(f"{sep24_url}/transaction", params={"id": started["id"]}, headers=auth)
        tx = status["transaction"]
        if tx.get("status") == READY:
            break

    log.info("SEP-24 parameters received")
    return Sep24Result(
        amount=str(tx["amount_in"]),
        memo=str(tx.get("withdraw_memo") or ""),
        memo_type=str(tx.get("withdraw_memo_type") or ""),
        offramping_account=str(tx["withdraw_anchor_account"]),
    )
