from __future__ import annotations

import logging

from stellar_sdk import Keypair, TransactionEnvelope

from spacewalk_offramp.anchor.toml import AnchorError
from spacewalk_offramp.data.http_service import HttpService


def sign_challenge(challenge_xdr: str, *, signing_key: str, keypair: Keypair, network_passphrase: str) -> str:
    envelope = TransactionEnvelope.from_xdr(challenge_xdr, network_passphrase)
    source = envelope.transaction.source.account_id
    if source != signing_key:
        raise AnchorError(f"Invalid source account: {source}")
    if envelope.transaction.sequence != 0:
        raise AnchorError(f"Invalid sequence number: {envelope.transaction.sequence}")
    envelope.sign(keypair)
    return envelope.to_xdr()


async def authenticate(
    http: HttpService,
    *,
    web_auth_endpoint: str,
    signing_key: str,
    keypair: Keypair,
    network_passphrase: str,
    log: logging.Logger,
) -> str:
    """SEP-10 web auth for ``keypair``; returns the anchor's JWT."""
    log.info("initiate SEP-10 for %s", keypair.public_key)
    challenge = await http.get_json(web_auth_endpoint, params={"account": keypair.public_key})
    if challenge.get("network_passphrase") != network_passphrase:
        raise AnchorError(f"Invalid network passphrase: {challenge.get('network_passphrase')}")

    signed = sign_challenge(
        challenge["transaction"],
        signing_key=signing_key,
        keypair=keypair,
        network_passphrase=network_passphrase,
    )
    reply = await http.post_json(web_auth_endpoint, {"transaction": signed})
    token = reply.get("token") if isinstance(reply, dict) else None
    if not token:
        raise AnchorError("SEP-10 response carried no token")
    log.info("SEP-10 challenge completed")
    return token
