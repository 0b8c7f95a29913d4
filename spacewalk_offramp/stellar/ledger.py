from __future__ import annotations

import asyncio
import base64
import logging

from stellar_sdk import Account, Asset, Keypair, Server, Signer, TransactionBuilder, TransactionEnvelope
from stellar_sdk.exceptions import BadRequestError

from spacewalk_offramp.anchor.sep24 import Sep24Result

EPHEMERAL_STARTING_BALANCE = "2.5"
SETUP_TIMEOUT_SEC = 30
# The offramp and cleanup transactions are presigned and may sit for a week.
PRESIGNED_TIMEOUT_SEC = 7 * 24 * 3600


class StellarLedger:
    """Horizon access for the ephemeral offramp account."""

    def __init__(
        self,
        horizon_url: str,
        *,
        network_passphrase: str,
        base_fee: int,
        log: logging.Logger,
        server: Server | None = None,
    ):
        self.server = server or Server(horizon_url=horizon_url)
        self.network_passphrase = network_passphrase
        self.base_fee = int(base_fee)
        self.log = log

    def _builder(self, source: Account) -> TransactionBuilder:
        return TransactionBuilder(
            source_account=source,
            network_passphrase=self.network_passphrase,
            base_fee=self.base_fee,
        )

    async def load_account(self, account_id: str) -> Account:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.server.load_account(account_id))

    async def submit(self, envelope: TransactionEnvelope, what: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, lambda: self.server.submit_transaction(envelope))
        except BadRequestError as exc:
            self.log.error("could not submit the %s transaction: %s", what, exc.extras)
            return False
        self.log.info("submitted %s transaction", what)
        return True

    def build_create_account_transaction(
        self, funding_account: Account, funding: Keypair, ephemeral: Keypair
    ) -> TransactionEnvelope:
        # 2-of-2 multisig with the funding account as cosigner.
        envelope = (
            self._builder(funding_account)
            .append_create_account_op(
                destination=ephemeral.public_key,
                starting_balance=EPHEMERAL_STARTING_BALANCE,
            )
            .append_set_options_op(
                signer=Signer.ed25519_public_key(funding.public_key, 1),
                low_threshold=2,
                med_threshold=2,
                high_threshold=2,
                source=ephemeral.public_key,
            )
            .set_timeout(SETUP_TIMEOUT_SEC)
            .build()
        )
        envelope.sign(funding)
        envelope.sign(ephemeral)
        return envelope

    def build_change_trust_transaction(
        self, ephemeral_account: Account, funding: Keypair, ephemeral: Keypair, asset: Asset
    ) -> TransactionEnvelope:
        envelope = (
            self._builder(ephemeral_account)
            .append_change_trust_op(asset=asset)
            .set_timeout(SETUP_TIMEOUT_SEC)
            .build()
        )
        envelope.sign(ephemeral)
        envelope.sign(funding)
        return envelope

    async def setup_ephemeral_account(self, funding: Keypair, ephemeral: Keypair, asset: Asset) -> None:
        self.log.info("setting up ephemeral account %s", ephemeral.public_key)
        funding_account = await self.load_account(funding.public_key)
        await self.submit(self.build_create_account_transaction(funding_account, funding, ephemeral), "create account")

        ephemeral_account = await self.load_account(ephemeral.public_key)
        await self.submit(
            self.build_change_trust_transaction(ephemeral_account, funding, ephemeral, asset), "change trust"
        )

    def build_offramp_transaction(
        self, ephemeral_account: Account, ephemeral: Keypair, sep24: Sep24Result, asset: Asset
    ) -> TransactionEnvelope:
        builder = self._builder(ephemeral_account).append_payment_op(
            destination=sep24.offramping_account,
            asset=asset,
            amount=sep24.amount,
        )
        if sep24.memo_type == "text":
            builder.add_text_memo(sep24.memo)
        elif sep24.memo_type == "hash":
            builder.add_hash_memo(base64.b64decode(sep24.memo))
        else:
            raise ValueError(f"Unexpected offramp memo type: {sep24.memo_type}")
        envelope = builder.set_timeout(PRESIGNED_TIMEOUT_SEC).build()
        envelope.sign(ephemeral)
        return envelope

    def build_merge_transaction(
        self, ephemeral_account: Account, ephemeral: Keypair, funding_account_id: str, asset: Asset
    ) -> TransactionEnvelope:
        envelope = (
            self._builder(ephemeral_account)
            .append_change_trust_op(asset=asset, limit="0")
            .append_account_merge_op(destination=funding_account_id)
            .set_timeout(PRESIGNED_TIMEOUT_SEC)
            .build()
        )
        envelope.sign(ephemeral)
        return envelope
