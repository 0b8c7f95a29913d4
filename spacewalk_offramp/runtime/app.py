from __future__ import annotations

import asyncio
import getpass
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass, field

from stellar_sdk import Asset, Keypair, TransactionEnvelope

from spacewalk_offramp.anchor import authenticate, fetch_anchor_info, start_withdrawal
from spacewalk_offramp.assets.codec import AlphaNum4, AlphaNum12, describe
from spacewalk_offramp.assets.convert import decimal_to_native, public_to_raw
from spacewalk_offramp.chain.connection import ChainConnection
from spacewalk_offramp.chain.session import ChainSession
from spacewalk_offramp.chain.substrate import SubstrateConnection, identity_from_uri
from spacewalk_offramp.config import Settings, TokenConfig
from spacewalk_offramp.data.http_service import HttpService
from spacewalk_offramp.domain.models import Currency, RedeemExecution, SigningIdentity, VaultIdentity
from spacewalk_offramp.errors import WaitTimeoutError
from spacewalk_offramp.infra import RuntimeEventLogger, get_logger
from spacewalk_offramp.stellar.ledger import StellarLedger


@dataclass(frozen=True)
class Secrets:
    funding_secret: str = field(repr=False)
    custody_secret: str = field(repr=False)


def build_vault(token: TokenConfig, collateral_xcm: int | None = None) -> VaultIdentity:
    variant = AlphaNum4 if len(token.asset_code) <= AlphaNum4.WIDTH else AlphaNum12
    return VaultIdentity(
        account_id=token.vault_account_id,
        collateral=Currency("XCM", token.collateral_xcm if collateral_xcm is None else collateral_xcm),
        wrapped=variant.from_parts(token.asset_code, token.asset_issuer),
    )


class App:
    """Runs one offramp: anchor handshake, ephemeral account, redeem, settlement."""

    def __init__(
        self,
        settings: Settings,
        token: TokenConfig,
        *,
        prompt: Callable[[str], str] = getpass.getpass,
        open_url: Callable[[str], object] = webbrowser.open,
        connection_factory: Callable[[], ChainConnection] | None = None,
    ):
        self.settings = settings
        self.token = token
        self.prompt = prompt
        self.open_url = open_url
        self.log = get_logger("spacewalk-offramp", settings.log_level)
        self.events = RuntimeEventLogger(settings.data_dir, enabled=settings.event_log_enabled)
        self.connection_factory = connection_factory or self._substrate_connection
        self.vault = build_vault(token, settings.collateral_xcm)
        self.asset = Asset(token.asset_code, token.asset_issuer)

    def _substrate_connection(self) -> ChainConnection:
        return SubstrateConnection(
            self.settings.custody_ws_url,
            ss58_format=self.settings.custody_ss58_format,
            log=self.log,
        )

    def read_secrets(self) -> Secrets:
        return Secrets(
            funding_secret=self.prompt(
                "Enter the secret key of the Stellar account that will fund the temporary account: "
            ),
            custody_secret=self.prompt("Enter the secret seed for your Pendulum account: "),
        )

    async def run(self, secrets: Secrets) -> None:
        funding = Keypair.from_secret(secrets.funding_secret)
        identity = identity_from_uri(secrets.custody_secret, ss58_format=self.settings.custody_ss58_format)
        ephemeral = Keypair.random()
        self.log.info(
            "starting offramp of %s via vault %s ephemeral=%s",
            self.token.asset_code,
            describe(self.vault),
            ephemeral.public_key,
        )
        self.events.emit("offramp.start", asset=self.token.asset_code, ephemeral=ephemeral.public_key)

        async with HttpService(timeout=self.settings.http_timeout_sec, log=self.log) as http:
            self.log.info("fetching anchor information from %s", self.token.toml_url)
            info = await fetch_anchor_info(http, self.token.toml_url)
            jwt = await authenticate(
                http,
                web_auth_endpoint=info.web_auth_endpoint,
                signing_key=info.signing_key,
                keypair=ephemeral,
                network_passphrase=self.settings.network_passphrase,
                log=self.log,
            )
            sep24 = await start_withdrawal(
                http,
                sep24_url=info.sep24_url,
                token=jwt,
                asset_code=self.token.asset_code,
                log=self.log,
                open_url=self.open_url,
                poll_sec=self.settings.sep24_poll_sec,
            )
        self.log.info(
            "SEP-24 completed amount=%s memo_type=%s offramping_account=%s",
            sep24.amount,
            sep24.memo_type,
            sep24.offramping_account,
        )
        self.events.emit("offramp.sep24", amount=sep24.amount, memo_type=sep24.memo_type)

        ledger = StellarLedger(
            self.settings.horizon_url,
            network_passphrase=self.settings.network_passphrase,
            base_fee=self.settings.base_fee,
            log=self.log,
        )
        await ledger.setup_ephemeral_account(funding, ephemeral, self.asset)
        ephemeral_account = await ledger.load_account(ephemeral.public_key)
        offramp_tx = ledger.build_offramp_transaction(ephemeral_account, ephemeral, sep24, self.asset)
        merge_tx = ledger.build_merge_transaction(ephemeral_account, ephemeral, funding.public_key, self.asset)

        await self.finalize(
            identity=identity,
            ephemeral_account_id=ephemeral.public_key,
            amount=sep24.amount,
            ledger=ledger,
            offramp_tx=offramp_tx,
            merge_tx=merge_tx,
        )

    async def finalize(
        self,
        *,
        identity: SigningIdentity,
        ephemeral_account_id: str,
        amount: str,
        ledger: StellarLedger,
        offramp_tx: TransactionEnvelope,
        merge_tx: TransactionEnvelope,
    ) -> None:
        async with ChainSession(self.connection_factory(), log=self.log) as session:
            await self.execute_redeem(session, identity, ephemeral_account_id, amount)

        self.log.info("submitting offramping transaction")
        offramp_ok = await ledger.submit(offramp_tx, "offramping")
        self.log.info("submitting cleanup transaction")
        cleanup_ok = await ledger.submit(merge_tx, "cleanup")
        self.events.emit("offramp.done", offramp_ok=offramp_ok, cleanup_ok=cleanup_ok)
        self.log.info("all complete offramp_ok=%s cleanup_ok=%s", offramp_ok, cleanup_ok)

    async def execute_redeem(
        self,
        session: ChainSession,
        identity: SigningIdentity,
        stellar_target_account_id: str,
        amount: str,
    ) -> RedeemExecution:
        # Subscribe before submitting so an execution in the next block is not missed.
        correlator = session.correlator
        requester = session.requester(self.vault)
        amount_raw = decimal_to_native(amount)
        self.log.info("executing Spacewalk redeem of %s to %s", amount, stellar_target_account_id)

        request = await requester.request_redeem(identity, amount_raw, public_to_raw(stellar_target_account_id))
        self.events.emit("redeem.requested", redeem_id=request.redeem_id, amount_raw=request.amount_raw)
        self.log.info("redeem %s requested; waiting for execution", request.redeem_id)

        try:
            execution = await correlator.wait_for_redeem_execute_event(
                request.redeem_id, self.settings.redeem_wait_ms
            )
        except WaitTimeoutError:
            self.events.emit("redeem.timeout", redeem_id=request.redeem_id, waited_ms=self.settings.redeem_wait_ms)
            raise
        self.events.emit("redeem.executed", redeem_id=execution.redeem_id, amount=execution.amount)
        self.log.info("redeem %s executed amount=%s", execution.redeem_id, execution.amount)
        return execution


def run_main(settings: Settings, token: TokenConfig) -> None:
    app = App(settings, token)
    secrets = app.read_secrets()
    asyncio.run(app.run(secrets))
