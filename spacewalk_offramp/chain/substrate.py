"""Spacewalk custody chain client on top of substrate-interface.

Blocking RPC work runs in the default executor. Each submission gets its own
``SubstrateInterface`` so different signers never queue behind one socket;
nonce lookups, metadata and event reads share a reader guarded by a lock.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import urllib.parse
from collections.abc import Mapping, Sequence
from typing import Any

import websockets
from substrateinterface import Keypair, SubstrateInterface

from spacewalk_offramp.assets.convert import bytes_to_hex, hex_to_bytes
from spacewalk_offramp.chain.connection import EventCallback
from spacewalk_offramp.domain.models import (
    FinalizationResult,
    ModuleErrorInfo,
    RawEvent,
    RedeemCall,
    SigningIdentity,
)
from spacewalk_offramp.runtime.supervisor import LoopSupervisor

REDEEM_PALLET = "Redeem"
REQUEST_REDEEM_CALL = "request_redeem"
FINALIZED_HEAD_METHODS = {"chain_finalizedHead", "chain_finalisedHead"}
MAX_BACKFILL = 256


def redeem_call_params(call: RedeemCall) -> dict[str, Any]:
    return {
        "amount_wrapped": call.amount_raw,
        "stellar_address": bytes_to_hex(call.destination_raw),
        "vault_id": call.vault.to_chain(),
    }


def identity_from_uri(uri: str, *, ss58_format: int = 56) -> SigningIdentity:
    """Build a signer from a secret URI/mnemonic or a raw ``0x`` seed."""
    secret = uri.strip()
    if secret.startswith("0x") and len(secret) == 66:
        keypair = Keypair.create_from_seed(seed_hex=secret, ss58_format=ss58_format)
    else:
        keypair = Keypair.create_from_uri(secret, ss58_format=ss58_format)
    return SigningIdentity(address=keypair.ss58_address, public_key=keypair.public_key, keypair=keypair)


def _phase_text(phase: Any) -> str:
    if isinstance(phase, Mapping):
        return str(next(iter(phase), ""))
    return "" if phase is None else str(phase)


def to_raw_event(value: Mapping[str, Any]) -> RawEvent:
    """Normalize one decoded ``System.Events`` record."""
    inner = value.get("event")
    event = inner if isinstance(inner, Mapping) else value
    attributes = event.get("attributes", value.get("attributes"))
    return RawEvent(
        section=str(event.get("module_id") or value.get("module_id") or ""),
        method=str(event.get("event_id") or value.get("event_id") or ""),
        data={} if attributes is None else attributes,
        phase=_phase_text(value.get("phase")),
    )


def _error_index(error: Any) -> int:
    # [u8; 4]: first byte is the pallet error variant, the rest is nested error data.
    if isinstance(error, int):
        return error
    if isinstance(error, str):
        raw = hex_to_bytes(error)
    elif isinstance(error, (bytes, bytearray)):
        raw = bytes(error)
    elif isinstance(error, Sequence):
        raw = bytes(int(b) for b in error)
    else:
        raise ValueError(f"unsupported module error index {error!r}")
    if not raw:
        raise ValueError("empty module error index")
    return raw[0]


def _module_parts(dispatch_error: Any) -> tuple[int, int]:
    module = dispatch_error.get("Module") if isinstance(dispatch_error, Mapping) else None
    if isinstance(module, Mapping) and "index" in module and "error" in module:
        return int(module["index"]), _error_index(module["error"])
    if isinstance(module, Sequence) and not isinstance(module, (str, bytes)) and len(module) == 2:
        return int(module[0]), _error_index(module[1])
    raise ValueError(f"not a module dispatch error: {dispatch_error!r}")


class SubstrateConnection:
    def __init__(
        self,
        url: str,
        *,
        ss58_format: int = 56,
        log: logging.Logger | None = None,
        supervisor: LoopSupervisor | None = None,
    ):
        self.url = url
        self.ss58_format = ss58_format
        self.log = log or logging.getLogger(__name__)
        self.supervisor = supervisor or LoopSupervisor()
        self._reader_lock = threading.Lock()
        self._reader_iface: SubstrateInterface | None = None
        self._callbacks: list[EventCallback] = []
        self._stream_task: asyncio.Task | None = None
        self._last_block: int | None = None

    def _open(self) -> SubstrateInterface:
        return SubstrateInterface(url=self.url, ss58_format=self.ss58_format)

    def _reader(self) -> SubstrateInterface:
        # Caller holds _reader_lock.
        if self._reader_iface is None:
            self._reader_iface = self._open()
        return self._reader_iface

    async def next_nonce(self, address: str) -> int:
        def fetch() -> int:
            with self._reader_lock:
                reply = self._reader().rpc_request("system_accountNextIndex", [address])
            return int(reply["result"])

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fetch)

    async def submit_signed(self, call: RedeemCall, identity: SigningIdentity, nonce: int) -> FinalizationResult:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self._submit_blocking(call, identity, nonce))

    def _submit_blocking(self, call: RedeemCall, identity: SigningIdentity, nonce: int) -> FinalizationResult:
        substrate = self._open()
        try:
            composed = substrate.compose_call(
                call_module=REDEEM_PALLET,
                call_function=REQUEST_REDEEM_CALL,
                call_params=redeem_call_params(call),
            )
            extrinsic = substrate.create_signed_extrinsic(call=composed, keypair=identity.keypair, nonce=nonce)
            receipt = substrate.submit_extrinsic(extrinsic, wait_for_inclusion=True, wait_for_finalization=True)
            events = tuple(to_raw_event(record.value) for record in receipt.triggered_events)
            return FinalizationResult(
                status="finalized" if receipt.finalized else "inBlock",
                events=events,
                block_hash=receipt.block_hash or "",
            )
        finally:
            substrate.close()

    def decode_module_error(self, dispatch_error: Any) -> ModuleErrorInfo:
        module_index, error_index = _module_parts(dispatch_error)
        with self._reader_lock:
            metadata = self._reader().metadata
            module_error = metadata.get_module_error(module_index=module_index, error_index=error_index)
            if module_error is None:
                raise LookupError(f"no error {error_index} in module {module_index}")
            section = next(
                (p.value["name"] for p in metadata.pallets if p.value["index"] == module_index),
                None,
            )
        if section is None:
            raise LookupError(f"no pallet with index {module_index}")
        docs = module_error.docs
        return ModuleErrorInfo(
            section=section,
            method=module_error.name,
            name=module_error.name,
            docs=" ".join(docs) if isinstance(docs, (list, tuple)) else str(docs or ""),
        )

    def subscribe_events(self, callback: EventCallback) -> None:
        self._callbacks.append(callback)
        if self._stream_task is None:
            self._stream_task = self.supervisor.spawn("finalized-events", self._follow_finalized, self.log)

    async def _follow_finalized(self) -> None:
        host = urllib.parse.urlparse(self.url).netloc
        sub_req = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "chain_subscribeFinalizedHeads", "params": []})
        async with websockets.connect(self.url, ping_interval=20, open_timeout=10, max_size=None) as ws:
            await ws.send(sub_req)
            resp = json.loads(await asyncio.wait_for(ws.recv(), timeout=10))
            if "error" in resp or "result" not in resp:
                raise RuntimeError(f"finalized head subscription rejected: {resp}")
            self.log.info("finalized head stream ready on %s", host)
            async for raw in ws:
                msg = json.loads(raw)
                if msg.get("method") not in FINALIZED_HEAD_METHODS:
                    continue
                number = int(str(msg["params"]["result"]["number"]), 16)
                await self._catch_up(number)

    async def _catch_up(self, number: int) -> None:
        if self._last_block is None:
            self._last_block = number - 1
        if number <= self._last_block:
            return
        start = self._last_block + 1
        if number - start + 1 > MAX_BACKFILL:
            self.log.warning(
                "finalized stream fell %s blocks behind; resuming at %s",
                number - start + 1,
                number - MAX_BACKFILL + 1,
            )
            start = number - MAX_BACKFILL + 1
        loop = asyncio.get_running_loop()
        for block in range(start, number + 1):
            batch = await loop.run_in_executor(None, self._events_at, block)
            self._last_block = block
            for callback in list(self._callbacks):
                callback(batch)

    def _events_at(self, block: int) -> list[RawEvent]:
        with self._reader_lock:
            reader = self._reader()
            block_hash = reader.get_block_hash(block)
            records = reader.get_events(block_hash=block_hash)
        return [to_raw_event(record.value) for record in records]

    async def close(self) -> None:
        if self._stream_task is not None:
            self._stream_task.cancel()
            try:
                await self._stream_task
            except asyncio.CancelledError:
                pass
            self._stream_task = None
        self._callbacks.clear()
        with self._reader_lock:
            reader, self._reader_iface = self._reader_iface, None
        if reader is not None:
            reader.close()
