from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from spacewalk_offramp.assets.convert import HEX_PREFIX, hex_to_bytes
from spacewalk_offramp.domain.models import RawEvent, RedeemExecution, RedeemRequest, VaultIdentity

REDEEM_SECTION = "redeem"
REQUEST_REDEEM = "RequestRedeem"
EXECUTE_REDEEM = "ExecuteRedeem"
SYSTEM_SECTION = "system"
EXTRINSIC_FAILED = "ExtrinsicFailed"

# Pallet field order, used when attributes arrive positionally.
REQUEST_FIELDS = (
    "redeem_id",
    "redeemer",
    "vault_id",
    "amount",
    "asset",
    "fee",
    "premium",
    "stellar_address",
    "transfer_fee",
)
EXECUTE_FIELDS = ("redeem_id", "redeemer", "vault_id", "amount", "asset", "fee", "transfer_fee")


def normalize_redeem_id(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return HEX_PREFIX + bytes(value).hex()
    text = str(value).strip().lower()
    if not text.startswith(HEX_PREFIX):
        text = HEX_PREFIX + text
    return text


def _named(event: RawEvent, fields: Sequence[str]) -> Mapping[str, Any]:
    data = event.data
    if isinstance(data, Mapping):
        return data
    if isinstance(data, Sequence) and not isinstance(data, (str, bytes)):
        return dict(zip(fields, data))
    raise ValueError(f"malformed {event.section}.{event.method} event data: {data!r}")


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def _get(fields: Mapping[str, Any], key: str) -> Any:
    # Polkadot JS style payloads use camelCase field names.
    if key in fields:
        return fields[key]
    return fields.get(_camel(key))


def _require(fields: Mapping[str, Any], key: str, event: RawEvent) -> Any:
    value = _get(fields, key)
    if value is None:
        raise ValueError(f"malformed {event.section}.{event.method} event: missing {key}")
    return value


def _amount(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        return int(text, 16) if text.startswith(HEX_PREFIX) else int(text)
    return int(value)


def _raw_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return hex_to_bytes(value)
    return bytes(value)


def is_request_event(event: RawEvent) -> bool:
    return event.matches(REDEEM_SECTION, REQUEST_REDEEM)


def is_execute_event(event: RawEvent) -> bool:
    return event.matches(REDEEM_SECTION, EXECUTE_REDEEM)


def is_extrinsic_failed(event: RawEvent) -> bool:
    return event.matches(SYSTEM_SECTION, EXTRINSIC_FAILED)


def request_redeemer(event: RawEvent) -> str | None:
    """Redeemer of a request event without decoding the rest of it."""
    try:
        fields = _named(event, REQUEST_FIELDS)
    except ValueError:
        return None
    redeemer = _get(fields, "redeemer")
    return None if redeemer is None else str(redeemer)


def parse_redeem_request(event: RawEvent) -> RedeemRequest:
    fields = _named(event, REQUEST_FIELDS)
    return RedeemRequest(
        redeem_id=normalize_redeem_id(_require(fields, "redeem_id", event)),
        requester=str(_require(fields, "redeemer", event)),
        amount_raw=_amount(_require(fields, "amount", event)),
        destination_raw=_raw_bytes(_require(fields, "stellar_address", event)),
        vault=VaultIdentity.from_chain(_require(fields, "vault_id", event)),
        fee_raw=_amount(_get(fields, "fee")),
        premium_raw=_amount(_get(fields, "premium")),
        transfer_fee_raw=_amount(_get(fields, "transfer_fee")),
    )


def parse_redeem_execution(event: RawEvent) -> RedeemExecution:
    fields = _named(event, EXECUTE_FIELDS)
    redeemer = _get(fields, "redeemer")
    return RedeemExecution(
        redeem_id=normalize_redeem_id(_require(fields, "redeem_id", event)),
        amount=_amount(_require(fields, "amount", event)),
        redeemer=None if redeemer is None else str(redeemer),
        fee_raw=_amount(_get(fields, "fee")),
        transfer_fee_raw=_amount(_get(fields, "transfer_fee")),
    )
