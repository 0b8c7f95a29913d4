from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation

from stellar_sdk import StrKey
from web3 import Web3

# Decimals of the native currency on the custody chain.
CHAIN_DECIMALS = 12
# Stellar amounts are up-scaled on the custody chain to match the other tokens.
STELLAR_DECIMALS = CHAIN_DECIMALS

HEX_PREFIX = "0x"


def hex_to_bytes(hex_string: str) -> bytes:
    if len(hex_string) % 2 != 0:
        raise ValueError("The provided hex string has an odd length. It must have an even length.")
    return Web3.to_bytes(hexstr=hex_string)


def bytes_to_hex(raw: bytes) -> str:
    return Web3.to_hex(bytes(raw))


def hex_to_str(hex_string: str) -> str:
    return hex_to_bytes(hex_string).decode("utf-8")


def stellar_hex_to_public(hex_string: str) -> str:
    return StrKey.encode_ed25519_public_key(hex_to_bytes(hex_string))


def public_to_raw(account_id: str) -> bytes:
    return StrKey.decode_ed25519_public_key(account_id)


def native_to_decimal(value: int | str) -> Decimal:
    """1000000000 -> Decimal('0.001')"""
    return Decimal(value) / (Decimal(10) ** STELLAR_DECIMALS)


def decimal_to_native(value: str | int | float | Decimal) -> int:
    """'0.1' -> 100000000000. Unparseable input converts to 0."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        amount = Decimal(0)
    if not amount.is_finite():
        amount = Decimal(0)
    scaled = amount * (Decimal(10) ** STELLAR_DECIMALS)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))
