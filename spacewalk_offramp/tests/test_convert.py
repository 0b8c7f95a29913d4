from decimal import Decimal

import pytest
from fakes import EURC_ISSUER

from spacewalk_offramp.assets.convert import (
    decimal_to_native,
    hex_to_bytes,
    hex_to_str,
    native_to_decimal,
    public_to_raw,
    stellar_hex_to_public,
)


def test_decimal_to_native_scales_to_twelve_decimals() -> None:
    assert decimal_to_native("0.1") == 100_000_000_000
    assert decimal_to_native("12.5") == 12_500_000_000_000
    assert decimal_to_native("0.0000000000019") == 1


def test_decimal_to_native_invalid_is_zero() -> None:
    assert decimal_to_native("not a number") == 0
    assert decimal_to_native("NaN") == 0


def test_native_to_decimal() -> None:
    assert native_to_decimal(1_000_000_000) == Decimal("0.001")


def test_hex_helpers() -> None:
    assert hex_to_bytes("0x0102") == b"\x01\x02"
    assert hex_to_str("0x45555243") == "EURC"
    with pytest.raises(ValueError):
        hex_to_bytes("0x123")


def test_stellar_public_key_round_trip() -> None:
    raw = public_to_raw(EURC_ISSUER)
    assert len(raw) == 32
    assert stellar_hex_to_public("0x" + raw.hex()) == EURC_ISSUER
