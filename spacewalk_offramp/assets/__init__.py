from .codec import (
    AlphaNum4,
    AlphaNum12,
    StellarNative,
    WrappedAsset,
    decode_wrapped_asset,
    describe,
    encode_wrapped_asset,
    parse_wrapped_asset,
    trim_asset_code,
    wrapped_from_asset,
)
from .convert import CHAIN_DECIMALS, STELLAR_DECIMALS, decimal_to_native, native_to_decimal

__all__ = [
    "AlphaNum4",
    "AlphaNum12",
    "StellarNative",
    "WrappedAsset",
    "decode_wrapped_asset",
    "describe",
    "encode_wrapped_asset",
    "parse_wrapped_asset",
    "trim_asset_code",
    "wrapped_from_asset",
    "CHAIN_DECIMALS",
    "STELLAR_DECIMALS",
    "decimal_to_native",
    "native_to_decimal",
]
