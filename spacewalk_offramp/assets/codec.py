"""Wrapped Stellar assets as the custody chain stores them.

On chain a wrapped asset is ``{"Stellar": "StellarNative"}`` or
``{"Stellar": {"AlphaNum4" | "AlphaNum12": {"code": ..., "issuer": ...}}}``.
Codes are NUL padded to the variant width; code and issuer arrive either as
``0x`` prefixed hex or already decoded (ascii code, ``G...`` issuer).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Union

from stellar_sdk import Asset, StrKey

from spacewalk_offramp.assets.convert import HEX_PREFIX, bytes_to_hex, hex_to_bytes
from spacewalk_offramp.errors import InvalidAssetShape

if TYPE_CHECKING:
    from spacewalk_offramp.domain.models import VaultIdentity

STELLAR_TAG = "Stellar"
NATIVE_TAG = "StellarNative"
ISSUER_LEN = 32


def trim_asset_code(code: str | bytes) -> str:
    """Strip the NUL padding from a fixed width code, hex or raw."""
    if isinstance(code, str) and code.startswith(HEX_PREFIX):
        raw = hex_to_bytes(code)
    elif isinstance(code, str):
        raw = code.encode("utf-8")
    else:
        raw = bytes(code)
    return raw.rstrip(b"\x00").decode("utf-8").strip()


def _from_hex(value: str, what: str) -> bytes:
    try:
        return hex_to_bytes(value)
    except ValueError as exc:
        raise InvalidAssetShape(f"invalid hex {what} {value!r}") from exc


def _code_bytes(code: str | bytes, width: int) -> bytes:
    if isinstance(code, str) and code.startswith(HEX_PREFIX):
        raw = _from_hex(code, "code")
    elif isinstance(code, str):
        raw = code.encode("utf-8")
    else:
        raw = bytes(code)
    trimmed = raw.rstrip(b"\x00")
    if not trimmed or len(trimmed) > width:
        raise InvalidAssetShape(f"asset code {code!r} does not fit a {width} byte code")
    return trimmed.ljust(width, b"\x00")


def _issuer_bytes(issuer: str | bytes) -> bytes:
    if isinstance(issuer, (bytes, bytearray)):
        raw = bytes(issuer)
    elif issuer.startswith(HEX_PREFIX):
        raw = _from_hex(issuer, "issuer")
    else:
        try:
            raw = StrKey.decode_ed25519_public_key(issuer)
        except ValueError as exc:
            raise InvalidAssetShape(f"invalid issuer {issuer!r}") from exc
    if len(raw) != ISSUER_LEN:
        raise InvalidAssetShape(f"issuer must be {ISSUER_LEN} bytes, got {len(raw)}")
    return raw


@dataclass(frozen=True)
class StellarNative:
    @property
    def display_code(self) -> str:
        return "XLM"

    def to_asset(self) -> Asset:
        return Asset.native()

    def to_chain(self) -> dict[str, Any]:
        return {STELLAR_TAG: NATIVE_TAG}


@dataclass(frozen=True)
class _AlphaNum:
    code: bytes
    issuer: bytes

    WIDTH: ClassVar[int] = 0
    TAG: ClassVar[str] = ""

    def __post_init__(self) -> None:
        if len(self.code) != self.WIDTH:
            raise InvalidAssetShape(f"{self.TAG} code must be {self.WIDTH} bytes, got {len(self.code)}")
        if len(self.issuer) != ISSUER_LEN:
            raise InvalidAssetShape(f"{self.TAG} issuer must be {ISSUER_LEN} bytes, got {len(self.issuer)}")

    @classmethod
    def from_parts(cls, code: str | bytes, issuer: str | bytes):
        return cls(code=_code_bytes(code, cls.WIDTH), issuer=_issuer_bytes(issuer))

    @property
    def display_code(self) -> str:
        return trim_asset_code(self.code)

    @property
    def issuer_id(self) -> str:
        return StrKey.encode_ed25519_public_key(self.issuer)

    def to_asset(self) -> Asset:
        return Asset(self.display_code, self.issuer_id)

    def to_chain(self) -> dict[str, Any]:
        return {
            STELLAR_TAG: {
                self.TAG: {"code": bytes_to_hex(self.code), "issuer": bytes_to_hex(self.issuer)},
            }
        }


@dataclass(frozen=True)
class AlphaNum4(_AlphaNum):
    WIDTH: ClassVar[int] = 4
    TAG: ClassVar[str] = "AlphaNum4"


@dataclass(frozen=True)
class AlphaNum12(_AlphaNum):
    WIDTH: ClassVar[int] = 12
    TAG: ClassVar[str] = "AlphaNum12"


WrappedAsset = Union[StellarNative, AlphaNum4, AlphaNum12]

_ALPHANUM = {AlphaNum4.TAG: AlphaNum4, AlphaNum12.TAG: AlphaNum12}


def parse_wrapped_asset(wrapped: Any) -> WrappedAsset:
    if isinstance(wrapped, (StellarNative, AlphaNum4, AlphaNum12)):
        return wrapped
    stellar = wrapped.get(STELLAR_TAG) if isinstance(wrapped, Mapping) else None
    if stellar == NATIVE_TAG or (isinstance(stellar, Mapping) and NATIVE_TAG in stellar):
        return StellarNative()
    if isinstance(stellar, Mapping):
        for tag, variant in _ALPHANUM.items():
            body = stellar.get(tag)
            if isinstance(body, Mapping):
                if "code" not in body or "issuer" not in body:
                    raise InvalidAssetShape(f"{tag} requires code and issuer")
                return variant.from_parts(body["code"], body["issuer"])
    raise InvalidAssetShape("Invalid Stellar type in wrapped")


def decode_wrapped_asset(wrapped: Any) -> Asset:
    """Chain representation -> Stellar asset with trimmed code and G... issuer."""
    return parse_wrapped_asset(wrapped).to_asset()


def wrapped_from_asset(asset: Asset) -> WrappedAsset:
    if asset.is_native():
        return StellarNative()
    variant = AlphaNum4 if len(asset.code) <= AlphaNum4.WIDTH else AlphaNum12
    return variant.from_parts(asset.code, asset.issuer)


def encode_wrapped_asset(asset: Asset) -> dict[str, Any]:
    return wrapped_from_asset(asset).to_chain()


def describe(vault: VaultIdentity) -> str:
    # Issuer omitted.
    return f"{vault.account_id} {{ {vault.collateral.describe()} - {vault.wrapped.display_code} }}"
