from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from spacewalk_offramp.assets.codec import WrappedAsset, parse_wrapped_asset


@dataclass(frozen=True)
class Currency:
    """Tagged currency id, e.g. ``{"XCM": 0}`` or ``"Native"`` on chain."""

    kind: str
    id: int | None = None

    @classmethod
    def from_chain(cls, value: Any) -> Currency:
        if isinstance(value, str):
            return cls(kind=value)
        if isinstance(value, Mapping) and len(value) == 1:
            kind, inner = next(iter(value.items()))
            return cls(kind=str(kind), id=None if inner is None else int(inner))
        raise ValueError(f"unsupported currency {value!r}")

    def to_chain(self) -> Any:
        if self.id is None:
            return self.kind
        return {self.kind: self.id}

    def describe(self) -> str:
        if self.id is None:
            return self.kind
        return f"{self.kind}({self.id})"


@dataclass(frozen=True)
class VaultIdentity:
    account_id: str
    collateral: Currency
    wrapped: WrappedAsset

    @classmethod
    def from_chain(cls, value: Mapping[str, Any]) -> VaultIdentity:
        currencies = value["currencies"]
        return cls(
            account_id=str(value["account_id"]),
            collateral=Currency.from_chain(currencies["collateral"]),
            wrapped=parse_wrapped_asset(currencies["wrapped"]),
        )

    def to_chain(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "currencies": {
                "collateral": self.collateral.to_chain(),
                "wrapped": self.wrapped.to_chain(),
            },
        }


@dataclass(frozen=True)
class SigningIdentity:
    address: str
    public_key: bytes
    keypair: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True)
class RedeemCall:
    amount_raw: int
    destination_raw: bytes
    vault: VaultIdentity


@dataclass(frozen=True)
class RedeemRequest:
    redeem_id: str
    requester: str
    amount_raw: int
    destination_raw: bytes
    vault: VaultIdentity
    fee_raw: int = 0
    premium_raw: int = 0
    transfer_fee_raw: int = 0


@dataclass(frozen=True)
class RedeemExecution:
    redeem_id: str
    amount: int
    redeemer: str | None = None
    fee_raw: int = 0
    transfer_fee_raw: int = 0


@dataclass(frozen=True)
class RawEvent:
    section: str
    method: str
    data: Any = field(default_factory=dict)
    phase: str = ""

    def matches(self, section: str, method: str) -> bool:
        return self.section.lower() == section.lower() and self.method.lower() == method.lower()


@dataclass(frozen=True)
class FinalizationResult:
    status: str
    events: tuple[RawEvent, ...] = ()
    dispatch_error: Any = None
    block_hash: str = ""

    @property
    def finalized(self) -> bool:
        return self.status.lower() == "finalized"


@dataclass(frozen=True)
class ModuleErrorInfo:
    section: str
    method: str
    name: str
    docs: str = ""
