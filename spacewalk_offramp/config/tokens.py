from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TokenConfig:
    toml_url: str
    asset_code: str
    asset_issuer: str
    vault_account_id: str
    collateral_xcm: int = 0


TOKEN_CONFIG: dict[str, TokenConfig] = {
    "brl": TokenConfig(
        toml_url="https://ntokens.com/.well-known/stellar.toml",
        asset_code="BRL",
        asset_issuer="GDVKY2GU2DRXWTBEYJJWSFXIGBZV6AZNBVVSUHEPZI54LIS6BA7DVVSP",
        vault_account_id="6g7fKQQZ9VfbBTQSaKBcATV4psApFra5EDwKLARFZCCVnSWS",
    ),
    "eurc": TokenConfig(
        toml_url="https://mykobo.co/.well-known/stellar.toml",
        asset_code="EURC",
        asset_issuer="GAQRF3UGHBT6JYQZ7YSUYCIYWAF4T2SAA5237Q5LIQYJOHHFAWDXZ7NM",
        vault_account_id="6bsD97dS8ZyomMmp1DLCnCtx25oABtf19dypQKdZe6FBQXSm",
    ),
}


def get_token(name: str) -> TokenConfig | None:
    return TOKEN_CONFIG.get(str(name or "").strip().lower())
