from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv
from stellar_sdk import Network

DEFAULT_ENV_FILE = "~/.spacewalk-offramp.env"

_PASSPHRASES = {
    "public": Network.PUBLIC_NETWORK_PASSPHRASE,
    "testnet": Network.TESTNET_NETWORK_PASSPHRASE,
}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.environ.get(name)
    if raw is None or not str(raw).strip():
        value = default
    else:
        value = int(raw)
    if min_value is not None:
        value = max(min_value, value)
    return value


def _env_float(name: str, default: float, min_value: float | None = None) -> float:
    raw = os.environ.get(name)
    if raw is None or not str(raw).strip():
        value = default
    else:
        value = float(raw)
    if min_value is not None:
        value = max(min_value, value)
    return value


@dataclass(frozen=True)
class Settings:
    custody_ws_url: str
    custody_ss58_format: int
    horizon_url: str
    stellar_network: str
    base_fee: int
    redeem_wait_ms: int
    sep24_poll_sec: float
    http_timeout_sec: float
    collateral_xcm: int | None
    log_level: str
    data_dir: str
    event_log_enabled: bool

    @property
    def network_passphrase(self) -> str:
        try:
            return _PASSPHRASES[self.stellar_network]
        except KeyError:
            raise ValueError(
                f"Unsupported STELLAR_NETWORK={self.stellar_network}. Use one of: {', '.join(_PASSPHRASES)}"
            ) from None


def load_settings(env_file: str | None = None) -> Settings:
    path = env_file or os.environ.get("OFFRAMP_ENV_FILE", DEFAULT_ENV_FILE)
    load_dotenv(os.path.expanduser(path))

    collateral_raw = os.environ.get("VAULT_COLLATERAL_XCM", "").strip()
    return Settings(
        custody_ws_url=os.environ.get("CUSTODY_WS_URL", "wss://rpc-pendulum.prd.pendulumchain.tech").strip(),
        custody_ss58_format=_env_int("CUSTODY_SS58_FORMAT", 56, min_value=0),
        horizon_url=os.environ.get("HORIZON_URL", "https://horizon.stellar.org").strip(),
        stellar_network=os.environ.get("STELLAR_NETWORK", "public").strip().lower(),
        base_fee=_env_int("STELLAR_BASE_FEE", 1_000_000, min_value=100),
        redeem_wait_ms=_env_int("REDEEM_WAIT_MS", 5 * 60 * 1000, min_value=1),
        sep24_poll_sec=_env_float("SEP24_POLL_SEC", 1.0, min_value=0.1),
        http_timeout_sec=_env_float("HTTP_TIMEOUT_SEC", 15.0, min_value=1.0),
        collateral_xcm=int(collateral_raw) if collateral_raw else None,
        log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper(),
        data_dir=os.environ.get("DATA_DIR", "./data"),
        event_log_enabled=_env_bool("EVENT_LOG_ENABLED", True),
    )
