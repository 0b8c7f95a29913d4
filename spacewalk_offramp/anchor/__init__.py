from .sep10 import authenticate, sign_challenge
from .sep24 import Sep24Result, start_withdrawal
from .toml import AnchorError, AnchorInfo, fetch_anchor_info, parse_toml_value

__all__ = [
    "AnchorError",
    "AnchorInfo",
    "Sep24Result",
    "authenticate",
    "fetch_anchor_info",
    "parse_toml_value",
    "sign_challenge",
    "start_withdrawal",
]
