from __future__ import annotations

import re
from dataclasses import dataclass

from spacewalk_offramp.data.http_service import HttpService


class AnchorError(RuntimeError):
    """The anchor answered with something the offramp flow cannot use."""


@dataclass(frozen=True)
class AnchorInfo:
    signing_key: str
    web_auth_endpoint: str
    sep24_url: str


def parse_toml_value(content: str, key: str) -> str | None:
    """First ``KEY = "value"`` line wins; anything fancier than that is ignored."""
    pattern = re.compile(rf'^\s*{re.escape(key)}\s*=\s*"(.*)"\s*$')
    for line in content.split("\n"):
        match = pattern.match(line)
        if match:
            return match.group(1)
    return None


async def fetch_anchor_info(http: HttpService, url: str) -> AnchorInfo:
    content = await http.get_text(url)
    values = {
        key: parse_toml_value(content, key)
        for key in ("SIGNING_KEY", "WEB_AUTH_ENDPOINT", "TRANSFER_SERVER_SEP0024")
    }
    missing = [key for key, value in values.items() if not value]
    if missing:
        raise AnchorError(f"{url} is missing {', '.join(missing)}")
    return AnchorInfo(
        signing_key=values["SIGNING_KEY"],
        web_auth_endpoint=values["WEB_AUTH_ENDPOINT"],
        sep24_url=values["TRANSFER_SERVER_SEP0024"].rstrip("/"),
    )
