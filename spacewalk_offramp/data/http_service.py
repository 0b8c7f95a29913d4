from __future__ import annotations

import asyncio
import logging
import random
import time
import urllib.parse
from typing import Any

import aiohttp


class HttpError(RuntimeError):
    def __init__(self, status: int, url: str, body: str = ""):
        self.status = status
        self.url = url
        self.body = body
        super().__init__(f"http {status} {url}")


class HttpService:
    """Shared HTTP layer with per-host pacing and 429/5xx retry backoff."""

    def __init__(
        self,
        *,
        timeout: float = 15.0,
        min_gap_ms: float = 0.0,
        retries_429: int = 2,
        retries_5xx: int = 2,
        conn_limit: int = 20,
        log: logging.Logger | None = None,
    ):
        self._timeout = max(1.0, float(timeout))
        self._min_gap_s = max(0.0, float(min_gap_ms) / 1000.0)
        self._retries_429 = max(0, int(retries_429))
        self._retries_5xx = max(0, int(retries_5xx))
        self._conn_limit = max(1, int(conn_limit))
        self.log = log or logging.getLogger(__name__)

        self._session: aiohttp.ClientSession | None = None
        self._host_last_ts: dict[str, float] = {}
        self._host_locks: dict[str, asyncio.Lock] = {}

    async def __aenter__(self) -> HttpService:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=self._conn_limit),
                headers={"User-Agent": "spacewalk-offramp/0.2"},
            )
        return self._session

    async def get_text(self, url: str, *, params: dict | None = None, headers: dict | None = None) -> str:
        return await self._request("GET", url, params=params, headers=headers, as_json=False)

    async def get_json(self, url: str, *, params: dict | None = None, headers: dict | None = None) -> Any:
        return await self._request("GET", url, params=params, headers=headers)

    async def post_json(self, url: str, payload: Any, *, headers: dict | None = None) -> Any:
        return await self._request("POST", url, json=payload, headers=headers)

    async def post_form(self, url: str, fields: dict[str, Any], *, headers: dict | None = None) -> Any:
        form = {key: str(value) for key, value in fields.items()}
        return await self._request("POST", url, data=form, headers=headers)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict | None = None,
        json: Any = None,
        data: Any = None,
        headers: dict | None = None,
        as_json: bool = True,
    ) -> Any:
        session = await self._ensure_session()
        host = urllib.parse.urlparse(url).netloc
        lock = self._host_locks.get(host)
        if lock is None:
            lock = asyncio.Lock()
            self._host_locks[host] = lock

        async with lock:
            last_ts = self._host_last_ts.get(host, 0.0)
            gap = time.monotonic() - last_ts
            if last_ts > 0 and gap < self._min_gap_s:
                await asyncio.sleep(self._min_gap_s - gap)
            self._host_last_ts[host] = time.monotonic()

            attempts = 1 + max(self._retries_429, self._retries_5xx)
            seen_429 = 0
            seen_5xx = 0
            for i in range(attempts):
                async with session.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    data=data,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self._timeout),
                ) as r:
                    if r.status == 429 and seen_429 < self._retries_429:
                        seen_429 += 1
                        retry_after = max(1.0, float(r.headers.get("Retry-After", "2") or 2.0))
                        backoff_s = min(90.0, retry_after + (0.35 * i) + random.uniform(0.05, 0.35))
                        self.log.warning("http 429 %s; retrying in %.1fs", host, backoff_s)
                        await asyncio.sleep(backoff_s)
                        continue
                    if r.status >= 500 and seen_5xx < self._retries_5xx:
                        seen_5xx += 1
                        await asyncio.sleep(0.25 + (0.25 * i))
                        continue
                    body = await r.text()
                    if r.status >= 400:
                        raise HttpError(r.status, url, body)
                    if not as_json:
                        return body
                    return await r.json(content_type=None)
            raise HttpError(0, url, "retries exhausted")
