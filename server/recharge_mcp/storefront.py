from typing import Any

import httpx

from .config import settings
from .upstream import check_response, decode_json, send


class StorefrontClient:
    def __init__(
        self, base_url: str | None = None, client: httpx.AsyncClient | None = None
    ) -> None:
        self._base_url = (base_url or settings.storefront_api_url).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=settings.http_timeout_seconds, follow_redirects=False
        )

    async def request(
        self,
        method: str,
        path: str,
        token: str,
        headers: dict | None = None,
        **kwargs: Any,
    ) -> dict:
        req_headers = {
            "X-Recharge-Access-Token": token,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if headers:
            req_headers.update(headers)

        operation = f"{method} {path}"
        response = await send(
            self._client,
            method,
            f"{self._base_url}{path}",
            operation=operation,
            headers=req_headers,
            **kwargs,
        )
        check_response(response, operation)
        return decode_json(response, operation)

    async def close(self) -> None:
        await self._client.aclose()
