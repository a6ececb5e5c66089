from typing import Any

import httpx
import structlog

from .config import settings
from .errors import (
    AmbiguousCustomerError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
)
from .logging import token_fingerprint
from .upstream import check_response, decode_json, send

logger = structlog.get_logger(__name__)

# 403 means the admin token lacks the customer or session scopes
_ADMIN_UNAUTHORIZED = (401, 403)


def _candidates(payload: Any) -> list[dict]:
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if not isinstance(payload, dict):
        return []
    if "customers" in payload:
        return _candidates(payload["customers"])
    if isinstance(payload.get("customer"), dict):
        return [payload["customer"]]
    if payload.get("id") is not None:
        return [payload]
    return []


def _session_token(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    for key in ("customer_session", "session"):
        nested = payload.get(key)
        if isinstance(nested, dict) and nested.get("token"):
            return str(nested["token"])
    token = payload.get("token")
    return str(token) if token else None


class AdminLookupClient:
    """Privileged Recharge admin calls: customer lookup and session minting."""

    def __init__(
        self,
        admin_token: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._admin_token = admin_token or settings.recharge_admin_token
        self._base_url = (base_url or settings.admin_api_url).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=settings.http_timeout_seconds, follow_redirects=False
        )

    def _headers(self, operation: str, customer_id: str | None = None) -> dict:
        if not self._admin_token:
            raise UnauthorizedError(
                "Admin token required. Set RECHARGE_ADMIN_TOKEN in the environment.",
                operation=operation,
                customer_id=customer_id,
            )
        return {
            "X-Recharge-Access-Token": self._admin_token,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def find_customer_id_by_email(self, email: str) -> str:
        customer = await self.lookup_customer(email)
        customer_id = str(customer["id"])
        logger.info("customer_resolved_by_email", customer_id=customer_id)
        return customer_id

    async def lookup_customer(self, email: str) -> dict:
        operation = "find_customer_by_email"
        headers = self._headers(operation)
        response = await send(
            self._client,
            "GET",
            f"{self._base_url}/customers",
            operation=operation,
            params={"email": email},
            headers=headers,
        )
        check_response(response, operation, unauthorized_statuses=_ADMIN_UNAUTHORIZED)
        payload = decode_json(response, operation)
        candidates = [c for c in _candidates(payload) if c.get("id")]
        if not candidates:
            raise NotFoundError(
                f"Customer not found with email: {email}", operation=operation
            )
        if len(candidates) > 1:
            raise AmbiguousCustomerError(
                f"{len(candidates)} customers match email {email}; "
                "pass customer_id instead",
                candidates=len(candidates),
                operation=operation,
            )
        return candidates[0]

    async def create_session(
        self, customer_id: str, return_url: str | None = None
    ) -> str:
        operation = "create_session"
        headers = self._headers(operation, customer_id)
        body: dict[str, Any] = {
            "customer_id": int(customer_id) if customer_id.isdigit() else customer_id
        }
        if return_url:
            body["return_url"] = return_url
        response = await send(
            self._client,
            "POST",
            f"{self._base_url}/customer_portal/customer_sessions",
            operation=operation,
            customer_id=customer_id,
            json=body,
            headers=headers,
        )
        check_response(
            response,
            operation,
            customer_id=customer_id,
            unauthorized_statuses=_ADMIN_UNAUTHORIZED,
        )
        token = _session_token(decode_json(response, operation, customer_id))
        if not token:
            raise UpstreamError(
                "Session creation succeeded but no token returned",
                upstream_status=response.status_code,
                operation=operation,
                customer_id=customer_id,
            )
        logger.info(
            "customer_session_created",
            customer_id=customer_id,
            token_fingerprint=token_fingerprint(token),
        )
        return token

    async def close(self) -> None:
        await self._client.aclose()
