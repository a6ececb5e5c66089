import json
from typing import Any

import httpx
import structlog

from .errors import (
    NotFoundError,
    RedirectError,
    UnauthorizedError,
    UpstreamError,
    UpstreamUnavailableError,
)

logger = structlog.get_logger(__name__)


def error_detail(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or None
    if not isinstance(payload, dict):
        return json.dumps(payload) if payload else None
    if payload.get("message"):
        return str(payload["message"])
    error = payload.get("error")
    if error:
        return error if isinstance(error, str) else json.dumps(error)
    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, str):
            return first
        if isinstance(first, dict) and first.get("message"):
            return str(first["message"])
        return json.dumps(first)
    if errors:
        return json.dumps(errors)
    return json.dumps(payload) if payload else None


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    operation: str,
    customer_id: str | None = None,
    **kwargs: Any,
) -> httpx.Response:
    try:
        return await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        logger.warning("upstream_timeout", operation=operation, customer_id=customer_id)
        raise UpstreamUnavailableError(
            "Request timeout - the server took too long to respond",
            operation=operation,
            customer_id=customer_id,
        ) from exc
    except httpx.TransportError as exc:
        logger.warning(
            "upstream_network_error",
            operation=operation,
            customer_id=customer_id,
            error=exc.__class__.__name__,
        )
        raise UpstreamUnavailableError(
            "Network error: no response received from server",
            operation=operation,
            customer_id=customer_id,
        ) from exc


def check_response(
    response: httpx.Response,
    operation: str,
    customer_id: str | None = None,
    unauthorized_statuses: tuple[int, ...] = (401,),
) -> None:
    status = response.status_code
    context = {"operation": operation, "customer_id": customer_id}
    if 300 <= status < 400:
        location = response.headers.get("location")
        logger.warning(
            "upstream_redirect", status=status, location=location, **context
        )
        raise RedirectError(
            f"API returned redirect ({status}) to: {location}. This usually "
            "indicates an invalid token or a misconfigured store URL.",
            location=location,
            **context,
        )
    if status < 400:
        return
    detail = error_detail(response) or f"HTTP {status} Error"
    if status in unauthorized_statuses:
        raise UnauthorizedError(f"Recharge rejected the token: {detail}", **context)
    if status == 404:
        raise NotFoundError(f"Not found: {detail}", **context)
    raise UpstreamError(
        f"Recharge API error ({status}): {detail}", upstream_status=status, **context
    )


def decode_json(
    response: httpx.Response, operation: str, customer_id: str | None = None
) -> Any:
    if response.status_code == 204 or not response.content:
        return {}
    try:
        return response.json()
    except ValueError as exc:
        logger.warning(
            "upstream_non_json",
            status=response.status_code,
            content_type=response.headers.get("content-type"),
            operation=operation,
            customer_id=customer_id,
        )
        raise UpstreamError(
            "Recharge returned a non-JSON response. Check the store domain.",
            upstream_status=response.status_code,
            operation=operation,
            customer_id=customer_id,
        ) from exc
