from ..errors import InvalidArgumentError
from ..storefront import StorefrontClient
from .common import compact, next_cursor, pagination_params


def _map_payment_method(item: dict) -> dict:
    details = item.get("payment_details") or {}
    return {
        "id": item.get("id"),
        "payment_type": item.get("payment_type"),
        "processor_name": item.get("processor_name"),
        "default": item.get("default"),
        "brand": details.get("brand"),
        "last4": details.get("last4"),
        "exp_month": details.get("exp_month"),
        "exp_year": details.get("exp_year"),
        "billing_address": item.get("billing_address"),
    }


async def list_payment_methods(
    storefront: StorefrontClient, token: str, pagination: dict | None
) -> dict:
    payload = await storefront.request(
        "GET", "/payment_methods", token, params=pagination_params(pagination)
    )
    return {
        "items": [
            _map_payment_method(item) for item in payload.get("payment_methods", [])
        ],
        "next_cursor": next_cursor(payload),
    }


async def get_payment_method(
    storefront: StorefrontClient, token: str, payment_method_id: str
) -> dict:
    payload = await storefront.request(
        "GET", f"/payment_methods/{payment_method_id}", token
    )
    return {"payment_method": _map_payment_method(payload.get("payment_method", {}))}


async def update_payment_method(
    storefront: StorefrontClient,
    token: str,
    payment_method_id: str,
    billing_address: dict | None,
    default: bool | None,
) -> dict:
    body = compact({"billing_address": billing_address, "default": default})
    if not body:
        raise InvalidArgumentError(
            "Nothing to update", operation="update_payment_method"
        )
    payload = await storefront.request(
        "PUT", f"/payment_methods/{payment_method_id}", token, json=body
    )
    return {"payment_method": _map_payment_method(payload.get("payment_method", {}))}
