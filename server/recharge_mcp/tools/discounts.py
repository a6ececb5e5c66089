from ..errors import InvalidArgumentError
from ..storefront import StorefrontClient
from .common import next_cursor, pagination_params


def _map_discount(item: dict) -> dict:
    return {
        "id": item.get("id"),
        "code": item.get("code"),
        "value": item.get("value"),
        "value_type": item.get("value_type"),
        "status": item.get("status"),
    }


async def list_discounts(
    storefront: StorefrontClient, token: str, pagination: dict | None
) -> dict:
    payload = await storefront.request(
        "GET", "/discounts", token, params=pagination_params(pagination)
    )
    return {
        "items": [_map_discount(item) for item in payload.get("discounts", [])],
        "next_cursor": next_cursor(payload),
    }


async def get_discount(storefront: StorefrontClient, token: str, discount_id: str) -> dict:
    payload = await storefront.request("GET", f"/discounts/{discount_id}", token)
    return {"discount": _map_discount(payload.get("discount", {}))}


async def apply_discount(storefront: StorefrontClient, token: str, code: str) -> dict:
    code = code.strip()
    if not code:
        raise InvalidArgumentError("Discount code is required", operation="apply_discount")
    payload = await storefront.request(
        "POST", "/discounts", token, json={"discount_code": code}
    )
    return {"discount": _map_discount(payload.get("discount", {}))}


async def remove_discount(
    storefront: StorefrontClient, token: str, discount_id: str
) -> dict:
    await storefront.request("DELETE", f"/discounts/{discount_id}", token)
    return {"status": "removed", "discount_id": discount_id}
