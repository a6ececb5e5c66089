from ..errors import InvalidArgumentError
from ..storefront import StorefrontClient
from .common import compact, next_cursor, pagination_params


def _map_onetime(item: dict) -> dict:
    return {
        "id": item.get("id"),
        "address_id": item.get("address_id"),
        "product_title": item.get("product_title"),
        "variant_title": item.get("variant_title"),
        "quantity": item.get("quantity"),
        "price": item.get("price"),
        "next_charge_scheduled_at": item.get("next_charge_scheduled_at"),
    }


async def list_onetimes(
    storefront: StorefrontClient, token: str, pagination: dict | None
) -> dict:
    payload = await storefront.request(
        "GET", "/onetimes", token, params=pagination_params(pagination)
    )
    return {
        "items": [_map_onetime(item) for item in payload.get("onetimes", [])],
        "next_cursor": next_cursor(payload),
    }


async def get_onetime(storefront: StorefrontClient, token: str, onetime_id: str) -> dict:
    payload = await storefront.request("GET", f"/onetimes/{onetime_id}", token)
    return {"onetime": _map_onetime(payload.get("onetime", {}))}


async def create_onetime(storefront: StorefrontClient, token: str, params: dict) -> dict:
    for field in ("address_id", "external_variant_id", "next_charge_scheduled_at"):
        if not params.get(field):
            raise InvalidArgumentError(f"{field} is required", operation="create_onetime")
    body = {
        "address_id": params["address_id"],
        "external_variant_id": {"ecommerce": params["external_variant_id"]},
        "next_charge_scheduled_at": params["next_charge_scheduled_at"],
        "quantity": params.get("quantity") or 1,
    }
    payload = await storefront.request("POST", "/onetimes", token, json=body)
    return {"onetime": _map_onetime(payload.get("onetime", {}))}


async def update_onetime(
    storefront: StorefrontClient, token: str, onetime_id: str, patch: dict
) -> dict:
    body = compact(
        {
            "next_charge_scheduled_at": patch.get("next_charge_scheduled_at"),
            "quantity": patch.get("quantity"),
        }
    )
    if not body:
        raise InvalidArgumentError("Nothing to update", operation="update_onetime")
    payload = await storefront.request(
        "PUT", f"/onetimes/{onetime_id}", token, json=body
    )
    return {"onetime": _map_onetime(payload.get("onetime", {}))}


async def delete_onetime(storefront: StorefrontClient, token: str, onetime_id: str) -> dict:
    await storefront.request("DELETE", f"/onetimes/{onetime_id}", token)
    return {"status": "deleted", "onetime_id": onetime_id}
