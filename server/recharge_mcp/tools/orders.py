from ..storefront import StorefrontClient
from .common import next_cursor, pagination_params


def _map_line_item(item: dict) -> dict:
    return {
        "title": item.get("title"),
        "variant_title": item.get("variant_title"),
        "quantity": item.get("quantity"),
        "price": item.get("unit_price") or item.get("price"),
    }


def _map_order(item: dict) -> dict:
    return {
        "id": item.get("id"),
        "status": item.get("status"),
        "charge_id": (item.get("charge") or {}).get("id") or item.get("charge_id"),
        "total_price": item.get("total_price"),
        "currency": item.get("currency"),
        "processed_at": item.get("processed_at"),
        "scheduled_at": item.get("scheduled_at"),
        "line_items": [_map_line_item(li) for li in item.get("line_items", [])],
    }


def _map_charge(item: dict) -> dict:
    return {
        "id": item.get("id"),
        "status": item.get("status"),
        "total_price": item.get("total_price"),
        "currency": item.get("currency"),
        "scheduled_at": item.get("scheduled_at"),
        "processed_at": item.get("processed_at"),
        "line_items": [_map_line_item(li) for li in item.get("line_items", [])],
    }


async def list_orders(
    storefront: StorefrontClient, token: str, status: str | None, pagination: dict | None
) -> dict:
    params = pagination_params(pagination)
    if status:
        params["status"] = status
    payload = await storefront.request("GET", "/orders", token, params=params)
    return {
        "items": [_map_order(item) for item in payload.get("orders", [])],
        "next_cursor": next_cursor(payload),
    }


async def get_order(storefront: StorefrontClient, token: str, order_id: str) -> dict:
    payload = await storefront.request("GET", f"/orders/{order_id}", token)
    return {"order": _map_order(payload.get("order", {}))}


async def list_charges(
    storefront: StorefrontClient, token: str, status: str | None, pagination: dict | None
) -> dict:
    params = pagination_params(pagination)
    if status:
        params["status"] = status
    payload = await storefront.request("GET", "/charges", token, params=params)
    return {
        "items": [_map_charge(item) for item in payload.get("charges", [])],
        "next_cursor": next_cursor(payload),
    }


async def get_charge(storefront: StorefrontClient, token: str, charge_id: str) -> dict:
    payload = await storefront.request("GET", f"/charges/{charge_id}", token)
    return {"charge": _map_charge(payload.get("charge", {}))}
