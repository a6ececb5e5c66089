from ..errors import InvalidArgumentError
from ..storefront import StorefrontClient
from .common import compact, next_cursor, pagination_params


def _map_subscription(item: dict) -> dict:
    return {
        "id": item.get("id"),
        "status": item.get("status"),
        "address_id": item.get("address_id"),
        "product_title": item.get("product_title"),
        "variant_title": item.get("variant_title"),
        "quantity": item.get("quantity"),
        "price": item.get("price"),
        "order_interval_unit": item.get("order_interval_unit"),
        "order_interval_frequency": item.get("order_interval_frequency"),
        "charge_interval_frequency": item.get("charge_interval_frequency"),
        "next_charge_scheduled_at": item.get("next_charge_scheduled_at"),
        "cancelled_at": item.get("cancelled_at"),
    }


async def list_subscriptions(
    storefront: StorefrontClient,
    token: str,
    status: str | None,
    pagination: dict | None,
) -> dict:
    params = pagination_params(pagination)
    if status:
        params["status"] = status
    payload = await storefront.request("GET", "/subscriptions", token, params=params)
    return {
        "items": [_map_subscription(item) for item in payload.get("subscriptions", [])],
        "next_cursor": next_cursor(payload),
    }


async def get_subscription(
    storefront: StorefrontClient, token: str, subscription_id: str
) -> dict:
    payload = await storefront.request(
        "GET", f"/subscriptions/{subscription_id}", token
    )
    return {"subscription": _map_subscription(payload.get("subscription", {}))}


async def create_subscription(
    storefront: StorefrontClient, token: str, params: dict
) -> dict:
    for field in ("address_id", "external_variant_id", "next_charge_scheduled_at"):
        if not params.get(field):
            raise InvalidArgumentError(
                f"{field} is required", operation="create_subscription"
            )
    body = compact(
        {
            "address_id": params.get("address_id"),
            "external_variant_id": {"ecommerce": params.get("external_variant_id")},
            "next_charge_scheduled_at": params.get("next_charge_scheduled_at"),
            "quantity": params.get("quantity", 1),
            "order_interval_unit": params.get("order_interval_unit"),
            "order_interval_frequency": params.get("order_interval_frequency"),
            "charge_interval_frequency": params.get("charge_interval_frequency"),
        }
    )
    payload = await storefront.request("POST", "/subscriptions", token, json=body)
    return {"subscription": _map_subscription(payload.get("subscription", {}))}


async def update_subscription(
    storefront: StorefrontClient, token: str, subscription_id: str, patch: dict
) -> dict:
    body = compact(patch)
    if not body:
        raise InvalidArgumentError(
            "Nothing to update", operation="update_subscription"
        )
    payload = await storefront.request(
        "PUT", f"/subscriptions/{subscription_id}", token, json=body
    )
    return {"subscription": _map_subscription(payload.get("subscription", {}))}


async def skip_subscription(
    storefront: StorefrontClient, token: str, subscription_id: str, date: str
) -> dict:
    payload = await storefront.request(
        "POST", f"/subscriptions/{subscription_id}/skip", token, json={"date": date}
    )
    return {"status": "skipped", "result": payload}


async def unskip_subscription(
    storefront: StorefrontClient, token: str, subscription_id: str, date: str
) -> dict:
    payload = await storefront.request(
        "POST", f"/subscriptions/{subscription_id}/unskip", token, json={"date": date}
    )
    return {"status": "unskipped", "result": payload}


async def swap_subscription(
    storefront: StorefrontClient,
    token: str,
    subscription_id: str,
    external_variant_id: str,
    quantity: int | None,
) -> dict:
    body = compact(
        {
            "external_variant_id": {"ecommerce": external_variant_id},
            "quantity": quantity,
        }
    )
    payload = await storefront.request(
        "POST", f"/subscriptions/{subscription_id}/swap", token, json=body
    )
    return {"subscription": _map_subscription(payload.get("subscription", {}))}


async def cancel_subscription(
    storefront: StorefrontClient,
    token: str,
    subscription_id: str,
    cancellation_reason: str,
    cancellation_reason_comments: str | None,
) -> dict:
    body = compact(
        {
            "cancellation_reason": cancellation_reason,
            "cancellation_reason_comments": cancellation_reason_comments,
        }
    )
    payload = await storefront.request(
        "POST", f"/subscriptions/{subscription_id}/cancel", token, json=body
    )
    return {"subscription": _map_subscription(payload.get("subscription", {}))}


async def activate_subscription(
    storefront: StorefrontClient, token: str, subscription_id: str
) -> dict:
    payload = await storefront.request(
        "POST", f"/subscriptions/{subscription_id}/activate", token, json={}
    )
    return {"subscription": _map_subscription(payload.get("subscription", {}))}


async def set_next_charge_date(
    storefront: StorefrontClient, token: str, subscription_id: str, date: str
) -> dict:
    payload = await storefront.request(
        "POST",
        f"/subscriptions/{subscription_id}/set_next_charge_date",
        token,
        json={"date": date},
    )
    return {"subscription": _map_subscription(payload.get("subscription", {}))}
