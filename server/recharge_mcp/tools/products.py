from ..storefront import StorefrontClient
from .common import next_cursor, pagination_params


def _map_product(item: dict) -> dict:
    return {
        "id": item.get("id"),
        "title": item.get("title"),
        "external_product_id": item.get("external_product_id"),
        "variants": [
            {
                "external_variant_id": variant.get("external_variant_id"),
                "title": variant.get("title"),
                "price": variant.get("price"),
            }
            for variant in item.get("variants", [])
        ],
        "subscription_preferences": item.get("subscription_preferences"),
    }


async def list_products(
    storefront: StorefrontClient, token: str, pagination: dict | None
) -> dict:
    payload = await storefront.request(
        "GET", "/products", token, params=pagination_params(pagination)
    )
    return {
        "items": [_map_product(item) for item in payload.get("products", [])],
        "next_cursor": next_cursor(payload),
    }


async def get_product(storefront: StorefrontClient, token: str, product_id: str) -> dict:
    payload = await storefront.request("GET", f"/products/{product_id}", token)
    return {"product": _map_product(payload.get("product", {}))}
