from ..errors import InvalidArgumentError
from ..storefront import StorefrontClient
from .common import compact, next_cursor, pagination_params

_ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "company",
    "address1",
    "address2",
    "city",
    "province",
    "zip",
    "country_code",
    "phone",
)


def _map_address(item: dict) -> dict:
    mapped = {"id": item.get("id")}
    mapped.update({field: item.get(field) for field in _ADDRESS_FIELDS})
    return mapped


async def list_addresses(
    storefront: StorefrontClient, token: str, pagination: dict | None
) -> dict:
    payload = await storefront.request(
        "GET", "/addresses", token, params=pagination_params(pagination)
    )
    return {
        "items": [_map_address(item) for item in payload.get("addresses", [])],
        "next_cursor": next_cursor(payload),
    }


async def get_address(storefront: StorefrontClient, token: str, address_id: str) -> dict:
    payload = await storefront.request("GET", f"/addresses/{address_id}", token)
    return {"address": _map_address(payload.get("address", {}))}


async def create_address(storefront: StorefrontClient, token: str, address: dict) -> dict:
    for field in ("address1", "city", "zip", "country_code"):
        if not address.get(field):
            raise InvalidArgumentError(f"{field} is required", operation="create_address")
    body = compact({field: address.get(field) for field in _ADDRESS_FIELDS})
    payload = await storefront.request("POST", "/addresses", token, json=body)
    return {"address": _map_address(payload.get("address", {}))}


async def update_address(
    storefront: StorefrontClient, token: str, address_id: str, patch: dict
) -> dict:
    body = compact({field: patch.get(field) for field in _ADDRESS_FIELDS})
    if not body:
        raise InvalidArgumentError("Nothing to update", operation="update_address")
    payload = await storefront.request(
        "PUT", f"/addresses/{address_id}", token, json=body
    )
    return {"address": _map_address(payload.get("address", {}))}


async def delete_address(storefront: StorefrontClient, token: str, address_id: str) -> dict:
    await storefront.request("DELETE", f"/addresses/{address_id}", token)
    return {"status": "deleted", "address_id": address_id}
