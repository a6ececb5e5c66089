from ..admin import AdminLookupClient
from ..errors import InvalidArgumentError
from ..logging import token_fingerprint
from ..session_store import SessionStore
from ..storefront import StorefrontClient
from .common import compact

_UPDATABLE_FIELDS = ("email", "first_name", "last_name", "phone")


def _map_customer(customer: dict | None) -> dict | None:
    if not customer:
        return None
    return {
        "id": customer.get("id"),
        "email": customer.get("email"),
        "first_name": customer.get("first_name"),
        "last_name": customer.get("last_name"),
        "phone": customer.get("phone"),
        "subscriptions_active_count": customer.get("subscriptions_active_count"),
        "created_at": customer.get("created_at"),
        "updated_at": customer.get("updated_at"),
    }


async def get_customer(storefront: StorefrontClient, token: str) -> dict:
    payload = await storefront.request("GET", "/customer", token)
    return {"customer": _map_customer(payload.get("customer"))}


async def update_customer(
    storefront: StorefrontClient, token: str, updates: dict
) -> dict:
    body = compact({field: updates.get(field) for field in _UPDATABLE_FIELDS})
    if not body:
        raise InvalidArgumentError(
            "At least one of email, first_name, last_name, phone is required",
            operation="update_customer",
        )
    payload = await storefront.request("PUT", "/customer", token, json=body)
    return {"customer": _map_customer(payload.get("customer"))}


async def get_customer_by_email(admin: AdminLookupClient, email: str) -> dict:
    customer = await admin.lookup_customer(email)
    return {"customer": _map_customer(customer)}


async def create_session_by_id(
    admin: AdminLookupClient,
    store: SessionStore,
    customer_id: str,
    return_url: str | None,
) -> dict:
    token = await admin.create_session(customer_id, return_url)
    store.set(customer_id, token)
    return {
        "customer_id": customer_id,
        "token_fingerprint": token_fingerprint(token),
        "cached": True,
    }
