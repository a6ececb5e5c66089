import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .admin import AdminLookupClient
from .config import settings
from .context import SessionHints
from .errors import MCPError, as_error_payload
from .logging import configure_logging
from .orchestrator import SessionOrchestrator
from .resolver import IdentityResolver
from .session_store import SessionStore
from .storefront import StorefrontClient
from .sweeper import SessionSweeper
from .telemetry import configure_telemetry, instrument_fastapi
from .tools import (
    addresses,
    customers,
    discounts,
    onetimes,
    orders,
    payments,
    products,
    sessions,
    subscriptions,
)

try:
    from mcp.server import FastMCP
except ImportError as exc:  # pragma: no cover - runtime guard
    raise RuntimeError(
        "MCP SDK not installed. Install the official MCP Python SDK."
    ) from exc


configure_logging(settings.log_level)
if not settings.disable_otel:
    configure_telemetry(settings)

store = SessionStore(
    session_duration=settings.session_duration_seconds,
    refresh_buffer=settings.session_refresh_buffer_seconds,
)
admin = AdminLookupClient()
storefront = StorefrontClient()
resolver = IdentityResolver(
    store,
    admin,
    default_token=settings.recharge_session_token,
    dedupe_creation=settings.dedupe_session_creation,
)
orchestrator = SessionOrchestrator(
    resolver, store, max_attempts=settings.session_max_attempts
)
sweeper = SessionSweeper(store, settings.session_sweep_interval_seconds)

server = FastMCP(
    name=settings.mcp_server_name,
    streamable_http_path="/",
    json_response=True,
    stateless_http=True,
)
mcp_app = server.streamable_http_app()


async def _as_customer(
    session_token: str | None,
    customer_id: str | None,
    customer_email: str | None,
    call: Callable[[str], Awaitable[dict]],
) -> dict[str, Any]:
    hints = SessionHints.from_args(session_token, customer_id, customer_email)
    return await orchestrator.execute(hints, call)


@server.tool("system_health")
async def system_health() -> dict[str, Any]:
    return {"status": "ok", "sessions": store.stats()}


@server.tool("get_customer")
async def get_customer(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: customers.get_customer(storefront, token),
    )


@server.tool("update_customer")
async def update_customer(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    email: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
) -> dict[str, Any]:
    updates = {
        "email": email,
        "first_name": first_name,
        "last_name": last_name,
        "phone": phone,
    }
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: customers.update_customer(storefront, token, updates),
    )


@server.tool("get_customer_by_email")
async def get_customer_by_email(email: str) -> dict[str, Any]:
    return await customers.get_customer_by_email(admin, email)


@server.tool("create_customer_session_by_id")
async def create_customer_session_by_id(
    customer_id: str, return_url: str | None = None
) -> dict[str, Any]:
    return await customers.create_session_by_id(admin, store, customer_id, return_url)


@server.tool("get_subscriptions")
async def get_subscriptions(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    status: str | None = None,
    pagination: dict | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.list_subscriptions(
            storefront, token, status, pagination
        ),
    )


@server.tool("get_subscription")
async def get_subscription(
    subscription_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.get_subscription(storefront, token, subscription_id),
    )


@server.tool("create_subscription")
async def create_subscription(
    address_id: str,
    external_variant_id: str,
    next_charge_scheduled_at: str,
    order_interval_unit: str,
    order_interval_frequency: int,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    quantity: int = 1,
    charge_interval_frequency: int | None = None,
) -> dict[str, Any]:
    params = {
        "address_id": address_id,
        "external_variant_id": external_variant_id,
        "next_charge_scheduled_at": next_charge_scheduled_at,
        "order_interval_unit": order_interval_unit,
        "order_interval_frequency": order_interval_frequency,
        "charge_interval_frequency": charge_interval_frequency
        or order_interval_frequency,
        "quantity": quantity,
    }
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.create_subscription(storefront, token, params),
    )


@server.tool("update_subscription")
async def update_subscription(
    subscription_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    quantity: int | None = None,
    order_interval_unit: str | None = None,
    order_interval_frequency: int | None = None,
    charge_interval_frequency: int | None = None,
) -> dict[str, Any]:
    patch = {
        "quantity": quantity,
        "order_interval_unit": order_interval_unit,
        "order_interval_frequency": order_interval_frequency,
        "charge_interval_frequency": charge_interval_frequency,
    }
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.update_subscription(
            storefront, token, subscription_id, patch
        ),
    )


@server.tool("skip_subscription")
async def skip_subscription(
    subscription_id: str,
    date: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.skip_subscription(
            storefront, token, subscription_id, date
        ),
    )


@server.tool("unskip_subscription")
async def unskip_subscription(
    subscription_id: str,
    date: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.unskip_subscription(
            storefront, token, subscription_id, date
        ),
    )


@server.tool("swap_subscription")
async def swap_subscription(
    subscription_id: str,
    external_variant_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    quantity: int | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.swap_subscription(
            storefront, token, subscription_id, external_variant_id, quantity
        ),
    )


@server.tool("cancel_subscription")
async def cancel_subscription(
    subscription_id: str,
    cancellation_reason: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    cancellation_reason_comments: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.cancel_subscription(
            storefront,
            token,
            subscription_id,
            cancellation_reason,
            cancellation_reason_comments,
        ),
    )


@server.tool("activate_subscription")
async def activate_subscription(
    subscription_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.activate_subscription(
            storefront, token, subscription_id
        ),
    )


@server.tool("set_next_charge_date")
async def set_next_charge_date(
    subscription_id: str,
    date: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: subscriptions.set_next_charge_date(
            storefront, token, subscription_id, date
        ),
    )


@server.tool("get_addresses")
async def get_addresses(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    pagination: dict | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: addresses.list_addresses(storefront, token, pagination),
    )


@server.tool("get_address")
async def get_address(
    address_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: addresses.get_address(storefront, token, address_id),
    )


@server.tool("create_address")
async def create_address(
    address: dict,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: addresses.create_address(storefront, token, address),
    )


@server.tool("update_address")
async def update_address(
    address_id: str,
    patch: dict,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: addresses.update_address(storefront, token, address_id, patch),
    )


@server.tool("delete_address")
async def delete_address(
    address_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: addresses.delete_address(storefront, token, address_id),
    )


@server.tool("get_orders")
async def get_orders(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    status: str | None = None,
    pagination: dict | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: orders.list_orders(storefront, token, status, pagination),
    )


@server.tool("get_order")
async def get_order(
    order_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: orders.get_order(storefront, token, order_id),
    )


@server.tool("get_charges")
async def get_charges(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    status: str | None = None,
    pagination: dict | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: orders.list_charges(storefront, token, status, pagination),
    )


@server.tool("get_charge")
async def get_charge(
    charge_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: orders.get_charge(storefront, token, charge_id),
    )


@server.tool("get_products")
async def get_products(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    pagination: dict | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: products.list_products(storefront, token, pagination),
    )


@server.tool("get_product")
async def get_product(
    product_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: products.get_product(storefront, token, product_id),
    )


@server.tool("get_onetimes")
async def get_onetimes(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    pagination: dict | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: onetimes.list_onetimes(storefront, token, pagination),
    )


@server.tool("get_onetime")
async def get_onetime(
    onetime_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: onetimes.get_onetime(storefront, token, onetime_id),
    )


@server.tool("create_onetime")
async def create_onetime(
    address_id: str,
    external_variant_id: str,
    next_charge_scheduled_at: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    quantity: int = 1,
) -> dict[str, Any]:
    params = {
        "address_id": address_id,
        "external_variant_id": external_variant_id,
        "next_charge_scheduled_at": next_charge_scheduled_at,
        "quantity": quantity,
    }
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: onetimes.create_onetime(storefront, token, params),
    )


@server.tool("update_onetime")
async def update_onetime(
    onetime_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    next_charge_scheduled_at: str | None = None,
    quantity: int | None = None,
) -> dict[str, Any]:
    patch = {"next_charge_scheduled_at": next_charge_scheduled_at, "quantity": quantity}
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: onetimes.update_onetime(storefront, token, onetime_id, patch),
    )


@server.tool("delete_onetime")
async def delete_onetime(
    onetime_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: onetimes.delete_onetime(storefront, token, onetime_id),
    )


@server.tool("get_discounts")
async def get_discounts(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    pagination: dict | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: discounts.list_discounts(storefront, token, pagination),
    )


@server.tool("get_discount")
async def get_discount(
    discount_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: discounts.get_discount(storefront, token, discount_id),
    )


@server.tool("apply_discount")
async def apply_discount(
    discount_code: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: discounts.apply_discount(storefront, token, discount_code),
    )


@server.tool("remove_discount")
async def remove_discount(
    discount_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: discounts.remove_discount(storefront, token, discount_id),
    )


@server.tool("get_payment_methods")
async def get_payment_methods(
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    pagination: dict | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: payments.list_payment_methods(storefront, token, pagination),
    )


@server.tool("get_payment_method")
async def get_payment_method(
    payment_method_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: payments.get_payment_method(storefront, token, payment_method_id),
    )


@server.tool("update_payment_method")
async def update_payment_method(
    payment_method_id: str,
    session_token: str | None = None,
    customer_id: str | None = None,
    customer_email: str | None = None,
    billing_address: dict | None = None,
    default: bool | None = None,
) -> dict[str, Any]:
    return await _as_customer(
        session_token,
        customer_id,
        customer_email,
        lambda token: payments.update_payment_method(
            storefront, token, payment_method_id, billing_address, default
        ),
    )


@server.tool("session_cache_stats")
async def session_cache_stats() -> dict[str, Any]:
    return sessions.cache_stats(store)


@server.tool("clear_customer_session")
async def clear_customer_session(
    customer_id: str | None = None, customer_email: str | None = None
) -> dict[str, Any]:
    hints = SessionHints.from_args(None, customer_id, customer_email)
    return sessions.clear_customer_session(store, hints)


@server.tool("purge_expired_sessions")
async def purge_expired_sessions() -> dict[str, Any]:
    return sessions.purge_expired_sessions(store)


async def _close_clients() -> None:
    await admin.close()
    await storefront.close()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    sweeper.start()
    try:
        async with server.session_manager.run():
            yield
    finally:
        await sweeper.stop()
        await _close_clients()


app = FastAPI(lifespan=lifespan)


@app.exception_handler(MCPError)
async def handle_mcp_error(_, exc: MCPError):
    return JSONResponse(status_code=exc.status, content=as_error_payload(exc))


app.mount("/mcp", mcp_app)
if not settings.disable_otel:
    instrument_fastapi(app)


async def _serve_stdio() -> None:
    sweeper.start()
    try:
        await server.run_stdio_async()
    finally:
        await sweeper.stop()
        await _close_clients()


def main() -> None:
    if settings.mcp_transport.lower() == "http":
        import uvicorn

        uvicorn.run(app, host=settings.http_host, port=settings.http_port)
    else:
        asyncio.run(_serve_stdio())
