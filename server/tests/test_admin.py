import json

import httpx
import pytest

from recharge_mcp.admin import AdminLookupClient
from recharge_mcp.config import settings
from recharge_mcp.errors import (
    AmbiguousCustomerError,
    NotFoundError,
    RedirectError,
    UnauthorizedError,
    UpstreamError,
    UpstreamUnavailableError,
)

BASE_URL = "https://admin.example.com/recharge"


def _admin(handler, admin_token="admin-token"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AdminLookupClient(admin_token=admin_token, base_url=BASE_URL, client=client)


@pytest.mark.asyncio
async def test_find_customer_id_by_email():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        seen["token"] = request.headers.get("X-Recharge-Access-Token")
        return httpx.Response(200, json={"customers": [{"id": 42, "email": "a@x.com"}]})

    admin = _admin(handler)
    assert await admin.find_customer_id_by_email("a@x.com") == "42"
    assert seen["url"].path == "/recharge/customers"
    assert seen["url"].params["email"] == "a@x.com"
    assert seen["token"] == "admin-token"


@pytest.mark.asyncio
async def test_find_customer_accepts_singleton_payload():
    admin = _admin(lambda request: httpx.Response(200, json={"customer": {"id": 7}}))
    assert await admin.find_customer_id_by_email("a@x.com") == "7"


@pytest.mark.asyncio
async def test_find_customer_not_found():
    admin = _admin(lambda request: httpx.Response(200, json={"customers": []}))
    with pytest.raises(NotFoundError):
        await admin.find_customer_id_by_email("ghost@x.com")


@pytest.mark.asyncio
async def test_find_customer_ambiguous():
    payload = {"customers": [{"id": 1}, {"id": 2}]}
    admin = _admin(lambda request: httpx.Response(200, json=payload))
    with pytest.raises(AmbiguousCustomerError) as exc:
        await admin.find_customer_id_by_email("shared@x.com")
    assert exc.value.candidates == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [401, 403])
async def test_find_customer_unauthorized(status):
    admin = _admin(lambda request: httpx.Response(status, json={"error": "bad token"}))
    with pytest.raises(UnauthorizedError) as exc:
        await admin.find_customer_id_by_email("a@x.com")
    assert "bad token" in exc.value.message
    assert exc.value.operation == "find_customer_by_email"


@pytest.mark.asyncio
async def test_missing_admin_token_fails_without_request(monkeypatch):
    monkeypatch.setattr(settings, "recharge_admin_token", None)
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    admin = _admin(handler, admin_token=None)
    with pytest.raises(UnauthorizedError):
        await admin.create_session("42")
    assert calls == []


@pytest.mark.asyncio
async def test_create_session_returns_nested_token():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"customer_session": {"token": "st_new"}})

    admin = _admin(handler)
    token = await admin.create_session("42", return_url="https://shop/return")

    assert token == "st_new"
    assert seen["path"] == "/recharge/customer_portal/customer_sessions"
    assert seen["body"] == {"customer_id": 42, "return_url": "https://shop/return"}


@pytest.mark.asyncio
async def test_create_session_redirect_is_an_error():
    def handler(request):
        return httpx.Response(302, headers={"location": "https://login.example.com"})

    admin = _admin(handler)
    with pytest.raises(RedirectError) as exc:
        await admin.create_session("42")
    assert exc.value.location == "https://login.example.com"
    assert exc.value.customer_id == "42"
    assert isinstance(exc.value, UnauthorizedError)


@pytest.mark.asyncio
async def test_create_session_unknown_customer():
    admin = _admin(lambda request: httpx.Response(404, json={"errors": ["no customer"]}))
    with pytest.raises(NotFoundError):
        await admin.create_session("999")


@pytest.mark.asyncio
async def test_create_session_without_token_in_reply():
    admin = _admin(lambda request: httpx.Response(200, json={"customer_session": {}}))
    with pytest.raises(UpstreamError):
        await admin.create_session("42")


@pytest.mark.asyncio
async def test_timeout_maps_to_upstream_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    admin = _admin(handler)
    with pytest.raises(UpstreamUnavailableError) as exc:
        await admin.create_session("42")
    assert exc.value.customer_id == "42"
    assert exc.value.status == 503


@pytest.mark.asyncio
async def test_create_session_non_json_reply_is_upstream_error():
    admin = _admin(lambda request: httpx.Response(200, text="<html>login</html>"))
    with pytest.raises(UpstreamError) as exc:
        await admin.create_session("42")
    assert exc.value.customer_id == "42"
    assert exc.value.operation == "create_session"


@pytest.mark.asyncio
async def test_lookup_non_json_reply_is_upstream_error():
    admin = _admin(lambda request: httpx.Response(200, text="not json"))
    with pytest.raises(UpstreamError):
        await admin.find_customer_id_by_email("a@x.com")
