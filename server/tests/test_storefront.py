import httpx
import pytest

from recharge_mcp.errors import NotFoundError, RedirectError, UnauthorizedError, UpstreamError
from recharge_mcp.storefront import StorefrontClient

BASE_URL = "https://test-shop.myshopify.com/tools/recurring/portal"


def _storefront(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return StorefrontClient(base_url=BASE_URL, client=client)


@pytest.mark.asyncio
async def test_request_sends_customer_token():
    seen = {}

    def handler(request):
        seen["token"] = request.headers.get("X-Recharge-Access-Token")
        seen["path"] = request.url.path
        return httpx.Response(200, json={"customer": {"id": 1}})

    storefront = _storefront(handler)
    payload = await storefront.request("GET", "/customer", "st_abc")

    assert payload == {"customer": {"id": 1}}
    assert seen["token"] == "st_abc"
    assert seen["path"] == "/tools/recurring/portal/customer"


@pytest.mark.asyncio
async def test_401_is_unauthorized():
    storefront = _storefront(lambda request: httpx.Response(401, json={"message": "expired"}))
    with pytest.raises(UnauthorizedError) as exc:
        await storefront.request("GET", "/customer", "st_abc")
    assert exc.value.operation == "GET /customer"


@pytest.mark.asyncio
async def test_403_is_passed_through_not_unauthorized():
    storefront = _storefront(lambda request: httpx.Response(403, json={"error": "forbidden"}))
    with pytest.raises(UpstreamError) as exc:
        await storefront.request("GET", "/orders/1", "st_abc")
    assert exc.value.upstream_status == 403


@pytest.mark.asyncio
async def test_error_detail_from_errors_list():
    payload = {"errors": [{"message": "date must be in the future"}]}
    storefront = _storefront(lambda request: httpx.Response(422, json=payload))
    with pytest.raises(UpstreamError) as exc:
        await storefront.request("POST", "/subscriptions/1/skip", "st_abc", json={})
    assert "date must be in the future" in exc.value.message
    assert exc.value.upstream_status == 422


@pytest.mark.asyncio
async def test_404_is_not_found():
    storefront = _storefront(lambda request: httpx.Response(404, text="missing"))
    with pytest.raises(NotFoundError):
        await storefront.request("GET", "/addresses/9", "st_abc")


@pytest.mark.asyncio
async def test_redirect_is_not_followed():
    storefront = _storefront(
        lambda request: httpx.Response(301, headers={"location": "https://elsewhere"})
    )
    with pytest.raises(RedirectError):
        await storefront.request("GET", "/customer", "st_abc")


@pytest.mark.asyncio
async def test_no_content_returns_empty_payload():
    storefront = _storefront(lambda request: httpx.Response(204))
    assert await storefront.request("DELETE", "/addresses/9", "st_abc") == {}


@pytest.mark.asyncio
async def test_html_success_page_is_upstream_error():
    storefront = _storefront(
        lambda request: httpx.Response(
            200, text="<html>login</html>", headers={"content-type": "text/html"}
        )
    )
    with pytest.raises(UpstreamError) as exc:
        await storefront.request("GET", "/customer", "st_abc")
    assert exc.value.upstream_status == 200
    assert exc.value.operation == "GET /customer"
    assert "non-JSON" in exc.value.message


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [300, 304, 305])
async def test_any_3xx_is_redirect_error(status):
    storefront = _storefront(lambda request: httpx.Response(status))
    with pytest.raises(RedirectError):
        await storefront.request("GET", "/customer", "st_abc")
