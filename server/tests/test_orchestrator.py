import httpx
import pytest

from fakes import FakeAdmin
from recharge_mcp.context import SessionHints
from recharge_mcp.errors import (
    NotFoundError,
    SecurityError,
    UnauthorizedError,
    UpstreamError,
)
from recharge_mcp.orchestrator import Err, Ok, SessionOrchestrator
from recharge_mcp.resolver import IdentityResolver
from recharge_mcp.session_store import SessionStore
from recharge_mcp.storefront import StorefrontClient


class FakeCall:
    """Upstream call that fails with the queued errors, then succeeds."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.tokens: list[str] = []

    async def __call__(self, token):
        self.tokens.append(token)
        if self.errors:
            raise self.errors.pop(0)
        return {"ok": True, "token": token}


def _unauthorized():
    return UnauthorizedError("Recharge rejected the token: expired", operation="GET /customer")


@pytest.fixture
def store():
    return SessionStore()


def _orchestrator(store, admin, default_token=None):
    resolver = IdentityResolver(store, admin, default_token=default_token)
    return SessionOrchestrator(resolver, store, max_attempts=2)


@pytest.mark.asyncio
async def test_success_on_first_attempt(store):
    admin = FakeAdmin()
    orchestrator = _orchestrator(store, admin)
    call = FakeCall()

    outcome = await orchestrator.run(SessionHints(customer_id="42"), call)

    assert isinstance(outcome, Ok)
    assert outcome.attempts == 1
    assert outcome.value["token"] == "tok-42-1"


@pytest.mark.asyncio
async def test_stale_cached_token_is_replaced_after_401(store):
    store.set("42", "tok-stale")
    admin = FakeAdmin()
    orchestrator = _orchestrator(store, admin)
    call = FakeCall(_unauthorized())

    outcome = await orchestrator.run(SessionHints(customer_id="42"), call)

    assert isinstance(outcome, Ok)
    assert outcome.attempts == 2
    assert call.tokens == ["tok-stale", "tok-42-1"]
    assert admin.created == ["42"]
    assert store.get("42") == "tok-42-1"


@pytest.mark.asyncio
async def test_two_401s_stop_after_second_attempt(store):
    admin = FakeAdmin()
    orchestrator = _orchestrator(store, admin)
    call = FakeCall(_unauthorized(), _unauthorized(), _unauthorized())

    outcome = await orchestrator.run(SessionHints(customer_id="42"), call)

    assert isinstance(outcome, Err)
    assert isinstance(outcome.error, UnauthorizedError)
    assert outcome.attempts == 2
    assert len(admin.created) <= 2
    assert len(call.tokens) == 2
    assert outcome.error.customer_id == "42"


@pytest.mark.asyncio
async def test_email_retry_forgets_mapping_and_looks_up_again(store):
    admin = FakeAdmin({"a@x.com": "42"})
    orchestrator = _orchestrator(store, admin)
    call = FakeCall(_unauthorized())

    outcome = await orchestrator.run(SessionHints(customer_email="a@x.com"), call)

    assert isinstance(outcome, Ok)
    assert admin.lookups == ["a@x.com", "a@x.com"]
    assert admin.created == ["42", "42"]
    assert store.resolve_customer_id_by_email("a@x.com") == "42"


@pytest.mark.asyncio
async def test_default_token_request_is_not_retried(store):
    admin = FakeAdmin()
    orchestrator = _orchestrator(store, admin, default_token="st_default")
    call = FakeCall(_unauthorized())

    outcome = await orchestrator.run(SessionHints(), call)

    assert isinstance(outcome, Err)
    assert outcome.attempts == 1
    assert call.tokens == ["st_default"]


@pytest.mark.asyncio
async def test_explicit_token_request_is_not_retried(store):
    admin = FakeAdmin()
    orchestrator = _orchestrator(store, admin)
    call = FakeCall(_unauthorized())

    outcome = await orchestrator.run(
        SessionHints(explicit_token="st_mine", customer_id="42"), call
    )

    assert isinstance(outcome, Err)
    assert outcome.attempts == 1
    assert admin.created == []


@pytest.mark.asyncio
async def test_security_error_terminates_without_calling(store):
    store.set("42", "tok-42")
    orchestrator = _orchestrator(store, FakeAdmin(), default_token="st_default")
    call = FakeCall()

    outcome = await orchestrator.run(SessionHints(), call)

    assert isinstance(outcome, Err)
    assert isinstance(outcome.error, SecurityError)
    assert outcome.attempts == 0
    assert call.tokens == []


@pytest.mark.asyncio
async def test_lookup_failure_terminates_without_retry(store):
    admin = FakeAdmin()
    orchestrator = _orchestrator(store, admin)
    call = FakeCall()

    outcome = await orchestrator.run(SessionHints(customer_email="ghost@x.com"), call)

    assert isinstance(outcome, Err)
    assert isinstance(outcome.error, NotFoundError)
    assert admin.lookups == ["ghost@x.com"]
    assert call.tokens == []


@pytest.mark.asyncio
async def test_other_upstream_errors_are_surfaced_immediately(store):
    admin = FakeAdmin()
    orchestrator = _orchestrator(store, admin)
    call = FakeCall(UpstreamError("Recharge API error (500): boom", upstream_status=500))

    outcome = await orchestrator.run(SessionHints(customer_id="42"), call)

    assert isinstance(outcome, Err)
    assert outcome.error.upstream_status == 500
    assert outcome.attempts == 1
    assert store.get("42") == "tok-42-1"


@pytest.mark.asyncio
async def test_execute_unwraps_or_raises(store):
    orchestrator = _orchestrator(store, FakeAdmin())

    value = await orchestrator.execute(SessionHints(customer_id="42"), FakeCall())
    assert value["ok"] is True

    with pytest.raises(UnauthorizedError):
        await orchestrator.execute(
            SessionHints(customer_id="42"),
            FakeCall(_unauthorized(), _unauthorized()),
        )


@pytest.mark.asyncio
async def test_resolve_returns_token(store):
    orchestrator = _orchestrator(store, FakeAdmin(), default_token="st_default")

    assert await orchestrator.resolve(SessionHints()) == "st_default"


@pytest.mark.asyncio
async def test_non_json_success_page_becomes_err(store):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(
            lambda request: httpx.Response(200, text="<html>login</html>")
        )
    )
    storefront = StorefrontClient(base_url="https://shop.test/portal", client=client)
    orchestrator = _orchestrator(store, FakeAdmin())

    outcome = await orchestrator.run(
        SessionHints(customer_id="42"),
        lambda token: storefront.request("GET", "/customer", token),
    )

    assert isinstance(outcome, Err)
    assert isinstance(outcome.error, UpstreamError)
    assert outcome.error.customer_id == "42"
    assert outcome.attempts == 1


@pytest.mark.asyncio
async def test_late_401_keeps_session_minted_meanwhile(store):
    store.set("42", "tok-old")
    admin = FakeAdmin()
    orchestrator = _orchestrator(store, admin)
    tokens = []

    async def call(token):
        tokens.append(token)
        if token == "tok-old":
            store.set("42", "tok-fresh")
            raise _unauthorized()
        return {"ok": True}

    outcome = await orchestrator.run(SessionHints(customer_id="42"), call)

    assert isinstance(outcome, Ok)
    assert tokens == ["tok-old", "tok-fresh"]
    assert admin.created == []
    assert store.get("42") == "tok-fresh"
