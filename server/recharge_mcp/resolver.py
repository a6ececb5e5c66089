import asyncio
from typing import Protocol

import structlog

from .context import ResolvedIdentity, SessionHints
from .errors import InvalidArgumentError, NotFoundError, SecurityError
from .logging import token_fingerprint
from .session_store import SessionStore

logger = structlog.get_logger(__name__)


class AdminLookup(Protocol):
    async def find_customer_id_by_email(self, email: str) -> str: ...

    async def create_session(
        self, customer_id: str, return_url: str | None = None
    ) -> str: ...


class IdentityResolver:
    """Turns per-request identity hints into a token.

    Precedence, first match wins:

    1. an explicit session token is used as-is;
    2. a customer id or email resolves to a cached or freshly created
       customer session;
    3. with no customer sessions in the store, the default token is used;
    4. otherwise the request is refused with ``SecurityError``, since the
       default token could expose another customer's context.
    """

    def __init__(
        self,
        store: SessionStore,
        admin: AdminLookup,
        default_token: str | None = None,
        dedupe_creation: bool = True,
    ) -> None:
        self._store = store
        self._admin = admin
        self._default_token = default_token
        self._dedupe_creation = dedupe_creation
        self._inflight: dict[str, asyncio.Future] = {}

    async def resolve(self, hints: SessionHints) -> ResolvedIdentity:
        if hints.explicit_token:
            logger.debug("identity_explicit_token")
            return ResolvedIdentity(token=hints.explicit_token, source="explicit")

        if hints.has_customer_identity:
            return await self._resolve_customer(hints)

        if self._store.has_any_customer_sessions():
            logger.warning("identity_default_refused", **self._store.stats())
            raise SecurityError(
                "Security Error: Cannot use default session token when "
                "customer-specific sessions exist. Please specify 'customer_id', "
                "'customer_email', or 'session_token' to ensure correct customer "
                "data access.",
                operation="resolve_identity",
            )
        if self._default_token:
            logger.debug("identity_default_token")
            return ResolvedIdentity(token=self._default_token, source="default")
        raise InvalidArgumentError(
            "No session token available. Please provide customer_id, "
            "customer_email, or session_token, or set RECHARGE_SESSION_TOKEN.",
            operation="resolve_identity",
        )

    async def _resolve_customer(self, hints: SessionHints) -> ResolvedIdentity:
        if hints.customer_id:
            return await self._session_for(hints.customer_id, None)

        email = hints.customer_email
        customer_id = self._store.resolve_customer_id_by_email(email)
        if customer_id:
            try:
                return await self._session_for(customer_id, email)
            except NotFoundError:
                logger.info("email_mapping_stale", customer_id=customer_id)
                self._store.forget_email(email)

        logger.debug("identity_email_lookup")
        customer_id = await self._admin.find_customer_id_by_email(email)
        self._store.remember_email(email, customer_id)
        return await self._session_for(customer_id, email)

    async def _session_for(
        self, customer_id: str, email: str | None
    ) -> ResolvedIdentity:
        cached = self._store.get(customer_id)
        if cached:
            logger.debug("identity_cache_hit", customer_id=customer_id)
            return ResolvedIdentity(
                token=cached, source="cached", customer_id=customer_id, email=email
            )

        token = await self._create_session(customer_id, email)
        return ResolvedIdentity(
            token=token, source="created", customer_id=customer_id, email=email
        )

    async def _create_session(self, customer_id: str, email: str | None) -> str:
        if not self._dedupe_creation:
            return await self._mint(customer_id, email)

        pending = self._inflight.get(customer_id)
        if pending is None:
            pending = asyncio.ensure_future(self._mint(customer_id, email))
            self._inflight[customer_id] = pending
            pending.add_done_callback(
                lambda done: self._forget_inflight(customer_id, done)
            )
        else:
            logger.debug("session_creation_joined", customer_id=customer_id)
        # shield so one cancelled caller does not cancel the shared creation
        return await asyncio.shield(pending)

    def _forget_inflight(self, customer_id: str, done: asyncio.Future) -> None:
        if self._inflight.get(customer_id) is done:
            del self._inflight[customer_id]

    async def _mint(self, customer_id: str, email: str | None) -> str:
        logger.info("session_creating", customer_id=customer_id)
        token = await self._admin.create_session(customer_id)
        self._store.set(customer_id, token, email)
        logger.debug(
            "session_created",
            customer_id=customer_id,
            token_fingerprint=token_fingerprint(token),
        )
        return token
