from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

from .context import ResolvedIdentity, SessionHints
from .errors import MCPError, UnauthorizedError
from .resolver import IdentityResolver
from .session_store import SessionStore
from .telemetry import get_tracer

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2


class CallState(str, Enum):
    RESOLVING = "resolving"
    CALLING = "calling"
    INVALIDATING = "invalidating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Ok(Generic[T]):
    value: T
    attempts: int


@dataclass
class Err:
    error: MCPError
    attempts: int


Outcome = Ok | Err


class SessionOrchestrator:
    """Resolves the caller's identity, runs the upstream call and self-heals
    the session cache when the upstream rejects a cached token.

    A 401 on a request that named a customer (and did not bring its own
    token) clears that customer's cached session and resolves again, which
    forces a fresh admin session. At most ``max_attempts`` upstream calls
    are made per request.
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        store: SessionStore,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self._resolver = resolver
        self._store = store
        self._max_attempts = max_attempts

    async def resolve(self, hints: SessionHints) -> str:
        identity = await self._resolver.resolve(hints)
        return identity.token

    async def run(
        self, hints: SessionHints, call: Callable[[str], Awaitable[T]]
    ) -> Outcome:
        state = CallState.RESOLVING
        attempts = 0
        identity: ResolvedIdentity | None = None
        error: MCPError | None = None

        while True:
            if state is CallState.RESOLVING:
                try:
                    identity = await self._resolver.resolve(hints)
                except MCPError as exc:
                    error = exc
                    state = CallState.FAILED
                else:
                    state = CallState.CALLING

            elif state is CallState.CALLING:
                attempts += 1
                with tracer.start_as_current_span(
                    "recharge.session_call",
                    attributes={
                        "recharge.attempt": attempts,
                        "recharge.identity_source": identity.source,
                    },
                ) as span:
                    try:
                        value = await call(identity.token)
                    except UnauthorizedError as exc:
                        error = exc
                        if self._can_retry(hints, identity, attempts):
                            state = CallState.INVALIDATING
                        else:
                            state = CallState.FAILED
                    except MCPError as exc:
                        error = exc
                        state = CallState.FAILED
                    else:
                        state = CallState.DONE
                    if state is not CallState.DONE:
                        span.set_attribute("recharge.error_code", error.code)

            elif state is CallState.INVALIDATING:
                logger.info(
                    "session_rejected_retrying",
                    customer_id=identity.customer_id,
                    attempt=attempts,
                    source=identity.source,
                )
                self.invalidate(identity)
                state = CallState.RESOLVING

            elif state is CallState.DONE:
                return Ok(value=value, attempts=attempts)

            else:
                self._attach_context(error, hints, identity)
                logger.info(
                    "session_call_failed",
                    code=error.code,
                    customer_id=error.customer_id,
                    operation=error.operation,
                    attempts=attempts,
                )
                return Err(error=error, attempts=attempts)

    async def execute(
        self, hints: SessionHints, call: Callable[[str], Awaitable[Any]]
    ) -> Any:
        outcome = await self.run(hints, call)
        if isinstance(outcome, Err):
            raise outcome.error
        return outcome.value

    def invalidate(self, identity: ResolvedIdentity) -> None:
        if identity.customer_id:
            self._store.discard(identity.customer_id, identity.token)

    def _can_retry(
        self, hints: SessionHints, identity: ResolvedIdentity, attempts: int
    ) -> bool:
        return (
            hints.retry_eligible
            and identity.customer_id is not None
            and attempts < self._max_attempts
        )

    @staticmethod
    def _attach_context(
        error: MCPError, hints: SessionHints, identity: ResolvedIdentity | None
    ) -> None:
        if error.customer_id:
            return
        if identity and identity.customer_id:
            error.customer_id = identity.customer_id
        elif hints.customer_id:
            error.customer_id = hints.customer_id
