import time
from dataclasses import dataclass

import structlog

from .context import normalize_email
from .errors import InvalidArgumentError
from .logging import token_fingerprint

logger = structlog.get_logger(__name__)

SESSION_DURATION_SECONDS = 3600
REFRESH_BUFFER_SECONDS = 300


@dataclass
class SessionEntry:
    customer_id: str
    token: str
    email: str | None
    created_at: float
    expires_at: float

    def __repr__(self) -> str:
        return (
            f"SessionEntry(customer_id={self.customer_id!r}, "
            f"token_fingerprint={token_fingerprint(self.token)!r}, "
            f"email={self.email!r}, expires_at={self.expires_at!r})"
        )


class SessionStore:
    """In-memory customer session cache with an email -> customer id index.

    An entry counts as expired once ``now`` passes ``expires_at`` minus the
    refresh buffer, so tokens are replaced before the upstream rejects them.
    All methods are synchronous and never suspend.
    """

    def __init__(
        self,
        session_duration: int = SESSION_DURATION_SECONDS,
        refresh_buffer: int = REFRESH_BUFFER_SECONDS,
    ) -> None:
        if refresh_buffer >= session_duration:
            raise ValueError("refresh_buffer must be shorter than session_duration")
        self._session_duration = session_duration
        self._refresh_buffer = refresh_buffer
        self._sessions: dict[str, SessionEntry] = {}
        self._email_index: dict[str, str] = {}

    def now(self) -> float:
        return time.time()

    def _is_valid(self, entry: SessionEntry, now: float) -> bool:
        return now < entry.expires_at - self._refresh_buffer

    def get(self, customer_id: str) -> str | None:
        entry = self._sessions.get(customer_id)
        if not entry:
            return None
        if not self._is_valid(entry, self.now()):
            # email mappings stay; the customer id behind them is still right
            del self._sessions[customer_id]
            logger.debug("session_expired", customer_id=customer_id)
            return None
        return entry.token

    def set(self, customer_id: str, token: str, email: str | None = None) -> None:
        if not customer_id or not isinstance(customer_id, str):
            raise InvalidArgumentError(
                "Customer ID is required and must be a string",
                operation="session_store.set",
            )
        if not token or not isinstance(token, str):
            raise InvalidArgumentError(
                "Session token is required and must be a string",
                customer_id=customer_id,
                operation="session_store.set",
            )
        previous = self._sessions.get(customer_id)
        email = normalize_email(email)
        created_at = self.now()
        self._sessions[customer_id] = SessionEntry(
            customer_id=customer_id,
            token=token,
            email=email,
            created_at=created_at,
            expires_at=created_at + self._session_duration,
        )
        if email:
            self._email_index[email] = customer_id
        logger.debug(
            "session_cached",
            customer_id=customer_id,
            token_fingerprint=token_fingerprint(token),
            replaced=previous is not None,
        )

    def resolve_customer_id_by_email(self, email: str | None) -> str | None:
        email = normalize_email(email)
        if not email:
            return None
        return self._email_index.get(email)

    def remember_email(self, email: str, customer_id: str) -> None:
        email = normalize_email(email)
        if not email or not customer_id or not isinstance(customer_id, str):
            raise InvalidArgumentError(
                "Both email and customer ID are required and must be strings",
                operation="session_store.remember_email",
            )
        self._email_index[email] = customer_id

    def forget_email(self, email: str | None) -> None:
        email = normalize_email(email)
        if email and self._email_index.pop(email, None) is not None:
            logger.debug("email_mapping_forgotten")

    def clear(self, customer_id: str) -> None:
        if not customer_id or not isinstance(customer_id, str):
            return
        self._remove(customer_id)
        logger.debug("session_cleared", customer_id=customer_id)

    def discard(self, customer_id: str, token: str) -> bool:
        """Clear the session only if it still holds `token`.

        A rejected token that has already been replaced by a newer session
        leaves the newer one in place.
        """
        entry = self._sessions.get(customer_id)
        if entry is not None and entry.token != token:
            logger.debug("session_already_replaced", customer_id=customer_id)
            return False
        self.clear(customer_id)
        return True

    def clear_all(self) -> None:
        self._sessions.clear()
        self._email_index.clear()

    def has_valid_session(self, customer_id: str) -> bool:
        entry = self._sessions.get(customer_id)
        return bool(entry) and self._is_valid(entry, self.now())

    def has_any_customer_sessions(self) -> bool:
        return bool(self._sessions)

    def sweep_expired(self) -> int:
        now = self.now()
        expired = [
            customer_id
            for customer_id, entry in self._sessions.items()
            if not self._is_valid(entry, now)
        ]
        for customer_id in expired:
            self._remove(customer_id)
        orphaned = [
            email
            for email, customer_id in self._email_index.items()
            if customer_id not in self._sessions
        ]
        for email in orphaned:
            del self._email_index[email]
        if expired or orphaned:
            logger.info(
                "sessions_swept", removed=len(expired), mappings_removed=len(orphaned)
            )
        return len(expired)

    def stats(self) -> dict:
        now = self.now()
        valid = sum(1 for entry in self._sessions.values() if self._is_valid(entry, now))
        return {
            "total": len(self._sessions),
            "valid": valid,
            "expired": len(self._sessions) - valid,
            "email_mappings": len(self._email_index),
        }

    def _remove(self, customer_id: str) -> None:
        self._sessions.pop(customer_id, None)
        stale = [
            email
            for email, mapped_id in self._email_index.items()
            if mapped_id == customer_id
        ]
        for email in stale:
            del self._email_index[email]
