from dataclasses import dataclass


def normalize_email(email: str | None) -> str | None:
    if not email or not isinstance(email, str):
        return None
    return email.strip().lower() or None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class SessionHints:
    """Identity hints supplied with a single tool call."""

    explicit_token: str | None = None
    customer_id: str | None = None
    customer_email: str | None = None

    @classmethod
    def from_args(
        cls,
        session_token: str | None = None,
        customer_id: str | int | None = None,
        customer_email: str | None = None,
    ) -> "SessionHints":
        return cls(
            explicit_token=_clean(session_token),
            customer_id=_clean(customer_id),
            customer_email=normalize_email(customer_email),
        )

    @property
    def has_customer_identity(self) -> bool:
        return bool(self.customer_id or self.customer_email)

    @property
    def retry_eligible(self) -> bool:
        return self.has_customer_identity and not self.explicit_token


@dataclass
class ResolvedIdentity:
    token: str
    source: str
    customer_id: str | None = None
    email: str | None = None
