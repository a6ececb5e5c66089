from ..context import SessionHints
from ..errors import InvalidArgumentError
from ..session_store import SessionStore


def cache_stats(store: SessionStore) -> dict:
    return {"sessions": store.stats()}


def clear_customer_session(store: SessionStore, hints: SessionHints) -> dict:
    if not hints.has_customer_identity:
        raise InvalidArgumentError(
            "customer_id or customer_email is required",
            operation="clear_customer_session",
        )
    customer_id = hints.customer_id or store.resolve_customer_id_by_email(
        hints.customer_email
    )
    if not customer_id:
        return {"status": "not_cached"}
    store.clear(customer_id)
    return {"status": "cleared", "customer_id": customer_id}


def purge_expired_sessions(store: SessionStore) -> dict:
    removed = store.sweep_expired()
    return {"removed": removed, "sessions": store.stats()}
