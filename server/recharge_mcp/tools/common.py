from typing import Any


def pagination_params(pagination: dict | None) -> dict:
    params: dict[str, Any] = {}
    if not pagination:
        return params
    page_size = pagination.get("page_size")
    if page_size:
        params["limit"] = page_size
    cursor = pagination.get("cursor")
    if cursor:
        params["cursor"] = cursor
    return params


def next_cursor(payload: dict) -> str | None:
    return payload.get("next_cursor") or None


def compact(values: dict) -> dict:
    return {key: value for key, value in values.items() if value is not None}
