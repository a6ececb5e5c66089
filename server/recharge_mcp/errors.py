from dataclasses import dataclass


@dataclass(eq=False)
class MCPError(Exception):
    code: str
    message: str
    status: int = 400
    customer_id: str | None = None
    operation: str | None = None
    correlation_id: str | None = None

    def __str__(self) -> str:
        return self.message


class InvalidArgumentError(MCPError):
    def __init__(self, message: str, **context) -> None:
        super().__init__("VALIDATION_ERROR", message, status=400, **context)


class NotFoundError(MCPError):
    def __init__(self, message: str, **context) -> None:
        super().__init__("NOT_FOUND", message, status=404, **context)


class UnauthorizedError(MCPError):
    def __init__(self, message: str, code: str = "AUTH_REQUIRED", **context) -> None:
        super().__init__(code, message, status=401, **context)


class RedirectError(UnauthorizedError):
    """A 30x from the upstream API, which means bad credentials or store URL."""

    def __init__(self, message: str, location: str | None = None, **context) -> None:
        super().__init__(message, code="REDIRECT_ERROR", **context)
        self.location = location


class AmbiguousCustomerError(MCPError):
    def __init__(self, message: str, candidates: int = 0, **context) -> None:
        super().__init__("AMBIGUOUS_CUSTOMER", message, status=409, **context)
        self.candidates = candidates


class SecurityError(MCPError):
    def __init__(self, message: str, **context) -> None:
        super().__init__("SECURITY_ERROR", message, status=403, **context)


class UpstreamUnavailableError(MCPError):
    def __init__(self, message: str, **context) -> None:
        super().__init__("UPSTREAM_UNAVAILABLE", message, status=503, **context)


class UpstreamError(MCPError):
    def __init__(
        self, message: str, upstream_status: int | None = None, **context
    ) -> None:
        super().__init__("UPSTREAM_ERROR", message, status=502, **context)
        self.upstream_status = upstream_status


def as_error_payload(err: MCPError) -> dict:
    payload = {
        "error": {
            "code": err.code,
            "message": err.message,
        }
    }
    if err.customer_id:
        payload["error"]["customer_id"] = err.customer_id
    if err.operation:
        payload["error"]["operation"] = err.operation
    if err.correlation_id:
        payload["error"]["correlation_id"] = err.correlation_id
    return payload
