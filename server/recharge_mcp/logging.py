import hashlib
import logging
import sys
from typing import Any, Dict

import structlog

_SECRET_MARKERS = ("token", "secret", "password", "api_key")


def token_fingerprint(token: str | None) -> str | None:
    """Short stable digest of a token, safe to log."""
    if not token:
        return None
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


def _add_app_context(_: Any, __: Any, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("service", "recharge-mcp")
    return event_dict


def redact_secrets(_: Any, __: Any, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in event_dict.items():
        if value and any(marker in key.lower() for marker in _SECRET_MARKERS):
            if not key.endswith("_fingerprint"):
                event_dict[key] = "***"
    return event_dict


def configure_logging(level: str = "INFO") -> None:
    timestamper = structlog.processors.TimeStamper(fmt="iso")
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            timestamper,
            _add_app_context,
            redact_secrets,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdout carries the MCP stdio transport
    handler = logging.StreamHandler(sys.stderr)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
