import re

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_SHOP_DOMAIN = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]\.myshopify\.com$")


def normalize_store_domain(store_url: str) -> str:
    """Reduce a store URL to its bare ``<shop>.myshopify.com`` domain."""
    domain = store_url.strip().lower()
    domain = re.sub(r"^https?://", "", domain)
    domain = re.sub(r"^www\.", "", domain)
    domain = domain.split("/", 1)[0]

    if "admin.shopify.com" in domain:
        raise ValueError(
            f"Invalid store URL: {store_url}. You provided an admin URL; use the "
            "store's myshopify.com domain instead (e.g. your-shop.myshopify.com)"
        )
    if not domain.endswith(".myshopify.com"):
        raise ValueError(
            f"Invalid store URL: {store_url}. Expected a Shopify domain ending "
            "with .myshopify.com, not a custom domain"
        )
    if not _SHOP_DOMAIN.match(domain):
        raise ValueError(
            f"Invalid Shopify domain format: {domain}. Expected "
            "your-shop.myshopify.com (letters, numbers, and hyphens only)"
        )
    return domain


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, case_sensitive=False)

    environment: str = "dev"

    recharge_storefront_domain: str
    recharge_session_token: str | None = None
    recharge_admin_token: str | None = None
    recharge_admin_api_url: str | None = None
    recharge_storefront_api_url: str | None = None

    session_duration_seconds: int = 3600
    session_refresh_buffer_seconds: int = 300
    session_sweep_interval_seconds: int = 300
    session_max_attempts: int = 2
    dedupe_session_creation: bool = True

    http_timeout_seconds: float = 30.0

    mcp_server_name: str = "recharge-mcp"
    mcp_transport: str = "stdio"
    http_host: str = "0.0.0.0"
    http_port: int = 8080

    log_level: str = "INFO"
    disable_otel: bool = True
    otel_exporter_otlp_endpoint: str | None = None
    datadog_api_key: str | None = None

    @field_validator("recharge_storefront_domain")
    @classmethod
    def validate_domain(cls, value: str) -> str:
        return normalize_store_domain(value)

    @model_validator(mode="after")
    def validate_session_timing(self) -> "Settings":
        if self.session_refresh_buffer_seconds >= self.session_duration_seconds:
            raise ValueError(
                "SESSION_REFRESH_BUFFER_SECONDS must be shorter than "
                "SESSION_DURATION_SECONDS"
            )
        if self.session_max_attempts < 1:
            raise ValueError("SESSION_MAX_ATTEMPTS must be at least 1")
        if self.mcp_transport.lower() not in ("stdio", "http"):
            raise ValueError("MCP_TRANSPORT must be 'stdio' or 'http'")
        if not self.disable_otel and not self.otel_exporter_otlp_endpoint:
            raise ValueError(
                "OTEL_EXPORTER_OTLP_ENDPOINT is required when DISABLE_OTEL=false"
            )
        return self

    @property
    def admin_api_url(self) -> str:
        if self.recharge_admin_api_url:
            return self.recharge_admin_api_url.rstrip("/")
        return f"https://{self.recharge_storefront_domain}/admin/api/2021-01/recharge"

    @property
    def storefront_api_url(self) -> str:
        if self.recharge_storefront_api_url:
            return self.recharge_storefront_api_url.rstrip("/")
        return f"https://{self.recharge_storefront_domain}/tools/recurring/portal"


settings = Settings()
