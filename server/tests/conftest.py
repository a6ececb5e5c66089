import os


def _set_default(key: str, value: str) -> None:
    os.environ.setdefault(key, value)


_set_default("RECHARGE_STOREFRONT_DOMAIN", "test-shop.myshopify.com")
_set_default("RECHARGE_ADMIN_TOKEN", "admin-test-token")
_set_default("DISABLE_OTEL", "true")
