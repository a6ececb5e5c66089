import pytest

from recharge_mcp.config import Settings, normalize_store_domain


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("test-shop.myshopify.com", "test-shop.myshopify.com"),
        ("https://Test-Shop.myshopify.com/", "test-shop.myshopify.com"),
        ("http://www.test-shop.myshopify.com/tools/recurring", "test-shop.myshopify.com"),
        ("  test-shop.myshopify.com  ", "test-shop.myshopify.com"),
    ],
)
def test_normalize_store_domain(raw, expected):
    assert normalize_store_domain(raw) == expected


@pytest.mark.parametrize(
    "raw, fragment",
    [
        ("https://admin.shopify.com/store/test-shop", "admin URL"),
        ("shop.example.com", "custom domain"),
        ("bad_shop.myshopify.com", "Invalid Shopify domain format"),
    ],
)
def test_normalize_store_domain_rejects(raw, fragment):
    with pytest.raises(ValueError) as exc:
        normalize_store_domain(raw)
    assert fragment in str(exc.value)


def test_settings_derive_api_urls():
    settings = Settings(recharge_storefront_domain="https://test-shop.myshopify.com")

    assert settings.storefront_api_url == (
        "https://test-shop.myshopify.com/tools/recurring/portal"
    )
    assert settings.admin_api_url == (
        "https://test-shop.myshopify.com/admin/api/2021-01/recharge"
    )


def test_settings_api_url_override():
    settings = Settings(
        recharge_storefront_domain="test-shop.myshopify.com",
        recharge_admin_api_url="https://api.rechargeapps.com/",
    )
    assert settings.admin_api_url == "https://api.rechargeapps.com"


def test_settings_reject_buffer_longer_than_session():
    with pytest.raises(ValueError):
        Settings(
            recharge_storefront_domain="test-shop.myshopify.com",
            session_duration_seconds=300,
            session_refresh_buffer_seconds=600,
        )
