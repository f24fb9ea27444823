from decimal import Decimal

import pytest
from django.test import override_settings

from django_reunion.settings import get_config


def test_get_config_defaults() -> None:
    with override_settings(DJANGO_REUNION={}):
        config = get_config()

    assert config.fees.percent == Decimal("0.029")
    assert config.fees.fixed_cents == 30
    assert config.apparel.adult_price_cents == 2500
    assert config.apparel.youth_price_cents == 1500
    assert config.order_reference_prefix == "REU"
    assert config.stripe.secret_key is None


def test_get_config_rejects_non_mapping_root() -> None:
    with override_settings(DJANGO_REUNION=["bad"]):
        with pytest.raises(TypeError, match="must be a mapping"):
            get_config()


def test_get_config_rejects_non_mapping_nested_sections() -> None:
    with override_settings(DJANGO_REUNION={"stripe": ["bad"]}):
        with pytest.raises(TypeError, match=r"DJANGO_REUNION\['stripe'\] must be a mapping"):
            get_config()

    with override_settings(DJANGO_REUNION={"apparel": "bad"}):
        with pytest.raises(TypeError, match=r"DJANGO_REUNION\['apparel'\] must be a mapping"):
            get_config()


def test_get_config_coerces_fee_percent_to_decimal() -> None:
    with override_settings(DJANGO_REUNION={"fees": {"percent": 0.035, "fixed_cents": 0}}):
        config = get_config()

    assert config.fees.percent == Decimal("0.035")
    assert config.fees.fixed_cents == 0


def test_get_config_validates_primitive_values() -> None:
    with override_settings(DJANGO_REUNION={"fees": {"percent": 1}}):
        with pytest.raises(ValueError, match="percent"):
            get_config()

    with override_settings(DJANGO_REUNION={"fees": {"fixed_cents": -1}}):
        with pytest.raises(ValueError, match="fixed_cents"):
            get_config()

    with override_settings(DJANGO_REUNION={"apparel": {"youth_price_cents": -5}}):
        with pytest.raises(ValueError, match="youth_price_cents"):
            get_config()

    with override_settings(DJANGO_REUNION={"apparel": {"name_prefix": "  "}}):
        with pytest.raises(ValueError, match="name_prefix"):
            get_config()

    with override_settings(DJANGO_REUNION={"rate_limit": {"max_requests": 0}}):
        with pytest.raises(ValueError, match="positive integer"):
            get_config()

    with override_settings(DJANGO_REUNION={"currency": ""}):
        with pytest.raises(ValueError, match="currency"):
            get_config()

    with override_settings(DJANGO_REUNION={"order_reference_prefix": ""}):
        with pytest.raises(ValueError, match="order_reference_prefix"):
            get_config()

    with override_settings(DJANGO_REUNION={"site_url": "reunion.example.com"}):
        with pytest.raises(ValueError, match="site_url"):
            get_config()


def test_get_config_rejects_unknown_keys() -> None:
    with override_settings(DJANGO_REUNION={"not_a_setting": True}):
        with pytest.raises(TypeError):
            get_config()


def test_get_config_cache_clears_on_setting_changed() -> None:
    with override_settings(DJANGO_REUNION={"currency": "usd"}):
        assert get_config().currency == "usd"

    with override_settings(DJANGO_REUNION={"currency": "cad"}):
        assert get_config().currency == "cad"
