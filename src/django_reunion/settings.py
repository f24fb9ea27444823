"""Typed configuration for django-reunion.

Reads a single ``DJANGO_REUNION`` dict from Django settings and exposes it as
composed, frozen dataclasses with sensible defaults.

Usage::

    from django_reunion.settings import get_config

    config = get_config()
    config.stripe.secret_key
    config.fees.percent
    config.apparel.adult_price_cents
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.test.signals import setting_changed


@dataclass(frozen=True, slots=True)
class StripeConfig:
    """Stripe payment gateway configuration."""

    secret_key: str | None = None
    publishable_key: str | None = None
    webhook_secret: str | None = None
    account_id: str | None = None
    api_version: str = "2024-12-18"
    webhook_tolerance: int = 300


@dataclass(frozen=True, slots=True)
class FeeConfig:
    """Card processing fee passed through to hosted-checkout purchasers.

    ``percent`` is a fraction (``0.029`` for 2.9%) and ``fixed_cents`` is the
    flat per-charge amount in the smallest currency unit.
    """

    percent: Decimal = Decimal("0.029")
    fixed_cents: int = 30


@dataclass(frozen=True, slots=True)
class ApparelConfig:
    """Fixed apparel pricing and the catalog naming used for apparel tiers."""

    adult_price_cents: int = 2500
    youth_price_cents: int = 1500
    name_prefix: str = "Reunion T-Shirt"


@dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Fixed-window admission control for the registration endpoint."""

    backend: str = "django_reunion.registration.services.ratelimit.CacheRateLimiter"
    max_requests: int = 5
    window_seconds: int = 60
    cache_alias: str = "default"


@dataclass(frozen=True, slots=True)
class EmailConfig:
    """Receipt email configuration."""

    enabled: bool = True
    from_email: str = "ohana@example.com"
    from_name: str = "Reunion Team"
    subject: str = "Reunion Registration Receipt"


@dataclass(frozen=True, slots=True)
class ReunionConfig:
    """Top-level django-reunion configuration."""

    stripe: StripeConfig = field(default_factory=StripeConfig)
    fees: FeeConfig = field(default_factory=FeeConfig)
    apparel: ApparelConfig = field(default_factory=ApparelConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    site_url: str = "http://localhost:8000"
    currency: str = "usd"
    currency_symbol: str = "$"
    order_reference_prefix: str = "REU"
    paypal_handle: str = ""
    venmo_handle: str = ""
    mailing_address: str = ""


_SECTIONS = ("stripe", "fees", "apparel", "rate_limit", "email")


@functools.lru_cache(maxsize=1)
def get_config() -> ReunionConfig:
    """Build and return the reunion configuration.

    Reads ``settings.DJANGO_REUNION`` (a plain dict) and returns a frozen
    :class:`ReunionConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "DJANGO_REUNION", {})
    if not isinstance(raw, Mapping):
        msg = "DJANGO_REUNION must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    sections: dict[str, dict[str, object]] = {}
    for name in _SECTIONS:
        data = raw_data.pop(name, {})
        if not isinstance(data, Mapping):
            msg = f"DJANGO_REUNION['{name}'] must be a mapping (dict-like object)"
            raise TypeError(msg)
        sections[name] = dict(data)

    fee_data = sections["fees"]
    if "percent" in fee_data and not isinstance(fee_data["percent"], Decimal):
        fee_data["percent"] = Decimal(str(fee_data["percent"]))

    config = ReunionConfig(
        stripe=StripeConfig(**sections["stripe"]),
        fees=FeeConfig(**fee_data),
        apparel=ApparelConfig(**sections["apparel"]),
        rate_limit=RateLimitConfig(**sections["rate_limit"]),
        email=EmailConfig(**sections["email"]),
        **raw_data,
    )
    _validate_reunion_config(config)
    return config


def _validate_reunion_config(config: ReunionConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    if not Decimal("0") <= config.fees.percent < Decimal("1"):
        msg = "DJANGO_REUNION['fees']['percent'] must be a fraction between 0 and 1"
        raise ValueError(msg)
    if not isinstance(config.fees.fixed_cents, int) or config.fees.fixed_cents < 0:
        msg = "DJANGO_REUNION['fees']['fixed_cents'] must be a non-negative integer"
        raise ValueError(msg)
    for attr in ("adult_price_cents", "youth_price_cents"):
        value = getattr(config.apparel, attr)
        if not isinstance(value, int) or value < 0:
            msg = f"DJANGO_REUNION['apparel']['{attr}'] must be a non-negative integer"
            raise ValueError(msg)
    if not isinstance(config.apparel.name_prefix, str) or not config.apparel.name_prefix.strip():
        msg = "DJANGO_REUNION['apparel']['name_prefix'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.rate_limit.max_requests, int) or config.rate_limit.max_requests <= 0:
        msg = "DJANGO_REUNION['rate_limit']['max_requests'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.rate_limit.window_seconds, int) or config.rate_limit.window_seconds <= 0:
        msg = "DJANGO_REUNION['rate_limit']['window_seconds'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.currency, str) or not config.currency.strip():
        msg = "DJANGO_REUNION['currency'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.order_reference_prefix, str) or not config.order_reference_prefix.strip():
        msg = "DJANGO_REUNION['order_reference_prefix'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.site_url, str) or not config.site_url.startswith(("http://", "https://")):
        msg = "DJANGO_REUNION['site_url'] must be an absolute http(s) URL"
        raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "DJANGO_REUNION":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="django_reunion.settings.clear_config_cache")
