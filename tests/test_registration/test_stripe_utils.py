"""Tests for currency helpers in django_reunion.registration.stripe_utils."""

from decimal import Decimal

import pytest

from django_reunion.registration.stripe_utils import format_amount, minor_units_to_decimal, obfuscate_key


@pytest.mark.unit
class TestMinorUnitsToDecimal:
    def test_two_decimal_currency(self):
        assert minor_units_to_decimal(6211, "usd") == Decimal("62.11")

    def test_zero_decimal_currency(self):
        assert minor_units_to_decimal(1000, "JPY") == Decimal("1000")


@pytest.mark.unit
class TestFormatAmount:
    @pytest.mark.parametrize(
        ("amount", "expected"),
        [(6211, "$62.11"), (0, "$0.00"), (123456, "$1,234.56")],
    )
    def test_usd(self, amount, expected):
        assert format_amount(amount, "usd") == expected

    def test_custom_symbol(self):
        assert format_amount(500, "jpy", symbol="¥") == "¥500"


@pytest.mark.unit
class TestObfuscateKey:
    def test_keeps_last_four(self):
        assert obfuscate_key("sk_test_reunion_0000") == "****0000"

    def test_short_key_is_fully_masked(self):
        assert obfuscate_key("abc") == "****"
