"""Money display helpers and secret masking for log lines.

Every amount in this package is an integer count of the currency's minor
unit, the same representation Stripe uses. Receipts and the CSV export need
it shown as dollars, so conversion lives here next to the key masking used
when Stripe settings are logged.
"""

from decimal import Decimal

_MASK = "****"
_VISIBLE_KEY_CHARS = 4

# Stripe charges these in whole units; there is no minor unit to divide by.
ZERO_DECIMAL_CURRENCIES = frozenset(
    "BIF CLP DJF GNF JPY KMF KRW MGA PYG RWF UGX VND VUV XAF XOF XPF".split()
)


def minor_units_to_decimal(amount: int, currency: str) -> Decimal:
    """Return *amount* minor units as a decimal in major units.

    ``6211`` cents is ``Decimal("62.11")``; a zero-decimal currency such as
    JPY is returned unchanged.
    """
    value = Decimal(int(amount))
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return value
    return (value / 100).quantize(Decimal("0.01"))


def format_amount(amount: int, currency: str, symbol: str = "$") -> str:
    """Format a minor-unit amount for a receipt, e.g. ``6211 -> "$62.11"``."""
    return f"{symbol}{minor_units_to_decimal(amount, currency):,}"


def obfuscate_key(key: str) -> str:
    """Mask a Stripe key down to its last four characters for logging.

    Keys too short to keep a suffix are masked entirely.
    """
    if len(key) < _VISIBLE_KEY_CHARS:
        return _MASK
    return _MASK + key[-_VISIBLE_KEY_CHARS:]
