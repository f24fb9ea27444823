"""Order total and processing fee calculation.

All amounts are integers in the smallest currency unit (cents). The card
processing fee is passed through to the purchaser so that, after Stripe
takes its percentage and fixed fee from the gross charge, the reunion
receives the full subtotal.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from django_reunion.registration.answers import Participant
from django_reunion.registration.models import Order, OrderItem
from django_reunion.settings import get_config


@dataclass(frozen=True, slots=True)
class OrderTotals:
    """Subtotal, pass-through fee, and grand total of an order."""

    ticket_cents: int
    apparel_cents: int
    donation_cents: int
    subtotal_cents: int
    fee_cents: int
    total_cents: int


def _clamp(value: int) -> int:
    return max(0, int(value))


def processing_fee_cents(subtotal_cents: int) -> int:
    """Return the surcharge that makes the merchant net *subtotal_cents*.

    Uses ``gross = ceil((subtotal + fixed) / (1 - percent))`` and returns
    ``gross - subtotal``. Rounding up means the merchant is never short. A
    zero subtotal carries no fee.
    """
    subtotal = _clamp(subtotal_cents)
    if subtotal <= 0:
        return 0
    fees = get_config().fees
    gross = (Decimal(subtotal + fees.fixed_cents) / (Decimal(1) - fees.percent)).to_integral_value(
        rounding=ROUND_CEILING
    )
    return max(0, int(gross) - subtotal)


def compute_total(
    ticket_cents: int,
    apparel_cents: int,
    donation_cents: int,
    payment_method: str,
) -> OrderTotals:
    """Combine tickets, apparel, and donation and add the card fee if any.

    Only hosted card checkout (``Order.PaymentMethod.STRIPE``) carries a fee;
    manual methods are charged the bare subtotal. Negative inputs are clamped
    to zero.

    Args:
        ticket_cents: Admission and add-on subtotal.
        apparel_cents: Apparel subtotal.
        donation_cents: Optional donation.
        payment_method: One of ``Order.PaymentMethod``.

    Returns:
        The computed :class:`OrderTotals`.
    """
    ticket = _clamp(ticket_cents)
    apparel = _clamp(apparel_cents)
    donation = _clamp(donation_cents)
    subtotal = ticket + apparel + donation
    fee = processing_fee_cents(subtotal) if payment_method == Order.PaymentMethod.STRIPE else 0
    return OrderTotals(
        ticket_cents=ticket,
        apparel_cents=apparel,
        donation_cents=donation,
        subtotal_cents=subtotal,
        fee_cents=fee,
        total_cents=subtotal + fee,
    )


def ticket_price_slots(items: Iterable[OrderItem]) -> list[int]:
    """Expand order items into one unit price per purchased unit."""
    slots: list[int] = []
    for item in items:
        slots.extend([item.unit_price_cents] * max(0, item.quantity))
    return slots


def refunded_cents(total_cents: int, participants: Sequence[Participant], price_slots: Sequence[int]) -> int:
    """Return how much of an order has been refunded per participant flags.

    Participant ``i`` is refunded the ``i``-th ticket price slot. When the
    order has fewer slots than participants, an even share of the total is
    used instead. The result never exceeds the order total.
    """
    if total_cents <= 0:
        return 0
    if price_slots:
        fallback = int((Decimal(total_cents) / len(price_slots)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    elif participants:
        fallback = int((Decimal(total_cents) / len(participants)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    else:
        fallback = 0

    refunded = 0
    for position, person in enumerate(participants):
        if not person.refunded:
            continue
        refunded += price_slots[position] if position < len(price_slots) else fallback
    return min(total_cents, max(0, refunded))


def net_total_cents(total_cents: int, participants: Sequence[Participant], price_slots: Sequence[int]) -> int:
    """Return the order total minus refunded participants."""
    return max(0, total_cents - refunded_cents(total_cents, participants, price_slots))
