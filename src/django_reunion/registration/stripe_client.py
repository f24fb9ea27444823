"""Stripe client wrapper for hosted Checkout Sessions.

The reunion collects card payments through Stripe-hosted Checkout, so the
only API surface needed is creating a session for an order and reading it
back when the purchaser returns. Calls use the modern ``stripe.StripeClient``
pattern (v1 namespace).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import stripe
from django.urls import reverse

from django_reunion.registration.stripe_utils import obfuscate_key
from django_reunion.settings import get_config

if TYPE_CHECKING:
    from django_reunion.registration.models import Order

logger = logging.getLogger(__name__)


def _absolute(path: str) -> str:
    return get_config().site_url.rstrip("/") + path


def build_line_items(order: Order) -> list[dict[str, object]]:
    """Build Checkout line items for *order*.

    One line per order item at its snapshot unit price, then a donation line
    and a processing fee line when those are non-zero. The lines always sum
    to ``order.total_cents``.

    Args:
        order: The order being paid.

    Returns:
        A list of ``line_items`` entries for ``checkout.sessions.create``.
    """
    currency = get_config().currency.lower()

    def line(name: str, unit_amount: int, quantity: int = 1) -> dict[str, object]:
        return {
            "price_data": {
                "currency": currency,
                "unit_amount": unit_amount,
                "product_data": {"name": name},
            },
            "quantity": quantity,
        }

    items = [
        line(item.description, item.unit_price_cents, item.quantity)
        for item in order.items.all()
        if item.quantity > 0
    ]
    if order.donation_cents > 0:
        items.append(line("Donation", order.donation_cents))
    if order.fee_cents > 0:
        items.append(line("Card processing fee", order.fee_cents))
    return items


class StripeClient:
    """Stripe API client bound to the configured account.

    Raises:
        ValueError: If no Stripe secret key is configured.
    """

    def __init__(self) -> None:
        """Initialize the client from ``DJANGO_REUNION['stripe']``.

        Raises:
            ValueError: If ``secret_key`` is empty.
        """
        config = get_config()
        secret_key = config.stripe.secret_key
        if not secret_key:
            msg = "Stripe is not configured. Set DJANGO_REUNION['stripe']['secret_key'] to accept card payments."
            raise ValueError(msg)

        self.account_id = config.stripe.account_id
        self.client = stripe.StripeClient(
            secret_key,
            stripe_version=config.stripe.api_version,
        )
        logger.info("Initialized StripeClient with key %s", obfuscate_key(secret_key))

    def create_checkout_session(self, order: Order) -> stripe.checkout.Session:
        """Create a hosted Checkout Session for *order*.

        The order id travels in ``metadata`` so webhooks can find the order,
        and the order reference is the idempotency key so a retried request
        never opens a second session.

        Args:
            order: A pending order with a positive total.

        Returns:
            The created ``stripe.checkout.Session``.
        """
        success_url = (
            _absolute(reverse("registration:checkout-complete"))
            + f"?session_id={{CHECKOUT_SESSION_ID}}&amount={order.total_cents}"
        )
        params: dict[str, object] = {
            "mode": "payment",
            "line_items": build_line_items(order),
            "success_url": success_url,
            "cancel_url": _absolute("/register?canceled=1"),
            "client_reference_id": order.reference,
            "metadata": {
                "order_id": str(order.pk),
                "reference": order.reference,
            },
        }
        if order.purchaser_email:
            params["customer_email"] = order.purchaser_email

        return self.client.v1.checkout.sessions.create(
            params=params,
            options={"idempotency_key": order.reference},
        )

    def retrieve_checkout_session(self, session_id: str) -> stripe.checkout.Session:
        """Fetch a Checkout Session, falling back to the connected account.

        Sessions created on a connected account are invisible to the platform
        key, so a failed lookup is retried with ``stripe_account`` when
        ``DJANGO_REUNION['stripe']['account_id']`` is set.

        Args:
            session_id: The ``cs_...`` session id.

        Returns:
            The ``stripe.checkout.Session``.

        Raises:
            stripe.StripeError: If neither lookup succeeds.
        """
        try:
            return self.client.v1.checkout.sessions.retrieve(session_id)
        except stripe.StripeError:
            if not self.account_id:
                raise
            logger.info("Retrying session %s on connected account %s", session_id, self.account_id)
            return self.client.v1.checkout.sessions.retrieve(
                session_id,
                options={"stripe_account": self.account_id},
            )
