"""Checkout service for turning a registration submission into an order.

The service re-derives everything that costs money from the submission's own
participant data: admission tiers from ages, apparel from the apparel
selections, and the card fee from the subtotal. Client-computed totals are
never trusted.
"""

import logging
import secrets
import string
from dataclasses import dataclass
from urllib.parse import urlencode

import stripe
from django.db import IntegrityError, transaction

from django_reunion.registration.answers import ADULT_CATEGORY, YOUTH_CATEGORY, RegistrationSubmission
from django_reunion.registration.models import MANUAL_PAYMENT_METHODS, Order, OrderItem, TicketTier
from django_reunion.registration.services.apparel import aggregate_apparel, ensure_apparel_tier
from django_reunion.registration.services.attendees import materialize_attendees
from django_reunion.registration.services.finalize import FinalizeService
from django_reunion.registration.services.notifications import send_order_receipt
from django_reunion.registration.services.pricing import compute_total
from django_reunion.registration.services.validation import (
    RegistrationRejected,
    RejectionCode,
    check_inventory,
    validate_registration,
)
from django_reunion.registration.signals import notify, registration_received
from django_reunion.registration.stripe_client import StripeClient
from django_reunion.settings import get_config

logger = logging.getLogger(__name__)


def _generate_reference() -> str:
    """Generate an order reference using the configured prefix, e.g. ``REU-8F3K2Q1Z``."""
    config = get_config()
    chars = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(chars) for _ in range(8))
    return f"{config.order_reference_prefix}-{suffix}"


def confirmation_url(order: Order) -> str:
    """Return the public confirmation page URL for *order*."""
    query = urlencode(
        {
            "order": order.reference,
            "status": order.status,
            "method": order.payment_method,
            "amount": order.total_cents,
        }
    )
    return f"{get_config().site_url.rstrip('/')}/success?{query}"


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    """What the purchaser should be sent to after submitting.

    Exactly one of ``checkout_url`` (Stripe-hosted payment page) and
    ``redirect_url`` (confirmation page) is set.
    """

    order: Order
    checkout_url: str = ""
    redirect_url: str = ""

    @property
    def hosted(self) -> bool:
        """Return ``True`` when the purchaser pays on a Stripe-hosted page."""
        return bool(self.checkout_url)


class CheckoutService:
    """Stateless service that validates a submission and creates its order."""

    @staticmethod
    def submit(submission: RegistrationSubmission) -> CheckoutResult:
        """Validate *submission*, create the order, and start payment.

        Manual payment methods (PayPal, Venmo, mail-in check) record
        attendees immediately and leave the order ``pending`` until an
        organizer confirms the money arrived. Card payments open a Stripe
        Checkout Session; if Stripe is unavailable the order falls back to
        the manual path so the registration is not lost.

        Args:
            submission: The parsed registration.

        Returns:
            A :class:`CheckoutResult`.

        Raises:
            RegistrationRejected: If the submission fails validation.
        """
        tiers = {tier.pk: tier for tier in TicketTier.objects.filter(is_active=True)}
        submitted = submission.submitted_quantities()
        for tier_id in submitted:
            if tier_id not in tiers:
                raise RegistrationRejected(
                    "A selected ticket is unavailable.",
                    RejectionCode.TICKET_UNAVAILABLE,
                    {"tier_id": tier_id},
                )

        admission_tiers = [tier for tier in tiers.values() if tier.kind == TicketTier.Kind.ADMISSION]
        addon_selections = [
            (tiers[tier_id], quantity)
            for tier_id, quantity in submitted.items()
            if tiers[tier_id].kind == TicketTier.Kind.ADDON
        ]
        admission_selections = [
            (tiers[tier_id], quantity)
            for tier_id, quantity in submitted.items()
            if tiers[tier_id].kind == TicketTier.Kind.ADMISSION
        ]

        answers = submission.answers
        apparel = aggregate_apparel(answers.people, answers.apparel_orders)
        ticket_cents = sum(tier.price_cents * quantity for tier, quantity in admission_selections + addon_selections)
        totals = compute_total(ticket_cents, apparel.subtotal_cents, answers.donation_cents, submission.payment_method)

        validate_registration(submission, admission_tiers, totals, apparel, addon_selections)

        with transaction.atomic():
            apparel_lines = []
            for category in (ADULT_CATEGORY, YOUTH_CATEGORY):
                count = apparel.count_for(category)
                if count <= 0:
                    continue
                tier = ensure_apparel_tier(category)
                check_inventory(tier, count)
                apparel_lines.append((tier, count, apparel.price_for(category)))

            while True:
                try:
                    with transaction.atomic():
                        order = Order.objects.create(
                            reference=_generate_reference(),
                            purchaser_name=submission.purchaser_name,
                            purchaser_email=submission.purchaser_email,
                            payment_method=submission.payment_method,
                            payment_handle=submission.payment_handle.strip(),
                            status=Order.Status.PENDING,
                            subtotal_cents=totals.subtotal_cents,
                            donation_cents=totals.donation_cents,
                            fee_cents=totals.fee_cents,
                            total_cents=totals.total_cents,
                            answers=dict(submission.raw_answers),
                        )
                    break
                except IntegrityError:
                    continue

            items = [
                OrderItem(
                    order=order,
                    tier=tier,
                    description=tier.name,
                    quantity=quantity,
                    unit_price_cents=tier.price_cents,
                )
                for tier, quantity in sorted(
                    admission_selections + addon_selections,
                    key=lambda pair: (pair[0].position, pair[0].pk),
                )
            ]
            items.extend(
                OrderItem(
                    order=order,
                    tier=tier,
                    description=tier.name,
                    quantity=count,
                    unit_price_cents=unit_price,
                )
                for tier, count, unit_price in apparel_lines
            )
            OrderItem.objects.bulk_create(items)

        logger.info(
            "Created order %s (%s, total %s)",
            order.reference,
            order.payment_method,
            order.total_cents,
        )
        notify(registration_received, order)

        if order.payment_method == Order.PaymentMethod.STRIPE:
            if order.total_cents == 0:
                result = FinalizeService.finalize(order.pk)
                order.refresh_from_db()
                if result.ok:
                    return CheckoutResult(order=order, redirect_url=confirmation_url(order))
                logger.error("Free order %s could not be finalized: %s", order.reference, result.reason)
                return CheckoutService._confirm_manual(order)

            checkout_url = CheckoutService._start_hosted_checkout(order)
            if checkout_url:
                return CheckoutResult(order=order, checkout_url=checkout_url)
            CheckoutService._drop_card_fee(order)

        return CheckoutService._confirm_manual(order)

    @staticmethod
    def _start_hosted_checkout(order: Order) -> str:
        """Open a Checkout Session for *order*; return its URL or ``""`` on failure."""
        try:
            session = StripeClient().create_checkout_session(order)
        except ValueError:
            logger.warning("Stripe is not configured; order %s falls back to manual payment", order.reference)
            return ""
        except stripe.StripeError:
            logger.exception("Stripe session creation failed for order %s", order.reference)
            return ""

        order.stripe_session_id = session.id
        order.save(update_fields=["stripe_session_id", "updated_at"])
        logger.info("Opened checkout session %s for order %s", session.id, order.reference)
        return session.url or ""

    @staticmethod
    def _drop_card_fee(order: Order) -> None:
        """Charge *order* the bare subtotal once hosted checkout is off the table."""
        if order.fee_cents == 0:
            return
        logger.info("Removing card fee of %s from order %s", order.fee_cents, order.reference)
        order.fee_cents = 0
        order.total_cents = order.subtotal_cents
        order.save(update_fields=["fee_cents", "total_cents", "updated_at"])

    @staticmethod
    def _confirm_manual(order: Order) -> CheckoutResult:
        materialize_attendees(order)
        if order.payment_method not in MANUAL_PAYMENT_METHODS:
            logger.warning("Order %s recorded without card payment; awaiting manual confirmation", order.reference)
        send_order_receipt(order)
        return CheckoutResult(order=order, redirect_url=confirmation_url(order))
