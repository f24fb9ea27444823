"""Organizer-side order maintenance.

Every change an organizer makes to an order goes through
:class:`OrderAdminService`, kept apart from checkout and finalization so the
automated payment paths never depend on console behavior. Edits that change
who is attending re-materialize the order's attendee rows so the roster and
headcounts stay in step with the answers.
"""

import csv
import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import transaction

from django_reunion.registration.answers import get_people, order_participants, parse_answers
from django_reunion.registration.models import Order, OrderItem, TicketTier
from django_reunion.registration.services.attendees import materialize_attendees
from django_reunion.registration.services.notifications import resend_order_receipt
from django_reunion.registration.services.pricing import net_total_cents, refunded_cents, ticket_price_slots
from django_reunion.registration.stripe_utils import format_amount
from django_reunion.settings import get_config

logger = logging.getLogger(__name__)

EXPORT_HEADERS: tuple[str, ...] = (
    "Order Reference",
    "Created At",
    "Status",
    "Payment Method",
    "Purchaser Name",
    "Purchaser Email",
    "Total (cents)",
    "Total (formatted)",
    "Refunded (cents)",
    "Net Total (cents)",
    "Stripe Session ID",
    "Ticket Summary",
    "Attendee Count",
    "Participant #",
    "Participant Name",
    "Age",
    "Attending",
    "Refunded",
    "Show Name",
    "Show Photo",
    "Participant Email",
    "Apparel",
)


def normalize_email(value: str) -> str:
    """Trim and lowercase *value*, rejecting it if it is not an email address.

    Raises:
        ValidationError: If the address is malformed.
    """
    normalized = value.strip().lower()
    validate_email(normalized)
    return normalized


def _should_track_attendees(order: Order) -> bool:
    return order.status == Order.Status.PAID or order.attendees.exists()


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


class OrderAdminService:
    """Stateless service for organizer edits to orders."""

    @staticmethod
    @transaction.atomic
    def overwrite_order(
        order: Order,
        *,
        purchaser_name: str | None = None,
        purchaser_email: str | None = None,
        status: str | None = None,
        payment_method: str | None = None,
        total_cents: int | None = None,
        stripe_session_id: str | None = None,
        answers: Mapping[str, Any] | None = None,
        items: Iterable[tuple[int, int]] | None = None,
    ) -> Order:
        """Overwrite order fields with organizer-supplied values.

        Only arguments that are not ``None`` are applied. ``items`` replaces
        every order item with ``(tier_id, quantity)`` pairs priced at the
        tier's current price. Status is set directly; this is the organizer
        override for confirming manual payments or correcting mistakes and
        does not take inventory.

        Raises:
            ValidationError: If a value is invalid or an item names an
                unknown tier.
        """
        order = Order.objects.select_for_update().get(pk=order.pk)
        update_fields: list[str] = []

        if purchaser_name is not None:
            if not purchaser_name.strip():
                raise ValidationError("Purchaser name cannot be empty.")
            order.purchaser_name = purchaser_name.strip()
            update_fields.append("purchaser_name")
        if purchaser_email is not None:
            order.purchaser_email = normalize_email(purchaser_email)
            update_fields.append("purchaser_email")
        if status is not None:
            if status not in Order.Status.values:
                raise ValidationError("Invalid status.")
            order.status = status
            update_fields.append("status")
        if payment_method is not None:
            if payment_method not in Order.PaymentMethod.values:
                raise ValidationError("Invalid payment method.")
            order.payment_method = payment_method
            update_fields.append("payment_method")
        if total_cents is not None:
            if total_cents < 0:
                raise ValidationError("Total cannot be negative.")
            order.total_cents = total_cents
            update_fields.append("total_cents")
        if stripe_session_id is not None:
            order.stripe_session_id = stripe_session_id.strip()
            update_fields.append("stripe_session_id")
        if answers is not None:
            order.answers = dict(answers)
            update_fields.append("answers")

        if update_fields:
            order.save(update_fields=[*update_fields, "updated_at"])

        if items is not None:
            OrderAdminService._replace_items(order, items)

        if answers is not None or status is not None:
            if _should_track_attendees(order):
                materialize_attendees(order)

        logger.info("Order %s overwritten: %s", order.reference, ", ".join(update_fields) or "items only")
        return order

    @staticmethod
    def _replace_items(order: Order, items: Iterable[tuple[int, int]]) -> None:
        pairs = [(tier_id, quantity) for tier_id, quantity in items if quantity > 0]
        tiers = TicketTier.objects.in_bulk([tier_id for tier_id, _ in pairs])
        missing = sorted({tier_id for tier_id, _ in pairs if tier_id not in tiers})
        if missing:
            raise ValidationError(
                "Unknown ticket tier(s): %(tiers)s",
                params={"tiers": ", ".join(str(pk) for pk in missing)},
            )

        order.items.all().delete()
        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    tier=tiers[tier_id],
                    description=tiers[tier_id].name,
                    quantity=quantity,
                    unit_price_cents=tiers[tier_id].price_cents,
                )
                for tier_id, quantity in pairs
            ]
        )

    @staticmethod
    @transaction.atomic
    def update_participant(
        order: Order,
        index: int,
        *,
        attending: bool | None = None,
        refunded: bool | None = None,
        show_name: bool | None = None,
        show_photo: bool | None = None,
        email: str | None = None,
        remove: bool = False,
    ) -> Order:
        """Edit or remove one participant in the order's answers.

        Participant 0 is the primary contact: changing their email also
        changes ``purchaser_email`` and it cannot be blanked. Removing
        participant 0 promotes the next participant's email, when they have
        one. Removing anyone drops their photo URL as well so photos stay
        aligned with people.

        Raises:
            ValidationError: If the participant does not exist or an email
                is invalid.
        """
        order = Order.objects.select_for_update().get(pk=order.pk)
        answers = dict(order.answers) if isinstance(order.answers, dict) else {}
        people = get_people(answers)
        if index < 0 or index >= len(people):
            raise ValidationError("Participant not found.")

        next_purchaser_email = ""
        if remove:
            people.pop(index)
            answers["people"] = people
            if index == 0 and people:
                replacement = people[0].get("email")
                if isinstance(replacement, str) and replacement.strip():
                    try:
                        next_purchaser_email = normalize_email(replacement)
                    except ValidationError as exc:
                        raise ValidationError("New primary participant email is invalid.") from exc
            photos = answers.get("photo_urls")
            if isinstance(photos, list):
                photos = list(photos)
                if index < len(photos):
                    photos.pop(index)
                answers["photo_urls"] = photos
        else:
            person = dict(people[index])
            if attending is not None:
                person["attending"] = attending
            if refunded is not None:
                person["refunded"] = refunded
            if show_name is not None:
                person["show_name"] = show_name
            if show_photo is not None:
                person["show_photo"] = show_photo
            if email is not None:
                if not email.strip():
                    if index == 0:
                        raise ValidationError("Primary participant email cannot be empty.")
                    person["email"] = None
                else:
                    person["email"] = normalize_email(email)
                    if index == 0:
                        next_purchaser_email = person["email"]
            people[index] = person
            answers["people"] = people

        order.answers = answers
        update_fields = ["answers", "updated_at"]
        if next_purchaser_email:
            order.purchaser_email = next_purchaser_email
            update_fields.append("purchaser_email")
        order.save(update_fields=update_fields)

        if _should_track_attendees(order):
            materialize_attendees(order)

        logger.info(
            "Participant %s on order %s %s",
            index,
            order.reference,
            "removed" if remove else "updated",
        )
        return order

    @staticmethod
    @transaction.atomic
    def delete_empty_order(order: Order) -> None:
        """Delete an order whose answers list no participants.

        Raises:
            ValidationError: If the order still has participant details.
        """
        if get_people(order.answers):
            raise ValidationError("Order has participant details.")
        reference = order.reference
        order.items.all().delete()
        order.attendees.all().delete()
        order.delete()
        logger.info("Deleted empty order %s", reference)

    @staticmethod
    def resend_receipt(order: Order, email: str = "") -> str:
        """Send a copy of the receipt and return the address it went to.

        Defaults to the purchaser email when *email* is blank.

        Raises:
            ValidationError: If there is no valid recipient.
            ValueError: If email delivery is disabled.
        """
        raw = email.strip() or order.purchaser_email.strip()
        if not raw:
            raise ValidationError("Recipient email is required.")
        recipient = normalize_email(raw)
        resend_order_receipt(order, recipient)
        return recipient

    @staticmethod
    def export_rows(orders: Iterable[Order]) -> Iterator[list[str]]:
        """Yield one CSV row per order and participant.

        Orders without participants produce a single row with the
        participant columns left blank.
        """
        config = get_config()
        for order in orders:
            items = list(order.items.all())
            parsed = parse_answers(order.answers).people
            refunded = refunded_cents(order.total_cents, parsed, ticket_price_slots(items))
            net = net_total_cents(order.total_cents, parsed, ticket_price_slots(items))
            summary = "; ".join(f"{item.quantity} x {item.description}" for item in items)
            base = [
                order.reference,
                order.created_at.isoformat(),
                order.status,
                order.payment_method,
                order.purchaser_name,
                order.purchaser_email,
                str(order.total_cents),
                format_amount(order.total_cents, config.currency, config.currency_symbol),
                str(refunded),
                str(net),
                order.stripe_session_id,
                summary,
                str(order.attendees.count()),
            ]

            rows = order_participants(order.answers)
            if not rows:
                yield base + [""] * (len(EXPORT_HEADERS) - len(base))
                continue

            for row, person in zip(rows, parsed, strict=True):
                apparel = ""
                if person.apparel is not None and person.apparel.quantity > 0:
                    apparel = " ".join(
                        part
                        for part in (
                            f"{person.apparel.quantity} x",
                            person.apparel.price_category,
                            person.apparel.style,
                            person.apparel.size,
                        )
                        if part
                    )
                age = "" if person.age is None else f"{person.age:g}"
                yield [
                    *base,
                    str(row.index + 1),
                    row.name,
                    age,
                    _yes_no(row.attending),
                    _yes_no(row.refunded),
                    _yes_no(row.show_name),
                    _yes_no(row.show_photo),
                    person.email,
                    apparel,
                ]

    @staticmethod
    def write_csv(stream: Any, orders: Iterable[Order]) -> None:
        """Write the header and :meth:`export_rows` to a file-like *stream*."""
        writer = csv.writer(stream)
        writer.writerow(EXPORT_HEADERS)
        writer.writerows(OrderAdminService.export_rows(orders))
