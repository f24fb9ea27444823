"""Payment finalization for registration orders.

Finalization is the only place an order becomes ``paid``. It can be reached
from the checkout completion redirect, from any of several Stripe webhook
events, and from a retried webhook after an earlier failure, so it must be
safe to call any number of times for the same order.
"""

import logging
from dataclasses import dataclass

from django.db import DatabaseError, transaction
from django.utils import timezone

from django_reunion.registration.models import Order
from django_reunion.registration.services.attendees import materialize_attendees
from django_reunion.registration.services.inventory import decrement_for_order
from django_reunion.registration.services.notifications import send_order_receipt
from django_reunion.registration.signals import notify, order_canceled, order_paid

logger = logging.getLogger(__name__)

NOT_FOUND = "not_found"
ORDER_CANCELED = "order_canceled"
INVENTORY_FAILED = "inventory_failed"
ATTENDEE_INSERT_FAILED = "attendee_insert_failed"
UPDATE_FAILED = "update_failed"


@dataclass(frozen=True, slots=True)
class FinalizeResult:
    """Outcome of a finalization attempt.

    Attributes:
        ok: ``True`` when the order is paid after the call.
        finalized: ``True`` only for the call that moved the order to paid.
        reason: Failure reason code when ``ok`` is ``False``.
    """

    ok: bool
    finalized: bool = False
    reason: str = ""


class _FinalizeStepError(Exception):
    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _on_paid(order_id: int) -> None:
    order = Order.objects.get(pk=order_id)
    send_order_receipt(order)
    notify(order_paid, order)


class FinalizeService:
    """Stateless service that confirms and cancels orders."""

    @staticmethod
    def finalize(order_id: int) -> FinalizeResult:
        """Move a pending order to paid, taking inventory and recording attendees.

        Steps run inside one transaction with the order row locked:

        1. a paid order returns immediately with ``finalized=False``;
        2. limited tiers are decremented through the per-order ledger;
        3. attendee rows are replaced from the order's answers;
        4. the status flips to ``paid``.

        A database failure in any step rolls everything back and is reported
        by reason code; calling again re-runs every step safely. The receipt
        email and the ``order_paid`` signal go out only after commit.

        Args:
            order_id: Primary key of the order.

        Returns:
            A :class:`FinalizeResult`.
        """
        try:
            with transaction.atomic():
                order = Order.objects.select_for_update().filter(pk=order_id).first()
                if order is None:
                    logger.warning("Finalize requested for unknown order %s", order_id)
                    return FinalizeResult(ok=False, reason=NOT_FOUND)

                if order.status == Order.Status.PAID:
                    logger.info("Order %s already paid, nothing to finalize", order.reference)
                    return FinalizeResult(ok=True, finalized=False)

                if order.status == Order.Status.CANCELED:
                    logger.error("Refusing to finalize canceled order %s", order.reference)
                    return FinalizeResult(ok=False, reason=ORDER_CANCELED)

                try:
                    decrement_for_order(order)
                except DatabaseError as exc:
                    raise _FinalizeStepError(INVENTORY_FAILED) from exc

                try:
                    materialize_attendees(order)
                except DatabaseError as exc:
                    raise _FinalizeStepError(ATTENDEE_INSERT_FAILED) from exc

                try:
                    order.status = Order.Status.PAID
                    order.save(update_fields=["status", "updated_at"])
                except DatabaseError as exc:
                    raise _FinalizeStepError(UPDATE_FAILED) from exc

                transaction.on_commit(lambda: _on_paid(order.pk), robust=True)
        except _FinalizeStepError as exc:
            logger.exception("Finalizing order %s failed: %s", order_id, exc.reason)
            return FinalizeResult(ok=False, reason=exc.reason)

        logger.info("Order %s marked PAID", order.reference)
        return FinalizeResult(ok=True, finalized=True)

    @staticmethod
    def cancel(order_id: int, reason: str = "") -> bool:
        """Cancel a pending order.

        Paid and already canceled orders are left untouched.

        Args:
            order_id: Primary key of the order.
            reason: Free-form reason, logged and passed to the signal.

        Returns:
            ``True`` if this call canceled the order.
        """
        updated = Order.objects.filter(pk=order_id, status=Order.Status.PENDING).update(
            status=Order.Status.CANCELED,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.info("Order %s not pending, cancel skipped", order_id)
            return False

        order = Order.objects.get(pk=order_id)
        logger.info("Order %s canceled (%s)", order.reference, reason or "no reason given")
        notify(order_canceled, order, reason=reason)
        return True
