"""Custom signals for the registration app.

Signals:
    registration_received: Sent when a new order has been created.
        Sender: The ``Order`` class.
        Kwargs:
            order: The newly created ``Order``.
    order_paid: Sent when an order transitions to PAID status.
        Sender: The ``Order`` class.
        Kwargs:
            order: The ``Order`` instance that was paid.
    order_canceled: Sent when a pending order is canceled.
        Sender: The ``Order`` class.
        Kwargs:
            order: The canceled ``Order``.
            reason: A short machine-readable cause (e.g. ``"session_expired"``).
"""

import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

registration_received = Signal()
order_paid = Signal()
order_canceled = Signal()


def notify(signal: Signal, order: object, **kwargs: object) -> None:
    """Send *signal* for *order*, logging receiver failures instead of raising.

    Receivers run after the order state they describe is saved, so a broken
    receiver must not turn a completed registration or payment into an error.
    """
    for receiver, response in signal.send_robust(sender=type(order), order=order, **kwargs):
        if isinstance(response, Exception):
            logger.error(
                "Signal receiver %r failed for order %s",
                receiver,
                getattr(order, "reference", order),
                exc_info=response,
            )
