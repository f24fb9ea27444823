"""Receipt emails for registration orders.

Emails go out through Django's mail framework, so the host project's
``EMAIL_BACKEND`` decides the transport. Automatic receipts are best-effort:
a failure is logged and never affects the order.
"""

import logging

from django.core.mail import EmailMultiAlternatives
from django.utils.html import escape

from django_reunion.registration.models import Order
from django_reunion.registration.stripe_utils import format_amount
from django_reunion.settings import get_config

logger = logging.getLogger(__name__)


def _item_lines(order: Order) -> list[tuple[str, int, str, str]]:
    config = get_config()
    lines = []
    for item in order.items.all():
        lines.append(
            (
                item.description,
                item.quantity,
                format_amount(item.unit_price_cents, config.currency, config.currency_symbol),
                format_amount(item.line_total_cents, config.currency, config.currency_symbol),
            )
        )
    return lines


def build_receipt(order: Order, *, resent: bool = False) -> tuple[str, str, str]:
    """Render the receipt for *order*.

    Returns:
        A ``(subject, text_body, html_body)`` triple.
    """
    config = get_config()
    subject = f"{config.email.subject} (Resent)" if resent else config.email.subject
    total = format_amount(order.total_cents, config.currency, config.currency_symbol)
    method = Order.PaymentMethod(order.payment_method).label if order.payment_method else "pending"
    lines = _item_lines(order)
    intro = "This is a copy of your reunion receipt." if resent else "Mahalo for registering for the reunion."

    text_items = (
        "\n".join(f"- {label}: {qty} x {unit} = {line}" for label, qty, unit, line in lines)
        or "No line items found."
    )
    text = (
        f"Aloha {order.purchaser_name},\n\n{intro}\n\n"
        f"Order: {order.reference}\n"
        f"Status: {order.get_status_display()}\n"
        f"Payment method: {method}\n"
        f"Total: {total}\n\n"
        f"Line items:\n{text_items}\n"
    )
    if order.payment_method == Order.PaymentMethod.CHECK and config.mailing_address:
        text += f"\nPlease mail your check to:\n{config.mailing_address}\n"

    html_items = (
        "<ul>"
        + "".join(f"<li>{escape(label)} - {qty} x {unit} = {line}</li>" for label, qty, unit, line in lines)
        + "</ul>"
        if lines
        else "<p>No line items found.</p>"
    )
    html = (
        f"<p>Aloha {escape(order.purchaser_name)},</p>"
        f"<p>{intro}</p>"
        f"<p><strong>Order:</strong> {escape(order.reference)}<br/>"
        f"<strong>Status:</strong> {order.get_status_display()}<br/>"
        f"<strong>Payment method:</strong> {escape(method)}<br/>"
        f"<strong>Total:</strong> {total}</p>"
        f"<p><strong>Line items:</strong></p>{html_items}"
    )
    return subject, text, html


def _send(order: Order, recipient: str, *, resent: bool) -> None:
    config = get_config().email
    subject, text, html = build_receipt(order, resent=resent)
    message = EmailMultiAlternatives(
        subject=subject,
        body=text,
        from_email=f"{config.from_name} <{config.from_email}>",
        to=[recipient],
    )
    message.attach_alternative(html, "text/html")
    message.send()


def send_order_receipt(order: Order) -> bool:
    """Email the purchaser a receipt, swallowing and logging any failure.

    Returns:
        ``True`` when the message was handed to the mail backend.
    """
    if not get_config().email.enabled or not order.purchaser_email:
        return False
    try:
        _send(order, order.purchaser_email, resent=False)
    except Exception:
        logger.exception("Unable to send receipt for order %s", order.reference)
        return False
    logger.info("Sent receipt for order %s", order.reference)
    return True


def resend_order_receipt(order: Order, recipient: str) -> None:
    """Send a copy of the receipt to *recipient* on an organizer's request.

    Unlike :func:`send_order_receipt`, failures propagate so the console can
    report them.

    Raises:
        ValueError: If email is disabled in configuration.
    """
    if not get_config().email.enabled:
        msg = "Email delivery is not configured."
        raise ValueError(msg)
    _send(order, recipient, resent=True)
    logger.info("Resent receipt for order %s to %s", order.reference, recipient)
