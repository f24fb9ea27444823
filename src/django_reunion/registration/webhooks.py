"""Stripe webhook handling for the registration app.

Provides a registry-based dispatch system for processing Stripe webhook events.
Each event kind (e.g. ``checkout.session.completed``) maps to a handler class
that encapsulates processing, signal dispatch, and error capture.

The ``stripe_webhook`` view verifies the event signature, persists the event,
and delegates to the appropriate handler. Unlike a fire-and-forget receiver,
it answers with a status Stripe acts on: a 500 makes Stripe retry, which is
safe because finalization is idempotent.

Usage in URL configuration::

    from django_reunion.registration.webhooks import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook),
    ]
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING

import stripe
from django.http import HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from django_reunion.registration.models import EventProcessingException, Order, StripeEvent
from django_reunion.registration.services.finalize import ORDER_CANCELED, FinalizeService
from django_reunion.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)

PAID_SESSION_STATUSES = frozenset({"paid", "no_payment_required"})


class OrderNotFound(Exception):
    """The event names an order that does not exist."""


class FinalizationFailed(Exception):
    """The order could not be finalized; Stripe should retry the event."""


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class WebhookRegistry:
    """Registry mapping Stripe event kinds to handler classes.

    Handlers are registered at module load time and looked up by the webhook
    view when an event arrives.
    """

    def __init__(self) -> None:
        """Initialize an empty handler registry."""
        self._registry: dict[str, type[Webhook]] = {}

    def register(self, handler_class: type[Webhook]) -> type[Webhook]:
        """Register *handler_class* under its ``name``.

        Returns the class unchanged so it can be used as a decorator.
        """
        self._registry[handler_class.name] = handler_class
        return handler_class

    def get(self, kind: str) -> type[Webhook] | None:
        """Return the handler class for a given event kind, or ``None``."""
        return self._registry.get(kind)

    def keys(self) -> list[str]:
        """Return all registered event kinds."""
        return list(self._registry.keys())


registry = WebhookRegistry()


# ---------------------------------------------------------------------------
# Base handler
# ---------------------------------------------------------------------------


class Webhook:
    """Base class for Stripe webhook event handlers.

    Subclasses set ``name`` to the Stripe event kind they handle and
    implement ``process_webhook()``. The base ``process()`` method skips
    events already processed, marks successful ones, and records failures.

    Attributes:
        name: The Stripe event kind this handler processes.
        event: The ``StripeEvent`` model instance being handled.
    """

    name: str = ""

    def __init__(self, event: StripeEvent) -> None:
        """Bind the handler to a specific Stripe event record."""
        self.event = event

    def process(self) -> None:
        """Run the handler with idempotency and error capture.

        Events that already succeeded are skipped. Events stored by an
        earlier, failed delivery are processed again.

        Raises:
            OrderNotFound: Propagated from the handler.
            FinalizationFailed: Propagated from the handler.
        """
        if self.event.processed:
            logger.info("Event %s already processed, skipping", self.event.stripe_id)
            return

        try:
            self.process_webhook()
            self.send_signal()
            self.event.processed = True
            self.event.save(update_fields=["processed"])
        except Exception:
            self.log_exception()
            raise

    def process_webhook(self) -> None:
        """Implement event-specific processing logic.

        Raises:
            NotImplementedError: Subclasses must override this method.
        """
        raise NotImplementedError

    def send_signal(self) -> None:
        """Send a Django signal after successful processing (no-op by default)."""

    def log_exception(self) -> None:
        """Capture the current exception to ``EventProcessingException``."""
        tb = traceback.format_exc()
        logger.error(
            "Error processing webhook %s (event %s): %s",
            self.name,
            self.event.stripe_id,
            tb,
        )
        EventProcessingException.objects.create(
            event=self.event,
            data=str(self.event.payload),
            message=str(tb)[:500],
            traceback=tb,
        )


def _event_data_object(event: StripeEvent) -> dict[str, object]:
    """Extract the ``data.object`` dict from a StripeEvent payload."""
    payload = event.payload
    if isinstance(payload, dict):
        data = payload.get("data")
        if isinstance(data, dict):
            obj = data.get("object")
            if isinstance(obj, dict):
                return obj
    return {}


def _session_order(session: dict[str, object]) -> Order:
    """Resolve the order a Checkout Session belongs to.

    Uses ``metadata.order_id`` and falls back to the stored session id.

    Raises:
        OrderNotFound: If neither lookup finds an order.
    """
    metadata = session.get("metadata")
    order_id = metadata.get("order_id") if isinstance(metadata, dict) else None
    order = None
    if order_id and str(order_id).isdigit():
        order = Order.objects.filter(pk=int(order_id)).first()
    if order is None and session.get("id"):
        order = Order.objects.filter(stripe_session_id=str(session["id"])).first()
    if order is None:
        msg = f"No order for checkout session {session.get('id')!r} (order_id={order_id!r})"
        raise OrderNotFound(msg)
    return order


# ---------------------------------------------------------------------------
# Concrete handlers
# ---------------------------------------------------------------------------


class SessionPaidWebhook(Webhook):
    """Finalize the order of a Checkout Session that has been paid."""

    def process_webhook(self) -> None:
        """Finalize the session's order once Stripe reports it paid."""
        session = _event_data_object(self.event)
        order = _session_order(session)

        payment_status = session.get("payment_status")
        if self.name == "checkout.session.completed" and payment_status not in PAID_SESSION_STATUSES:
            logger.info(
                "Session %s for order %s completed with payment_status=%s; waiting for async payment",
                session.get("id"),
                order.reference,
                payment_status,
            )
            return

        result = FinalizeService.finalize(order.pk)
        if result.ok:
            return
        if result.reason == ORDER_CANCELED:
            # Retrying cannot help; acknowledge and leave it for an organizer.
            logger.error("Paid session %s belongs to canceled order %s", session.get("id"), order.reference)
            return
        msg = f"Finalizing order {order.reference} failed: {result.reason}"
        raise FinalizationFailed(msg)


@registry.register
class CheckoutSessionCompletedWebhook(SessionPaidWebhook):
    """Handles ``checkout.session.completed`` events."""

    name = "checkout.session.completed"


@registry.register
class CheckoutSessionAsyncPaymentSucceededWebhook(SessionPaidWebhook):
    """Handles ``checkout.session.async_payment_succeeded`` events."""

    name = "checkout.session.async_payment_succeeded"


class SessionCanceledWebhook(Webhook):
    """Cancel the pending order of a Checkout Session that will never be paid."""

    reason = ""

    def process_webhook(self) -> None:
        """Cancel the session's order if it is still pending."""
        session = _event_data_object(self.event)
        order = _session_order(session)
        FinalizeService.cancel(order.pk, reason=self.reason)


@registry.register
class CheckoutSessionExpiredWebhook(SessionCanceledWebhook):
    """Handles ``checkout.session.expired`` events."""

    name = "checkout.session.expired"
    reason = "session_expired"


@registry.register
class CheckoutSessionAsyncPaymentFailedWebhook(SessionCanceledWebhook):
    """Handles ``checkout.session.async_payment_failed`` events."""

    name = "checkout.session.async_payment_failed"
    reason = "async_payment_failed"


# ---------------------------------------------------------------------------
# Webhook endpoint view
# ---------------------------------------------------------------------------


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """Receive and process a Stripe webhook event.

    Verifies the signature, persists the event (or reuses the stored copy of
    a redelivered one), and dispatches to the registered handler.

    Returns:
        200 when the event was handled or needs no handling, 400 for a bad
        signature or payload, 404 when the order is unknown, and 500 when
        the webhook secret is missing or finalization failed.
    """
    config = get_config()
    webhook_secret = config.stripe.webhook_secret
    if not webhook_secret:
        logger.error("Stripe webhook received but no webhook secret is configured")
        return HttpResponse("Webhook secret not configured.", status=500)

    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")
    if not sig_header:
        logger.warning("Stripe webhook received without a signature header")
        return HttpResponse("Missing signature.", status=400)

    try:
        event = stripe.Webhook.construct_event(
            request.body,
            sig_header,
            webhook_secret,
            tolerance=config.stripe.webhook_tolerance,
        )
    except (stripe.SignatureVerificationError, ValueError):
        logger.warning("Invalid Stripe webhook payload or signature")
        return HttpResponse("Invalid signature.", status=400)

    payload = event.to_dict() if hasattr(event, "to_dict") else dict(event)
    stripe_id = str(payload["id"])
    kind = str(payload["type"])

    stripe_event, created = StripeEvent.objects.get_or_create(
        stripe_id=stripe_id,
        defaults={
            "kind": kind,
            "livemode": bool(payload.get("livemode", False)),
            "payload": payload,
        },
    )
    if not created and stripe_event.processed:
        logger.info("Duplicate Stripe event %s, returning 200", stripe_id)
        return HttpResponse(status=200)

    handler_class = registry.get(kind)
    if handler_class is None:
        logger.info("No handler registered for event kind '%s'", kind)
        return HttpResponse(status=200)

    try:
        handler_class(stripe_event).process()
    except OrderNotFound:
        logger.warning("Stripe event %s (kind=%s) references an unknown order", stripe_id, kind)
        return HttpResponse("Order not found.", status=404)
    except FinalizationFailed:
        logger.exception("Stripe event %s (kind=%s) could not be finalized", stripe_id, kind)
        return HttpResponse("Finalization failed.", status=500)

    return HttpResponse(status=200)
