"""Views for the registration app.

Public JSON endpoints used by the registration page: the tier catalog, the
submission endpoint that creates orders, the return leg of Stripe Checkout,
and the public roster of who is coming.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import stripe
from django.http import HttpResponseRedirect, JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from django_reunion.registration.answers import (
    get_people,
    get_photo_urls,
    is_participant_attending,
    participant_name,
)
from django_reunion.registration.forms import RegistrationForm
from django_reunion.registration.models import Order, TicketTier
from django_reunion.registration.services.checkout import CheckoutService, confirmation_url
from django_reunion.registration.services.finalize import FinalizeService
from django_reunion.registration.services.ratelimit import get_rate_limiter
from django_reunion.registration.services.validation import RegistrationRejected
from django_reunion.registration.stripe_client import StripeClient
from django_reunion.settings import get_config

if TYPE_CHECKING:
    from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

ROSTER_LIMIT = 40


def client_ip(request: HttpRequest) -> str:
    """Return the originating client address, honoring ``X-Forwarded-For``."""
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR", "") or "unknown"


def _canceled_url() -> str:
    return f"{get_config().site_url.rstrip('/')}/register?canceled=1"


def _session_order_id(session: stripe.checkout.Session) -> str:
    try:
        return str(session.metadata["order_id"])
    except (KeyError, TypeError):
        return ""


class TicketTierListView(View):
    """JSON list of active tiers for the registration form."""

    def get(self, _request: HttpRequest, **_kwargs: str) -> JsonResponse:
        """Return active tiers in display order."""
        data = [
            {
                "id": tier.pk,
                "name": tier.name,
                "slug": tier.slug,
                "description": tier.description,
                "kind": tier.kind,
                "price_cents": tier.price_cents,
                "currency": tier.currency,
                "age_min": tier.age_min,
                "age_max": tier.age_max,
                "inventory": tier.inventory,
            }
            for tier in TicketTier.objects.filter(is_active=True)
        ]
        return JsonResponse(data, safe=False)


@method_decorator(csrf_exempt, name="dispatch")
class RegistrationSubmitView(View):
    """Accept a registration and start payment.

    Responses:
        200 ``{"checkout_url"}`` for card payments or ``{"redirect_url"}``
        otherwise; 400 ``{"error", "code", ...}`` when the registration is
        rejected; 422 ``{"error", "details"}`` for a malformed body; 429 when
        the client is sending too many requests.
    """

    def post(self, request: HttpRequest, **_kwargs: str) -> JsonResponse:
        """Validate the posted JSON and create the order."""
        if not get_rate_limiter().check(f"register:{client_ip(request)}"):
            return JsonResponse({"error": "Too many requests. Please wait a minute and try again."}, status=429)

        try:
            body = json.loads(request.body or b"{}")
        except (UnicodeDecodeError, ValueError):
            return JsonResponse(
                {"error": "Invalid form submission", "details": {"body": ["Invalid JSON."]}},
                status=422,
            )
        if not isinstance(body, dict):
            return JsonResponse(
                {"error": "Invalid form submission", "details": {"body": ["Expected a JSON object."]}},
                status=422,
            )

        form = RegistrationForm(data=body)
        if not form.is_valid():
            return JsonResponse(
                {"error": "Invalid form submission", "details": form.errors.get_json_data()},
                status=422,
            )

        try:
            result = CheckoutService.submit(form.submission)
        except RegistrationRejected as exc:
            logger.info("Registration rejected (%s) from %s", exc.code, client_ip(request))
            return JsonResponse(exc.detail, status=400)

        if result.hosted:
            return JsonResponse({"checkout_url": result.checkout_url})
        return JsonResponse({"redirect_url": result.redirect_url})


class CheckoutCompleteView(View):
    """Return leg of Stripe Checkout.

    Reads the session the purchaser just paid, finalizes the order when the
    session is paid, and sends them on to the confirmation page. The webhook
    may have finalized the order already; finalizing again is harmless.
    """

    def get(self, request: HttpRequest, **_kwargs: str) -> HttpResponse:
        """Finalize if paid and redirect to the confirmation page."""
        session_id = request.GET.get("session_id", "").strip()
        if not session_id:
            return HttpResponseRedirect(_canceled_url())

        try:
            session = StripeClient().retrieve_checkout_session(session_id)
        except ValueError:
            logger.error("Checkout completion for %s but Stripe is not configured", session_id)
            return HttpResponseRedirect(_canceled_url())
        except stripe.StripeError:
            logger.exception("Unable to retrieve checkout session %s", session_id)
            return HttpResponseRedirect(_canceled_url())

        order_id = _session_order_id(session)
        order = None
        if order_id.isdigit():
            order = Order.objects.filter(pk=int(order_id)).first()
        if order is None:
            order = Order.objects.filter(stripe_session_id=session_id).first()
        if order is None:
            logger.warning("Checkout session %s has no matching order", session_id)
            return HttpResponseRedirect(_canceled_url())

        if session.payment_status in ("paid", "no_payment_required"):
            result = FinalizeService.finalize(order.pk)
            if not result.ok:
                logger.error("Finalizing order %s on return failed: %s", order.reference, result.reason)
            order.refresh_from_db()

        url = confirmation_url(order)
        amount = request.GET.get("amount", "").strip()
        if amount.isdigit() and int(amount) != order.total_cents:
            logger.warning(
                "Checkout return for order %s reported amount %s, expected %s",
                order.reference,
                amount,
                order.total_cents,
            )
        return HttpResponseRedirect(url)


class RosterView(View):
    """Public list of who is coming.

    Lists participants of paid orders, newest order first, capped at forty
    entries. A participant appears when their name or photo may be shown;
    the hidden half is returned as ``null``. Orders whose answers have no
    participants fall back to the purchaser name.
    """

    def get(self, _request: HttpRequest, **_kwargs: str) -> JsonResponse:
        """Return the roster as a JSON array."""
        entries: list[dict[str, object]] = []
        orders = Order.objects.filter(status=Order.Status.PAID).order_by("-created_at")[:ROSTER_LIMIT]
        for order in orders:
            people = get_people(order.answers)
            if not people:
                if order.purchaser_name.strip():
                    entries.append({"name": order.purchaser_name.strip(), "photo_url": None})
            else:
                photo_urls = get_photo_urls(order.answers)
                for index, person in enumerate(people):
                    if not is_participant_attending(person):
                        continue
                    name = participant_name(person)
                    photo = photo_urls[index] if index < len(photo_urls) and photo_urls[index] else None
                    raw_show_name = person.get("show_name")
                    raw_show_photo = person.get("show_photo")
                    show_name = (raw_show_name if isinstance(raw_show_name, bool) else True) and bool(name)
                    show_photo = (raw_show_photo if isinstance(raw_show_photo, bool) else True) and photo is not None
                    if not show_name and not show_photo:
                        continue
                    entries.append({"name": name if show_name else None, "photo_url": photo if show_photo else None})
                    if len(entries) >= ROSTER_LIMIT:
                        break
            if len(entries) >= ROSTER_LIMIT:
                break
        return JsonResponse(entries[:ROSTER_LIMIT], safe=False)
