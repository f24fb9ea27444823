"""Views for the organizer console.

Organizer-only endpoints for reviewing and correcting registrations. All
views inherit from ``ManagePermissionMixin`` and every change is delegated
to :class:`~django_reunion.manage.services.OrderAdminService`.
"""

import logging

from django.contrib.auth.mixins import LoginRequiredMixin
from django.core.exceptions import PermissionDenied, ValidationError
from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views import View

from django_reunion.manage.forms import OrderOverwriteForm, ParticipantUpdateForm, ResendReceiptForm
from django_reunion.manage.services import OrderAdminService
from django_reunion.registration.answers import order_participants
from django_reunion.registration.models import Order

logger = logging.getLogger(__name__)

ORGANIZER_GROUP_NAME = "Reunion: Organizers"


class ManagePermissionMixin(LoginRequiredMixin):
    """Permission mixin for organizer views.

    Allows a user who satisfies at least one of:

    * is a superuser,
    * holds the ``reunion_registration.change_order`` permission, or
    * belongs to the "Reunion: Organizers" group.

    Resolves ``self.order`` from the ``reference`` URL kwarg when present.

    Raises:
        PermissionDenied: If the user fails all three checks.
    """

    order: Order
    kwargs: dict[str, str]

    def dispatch(self, request: HttpRequest, *args: str, **kwargs: str) -> HttpResponse:
        """Enforce permissions and resolve the order before dispatch."""
        if not request.user.is_authenticated:
            return self.handle_no_permission()  # type: ignore[return-value]

        user = request.user
        allowed = (
            user.is_superuser
            or user.has_perm("reunion_registration.change_order")
            or user.groups.filter(name=ORGANIZER_GROUP_NAME).exists()
        )
        if not allowed:
            raise PermissionDenied

        if "reference" in kwargs:
            self.order = get_object_or_404(Order, reference=kwargs["reference"])

        return super().dispatch(request, *args, **kwargs)  # type: ignore[misc]


def _form_error(form: object) -> JsonResponse:
    return JsonResponse({"error": "Invalid input", "details": form.errors.get_json_data()}, status=400)


def _validation_error(exc: ValidationError) -> JsonResponse:
    return JsonResponse({"error": " ".join(exc.messages)}, status=400)


def _order_summary(order: Order) -> dict[str, object]:
    return {
        "reference": order.reference,
        "created_at": order.created_at.isoformat(),
        "status": order.status,
        "payment_method": order.payment_method,
        "payment_handle": order.payment_handle,
        "purchaser_name": order.purchaser_name,
        "purchaser_email": order.purchaser_email,
        "total_cents": order.total_cents,
        "participants": [
            {
                "index": row.index,
                "name": row.name,
                "attending": row.attending,
                "refunded": row.refunded,
                "show_name": row.show_name,
                "show_photo": row.show_photo,
                "has_photo": row.has_photo,
            }
            for row in order_participants(order.answers)
        ],
    }


class OrderListView(ManagePermissionMixin, View):
    """JSON list of orders, newest first, optionally filtered by ``status``."""

    def get(self, request: HttpRequest, **_kwargs: str) -> JsonResponse:
        """Return the order list."""
        orders = Order.objects.all()
        status = request.GET.get("status", "")
        if status in Order.Status.values:
            orders = orders.filter(status=status)
        return JsonResponse([_order_summary(order) for order in orders], safe=False)


class OrderOverwriteView(ManagePermissionMixin, View):
    """Overwrite an order's purchaser, status, payment, answers, and items."""

    def post(self, request: HttpRequest, **_kwargs: str) -> JsonResponse:
        """Apply the submitted fields."""
        form = OrderOverwriteForm(request.POST)
        if not form.is_valid():
            return _form_error(form)
        try:
            order = OrderAdminService.overwrite_order(self.order, **form.overwrite_kwargs())
        except ValidationError as exc:
            return _validation_error(exc)
        return JsonResponse({"ok": True, "order": _order_summary(order)})


class ParticipantUpdateView(ManagePermissionMixin, View):
    """Update or remove one participant of an order."""

    def post(self, request: HttpRequest, index: int, **_kwargs: str) -> JsonResponse:
        """Apply the participant change."""
        form = ParticipantUpdateForm(request.POST)
        if not form.is_valid():
            return _form_error(form)
        try:
            order = OrderAdminService.update_participant(self.order, index, **form.update_kwargs())
        except ValidationError as exc:
            return _validation_error(exc)
        return JsonResponse({"ok": True, "order": _order_summary(order)})


class OrderDeleteView(ManagePermissionMixin, View):
    """Delete an order that has no participant details."""

    def post(self, _request: HttpRequest, **_kwargs: str) -> JsonResponse:
        """Delete the order if it is empty."""
        try:
            OrderAdminService.delete_empty_order(self.order)
        except ValidationError as exc:
            return _validation_error(exc)
        return JsonResponse({"ok": True})


class ResendReceiptView(ManagePermissionMixin, View):
    """Send a copy of the receipt to the purchaser or a given address."""

    def post(self, request: HttpRequest, **_kwargs: str) -> JsonResponse:
        """Send the receipt and report where it went."""
        form = ResendReceiptForm(request.POST)
        if not form.is_valid():
            return _form_error(form)
        try:
            recipient = OrderAdminService.resend_receipt(self.order, form.cleaned_data["email"])
        except ValidationError as exc:
            return _validation_error(exc)
        except ValueError as exc:
            return JsonResponse({"error": str(exc)}, status=400)
        except Exception:
            logger.exception("Unable to resend receipt for order %s", self.order.reference)
            return JsonResponse({"error": "Unable to send receipt email."}, status=502)
        return JsonResponse({"ok": True, "email": recipient})


class OrderExportView(ManagePermissionMixin, View):
    """CSV export with one row per order and participant."""

    def get(self, _request: HttpRequest, **_kwargs: str) -> HttpResponse:
        """Stream the CSV as an attachment."""
        filename = f"orders-{timezone.localdate().isoformat()}.csv"
        response = HttpResponse(content_type="text/csv; charset=utf-8")
        response["Content-Disposition"] = f'attachment; filename="{filename}"'
        orders = Order.objects.prefetch_related("items").order_by("-created_at")
        OrderAdminService.write_csv(response, orders)
        return response
