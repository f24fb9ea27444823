"""Django admin configuration for the registration app."""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib import admin

from django_reunion.registration.models import (
    Attendee,
    EventProcessingException,
    InventoryDecrement,
    Order,
    OrderItem,
    StripeEvent,
    TicketTier,
)

if TYPE_CHECKING:
    from django.http import HttpRequest


class ReadOnlyAdminMixin:
    """Disable add, change, and delete for records written only by code."""

    def has_add_permission(self, request: HttpRequest) -> bool:  # noqa: ARG002, D102
        return False

    def has_change_permission(self, request: HttpRequest, obj: object | None = None) -> bool:  # noqa: ARG002, D102
        return False

    def has_delete_permission(self, request: HttpRequest, obj: object | None = None) -> bool:  # noqa: ARG002, D102
        return False


@admin.register(TicketTier)
class TicketTierAdmin(admin.ModelAdmin):
    """Admin interface for the tier catalog.

    Age bounds and inventory are editable here; the model's ``clean()``
    rejects an inverted age range.
    """

    list_display = ("name", "kind", "price_cents", "age_min", "age_max", "inventory", "position", "is_active")
    list_filter = ("kind", "is_active")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


class OrderItemInline(admin.TabularInline):
    """Order items are snapshots from checkout and are shown read-only."""

    model = OrderItem
    extra = 0
    readonly_fields = ("tier", "description", "quantity", "unit_price_cents")


class AttendeeInline(admin.TabularInline):
    """Attendees are materialized from the order's answers."""

    model = Attendee
    extra = 0
    readonly_fields = ("participant_index", "name", "age")
    exclude = ("answers",)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Admin interface for orders.

    Money fields are read-only; organizer edits go through the management
    console so primary-participant and attendee rules are applied.
    """

    list_display = ("reference", "purchaser_name", "purchaser_email", "payment_method", "status", "total_cents")
    list_filter = ("status", "payment_method")
    search_fields = ("reference", "purchaser_name", "purchaser_email")
    readonly_fields = ("reference", "subtotal_cents", "donation_cents", "fee_cents", "total_cents", "stripe_session_id")
    inlines = (OrderItemInline, AttendeeInline)


@admin.register(InventoryDecrement)
class InventoryDecrementAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Read-only ledger of inventory taken per order."""

    list_display = ("order", "tier", "quantity", "created_at")
    list_filter = ("tier",)


@admin.register(StripeEvent)
class StripeEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Read-only admin for Stripe webhook events."""

    list_display = ("stripe_id", "kind", "processed", "livemode", "created_at")
    list_filter = ("kind", "processed", "livemode")
    search_fields = ("stripe_id",)


@admin.register(EventProcessingException)
class EventProcessingExceptionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Read-only admin for webhook processing errors."""

    list_display = ("message", "event", "created_at")
    list_filter = ("created_at",)
    search_fields = ("message",)
