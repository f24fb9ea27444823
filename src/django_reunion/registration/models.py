"""Ticket tier, order, attendee, and Stripe bookkeeping models for django-reunion."""

from django.core.exceptions import ValidationError
from django.db import models


class TicketTier(models.Model):
    """A priced admission class, apparel item, or add-on.

    Admission tiers may be age-bounded through ``age_min`` / ``age_max``; a
    ``None`` bound is open on that side. Overlapping tiers are allowed, the
    tier selector breaks ties by price and age span. A ``None`` inventory
    means the tier is unlimited.
    """

    class Kind(models.TextChoices):
        """What a tier sells."""

        ADMISSION = "admission", "Admission"
        APPAREL = "apparel", "Apparel"
        ADDON = "addon", "Add-on"

    name = models.CharField(max_length=200)
    slug = models.SlugField(max_length=200, unique=True)
    description = models.TextField(blank=True, default="")
    kind = models.CharField(max_length=20, choices=Kind.choices, default=Kind.ADMISSION)
    price_cents = models.PositiveIntegerField(default=0)
    currency = models.CharField(max_length=3, default="usd")
    age_min = models.PositiveIntegerField(null=True, blank=True)
    age_max = models.PositiveIntegerField(null=True, blank=True)
    inventory = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Units left for sale. Empty means unlimited.",
    )
    position = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["position", "name"]
        constraints = [
            models.CheckConstraint(
                condition=(
                    models.Q(age_min__isnull=True)
                    | models.Q(age_max__isnull=True)
                    | models.Q(age_min__lte=models.F("age_max"))
                ),
                name="reunion_tickettier_age_range_ordered",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    def clean(self) -> None:
        """Reject an inverted age range."""
        super().clean()
        if self.age_min is not None and self.age_max is not None and self.age_min > self.age_max:
            raise ValidationError({"age_max": "Maximum age must be greater than or equal to minimum age."})

    def matches_age(self, age: float) -> bool:
        """Return whether *age* falls inside this tier's (inclusive) range."""
        if self.age_min is not None and age < self.age_min:
            return False
        return not (self.age_max is not None and age > self.age_max)


class Order(models.Model):
    """The authoritative record of a registration.

    ``status`` only moves ``pending -> paid`` or ``pending -> canceled``.
    Manual payment methods stay ``pending`` until an organizer marks them
    paid; hosted checkout orders are flipped by the finalizer.
    """

    class Status(models.TextChoices):
        """Lifecycle states for an order."""

        PENDING = "pending", "Pending"
        PAID = "paid", "Paid"
        CANCELED = "canceled", "Canceled"

    class PaymentMethod(models.TextChoices):
        """How the purchaser intends to pay."""

        STRIPE = "stripe", "Card (Stripe)"
        PAYPAL = "paypal", "PayPal"
        VENMO = "venmo", "Venmo"
        CHECK = "check", "Mail-in check"

    reference = models.CharField(
        max_length=100,
        unique=True,
        help_text='Unique order reference, e.g. "REU-A1B2C3D4".',
    )
    purchaser_name = models.CharField(max_length=200)
    purchaser_email = models.EmailField()
    payment_method = models.CharField(
        max_length=20,
        choices=PaymentMethod.choices,
        default=PaymentMethod.STRIPE,
    )
    payment_handle = models.CharField(max_length=200, blank=True, default="")
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
    )
    subtotal_cents = models.PositiveIntegerField(default=0)
    donation_cents = models.PositiveIntegerField(default=0)
    fee_cents = models.PositiveIntegerField(default=0)
    total_cents = models.PositiveIntegerField(default=0)
    answers = models.JSONField(default=dict, blank=True)
    stripe_session_id = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.reference} ({self.status})"


MANUAL_PAYMENT_METHODS = frozenset(
    {Order.PaymentMethod.PAYPAL, Order.PaymentMethod.VENMO, Order.PaymentMethod.CHECK},
)
WALLET_PAYMENT_METHODS = frozenset({Order.PaymentMethod.PAYPAL, Order.PaymentMethod.VENMO})


class OrderItem(models.Model):
    """A priced snapshot of one tier purchase on an order."""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    tier = models.ForeignKey(
        TicketTier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )
    description = models.CharField(max_length=300)
    quantity = models.PositiveIntegerField(default=1)
    unit_price_cents = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.description}"

    @property
    def line_total_cents(self) -> int:
        """Return ``unit_price_cents * quantity``."""
        return self.unit_price_cents * self.quantity


class Attendee(models.Model):
    """A confirmed, attending participant materialized from an order.

    Rows are replaced as a set per order, never appended, so repeated
    finalization cannot duplicate them.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="attendees",
    )
    participant_index = models.PositiveIntegerField()
    name = models.CharField(max_length=200, blank=True, default="")
    age = models.PositiveIntegerField(null=True, blank=True)
    answers = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["order", "participant_index"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "participant_index"],
                name="reunion_attendee_unique_participant",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name or 'Attendee'} ({self.order.reference})"


class InventoryDecrement(models.Model):
    """Ledger of inventory already taken for an order.

    One row per ``(order, tier)``; the unique constraint is what makes a
    repeated finalization skip the counter update.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="inventory_decrements",
    )
    tier = models.ForeignKey(
        TicketTier,
        on_delete=models.CASCADE,
        related_name="inventory_decrements",
    )
    quantity = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["order", "tier"],
                name="reunion_inventorydecrement_unique_order_tier",
            ),
        ]

    def __str__(self) -> str:
        return f"-{self.quantity} {self.tier} ({self.order.reference})"


class StripeEvent(models.Model):
    """A raw Stripe webhook event, persisted for deduplication and audit."""

    stripe_id = models.CharField(max_length=255, unique=True)
    kind = models.CharField(max_length=255)
    livemode = models.BooleanField(default=False)
    payload = models.JSONField(default=dict, blank=True)
    processed = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} ({self.stripe_id})"


class EventProcessingException(models.Model):
    """A captured error raised while handling a Stripe webhook event."""

    event = models.ForeignKey(
        StripeEvent,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="exceptions",
    )
    data = models.TextField(blank=True, default="")
    message = models.CharField(max_length=500)
    traceback = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.message
