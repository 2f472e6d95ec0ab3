import uuid
from decimal import ROUND_HALF_UP, Decimal

from django.db import models
from django.utils import timezone

from menu.models import MenuItem, Table


class OrderError(Exception):
    """Raised for order operations that cannot be carried out.

    ``status_code`` is the HTTP status the API answers with.
    """

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code


class Order(models.Model):
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("confirmed", "Confirmed"),
        ("preparing", "Preparing"),
        ("ready", "Ready"),
        ("completed", "Completed"),
        ("cancelled", "Cancelled"),
    ]
    PAYMENT_STATUS_CHOICES = [
        ("pending", "Pending"),
        ("processing", "Processing"),
        ("verified", "Verified"),
        ("failed", "Failed"),
        ("refunded", "Refunded"),
    ]
    PAYMENT_METHOD_CHOICES = [
        ("qris", "QRIS"),
        ("bank_transfer", "Bank transfer"),
        ("cash", "Cash"),
    ]

    # status -> statuses it may move to
    TRANSITIONS = {
        "pending": ("confirmed", "cancelled"),
        "confirmed": ("preparing", "cancelled"),
        "preparing": ("ready", "cancelled"),
        "ready": ("completed", "cancelled"),
        "completed": (),
        "cancelled": (),
    }
    TERMINAL_STATUSES = ("completed", "cancelled")
    STATUS_TIMESTAMPS = {
        "confirmed": "confirmed_at",
        "preparing": "preparing_at",
        "ready": "ready_at",
        "completed": "completed_at",
        "cancelled": "cancelled_at",
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=32, unique=True, db_index=True)
    table = models.ForeignKey(Table, on_delete=models.PROTECT, related_name="orders")
    session_id = models.CharField(max_length=100, blank=True, default="")

    customer_name = models.CharField(max_length=128)
    customer_phone = models.CharField(max_length=20)
    customer_email = models.EmailField(blank=True, default="")
    customer_notes = models.TextField(blank=True, default="")

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="pending", db_index=True)
    payment_status = models.CharField(max_length=16, choices=PAYMENT_STATUS_CHOICES, default="pending", db_index=True)
    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES, blank=True, default="")

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    service_charge = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    promo_code = models.CharField(max_length=32, blank=True, default="")
    payment_proof_url = models.CharField(max_length=512, blank=True, default="")
    receipt_sent = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    payment_verified_at = models.DateTimeField(blank=True, null=True)
    confirmed_at = models.DateTimeField(blank=True, null=True)
    preparing_at = models.DateTimeField(blank=True, null=True)
    ready_at = models.DateTimeField(blank=True, null=True)
    completed_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.order_number} ({self.status}/{self.payment_status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "verified"

    def transition_to(self, status, save=True):
        """Move the order to ``status``, stamping the matching timestamp.

        Completed and cancelled orders never change again; any other illegal
        move raises ``OrderError`` with status 409.
        """
        if status not in self.TRANSITIONS:
            raise OrderError(f"Unknown order status: {status}")
        if self.is_terminal:
            raise OrderError(f"Order {self.order_number} is already {self.status}", status_code=409)
        if status == self.status:
            return self
        if status not in self.TRANSITIONS[self.status]:
            raise OrderError(f"Cannot move order from {self.status} to {status}", status_code=409)

        self.status = status
        field = self.STATUS_TIMESTAMPS.get(status)
        if field:
            setattr(self, field, timezone.now())
        if save:
            self.save()
        return self


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey(MenuItem, on_delete=models.PROTECT, related_name="order_items")
    item_name = models.CharField(max_length=255)
    item_price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)
    customizations = models.JSONField(default=dict, blank=True)
    notes = models.CharField(max_length=255, blank=True, default="")
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self):
        return f"{self.quantity}x {self.item_name}"


class Promo(models.Model):
    DISCOUNT_TYPES = [("percentage", "Percentage"), ("fixed", "Fixed amount")]

    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=128)
    description = models.CharField(max_length=255, blank=True, default="")
    discount_type = models.CharField(max_length=16, choices=DISCOUNT_TYPES)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2)
    minimum_order = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    maximum_discount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    max_uses = models.PositiveIntegerField(blank=True, null=True)
    current_uses = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    valid_until = models.DateTimeField(blank=True, null=True)

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.current_uses >= self.max_uses

    def is_valid_now(self, now=None) -> bool:
        now = now or timezone.now()
        if not self.is_active or self.is_exhausted:
            return False
        return self.valid_until is None or self.valid_until >= now

    def discount_for(self, amount) -> Decimal:
        """Discount this promo grants on ``amount`` (rounded to whole rupiah)."""
        amount = Decimal(amount)
        if self.discount_type == "percentage":
            discount = (amount * self.discount_value / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            if self.maximum_discount is not None and discount > self.maximum_discount:
                discount = self.maximum_discount
        else:
            discount = min(Decimal(self.discount_value), amount)
        return max(Decimal(0), Decimal(discount))
