import uuid

from django.db import models
from django.utils import timezone

from orders.models import Order


class PaymentTransaction(models.Model):
    METHOD_CHOICES = [
        ("qris", "QRIS"),
        ("bank_transfer", "Bank transfer"),
        ("cash", "Cash"),
    ]
    STATUS_CHOICES = [
        ("pending", "Pending"),
        ("processing", "Pending verification"),
        ("completed", "Completed"),
        ("expired", "Expired"),
        ("failed", "Failed"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="transactions")
    method = models.CharField(max_length=16, choices=METHOD_CHOICES)
    base_amount = models.DecimalField(max_digits=12, decimal_places=2)
    unique_code = models.PositiveIntegerField(default=0)
    amount = models.DecimalField(max_digits=12, decimal_places=2, db_index=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default="pending", db_index=True)

    # destination account snapshot for transfers
    bank_code = models.CharField(max_length=16, blank=True, default="")
    bank_name = models.CharField(max_length=64, blank=True, default="")
    account_number = models.CharField(max_length=32, blank=True, default="")
    account_name = models.CharField(max_length=128, blank=True, default="")

    qr_payload = models.TextField(blank=True, default="")
    payment_reference = models.CharField(max_length=64, blank=True, default="")
    expires_at = models.DateTimeField(db_index=True)

    proof_image_url = models.CharField(max_length=512, blank=True, default="")
    proof_file = models.CharField(max_length=255, blank=True, default="")

    processed_at = models.DateTimeField(blank=True, null=True)
    verified_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.method} {self.amount} ({self.status})"

    @property
    def amount_to_pay(self):
        return self.amount

    def is_expired(self, now=None) -> bool:
        if self.status == "expired":
            return True
        if self.status in ("completed", "processing"):
            return False
        return (now or timezone.now()) >= self.expires_at

    @property
    def accepts_proof(self) -> bool:
        return self.method != "cash" and self.status in ("pending", "processing") and not self.is_expired()
