from django.contrib import admin

from .models import PaymentTransaction


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "method", "amount", "unique_code", "status", "expires_at", "created_at")
    search_fields = ("id", "order__order_number", "payment_reference", "account_number")
    list_filter = ("method", "status", "bank_code", "created_at")
    readonly_fields = ("created_at", "updated_at", "processed_at", "verified_at", "proof_image_url", "proof_file", "qr_payload")
