from django.contrib import admin

from .models import Order, OrderItem, Promo


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("menu_item", "item_name", "item_price", "quantity", "customizations", "subtotal")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "table", "customer_name", "status", "payment_status", "payment_method", "total_amount", "created_at")
    search_fields = ("order_number", "customer_name", "customer_phone", "customer_email")
    list_filter = ("status", "payment_status", "payment_method", "created_at")
    readonly_fields = ("created_at", "updated_at", "payment_verified_at", "confirmed_at", "preparing_at",
                       "ready_at", "completed_at", "cancelled_at", "payment_proof_url")
    inlines = [OrderItemInline]


@admin.register(Promo)
class PromoAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "discount_type", "discount_value", "current_uses", "max_uses", "is_active", "valid_until")
    search_fields = ("code", "name")
    list_filter = ("discount_type", "is_active")
