import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from menu.models import MenuItem, Table
from payments.emails import send_payment_receipt

from .models import Order, OrderError, OrderItem, Promo
from .utils import gen_order_number, gen_session_id, round_rupiah

logger = logging.getLogger(__name__)

ESTIMATED_COMPLETION = timedelta(minutes=30)
MAX_ITEM_QUANTITY = 10


def _rate(name, default) -> Decimal:
    return Decimal(str(getattr(settings, name, default)))


def order_totals(subtotal, discount=0) -> dict:
    """Tax, service charge and total for a subtotal, as charged at the table."""
    subtotal = Decimal(subtotal)
    tax = round_rupiah(subtotal * _rate("ORDER_TAX_RATE", 0.10))
    service = round_rupiah(subtotal * _rate("ORDER_SERVICE_FEE_RATE", 0.05))
    minimum = Decimal(getattr(settings, "ORDER_MINIMUM_TOTAL", 1000))
    total = max(minimum, subtotal + tax + service - Decimal(discount))
    return {
        "subtotal": subtotal,
        "tax_amount": tax,
        "service_charge": service,
        "discount_amount": Decimal(discount),
        "total_amount": total,
    }


def calculate_promo_discount(promo: Promo, subtotal) -> Decimal:
    return promo.discount_for(subtotal)


def validate_promo(code, order_total) -> dict:
    """Check a promo code against an order amount.

    Always returns the ``{valid, message, discount_amount, final_total}``
    shape the ordering screen shows; never raises for an unusable code.
    """
    order_total = Decimal(str(order_total))
    result = {"valid": False, "discount_amount": 0, "final_total": int(order_total)}
    normalized = (code or "").strip().upper()
    promo = Promo.objects.filter(code=normalized).first() if normalized else None
    if promo is None:
        result["message"] = "Kode promo tidak ditemukan"
        return result
    if not promo.is_valid_now():
        result["message"] = "Kode promo sudah tidak berlaku"
        return result
    if order_total < promo.minimum_order:
        result["message"] = f"Minimum pemesanan Rp {int(promo.minimum_order):,}".replace(",", ".")
        return result

    discount = calculate_promo_discount(promo, order_total)
    result.update({
        "valid": True,
        "message": f"Promo {promo.name} berhasil diterapkan!",
        "discount_amount": int(discount),
        "final_total": int(max(Decimal(0), order_total - discount)),
        "promo": {
            "code": promo.code,
            "name": promo.name,
            "discount_type": promo.discount_type,
            "discount_value": int(promo.discount_value),
            "maximum_discount": int(promo.maximum_discount) if promo.maximum_discount is not None else None,
        },
    })
    return result


def _clean_items(items):
    if not isinstance(items, list) or not items:
        raise OrderError("Order must contain at least one item")
    cleaned = []
    for raw in items:
        if not isinstance(raw, dict):
            raise OrderError("Invalid order item")
        item_id = raw.get("menu_item_id") or raw.get("id")
        try:
            quantity = int(raw.get("quantity", 1))
        except (TypeError, ValueError):
            raise OrderError("Invalid quantity")
        if quantity < 1 or quantity > MAX_ITEM_QUANTITY:
            raise OrderError(f"Quantity must be between 1 and {MAX_ITEM_QUANTITY}")
        try:
            menu_item = MenuItem.objects.get(pk=item_id, is_available=True)
        except (MenuItem.DoesNotExist, ValidationError, ValueError):
            raise OrderError(f"Menu item {item_id} is not available")
        customizations = raw.get("customizations") or {}
        if not isinstance(customizations, dict):
            raise OrderError("Invalid customizations")
        try:
            unit_price = menu_item.resolve_unit_price(customizations)
        except ValidationError as e:
            raise OrderError("; ".join(e.messages))
        cleaned.append((menu_item, unit_price, quantity, customizations, (raw.get("notes") or "")[:255]))
    return cleaned


@transaction.atomic
def create_order(table_identifier, customer_name, customer_phone, items, promo_code=None,
                 customer_email="", customer_notes="") -> Order:
    """Create an order priced entirely from the menu, never from client prices."""
    table = Table.resolve(table_identifier)
    if table is None:
        raise OrderError("Table not found", status_code=404)
    customer_name = (customer_name or "").strip()
    customer_phone = (customer_phone or "").strip()
    if not customer_name or not customer_phone:
        raise OrderError("Customer name and phone are required")

    lines = _clean_items(items)
    subtotal = sum((price * qty for _, price, qty, _, _ in lines), Decimal(0))

    discount = Decimal(0)
    promo = None
    if promo_code:
        promo = Promo.objects.select_for_update().filter(code=promo_code.strip().upper()).first()
        if promo is None or not promo.is_valid_now():
            raise OrderError(f"Invalid promo code: {promo_code}")
        if subtotal < promo.minimum_order:
            raise OrderError(f"Minimum purchase amount for this promo is Rp {int(promo.minimum_order):,}".replace(",", "."))
        discount = calculate_promo_discount(promo, subtotal)

    totals = order_totals(subtotal, discount)
    order = Order.objects.create(
        order_number=gen_order_number(),
        table=table,
        session_id=table.current_session_id or gen_session_id(table.table_number),
        customer_name=customer_name,
        customer_phone=customer_phone,
        customer_email=(customer_email or "").strip(),
        customer_notes=customer_notes or "",
        promo_code=promo.code if promo else "",
        **totals,
    )
    OrderItem.objects.bulk_create([
        OrderItem(
            order=order,
            menu_item=menu_item,
            item_name=menu_item.name,
            item_price=price,
            quantity=qty,
            customizations=customizations,
            notes=notes,
            subtotal=price * qty,
        )
        for menu_item, price, qty, customizations, notes in lines
    ])
    if promo is not None:
        Promo.objects.filter(pk=promo.pk).update(current_uses=F("current_uses") + 1)

    if table.status != "occupied":
        table.status = "occupied"
        table.occupied_since = timezone.now()
        table.current_session_id = order.session_id
        table.save(update_fields=["status", "occupied_since", "current_session_id", "updated_at"])

    logger.info("Order %s created for table %s total=%s", order.order_number, table.table_number, order.total_amount)
    return order


def find_order(order_id):
    try:
        return Order.objects.select_related("table").get(pk=order_id)
    except (Order.DoesNotExist, ValidationError, ValueError):
        return None


def estimated_completion(order):
    return order.created_at + ESTIMATED_COMPLETION if order.created_at else None


def verify_payment(order: Order) -> Order:
    """Cashier approval: confirm the order and settle its transactions.

    Idempotent; the customer receipt goes out once per order.
    """
    should_send = False
    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        if locked.payment_status != "verified":
            if locked.status == "pending":
                locked.transition_to("confirmed", save=False)
            elif locked.is_terminal:
                raise OrderError(f"Order {locked.order_number} is already {locked.status}", status_code=409)
            now = timezone.now()
            locked.payment_status = "verified"
            locked.payment_verified_at = now
            locked.save()
            locked.transactions.exclude(status="completed").update(
                status="completed", verified_at=now, updated_at=now,
            )
            logger.info("Payment verified for order %s", locked.order_number)
        if not locked.receipt_sent:
            locked.receipt_sent = True
            locked.save(update_fields=["receipt_sent", "updated_at"])
            should_send = True
    if should_send:
        # Send after commit to avoid emailing on rolled-back tx
        transaction.on_commit(lambda: send_payment_receipt(order=locked))
    return locked


@transaction.atomic
def reject_payment(order: Order) -> Order:
    """Send the order back to waiting for payment."""
    locked = Order.objects.select_for_update().get(pk=order.pk)
    if locked.is_terminal:
        raise OrderError(f"Order {locked.order_number} is already {locked.status}", status_code=409)
    locked.payment_status = "pending"
    locked.payment_verified_at = None
    if locked.status == "confirmed":
        locked.status = "pending"
        locked.confirmed_at = None
    locked.save()
    locked.transactions.exclude(status__in=["expired", "failed"]).update(
        status="pending", processed_at=None, verified_at=None, updated_at=timezone.now(),
    )
    logger.info("Payment rejected for order %s", locked.order_number)
    return locked


def update_order_status(order: Order, status) -> Order:
    """Staff status change: ``confirmed`` verifies, ``pending`` rejects."""
    if status == "confirmed" and order.status == "pending":
        return verify_payment(order)
    if status == "pending":
        return reject_payment(order)
    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        locked.transition_to(status)
    logger.info("Order %s moved to %s", locked.order_number, status)
    return locked


def update_payment_method(order: Order, method) -> Order:
    if method not in dict(Order.PAYMENT_METHOD_CHOICES):
        raise OrderError(f"Unsupported payment method: {method}")
    if order.is_terminal:
        raise OrderError(f"Order {order.order_number} is already {order.status}", status_code=409)
    order.payment_method = method
    order.save(update_fields=["payment_method", "updated_at"])
    return order


def progress_steps(order: Order) -> list:
    steps = [{"step": "Pesanan Diterima", "completed": True, "timestamp": order.created_at}]
    kitchen = ("confirmed", "preparing", "ready", "completed")

    if order.payment_status == "verified":
        steps.append({"step": "Pembayaran Diverifikasi", "completed": True, "timestamp": order.payment_verified_at})
    elif order.status != "cancelled":
        waiting = "Menunggu Verifikasi Pembayaran" if order.payment_status == "processing" else "Menunggu Pembayaran"
        steps.append({"step": waiting, "completed": False})

    if order.status in kitchen:
        steps.append({"step": "Pesanan Dikonfirmasi Dapur", "completed": True, "timestamp": order.confirmed_at})
    if order.status in kitchen[1:]:
        steps.append({"step": "Sedang Diproses di Dapur", "completed": True, "timestamp": order.preparing_at})
    elif order.status == "confirmed":
        steps.append({"step": "Menunggu Diproses di Dapur", "completed": False})
    if order.status in kitchen[2:]:
        steps.append({"step": "Siap Disajikan", "completed": True, "timestamp": order.ready_at})
    elif order.status == "preparing":
        steps.append({"step": "Akan Segera Siap", "completed": False})
    if order.status == "completed":
        steps.append({"step": "Pesanan Selesai", "completed": True, "timestamp": order.completed_at})
    elif order.status == "ready":
        steps.append({"step": "Menunggu Diantar", "completed": False})
    if order.status == "cancelled":
        steps.append({"step": "Pesanan Dibatalkan", "completed": True, "timestamp": order.cancelled_at})
    return steps
