import logging
from datetime import timedelta

from django.utils import timezone
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from kuring.auth import staff_token_required
from kuring.views import api_error, api_ok, json_body

from . import services
from .models import Order, OrderError, Promo

logger = logging.getLogger(__name__)

PENDING_WINDOW = timedelta(hours=24)


def _iso(value):
    return value.isoformat() if value else None


def _order_items(order):
    return [
        {
            "id": item.pk,
            "menu_item_id": str(item.menu_item_id),
            "item_name": item.item_name,
            "item_price": int(item.item_price),
            "quantity": item.quantity,
            "customizations": item.customizations,
            "notes": item.notes,
            "subtotal": int(item.subtotal),
        }
        for item in order.items.all()
    ]


def serialize_order(order, with_items=True):
    data = {
        "id": str(order.pk),
        "order_number": order.order_number,
        "table_id": str(order.table_id),
        "table_number": order.table.table_number,
        "session_id": order.session_id,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "customer_email": order.customer_email,
        "customer_notes": order.customer_notes,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method or None,
        "subtotal": int(order.subtotal),
        "tax_amount": int(order.tax_amount),
        "service_charge": int(order.service_charge),
        "discount_amount": int(order.discount_amount),
        "total_amount": int(order.total_amount),
        "promo_code": order.promo_code or None,
        "payment_proof_url": order.payment_proof_url or None,
        "created_at": _iso(order.created_at),
        "payment_verified_at": _iso(order.payment_verified_at),
        "updated_at": _iso(order.updated_at),
        "estimated_completion": _iso(services.estimated_completion(order)),
    }
    if with_items:
        data["items"] = _order_items(order)
    return data


def _lookup(order_id):
    order = services.find_order(order_id)
    if order is None:
        return None, api_error("Order not found", status=404)
    return order, None


@csrf_exempt
@require_http_methods(["GET", "POST"])
def order_view(request):
    if request.method == "GET":
        order_id = request.GET.get("id", "")
        if not order_id:
            return api_error("Order ID is required")
        order, missing = _lookup(order_id)
        return missing or api_ok(serialize_order(order))

    body = json_body(request)
    if body is None:
        return api_error("Invalid JSON body")
    required = ["table_id", "customer_name", "customer_phone", "items"]
    missing = [k for k in required if not body.get(k)]
    if missing:
        return api_error(f"Missing required fields: {', '.join(missing)}")

    try:
        order = services.create_order(
            table_identifier=body["table_id"],
            customer_name=body["customer_name"],
            customer_phone=body["customer_phone"],
            items=body["items"],
            promo_code=body.get("promo_code") or None,
            customer_email=body.get("customer_email") or "",
            customer_notes=body.get("customer_notes") or body.get("notes") or "",
        )
    except OrderError as e:
        logger.error("Order rejected for table %s: %s", body.get("table_id"), e)
        return api_error(str(e), status=e.status_code)

    return api_ok({
        "order_id": str(order.pk),
        "order_number": order.order_number,
        "total_amount": int(order.total_amount),
        "table_number": order.table.table_number,
        "session_id": order.session_id,
        "estimated_completion": _iso(services.estimated_completion(order)),
    }, status=201)


@require_GET
def payment_status_view(request, order_id: str):
    order, missing = _lookup(order_id)
    if missing:
        return missing
    return api_ok({
        "id": str(order.pk),
        "payment_status": order.payment_status,
        "status": order.status,
        "order_number": order.order_number,
    })


@require_GET
def order_status_view(request, order_id: str):
    order, missing = _lookup(order_id)
    if missing:
        return missing
    steps = [
        dict(step, timestamp=_iso(step["timestamp"])) if "timestamp" in step else step
        for step in services.progress_steps(order)
    ]
    return api_ok({
        "id": str(order.pk),
        "status": order.status,
        "payment_status": order.payment_status,
        "estimated_completion": _iso(services.estimated_completion(order)),
        "progress_steps": steps,
    })


@csrf_exempt
@require_POST
def update_payment_method_view(request, order_id: str):
    body = json_body(request)
    if not body or not body.get("payment_method"):
        return api_error("payment_method is required")
    order, missing = _lookup(order_id)
    if missing:
        return missing
    try:
        order = services.update_payment_method(order, body["payment_method"])
    except OrderError as e:
        return api_error(str(e), status=e.status_code)
    return api_ok({"id": str(order.pk), "payment_method": order.payment_method})


@csrf_exempt
@require_POST
@staff_token_required
def approve_view(request):
    body = json_body(request)
    if not body:
        return api_error("Invalid JSON body")
    order_id, status = body.get("order_id"), body.get("status")
    if not order_id or not status:
        return api_error("Missing required fields: order_id, status")
    order, missing = _lookup(order_id)
    if missing:
        return missing
    try:
        order = services.update_order_status(order, status)
    except OrderError as e:
        logger.error("Staff %s could not set order %s to %s: %s", request.staff_id, order.order_number, status, e)
        return api_error(str(e), status=e.status_code)
    logger.info("Staff %s set order %s to %s", request.staff_id, order.order_number, status)
    return api_ok(serialize_order(order, with_items=False))


@require_GET
@staff_token_required
def pending_orders_view(request):
    since = timezone.now() - PENDING_WINDOW
    qs = (
        Order.objects.select_related("table")
        .prefetch_related("items")
        .filter(created_at__gte=since, payment_status__in=["pending", "processing"])
        .exclude(status__in=Order.TERMINAL_STATUSES)
        .order_by("-created_at")
    )
    return api_ok([serialize_order(order) for order in qs])


@csrf_exempt
@require_POST
def promo_validate_view(request):
    body = json_body(request)
    if body is None:
        return api_error("Invalid JSON body")
    code = body.get("code")
    order_total = body.get("order_total")
    if not code or not isinstance(code, str):
        return api_error("Kode promo tidak valid")
    if isinstance(order_total, bool) or not isinstance(order_total, (int, float)) or order_total <= 0:
        return api_error("Total pesanan tidak valid")
    return api_ok(services.validate_promo(code, order_total))


@require_GET
def promo_list_view(request):
    now = timezone.now()
    promos = [p for p in Promo.objects.filter(is_active=True).order_by("code") if p.is_valid_now(now)]
    return api_ok([
        {
            "code": p.code,
            "name": p.name,
            "description": p.description,
            "discount_type": p.discount_type,
            "discount_value": int(p.discount_value),
            "minimum_order": int(p.minimum_order),
            "maximum_discount": int(p.maximum_discount) if p.maximum_discount is not None else None,
            "valid_until": _iso(p.valid_until),
        }
        for p in promos
    ])
