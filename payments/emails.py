import logging
from typing import List

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from orders.utils import format_rupiah

logger = logging.getLogger(__name__)


def _fail_silently() -> bool:
    return getattr(settings, "EMAIL_FAIL_SILENTLY", True)


def _from_email():
    return getattr(settings, "DEFAULT_FROM_EMAIL", None) or getattr(settings, "EMAIL_HOST_USER", None)


def _cashier_recipients() -> List[str]:
    # Comma-separated list via env or settings; fall back to DEFAULT_FROM_EMAIL/host user
    raw = getattr(settings, "PAYMENTS_ADMIN_EMAILS", None)
    if not raw:
        raw = ",".join([
            getattr(settings, "EMAIL_HOST_USER", "") or "",
            getattr(settings, "DEFAULT_FROM_EMAIL", "") or "",
        ])
    emails = [e.strip() for e in (raw or "").split(",") if e and e.strip()]
    # Deduplicate while preserving order
    seen = set()
    uniq: List[str] = []
    for e in emails:
        if e.lower() not in seen:
            seen.add(e.lower())
            uniq.append(e)
    return uniq


def _send(subject, template, context, recipients):
    text = render_to_string(f"emails/{template}.txt", context)
    html = render_to_string(f"emails/{template}.html", context)
    msg = EmailMultiAlternatives(subject, text, _from_email(), recipients)
    msg.attach_alternative(html, "text/html")
    msg.send(fail_silently=_fail_silently())


def send_payment_receipt(*, order) -> None:
    """Send the customer a receipt for a verified order, if they left an email."""
    if not order.customer_email:
        return
    context = {
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "table_number": order.table.table_number,
        "items": list(order.items.all()),
        "subtotal": format_rupiah(order.subtotal),
        "tax_amount": format_rupiah(order.tax_amount),
        "service_charge": format_rupiah(order.service_charge),
        "discount_amount": format_rupiah(order.discount_amount),
        "total_amount": format_rupiah(order.total_amount),
        "payment_method": order.get_payment_method_display(),
        "merchant_name": getattr(settings, "PAYMENT_MERCHANT_NAME", ""),
    }
    try:
        subject = f"Pembayaran diterima: {order.order_number} - {context['total_amount']}"
        _send(subject, "payment_receipt_customer", context, [order.customer_email])
    except Exception:
        logger.exception("Failed to send payment receipt to %s", order.customer_email)


def send_proof_notification(*, payment) -> None:
    """Tell the cashier a transfer proof is waiting for verification."""
    order = payment.order
    context = {
        "order_number": order.order_number,
        "table_number": order.table.table_number,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "method": payment.get_method_display(),
        "amount": format_rupiah(payment.amount),
        "proof_url": payment.proof_image_url,
        "transaction_id": payment.pk,
    }
    try:
        cashiers = _cashier_recipients()
        if cashiers:
            subject = f"Bukti pembayaran baru: {order.order_number} - {context['amount']}"
            _send(subject, "payment_proof_cashier", context, cashiers)
    except Exception:
        logger.exception("Failed to send proof notification for %s", order.order_number)
