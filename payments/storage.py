import logging

from django.conf import settings
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone

from orders.models import Order

from .emails import send_proof_notification
from .models import PaymentTransaction
from .services import PaymentError, find_transaction
from .utils import proof_filename
from .validators import validate_proof_file

logger = logging.getLogger(__name__)


def _upload_dir():
    return getattr(settings, "PAYMENT_PROOF_UPLOAD_DIR", "payment-proofs").strip("/")


def _check_accepts_proof(txn, order):
    if order.is_terminal:
        raise PaymentError(f"Order {order.order_number} is already {order.status}", status_code=409)
    if txn.status == "completed" or order.payment_status == "verified":
        raise PaymentError("Payment has already been verified", status_code=409)
    if txn.is_expired():
        raise PaymentError("Payment has expired, please create a new payment", status_code=409)
    if txn.method == "cash":
        raise PaymentError("Cash payments are confirmed at the cashier")


def store_payment_proof(order_id, payment_id, uploaded_file) -> PaymentTransaction:
    """Persist a payment proof image and put the payment up for verification.

    The newest upload replaces the previous proof, whose file is removed.
    Completed or expired payments, and orders already completed or
    cancelled, take no further proofs. The checks are repeated on the locked
    rows so a verification landing mid-upload is not overwritten.
    """
    if not order_id or not payment_id:
        raise PaymentError("Missing required fields: order_id, payment_id")
    if uploaded_file is None:
        raise PaymentError("No file provided")
    validate_proof_file(getattr(uploaded_file, "content_type", ""), getattr(uploaded_file, "size", 0))

    txn = find_transaction(payment_id)
    if txn is None or str(txn.order_id) != str(order_id):
        raise PaymentError("Payment not found for this order", status_code=404)
    _check_accepts_proof(txn, txn.order)

    name = f"{_upload_dir()}/{proof_filename(txn.order_id, uploaded_file.name, uploaded_file.content_type)}"
    stored_name = default_storage.save(name, uploaded_file)
    url = default_storage.url(stored_name)

    now = timezone.now()
    try:
        with transaction.atomic():
            order = Order.objects.select_for_update().select_related("table").get(pk=txn.order_id)
            locked = PaymentTransaction.objects.select_for_update().get(pk=txn.pk)
            _check_accepts_proof(locked, order)
            previous = locked.proof_file

            locked.proof_file = stored_name
            locked.proof_image_url = url
            locked.status = "processing"
            locked.processed_at = now
            locked.save()

            order.payment_proof_url = url
            if order.payment_status in ("pending", "failed"):
                order.payment_status = "processing"
            order.save(update_fields=["payment_proof_url", "payment_status", "updated_at"])
            locked.order = order
    except Exception:
        default_storage.delete(stored_name)
        raise

    if previous and previous != stored_name:
        default_storage.delete(previous)

    logger.info("Proof stored for order %s payment %s at %s", order.order_number, locked.pk, stored_name)
    send_proof_notification(payment=locked)
    return locked
