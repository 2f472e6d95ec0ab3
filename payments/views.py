import logging

from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from kuring.views import api_error, api_ok, json_body
from orders.services import find_order

from .services import (
    PaymentError,
    describe_payment,
    find_transaction,
    initiate_payment,
    transaction_status,
)
from .storage import store_payment_proof
from .validators import ProofValidationError

logger = logging.getLogger(__name__)

PROOF_PENDING_MESSAGE = "Bukti pembayaran berhasil diupload. Menunggu verifikasi kasir."


@csrf_exempt
@require_http_methods(["GET", "POST"])
def payments_view(request):
    if request.method == "GET":
        transaction_id = request.GET.get("transaction_id", "")
        if not transaction_id:
            return api_error("Transaction ID is required")
        txn = find_transaction(transaction_id)
        if txn is None:
            return api_error("Transaction not found", status=404)
        return api_ok(describe_payment(txn))

    body = json_body(request)
    if body is None:
        return api_error("Invalid JSON body")
    required = ["order_id", "method"]
    missing = [k for k in required if not body.get(k)]
    if missing:
        return api_error(f"Missing required fields: {', '.join(missing)}")

    try:
        data = initiate_payment(
            find_order(body["order_id"]),
            body["method"],
            bank_code=body.get("bank_code"),
            amount=body.get("amount"),
        )
    except PaymentError as e:
        logger.error("Payment for order %s rejected: %s", body.get("order_id"), e)
        return api_error(str(e), status=e.status_code)
    return api_ok(data, status=201)


@require_GET
def transaction_status_view(request, transaction_id: str):
    txn = find_transaction(transaction_id)
    if txn is None:
        return api_error("Transaction not found", status=404)
    return api_ok(transaction_status(txn))


def _store(order_id, payment_id, uploaded):
    try:
        txn = store_payment_proof(order_id, payment_id, uploaded)
    except ProofValidationError as e:
        return api_error(str(e))
    except PaymentError as e:
        logger.error("Proof for payment %s rejected: %s", payment_id, e)
        return api_error(str(e), status=e.status_code)
    return api_ok({
        "proof_url": txn.proof_image_url,
        "filename": txn.proof_file.rsplit("/", 1)[-1],
        "transaction_id": str(txn.pk),
        "status": "pending_verification",
        "message": PROOF_PENDING_MESSAGE,
    })


@csrf_exempt
@require_POST
def upload_proof_view(request):
    return _store(
        request.POST.get("order_id", ""),
        request.POST.get("payment_id", ""),
        request.FILES.get("file"),
    )


@csrf_exempt
@require_POST
def transaction_proof_view(request, transaction_id: str):
    txn = find_transaction(transaction_id)
    if txn is None:
        return api_error("Transaction not found", status=404)
    return _store(str(txn.order_id), str(txn.pk), request.FILES.get("proof"))
