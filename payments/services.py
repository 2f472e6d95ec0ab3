import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from orders.utils import format_rupiah

from .models import PaymentTransaction
from .utils import gen_payment_reference, gen_unique_code, normalize_method

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal(1)
UNIQUE_CODE_ATTEMPTS = 10


class PaymentError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code


def bank_accounts():
    return list(getattr(settings, "PAYMENT_BANK_ACCOUNTS", []))


def _pick_bank_account(bank_code=None):
    accounts = bank_accounts()
    if not accounts:
        raise PaymentError("Bank transfer is not available", status_code=503)
    if bank_code:
        for account in accounts:
            if account["bank_code"].upper() == str(bank_code).upper():
                return account
        raise PaymentError(f"Unknown bank: {bank_code}")
    return accounts[0]


def _expiry_for(method, now):
    if method == "qris":
        return now + timedelta(minutes=getattr(settings, "PAYMENT_QRIS_EXPIRY_MINUTES", 15))
    if method == "bank_transfer":
        return now + timedelta(hours=getattr(settings, "PAYMENT_TRANSFER_EXPIRY_HOURS", 24))
    return now + timedelta(minutes=getattr(settings, "PAYMENT_CASH_EXPIRY_MINUTES", 60))


def _free_unique_code(base_amount, now):
    """A unique code whose resulting amount no open transfer is already using."""
    code = gen_unique_code()
    for _ in range(UNIQUE_CODE_ATTEMPTS):
        taken = PaymentTransaction.objects.filter(
            method="bank_transfer",
            status__in=["pending", "processing"],
            amount=base_amount + code,
            expires_at__gt=now,
        ).exists()
        if not taken:
            break
        code = gen_unique_code()
    return code


def _check_client_amount(order, amount):
    if amount in (None, ""):
        return
    try:
        claimed = Decimal(str(amount))
    except InvalidOperation:
        raise PaymentError(f"Invalid amount: {amount}")
    if abs(claimed - order.total_amount) > AMOUNT_TOLERANCE:
        raise PaymentError(
            f"Amount mismatch. Expected: {int(order.total_amount)}, Received: {amount}"
        )


def initiate_payment(order, method, bank_code=None, amount=None) -> dict:
    """Open a payment session for ``order`` and return its instruction payload.

    Fails before anything is written if the order cannot be paid, the method
    is unknown, or a client-supplied ``amount`` disagrees with the order total.
    """
    if order is None:
        raise PaymentError("Order not found", status_code=404)
    method = normalize_method(method)
    if method not in dict(PaymentTransaction.METHOD_CHOICES):
        valid = ", ".join(dict(PaymentTransaction.METHOD_CHOICES))
        raise PaymentError(f"Invalid payment method: {method}. Valid methods: {valid}")
    if order.status == "cancelled":
        raise PaymentError("Order sudah dibatalkan", status_code=409)
    if order.is_paid or order.status == "completed":
        raise PaymentError("Order sudah dibayar", status_code=409)
    _check_client_amount(order, amount)

    now = timezone.now()
    base_amount = order.total_amount
    fields = {"method": method, "base_amount": base_amount, "expires_at": _expiry_for(method, now)}

    if method == "qris":
        fields.update(
            amount=base_amount,
            qr_payload=getattr(settings, "PAYMENT_QRIS_PAYLOAD", ""),
            payment_reference=gen_payment_reference("QR"),
        )
    elif method == "bank_transfer":
        account = _pick_bank_account(bank_code)
        code = _free_unique_code(base_amount, now)
        fields.update(
            unique_code=code,
            amount=base_amount + code,
            bank_code=account["bank_code"],
            bank_name=account["bank_name"],
            account_number=account["account_number"],
            account_name=account["account_name"],
            payment_reference=gen_payment_reference("TF"),
        )
    else:
        fields.update(amount=base_amount, payment_reference=gen_payment_reference("CS"))

    with transaction.atomic():
        # a new session supersedes any earlier unpaid one for the order
        order.transactions.filter(status="pending").update(status="expired", updated_at=now)
        txn = PaymentTransaction.objects.create(order=order, **fields)
        order.payment_method = method
        order.save(update_fields=["payment_method", "updated_at"])

    logger.info("Payment %s opened for order %s: %s %s", txn.pk, order.order_number, method, txn.amount)
    return describe_payment(txn)


def describe_payment(txn: PaymentTransaction) -> dict:
    amount = int(txn.amount)
    data = {
        "transaction_id": str(txn.pk),
        "payment_id": str(txn.pk),
        "order_id": str(txn.order_id),
        "order_number": txn.order.order_number,
        "method": txn.method,
        "base_amount": int(txn.base_amount),
        "unique_code": txn.unique_code,
        "amount": amount,
        "amount_to_pay": amount,
        "formatted_amount": format_rupiah(amount),
        "payment_reference": txn.payment_reference,
        "expires_at": txn.expires_at.isoformat(),
        "status": txn.status,
        "proof_url": txn.proof_image_url or None,
        "created_at": txn.created_at.isoformat() if txn.created_at else None,
    }
    formatted = data["formatted_amount"]

    if txn.method == "qris":
        data.update({
            "qr_code": txn.qr_payload,
            "merchant_name": getattr(settings, "PAYMENT_MERCHANT_NAME", ""),
            "message": "Scan QR code dan masukkan nominal pembayaran",
            "next_step": "Scan QR code dengan aplikasi e-wallet, lalu masukkan nominal yang tertera",
            "instructions": [
                "Buka aplikasi e-wallet (GoPay, OVO, Dana, ShopeePay)",
                'Pilih fitur "Bayar" atau "Scan QR"',
                "Scan QR code di bawah ini",
                f"Masukkan nominal: {formatted}",
                "Konfirmasi pembayaran",
            ],
        })
    elif txn.method == "bank_transfer":
        data.update({
            "bank_account": {
                "bank_code": txn.bank_code,
                "bank_name": txn.bank_name,
                "account_number": txn.account_number,
                "account_name": txn.account_name,
            },
            "bank_options": bank_accounts(),
            "message": "Transfer ke rekening berikut",
            "next_step": "Transfer sesuai nominal dan upload bukti pembayaran",
            "instructions": [
                f"Transfer ke {txn.bank_name} {txn.account_number} a.n. {txn.account_name}",
                f"Transfer tepat {formatted} (termasuk kode unik {txn.unique_code})",
                "Simpan bukti transfer",
                "Upload bukti transfer melalui tombol di bawah",
                "Tunggu verifikasi dari kasir",
            ],
        })
    else:
        data.update({
            "message": "Silakan bayar tunai kepada kasir",
            "next_step": "Tunjukkan pesanan ini kepada kasir untuk pembayaran tunai",
            "instructions": [
                f"Datang ke kasir dan sebutkan nomor pesanan {txn.order.order_number}",
                f"Bayar tunai sebesar {formatted}",
                "Tunggu kasir mengonfirmasi pembayaran",
            ],
        })
    return data


def overall_status(txn: PaymentTransaction, now=None) -> dict:
    """Collapse transaction and order state into what the customer sees next."""
    if txn.status == "completed" or txn.order.payment_status == "verified":
        return {"status": "completed", "message": "Pembayaran berhasil diverifikasi", "next_action": None}
    if txn.status == "processing" and txn.proof_image_url:
        return {"status": "pending_verification", "message": "Menunggu verifikasi dari kasir", "next_action": None}
    if txn.status == "processing":
        return {"status": "processing", "message": "Pembayaran sedang diproses", "next_action": None}
    if txn.status == "failed":
        return {"status": "failed", "message": "Pembayaran gagal",
                "next_action": "Silakan coba lagi atau hubungi kasir"}
    if txn.is_expired(now):
        return {"status": "expired", "message": "Pembayaran kadaluarsa",
                "next_action": "Silakan buat pembayaran baru"}
    if txn.method == "bank_transfer":
        return {"status": "waiting_proof", "message": "Menunggu upload bukti pembayaran",
                "next_action": "Upload bukti transfer"}
    if txn.method == "qris":
        return {"status": "waiting_payment", "message": "Menunggu pembayaran QRIS",
                "next_action": "Scan QR code dengan aplikasi e-wallet"}
    return {"status": "waiting_payment", "message": "Menunggu pembayaran tunai", "next_action": "Bayar ke kasir"}


def transaction_status(txn: PaymentTransaction) -> dict:
    order = txn.order
    data = overall_status(txn)
    data.update({
        "transaction_id": str(txn.pk),
        "payment_method": txn.method,
        "amount": int(txn.amount),
        "created_at": txn.created_at.isoformat() if txn.created_at else None,
        "processed_at": txn.processed_at.isoformat() if txn.processed_at else None,
        "verified_at": txn.verified_at.isoformat() if txn.verified_at else None,
        "proof_url": txn.proof_image_url or None,
        "order": {
            "id": str(order.pk),
            "order_number": order.order_number,
            "status": order.status,
            "payment_status": order.payment_status,
            "total_amount": int(order.total_amount),
        },
    })
    return data


def match_transfer_amount(amount, now=None):
    """The single open, unexpired transfer expecting exactly ``amount``, else None."""
    try:
        amount = Decimal(str(amount))
    except InvalidOperation:
        return None
    now = now or timezone.now()
    candidates = list(
        PaymentTransaction.objects.select_related("order").filter(
            method="bank_transfer",
            status__in=["pending", "processing"],
            amount=amount,
            expires_at__gt=now,
        )[:2]
    )
    if len(candidates) != 1:
        return None
    return candidates[0]


def expire_stale_transactions(now=None) -> int:
    now = now or timezone.now()
    count = PaymentTransaction.objects.filter(status="pending", expires_at__lte=now).update(
        status="expired", updated_at=now,
    )
    if count:
        logger.info("Expired %s stale payment transactions", count)
    return count


def find_transaction(transaction_id):
    try:
        return PaymentTransaction.objects.select_related("order", "order__table").get(pk=transaction_id)
    except (PaymentTransaction.DoesNotExist, ValidationError, ValueError):
        return None
