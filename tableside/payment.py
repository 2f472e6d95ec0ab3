import logging
from datetime import datetime, timedelta, timezone
from functools import partial

from .poller import CONFIRMATION_POLL_INTERVAL, QRIS_POLL_INTERVAL, StatusPoller
from .session import clear_session_data, save_current_order, save_payment_data

logger = logging.getLogger(__name__)

EXPIRED_LABEL = "Expired"


class PaymentContextError(Exception):
    pass


def _now():
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class PaymentSession:
    """Client view of one payment transaction as returned by ``/api/payments``."""

    def __init__(self, data: dict, table_id=None):
        self.data = data
        self.table_id = table_id
        self.transaction_id = data["transaction_id"]
        self.order_id = data["order_id"]
        self.method = data["method"]
        self.amount_to_pay = int(data.get("amount_to_pay", data.get("amount", 0)))
        self.formatted_amount = data.get("formatted_amount", "")
        self.unique_code = data.get("unique_code", 0)
        self.instructions = list(data.get("instructions") or [])
        self.expires_at = parse_timestamp(data["expires_at"])
        self.status = data.get("status", "pending")
        self.proof_url = data.get("proof_url")

    @property
    def poll_interval(self) -> int:
        return QRIS_POLL_INTERVAL if self.method == "qris" else CONFIRMATION_POLL_INTERVAL

    def time_remaining(self, now=None) -> timedelta:
        return max(timedelta(0), self.expires_at - (now or _now()))

    def is_expired(self, now=None) -> bool:
        if self.status == "expired":
            return True
        return (now or _now()) >= self.expires_at

    def countdown_label(self, now=None) -> str:
        """``MM:SS`` (``H:MM:SS`` past an hour), or ``Expired``."""
        if self.is_expired(now):
            return EXPIRED_LABEL
        seconds = int(self.time_remaining(now).total_seconds())
        hours, rest = divmod(seconds, 3600)
        minutes, seconds = divmod(rest, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes:02d}:{seconds:02d}"

    def can_upload_proof(self, now=None) -> bool:
        if self.method == "cash" or self.status in ("completed", "expired", "failed"):
            return False
        return not self.is_expired(now)

    def poller(self, client, on_verified, store=None, on_expired=None, clock=None, cart=None) -> StatusPoller:
        """Status poller for this payment.

        On verification the table's stored session is cleared, along with
        ``cart`` (this tab's cart, whose store is used when ``store`` is not
        given).
        """
        if store is None and cart is not None:
            store = cart.store
        clear = None
        if store is not None and self.table_id:
            clear = partial(clear_session_data, store, self.table_id, cart=cart)
        return StatusPoller(
            client,
            self.order_id,
            on_verified,
            interval=self.poll_interval,
            on_session_clear=clear,
            expires_at=self.expires_at,
            on_expired=on_expired,
            clock=clock,
        )


def start_payment(client, order_id, method, table_id, bank_code=None, amount=None, store=None) -> PaymentSession:
    """Open a payment for an existing order; fails before any request without context."""
    if not order_id:
        raise PaymentContextError("Order ID tidak ditemukan")
    if not table_id:
        raise PaymentContextError("Nomor meja tidak ditemukan")
    data = client.create_payment(order_id, method, bank_code=bank_code, amount=amount)
    session = PaymentSession(data, table_id=table_id)
    if store is not None:
        save_current_order(store, order_id)
        save_payment_data(store, data)
    logger.info("Payment %s started for order %s via %s", session.transaction_id, order_id, session.method)
    return session
