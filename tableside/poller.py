import logging
import threading
from datetime import datetime, timezone

from .api import ApiError

logger = logging.getLogger(__name__)

QRIS_POLL_INTERVAL = 5
CONFIRMATION_POLL_INTERVAL = 10
VERIFIED_STATUSES = ("verified", "completed")


class RepeatingTask:
    """Run ``fn`` now and then every ``interval`` seconds until stopped.

    ``stop()`` may be called any number of times, from any thread, including
    from inside ``fn``.
    """

    def __init__(self, interval, fn, name=None):
        self.interval = interval
        self.fn = fn
        self.name = name or f"repeating-{getattr(fn, '__name__', 'task')}"
        self._stopped = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stopped.is_set()

    def start(self) -> bool:
        if self._thread is not None:
            return False
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return True

    def _run(self):
        while not self._stopped.is_set():
            try:
                self.fn()
            except Exception:
                logger.exception("%s failed", self.name)
            if self._stopped.wait(self.interval):
                break

    def stop(self, timeout=None):
        self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()


class StatusPoller:
    """Watch an order's payment status until the cashier verifies it.

    On verification the timer stops, the table's session state is cleared and
    ``on_verified`` runs exactly once. With ``expires_at`` set, reaching the
    deadline triggers one last check; a verified answer still wins, anything
    else ends the poll as ``expired``.
    """

    def __init__(self, client, order_id, on_verified, interval=CONFIRMATION_POLL_INTERVAL,
                 on_session_clear=None, expires_at=None, on_expired=None, clock=None):
        self.client = client
        self.order_id = order_id
        self.on_verified = on_verified
        self.interval = interval
        self.on_session_clear = on_session_clear
        self.expires_at = expires_at
        self.on_expired = on_expired
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.outcome = None
        self._lock = threading.Lock()
        self._task = None

    @property
    def finished(self) -> bool:
        return self.outcome is not None

    def start(self) -> bool:
        if not self.order_id:
            logger.warning("Status poller not started: no order id")
            return False
        if self._task is not None:
            return False
        self._task = RepeatingTask(self.interval, self.tick, name=f"status-poller-{self.order_id}")
        return self._task.start()

    def stop(self):
        if self._task is not None:
            self._task.stop()

    def tick(self):
        if self.finished:
            return
        if self.expires_at is not None and self.clock() >= self.expires_at:
            self._expire()
            return
        self.check()

    def check(self) -> bool:
        """One status request; True once the payment is verified."""
        try:
            data = self.client.get_payment_status(self.order_id)
        except ApiError as e:
            logger.warning("Payment status check for %s failed: %s", self.order_id, e)
            return False
        if (data or {}).get("payment_status") in VERIFIED_STATUSES:
            self._finish("verified", data)
            return True
        return False

    def _expire(self):
        if self.check():
            return
        self._finish("expired", None)

    def _finish(self, outcome, data):
        with self._lock:
            if self.outcome is not None:
                return
            self.outcome = outcome
        self.stop()
        if outcome == "verified":
            logger.info("Payment for order %s verified", self.order_id)
            if self.on_session_clear is not None:
                self.on_session_clear()
            self.on_verified(data)
        else:
            logger.info("Payment window for order %s expired", self.order_id)
            if self.on_expired is not None:
                self.on_expired()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
