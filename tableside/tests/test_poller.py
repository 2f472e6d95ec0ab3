import threading
from datetime import datetime, timedelta, timezone
from unittest import TestCase, mock

from tableside.api import ApiError
from tableside.poller import QRIS_POLL_INTERVAL, CONFIRMATION_POLL_INTERVAL, RepeatingTask, StatusPoller

T0 = datetime(2024, 10, 1, 12, 0, tzinfo=timezone.utc)


def status(payment_status):
    return {"id": "o-1", "payment_status": payment_status, "status": "pending", "order_number": "KRG-1"}


class RepeatingTaskTests(TestCase):
    def test_runs_immediately_and_repeats_until_stopped(self):
        calls = []
        twice = threading.Event()

        def fn():
            calls.append(1)
            if len(calls) >= 2:
                twice.set()

        task = RepeatingTask(0.01, fn)
        with task:
            self.assertTrue(twice.wait(2))
        count = len(calls)
        self.assertFalse(task.running)
        threading.Event().wait(0.05)
        self.assertEqual(len(calls), count)

    def test_stop_is_idempotent_and_start_once(self):
        task = RepeatingTask(10, lambda: None)
        self.assertTrue(task.start())
        self.assertFalse(task.start())
        task.stop()
        task.stop()
        self.assertFalse(task.running)

    def test_failing_fn_keeps_running(self):
        calls = []
        again = threading.Event()

        def fn():
            calls.append(1)
            if len(calls) > 1:
                again.set()
            raise RuntimeError("boom")

        with self.assertLogs("tableside.poller", level="ERROR"):
            with RepeatingTask(0.01, fn):
                self.assertTrue(again.wait(2))


class StatusPollerTests(TestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.on_verified = mock.Mock()
        self.on_clear = mock.Mock()

    def _poller(self, **kwargs):
        return StatusPoller(self.client, kwargs.pop("order_id", "o-1"), self.on_verified,
                            on_session_clear=self.on_clear, **kwargs)

    def test_intervals(self):
        self.assertEqual(QRIS_POLL_INTERVAL, 5)
        self.assertEqual(CONFIRMATION_POLL_INTERVAL, 10)

    def test_no_order_id_never_starts(self):
        poller = self._poller(order_id="")
        self.assertFalse(poller.start())
        self.client.get_payment_status.assert_not_called()

    def test_verified_navigates_exactly_once(self):
        self.client.get_payment_status.side_effect = [status("pending"), status("verified"), status("verified")]
        poller = self._poller()
        poller.tick()
        poller.tick()
        poller.tick()

        self.assertEqual(poller.outcome, "verified")
        self.assertEqual(self.client.get_payment_status.call_count, 2)
        self.on_verified.assert_called_once()
        self.on_clear.assert_called_once()

    def test_racing_ticks_navigate_once(self):
        self.client.get_payment_status.return_value = status("verified")
        poller = self._poller()
        threads = [threading.Thread(target=poller.check) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.on_verified.assert_called_once()

    def test_failed_check_is_ignored(self):
        self.client.get_payment_status.side_effect = [ApiError("offline"), status("verified")]
        poller = self._poller()
        with self.assertLogs("tableside.poller", level="WARNING"):
            poller.tick()
        self.assertIsNone(poller.outcome)
        poller.tick()
        self.assertEqual(poller.outcome, "verified")

    def test_threaded_poll_stops_after_verification(self):
        self.client.get_payment_status.side_effect = [status("pending"), status("verified")]
        done = threading.Event()
        self.on_verified.side_effect = lambda data: done.set()
        poller = self._poller(interval=0.01)
        self.assertTrue(poller.start())
        self.assertTrue(done.wait(2))
        poller.stop()
        self.assertEqual(self.client.get_payment_status.call_count, 2)

    def test_expiry_without_verification(self):
        self.client.get_payment_status.return_value = status("pending")
        on_expired = mock.Mock()
        clock = mock.Mock(return_value=T0 + timedelta(minutes=15, seconds=1))
        poller = self._poller(expires_at=T0 + timedelta(minutes=15), on_expired=on_expired, clock=clock)
        poller.tick()

        self.assertEqual(poller.outcome, "expired")
        on_expired.assert_called_once_with()
        self.on_verified.assert_not_called()
        self.client.get_payment_status.assert_called_once_with("o-1")

    def test_verification_wins_at_expiry(self):
        self.client.get_payment_status.return_value = status("verified")
        clock = mock.Mock(return_value=T0 + timedelta(minutes=16))
        poller = self._poller(expires_at=T0 + timedelta(minutes=15), clock=clock)
        poller.tick()

        self.assertEqual(poller.outcome, "verified")
        self.on_verified.assert_called_once()
