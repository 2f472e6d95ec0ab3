import json
import tempfile
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from menu.models import Table
from orders.models import Order

from . import services
from .models import PaymentTransaction
from .services import PaymentError


def make_order(total="85000", **kwargs):
    table, _ = Table.objects.get_or_create(table_number=3)
    defaults = dict(
        order_number=f"KRG-TEST-{Order.objects.count() + 1:04d}",
        table=table,
        customer_name="Dewi",
        customer_phone="0813",
        subtotal=Decimal(total),
        total_amount=Decimal(total),
    )
    defaults.update(kwargs)
    return Order.objects.create(**defaults)


class InitiatePaymentTests(TestCase):
    def setUp(self):
        self.order = make_order()

    def test_bank_transfer_adds_unique_code(self):
        with patch("payments.services.gen_unique_code", return_value=237):
            data = services.initiate_payment(self.order, "bank_transfer")

        self.assertEqual(data["unique_code"], 237)
        self.assertEqual(data["amount_to_pay"], 85237)
        self.assertEqual(data["formatted_amount"], "Rp 85.237")
        self.assertEqual(data["bank_account"]["bank_code"], "BCA")
        self.assertEqual(len(data["bank_options"]), 3)
        txn = PaymentTransaction.objects.get(pk=data["transaction_id"])
        self.assertEqual(txn.amount, Decimal("85237"))
        self.assertEqual(txn.base_amount, Decimal("85000"))
        self.assertAlmostEqual(
            (txn.expires_at - txn.created_at).total_seconds(), 24 * 3600, delta=5,
        )

    def test_unique_code_range(self):
        for _ in range(50):
            code = services.gen_unique_code()
            self.assertGreaterEqual(code, 1)
            self.assertLessEqual(code, 999)

    def test_requested_bank(self):
        data = services.initiate_payment(self.order, "transfer", bank_code="bni")
        self.assertEqual(data["method"], "bank_transfer")
        self.assertEqual(data["bank_account"]["bank_code"], "BNI")

    def test_unknown_bank(self):
        with self.assertRaises(PaymentError):
            services.initiate_payment(self.order, "bank_transfer", bank_code="XYZ")

    def test_qris_session(self):
        data = services.initiate_payment(self.order, "qris")
        self.assertEqual(data["amount_to_pay"], 85000)
        self.assertTrue(data["payment_reference"].startswith("QR"))
        self.assertIn("Masukkan nominal: Rp 85.000", data["instructions"])
        txn = PaymentTransaction.objects.get(pk=data["transaction_id"])
        self.assertAlmostEqual((txn.expires_at - txn.created_at).total_seconds(), 15 * 60, delta=5)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_method, "qris")
        self.assertEqual(self.order.payment_status, "pending")

    def test_cash_session(self):
        data = services.initiate_payment(self.order, "cash")
        self.assertEqual(data["amount"], 85000)
        self.assertEqual(data["status"], "pending")
        self.assertTrue(data["instructions"])

    def test_fails_fast(self):
        with self.assertRaises(PaymentError) as cm:
            services.initiate_payment(None, "qris")
        self.assertEqual(cm.exception.status_code, 404)
        with self.assertRaises(PaymentError):
            services.initiate_payment(self.order, "bitcoin")
        with self.assertRaises(PaymentError):
            services.initiate_payment(self.order, "qris", amount=84000)

        self.order.payment_status = "verified"
        self.order.save()
        with self.assertRaises(PaymentError) as cm:
            services.initiate_payment(self.order, "qris")
        self.assertEqual(cm.exception.status_code, 409)
        self.assertFalse(PaymentTransaction.objects.exists())

    def test_amount_within_tolerance(self):
        data = services.initiate_payment(self.order, "qris", amount="85000.5")
        self.assertEqual(data["amount"], 85000)

    def test_new_session_supersedes_pending_one(self):
        first = services.initiate_payment(self.order, "qris")
        services.initiate_payment(self.order, "cash")
        self.assertEqual(PaymentTransaction.objects.get(pk=first["transaction_id"]).status, "expired")


class MatchTransferAmountTests(TestCase):
    def _transfer(self, order, amount, **kwargs):
        defaults = dict(
            order=order, method="bank_transfer", base_amount=order.total_amount,
            unique_code=int(Decimal(amount) - order.total_amount), amount=Decimal(amount),
            expires_at=timezone.now() + timedelta(hours=24),
        )
        defaults.update(kwargs)
        return PaymentTransaction.objects.create(**defaults)

    def test_exact_match(self):
        txn = self._transfer(make_order(), "85237")
        self.assertEqual(services.match_transfer_amount(85237), txn)
        self.assertIsNone(services.match_transfer_amount(85236))

    def test_ambiguous_amount_is_not_matched(self):
        self._transfer(make_order(), "85237")
        self._transfer(make_order(), "85237")
        self.assertIsNone(services.match_transfer_amount(85237))

    def test_expired_transfer_is_not_matched(self):
        self._transfer(make_order(), "85237", expires_at=timezone.now() - timedelta(minutes=1))
        self.assertIsNone(services.match_transfer_amount(85237))

    def test_reconcile_command_verifies_matched_order(self):
        order = make_order()
        txn = self._transfer(order, "85237")
        with tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False) as tmp:
            tmp.write("date,description,credit\n")
            tmp.write("2024-10-01,TRF DARI DEWI,85.237\n")
            tmp.write("2024-10-01,TRF LAIN,12.000\n")

        out = StringIO()
        call_command("reconcile_transfers", tmp.name, stdout=out)

        order.refresh_from_db()
        txn.refresh_from_db()
        self.assertEqual(order.payment_status, "verified")
        self.assertEqual(txn.status, "completed")
        self.assertIn("Matched 1, unmatched 1.", out.getvalue())

    def test_reconcile_dry_run_changes_nothing(self):
        order = make_order()
        self._transfer(order, "85237")
        with tempfile.NamedTemporaryFile("w", suffix=".csv", delete=False) as tmp:
            tmp.write("amount\n85237\n")

        call_command("reconcile_transfers", tmp.name, "--dry-run", stdout=StringIO())
        order.refresh_from_db()
        self.assertEqual(order.payment_status, "pending")


class ExpiryTests(TestCase):
    def test_expire_stale_transactions(self):
        order = make_order()
        stale = PaymentTransaction.objects.create(
            order=order, method="qris", base_amount=order.total_amount, amount=order.total_amount,
            expires_at=timezone.now() - timedelta(seconds=1),
        )
        fresh = PaymentTransaction.objects.create(
            order=order, method="cash", base_amount=order.total_amount, amount=order.total_amount,
            expires_at=timezone.now() + timedelta(minutes=30),
        )
        out = StringIO()
        call_command("expire_payments", stdout=out)

        stale.refresh_from_db()
        fresh.refresh_from_db()
        self.assertEqual(stale.status, "expired")
        self.assertEqual(fresh.status, "pending")
        self.assertIn("Expired 1 payment(s).", out.getvalue())

    def test_overall_status(self):
        order = make_order()
        txn = PaymentTransaction.objects.create(
            order=order, method="bank_transfer", base_amount=order.total_amount, amount=order.total_amount + 5,
            unique_code=5, expires_at=timezone.now() + timedelta(hours=1),
        )
        self.assertEqual(services.overall_status(txn)["status"], "waiting_proof")
        self.assertEqual(
            services.overall_status(txn, now=timezone.now() + timedelta(hours=2))["status"], "expired",
        )
        txn.status = "processing"
        txn.proof_image_url = "/media/payment-proofs/x.png"
        self.assertEqual(services.overall_status(txn)["status"], "pending_verification")


class PaymentApiTests(TestCase):
    def setUp(self):
        self.order = make_order()

    def _create(self, payload):
        return self.client.post(reverse("payments:payments"), data=json.dumps(payload), content_type="application/json")

    def test_create_and_describe(self):
        resp = self._create({"order_id": str(self.order.pk), "method": "qris", "amount": 85000})
        self.assertEqual(resp.status_code, 201)
        data = resp.json()["data"]
        for key in ("transaction_id", "payment_id", "order_id", "method", "amount", "amount_to_pay",
                    "formatted_amount", "instructions", "expires_at", "status"):
            self.assertIn(key, data)

        resp = self.client.get(reverse("payments:payments"), {"transaction_id": data["transaction_id"]})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["payment_reference"], data["payment_reference"])

        resp = self.client.get(reverse("payments:transaction_status", args=[data["transaction_id"]]))
        body = resp.json()["data"]
        self.assertEqual(body["status"], "waiting_payment")
        self.assertEqual(body["order"]["order_number"], self.order.order_number)

    def test_amount_mismatch_is_400(self):
        resp = self._create({"order_id": str(self.order.pk), "method": "qris", "amount": 1})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Amount mismatch", resp.json()["error"]["message"])

    def test_unknown_order_is_404(self):
        resp = self._create({"order_id": "00000000-0000-0000-0000-000000000000", "method": "qris"})
        self.assertEqual(resp.status_code, 404)

    def test_missing_method(self):
        resp = self._create({"order_id": str(self.order.pk)})
        self.assertEqual(resp.status_code, 400)

    def test_unknown_transaction(self):
        resp = self.client.get(reverse("payments:transaction_status", args=["nope"]))
        self.assertEqual(resp.status_code, 404)
