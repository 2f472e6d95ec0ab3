from datetime import timedelta
from unittest.mock import patch

from django.core import mail
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from orders.services import verify_payment

from .models import PaymentTransaction
from .services import PaymentError, find_transaction
from .storage import store_payment_proof
from .tests import make_order
from .validators import ProofValidationError, validate_proof_file

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def png(name="bukti.png"):
    return SimpleUploadedFile(name, PNG_BYTES, content_type="image/png")


class ValidateProofFileTests(TestCase):
    def test_accepts_allowed_images(self):
        for content_type in ("image/jpeg", "image/jpg", "image/png", "image/webp"):
            validate_proof_file(content_type, 1024)

    def test_rejects_other_types(self):
        for content_type in ("application/pdf", "image/gif", "text/plain", ""):
            with self.assertRaises(ProofValidationError):
                validate_proof_file(content_type, 1024)

    def test_rejects_files_over_five_megabytes(self):
        validate_proof_file("image/png", 5 * 1024 * 1024)
        with self.assertRaises(ProofValidationError):
            validate_proof_file("image/png", 5 * 1024 * 1024 + 1)


@override_settings(EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend")
class StorePaymentProofTests(TestCase):
    def setUp(self):
        self.order = make_order()
        self.txn = PaymentTransaction.objects.create(
            order=self.order, method="bank_transfer", base_amount=self.order.total_amount,
            unique_code=237, amount=self.order.total_amount + 237,
            expires_at=timezone.now() + timedelta(hours=24),
        )

    def test_stores_file_and_marks_pending_verification(self):
        txn = store_payment_proof(str(self.order.pk), str(self.txn.pk), png())

        self.assertEqual(txn.status, "processing")
        self.assertIsNotNone(txn.processed_at)
        self.assertTrue(txn.proof_file.startswith(f"payment-proofs/payment-proof-{self.order.pk}-"))
        self.assertTrue(txn.proof_file.endswith(".png"))
        self.assertTrue(default_storage.exists(txn.proof_file))
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "processing")
        self.assertEqual(self.order.payment_proof_url, txn.proof_image_url)

    def test_cashier_is_notified(self):
        store_payment_proof(str(self.order.pk), str(self.txn.pk), png())
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["cashier@kuring.test"])
        self.assertIn(self.order.order_number, mail.outbox[0].subject)

    def test_email_failure_does_not_break_upload(self):
        with patch("payments.emails.EmailMultiAlternatives.send", side_effect=OSError("smtp down")):
            with self.assertLogs("payments.emails", level="ERROR"):
                txn = store_payment_proof(str(self.order.pk), str(self.txn.pk), png())
        self.assertEqual(txn.status, "processing")

    def test_reupload_replaces_previous_proof(self):
        first = store_payment_proof(str(self.order.pk), str(self.txn.pk), png("a.png"))
        second = store_payment_proof(str(self.order.pk), str(self.txn.pk), png("b.png"))

        self.assertNotEqual(first.proof_file, second.proof_file)
        self.assertFalse(default_storage.exists(first.proof_file))
        self.assertTrue(default_storage.exists(second.proof_file))

    def test_payment_of_another_order_is_rejected(self):
        other = make_order()
        with self.assertRaises(PaymentError) as cm:
            store_payment_proof(str(other.pk), str(self.txn.pk), png())
        self.assertEqual(cm.exception.status_code, 404)

    def test_expired_payment_takes_no_proof(self):
        self.txn.expires_at = timezone.now() - timedelta(seconds=1)
        self.txn.save()
        with self.assertRaises(PaymentError) as cm:
            store_payment_proof(str(self.order.pk), str(self.txn.pk), png())
        self.assertEqual(cm.exception.status_code, 409)

    def test_completed_payment_takes_no_proof(self):
        self.txn.status = "completed"
        self.txn.save()
        with self.assertRaises(PaymentError):
            store_payment_proof(str(self.order.pk), str(self.txn.pk), png())

    def test_cancelled_order_takes_no_proof(self):
        self.order.transition_to("cancelled")
        with self.assertRaises(PaymentError) as cm:
            store_payment_proof(str(self.order.pk), str(self.txn.pk), png())
        self.assertEqual(cm.exception.status_code, 409)

        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, "pending")
        self.assertEqual(self.order.payment_proof_url, "")
        self.assertEqual(len(mail.outbox), 0)

    def test_verification_during_upload_wins(self):
        stale = find_transaction(str(self.txn.pk))
        verify_payment(self.order)

        with patch("payments.storage.find_transaction", return_value=stale):
            with self.assertRaises(PaymentError) as cm:
                store_payment_proof(str(self.order.pk), str(self.txn.pk), png())
        self.assertEqual(cm.exception.status_code, 409)

        self.txn.refresh_from_db()
        self.order.refresh_from_db()
        self.assertEqual(self.txn.status, "completed")
        self.assertEqual(self.txn.proof_file, "")
        self.assertEqual(self.order.payment_status, "verified")
        _, files = default_storage.listdir("payment-proofs") if default_storage.exists("payment-proofs") else ([], [])
        self.assertFalse([f for f in files if f.startswith(f"payment-proof-{self.order.pk}-")])

    def test_invalid_file_is_not_stored(self):
        pdf = SimpleUploadedFile("bukti.pdf", b"%PDF-1.4", content_type="application/pdf")
        with patch("payments.storage.default_storage.save") as save:
            with self.assertRaises(ProofValidationError):
                store_payment_proof(str(self.order.pk), str(self.txn.pk), pdf)
        save.assert_not_called()


@override_settings(EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend")
class UploadProofApiTests(TestCase):
    def setUp(self):
        self.order = make_order()
        self.txn = PaymentTransaction.objects.create(
            order=self.order, method="qris", base_amount=self.order.total_amount,
            amount=self.order.total_amount, expires_at=timezone.now() + timedelta(minutes=15),
        )

    def test_upload_proof_endpoint(self):
        resp = self.client.post(reverse("payments:upload_proof"), {
            "file": png(),
            "order_id": str(self.order.pk),
            "payment_id": str(self.txn.pk),
        })
        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["status"], "pending_verification")
        self.assertTrue(data["proof_url"])
        self.assertTrue(data["filename"].startswith("payment-proof-"))

    def test_transaction_proof_endpoint(self):
        resp = self.client.post(reverse("payments:transaction_proof", args=[self.txn.pk]), {"proof": png()})
        self.assertEqual(resp.status_code, 200)
        self.txn.refresh_from_db()
        self.assertEqual(self.txn.status, "processing")

    def test_wrong_type_is_400(self):
        resp = self.client.post(reverse("payments:upload_proof"), {
            "file": SimpleUploadedFile("bukti.txt", b"hello", content_type="text/plain"),
            "order_id": str(self.order.pk),
            "payment_id": str(self.txn.pk),
        })
        self.assertEqual(resp.status_code, 400)
        self.assertIn("Invalid file type", resp.json()["error"]["message"])

    def test_missing_file_is_400(self):
        resp = self.client.post(reverse("payments:upload_proof"), {
            "order_id": str(self.order.pk),
            "payment_id": str(self.txn.pk),
        })
        self.assertEqual(resp.status_code, 400)
