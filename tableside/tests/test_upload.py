import io
import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest import TestCase, mock

from tableside.api import ApiError
from tableside.payment import PaymentSession
from tableside.upload import MAX_PROOF_BYTES, ProofUploader, ProofValidationError, validate_proof

T0 = datetime(2024, 10, 1, 12, 0, tzinfo=timezone.utc)


def make_session(method="bank_transfer", minutes=60):
    return PaymentSession({
        "transaction_id": "t-9",
        "order_id": "o-9",
        "method": method,
        "amount": 85237,
        "amount_to_pay": 85237,
        "expires_at": (T0 + timedelta(minutes=minutes)).isoformat(),
        "status": "pending",
    }, table_id="3")


class ValidateProofTests(TestCase):
    def test_image_types_pass(self):
        validate_proof("bukti.png", "image/png", 1024)
        validate_proof("bukti.jpg", "image/jpeg", MAX_PROOF_BYTES)

    def test_non_image_is_refused(self):
        with self.assertRaises(ProofValidationError):
            validate_proof("bukti.pdf", "application/pdf", 1024)

    def test_size_limits(self):
        with self.assertRaises(ProofValidationError):
            validate_proof("bukti.png", "image/png", MAX_PROOF_BYTES + 1)
        with self.assertRaises(ProofValidationError):
            validate_proof("bukti.png", "image/png", 0)

    def test_message_names_the_file(self):
        with self.assertRaises(ProofValidationError) as cm:
            validate_proof("struk.pdf", "application/pdf", 1024)
        self.assertIn("struk.pdf", str(cm.exception))


class ProofUploaderTests(TestCase):
    def setUp(self):
        self.client = mock.Mock()
        self.client.upload_proof.return_value = {
            "proof_url": "/media/payment-proofs/payment-proof-o-9-1-abc.png",
            "status": "pending_verification",
        }
        self.uploader = ProofUploader(self.client)

    def test_pdf_is_refused_without_request(self):
        with self.assertRaises(ProofValidationError):
            self.uploader.upload(make_session(), io.BytesIO(b"%PDF-1.4"), filename="bukti.pdf",
                                 content_type="application/pdf", now=T0)
        self.client.upload_proof.assert_not_called()

    def test_oversized_image_is_refused_without_request(self):
        big = io.BytesIO(b"\x00" * (MAX_PROOF_BYTES + 1))
        with self.assertRaises(ProofValidationError):
            self.uploader.upload(make_session(), big, filename="bukti.png", now=T0)
        self.client.upload_proof.assert_not_called()

    def test_expired_session_is_refused(self):
        session = make_session(method="qris", minutes=15)
        with self.assertRaises(ProofValidationError):
            self.uploader.upload(session, io.BytesIO(b"png"), filename="bukti.png",
                                 now=T0 + timedelta(minutes=15, seconds=1))
        self.client.upload_proof.assert_not_called()

    def test_successful_upload_updates_session(self):
        session = make_session()
        fileobj = io.BytesIO(b"\x89PNG....")
        url = self.uploader.upload(session, fileobj, filename="bukti.png", now=T0)

        self.assertEqual(url, "/media/payment-proofs/payment-proof-o-9-1-abc.png")
        self.assertEqual(session.status, "processing")
        self.assertEqual(session.proof_url, url)
        self.client.upload_proof.assert_called_once_with("o-9", "t-9", fileobj, "bukti.png", "image/png")

    def test_upload_from_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "struk.jpg")
            with open(path, "wb") as fh:
                fh.write(b"\xff\xd8\xff" + b"\x00" * 32)
            self.uploader.upload(make_session(), path, now=T0)

        args = self.client.upload_proof.call_args[0]
        self.assertEqual(args[3], "struk.jpg")
        self.assertEqual(args[4], "image/jpeg")

    def test_server_rejection_propagates(self):
        self.client.upload_proof.side_effect = ApiError("Payment already verified", status_code=409)
        session = make_session()
        with self.assertLogs("tableside.upload", level="ERROR"):
            with self.assertRaises(ApiError):
                self.uploader.upload(session, io.BytesIO(b"png"), filename="bukti.png", now=T0)
        self.assertEqual(session.status, "pending")
