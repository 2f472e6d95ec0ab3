import io
from unittest import TestCase, mock

import requests

from tableside.api import ApiError, KuringClient


def response(status_code, body):
    resp = mock.Mock()
    resp.status_code = status_code
    resp.json.return_value = body
    return resp


class KuringClientTests(TestCase):
    def setUp(self):
        self.session = mock.Mock()
        self.client = KuringClient(base_url="http://kasir.local/", token="tok", session=self.session, timeout=3)

    def test_data_is_unwrapped(self):
        self.session.request.return_value = response(200, {"data": {"id": "o-1", "payment_status": "pending"}})
        data = self.client.get_payment_status("o-1")

        self.assertEqual(data["payment_status"], "pending")
        method, url = self.session.request.call_args[0]
        kwargs = self.session.request.call_args[1]
        self.assertEqual(method, "GET")
        self.assertEqual(url, "http://kasir.local/api/orders/o-1/payment-status")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(kwargs["timeout"], 3)

    def test_error_envelope_raises(self):
        self.session.request.return_value = response(400, {"error": {"message": "Amount mismatch"}})
        with self.assertRaises(ApiError) as cm:
            self.client.create_payment("o-1", "qris", amount=1)
        self.assertEqual(str(cm.exception), "Amount mismatch")
        self.assertEqual(cm.exception.status_code, 400)

    def test_non_json_failure(self):
        resp = response(502, None)
        resp.json.side_effect = ValueError("no json")
        resp.text = "Bad Gateway"
        self.session.request.return_value = resp
        with self.assertRaises(ApiError) as cm:
            self.client.get_order("o-1")
        self.assertEqual(cm.exception.status_code, 502)

    def test_network_failure_is_wrapped(self):
        self.session.request.side_effect = requests.ConnectionError("refused")
        with self.assertRaises(ApiError) as cm:
            self.client.get_order_status("o-1")
        self.assertIsNone(cm.exception.status_code)

    def test_create_payment_payload(self):
        self.session.request.return_value = response(201, {"data": {"transaction_id": "t-1"}})
        self.client.create_payment("o-1", "bank_transfer", bank_code="BCA", amount=85000)
        kwargs = self.session.request.call_args[1]
        self.assertEqual(kwargs["json"], {"order_id": "o-1", "method": "bank_transfer", "bank_code": "BCA", "amount": 85000})

    def test_upload_proof_is_multipart(self):
        self.session.request.return_value = response(200, {"data": {"proof_url": "/media/x.png"}})
        fileobj = io.BytesIO(b"png")
        self.client.upload_proof("o-1", "t-1", fileobj, "bukti.png")

        kwargs = self.session.request.call_args[1]
        self.assertEqual(kwargs["data"], {"order_id": "o-1", "payment_id": "t-1"})
        self.assertEqual(kwargs["files"]["file"], ("bukti.png", fileobj, "image/png"))

    def test_no_token_no_header(self):
        client = KuringClient(base_url="http://kasir.local", token="", session=self.session)
        self.session.request.return_value = response(200, {"data": []})
        client.validate_promo("HEMAT10", 50000)
        self.assertNotIn("Authorization", self.session.request.call_args[1]["headers"])
