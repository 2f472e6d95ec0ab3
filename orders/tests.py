import json
from decimal import Decimal

from django.core import mail
from django.test import TestCase, override_settings
from django.urls import reverse

from kuring.auth import issue_staff_token
from menu.models import CustomizationGroup, CustomizationOption, MenuItem, Table
from payments.models import PaymentTransaction

from . import services
from .models import Order, OrderError, Promo


class MenuFixtureMixin:
    def setUp(self):
        self.table = Table.objects.create(table_number=5)
        self.nasi = MenuItem.objects.create(name="Nasi Jamblang", base_price=Decimal("25000"))
        self.teh = MenuItem.objects.create(name="Es Teh", base_price=Decimal("5000"))
        self.extras = CustomizationGroup.objects.create(menu_item=self.nasi, group_name="Tambahan", group_type="multiple")
        self.egg = CustomizationOption.objects.create(group=self.extras, option_name="Telur", price_adjustment=Decimal("5000"))

    def _items(self):
        return [
            {"menu_item_id": str(self.nasi.pk), "quantity": 1,
             "customizations": {str(self.extras.pk): [str(self.egg.pk)]}},
            {"menu_item_id": str(self.teh.pk), "quantity": 4, "item_price": 1},
        ]

    def _order(self, **kwargs):
        defaults = dict(
            table_identifier=str(self.table.pk),
            customer_name="Siti",
            customer_phone="081234567890",
            items=self._items(),
        )
        defaults.update(kwargs)
        return services.create_order(**defaults)


class CreateOrderTests(MenuFixtureMixin, TestCase):
    def test_totals_are_priced_from_the_menu(self):
        order = self._order()

        # 30000 + 4 * 5000; the client's item_price is ignored
        self.assertEqual(order.subtotal, Decimal("50000"))
        self.assertEqual(order.tax_amount, Decimal("5000"))
        self.assertEqual(order.service_charge, Decimal("2500"))
        self.assertEqual(order.total_amount, Decimal("57500"))
        self.assertEqual(order.items.count(), 2)
        self.assertEqual(order.items.get(menu_item=self.nasi).item_price, Decimal("30000"))
        self.assertTrue(order.order_number.startswith("KRG-"))

    def test_table_is_marked_occupied(self):
        order = self._order()
        self.table.refresh_from_db()
        self.assertEqual(self.table.status, "occupied")
        self.assertEqual(self.table.current_session_id, order.session_id)

    def test_table_number_is_accepted(self):
        order = self._order(table_identifier="5")
        self.assertEqual(order.table, self.table)

    def test_unknown_table(self):
        with self.assertRaises(OrderError) as cm:
            self._order(table_identifier="99")
        self.assertEqual(cm.exception.status_code, 404)

    def test_empty_items_rejected(self):
        with self.assertRaises(OrderError):
            self._order(items=[])
        self.assertFalse(Order.objects.exists())

    def test_unavailable_item_rolls_back(self):
        self.teh.is_available = False
        self.teh.save()
        with self.assertRaises(OrderError):
            self._order()
        self.assertFalse(Order.objects.exists())

    def test_minimum_total(self):
        kerupuk = MenuItem.objects.create(name="Kerupuk", base_price=Decimal("500"))
        order = self._order(items=[{"menu_item_id": str(kerupuk.pk), "quantity": 1}])
        self.assertEqual(order.total_amount, Decimal("1000"))

    def test_promo_discount_applied_and_counted(self):
        Promo.objects.create(
            code="welcome10", name="Selamat Datang", discount_type="percentage",
            discount_value=Decimal("10"), maximum_discount=Decimal("50000"),
        )
        order = self._order(promo_code="WELCOME10")
        self.assertEqual(order.discount_amount, Decimal("5000"))
        self.assertEqual(order.total_amount, Decimal("52500"))
        self.assertEqual(Promo.objects.get(code="WELCOME10").current_uses, 1)

    def test_exhausted_promo_rejected(self):
        Promo.objects.create(
            code="HEMAT25", name="Hemat", discount_type="fixed", discount_value=Decimal("25000"),
            max_uses=1, current_uses=1,
        )
        with self.assertRaises(OrderError):
            self._order(promo_code="HEMAT25")


class PromoTests(TestCase):
    def test_percentage_discount_is_capped(self):
        promo = Promo(code="MAKAN15", name="Makan Hemat", discount_type="percentage",
                      discount_value=Decimal("15"), maximum_discount=Decimal("75000"))
        self.assertEqual(services.calculate_promo_discount(promo, 100000), Decimal("15000"))
        self.assertEqual(services.calculate_promo_discount(promo, 1000000), Decimal("75000"))

    def test_fixed_discount_never_exceeds_total(self):
        promo = Promo(code="HEMAT25", name="Hemat", discount_type="fixed", discount_value=Decimal("25000"))
        self.assertEqual(services.calculate_promo_discount(promo, 20000), Decimal("20000"))

    def test_validate_promo_minimum_order(self):
        Promo.objects.create(code="HEMAT25", name="Hemat", discount_type="fixed",
                             discount_value=Decimal("25000"), minimum_order=Decimal("100000"))
        result = services.validate_promo("hemat25", 50000)
        self.assertFalse(result["valid"])
        self.assertEqual(result["final_total"], 50000)

        result = services.validate_promo("hemat25", 120000)
        self.assertTrue(result["valid"])
        self.assertEqual(result["discount_amount"], 25000)
        self.assertEqual(result["final_total"], 95000)

    def test_validate_endpoint(self):
        resp = self.client.post(
            reverse("orders:promo_validate"),
            data=json.dumps({"code": "NOPE", "order_total": 50000}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["data"]["valid"])

        resp = self.client.post(
            reverse("orders:promo_validate"),
            data=json.dumps({"code": "NOPE"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 400)


class OrderStateTests(MenuFixtureMixin, TestCase):
    def test_kitchen_flow_stamps_timestamps(self):
        order = self._order()
        for status in ("confirmed", "preparing", "ready", "completed"):
            order.transition_to(status)
        order.refresh_from_db()
        self.assertEqual(order.status, "completed")
        self.assertIsNotNone(order.confirmed_at)
        self.assertIsNotNone(order.completed_at)

    def test_terminal_orders_are_immutable(self):
        order = self._order()
        order.transition_to("cancelled")
        with self.assertRaises(OrderError) as cm:
            order.transition_to("confirmed")
        self.assertEqual(cm.exception.status_code, 409)

    def test_skipping_steps_is_rejected(self):
        order = self._order()
        with self.assertRaises(OrderError):
            order.transition_to("ready")

    def test_progress_steps_follow_status(self):
        order = self._order()
        steps = [s["step"] for s in services.progress_steps(order)]
        self.assertEqual(steps, ["Pesanan Diterima", "Menunggu Pembayaran"])

        order = services.verify_payment(order)
        steps = services.progress_steps(order)
        self.assertEqual(steps[1]["step"], "Pembayaran Diverifikasi")
        self.assertTrue(steps[1]["completed"])
        self.assertEqual(steps[-1]["step"], "Menunggu Diproses di Dapur")


@override_settings(EMAIL_BACKEND="django.core.mail.backends.locmem.EmailBackend")
class VerifyPaymentTests(MenuFixtureMixin, TestCase):
    def _with_transaction(self, **kwargs):
        order = self._order(customer_email="siti@example.com", **kwargs)
        txn = PaymentTransaction.objects.create(
            order=order, method="bank_transfer", base_amount=order.total_amount, unique_code=12,
            amount=order.total_amount + 12, status="processing", expires_at=order.created_at,
        )
        return order, txn

    def test_verify_confirms_order_and_completes_transactions(self):
        order, txn = self._with_transaction()
        with self.captureOnCommitCallbacks(execute=True):
            order = services.verify_payment(order)

        self.assertEqual(order.status, "confirmed")
        self.assertEqual(order.payment_status, "verified")
        self.assertIsNotNone(order.payment_verified_at)
        txn.refresh_from_db()
        self.assertEqual(txn.status, "completed")
        self.assertIsNotNone(txn.verified_at)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["siti@example.com"])

    def test_receipt_sent_once(self):
        order, _ = self._with_transaction()
        with self.captureOnCommitCallbacks(execute=True):
            services.verify_payment(order)
        with self.captureOnCommitCallbacks(execute=True):
            services.verify_payment(order)
        self.assertEqual(len(mail.outbox), 1)

    def test_reject_sends_order_back_to_pending(self):
        order, txn = self._with_transaction()
        services.verify_payment(order)
        order = services.reject_payment(order)

        self.assertEqual(order.status, "pending")
        self.assertEqual(order.payment_status, "pending")
        self.assertIsNone(order.payment_verified_at)
        txn.refresh_from_db()
        self.assertEqual(txn.status, "pending")


class OrderApiTests(MenuFixtureMixin, TestCase):
    def _post_order(self, payload):
        return self.client.post(reverse("orders:order"), data=json.dumps(payload), content_type="application/json")

    def _staff(self):
        return {"HTTP_AUTHORIZATION": f"Bearer {issue_staff_token('kasir-1')}"}

    def test_create_and_fetch_order(self):
        resp = self._post_order({
            "table_id": "5",
            "customer_name": "Siti",
            "customer_phone": "0812",
            "items": self._items(),
        })
        self.assertEqual(resp.status_code, 201)
        data = resp.json()["data"]
        self.assertEqual(data["total_amount"], 57500)
        self.assertEqual(data["table_number"], 5)

        resp = self.client.get(reverse("orders:order"), {"id": data["order_id"]})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(len(resp.json()["data"]["items"]), 2)

    def test_missing_fields(self):
        resp = self._post_order({"table_id": "5"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("customer_name", resp.json()["error"]["message"])

    def test_unknown_order_is_404(self):
        resp = self.client.get(reverse("orders:payment_status", args=["not-a-uuid"]))
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"]["message"], "Order not found")

    def test_get_without_id(self):
        resp = self.client.get(reverse("orders:order"))
        self.assertEqual(resp.status_code, 400)

    def test_payment_status(self):
        order = self._order()
        resp = self.client.get(reverse("orders:payment_status", args=[order.pk]))
        self.assertEqual(resp.json()["data"], {
            "id": str(order.pk),
            "payment_status": "pending",
            "status": "pending",
            "order_number": order.order_number,
        })

    def test_order_status_has_progress(self):
        order = self._order()
        resp = self.client.get(reverse("orders:status", args=[order.pk]))
        data = resp.json()["data"]
        self.assertEqual(data["progress_steps"][0]["step"], "Pesanan Diterima")
        self.assertIsNotNone(data["estimated_completion"])

    def test_approve_requires_staff_token(self):
        order = self._order()
        resp = self.client.post(
            reverse("orders:approve"),
            data=json.dumps({"order_id": str(order.pk), "status": "confirmed"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 401)

    def test_approve_verifies_payment(self):
        order = self._order()
        resp = self.client.post(
            reverse("orders:approve"),
            data=json.dumps({"order_id": str(order.pk), "status": "confirmed"}),
            content_type="application/json",
            **self._staff(),
        )
        self.assertEqual(resp.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.payment_status, "verified")

    def test_approve_completed_order_conflicts(self):
        order = self._order()
        order.transition_to("cancelled")
        resp = self.client.post(
            reverse("orders:approve"),
            data=json.dumps({"order_id": str(order.pk), "status": "preparing"}),
            content_type="application/json",
            **self._staff(),
        )
        self.assertEqual(resp.status_code, 409)

    def test_pending_lists_unverified_orders(self):
        waiting = self._order()
        paid = self._order()
        services.verify_payment(paid)
        resp = self.client.get(reverse("orders:pending"), **self._staff())
        ids = [o["id"] for o in resp.json()["data"]]
        self.assertEqual(ids, [str(waiting.pk)])

    def test_update_payment_method(self):
        order = self._order()
        resp = self.client.post(
            reverse("orders:update_payment_method", args=[order.pk]),
            data=json.dumps({"payment_method": "qris"}),
            content_type="application/json",
        )
        self.assertEqual(resp.status_code, 200)
        order.refresh_from_db()
        self.assertEqual(order.payment_method, "qris")
