from datetime import datetime, timedelta, timezone
from unittest import TestCase

from tableside.cart import CartError, CartStore, cart_storage_key, line_key
from tableside.kvstore import SharedMemoryStore


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 10, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class CartStoreTests(TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = SharedMemoryStore().view()
        self.cart = CartStore("7", self.store, clock=self.clock)

    def test_storage_key_is_table_scoped(self):
        self.assertEqual(self.cart.key, "cart-storage-table-7")
        self.cart.add_item("nasi", "Nasi Jamblang", 25000)
        self.assertEqual(self.store.get(cart_storage_key("7"))["items"][0]["menu_item_id"], "nasi")
        self.assertIsNone(self.store.get(cart_storage_key("8")))

    def test_same_customization_merges_lines(self):
        self.cart.add_item("nasi", "Nasi", 25000, customizations={"g": ["b", "a"]})
        self.cart.add_item("nasi", "Nasi", 25000, customizations={"g": ["a", "b"]})
        self.cart.add_item("nasi", "Nasi", 25000)

        self.assertEqual(len(self.cart.items), 2)
        self.assertEqual(self.cart.find_item("nasi", {"g": ["a", "b"]}).quantity, 2)
        self.assertEqual(self.cart.item_quantity("nasi"), 3)

    def test_per_product_limit(self):
        self.cart.add_item("teh", "Es Teh", 5000, quantity=10)
        with self.assertRaises(CartError):
            self.cart.add_item("teh", "Es Teh", 5000)

    def test_cart_limit(self):
        for i in range(5):
            self.cart.add_item(f"item-{i}", "Item", 1000, quantity=10)
        with self.assertRaises(CartError):
            self.cart.add_item("extra", "Extra", 1000)

    def test_update_quantity_zero_removes(self):
        self.cart.add_item("teh", "Es Teh", 5000, quantity=2)
        self.cart.update_quantity(line_key("teh", {}), 0)
        self.assertEqual(self.cart.items, [])
        self.assertEqual(self.store.get(self.cart.key)["items"], [])

    def test_summary(self):
        self.cart.add_item("nasi", "Nasi", 30000, preparation_time=20)
        self.cart.add_item("teh", "Es Teh", 5000, quantity=4, preparation_time=5)
        self.cart.apply_promo({"valid": True, "discount_amount": 5000, "promo": {"code": "WELCOME10", "name": "Selamat"}})

        self.assertEqual(self.cart.summary(), {
            "subtotal": 50000,
            "tax": 5000,
            "service_fee": 2500,
            "discount": 5000,
            "total": 52500,
            "item_count": 5,
            "estimated_time": 20,
        })

    def test_invalid_promo_is_refused(self):
        with self.assertRaises(CartError):
            self.cart.apply_promo({"valid": False, "message": "Kode promo tidak ditemukan"})

    def test_session_expires_after_thirty_idle_minutes(self):
        self.cart.add_item("teh", "Es Teh", 5000)
        self.clock.advance(minutes=29)
        self.assertTrue(self.cart.is_session_valid())
        self.clock.advance(minutes=2)
        self.assertFalse(self.cart.is_session_valid())
        with self.assertRaises(CartError):
            self.cart.add_item("teh", "Es Teh", 5000)
        self.assertIn("Sesi sudah berakhir", self.cart.validate()["errors"])

        self.cart.clear()
        self.assertTrue(self.cart.is_session_valid())

    def test_validate(self):
        self.assertEqual(self.cart.validate()["errors"], ["Keranjang kosong"])
        self.cart.add_item("kerupuk", "Kerupuk", 2000)
        result = self.cart.validate()
        self.assertTrue(result["is_valid"])
        self.assertIn("Minimum pemesanan Rp 10.000", result["warnings"])

    def test_state_survives_reload(self):
        self.cart.add_item("nasi", "Nasi", 25000, customizations={"g": ["a"]}, notes="tanpa sambal")
        reloaded = CartStore("7", self.store, clock=self.clock)
        self.assertEqual(reloaded.items, self.cart.items)

    def test_payload_carries_no_prices(self):
        self.cart.add_item("nasi", "Nasi", 25000, quantity=2)
        payload = self.cart.to_payload("Siti", "0812", customer_email="siti@example.com")
        self.assertEqual(payload["table_id"], "7")
        self.assertEqual(payload["items"], [{"menu_item_id": "nasi", "quantity": 2, "customizations": {}, "notes": ""}])
        self.assertEqual(payload["customer_email"], "siti@example.com")

    def test_table_id_required(self):
        with self.assertRaises(CartError):
            CartStore("", self.store)
