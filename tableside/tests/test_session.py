from datetime import datetime, timedelta, timezone
from unittest import TestCase

from tableside import session
from tableside.cart import CartStore, cart_storage_key
from tableside.kvstore import SharedMemoryStore

T0 = datetime(2024, 10, 1, 12, 0, tzinfo=timezone.utc)
MENU = [{"id": "nasi", "name": "Nasi Jamblang", "price": 25000}]


class CacheTests(TestCase):
    def setUp(self):
        self.store = SharedMemoryStore().view()

    def test_menu_cache_is_per_table_and_expires_after_an_hour(self):
        session.save_menu_cache(self.store, "7", MENU, now=T0)

        self.assertEqual(session.get_menu_cache(self.store, "7", now=T0 + timedelta(minutes=59)), MENU)
        self.assertIsNone(session.get_menu_cache(self.store, "8", now=T0))
        self.assertIsNone(session.get_menu_cache(self.store, "7", now=T0 + timedelta(minutes=61)))
        self.assertIsNone(self.store.get("menu-cache-7"))

    def test_categories_cache(self):
        session.save_categories_cache(self.store, ["Makanan", "Minuman"], now=T0)
        self.assertEqual(session.get_categories_cache(self.store, now=T0 + timedelta(minutes=30)), ["Makanan", "Minuman"])
        self.assertIsNone(session.get_categories_cache(self.store, now=T0 + timedelta(hours=2)))

    def test_api_cache_ttl(self):
        session.set_api_cache(self.store, "promo", [{"code": "HEMAT10"}], ttl=timedelta(minutes=5), now=T0)
        self.assertEqual(session.get_api_cache(self.store, "promo", now=T0 + timedelta(minutes=4)), [{"code": "HEMAT10"}])
        self.assertIsNone(session.get_api_cache(self.store, "promo", now=T0 + timedelta(minutes=6)))

    def test_clear_expired_items_keeps_live_entries(self):
        session.set_api_cache(self.store, "old", 1, ttl=timedelta(minutes=1), now=T0)
        session.set_api_cache(self.store, "fresh", 2, now=T0)
        self.store.set("api-cache-broken", "not a cache entry")
        session.save_menu_cache(self.store, "7", MENU, now=T0)

        removed = session.clear_expired_items(self.store, now=T0 + timedelta(minutes=10))

        self.assertEqual(removed, 2)
        self.assertEqual(sorted(self.store.keys()), ["api-cache-fresh", "menu-cache-7"])

    def test_clear_all_cache(self):
        session.save_menu_cache(self.store, "7", MENU, now=T0)
        session.save_categories_cache(self.store, [], now=T0)
        session.set_api_cache(self.store, "promo", [], now=T0)
        session.save_current_order(self.store, "o-1")

        self.assertEqual(session.clear_all_cache(self.store), 3)
        self.assertEqual(self.store.keys(), ["current-order-id"])


class CustomerDataTests(TestCase):
    def setUp(self):
        self.store = SharedMemoryStore().view()

    def test_old_customer_info_is_forgotten(self):
        session.save_customer_info(self.store, "7", "Siti", "0812", now=T0)
        session.save_customer_info(self.store, "8", "Budi", "0813", now=T0 + timedelta(hours=2))
        self.store.set("customer-info-9", {"name": "Tanpa waktu"})

        removed = session.clear_old_customer_data(self.store, now=T0 + timedelta(hours=2, minutes=30))

        self.assertEqual(removed, 2)
        self.assertIsNone(session.get_customer_info(self.store, "7"))
        self.assertEqual(session.get_customer_info(self.store, "8")["name"], "Budi")
        self.assertIsNone(self.store.get("customer-info-9"))

    def test_clear_session_data_empties_the_given_cart(self):
        cart = CartStore("7", self.store)
        cart.add_item("nasi", "Nasi", 25000)
        session.save_customer_info(self.store, "7", "Siti", "0812")
        session.save_current_order(self.store, "o-1")
        session.save_menu_cache(self.store, "7", MENU)

        session.clear_session_data(self.store, "7", cart=cart)

        self.assertEqual(cart.items, [])
        self.assertIsNone(self.store.get(cart_storage_key("7")))
        self.assertIsNone(session.get_current_order(self.store))
        self.assertEqual(self.store.keys(), ["menu-cache-7"])
