from unittest import TestCase

from tableside.cart import CartStore
from tableside.kvstore import SharedMemoryStore
from tableside.sync import CartSyncListener


class CartSyncTests(TestCase):
    def setUp(self):
        shared = SharedMemoryStore()
        self.tab_a = CartStore("7", shared.view())
        self.tab_b = CartStore("7", shared.view())
        self.other_table = CartStore("8", shared.view())
        self.listener = CartSyncListener(self.tab_b).start()

    def tearDown(self):
        self.listener.stop()

    def test_write_in_one_tab_reaches_the_other(self):
        self.tab_a.add_item("nasi", "Nasi", 25000, quantity=2)
        self.assertEqual([(i.menu_item_id, i.quantity) for i in self.tab_b.items], [("nasi", 2)])

        self.tab_a.update_quantity(self.tab_a.items[0].key, 3)
        self.assertEqual(self.tab_b.items[0].quantity, 3)

    def test_other_tables_are_ignored(self):
        self.other_table.add_item("teh", "Es Teh", 5000)
        self.assertEqual(self.tab_b.items, [])

    def test_last_write_wins(self):
        self.tab_b.add_item("teh", "Es Teh", 5000)
        self.tab_a.add_item("nasi", "Nasi", 25000)
        self.assertEqual([i.menu_item_id for i in self.tab_b.items], ["nasi"])

    def test_deleted_key_empties_cart(self):
        self.tab_a.add_item("nasi", "Nasi", 25000)
        self.tab_a.store.delete(self.tab_a.key)
        self.assertEqual(self.tab_b.items, [])

    def test_stopped_listener_ignores_writes(self):
        self.listener.stop()
        self.tab_a.add_item("nasi", "Nasi", 25000)
        self.assertEqual(self.tab_b.items, [])
