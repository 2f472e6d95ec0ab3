import tempfile
from unittest import TestCase, mock

from tableside.kvstore import FileStore, SharedMemoryStore, StorageEvent


class SharedMemoryStoreTests(TestCase):
    def setUp(self):
        shared = SharedMemoryStore()
        self.tab_a = shared.view()
        self.tab_b = shared.view()
        self.seen_a = []
        self.seen_b = []
        self.tab_a.subscribe(self.seen_a.append)
        self.tab_b.subscribe(self.seen_b.append)

    def test_write_notifies_other_views_only(self):
        self.tab_a.set("k", {"n": 1})

        self.assertEqual(self.seen_a, [])
        self.assertEqual(self.seen_b, [StorageEvent("k", None, {"n": 1})])
        self.assertEqual(self.tab_b.get("k"), {"n": 1})

    def test_values_are_not_shared_objects(self):
        value = {"items": []}
        self.tab_a.set("k", value)
        value["items"].append("x")
        self.assertEqual(self.tab_b.get("k"), {"items": []})

    def test_delete_and_unsubscribe(self):
        self.tab_a.set("k", 1)
        self.tab_a.delete("k")
        self.assertEqual(self.seen_b[-1], StorageEvent("k", 1, None))

        shared = SharedMemoryStore()
        a, b = shared.view(), shared.view()
        seen = []
        unsubscribe = b.subscribe(seen.append)
        unsubscribe()
        a.set("k", 1)
        self.assertEqual(seen, [])

    def test_unchanged_write_is_silent(self):
        self.tab_a.set("k", 1)
        self.tab_a.set("k", 1)
        self.assertEqual(len(self.seen_b), 1)


class FileStoreTests(TestCase):
    def setUp(self):
        self.dir = tempfile.mkdtemp()
        self.writer = FileStore(self.dir)
        self.reader = FileStore(self.dir)
        self.events = []
        self.reader.subscribe(self.events.append)

    def test_poll_picks_up_other_handles_writes(self):
        self.writer.set("cart-storage-table-1", {"items": [1]})
        self.assertEqual(self.reader.poll(), 1)
        self.assertEqual(self.events, [StorageEvent("cart-storage-table-1", None, {"items": [1]})])
        self.assertEqual(self.reader.poll(), 0)

    def test_own_writes_are_not_reported(self):
        self.reader.set("k", 1)
        self.assertEqual(self.reader.poll(), 0)
        self.assertEqual(self.reader.get("k"), 1)

    def test_delete_is_reported(self):
        self.writer.set("k", "v")
        self.reader.poll()
        self.writer.delete("k")
        self.reader.poll()
        self.assertEqual(self.events[-1], StorageEvent("k", "v", None))
        self.assertIsNone(self.reader.get("k"))

    def test_defaults_to_state_dir(self):
        state_dir = tempfile.mkdtemp()
        with mock.patch("tableside.config.KURING_STATE_DIR", state_dir):
            store = FileStore()
        store.set("current-order-id", "o-1")
        self.assertEqual(store.directory, state_dir)
        self.assertEqual(FileStore(state_dir).get("current-order-id"), "o-1")
