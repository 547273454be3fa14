import os
import tempfile
import unittest

from trackit.errors import StorageCorruptionError
from trackit.storage import HABITS_KEY, FileBlobStore, MemoryBlobStore


class FileBlobStoreTests(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.store = FileBlobStore(os.path.join(self.tmp.name, "state"))

    def tearDown(self):
        self.tmp.cleanup()

    def test_round_trip_creates_directory(self):
        self.store.write_json(HABITS_KEY, [{"id": "h1"}])
        path = os.path.join(self.tmp.name, "state", "trackit-habits.json")
        self.assertTrue(os.path.exists(path))
        self.assertFalse(os.path.exists(path + ".tmp"))
        self.assertEqual(self.store.read_json(HABITS_KEY), [{"id": "h1"}])

    def test_missing_key_loads_default(self):
        self.assertIsNone(self.store.read_json(HABITS_KEY))
        self.assertEqual(self.store.load(HABITS_KEY, []), [])

    def test_remove(self):
        self.store.write_json(HABITS_KEY, [])
        self.store.remove(HABITS_KEY)
        self.store.remove(HABITS_KEY)
        self.assertIsNone(self.store.read_text(HABITS_KEY))


class CorruptBlobTests(unittest.TestCase):
    def test_invalid_json_raises_on_read(self):
        store = MemoryBlobStore({HABITS_KEY: "{not json"})
        with self.assertRaises(StorageCorruptionError):
            store.read_json(HABITS_KEY)

    def test_load_falls_back_to_default(self):
        store = MemoryBlobStore({HABITS_KEY: "{not json"})
        with self.assertLogs("trackit.storage", level="WARNING"):
            self.assertEqual(store.load(HABITS_KEY, []), [])

    def test_load_rejects_wrong_type(self):
        store = MemoryBlobStore({HABITS_KEY: '{"id": "h1"}'})
        with self.assertLogs("trackit.storage", level="WARNING"):
            self.assertEqual(store.load(HABITS_KEY, []), [])


if __name__ == "__main__":
    unittest.main()
