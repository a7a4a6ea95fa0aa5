import unittest

from tests._fakes import FakeEngine, ManualScheduler

from rimages.app.metadata import MetadataResolver, parse_metadata
from rimages.app.store import WorkItemStore
from rimages.core.events import EventBus


class TestMetadataResolver(unittest.TestCase):
    def setUp(self):
        self.scheduler = ManualScheduler()
        self.engine = FakeEngine(EventBus())
        self.store = WorkItemStore()
        self.resolver = MetadataResolver(self.store, self.engine, self.scheduler)

    def test_merges_matching_records(self):
        self.store.add_items(["/a.png", "/b.png"])
        self.engine.metadata = {"/a.png": {"path": "/a.png", "width": 10, "height": 20, "size": 300}}
        self.resolver.resolve(["/a.png", "/b.png"])
        self.assertEqual(self.engine.metadata_calls, [["/a.png", "/b.png"]])
        # applied on the loop, not inside the call
        self.assertIsNone(self.store.get("/a.png").width)
        self.scheduler.run_pending()

        a = self.store.get("/a.png")
        b = self.store.get("/b.png")
        self.assertEqual((a.width, a.height, a.original_size), (10, 20, 300))
        self.assertIsNone(b.original_size)

    def test_failure_keeps_items(self):
        self.store.add_items(["/a.png"])
        self.engine.metadata_error = ConnectionError("engine gone")
        self.resolver.resolve(["/a.png"])
        with self.assertLogs("rimages.app.metadata", level="WARNING"):
            self.scheduler.run_pending()
        self.assertIn("/a.png", self.store)
        self.assertIsNone(self.store.get("/a.png").width)

    def test_item_removed_before_response(self):
        self.store.add_items(["/a.png"])
        self.engine.metadata = {"/a.png": {"path": "/a.png", "width": 1, "height": 1, "size": 1}}
        self.resolver.resolve(["/a.png"])
        self.store.remove_item("/a.png")
        self.scheduler.run_pending()
        self.assertEqual(len(self.store), 0)

    def test_empty_request_is_skipped(self):
        self.resolver.resolve([])
        self.assertEqual(self.engine.metadata_calls, [])

    def test_malformed_records_are_skipped(self):
        with self.assertLogs("rimages.app.metadata", level="WARNING"):
            parsed = parse_metadata([
                {"path": "/a.png", "width": 1, "height": 2, "size": 3},
                {"path": "/b.png"},
                {"path": "/c.png", "width": "wide", "height": 2, "size": 3},
            ])
        self.assertEqual([m.path for m in parsed], ["/a.png"])
