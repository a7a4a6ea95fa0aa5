import unittest

from tests._fakes import FakeEngine, ManualScheduler

from rimages.app.orchestrator import Orchestrator
from rimages.app.state import AppState
from rimages.core.events import EventBus


class TestOrchestrator(unittest.TestCase):
    def setUp(self):
        self.scheduler = ManualScheduler()
        self.bus = EventBus(self.scheduler.call_soon)
        self.engine = FakeEngine(self.bus)
        self.orch = Orchestrator(self.engine, self.bus, self.scheduler)

    def test_add_files_requests_metadata_for_new_paths_only(self):
        self.orch.add_files(["/a.png", "/notes.txt"])
        self.orch.add_files(["/a.png", "/b.webp"])
        self.assertEqual(self.engine.metadata_calls, [["/a.png"], ["/b.webp"]])

    def test_add_nothing_new_does_not_schedule_preview(self):
        self.orch.add_files(["/a.txt"])
        self.assertFalse(self.orch.preview.pending)

    def test_settings_validation(self):
        with self.assertRaises(ValueError):
            self.orch.set_quality(5)
        with self.assertRaises(ValueError):
            self.orch.set_format("bmp")
        with self.assertRaises(ValueError):
            self.orch.set_max_width(0)
        self.orch.set_format("JPEG")
        self.assertEqual(self.orch.state.format, "jpg")
        self.orch.set_max_height(None)
        self.assertIsNone(self.orch.state.max_height)

    def test_settings_without_items_do_not_schedule_preview(self):
        self.orch.set_quality(50)
        self.assertFalse(self.orch.preview.pending)

    def test_can_start(self):
        self.assertFalse(self.orch.can_start)
        self.orch.add_files(["/a.png"])
        self.assertFalse(self.orch.can_start)
        self.orch.set_output_dir("/out")
        self.assertTrue(self.orch.can_start)

    def test_events_are_applied_on_the_loop(self):
        self.orch.set_output_dir("/out")
        self.orch.add_files(["/a.png"])
        self.orch.preview.cancel()
        self.orch.start_compression()
        self.engine.emit_started("/a.png")
        self.engine.emit_finished("/a.png", "success", new_path="/out/a.webp")
        self.engine.emit_batch_finished()
        self.assertTrue(self.orch.is_processing)

        self.scheduler.run_pending()
        self.assertFalse(self.orch.is_processing)
        self.assertEqual(self.orch.summary().processed_count, 1)

    def test_observers_are_notified(self):
        calls = []
        unsubscribe = self.orch.subscribe(lambda: calls.append(1))
        self.orch.add_files(["/a.png"])
        self.orch.set_output_dir("/out")
        self.assertGreaterEqual(len(calls), 2)
        unsubscribe()
        count = len(calls)
        self.orch.clear()
        self.assertEqual(len(calls), count)

    def test_clear_cancels_pending_preview(self):
        self.orch.add_files(["/a.png"])
        self.assertTrue(self.orch.preview.pending)
        self.orch.clear()
        self.scheduler.advance(1000)
        self.assertEqual(self.engine.preview_requests, [])

    def test_clear_keeps_settings(self):
        orch = Orchestrator(self.engine, self.bus, self.scheduler, AppState(output_dir="/out", quality=40))
        orch.add_files(["/a.png"])
        orch.clear()
        self.assertEqual(orch.state.output_dir, "/out")
        self.assertEqual(orch.state.quality, 40)

    def test_set_naming(self):
        self.orch.set_naming(prefix="", suffix="")
        self.assertIsNone(self.orch.state.prefix)
        self.assertEqual(self.orch.state.suffix, "")

        self.orch.set_naming(prefix="web-")
        self.assertEqual(self.orch.state.prefix, "web-")
        self.assertIsNone(self.orch.state.suffix)

    def test_open_output_folder(self):
        self.orch.open_output_folder()
        self.assertEqual(self.engine.opened, [])
        self.orch.set_output_dir("/out")
        self.orch.open_output_folder()
        self.assertEqual(self.engine.opened, ["/out"])
