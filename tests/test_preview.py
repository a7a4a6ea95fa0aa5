import unittest

from tests._fakes import FakeEngine, ManualScheduler

from rimages.app.orchestrator import Orchestrator
from rimages.core.events import PREVIEW_DONE, EventBus


def _make(delay_ms=600):
    scheduler = ManualScheduler()
    bus = EventBus()
    engine = FakeEngine(bus)
    orch = Orchestrator(engine, bus, scheduler, preview_delay_ms=delay_ms)
    return orch, engine, scheduler, bus


class TestPreviewDebouncer(unittest.TestCase):
    def test_no_request_before_quiet_period(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/a.png"])
        scheduler.advance(599)
        self.assertEqual(engine.preview_requests, [])
        scheduler.advance(1)
        self.assertEqual(len(engine.preview_requests), 1)

    def test_rapid_changes_coalesce_into_one_request(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/a.png"])
        for quality in (80, 70, 60, 50, 40):
            orch.set_quality(quality)
            scheduler.advance(100)
        self.assertEqual(engine.preview_requests, [])

        scheduler.advance(600)
        self.assertEqual(len(engine.preview_requests), 1)
        config, request_id = engine.preview_requests[0]
        self.assertEqual(config.quality, 40)
        self.assertEqual(request_id, orch.preview.generation)
        self.assertEqual(len(scheduler.active_timers), 0)

    def test_preview_config_is_capped_and_never_writes(self):
        orch, engine, scheduler, _ = _make()
        orch.set_output_dir("/out")
        orch.set_format("avif")
        orch.add_files(["/1.png", "/2.png", "/3.png", "/4.png", "/5.png"])
        scheduler.advance(600)
        config, _ = engine.preview_requests[0]
        self.assertEqual(config.paths, ("/1.png", "/2.png", "/3.png"))
        self.assertEqual(config.output_dir, "")
        self.assertEqual(config.format, "avif")
        self.assertIsNone(config.prefix)

    def test_response_merges_sizes(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/a.png", "/b.png"])
        scheduler.advance(600)
        _, request_id = engine.preview_requests[0]
        engine.emit_preview(request_id, [("/a.png", 1000, 300), ("/b.png", 2000, 2500)])

        a, b = orch.items
        self.assertEqual((a.original_size, a.preview_size), (1000, 300))
        self.assertEqual((b.original_size, b.preview_size), (2000, 2500))
        self.assertFalse(orch.preview.listening)

    def test_bare_list_response_is_merged(self):
        orch, engine, scheduler, bus = _make()
        orch.add_files(["/a.png"])
        scheduler.advance(600)
        bus.emit(PREVIEW_DONE, [{"path": "/a.png", "original_size": 1000, "preview_size": 300}])
        self.assertEqual(orch.items[0].preview_size, 300)
        self.assertFalse(orch.preview.listening)

    def test_bare_list_after_change_is_discarded(self):
        orch, engine, scheduler, bus = _make()
        orch.add_files(["/a.png"])
        scheduler.advance(600)
        orch.set_quality(30)
        bus.emit(PREVIEW_DONE, [{"path": "/a.png", "original_size": 1000, "preview_size": 999}])
        self.assertIsNone(orch.items[0].preview_size)

    def test_late_response_after_change_is_discarded(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/a.png"])
        scheduler.advance(600)
        _, request_a = engine.preview_requests[0]

        orch.set_quality(30)  # generation moves on before A resolves
        engine.emit_preview(request_a, [("/a.png", 1000, 999)])
        self.assertIsNone(orch.items[0].preview_size)
        self.assertFalse(orch.preview.listening)

        scheduler.advance(600)
        _, request_b = engine.preview_requests[1]
        self.assertNotEqual(request_a, request_b)
        engine.emit_preview(request_b, [("/a.png", 1000, 200)])
        self.assertEqual(orch.items[0].preview_size, 200)

    def test_response_for_other_request_is_ignored(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/a.png"])
        scheduler.advance(600)
        _, request_id = engine.preview_requests[0]

        engine.emit_preview(request_id - 1, [("/a.png", 1000, 1)])
        self.assertIsNone(orch.items[0].preview_size)
        self.assertTrue(orch.preview.listening)

        engine.emit_preview(request_id, [("/a.png", 1000, 10)])
        self.assertEqual(orch.items[0].preview_size, 10)

    def test_only_one_preview_listener_at_a_time(self):
        orch, engine, scheduler, bus = _make()
        orch.add_files(["/a.png"])
        scheduler.advance(600)
        orch.set_quality(20)
        scheduler.advance(600)
        orch.set_quality(30)
        scheduler.advance(600)
        self.assertEqual(len(engine.preview_requests), 3)
        self.assertEqual(bus.listener_count(PREVIEW_DONE), 1)

    def test_empty_list_sends_nothing(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/a.png"])
        orch.remove_file("/a.png")
        scheduler.advance(1000)
        self.assertEqual(engine.preview_requests, [])

    def test_failure_is_logged_and_next_change_still_previews(self):
        orch, engine, scheduler, bus = _make()
        engine.preview_error = RuntimeError("engine down")
        orch.add_files(["/a.png"])
        with self.assertLogs("rimages.app.preview", level="WARNING"):
            scheduler.advance(600)
        self.assertEqual(bus.listener_count(PREVIEW_DONE), 0)

        engine.preview_error = None
        orch.set_quality(50)
        scheduler.advance(600)
        self.assertEqual(len(engine.preview_requests), 2)
        _, request_id = engine.preview_requests[1]
        engine.emit_preview(request_id, [("/a.png", 100, 50)])
        self.assertEqual(orch.items[0].preview_size, 50)

    def test_config_change_keeps_last_preview_visible(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/a.png"])
        scheduler.advance(600)
        engine.emit_preview(engine.preview_requests[0][1], [("/a.png", 1000, 400)])

        orch.set_format("jpg")
        self.assertEqual(orch.items[0].preview_size, 400)

    def test_unchanged_setting_does_not_restart_timer(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/a.png"])
        scheduler.advance(600)
        generation = orch.preview.generation
        orch.set_quality(orch.state.quality)
        self.assertEqual(orch.preview.generation, generation)
        self.assertEqual(scheduler.active_timers, [])

    def test_items_outside_prefix_have_no_estimate(self):
        orch, engine, scheduler, _ = _make()
        orch.add_files(["/1.png", "/2.png", "/3.png", "/4.png"])
        scheduler.advance(600)
        request_id = engine.preview_requests[0][1]
        engine.emit_preview(request_id, [("/1.png", 10, 5), ("/2.png", 10, 5), ("/3.png", 10, 5)])
        self.assertIsNone(orch.items[3].preview_size)
