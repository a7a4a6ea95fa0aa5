import unittest
from dataclasses import FrozenInstanceError, replace

from tests._test_path import SRC  # noqa: F401  (ensures src on path)

from rimages.core.models import (
    BatchConfiguration,
    ItemStatus,
    ProcessResult,
    RunPhase,
    RunState,
    WorkItem,
    is_accepted_path,
    split_display_name,
)


class TestBatchConfiguration(unittest.TestCase):
    def test_defaults(self):
        c = BatchConfiguration(paths=["/a.png"])
        self.assertEqual(c.paths, ("/a.png",))
        self.assertEqual(c.format, "webp")
        self.assertEqual(c.quality, 85)
        self.assertIsNone(c.max_width)
        self.assertTrue(c.is_preview)

    def test_frozen(self):
        c = BatchConfiguration(paths=())
        with self.assertRaises(FrozenInstanceError):
            c.quality = 50  # type: ignore[misc]

    def test_replace_revalidates(self):
        c = BatchConfiguration(paths=())
        c2 = replace(c, quality=40, output_dir="/out")
        self.assertEqual(c2.quality, 40)
        self.assertFalse(c2.is_preview)
        self.assertEqual(c.quality, 85)
        with self.assertRaises(ValueError):
            replace(c, quality=101)

    def test_quality_bounds(self):
        BatchConfiguration(paths=(), quality=10)
        BatchConfiguration(paths=(), quality=100)
        for bad in (9, 101, 50.5, True):
            with self.assertRaises(ValueError):
                BatchConfiguration(paths=(), quality=bad)  # type: ignore[arg-type]

    def test_dimensions_must_be_positive(self):
        with self.assertRaises(ValueError):
            BatchConfiguration(paths=(), max_width=0)
        with self.assertRaises(ValueError):
            BatchConfiguration(paths=(), max_height=-5)

    def test_format_alias_and_rejection(self):
        self.assertEqual(BatchConfiguration(paths=(), format="JPEG").format, "jpg")
        with self.assertRaises(ValueError):
            BatchConfiguration(paths=(), format="gif")

    def test_payload_shape(self):
        c = BatchConfiguration(paths=("/a.png", "/b.jpg"), output_dir="", format="png", quality=70)
        payload = c.to_payload()
        self.assertEqual(
            sorted(payload),
            sorted(["paths", "output_dir", "format", "quality", "max_width", "max_height",
                    "prefix", "suffix", "custom_names"]),
        )
        self.assertEqual(payload["paths"], ["/a.png", "/b.jpg"])
        self.assertIsNone(payload["custom_names"])

    def test_for_preview_drops_destination_and_naming(self):
        c = BatchConfiguration(paths=("/a.png",), output_dir="/out", prefix="x", suffix="-y",
                               custom_names={"/a.png": "z"})
        p = c.for_preview(("/a.png",))
        self.assertEqual(p.output_dir, "")
        self.assertIsNone(p.prefix)
        self.assertIsNone(p.suffix)
        self.assertIsNone(p.custom_names)


class TestWorkItem(unittest.TestCase):
    def test_display_name_and_extension(self):
        self.assertEqual(split_display_name("/home/me/photo.final.JPG"), ("photo.final", ".JPG"))
        self.assertEqual(split_display_name("C:\\pics\\cat.png"), ("cat", ".png"))
        self.assertEqual(split_display_name("README"), ("README", ""))
        self.assertEqual(split_display_name("/x/.png"), ("", ".png"))

    def test_from_path_defaults_idle(self):
        item = WorkItem.from_path("/x/a.webp")
        self.assertEqual(item.display_name, "a")
        self.assertEqual(item.extension, ".webp")
        self.assertIs(item.status, ItemStatus.IDLE)
        self.assertIsNone(item.original_size)
        self.assertFalse(item.has_dimensions)

    def test_accepted_extensions(self):
        self.assertTrue(is_accepted_path("/a.PNG"))
        self.assertTrue(is_accepted_path("/a.avif"))
        self.assertFalse(is_accepted_path("/a.txt"))
        self.assertFalse(is_accepted_path("/a.gif"))


class TestRunStateAndResults(unittest.TestCase):
    def test_is_processing_by_phase(self):
        self.assertFalse(RunState().is_processing)
        self.assertTrue(RunState(phase=RunPhase.DISPATCHING).is_processing)
        self.assertTrue(RunState(phase=RunPhase.RUNNING).is_processing)
        self.assertFalse(RunState(phase=RunPhase.FINISHED).is_processing)

    def test_terminal_statuses(self):
        self.assertTrue(ItemStatus.SUCCESS.is_terminal)
        self.assertTrue(ItemStatus.ERROR.is_terminal)
        self.assertFalse(ItemStatus.PROCESSING.is_terminal)

    def test_process_result_from_payload(self):
        r = ProcessResult.from_payload({"original": "/b.jpg", "status": "error", "error_msg": "decode failed"})
        self.assertFalse(r.succeeded)
        self.assertEqual(r.error_msg, "decode failed")
        self.assertIsNone(r.new_path)
