import asyncio
import unittest

from docintake.domain.errors import AssetBusyError, ValidationError
from docintake.domain.interfaces import PipelineContext
from docintake.domain.models import Asset, BatchState, ItemStatus
from docintake.services.assets.asset_list import AssetList
from docintake.services.batch.processor import BatchProcessor
from docintake.services.transform.engine import TransformEngine
from fakes import FakeDetector, detected, image_size, make_asset, pdf_asset


class TestBatchProcessor(unittest.TestCase):
    def setUp(self):
        self.a = make_asset("a.png", 1000, 800)
        self.b = make_asset("b.png", 1000, 800)
        self.c = make_asset("c.png", 1000, 800)
        self.detector = FakeDetector(
            {
                "a.png": detected(10, 10, 80, 80),
                "b.png": detected(1, 1, 98, 98),
            }
        )
        self.assets = AssetList([self.a, pdf_asset(), self.b, self.c])
        self.context = PipelineContext(assets=self.assets)
        self.processor = BatchProcessor(self.detector, TransformEngine())

    def test_mixed_batch_summary(self):
        progress = []
        summary = asyncio.run(self.processor.run(self.context, on_progress=progress.append))

        self.assertEqual(summary.success_count, 1)
        self.assertEqual(summary.skip_count, 1)
        self.assertEqual(summary.error_count, 1)
        self.assertEqual(summary.total, 3)

        self.assertEqual([p.current for p in progress], [1, 2, 3])
        self.assertTrue(all(p.total == 3 for p in progress))

        self.assertEqual(self.processor.state, BatchState.COMPLETED)
        self.assertEqual(self.context.batch_state, BatchState.COMPLETED)
        self.assertEqual(
            [item.status for item in self.processor.items],
            [ItemStatus.APPLIED, ItemStatus.SKIPPED, ItemStatus.FAILED],
        )

    def test_only_significant_crops_replace_assets(self):
        asyncio.run(self.processor.run(self.context))

        cropped = self.assets[0]
        self.assertEqual(cropped.name, "a.png")
        self.assertEqual(cropped.mime_type, "image/jpeg")
        self.assertEqual(image_size(cropped.data), (800, 640))

        self.assertEqual(self.assets[1].mime_type, "application/pdf")
        self.assertIs(self.assets[2], self.b)
        self.assertIs(self.assets[3], self.c)

    def test_non_raster_assets_are_never_detected(self):
        asyncio.run(self.processor.run(self.context))
        self.assertEqual(self.detector.calls, ["a.png", "b.png", "c.png"])

    def test_detector_exception_counts_as_error(self):
        self.detector.answers["c.png"] = RuntimeError("boom")
        summary = asyncio.run(self.processor.run(self.context))
        self.assertEqual(summary.error_count, 1)
        self.assertEqual(summary.success_count, 1)

    def test_crop_failure_counts_as_error_and_batch_continues(self):
        broken = Asset(name="broken.png", mime_type="image/png", data=b"garbage")
        self.detector.answers["broken.png"] = detected(10, 10, 50, 50)
        self.assets.insert(0, broken)

        summary = asyncio.run(self.processor.run(self.context))

        self.assertEqual(summary.error_count, 2)
        self.assertEqual(summary.success_count, 1)
        self.assertIs(self.assets[0], broken)

    def test_progress_callback_errors_do_not_abort(self):
        def explode(progress):
            raise RuntimeError("ui gone")

        summary = asyncio.run(self.processor.run(self.context, on_progress=explode))
        self.assertEqual(summary.total, 3)

    def test_empty_list(self):
        context = PipelineContext(assets=AssetList([pdf_asset()]))
        progress = []
        summary = asyncio.run(self.processor.run(context, on_progress=progress.append))

        self.assertEqual(summary.total, 0)
        self.assertEqual(progress, [])
        self.assertEqual(self.processor.state, BatchState.COMPLETED)

    def test_refuses_to_start_while_slots_are_busy(self):
        self.context.busy_slots.add(self.assets.slot_id(0))
        with self.assertRaises(AssetBusyError):
            asyncio.run(self.processor.run(self.context))
        self.assertEqual(self.detector.calls, [])
        self.assertEqual(self.processor.state, BatchState.IDLE)

    def test_refuses_to_start_during_another_batch(self):
        self.context.batch_state = BatchState.RUNNING
        with self.assertRaises(AssetBusyError):
            asyncio.run(self.processor.run(self.context))

    def test_max_items(self):
        processor = BatchProcessor(self.detector, TransformEngine(), max_items=2)
        with self.assertRaises(ValidationError):
            asyncio.run(processor.run(self.context))
        self.assertEqual(self.detector.calls, [])

    def test_crop_follows_asset_when_list_shifts(self):
        inserted = make_asset("new.png")

        def insert_front(asset):
            if asset.name == "b.png":
                self.assets.insert(0, inserted)

        self.detector.answers["b.png"] = detected(10, 10, 80, 80)
        self.detector.on_detect = insert_front

        summary = asyncio.run(self.processor.run(self.context))

        self.assertEqual(summary.success_count, 2)
        self.assertEqual(
            [a.name for a in self.assets], ["new.png", "a.png", "doc.pdf", "b.png", "c.png"]
        )
        self.assertIs(self.assets[0], inserted)
        self.assertEqual(self.assets[3].mime_type, "image/jpeg")
        self.assertEqual(image_size(self.assets[3].data), (800, 640))
        self.assertIs(self.assets[4], self.c)

    def test_crop_dropped_when_asset_removed_mid_batch(self):
        def remove_self(asset):
            if asset.name == "a.png":
                self.assets.remove(0)

        self.detector.on_detect = remove_self

        summary = asyncio.run(self.processor.run(self.context))

        self.assertEqual(summary.success_count, 0)
        self.assertEqual(summary.error_count, 2)
        self.assertEqual(self.processor.items[0].status, ItemStatus.FAILED)
        self.assertEqual([a.name for a in self.assets], ["doc.pdf", "b.png", "c.png"])
        self.assertIs(self.assets[1], self.b)

    def test_batch_blocks_list_while_running(self):
        seen = []
        self.detector.on_detect = lambda asset: seen.append(self.context.batch_running)
        asyncio.run(self.processor.run(self.context))
        self.assertEqual(seen, [True, True, True])
        self.assertFalse(self.context.batch_running)


if __name__ == "__main__":
    unittest.main()
