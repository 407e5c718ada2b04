import time
from typing import List, Optional

from docintake.domain.errors import AssetBusyError, ValidationError
from docintake.domain.interfaces import (
    Detector,
    ITransformEngine,
    PipelineContext,
    ProgressCallback,
)
from docintake.domain.models import (
    BatchItem,
    BatchProgress,
    BatchState,
    BatchSummary,
    ItemStatus,
)
from docintake.features.detection.logic import is_significant_result
from docintake.kernel.system.logging import get_logger

logger = get_logger(__name__)


class BatchProcessor:
    """
    Sequential auto-crop over every raster asset of a pipeline context.

    Each eligible item goes detection -> significance -> crop before the
    next one starts. Failures of any kind count as errors and the batch
    moves on; replacements already applied are kept.
    """

    def __init__(
        self,
        detector: Detector,
        engine: ITransformEngine,
        max_items: Optional[int] = None,
    ) -> None:
        self.detector = detector
        self.engine = engine
        self.max_items = max_items

        self.state = BatchState.IDLE
        self.items: List[BatchItem] = []
        self.progress = BatchProgress(0, 0)
        self.summary: Optional[BatchSummary] = None

    def _check_can_start(self, context: PipelineContext, eligible: int) -> None:
        if context.batch_running:
            raise AssetBusyError("A batch is already running on this asset list")
        if context.busy_slots:
            raise AssetBusyError(
                "Assets have edits in flight",
                f"{len(context.busy_slots)} busy slot(s)",
            )
        if self.max_items is not None and eligible > self.max_items:
            raise ValidationError(
                f"Batch of {eligible} images exceeds the limit of {self.max_items}"
            )

    async def run(
        self,
        context: PipelineContext,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchSummary:
        assets = context.assets
        indices = assets.raster_indices()
        self._check_can_start(context, len(indices))

        self.items = [
            BatchItem(index=i, asset=assets[i], slot_id=assets.slot_id(i)) for i in indices
        ]
        total = len(self.items)
        success = skipped = errors = 0

        self.state = BatchState.RUNNING
        context.batch_state = BatchState.RUNNING
        self.progress = BatchProgress(0, total)
        self.summary = None
        start_time = time.perf_counter()
        logger.info(f"Starting auto-crop batch over {total} image(s)")

        try:
            for current, item in enumerate(self.items, 1):
                item.status = await self._process_item(item, context)

                if item.status == ItemStatus.APPLIED:
                    success += 1
                elif item.status == ItemStatus.SKIPPED:
                    skipped += 1
                else:
                    errors += 1

                self.progress = BatchProgress(current, total)
                self._notify(on_progress, self.progress)
        finally:
            context.batch_state = BatchState.COMPLETED
            self.state = BatchState.COMPLETED

        self.summary = BatchSummary(
            success_count=success, skip_count=skipped, error_count=errors
        )
        elapsed = time.perf_counter() - start_time
        logger.info(
            f"Batch complete in {elapsed:.2f}s: {success} applied, "
            f"{skipped} skipped, {errors} failed"
        )
        return self.summary

    async def _process_item(self, item: BatchItem, context: PipelineContext) -> ItemStatus:
        item.status = ItemStatus.ANALYZING
        try:
            result = await self.detector.detect(item.asset)
        except Exception as e:
            logger.error(f"[{item.index}] {item.asset.name}: detector raised: {e}")
            return ItemStatus.FAILED

        if not result.success or result.crop_rect is None:
            logger.info(f"[{item.index}] {item.asset.name}: not detected")
            return ItemStatus.FAILED

        if not is_significant_result(result):
            logger.info(f"[{item.index}] {item.asset.name}: crop not significant, skipped")
            return ItemStatus.SKIPPED

        item.status = ItemStatus.APPLYING
        try:
            cropped = await self.engine.crop(item.asset, result.crop_rect, context)
            stored = context.assets.replace_slot(item.slot_id, cropped)
        except Exception as e:
            logger.error(f"[{item.index}] {item.asset.name}: crop failed: {e}")
            return ItemStatus.FAILED

        if not stored:
            logger.warning(f"[{item.index}] {item.asset.name}: removed during the batch, crop dropped")
            return ItemStatus.FAILED

        item.asset = cropped
        logger.info(
            f"[{item.index}] {item.asset.name}: applied "
            f"(confidence {result.confidence:.2f})"
        )
        return ItemStatus.APPLIED

    @staticmethod
    def _notify(on_progress: Optional[ProgressCallback], progress: BatchProgress) -> None:
        if on_progress is None:
            return
        try:
            on_progress(progress)
        except Exception as e:
            logger.error(f"Progress callback failed at {progress.current}/{progress.total}: {e}")
