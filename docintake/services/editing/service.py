from contextlib import contextmanager
from typing import Iterator, Optional

from docintake.domain.errors import AssetBusyError, ValidationError
from docintake.domain.interfaces import Detector, ITransformEngine, PipelineContext
from docintake.domain.models import Asset, CropRect, EditOutcome
from docintake.features.detection.logic import is_significant_result
from docintake.features.geometry.models import ComposeParams
from docintake.kernel.system.logging import get_logger

logger = get_logger(__name__)


class EditingService:
    """
    Single-asset operations triggered by a user on one intake slot.

    A slot with an operation in flight rejects a second one, and nothing runs
    while a batch owns the list. Different slots may be edited concurrently.
    Decode, encode and validation errors propagate so the caller can retry or
    fall back to the manual editor.
    """

    def __init__(
        self,
        context: PipelineContext,
        engine: ITransformEngine,
        detector: Optional[Detector] = None,
    ) -> None:
        self.context = context
        self.engine = engine
        self.detector = detector

    def is_busy(self, index: int) -> bool:
        if self.context.batch_running:
            return True
        return self.context.assets.slot_id(index) in self.context.busy_slots

    @contextmanager
    def _claim(self, index: int) -> Iterator[str]:
        if self.context.batch_running:
            raise AssetBusyError("A batch is running on this asset list")
        slot_id = self.context.assets.slot_id(index)
        if slot_id in self.context.busy_slots:
            raise AssetBusyError(f"Asset {index} already has an operation in flight")
        self.context.busy_slots.add(slot_id)
        try:
            yield slot_id
        finally:
            self.context.busy_slots.discard(slot_id)

    def _raster_asset(self, index: int) -> Asset:
        asset = self.context.assets[index]
        if not asset.is_raster:
            raise ValidationError(f"{asset.name} is not an editable image ({asset.mime_type})")
        return asset

    def _store(self, slot_id: str, asset: Asset) -> None:
        if not self.context.assets.replace_slot(slot_id, asset):
            logger.warning(f"Slot of {asset.name} was removed during the edit, result dropped")

    async def auto_crop(self, index: int) -> EditOutcome:
        """
        Detect, then crop when the proposal is significant.
        """
        asset = self._raster_asset(index)
        with self._claim(index) as slot_id:
            result = await self._detect(asset)
            if not result.success or result.crop_rect is None:
                return EditOutcome.NOT_DETECTED
            if not is_significant_result(result):
                return EditOutcome.NOT_SIGNIFICANT

            cropped = await self.engine.crop(asset, result.crop_rect, self.context)
            self._store(slot_id, cropped)
            return EditOutcome.APPLIED

    async def auto_rotate(self, index: int) -> EditOutcome:
        """
        Detect, then apply only the proposed rotation to the full frame.
        """
        asset = self._raster_asset(index)
        with self._claim(index) as slot_id:
            result = await self._detect(asset)
            if not result.success or result.crop_rect is None:
                return EditOutcome.NOT_DETECTED
            if result.crop_rect.rotation == 0:
                return EditOutcome.ALREADY_ALIGNED

            rotated = await self.engine.crop(
                asset, CropRect.full_frame(result.crop_rect.rotation), self.context
            )
            self._store(slot_id, rotated)
            return EditOutcome.APPLIED

    async def rotate90(self, index: int) -> Asset:
        asset = self._raster_asset(index)
        with self._claim(index) as slot_id:
            rotated = await self.engine.rotate90(asset, self.context)
            self._store(slot_id, rotated)
            return rotated

    async def compose_edit(self, index: int, params: ComposeParams) -> Asset:
        asset = self._raster_asset(index)
        with self._claim(index) as slot_id:
            edited = await self.engine.compose_edit(asset, params, self.context)
            self._store(slot_id, edited)
            return edited

    async def _detect(self, asset: Asset):
        if self.detector is None:
            raise ValidationError("No detection service configured")
        return await self.detector.detect(asset)
