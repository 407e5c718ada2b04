import asyncio
import concurrent.futures
from typing import Optional

from docintake.domain.interfaces import IProcessor, PipelineContext
from docintake.domain.models import Asset, CropRect
from docintake.features.geometry.models import ComposeParams, TransformConfig
from docintake.features.geometry.processor import (
    ComposeProcessor,
    CropProcessor,
    QuarterTurnProcessor,
)
from docintake.kernel.image.logic import (
    JPEG_MIME,
    PNG_MIME,
    decode_image,
    encode_jpeg,
    encode_png,
)
from docintake.kernel.system.logging import get_logger

logger = get_logger(__name__)


class TransformEngine:
    """
    Geometric raster operations that turn an Asset into a replacement Asset.

    Parameters are validated before any pixel work. Decoding, the geometry
    step and encoding run in an executor so the event loop only suspends at
    those boundaries. The batch path writes lossy JPEG, the interactive
    compose path writes lossless PNG.
    """

    def __init__(
        self,
        config: Optional[TransformConfig] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ) -> None:
        self.config = config or TransformConfig()
        self._executor = executor

    async def crop(
        self, asset: Asset, rect: CropRect, context: Optional[PipelineContext] = None
    ) -> Asset:
        processor = CropProcessor(rect)
        return await self._run(asset, processor, "crop", lossless=False, context=context)

    async def rotate90(
        self, asset: Asset, context: Optional[PipelineContext] = None
    ) -> Asset:
        processor = QuarterTurnProcessor(90)
        return await self._run(asset, processor, "rotate90", lossless=False, context=context)

    async def compose_edit(
        self,
        asset: Asset,
        params: ComposeParams,
        context: Optional[PipelineContext] = None,
    ) -> Asset:
        processor = ComposeProcessor(params)
        return await self._run(asset, processor, "compose_edit", lossless=True, context=context)

    async def _run(
        self,
        asset: Asset,
        processor: IProcessor,
        operation: str,
        lossless: bool,
        context: Optional[PipelineContext],
    ) -> Asset:
        loop = asyncio.get_running_loop()

        source = await loop.run_in_executor(self._executor, decode_image, asset.data)
        result = await loop.run_in_executor(self._executor, processor.process, source)

        if lossless:
            data = await loop.run_in_executor(self._executor, encode_png, result)
            mime = PNG_MIME
        else:
            data = await loop.run_in_executor(
                self._executor, encode_jpeg, result, self.config.batch_jpeg_quality
            )
            mime = JPEG_MIME

        src_size = (source.shape[1], source.shape[0])
        out_size = (result.shape[1], result.shape[0])
        logger.debug(
            f"{operation} {asset.name}: {src_size[0]}x{src_size[1]} -> "
            f"{out_size[0]}x{out_size[1]} ({len(data)} bytes, {mime})"
        )
        if context is not None:
            context.metrics["last_transform"] = {
                "operation": operation,
                "source_size": src_size,
                "output_size": out_size,
            }

        return asset.with_data(data, mime)
