from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional, Protocol, Set, runtime_checkable

from docintake.domain.models import Asset, BatchProgress, BatchState, DetectionResult
from docintake.domain.types import PixelBuffer

if TYPE_CHECKING:
    from docintake.services.assets.asset_list import AssetList


ProgressCallback = Callable[[BatchProgress], None]


@dataclass
class PipelineContext:
    """
    Shared state passed by reference through the batch and editing services.
    """

    assets: "AssetList"

    # Slots with an interactive operation in flight
    busy_slots: Set[str] = field(default_factory=set)

    batch_state: BatchState = BatchState.IDLE
    # Filled by the transform engine (e.g. last output size)
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def batch_running(self) -> bool:
        return self.batch_state == BatchState.RUNNING


@runtime_checkable
class Detector(Protocol):
    """
    Interface for anything that proposes a crop for a raster asset.
    Implementations never raise; failures come back as DetectionResult.failure().
    """

    async def detect(self, asset: Asset) -> DetectionResult: ...


class ITransformEngine(Protocol):
    """
    Interface for the geometric raster operations used by the services.
    """

    async def crop(
        self, asset: Asset, rect: Any, context: Optional[PipelineContext] = None
    ) -> Asset: ...

    async def rotate90(
        self, asset: Asset, context: Optional[PipelineContext] = None
    ) -> Asset: ...

    async def compose_edit(
        self, asset: Asset, params: Any, context: Optional[PipelineContext] = None
    ) -> Asset: ...


@runtime_checkable
class IProcessor(Protocol):
    """
    Interface for any pixel-level geometry step.
    """

    def process(self, image: PixelBuffer) -> PixelBuffer: ...
