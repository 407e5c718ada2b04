import uuid
from typing import Any, List, Optional, Tuple

from docintake.domain.errors import HandleReleasedError
from docintake.domain.models import Asset
from docintake.kernel.system.logging import get_logger
from docintake.services.assets.asset_list import AssetList

logger = get_logger(__name__)


class PreviewHandle:
    """
    Transient, revocable reference to an asset's bytes for display.
    Never part of the durable data model.
    """

    def __init__(self, index: int, asset: Asset) -> None:
        self.handle_id = uuid.uuid4().hex
        self.index = index
        self.asset_name = asset.name
        self.mime_type = asset.mime_type
        self._data: Optional[bytes] = asset.data

    @property
    def released(self) -> bool:
        return self._data is None

    def read(self) -> bytes:
        if self._data is None:
            raise HandleReleasedError(f"Preview handle {self.handle_id} was released")
        return self._data

    def release(self) -> None:
        self._data = None

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"PreviewHandle({self.index}, {self.asset_name!r}, {state})"


class ResourceLifecycleManager:
    """
    Keeps exactly one live preview handle per raster asset of the current list.

    Handles are bound to the identity of the whole list, not to single
    assets: any insertion, removal, reorder or replacement releases every
    handle issued for the old identity and derives a disjoint new set.
    close() releases everything and detaches from the list.
    """

    def __init__(self, assets: AssetList) -> None:
        self._assets = assets
        self._handles: List[PreviewHandle] = []
        self._identity: Optional[int] = None
        self._closed = False
        self._assets.subscribe(self._on_change)
        self.sync()

    @property
    def handles(self) -> Tuple[PreviewHandle, ...]:
        return tuple(self._handles)

    @property
    def live_count(self) -> int:
        return sum(1 for h in self._handles if not h.released)

    @property
    def identity(self) -> Optional[int]:
        return self._identity

    def get(self, index: int) -> Optional[PreviewHandle]:
        for handle in self._handles:
            if handle.index == index:
                return handle
        return None

    def sync(self) -> None:
        """
        Re-derives handles if the list identity moved since the last derivation.
        """
        if self._closed:
            return
        if self._identity == self._assets.identity:
            return

        self._release_all()

        derived: List[PreviewHandle] = []
        try:
            for index, asset in enumerate(self._assets.snapshot()):
                if asset.is_raster:
                    derived.append(PreviewHandle(index, asset))
        except BaseException:
            for handle in derived:
                handle.release()
            raise

        self._handles = derived
        self._identity = self._assets.identity
        logger.debug(f"Derived {len(derived)} preview handles for list {self._identity}")

    def _on_change(self, assets: AssetList) -> None:
        self.sync()

    def _release_all(self) -> None:
        for handle in self._handles:
            handle.release()
        if self._handles:
            logger.debug(f"Released {len(self._handles)} preview handles")
        self._handles = []
        self._identity = None

    def close(self) -> None:
        if self._closed:
            return
        self._assets.unsubscribe(self._on_change)
        self._release_all()
        self._closed = True

    def __enter__(self) -> "ResourceLifecycleManager":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
