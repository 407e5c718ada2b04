import itertools
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from docintake.domain.models import Asset
from docintake.kernel.system.logging import get_logger

logger = get_logger(__name__)

ChangeListener = Callable[["AssetList"], None]

_identity_counter = itertools.count(1)


@dataclass(frozen=True)
class AssetEntry:
    slot_id: str
    asset: Asset


class AssetList:
    """
    Ordered list of intake assets.

    Each position carries a slot id that survives replacement and reordering,
    so an operation started on one asset can find it again after the user
    moved things around. Every mutation gives the list a new identity and
    notifies subscribers.
    """

    def __init__(self, assets: Iterable[Asset] = ()) -> None:
        self._entries: List[AssetEntry] = [self._new_entry(a) for a in assets]
        self._identity = next(_identity_counter)
        self._listeners: List[ChangeListener] = []

    @staticmethod
    def _new_entry(asset: Asset) -> AssetEntry:
        return AssetEntry(slot_id=uuid.uuid4().hex, asset=asset)

    # --- Read access ---

    @property
    def identity(self) -> int:
        return self._identity

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index: int) -> Asset:
        return self._entries[index].asset

    def __iter__(self) -> Iterator[Asset]:
        return iter([e.asset for e in self._entries])

    def snapshot(self) -> Tuple[Asset, ...]:
        return tuple(e.asset for e in self._entries)

    def slot_id(self, index: int) -> str:
        return self._entries[index].slot_id

    def index_of_slot(self, slot_id: str) -> Optional[int]:
        for i, entry in enumerate(self._entries):
            if entry.slot_id == slot_id:
                return i
        return None

    def raster_indices(self) -> List[int]:
        return [i for i, e in enumerate(self._entries) if e.asset.is_raster]

    # --- Subscriptions ---

    def subscribe(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self) -> None:
        self._identity = next(_identity_counter)
        for listener in list(self._listeners):
            listener(self)

    # --- Mutations ---

    def append(self, asset: Asset) -> None:
        self._entries.append(self._new_entry(asset))
        self._changed()

    def extend(self, assets: Iterable[Asset]) -> None:
        new_entries = [self._new_entry(a) for a in assets]
        if not new_entries:
            return
        self._entries.extend(new_entries)
        self._changed()

    def insert(self, index: int, asset: Asset) -> None:
        self._entries.insert(index, self._new_entry(asset))
        self._changed()

    def remove(self, index: int) -> Asset:
        entry = self._entries.pop(index)
        self._changed()
        return entry.asset

    def move(self, from_index: int, to_index: int) -> None:
        if from_index == to_index:
            return
        if not (0 <= to_index < len(self._entries)):
            raise IndexError(f"Target index {to_index} out of range")
        entry = self._entries.pop(from_index)
        self._entries.insert(to_index, entry)
        self._changed()

    def move_up(self, index: int) -> None:
        if index > 0:
            self.move(index, index - 1)

    def move_down(self, index: int) -> None:
        if index < len(self._entries) - 1:
            self.move(index, index + 1)

    def replace(self, index: int, asset: Asset) -> None:
        """
        Swaps in an edited asset at the same logical position.
        """
        old = self._entries[index]
        self._entries[index] = AssetEntry(slot_id=old.slot_id, asset=asset)
        logger.debug(f"Replaced asset at {index}: {old.asset.name} ({asset.mime_type})")
        self._changed()

    def replace_slot(self, slot_id: str, asset: Asset) -> bool:
        """
        Replaces by slot id. Returns False when the slot no longer exists.
        """
        index = self.index_of_slot(slot_id)
        if index is None:
            return False
        self.replace(index, asset)
        return True

    def clear(self) -> None:
        if not self._entries:
            return
        self._entries.clear()
        self._changed()
