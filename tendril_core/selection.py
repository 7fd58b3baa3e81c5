"""
Selection bookkeeping for the editor.

Each category (nodes, bounding boxes, svg images, edges) keeps an ordered
set of selected ids, plus one optional tendril slot paired with its owner.
Selecting in one category clears the others; multi-select toggles within
a single category.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SelectionCategory(str, Enum):
    """Kinds of item that can be selected."""
    NODE = "node"
    BOUNDING_BOX = "bounding_box"
    SVG_IMAGE = "svg_image"
    EDGE = "edge"


@dataclass(frozen=True)
class TendrilSelection:
    """The selected tendril and the element that owns it."""
    category: SelectionCategory
    owner_id: str
    tendril_id: str

    def to_dict(self) -> dict:
        return {
            "category": self.category.value,
            "owner_id": self.owner_id,
            "tendril_id": self.tendril_id,
        }


class Selection:
    """Per-category selection sets with a single tendril slot."""

    def __init__(self):
        self._selected: dict[SelectionCategory, list[str]] = {
            category: [] for category in SelectionCategory
        }
        self._tendril: Optional[TendrilSelection] = None

    @property
    def tendril(self) -> Optional[TendrilSelection]:
        return self._tendril

    def selected(self, category: SelectionCategory) -> list[str]:
        return list(self._selected[category])

    def single(self, category: SelectionCategory) -> Optional[str]:
        """The selected id when exactly one item of the category is selected."""
        ids = self._selected[category]
        return ids[0] if len(ids) == 1 else None

    def is_empty(self) -> bool:
        return self._tendril is None and not any(self._selected.values())

    def _clear_others(self, keep: SelectionCategory) -> None:
        for category, ids in self._selected.items():
            if category != keep:
                ids.clear()

    def select(
        self,
        category: SelectionCategory,
        item_id: Optional[str],
        multi_select: bool = False,
    ) -> None:
        """
        Select an item.

        Without multi_select the category becomes exactly {item_id} (or empty
        for None) and the tendril slot is cleared. With multi_select the id is
        toggled; the tendril slot survives only while its owner is still
        selected.
        """
        self._clear_others(category)
        ids = self._selected[category]

        if not multi_select:
            ids.clear()
            if item_id is not None:
                ids.append(item_id)
            self._tendril = None
            return

        if item_id is not None:
            if item_id in ids:
                ids.remove(item_id)
            else:
                ids.append(item_id)

        slot = self._tendril
        if slot is not None and (slot.category != category or slot.owner_id not in ids):
            self._tendril = None

    def select_tendril(self, category: SelectionCategory, owner_id: str, tendril_id: str) -> None:
        """Select a tendril; its owner becomes the only selected item."""
        self.select(category, owner_id)
        self._tendril = TendrilSelection(category, owner_id, tendril_id)

    def clear_all(self) -> None:
        for ids in self._selected.values():
            ids.clear()
        self._tendril = None

    def forget(self, item_id: str) -> None:
        """Drop a deleted item from every category and the tendril slot."""
        for ids in self._selected.values():
            if item_id in ids:
                ids.remove(item_id)
        if self._tendril is not None and self._tendril.owner_id == item_id:
            self._tendril = None

    def forget_tendril(self, owner_id: str, tendril_id: str) -> None:
        slot = self._tendril
        if slot is not None and slot.owner_id == owner_id and slot.tendril_id == tendril_id:
            self._tendril = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "nodes": self.selected(SelectionCategory.NODE),
            "bounding_boxes": self.selected(SelectionCategory.BOUNDING_BOX),
            "svg_images": self.selected(SelectionCategory.SVG_IMAGE),
            "edges": self.selected(SelectionCategory.EDGE),
            "tendril": self._tendril.to_dict() if self._tendril else None,
        }
