"""Owned items and equipped slots."""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from .catalog import EQUIPMENT_CATEGORIES, ItemCatalog
from .models import InventoryEntry
from .utils import utc_now

logger = logging.getLogger("potenote.inventory")


class Inventory:
    def __init__(
        self,
        entries: Dict[str, InventoryEntry],
        equipment: Dict[str, str],
        catalog: ItemCatalog,
        *,
        max_stack: int = 99,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._entries = entries
        self._equipment = equipment
        self._catalog = catalog
        self._max_stack = max_stack
        self._on_change = on_change

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def quantity(self, item_id: str) -> int:
        entry = self._entries.get(item_id)
        return entry.quantity if entry else 0

    def entries(self) -> List[InventoryEntry]:
        return list(self._entries.values())

    def add_item(self, item_id: str, quantity: int = 1, *, notify: bool = True) -> bool:
        """Add ``quantity`` of an item, capped at the max stack. Returns True if newly owned."""
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        entry = self._entries.get(item_id)
        is_new = entry is None
        if entry is None:
            self._entries[item_id] = InventoryEntry(
                item_id=item_id,
                quantity=min(quantity, self._max_stack),
                obtained_at=utc_now(),
            )
        else:
            entry.quantity = min(entry.quantity + quantity, self._max_stack)
        if notify:
            self._changed()
        return is_new

    def remove_item(self, item_id: str, quantity: int = 1) -> bool:
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        entry = self._entries.get(item_id)
        if entry is None or entry.quantity < quantity:
            return False
        entry.quantity -= quantity
        if entry.quantity <= 0:
            del self._entries[item_id]
            for category, equipped in list(self._equipment.items()):
                if equipped == item_id:
                    del self._equipment[category]
        self._changed()
        return True

    # Equipment ----------------------------------------------------------------

    def equipped(self, category: str) -> Optional[str]:
        return self._equipment.get(category)

    def equip_item(self, item_id: str) -> bool:
        item = self._catalog.get(item_id)
        if item is None or not item.is_equipment or item.category is None:
            return False
        if self.quantity(item_id) <= 0:
            return False
        self._equipment[item.category] = item_id
        self._changed()
        return True

    def unequip_item(self, category: str) -> None:
        if category not in EQUIPMENT_CATEGORIES:
            raise ValueError(f"Unknown equipment category: {category}")
        if self._equipment.pop(category, None) is not None:
            self._changed()


__all__ = ["Inventory"]
