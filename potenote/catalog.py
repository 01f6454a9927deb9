"""Static gacha item catalog loaded from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import yaml

from .config import DEFAULT_CATALOG_PATH, RARITIES, merged_rates

logger = logging.getLogger("potenote.catalog")

ITEM_TYPES = ("consumable", "equipment")
EQUIPMENT_CATEGORIES = ("head", "body", "face", "accessory")


@dataclass(frozen=True)
class Item:
    id: str
    name: str
    type: str
    rarity: str
    weight: float
    category: Optional[str] = None
    description: str = ""

    @property
    def is_equipment(self) -> bool:
        return self.type == "equipment"


@dataclass
class ItemCatalog:
    items: Dict[str, Item] = field(default_factory=dict)
    rates: Optional[Dict[str, float]] = None

    def get(self, item_id: str) -> Optional[Item]:
        return self.items.get(item_id)

    def by_rarity(self, rarity: str) -> List[Item]:
        return [item for item in self.items.values() if item.rarity == rarity]

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.items


def _parse_item(entry: Mapping[str, object]) -> Optional[Item]:
    item_id = str(entry.get("id", "")).strip()
    if not item_id:
        logger.warning("Skipping catalog entry without id: %s", entry)
        return None
    rarity = str(entry.get("rarity", "")).upper()
    if rarity not in RARITIES:
        logger.warning("Skipping %s: unknown rarity %s", item_id, entry.get("rarity"))
        return None
    item_type = str(entry.get("type", "consumable")).lower()
    if item_type not in ITEM_TYPES:
        logger.warning("Skipping %s: unknown type %s", item_id, item_type)
        return None
    category = entry.get("category")
    if category is not None:
        category = str(category).lower()
        if category not in EQUIPMENT_CATEGORIES:
            logger.warning("Ignoring unknown category %s on %s", category, item_id)
            category = None
    if item_type == "equipment" and category is None:
        logger.warning("Skipping %s: equipment requires a category", item_id)
        return None
    try:
        weight = float(entry.get("weight", 1.0))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid weight for %s", item_id)
        weight = 1.0
    if weight <= 0:
        logger.warning("Skipping %s: weight must be positive", item_id)
        return None
    return Item(
        id=item_id,
        name=str(entry.get("name", item_id)),
        type=item_type,
        rarity=rarity,
        weight=weight,
        category=category,
        description=str(entry.get("description", "") or ""),
    )


def build_catalog(entries: Iterable[Mapping[str, object]], rates: Optional[Mapping[str, object]] = None) -> ItemCatalog:
    catalog = ItemCatalog(rates=merged_rates(rates) if rates else None)
    for entry in entries:
        item = _parse_item(entry)
        if item is None:
            continue
        if item.id in catalog.items:
            logger.warning("Duplicate catalog id %s; keeping the first entry", item.id)
            continue
        catalog.items[item.id] = item
    missing = [rarity for rarity in RARITIES if not catalog.by_rarity(rarity)]
    if missing:
        raise ValueError(f"Item catalog has no items for rarities: {', '.join(missing)}")
    return catalog


def load_catalog(path: Optional[Path] = None) -> ItemCatalog:
    """Load the catalog YAML. Every rarity must have at least one item."""
    target = path or DEFAULT_CATALOG_PATH
    payload = yaml.safe_load(target.read_text(encoding="utf-8")) or {}
    if not isinstance(payload, Mapping):
        raise ValueError(f"Item catalog {target} must be a mapping.")
    entries: Sequence[Mapping[str, object]] = payload.get("items") or []
    rates = payload.get("rates")
    catalog = build_catalog(entries, rates if isinstance(rates, Mapping) else None)
    logger.info("Loaded %s catalog items from %s", len(catalog), target)
    return catalog


__all__ = [
    "EQUIPMENT_CATEGORIES",
    "ITEM_TYPES",
    "Item",
    "ItemCatalog",
    "build_catalog",
    "load_catalog",
]
