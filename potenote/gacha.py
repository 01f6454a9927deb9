"""Gacha pulls with rarity weighting and pity guarantees."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from .catalog import Item, ItemCatalog
from .config import GachaSettings
from .errors import InsufficientResource
from .inventory import Inventory
from .ledger import ResourceLedger
from .models import GachaPity
from .utils import utc_now

logger = logging.getLogger("potenote.gacha")
_roll_logger = logging.getLogger("potenote.gacha.rolls")

T = TypeVar("T")

# Evaluated top to bottom against a single draw.
RARITY_PRIORITY = ("SSR", "SR", "R", "N")
SR_OR_BETTER = ("SR", "SSR")


@dataclass(frozen=True)
class GachaResult:
    item: Item
    is_new: bool
    forced_by_pity: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def rarity(self) -> str:
        return self.item.rarity


def weighted_choice(items: Sequence[T], weight_getter: Callable[[T], float], rng: random.Random) -> T:
    """Roulette-wheel selection: item ``i`` wins with probability ``w_i / sum(w)``."""
    if not items:
        raise ValueError("weighted_choice requires at least one item")
    weights = [max(0.0, float(weight_getter(item))) for item in items]
    total = sum(weights)
    if total <= 0:
        return rng.choice(list(items))
    pick = rng.uniform(0, total)
    cumulative = 0.0
    for item, weight in zip(items, weights):
        cumulative += weight
        if pick <= cumulative:
            return item
    # Floating point edge case.
    return items[-1]


def roll_rarity(rates: Mapping[str, float], rng: random.Random) -> str:
    """Draw a rarity from the cumulative percentage table, SSR first."""
    total = sum(float(rates.get(rarity, 0.0)) for rarity in RARITY_PRIORITY)
    draw = rng.random() * total
    cumulative = 0.0
    for rarity in RARITY_PRIORITY:
        cumulative += float(rates.get(rarity, 0.0))
        if draw < cumulative:
            return rarity
    return "N"


def choose_rarity(
    pity: GachaPity,
    settings: GachaSettings,
    rng: random.Random,
    rates: Optional[Mapping[str, float]] = None,
) -> Tuple[str, Optional[str]]:
    """Pick the rarity for the next pull.

    Returns ``(rarity, forced)`` where ``forced`` names the guarantee that
    fired ("SSR" or "SR") or is ``None`` for a normal roll.
    """
    table = rates or settings.rates
    if pity.ssr_counter + 1 >= settings.ssr_guarantee:
        return "SSR", "SSR"
    if pity.sr_counter + 1 >= settings.sr_guarantee:
        sr = float(table.get("SR", 0.0))
        ssr = float(table.get("SSR", 0.0))
        draw = rng.random() * (sr + ssr)
        return ("SSR" if draw < ssr else "SR"), "SR"
    return roll_rarity(table, rng), None


def advance_pity(pity: GachaPity, rarity: str) -> None:
    pity.sr_counter += 1
    pity.ssr_counter += 1
    if rarity in SR_OR_BETTER:
        pity.sr_counter = 0
    if rarity == "SSR":
        pity.ssr_counter = 0


class GachaEngine:
    """Charges the ledger, rolls an item and records it in the inventory."""

    def __init__(
        self,
        *,
        ledger: ResourceLedger,
        inventory: Inventory,
        pity: GachaPity,
        catalog: ItemCatalog,
        settings: Optional[GachaSettings] = None,
        rng: Optional[random.Random] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._ledger = ledger
        self._inventory = inventory
        self._pity = pity
        self._catalog = catalog
        self._settings = settings or GachaSettings()
        self._rates = catalog.rates or dict(self._settings.rates)
        self._rng = rng or random.Random()
        self._on_change = on_change

    @property
    def pity(self) -> GachaPity:
        return self._pity

    def pull(self, *, use_ticket: bool = False) -> Union[GachaResult, InsufficientResource]:
        if use_ticket:
            error = self._ledger.charge_ticket()
        else:
            error = self._ledger.charge_currency(self._settings.single_cost)
        if error is not None:
            logger.info("Gacha pull refused: %s", error.message)
            return error
        result = self._draw()
        self._changed()
        return result

    def pull_ten(self) -> Union[List[GachaResult], InsufficientResource]:
        error = self._ledger.charge_currency(self._settings.ten_pull_cost)
        if error is not None:
            logger.info("Ten-pull refused: %s", error.message)
            return error
        results = [self._draw() for _ in range(10)]
        self._changed()
        return results

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _draw(self) -> GachaResult:
        rarity, forced = choose_rarity(self._pity, self._settings, self._rng, self._rates)
        pool = self._catalog.by_rarity(rarity)
        item = weighted_choice(pool, lambda entry: entry.weight, self._rng)
        advance_pity(self._pity, rarity)
        is_new = self._inventory.add_item(item.id, notify=False)
        _roll_logger.debug(
            "Rolled %s (%s)%s | pity sr=%s ssr=%s | new=%s",
            item.id,
            rarity,
            f" forced={forced}" if forced else "",
            self._pity.sr_counter,
            self._pity.ssr_counter,
            is_new,
        )
        return GachaResult(item=item, is_new=is_new, forced_by_pity=forced)


__all__ = [
    "GachaEngine",
    "GachaResult",
    "RARITY_PRIORITY",
    "advance_pity",
    "choose_rarity",
    "roll_rarity",
    "weighted_choice",
]
