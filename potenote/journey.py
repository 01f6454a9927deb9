"""Quiz rewards and travel progression (flags and islands)."""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional, Sequence

from .config import RewardSettings
from .ledger import ResourceLedger
from .models import Coordinate, Flag, Island, Journey, QuizResult
from .utils import new_record_id, utc_now

logger = logging.getLogger("potenote.journey")

GOLDEN_ANGLE = math.pi * (3 - math.sqrt(5))
STARTING_ISLAND_NAME = "始まりの島"


def spiral_position(distance: float) -> Coordinate:
    """Place ``distance`` on a golden-angle spiral so flags never overlap."""
    theta = distance * GOLDEN_ANGLE
    radius = 10 * math.sqrt(distance + 1)
    return Coordinate(x=round(radius * math.cos(theta), 2), y=round(radius * math.sin(theta), 2))


class JourneyTracker:
    def __init__(
        self,
        journey: Journey,
        ledger: ResourceLedger,
        *,
        rewards: Optional[RewardSettings] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._journey = journey
        self._ledger = ledger
        self._rewards = rewards or RewardSettings()
        self._on_change = on_change

    @property
    def journey(self) -> Journey:
        return self._journey

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def calculate_result(self, quiz_id: str, correct: int, total: int, *, ad_watched: bool = False) -> QuizResult:
        if total <= 0 or not 0 <= correct <= total:
            raise ValueError(f"invalid score {correct}/{total}")
        rewards = self._rewards
        is_perfect = correct == total
        coins = correct * rewards.quest_base_coins
        distance = correct * rewards.distance_per_correct
        if is_perfect:
            coins += rewards.quest_perfect_bonus
            distance += rewards.distance_perfect_bonus
        doubled = ad_watched or self._ledger.is_vip_active()
        if doubled:
            coins *= rewards.coin_multiplier
        return QuizResult(
            quiz_id=quiz_id,
            correct_count=correct,
            total_questions=total,
            is_perfect=is_perfect,
            earned_coins=coins,
            earned_distance=distance,
            is_doubled=doubled,
            timestamp=utc_now(),
        )

    def apply_quiz_result(self, result: QuizResult) -> None:
        """Credit coins and lifetime counters. Journey distance moves with :meth:`add_flag`."""
        self._ledger.add_currency(result.earned_coins)
        self._ledger.record_quiz(
            correct_answers=result.correct_count,
            distance=result.earned_distance,
            cleared=True,
        )

    def ensure_starting_island(self) -> None:
        if self._journey.islands:
            return
        self._journey.islands.append(Island(id=0, distance=0.0, name=STARTING_ISLAND_NAME, unlocked_at=utc_now()))
        self._changed()

    def add_flag(self, quiz_id: str, keywords: Sequence[str], earned_distance: float) -> Flag:
        distance = self._journey.total_distance + earned_distance
        position = spiral_position(distance)
        flag = Flag(
            id=new_record_id("flag"),
            quiz_id=quiz_id,
            keywords=tuple(keywords[:3]),
            position=position,
            distance=distance,
            created_at=utc_now(),
        )
        self._journey.total_distance = distance
        self._journey.flags.append(flag)
        self._journey.current_position = position
        logger.debug("Flag %s at %.1f km (+%.1f)", flag.id, distance, earned_distance)
        self._changed()
        return flag

    def check_and_unlock_island(self) -> Optional[Island]:
        interval = self._rewards.island_interval
        unlocked = len(self._journey.islands)
        next_distance = unlocked * interval
        if unlocked == 0 or self._journey.total_distance < next_distance:
            return None
        recent = [keyword for flag in self._journey.flags[-5:] for keyword in flag.keywords]
        island = Island(
            id=unlocked,
            distance=next_distance,
            name=f"島 {unlocked + 1}",
            keywords=tuple(recent[:3]),
            unlocked_at=utc_now(),
        )
        self._journey.islands.append(island)
        logger.info("Unlocked island %s at %.0f km", island.id, next_distance)
        self._changed()
        return island


__all__ = ["GOLDEN_ANGLE", "JourneyTracker", "STARTING_ISLAND_NAME", "spiral_position"]
