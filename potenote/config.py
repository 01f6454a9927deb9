"""Runtime configuration and game tuning for Potenote."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import load_dotenv

from .utils import float_from_env, int_from_env, path_from_env, str_from_env

logger = logging.getLogger("potenote.config")

STORAGE_KEY = "potenote-scanner-v2"
SNAPSHOT_VERSION = 2

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_CATALOG_PATH = PACKAGE_DIR / "data" / "items.yaml"

RARITIES = ("N", "R", "SR", "SSR")

# Daily-limited features
FEATURE_SCAN = "scan"
FEATURE_FREE_QUEST = "free_quest_generation"
FEATURE_TRANSLATION = "translation"
FEATURE_WORD_SCAN = "word_collection_scan"


@dataclass(frozen=True)
class GachaSettings:
    single_cost: int = 100
    ten_pull_cost: int = 900
    # Percent rates, evaluated SSR first against a [0, 100) draw.
    rates: Mapping[str, float] = field(
        default_factory=lambda: {"SSR": 3.0, "SR": 12.0, "R": 25.0, "N": 60.0}
    )
    sr_guarantee: int = 10
    ssr_guarantee: int = 100
    max_stack: int = 99


@dataclass(frozen=True)
class LimitSettings:
    """Per-feature daily allowances. ``None`` means unlimited."""

    free: Mapping[str, Optional[int]] = field(
        default_factory=lambda: {
            FEATURE_SCAN: 3,
            FEATURE_FREE_QUEST: 3,
            FEATURE_TRANSLATION: 3,
            FEATURE_WORD_SCAN: 5,
        }
    )
    vip: Mapping[str, Optional[int]] = field(
        default_factory=lambda: {
            FEATURE_SCAN: 100,
            FEATURE_FREE_QUEST: 100,
            FEATURE_TRANSLATION: None,
            FEATURE_WORD_SCAN: 5,
        }
    )
    messages: Mapping[str, str] = field(
        default_factory=lambda: {
            FEATURE_SCAN: "Today's scan limit has been reached.",
            FEATURE_FREE_QUEST: "Today's free quest generation limit has been reached.",
            FEATURE_TRANSLATION: "Today's translation limit has been reached.",
            FEATURE_WORD_SCAN: "Today's word collection scan limit has been reached.",
        }
    )
    ad_recovery: Mapping[str, int] = field(
        default_factory=lambda: {FEATURE_SCAN: 3, FEATURE_FREE_QUEST: 3}
    )
    stamina_max: int = 5
    quiz_stamina_cost: int = 1
    translation_history_max: int = 50

    def allowance(self, feature: str, *, vip: bool) -> Optional[int]:
        table = self.vip if vip else self.free
        if feature not in table:
            raise KeyError(f"Unknown daily feature: {feature}")
        return table[feature]


@dataclass(frozen=True)
class RewardSettings:
    login_bonus_free: int = 50
    login_bonus_vip: int = 100
    quest_base_coins: int = 3
    quest_perfect_bonus: int = 2
    coin_multiplier: int = 2
    distance_per_correct: float = 1.0
    distance_perfect_bonus: float = 3.0
    island_interval: float = 100.0


@dataclass(frozen=True)
class CaptureSettings:
    active_enemies_max: int = 21
    questions_per_round: int = 7
    max_hp: int = 3
    choices_per_question: int = 4
    choice_placeholder: str = "(no option)"
    max_extracted_words: int = 150


@dataclass(frozen=True)
class Settings:
    state_dir: Path = Path("var")
    catalog_path: Path = DEFAULT_CATALOG_PATH
    remote_url: Optional[str] = None
    remote_token: Optional[str] = None
    remote_timeout: float = 15.0
    upstream_url: Optional[str] = None
    upstream_timeout: float = 120.0
    history_fetch_limit: int = 30
    log_level: str = "INFO"
    gacha: GachaSettings = field(default_factory=GachaSettings)
    limits: LimitSettings = field(default_factory=LimitSettings)
    rewards: RewardSettings = field(default_factory=RewardSettings)
    capture: CaptureSettings = field(default_factory=CaptureSettings)

    @property
    def snapshot_path(self) -> Path:
        return self.state_dir / f"{STORAGE_KEY}.json"


def load_settings(*, dotenv: bool = True) -> Settings:
    """Build :class:`Settings` from the environment (and ``.env`` when present)."""
    if dotenv:
        load_dotenv()
    state_dir = path_from_env("POTENOTE_STATE_DIR") or Path("var")
    catalog_path = path_from_env("POTENOTE_ITEM_CATALOG") or DEFAULT_CATALOG_PATH
    fetch_limit = int_from_env("POTENOTE_HISTORY_FETCH_LIMIT", 30)
    if fetch_limit <= 0:
        logger.warning("POTENOTE_HISTORY_FETCH_LIMIT must be positive; using 30.")
        fetch_limit = 30
    return Settings(
        state_dir=state_dir,
        catalog_path=catalog_path,
        remote_url=str_from_env("POTENOTE_REMOTE_URL"),
        remote_token=str_from_env("POTENOTE_REMOTE_TOKEN"),
        remote_timeout=float_from_env("POTENOTE_REMOTE_TIMEOUT", 15.0),
        upstream_url=str_from_env("POTENOTE_UPSTREAM_URL"),
        upstream_timeout=float_from_env("POTENOTE_UPSTREAM_TIMEOUT", 120.0),
        history_fetch_limit=fetch_limit,
        log_level=os.getenv("POTENOTE_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=level or os.getenv("POTENOTE_LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def merged_rates(overrides: Mapping[str, object]) -> Dict[str, float]:
    """Merge user-supplied rarity rates over the defaults, ignoring bad entries."""
    rates = dict(GachaSettings().rates)
    for key, value in overrides.items():
        rarity = str(key).upper()
        if rarity not in RARITIES:
            logger.warning("Ignoring rate for unknown rarity %s", key)
            continue
        try:
            rates[rarity] = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid rate for rarity %s", key)
    return rates


__all__ = [
    "CaptureSettings",
    "DEFAULT_CATALOG_PATH",
    "FEATURE_FREE_QUEST",
    "FEATURE_SCAN",
    "FEATURE_TRANSLATION",
    "FEATURE_WORD_SCAN",
    "GachaSettings",
    "LimitSettings",
    "RARITIES",
    "RewardSettings",
    "SNAPSHOT_VERSION",
    "STORAGE_KEY",
    "Settings",
    "configure_logging",
    "load_settings",
    "merged_rates",
]
