#!/usr/bin/env python
"""Simulate gacha pulls against the item catalog and report observed rarity rates."""

from __future__ import annotations

import argparse
import logging
import random
from collections import Counter
from pathlib import Path
from typing import Optional

from potenote.catalog import load_catalog
from potenote.config import GachaSettings, configure_logging, load_settings
from potenote.gacha import RARITY_PRIORITY, advance_pity, choose_rarity, roll_rarity
from potenote.models import GachaPity

logger = logging.getLogger("simulate_gacha")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Roll N simulated pulls and print the rarity distribution.")
    parser.add_argument("--pulls", type=int, default=10000, help="Number of pulls to simulate (default: 10000).")
    parser.add_argument(
        "--catalog",
        type=Path,
        help="Item catalog YAML (defaults to POTENOTE_ITEM_CATALOG or the packaged catalog).",
    )
    parser.add_argument("--seed", type=int, help="Seed for a reproducible run.")
    parser.add_argument("--no-pity", action="store_true", help="Ignore pity guarantees.")
    return parser.parse_args()


def simulate(
    pulls: int,
    *,
    catalog_path: Optional[Path],
    seed: Optional[int],
    pity_enabled: bool,
    settings: Optional[GachaSettings] = None,
) -> Counter:
    catalog = load_catalog(catalog_path)
    settings = settings or GachaSettings()
    rates = catalog.rates or dict(settings.rates)
    rng = random.Random(seed)
    pity = GachaPity()
    counts: Counter = Counter()
    for _ in range(pulls):
        if pity_enabled:
            rarity, _forced = choose_rarity(pity, settings, rng, rates)
            advance_pity(pity, rarity)
        else:
            rarity = roll_rarity(rates, rng)
        counts[rarity] += 1
    return counts


def main() -> None:
    args = parse_args()
    settings = load_settings()
    configure_logging(settings.log_level)
    if args.pulls <= 0:
        raise SystemExit("--pulls must be positive.")
    catalog_path = args.catalog or settings.catalog_path
    counts = simulate(
        args.pulls,
        catalog_path=catalog_path,
        seed=args.seed,
        pity_enabled=not args.no_pity,
        settings=settings.gacha,
    )
    logger.info("Simulated %s pulls (pity %s)", args.pulls, "off" if args.no_pity else "on")
    for rarity in RARITY_PRIORITY:
        share = 100.0 * counts[rarity] / args.pulls
        print(f"{rarity:>3}: {counts[rarity]:>7} ({share:5.2f}%)")


if __name__ == "__main__":
    main()
