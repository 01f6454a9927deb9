import random
import unittest
from collections import Counter

from potenote.catalog import build_catalog, load_catalog
from potenote.config import GachaSettings
from potenote.errors import InsufficientResource
from potenote.gacha import GachaEngine, GachaResult, roll_rarity, weighted_choice
from potenote.inventory import Inventory
from potenote.ledger import ResourceLedger
from potenote.models import GachaPity, UserProgressionState

from tests.helpers import ChangeCounter, FixedClock

TEST_ITEMS = [
    {"id": "n_bread", "name": "Bread", "type": "consumable", "rarity": "N", "weight": 1},
    {"id": "r_cap", "name": "Cap", "type": "equipment", "category": "head", "rarity": "R", "weight": 1},
    {"id": "sr_cloak", "name": "Cloak", "type": "equipment", "category": "body", "rarity": "SR", "weight": 1},
    {"id": "ssr_crown", "name": "Crown", "type": "equipment", "category": "head", "rarity": "SSR", "weight": 1},
]


class GachaEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = build_catalog(TEST_ITEMS)
        self.progression = UserProgressionState(coins=1000)
        self.entries = {}
        self.equipment = {}
        self.pity = GachaPity()
        self.changes = ChangeCounter()
        self.ledger = ResourceLedger(self.progression, clock=FixedClock())
        self.inventory = Inventory(self.entries, self.equipment, self.catalog)
        self.engine = GachaEngine(
            ledger=self.ledger,
            inventory=self.inventory,
            pity=self.pity,
            catalog=self.catalog,
            rng=random.Random(7),
            on_change=self.changes,
        )

    def test_rarity_distribution_matches_rates_without_pity(self) -> None:
        rng = random.Random(1234)
        pulls = 20000
        counts = Counter(roll_rarity(GachaSettings().rates, rng) for _ in range(pulls))
        expected = {"SSR": 0.03, "SR": 0.12, "R": 0.25, "N": 0.60}
        for rarity, share in expected.items():
            self.assertAlmostEqual(counts[rarity] / pulls, share, delta=0.015, msg=rarity)

    def test_sr_guarantee_fires_on_tenth_pull(self) -> None:
        self.pity.sr_counter = 9
        self.pity.ssr_counter = 9

        result = self.engine.pull()

        assert isinstance(result, GachaResult)
        self.assertIn(result.rarity, ("SR", "SSR"))
        self.assertEqual(result.forced_by_pity, "SR")
        self.assertEqual(self.pity.sr_counter, 0)

    def test_ssr_guarantee_fires_on_hundredth_pull(self) -> None:
        self.pity.sr_counter = 5
        self.pity.ssr_counter = 99

        result = self.engine.pull()

        assert isinstance(result, GachaResult)
        self.assertEqual(result.rarity, "SSR")
        self.assertEqual(result.forced_by_pity, "SSR")
        self.assertEqual((self.pity.sr_counter, self.pity.ssr_counter), (0, 0))

    def test_insufficient_coins_leaves_state_untouched(self) -> None:
        self.progression.coins = 50

        result = self.engine.pull()

        self.assertIsInstance(result, InsufficientResource)
        self.assertEqual(self.progression.coins, 50)
        self.assertEqual((self.pity.sr_counter, self.pity.ssr_counter), (0, 0))
        self.assertEqual(self.entries, {})
        self.assertEqual(self.changes.calls, 0)

    def test_single_pull_charges_and_records_item(self) -> None:
        result = self.engine.pull()

        assert isinstance(result, GachaResult)
        self.assertEqual(self.progression.coins, 900)
        self.assertTrue(result.is_new)
        self.assertEqual(self.inventory.quantity(result.item.id), 1)
        self.assertEqual(self.changes.calls, 1)

    def test_ticket_pull_spends_ticket_not_coins(self) -> None:
        self.progression.coins = 0
        self.progression.tickets = 1

        result = self.engine.pull(use_ticket=True)

        self.assertIsInstance(result, GachaResult)
        self.assertEqual(self.progression.tickets, 0)
        self.assertIsInstance(self.engine.pull(use_ticket=True), InsufficientResource)

    def test_ten_pull_charges_once_and_contains_sr_or_better(self) -> None:
        self.progression.coins = 900

        results = self.engine.pull_ten()

        assert isinstance(results, list)
        self.assertEqual(len(results), 10)
        self.assertEqual(self.progression.coins, 0)
        self.assertTrue(any(result.rarity in ("SR", "SSR") for result in results))
        self.assertEqual(sum(entry.quantity for entry in self.entries.values()), 10)
        self.assertEqual(self.changes.calls, 1)

    def test_ten_pull_refused_below_cost(self) -> None:
        self.progression.coins = 899
        result = self.engine.pull_ten()
        assert isinstance(result, InsufficientResource)
        self.assertEqual(result.required, 900)
        self.assertEqual(self.progression.coins, 899)


class WeightedChoiceTests(unittest.TestCase):
    def test_heavier_items_win_proportionally(self) -> None:
        rng = random.Random(99)
        items = [("light", 1.0), ("heavy", 3.0)]
        counts = Counter(weighted_choice(items, lambda item: item[1], rng)[0] for _ in range(8000))
        self.assertAlmostEqual(counts["heavy"] / 8000, 0.75, delta=0.03)

    def test_empty_sequence_raises(self) -> None:
        with self.assertRaises(ValueError):
            weighted_choice([], lambda item: 1.0, random.Random())


class InventoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = build_catalog(TEST_ITEMS)
        self.entries = {}
        self.equipment = {}
        self.inventory = Inventory(self.entries, self.equipment, self.catalog)

    def test_stack_is_capped(self) -> None:
        self.assertTrue(self.inventory.add_item("n_bread", 98))
        self.assertFalse(self.inventory.add_item("n_bread", 5))
        self.assertEqual(self.inventory.quantity("n_bread"), 99)

    def test_removing_last_copy_unequips(self) -> None:
        self.inventory.add_item("r_cap")
        self.assertTrue(self.inventory.equip_item("r_cap"))
        self.assertEqual(self.inventory.equipped("head"), "r_cap")

        self.assertTrue(self.inventory.remove_item("r_cap"))

        self.assertNotIn("r_cap", self.entries)
        self.assertIsNone(self.inventory.equipped("head"))

    def test_remove_more_than_owned_fails(self) -> None:
        self.inventory.add_item("n_bread", 2)
        self.assertFalse(self.inventory.remove_item("n_bread", 3))
        self.assertEqual(self.inventory.quantity("n_bread"), 2)

    def test_non_positive_removal_raises(self) -> None:
        self.inventory.add_item("n_bread", 99)
        for quantity in (0, -50):
            with self.assertRaises(ValueError):
                self.inventory.remove_item("n_bread", quantity)
        self.assertEqual(self.inventory.quantity("n_bread"), 99)

    def test_only_owned_equipment_can_be_equipped(self) -> None:
        self.assertFalse(self.inventory.equip_item("sr_cloak"))
        self.inventory.add_item("n_bread")
        self.assertFalse(self.inventory.equip_item("n_bread"))

    def test_unequip_unknown_category_raises(self) -> None:
        with self.assertRaises(ValueError):
            self.inventory.unequip_item("feet")


class CatalogTests(unittest.TestCase):
    def test_packaged_catalog_covers_every_rarity(self) -> None:
        catalog = load_catalog()
        for rarity in ("N", "R", "SR", "SSR"):
            self.assertTrue(catalog.by_rarity(rarity), rarity)

    def test_invalid_entries_are_skipped(self) -> None:
        entries = TEST_ITEMS + [
            {"id": "bad_rarity", "rarity": "UR"},
            {"id": "bad_equipment", "type": "equipment", "rarity": "N"},
            {"rarity": "N"},
        ]
        with self.assertLogs("potenote.catalog", level="WARNING"):
            catalog = build_catalog(entries)
        self.assertEqual(len(catalog), 4)

    def test_missing_rarity_raises(self) -> None:
        with self.assertRaises(ValueError):
            build_catalog(TEST_ITEMS[:3])


if __name__ == "__main__":
    unittest.main()
