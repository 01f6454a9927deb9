import unittest
from datetime import timedelta

from potenote.journey import STARTING_ISLAND_NAME, JourneyTracker, spiral_position
from potenote.ledger import ResourceLedger
from potenote.models import Journey, UserProgressionState

from tests.helpers import FixedClock


class JourneyTrackerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FixedClock()
        self.progression = UserProgressionState()
        self.ledger = ResourceLedger(self.progression, clock=self.clock)
        self.journey = Journey()
        self.tracker = JourneyTracker(self.journey, self.ledger)

    def test_perfect_score_earns_bonus(self) -> None:
        result = self.tracker.calculate_result("quiz_1", 5, 5)
        self.assertTrue(result.is_perfect)
        self.assertEqual(result.earned_coins, 17)
        self.assertEqual(result.earned_distance, 8.0)
        self.assertFalse(result.is_doubled)

    def test_partial_score_has_no_bonus(self) -> None:
        result = self.tracker.calculate_result("quiz_1", 3, 5)
        self.assertEqual((result.earned_coins, result.earned_distance), (9, 3.0))

    def test_ad_or_vip_doubles_coins_only(self) -> None:
        watched = self.tracker.calculate_result("quiz_1", 5, 5, ad_watched=True)
        self.assertEqual((watched.earned_coins, watched.earned_distance), (34, 8.0))
        self.assertTrue(watched.is_doubled)

        self.ledger.activate_vip(self.clock.now + timedelta(days=1))
        self.assertEqual(self.tracker.calculate_result("quiz_1", 3, 5).earned_coins, 18)

    def test_invalid_score_raises(self) -> None:
        with self.assertRaises(ValueError):
            self.tracker.calculate_result("quiz_1", 6, 5)
        with self.assertRaises(ValueError):
            self.tracker.calculate_result("quiz_1", 0, 0)

    def test_applying_result_credits_ledger(self) -> None:
        self.tracker.apply_quiz_result(self.tracker.calculate_result("quiz_1", 4, 5))
        self.assertEqual(self.progression.coins, 12)
        self.assertEqual(self.progression.total_quizzes, 1)
        self.assertEqual(self.progression.total_correct_answers, 4)
        self.assertEqual(self.progression.total_quiz_clears, 1)
        self.assertEqual(self.journey.total_distance, 0.0)

    def test_flags_advance_along_the_spiral(self) -> None:
        self.assertEqual((spiral_position(0).x, spiral_position(0).y), (10.0, 0.0))

        first = self.tracker.add_flag("quiz_1", ["light", "leaf", "cell", "sun"], 8.0)
        second = self.tracker.add_flag("quiz_2", ["atom"], 4.0)

        self.assertEqual(first.keywords, ("light", "leaf", "cell"))
        self.assertEqual(first.distance, 8.0)
        self.assertEqual(second.distance, 12.0)
        self.assertEqual(self.journey.total_distance, 12.0)
        self.assertEqual(self.journey.current_position, spiral_position(12.0))
        self.assertNotEqual(first.position, second.position)

    def test_islands_unlock_every_hundred_km(self) -> None:
        self.assertIsNone(self.tracker.check_and_unlock_island())
        self.tracker.ensure_starting_island()
        self.tracker.ensure_starting_island()
        self.assertEqual([island.name for island in self.journey.islands], [STARTING_ISLAND_NAME])

        self.tracker.add_flag("quiz_1", ["sea"], 99.0)
        self.assertIsNone(self.tracker.check_and_unlock_island())

        self.tracker.add_flag("quiz_2", ["shore"], 2.0)
        island = self.tracker.check_and_unlock_island()

        assert island is not None
        self.assertEqual(island.id, 1)
        self.assertEqual(island.distance, 100.0)
        self.assertEqual(island.keywords, ("sea", "shore"))
        self.assertIsNone(self.tracker.check_and_unlock_island())


if __name__ == "__main__":
    unittest.main()
