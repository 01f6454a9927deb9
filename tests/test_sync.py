import random
import tempfile
import unittest
from pathlib import Path
from typing import Optional

from potenote.history import QUIZ_COLLECTION, TRANSLATION_COLLECTION
from potenote.models import GameState, QuizData, QuizHistory, QuizQuestion, QuizResult, UserProgressionState
from potenote.remote import MemoryDocumentStore
from potenote.schemas import validate_translation
from potenote.state import LocalSnapshotStore
from potenote.store import ProgressionStore

from tests.helpers import FixedClock


def remote_quiz(record_id: str) -> QuizHistory:
    return QuizHistory(
        id=record_id,
        quiz=QuizData(summary="Remote quiz", questions=[QuizQuestion(q="Where?", options=("here", "there"), a=1)]),
        result=QuizResult(
            quiz_id=record_id,
            correct_count=1,
            total_questions=1,
            is_perfect=True,
            earned_coins=5,
            earned_distance=4.0,
            is_doubled=False,
        ),
    )


class SyncCoordinatorTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.snapshot_path = Path(self._tmp.name) / "snapshot.json"
        self.snapshots = LocalSnapshotStore(self.snapshot_path)
        self.remote = MemoryDocumentStore()
        self.clock = FixedClock()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _store(self, state: Optional[GameState] = None) -> ProgressionStore:
        return ProgressionStore(
            snapshots=self.snapshots,
            remote=self.remote,
            rng=random.Random(0),
            clock=self.clock,
            state=state if state is not None else GameState(),
        )

    async def test_first_sign_in_pushes_local_state(self) -> None:
        store = self._store(GameState(progression=UserProgressionState(coins=120)))
        store.history.save_translation_history(
            validate_translation({"originalText": "Offline", "translatedText": "オフライン"})
        )

        await store.set_user_id("u1")
        await store.close()

        document = self.remote.documents["users/u1"]
        self.assertEqual(document["userState"]["coins"], 120)
        self.assertIn("updatedAt", document)
        record = store.history.translations[0]
        self.assertIn(f"users/u1/{TRANSLATION_COLLECTION}/{record.id}", self.remote.documents)

    async def test_remote_state_overlays_local_except_todays_login(self) -> None:
        self.remote.documents["users/u1"] = {
            "userState": {"coins": 500, "tickets": 2, "lastLoginDate": "2026-10-17", "consecutiveLoginDays": 4},
            "gachaPity": {"srCounter": 7, "ssrCounter": 42},
        }
        store = self._store(GameState(progression=UserProgressionState(coins=10, last_login_date="2026-10-18")))
        ledger_state = store.ledger.state

        await store.set_user_id("u1")

        self.assertIs(store.ledger.state, ledger_state)
        self.assertEqual(store.ledger.coins, 500)
        self.assertEqual(store.ledger.tickets, 2)
        self.assertEqual(ledger_state.last_login_date, "2026-10-18")
        self.assertEqual((store.gacha.pity.sr_counter, store.gacha.pity.ssr_counter), (7, 42))
        self.assertFalse(store.login_check().granted)
        await store.close()

    async def test_stale_local_login_takes_remote_date(self) -> None:
        self.remote.documents["users/u1"] = {
            "userState": {"coins": 0, "lastLoginDate": "2026-10-17", "consecutiveLoginDays": 4},
        }
        store = self._store(GameState(progression=UserProgressionState(last_login_date="2026-10-01")))

        await store.set_user_id("u1")
        bonus = store.login_check()
        await store.close()

        self.assertTrue(bonus.granted)
        self.assertEqual(bonus.consecutive_days, 5)

    async def test_sign_in_merges_remote_history_with_offline_records(self) -> None:
        self.remote.documents["users/u1"] = {"userState": {"coins": 0}}
        self.remote.documents[f"users/u1/{QUIZ_COLLECTION}/quiz_remote"] = remote_quiz("quiz_remote").to_dict()
        store = self._store()
        local = store.history.save_quiz_history(
            QuizData(summary="Offline quiz", questions=[QuizQuestion(q="What?", options=("a", "b"), a=0)]),
            remote_quiz("quiz_offline").result,
        )

        await store.set_user_id("u1")
        await store.close()

        self.assertEqual([record.id for record in store.history.quizzes], ["quiz_remote", local.id])

    async def test_mutations_are_mirrored_after_local_save(self) -> None:
        store = self._store()
        await store.set_user_id("u1")
        writes = self.remote.write_count

        store.ledger.add_currency(25)
        store.ledger.add_currency(25)
        self.assertEqual(LocalSnapshotStore(self.snapshot_path).load().progression.coins, 50)
        await store.close()

        self.assertEqual(self.remote.documents["users/u1"]["userState"]["coins"], 50)
        self.assertEqual(self.remote.write_count, writes + 1)
        self.assertEqual(store.sync.pending, 0)

    async def test_deleted_translation_is_removed_remotely(self) -> None:
        store = self._store()
        await store.set_user_id("u1")
        record = store.history.save_translation_history(
            validate_translation({"originalText": "Delete me", "translatedText": "消して"})
        )
        await store.close()
        path = f"users/u1/{TRANSLATION_COLLECTION}/{record.id}"
        self.assertIn(path, self.remote.documents)

        store.history.delete_translation_history(record.id)
        await store.close()

        self.assertNotIn(path, self.remote.documents)

    async def test_unavailable_remote_never_reaches_callers(self) -> None:
        self.remote.available = False
        store = self._store()

        with self.assertLogs("potenote.sync", level="WARNING"):
            await store.set_user_id("u1")
            store.ledger.add_currency(10)
            await store.close()

        self.assertEqual(store.sync.uid, "u1")
        self.assertEqual(store.ledger.coins, 10)
        self.assertEqual(LocalSnapshotStore(self.snapshot_path).load().progression.coins, 10)
        self.assertEqual(self.remote.documents, {})

    async def test_malformed_remote_state_is_ignored(self) -> None:
        self.remote.documents["users/u1"] = {"userState": {"coins": "lots"}, "gachaPity": {"srCounter": 3}}
        store = self._store(GameState(progression=UserProgressionState(coins=40)))

        with self.assertLogs("potenote.sync", level="WARNING"):
            await store.set_user_id("u1")
        await store.close()

        self.assertEqual(store.ledger.coins, 40)
        self.assertEqual(store.gacha.pity.sr_counter, 0)

    async def test_malformed_history_documents_are_skipped(self) -> None:
        self.remote.documents["users/u1"] = {"userState": {"coins": 30}}
        self.remote.documents[f"users/u1/{QUIZ_COLLECTION}/quiz_bad"] = {"id": "quiz_bad", "quiz": "oops"}
        self.remote.documents[f"users/u1/{QUIZ_COLLECTION}/quiz_remote"] = remote_quiz("quiz_remote").to_dict()
        store = self._store()

        with self.assertLogs("potenote.sync", level="WARNING"):
            await store.set_user_id("u1")
        await store.close()

        self.assertEqual(store.ledger.coins, 30)
        self.assertEqual([record.id for record in store.history.quizzes], ["quiz_remote"])

    async def test_non_mapping_journey_position_is_ignored(self) -> None:
        self.remote.documents["users/u1"] = {
            "userState": {"coins": 99},
            "journey": {"totalDistance": 12.0, "currentPosition": "here"},
        }
        store = self._store(GameState(progression=UserProgressionState(coins=40)))

        with self.assertLogs("potenote.sync", level="WARNING"):
            await store.set_user_id("u1")
        await store.close()

        self.assertEqual(store.ledger.coins, 40)
        self.assertEqual(store.journey.journey.total_distance, 0.0)

    async def test_signed_out_mutations_stay_local(self) -> None:
        store = self._store()
        await store.set_user_id("u1")
        await store.set_user_id(None)

        store.ledger.add_currency(5)

        self.assertEqual(store.sync.pending, 0)
        self.assertFalse(store.sync.enabled)
        self.assertEqual(self.remote.documents["users/u1"]["userState"]["coins"], 0)


class OfflineStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.snapshot_path = Path(self._tmp.name) / "snapshot.json"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_store_without_remote_still_persists(self) -> None:
        store = ProgressionStore(snapshots=LocalSnapshotStore(self.snapshot_path), clock=FixedClock())

        bonus = store.login_check()

        self.assertTrue(bonus.granted)
        self.assertEqual(store.journey.journey.islands[0].id, 0)
        reloaded = LocalSnapshotStore(self.snapshot_path).load()
        self.assertEqual(reloaded.progression.coins, 50)
        self.assertEqual(len(reloaded.journey.islands), 1)

    def test_reset_restores_initial_state_in_place(self) -> None:
        store = ProgressionStore(
            snapshots=LocalSnapshotStore(self.snapshot_path),
            clock=FixedClock(),
            state=GameState(progression=UserProgressionState(uid="u1", coins=300)),
        )
        ledger_state = store.ledger.state
        store.inventory.add_item("n_potion_hp_s", 3)
        store.capture.add_scan_from_text("Rivers carry water.", {"water": "水"})
        store.history.save_translation_history(validate_translation({"originalText": "Hi", "translatedText": "やあ"}))

        store.reset()

        self.assertIs(store.ledger.state, ledger_state)
        self.assertEqual(store.ledger.coins, 0)
        self.assertIsNone(store.sync.uid)
        self.assertEqual(store.inventory.quantity("n_potion_hp_s"), 0)
        self.assertEqual(store.capture.scans, [])
        self.assertEqual(store.history.translations, [])
        reloaded = LocalSnapshotStore(self.snapshot_path).load()
        self.assertEqual((reloaded.progression.coins, reloaded.word_scans), (0, []))

    def test_mutation_outside_event_loop_skips_remote_write(self) -> None:
        remote = MemoryDocumentStore()
        store = ProgressionStore(
            snapshots=LocalSnapshotStore(self.snapshot_path),
            remote=remote,
            clock=FixedClock(),
            state=GameState(progression=UserProgressionState(uid="u1")),
        )

        store.ledger.add_currency(10)

        self.assertEqual(store.sync.pending, 0)
        self.assertEqual(remote.write_count, 0)
        self.assertEqual(LocalSnapshotStore(self.snapshot_path).load().progression.coins, 10)


if __name__ == "__main__":
    unittest.main()
