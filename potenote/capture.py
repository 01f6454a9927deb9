"""Word-capture battles.

A scan produces a pool of :class:`WordEnemy` objects. Up to 21 of them are
copied into the scan's active pool; battle sessions draw at most seven
questions from that pool. Each correct answer removes one hit point and a
word at 0 hp is captured for good. The pool's denominator
(``active_enemy_total``) is frozen when the pool is refilled, and every
finished session writes one :class:`AdventureSnapshot` that display code
prefers over live recomputation.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .config import FEATURE_WORD_SCAN, CaptureSettings
from .errors import DailyLimitExceeded
from .ledger import ResourceLedger
from .models import AdventureSnapshot, WordCollectionScan, WordEnemy
from .schemas import WordScanPayload
from .utils import new_record_id, utc_now
from .words import extract_words, is_noise, normalize_word, scan_title

logger = logging.getLogger("potenote.capture")

MODE_EXPLORE = "explore"
MODE_RETRY = "retry"
BATTLE_MODES = (MODE_EXPLORE, MODE_RETRY)

NO_TARGETS_CLEARED = "cleared"
NO_TARGETS_NO_MEANINGS = "no_meanings"


@dataclass(frozen=True)
class Question:
    word: str
    meaning: str
    choices: Tuple[str, ...]
    correct_index: int


@dataclass(frozen=True)
class AnswerOutcome:
    word: str
    correct: bool
    hp: int
    captured: bool
    changed: bool
    timed_out: bool = False


@dataclass(frozen=True)
class MissedWord:
    word: str
    meaning: Optional[str]
    miss_count: int


@dataclass(frozen=True)
class BattleResultData:
    scan_id: str
    captured_words: Tuple[str, ...]
    defeated_words: Tuple[str, ...]
    defeated_count: int
    misses: int
    missed_words: Tuple[MissedWord, ...]

    @property
    def captured_count(self) -> int:
        return len(self.captured_words)


@dataclass(frozen=True)
class ScanProgress:
    captured: int
    defeated: int
    remaining: int
    total: int
    from_snapshot: bool


# Pure helpers ----------------------------------------------------------------


def _battle_words(scan: WordCollectionScan) -> List[WordEnemy]:
    """The active pool, or every word when no pool has been drawn yet."""
    active = scan.active_enemies()
    return active if active else list(scan.words)


def choose_pool(scan: WordCollectionScan, limit: int) -> List[str]:
    candidates = [(index, enemy) for index, enemy in enumerate(scan.words) if enemy.hp > 0]
    candidates.sort(key=lambda pair: (pair[1].asked, pair[1].meaning is None, pair[0]))
    return [enemy.word for _, enemy in candidates[:limit]]


def select_questions(
    scan: WordCollectionScan,
    mode: str,
    dex: Iterable[str],
    rng: random.Random,
    limit: int = 7,
) -> List[WordEnemy]:
    """Pick up to ``limit`` unique words for one battle session."""
    if mode not in BATTLE_MODES:
        raise ValueError(f"Unknown battle mode: {mode}")
    candidates = [enemy for enemy in _battle_words(scan) if (enemy.meaning or "").strip() and enemy.hp > 0]
    dex_words = set(dex)
    pool = [enemy for enemy in candidates if enemy.word not in dex_words] or candidates
    hp_sign = -1 if mode == MODE_EXPLORE else 1
    ranked = sorted(
        pool,
        key=lambda enemy: (enemy.asked, hp_sign * enemy.hp, -enemy.wrong_count, rng.random()),
    )
    selected: List[WordEnemy] = []
    seen = set()
    for enemy in ranked:
        if enemy.word in seen:
            continue
        seen.add(enemy.word)
        selected.append(enemy)
        if len(selected) >= limit:
            break
    return selected


def build_choices(
    correct: str,
    other_meanings: Iterable[Optional[str]],
    rng: random.Random,
    *,
    count: int = 4,
    placeholder: str = "(no option)",
) -> Tuple[Tuple[str, ...], int]:
    """Return shuffled options and the index of ``correct`` among them."""
    distinct: List[str] = []
    for meaning in other_meanings:
        if meaning and meaning != correct and meaning not in distinct:
            distinct.append(meaning)
    wrong = rng.sample(distinct, min(count - 1, len(distinct)))
    while len(wrong) < count - 1:
        wrong.append(placeholder)
    options = [correct, *wrong]
    rng.shuffle(options)
    return tuple(options), options.index(correct)


def compute_snapshot(scan: WordCollectionScan, max_hp: int = 3) -> AdventureSnapshot:
    words = _battle_words(scan)
    captured = [enemy.word for enemy in words if enemy.hp <= 0]
    defeated = [enemy.word for enemy in words if 0 < enemy.hp < max_hp]
    total = scan.active_enemy_total or len(words)
    remaining = max(0, total - len(captured) - len(defeated))
    return AdventureSnapshot(
        captured_count=len(captured),
        defeated_count=len(defeated),
        remaining_count=remaining,
        total=max(total, 1),
        captured_words=tuple(captured),
        defeated_words=tuple(defeated),
        created_at=utc_now(),
    )


def scan_progress(scan: WordCollectionScan, max_hp: int = 3) -> ScanProgress:
    """Progress for display; a stored snapshot wins over live hp values."""
    snapshot = scan.snapshot
    from_snapshot = snapshot is not None
    if snapshot is None:
        snapshot = compute_snapshot(scan, max_hp)
    return ScanProgress(
        captured=snapshot.captured_count,
        defeated=snapshot.defeated_count,
        remaining=snapshot.remaining_count,
        total=snapshot.total,
        from_snapshot=from_snapshot,
    )


# Sessions --------------------------------------------------------------------


class BattleSession:
    """One run of up to seven questions against a scan's active pool."""

    def __init__(
        self,
        engine: "CaptureEngine",
        scan: WordCollectionScan,
        mode: str,
        questions: Sequence[Question],
        no_targets: Optional[str] = None,
    ) -> None:
        self._engine = engine
        self.scan = scan
        self.mode = mode
        self.questions: List[Question] = list(questions)
        self.no_targets = no_targets
        self._cursor = 0
        self._captured: List[str] = []
        self._defeated: List[str] = []
        self._defeated_count = 0
        self._misses = 0
        self._missed: Dict[str, int] = {}
        self._result: Optional[BattleResultData] = None

    @property
    def current(self) -> Optional[Question]:
        if self._cursor >= len(self.questions):
            return None
        return self.questions[self._cursor]

    @property
    def finished(self) -> bool:
        return self._result is not None

    @property
    def remaining_questions(self) -> int:
        return max(0, len(self.questions) - self._cursor)

    def _require_current(self) -> Question:
        if self._result is not None:
            raise RuntimeError("Battle session already finished.")
        question = self.current
        if question is None:
            raise RuntimeError("No question left in this battle session.")
        return question

    def answer(self, choice_index: int) -> AnswerOutcome:
        question = self._require_current()
        if choice_index == question.correct_index:
            outcome = self._engine.record_correct(self.scan, question.word)
            if outcome.changed:
                self._defeated_count += 1
                if outcome.captured:
                    if question.word not in self._captured:
                        self._captured.append(question.word)
                    if question.word in self._defeated:
                        self._defeated.remove(question.word)
                elif question.word not in self._defeated:
                    self._defeated.append(question.word)
        else:
            outcome = self._engine.record_miss(self.scan, question.word)
            self._record_miss(question.word)
        self._cursor += 1
        return outcome

    def timeout(self) -> AnswerOutcome:
        question = self._require_current()
        outcome = self._engine.record_miss(self.scan, question.word, timed_out=True)
        self._record_miss(question.word)
        self._cursor += 1
        return outcome

    def _record_miss(self, word: str) -> None:
        self._misses += 1
        self._missed[word] = self._missed.get(word, 0) + 1

    def finish(self) -> BattleResultData:
        """Close the session and write its snapshot. Safe to call twice."""
        if self._result is not None:
            return self._result
        missed = []
        for word, count in self._missed.items():
            enemy = self.scan.find(word)
            missed.append(MissedWord(word=word, meaning=enemy.meaning if enemy else None, miss_count=count))
        self._result = BattleResultData(
            scan_id=self.scan.id,
            captured_words=tuple(self._captured),
            defeated_words=tuple(self._defeated),
            defeated_count=self._defeated_count,
            misses=self._misses,
            missed_words=tuple(missed),
        )
        if self.questions:
            self._engine.write_snapshot(self.scan)
        logger.info(
            "Battle on %s finished: captured=%s defeated=%s misses=%s",
            self.scan.id,
            len(self._captured),
            self._defeated_count,
            self._misses,
        )
        return self._result


# Engine ----------------------------------------------------------------------


class CaptureEngine:
    def __init__(
        self,
        scans: List[WordCollectionScan],
        dex: List[str],
        *,
        settings: Optional[CaptureSettings] = None,
        ledger: Optional[ResourceLedger] = None,
        rng: Optional[random.Random] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._scans = scans
        self._dex = dex
        self._settings = settings or CaptureSettings()
        self._ledger = ledger
        self._rng = rng or random.Random()
        self._on_change = on_change

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    # Scans ------------------------------------------------------------------

    @property
    def scans(self) -> List[WordCollectionScan]:
        return list(self._scans)

    def get_scan(self, scan_id: str) -> WordCollectionScan:
        for scan in self._scans:
            if scan.id == scan_id:
                return scan
        raise KeyError(f"Unknown word collection scan: {scan_id}")

    def add_scan(
        self,
        payload: WordScanPayload,
        *,
        image_url: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Union[WordCollectionScan, DailyLimitExceeded]:
        """Register a validated word-scan result as a new pool."""
        enemies: List[WordEnemy] = []
        seen = set()
        for entry in payload.words:
            enemy = entry.to_enemy()
            key = normalize_word(enemy.word)
            if is_noise(key) or key in seen:
                continue
            seen.add(key)
            enemy.word = key
            enemies.append(enemy)
        return self._create_scan(enemies, payload.clean_text, image_url=image_url, title=title)

    def add_scan_from_text(
        self,
        text: str,
        meanings: Mapping[str, str],
        *,
        title: Optional[str] = None,
    ) -> Union[WordCollectionScan, DailyLimitExceeded]:
        """Build a pool straight from text; ``meanings`` is keyed by lowercase word."""
        limit = self._settings.max_extracted_words
        enemies = [
            WordEnemy(word=word, meaning=(meanings.get(word) or "").strip() or None)
            for word in extract_words(text, limit)
        ]
        return self._create_scan(enemies, text, title=title)

    def _create_scan(
        self,
        enemies: List[WordEnemy],
        text: str,
        *,
        image_url: Optional[str] = None,
        title: Optional[str] = None,
    ) -> Union[WordCollectionScan, DailyLimitExceeded]:
        if not enemies:
            raise ValueError("A word collection scan needs at least one word.")
        if self._ledger is not None:
            check = self._ledger.check_daily_limit(FEATURE_WORD_SCAN)
            if not check.allowed and check.error is not None:
                return check.error
        scan = WordCollectionScan(
            id=new_record_id("scan"),
            title=title or scan_title(text) or f"Scan {len(self._scans) + 1}",
            words=enemies,
            image_url=image_url,
        )
        self._scans.insert(0, scan)
        self._refill(scan, reroll=False)
        if self._ledger is not None:
            self._ledger.increment_usage(FEATURE_WORD_SCAN)
        logger.info("Added word scan %s with %s words", scan.id, len(enemies))
        self._changed()
        return scan

    def delete_scan(self, scan_id: str) -> bool:
        for index, scan in enumerate(self._scans):
            if scan.id == scan_id:
                del self._scans[index]
                self._changed()
                return True
        return False

    def refill_pool(self, scan_id: str, *, reroll: bool = False) -> List[str]:
        """Draw a new active pool, or keep the current one while it has live words.

        ``reroll=True`` always draws a fresh pool and discards the snapshot.
        """
        scan = self.get_scan(scan_id)
        if self._refill(scan, reroll=reroll):
            self._changed()
        return list(scan.active_enemy_words)

    def _refill(self, scan: WordCollectionScan, *, reroll: bool) -> bool:
        if not reroll and any(enemy.hp > 0 for enemy in scan.active_enemies()):
            return False
        selected = choose_pool(scan, self._settings.active_enemies_max)
        scan.active_enemy_words = selected
        scan.active_enemy_total = len(selected)
        if reroll:
            scan.snapshot = None
        logger.debug("Refilled pool for %s with %s words (reroll=%s)", scan.id, len(selected), reroll)
        return True

    def progress(self, scan_id: str) -> ScanProgress:
        return scan_progress(self.get_scan(scan_id), self._settings.max_hp)

    # Dex --------------------------------------------------------------------

    @property
    def dex(self) -> List[str]:
        return list(self._dex)

    def register_dex_words(self, words: Iterable[str]) -> List[str]:
        added = []
        known = set(self._dex)
        for word in words:
            if word in known:
                continue
            known.add(word)
            self._dex.append(word)
            added.append(word)
        if added:
            self._changed()
        return added

    def captured_words(self) -> List[str]:
        captured = {enemy.word for scan in self._scans for enemy in scan.words if enemy.captured}
        return [word for word in self._dex if word in captured]

    def dex_entries(self) -> List[Tuple[str, bool]]:
        """Dex words in registration order with their captured flag (uncaptured ones display masked)."""
        captured = set(self.captured_words())
        return [(word, word in captured) for word in self._dex]

    # Battles ----------------------------------------------------------------

    def start_battle(self, scan_id: str, mode: str = MODE_EXPLORE) -> BattleSession:
        if mode not in BATTLE_MODES:
            raise ValueError(f"Unknown battle mode: {mode}")
        scan = self.get_scan(scan_id)
        if mode == MODE_EXPLORE and self._refill(scan, reroll=False):
            self._changed()
        selected = select_questions(
            scan, mode, self._dex, self._rng, limit=self._settings.questions_per_round
        )
        if not selected:
            words = _battle_words(scan)
            reason = NO_TARGETS_CLEARED if all(enemy.hp <= 0 for enemy in words) else NO_TARGETS_NO_MEANINGS
            logger.info("No battle targets on %s (%s)", scan.id, reason)
            return BattleSession(self, scan, mode, [], no_targets=reason)
        self.register_dex_words(enemy.word for enemy in selected)
        pool_meanings = [enemy.meaning for enemy in _battle_words(scan)]
        questions = []
        for enemy in selected:
            meaning = enemy.meaning or ""
            choices, correct_index = build_choices(
                meaning,
                pool_meanings,
                self._rng,
                count=self._settings.choices_per_question,
                placeholder=self._settings.choice_placeholder,
            )
            questions.append(Question(word=enemy.word, meaning=meaning, choices=choices, correct_index=correct_index))
        return BattleSession(self, scan, mode, questions)

    def record_correct(self, scan: WordCollectionScan, word: str) -> AnswerOutcome:
        enemy = scan.find(word)
        if enemy is None:
            raise KeyError(f"{word!r} is not part of scan {scan.id}")
        if enemy.hp <= 0:
            return AnswerOutcome(word=word, correct=True, hp=0, captured=True, changed=False)
        enemy.hp -= 1
        enemy.asked = True
        self._changed()
        return AnswerOutcome(word=word, correct=True, hp=enemy.hp, captured=enemy.hp == 0, changed=True)

    def record_miss(self, scan: WordCollectionScan, word: str, *, timed_out: bool = False) -> AnswerOutcome:
        enemy = scan.find(word)
        if enemy is None:
            raise KeyError(f"{word!r} is not part of scan {scan.id}")
        enemy.asked = True
        enemy.wrong_count += 1
        self._changed()
        return AnswerOutcome(
            word=word,
            correct=False,
            hp=enemy.hp,
            captured=enemy.hp <= 0,
            changed=True,
            timed_out=timed_out,
        )

    def write_snapshot(self, scan: WordCollectionScan) -> AdventureSnapshot:
        snapshot = compute_snapshot(scan, self._settings.max_hp)
        scan.snapshot = snapshot
        self._changed()
        return snapshot


__all__ = [
    "AnswerOutcome",
    "BATTLE_MODES",
    "BattleResultData",
    "BattleSession",
    "CaptureEngine",
    "MODE_EXPLORE",
    "MODE_RETRY",
    "MissedWord",
    "NO_TARGETS_CLEARED",
    "NO_TARGETS_NO_MEANINGS",
    "Question",
    "ScanProgress",
    "build_choices",
    "choose_pool",
    "compute_snapshot",
    "scan_progress",
    "select_questions",
]
