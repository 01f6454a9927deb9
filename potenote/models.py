"""Dataclasses and shared type definitions for Potenote.

Every model serializes to the camelCase dictionaries used both by the local
snapshot and by the remote per-user documents, so the two storage boundaries
share one wire format.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .utils import format_timestamp, is_stale, parse_timestamp, utc_now

MAX_HP = 3


def _str_list(values: object) -> List[str]:
    if not isinstance(values, (list, tuple)):
        return []
    return [str(value) for value in values]


# Progression -----------------------------------------------------------------


@dataclass
class DailyCounter:
    count: int = 0
    last_reset_date: Optional[str] = None

    def current(self, today: str) -> int:
        """Usage for ``today`` without mutating the counter."""
        return 0 if is_stale(self.last_reset_date, today) else self.count

    def roll_over(self, today: str) -> bool:
        if not is_stale(self.last_reset_date, today):
            return False
        self.count = 0
        self.last_reset_date = today
        return True

    def to_dict(self) -> Dict[str, object]:
        return {"count": self.count, "lastResetDate": self.last_reset_date}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "DailyCounter":
        last = payload.get("lastResetDate")
        return cls(count=int(payload.get("count", 0) or 0), last_reset_date=str(last) if last else None)


@dataclass
class UserProgressionState:
    uid: Optional[str] = None
    coins: int = 0
    tickets: int = 0
    stamina: int = 5
    is_vip: bool = False
    vip_expires_at: Optional[datetime] = None
    daily_counters: Dict[str, DailyCounter] = field(default_factory=dict)
    total_scans: int = 0
    total_quizzes: int = 0
    total_correct_answers: int = 0
    total_quiz_clears: int = 0
    total_distance: float = 0.0
    last_login_date: Optional[str] = None
    consecutive_login_days: int = 0

    def counter(self, feature: str) -> DailyCounter:
        return self.daily_counters.setdefault(feature, DailyCounter())

    def to_dict(self) -> Dict[str, object]:
        return {
            "coins": self.coins,
            "tickets": self.tickets,
            "stamina": self.stamina,
            "isVIP": self.is_vip,
            "vipExpiresAt": format_timestamp(self.vip_expires_at),
            "dailyCounters": {name: counter.to_dict() for name, counter in self.daily_counters.items()},
            "totalScans": self.total_scans,
            "totalQuizzes": self.total_quizzes,
            "totalCorrectAnswers": self.total_correct_answers,
            "totalQuizClears": self.total_quiz_clears,
            "totalDistance": self.total_distance,
            "lastLoginDate": self.last_login_date,
            "consecutiveLoginDays": self.consecutive_login_days,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object], *, uid: Optional[str] = None) -> "UserProgressionState":
        counters = payload.get("dailyCounters") or {}
        last_login = payload.get("lastLoginDate")
        return cls(
            uid=uid,
            coins=int(payload.get("coins", 0) or 0),
            tickets=int(payload.get("tickets", 0) or 0),
            stamina=int(payload.get("stamina", 5)),
            is_vip=bool(payload.get("isVIP", False)),
            vip_expires_at=parse_timestamp(payload.get("vipExpiresAt")),
            daily_counters={
                str(name): DailyCounter.from_dict(value)
                for name, value in dict(counters).items()
                if isinstance(value, Mapping)
            },
            total_scans=int(payload.get("totalScans", 0) or 0),
            total_quizzes=int(payload.get("totalQuizzes", 0) or 0),
            total_correct_answers=int(payload.get("totalCorrectAnswers", 0) or 0),
            total_quiz_clears=int(payload.get("totalQuizClears", 0) or 0),
            total_distance=float(payload.get("totalDistance", 0.0) or 0.0),
            last_login_date=str(last_login) if last_login else None,
            consecutive_login_days=int(payload.get("consecutiveLoginDays", 0) or 0),
        )


# Inventory -------------------------------------------------------------------


@dataclass
class InventoryEntry:
    item_id: str
    quantity: int
    obtained_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "itemId": self.item_id,
            "quantity": self.quantity,
            "obtainedAt": format_timestamp(self.obtained_at),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "InventoryEntry":
        return cls(
            item_id=str(payload["itemId"]),
            quantity=int(payload["quantity"]),  # type: ignore[arg-type]
            obtained_at=parse_timestamp(payload.get("obtainedAt")) or utc_now(),
        )


@dataclass
class GachaPity:
    sr_counter: int = 0
    ssr_counter: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"srCounter": self.sr_counter, "ssrCounter": self.ssr_counter}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "GachaPity":
        return cls(
            sr_counter=int(payload.get("srCounter", 0) or 0),
            ssr_counter=int(payload.get("ssrCounter", 0) or 0),
        )


# Word capture ----------------------------------------------------------------


@dataclass
class WordEnemy:
    word: str
    meaning: Optional[str] = None
    part_of_speech: Optional[str] = None
    hp: int = MAX_HP
    asked: bool = False
    wrong_count: int = 0
    surface_variants: List[str] = field(default_factory=list)
    example_sentence: Optional[str] = None

    @property
    def captured(self) -> bool:
        return self.hp <= 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "word": self.word,
            "meaning": self.meaning,
            "partOfSpeech": self.part_of_speech,
            "hp": self.hp,
            "asked": self.asked,
            "wrongCount": self.wrong_count,
            "surfaceVariants": list(self.surface_variants),
            "exampleSentence": self.example_sentence,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "WordEnemy":
        hp = int(payload.get("hp", MAX_HP))  # type: ignore[arg-type]
        return cls(
            word=str(payload["word"]),
            meaning=payload.get("meaning") or None,  # type: ignore[arg-type]
            part_of_speech=payload.get("partOfSpeech") or None,  # type: ignore[arg-type]
            hp=max(0, min(MAX_HP, hp)),
            asked=bool(payload.get("asked", False)),
            wrong_count=int(payload.get("wrongCount", 0) or 0),
            surface_variants=_str_list(payload.get("surfaceVariants")),
            example_sentence=payload.get("exampleSentence") or None,  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class AdventureSnapshot:
    captured_count: int
    defeated_count: int
    remaining_count: int
    total: int
    captured_words: Tuple[str, ...] = ()
    defeated_words: Tuple[str, ...] = ()
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "capturedCount": self.captured_count,
            "defeatedCount": self.defeated_count,
            "remainingCount": self.remaining_count,
            "total": self.total,
            "capturedWords": list(self.captured_words),
            "defeatedWords": list(self.defeated_words),
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "AdventureSnapshot":
        return cls(
            captured_count=int(payload.get("capturedCount", 0) or 0),
            defeated_count=int(payload.get("defeatedCount", 0) or 0),
            remaining_count=int(payload.get("remainingCount", 0) or 0),
            total=int(payload.get("total", 0) or 0),
            captured_words=tuple(_str_list(payload.get("capturedWords"))),
            defeated_words=tuple(_str_list(payload.get("defeatedWords"))),
            created_at=parse_timestamp(payload.get("createdAt")) or utc_now(),
        )


@dataclass
class WordCollectionScan:
    id: str
    title: str
    words: List[WordEnemy] = field(default_factory=list)
    active_enemy_words: List[str] = field(default_factory=list)
    active_enemy_total: int = 0
    snapshot: Optional[AdventureSnapshot] = None
    image_url: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def find(self, word: str) -> Optional[WordEnemy]:
        for enemy in self.words:
            if enemy.word == word:
                return enemy
        return None

    def active_enemies(self) -> List[WordEnemy]:
        active = set(self.active_enemy_words)
        return [enemy for enemy in self.words if enemy.word in active]

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "words": [enemy.to_dict() for enemy in self.words],
            "activeEnemyWords": list(self.active_enemy_words),
            "activeEnemyTotal": self.active_enemy_total,
            "adventureSnapshot": self.snapshot.to_dict() if self.snapshot else None,
            "imageUrl": self.image_url,
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "WordCollectionScan":
        snapshot = payload.get("adventureSnapshot")
        words = payload.get("words") or []
        return cls(
            id=str(payload["id"]),
            title=str(payload.get("title", "")),
            words=[WordEnemy.from_dict(entry) for entry in words],  # type: ignore[union-attr]
            active_enemy_words=_str_list(payload.get("activeEnemyWords")),
            active_enemy_total=int(payload.get("activeEnemyTotal", 0) or 0),
            snapshot=AdventureSnapshot.from_dict(snapshot) if isinstance(snapshot, Mapping) else None,
            image_url=payload.get("imageUrl") or None,  # type: ignore[arg-type]
            created_at=parse_timestamp(payload.get("createdAt")) or utc_now(),
        )


# Quiz & history --------------------------------------------------------------


@dataclass(frozen=True)
class QuizQuestion:
    q: str
    options: Tuple[str, ...]
    a: int
    explanation: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {"q": self.q, "options": list(self.options), "a": self.a, "explanation": self.explanation}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "QuizQuestion":
        return cls(
            q=str(payload["q"]),
            options=tuple(_str_list(payload.get("options"))),
            a=int(payload["a"]),  # type: ignore[arg-type]
            explanation=str(payload.get("explanation", "")),
        )


@dataclass
class QuizData:
    summary: str
    keywords: List[str] = field(default_factory=list)
    questions: List[QuizQuestion] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": self.summary,
            "keywords": list(self.keywords),
            "questions": [question.to_dict() for question in self.questions],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "QuizData":
        questions = payload.get("questions") or []
        return cls(
            summary=str(payload.get("summary", "")),
            keywords=_str_list(payload.get("keywords")),
            questions=[QuizQuestion.from_dict(entry) for entry in questions],  # type: ignore[union-attr]
        )


@dataclass(frozen=True)
class QuizResult:
    quiz_id: str
    correct_count: int
    total_questions: int
    is_perfect: bool
    earned_coins: int
    earned_distance: float
    is_doubled: bool
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "quizId": self.quiz_id,
            "correctCount": self.correct_count,
            "totalQuestions": self.total_questions,
            "isPerfect": self.is_perfect,
            "earnedCoins": self.earned_coins,
            "earnedDistance": self.earned_distance,
            "isDoubled": self.is_doubled,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "QuizResult":
        return cls(
            quiz_id=str(payload.get("quizId", "")),
            correct_count=int(payload.get("correctCount", 0) or 0),
            total_questions=int(payload.get("totalQuestions", 0) or 0),
            is_perfect=bool(payload.get("isPerfect", False)),
            earned_coins=int(payload.get("earnedCoins", 0) or 0),
            earned_distance=float(payload.get("earnedDistance", 0) or 0),
            is_doubled=bool(payload.get("isDoubled", False)),
            timestamp=parse_timestamp(payload.get("timestamp")) or utc_now(),
        )


@dataclass
class QuizHistory:
    id: str
    quiz: QuizData
    result: QuizResult
    created_at: datetime = field(default_factory=utc_now)
    used_question_indices: List[int] = field(default_factory=list)
    ocr_text: Optional[str] = None
    structured_ocr: Optional[Dict[str, str]] = None

    def dedupe_key(self) -> Tuple[object, ...]:
        source = self.ocr_text or self.quiz.summary
        questions = tuple(question.q for question in self.quiz.questions)
        return (source, questions, self.result.correct_count, self.result.total_questions)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "quiz": self.quiz.to_dict(),
            "result": self.result.to_dict(),
            "createdAt": format_timestamp(self.created_at),
            "usedQuestionIndices": list(self.used_question_indices),
            "ocrText": self.ocr_text,
            "structuredOCR": dict(self.structured_ocr) if self.structured_ocr else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "QuizHistory":
        structured = payload.get("structuredOCR")
        indices = payload.get("usedQuestionIndices") or []
        return cls(
            id=str(payload["id"]),
            quiz=QuizData.from_dict(payload.get("quiz") or {}),  # type: ignore[arg-type]
            result=QuizResult.from_dict(payload.get("result") or {}),  # type: ignore[arg-type]
            created_at=parse_timestamp(payload.get("createdAt")) or utc_now(),
            used_question_indices=[int(index) for index in indices],  # type: ignore[union-attr]
            ocr_text=payload.get("ocrText") or None,  # type: ignore[arg-type]
            structured_ocr={str(k): str(v) for k, v in structured.items()} if isinstance(structured, Mapping) else None,
        )


@dataclass
class TranslationHistory:
    id: str
    original_text: str
    translated_text: str
    created_at: datetime = field(default_factory=utc_now)
    image_url: Optional[str] = None
    sentences: List[Dict[str, object]] = field(default_factory=list)
    marked_text: Optional[str] = None
    japanese_translation: Optional[str] = None

    def dedupe_key(self) -> Tuple[object, ...]:
        return (self.original_text, self.translated_text)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "originalText": self.original_text,
            "translatedText": self.translated_text,
            "createdAt": format_timestamp(self.created_at),
            "imageUrl": self.image_url,
            "sentences": [dict(sentence) for sentence in self.sentences],
            "marked_text": self.marked_text,
            "japanese_translation": self.japanese_translation,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "TranslationHistory":
        sentences = payload.get("sentences") or []
        return cls(
            id=str(payload["id"]),
            original_text=str(payload.get("originalText", "")),
            translated_text=str(payload.get("translatedText", "")),
            created_at=parse_timestamp(payload.get("createdAt")) or utc_now(),
            image_url=payload.get("imageUrl") or None,  # type: ignore[arg-type]
            sentences=[dict(entry) for entry in sentences if isinstance(entry, Mapping)],  # type: ignore[union-attr]
            marked_text=payload.get("marked_text") or None,  # type: ignore[arg-type]
            japanese_translation=payload.get("japanese_translation") or None,  # type: ignore[arg-type]
        )


# Journey ---------------------------------------------------------------------


@dataclass(frozen=True)
class Coordinate:
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "Coordinate":
        return cls(x=float(payload.get("x", 0.0) or 0.0), y=float(payload.get("y", 0.0) or 0.0))


@dataclass(frozen=True)
class Flag:
    id: str
    quiz_id: str
    keywords: Tuple[str, ...]
    position: Coordinate
    distance: float
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "quizId": self.quiz_id,
            "keywords": list(self.keywords),
            "position": self.position.to_dict(),
            "distance": self.distance,
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "Flag":
        return cls(
            id=str(payload["id"]),
            quiz_id=str(payload.get("quizId", "")),
            keywords=tuple(_str_list(payload.get("keywords"))),
            position=Coordinate.from_dict(payload.get("position") or {}),  # type: ignore[arg-type]
            distance=float(payload.get("distance", 0.0) or 0.0),
            created_at=parse_timestamp(payload.get("createdAt")) or utc_now(),
        )


@dataclass(frozen=True)
class Island:
    id: int
    distance: float
    name: str
    keywords: Tuple[str, ...] = ()
    unlocked_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "distance": self.distance,
            "name": self.name,
            "keywords": list(self.keywords),
            "unlockedAt": format_timestamp(self.unlocked_at),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "Island":
        return cls(
            id=int(payload["id"]),  # type: ignore[arg-type]
            distance=float(payload.get("distance", 0.0) or 0.0),
            name=str(payload.get("name", "")),
            keywords=tuple(_str_list(payload.get("keywords"))),
            unlocked_at=parse_timestamp(payload.get("unlockedAt")) or utc_now(),
        )


@dataclass
class Journey:
    total_distance: float = 0.0
    flags: List[Flag] = field(default_factory=list)
    current_position: Coordinate = field(default_factory=Coordinate)
    islands: List[Island] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "totalDistance": self.total_distance,
            "flags": [flag.to_dict() for flag in self.flags],
            "currentPosition": self.current_position.to_dict(),
            "islands": [island.to_dict() for island in self.islands],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "Journey":
        flags: Sequence[Mapping[str, object]] = payload.get("flags") or []  # type: ignore[assignment]
        islands: Sequence[Mapping[str, object]] = payload.get("islands") or []  # type: ignore[assignment]
        return cls(
            total_distance=float(payload.get("totalDistance", 0.0) or 0.0),
            flags=[Flag.from_dict(entry) for entry in flags],
            current_position=Coordinate.from_dict(payload.get("currentPosition") or {}),  # type: ignore[arg-type]
            islands=[Island.from_dict(entry) for entry in islands],
        )


# Root ------------------------------------------------------------------------


@dataclass
class HistoryLog:
    """Newest-first history lists plus the quiz id the last scan produced."""

    quiz: List[QuizHistory] = field(default_factory=list)
    translation: List[TranslationHistory] = field(default_factory=list)
    last_scan_quiz_id: Optional[str] = None


@dataclass
class GameState:
    """The whole persisted tree. Components receive it by reference."""

    progression: UserProgressionState = field(default_factory=UserProgressionState)
    inventory: Dict[str, InventoryEntry] = field(default_factory=dict)
    equipment: Dict[str, str] = field(default_factory=dict)
    pity: GachaPity = field(default_factory=GachaPity)
    journey: Journey = field(default_factory=Journey)
    word_scans: List[WordCollectionScan] = field(default_factory=list)
    word_dex_order: List[str] = field(default_factory=list)
    history: HistoryLog = field(default_factory=HistoryLog)

    def replace_with(self, other: "GameState") -> None:
        """Swap in ``other``'s contents without replacing any nested container."""
        copy_into(self.progression, other.progression)
        copy_into(self.pity, other.pity)
        copy_into(self.journey, other.journey)
        copy_into(self.history, other.history)
        self.inventory.clear()
        self.inventory.update(other.inventory)
        self.equipment.clear()
        self.equipment.update(other.equipment)
        self.word_scans[:] = other.word_scans
        self.word_dex_order[:] = other.word_dex_order


def copy_into(target: object, source: object) -> None:
    """Overwrite a dataclass in place so components holding a reference see the new values."""
    for item in fields(source):  # type: ignore[arg-type]
        setattr(target, item.name, getattr(source, item.name))


__all__ = [
    "AdventureSnapshot",
    "Coordinate",
    "DailyCounter",
    "Flag",
    "GachaPity",
    "GameState",
    "HistoryLog",
    "InventoryEntry",
    "Island",
    "Journey",
    "MAX_HP",
    "QuizData",
    "QuizHistory",
    "QuizQuestion",
    "QuizResult",
    "TranslationHistory",
    "UserProgressionState",
    "WordCollectionScan",
    "WordEnemy",
    "copy_into",
]
