"""Quiz and translation history with de-duplication and id-based merging."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar, Union

from .models import HistoryLog, QuizData, QuizHistory, QuizQuestion, QuizResult, TranslationHistory
from .schemas import TranslationPayload
from .utils import new_record_id, utc_now

logger = logging.getLogger("potenote.history")

QUIZ_COLLECTION = "quiz_history"
TRANSLATION_COLLECTION = "translation_history"

HistoryRecord = Union[QuizHistory, TranslationHistory]
RecordT = TypeVar("RecordT", QuizHistory, TranslationHistory)

RecordHook = Callable[[str, HistoryRecord], None]
DeleteHook = Callable[[str, str], None]


def merge_records(local: Sequence[RecordT], remote: Sequence[RecordT]) -> List[RecordT]:
    """Remote records first, then local records the remote batch does not already hold.

    A local record is dropped when its id is present remotely or when it is
    structurally equal to a remote record. Merging the same batch twice yields
    the same list.
    """
    merged: List[RecordT] = []
    remote_ids = set()
    remote_keys = set()
    for record in remote:
        if record.id in remote_ids:
            continue
        remote_ids.add(record.id)
        remote_keys.add(record.dedupe_key())
        merged.append(record)
    local_ids = set()
    for record in local:
        if record.id in remote_ids or record.id in local_ids or record.dedupe_key() in remote_keys:
            continue
        local_ids.add(record.id)
        merged.append(record)
    return merged


class HistoryStore:
    def __init__(
        self,
        log: HistoryLog,
        *,
        translation_max: int = 50,
        on_change: Optional[Callable[[], None]] = None,
        on_record: Optional[RecordHook] = None,
        on_delete: Optional[DeleteHook] = None,
    ) -> None:
        self._log = log
        self._translation_max = translation_max
        self._on_change = on_change
        self._on_record = on_record
        self._on_delete = on_delete

    @property
    def quizzes(self) -> List[QuizHistory]:
        return list(self._log.quiz)

    @property
    def translations(self) -> List[TranslationHistory]:
        return list(self._log.translation)

    def _saved(self, collection: str, record: HistoryRecord) -> None:
        if self._on_change is not None:
            self._on_change()
        if self._on_record is not None:
            self._on_record(collection, record)

    # Quizzes ----------------------------------------------------------------

    def get_quiz(self, history_id: str) -> Optional[QuizHistory]:
        for record in self._log.quiz:
            if record.id == history_id:
                return record
        return None

    def begin_scan(self) -> None:
        """Forget the current scan's record so the next save creates a new one."""
        self._log.last_scan_quiz_id = None

    def save_quiz_history(
        self,
        quiz: QuizData,
        result: QuizResult,
        *,
        ocr_text: Optional[str] = None,
        structured_ocr: Optional[dict] = None,
    ) -> QuizHistory:
        """Record a finished quiz; replaying the same scan updates its record in place."""
        existing = self.get_quiz(self._log.last_scan_quiz_id) if self._log.last_scan_quiz_id else None
        if existing is not None:
            existing.quiz = quiz
            existing.result = replace(result, quiz_id=existing.id)
            if ocr_text is not None:
                existing.ocr_text = ocr_text
            if structured_ocr is not None:
                existing.structured_ocr = dict(structured_ocr)
            record = existing
            logger.debug("Updated quiz history %s", record.id)
        else:
            record_id = result.quiz_id
            if not record_id or self.get_quiz(record_id) is not None:
                record_id = new_record_id("quiz")
            record = QuizHistory(
                id=record_id,
                quiz=quiz,
                result=replace(result, quiz_id=record_id),
                created_at=utc_now(),
                ocr_text=ocr_text,
                structured_ocr=dict(structured_ocr) if structured_ocr else None,
            )
            self._log.quiz.insert(0, record)
            self._log.last_scan_quiz_id = record.id
            logger.debug("Saved quiz history %s", record.id)
        self._saved(QUIZ_COLLECTION, record)
        return record

    def update_used_indices(self, history_id: str, indices: Iterable[int]) -> QuizHistory:
        record = self.get_quiz(history_id)
        if record is None:
            raise KeyError(f"Unknown quiz history: {history_id}")
        for index in indices:
            if index not in record.used_question_indices:
                record.used_question_indices.append(index)
        self._saved(QUIZ_COLLECTION, record)
        return record

    def add_questions(self, history_id: str, questions: Sequence[QuizQuestion]) -> int:
        """Append generated questions, skipping any whose text is already present."""
        record = self.get_quiz(history_id)
        if record is None:
            raise KeyError(f"Unknown quiz history: {history_id}")
        known = {question.q for question in record.quiz.questions}
        added = 0
        for question in questions:
            if question.q in known:
                continue
            known.add(question.q)
            record.quiz.questions.append(question)
            added += 1
        if added:
            self._saved(QUIZ_COLLECTION, record)
        return added

    # Translations -----------------------------------------------------------

    def save_translation_history(
        self,
        payload: TranslationPayload,
        *,
        image_url: Optional[str] = None,
    ) -> Optional[TranslationHistory]:
        """Store a validated translation. Returns None for an exact repeat."""
        for record in self._log.translation:
            if record.original_text == payload.original_text and record.translated_text == payload.translated_text:
                logger.debug("Skipping duplicate translation %s", record.id)
                return None
        record = TranslationHistory(
            id=new_record_id("translation"),
            original_text=payload.original_text,
            translated_text=payload.translated_text,
            created_at=utc_now(),
            image_url=image_url,
            sentences=[sentence.model_dump() for sentence in payload.sentences],
            marked_text=payload.marked_text,
            japanese_translation=payload.japanese_translation,
        )
        self._log.translation.insert(0, record)
        del self._log.translation[self._translation_max :]
        self._saved(TRANSLATION_COLLECTION, record)
        return record

    def delete_translation_history(self, history_id: str) -> bool:
        for index, record in enumerate(self._log.translation):
            if record.id == history_id:
                del self._log.translation[index]
                if self._on_change is not None:
                    self._on_change()
                if self._on_delete is not None:
                    self._on_delete(TRANSLATION_COLLECTION, history_id)
                return True
        return False

    # Merging ----------------------------------------------------------------

    def merge_remote(
        self,
        *,
        quizzes: Optional[Sequence[QuizHistory]] = None,
        translations: Optional[Sequence[TranslationHistory]] = None,
    ) -> None:
        if quizzes is not None:
            self._log.quiz[:] = merge_records(self._log.quiz, quizzes)
        if translations is not None:
            self._log.translation[:] = merge_records(self._log.translation, translations)
        if self._on_change is not None:
            self._on_change()


__all__ = [
    "HistoryRecord",
    "HistoryStore",
    "QUIZ_COLLECTION",
    "TRANSLATION_COLLECTION",
    "merge_records",
]
