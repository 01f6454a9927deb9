"""Boundary schemas for payloads returned by the generation services.

Payloads are validated strictly: a field of the wrong type is rejected, not
coerced, so nothing malformed reaches a history record or a word pool.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import SchemaValidationError
from .models import QuizData, QuizQuestion, WordEnemy

ModelT = TypeVar("ModelT", bound=BaseModel)


class _Payload(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True, extra="ignore")


class QuizQuestionPayload(_Payload):
    q: str = Field(min_length=1)
    options: List[str] = Field(min_length=2)
    a: int
    explanation: str = ""

    @model_validator(mode="after")
    def _answer_in_range(self) -> "QuizQuestionPayload":
        if not 0 <= self.a < len(self.options):
            raise ValueError(f"answer index {self.a} outside {len(self.options)} options")
        return self


class QuizPayload(_Payload):
    summary: str
    keywords: List[str] = Field(default_factory=list)
    questions: List[QuizQuestionPayload] = Field(min_length=1)

    def to_quiz(self) -> QuizData:
        return QuizData(
            summary=self.summary,
            keywords=list(self.keywords),
            questions=[
                QuizQuestion(q=question.q, options=tuple(question.options), a=question.a, explanation=question.explanation)
                for question in self.questions
            ],
        )


LectureItemType = Literal["introduction", "question", "silence", "answer", "explanation", "review", "summary", "closing"]


class LectureItem(_Payload):
    id: int
    type: LectureItemType
    speaker: Literal["teacher", "student"]
    text: Optional[str] = None
    speech_text: Optional[str] = Field(default=None, alias="speechText")
    display_board: Optional[str] = Field(default=None, alias="displayBoard")
    keyword: Optional[str] = None
    silence_seconds: Optional[float] = Field(default=None, alias="silenceSeconds")

    @model_validator(mode="after")
    def _text_or_silence(self) -> "LectureItem":
        if self.type == "silence":
            if not self.silence_seconds:
                raise ValueError("silence items require silenceSeconds")
        elif not self.text:
            raise ValueError("text is required for non-silence items")
        return self


class LectureScript(_Payload):
    items: List[LectureItem] = Field(min_length=1)
    tone: str
    source_text: str = Field(alias="sourceText")


class TechnicalTerm(_Payload):
    term: str
    explanation: str


class SentencePayload(_Payload):
    marked_text: str
    translation: str
    grammar_note: Optional[str] = None
    vocab_list: List[Dict[str, Any]] = Field(default_factory=list)


class TranslationPayload(_Payload):
    original_text: str = Field(alias="originalText")
    translated_text: str = Field(alias="translatedText")
    sentences: List[SentencePayload] = Field(default_factory=list)
    marked_text: Optional[str] = None
    japanese_translation: Optional[str] = None
    summary: Optional[str] = None
    text_type: Optional[Literal["academic", "email", "manual", "general"]] = Field(default=None, alias="textType")
    tone: Optional[str] = None
    technical_terms: List[TechnicalTerm] = Field(default_factory=list, alias="technicalTerms")


class WordScanWord(_Payload):
    word: str = Field(min_length=1)
    meaning: Optional[str] = None
    pos: Optional[str] = None
    surface_variants: List[str] = Field(default_factory=list, alias="surfaceVariants")
    example_sentence: Optional[str] = Field(default=None, alias="exampleSentence")

    def to_enemy(self) -> WordEnemy:
        return WordEnemy(
            word=self.word,
            meaning=(self.meaning or "").strip() or None,
            part_of_speech=self.pos,
            surface_variants=list(self.surface_variants),
            example_sentence=self.example_sentence,
        )


class WordScanPayload(_Payload):
    clean_text: str
    words: List[WordScanWord] = Field(min_length=1)


def validate_payload(model: Type[ModelT], payload: Union[str, bytes, Dict[str, Any]]) -> ModelT:
    """Validate raw JSON text or a decoded object against ``model``."""
    try:
        if isinstance(payload, (str, bytes)):
            return model.model_validate_json(payload)
        return model.model_validate(payload)
    except ValidationError as exc:
        # Also covers text that is not JSON at all.
        raise SchemaValidationError(f"{model.__name__} rejected: {exc.error_count()} error(s): {exc}") from exc


def validate_quiz(payload: Union[str, bytes, Dict[str, Any]]) -> QuizPayload:
    return validate_payload(QuizPayload, payload)


def validate_lecture(payload: Union[str, bytes, Dict[str, Any]]) -> LectureScript:
    return validate_payload(LectureScript, payload)


def validate_translation(payload: Union[str, bytes, Dict[str, Any]]) -> TranslationPayload:
    return validate_payload(TranslationPayload, payload)


def validate_word_scan(payload: Union[str, bytes, Dict[str, Any]]) -> WordScanPayload:
    return validate_payload(WordScanPayload, payload)


__all__ = [
    "LectureItem",
    "LectureScript",
    "QuizPayload",
    "QuizQuestionPayload",
    "SentencePayload",
    "TranslationPayload",
    "WordScanPayload",
    "WordScanWord",
    "validate_lecture",
    "validate_payload",
    "validate_quiz",
    "validate_translation",
    "validate_word_scan",
]
