import json
import unittest

from potenote.errors import SchemaValidationError
from potenote.schemas import validate_lecture, validate_quiz, validate_translation, validate_word_scan


def quiz_payload(**overrides):
    question = {"q": "What do plants absorb?", "options": ["light", "sound", "heat", "wind"], "a": 0, "explanation": "Light."}
    question.update(overrides)
    return {"summary": "Photosynthesis", "keywords": ["light"], "questions": [question]}


class QuizSchemaTests(unittest.TestCase):
    def test_valid_quiz_converts_to_model(self) -> None:
        quiz = validate_quiz(json.dumps(quiz_payload())).to_quiz()
        self.assertEqual(quiz.summary, "Photosynthesis")
        self.assertEqual(quiz.questions[0].options, ("light", "sound", "heat", "wind"))

    def test_answer_index_must_point_at_an_option(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_quiz(quiz_payload(a=4))

    def test_wrong_types_are_not_coerced(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_quiz(quiz_payload(a="0"))

    def test_non_json_text_is_rejected(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_quiz("Sorry, I cannot help with that.")

    def test_quiz_needs_questions(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_quiz({"summary": "Empty", "questions": []})


class LectureSchemaTests(unittest.TestCase):
    def _script(self, *items):
        return {"items": list(items), "tone": "normal", "sourceText": "Cells divide."}

    def test_valid_script(self) -> None:
        script = validate_lecture(
            self._script(
                {"id": 1, "type": "introduction", "speaker": "teacher", "text": "Today: cells."},
                {"id": 2, "type": "silence", "speaker": "teacher", "silenceSeconds": 3},
            )
        )
        self.assertEqual(script.source_text, "Cells divide.")
        self.assertEqual(script.items[1].silence_seconds, 3)

    def test_silence_requires_duration(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_lecture(self._script({"id": 1, "type": "silence", "speaker": "teacher"}))

    def test_spoken_item_requires_text(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_lecture(self._script({"id": 1, "type": "question", "speaker": "student"}))

    def test_unknown_speaker_is_rejected(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_lecture(self._script({"id": 1, "type": "summary", "speaker": "narrator", "text": "Done."}))


class TranslationAndWordScanSchemaTests(unittest.TestCase):
    def test_translation_accepts_camel_case_fields(self) -> None:
        payload = validate_translation(
            {
                "originalText": "Hello",
                "translatedText": "こんにちは",
                "textType": "general",
                "technicalTerms": [{"term": "greeting", "explanation": "挨拶"}],
            }
        )
        self.assertEqual(payload.translated_text, "こんにちは")
        self.assertEqual(payload.technical_terms[0].term, "greeting")

    def test_translation_rejects_unknown_text_type(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_translation({"originalText": "Hi", "translatedText": "やあ", "textType": "poem"})

    def test_word_scan_requires_words(self) -> None:
        with self.assertRaises(SchemaValidationError):
            validate_word_scan({"clean_text": "nothing", "words": []})

    def test_blank_meaning_becomes_missing(self) -> None:
        payload = validate_word_scan({"clean_text": "river", "words": [{"word": "river", "meaning": "  "}]})
        self.assertIsNone(payload.words[0].to_enemy().meaning)


if __name__ == "__main__":
    unittest.main()
