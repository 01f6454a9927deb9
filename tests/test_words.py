import unittest

from potenote.words import extract_words, is_noise, normalize_word, scan_title


class WordExtractionTests(unittest.TestCase):
    def test_tokens_are_normalized_and_deduplicated(self) -> None:
        words = extract_words("Cats, cats and DOGS! A dog's day.")
        self.assertEqual(words, ["cats", "and", "dogs", "a", "day"])

    def test_noise_is_dropped(self) -> None:
        self.assertTrue(is_noise(""))
        self.assertTrue(is_noise("ab"))
        self.assertTrue(is_noise("aaaaa"))
        self.assertFalse(is_noise("i"))
        self.assertFalse(is_noise("aaaa"))

    def test_limit_caps_unique_words(self) -> None:
        text = " ".join(f"word{chr(97 + index % 26)}{chr(97 + index // 26)}" for index in range(200))
        self.assertEqual(len(extract_words(text, limit=150)), 150)

    def test_normalize_strips_non_letters(self) -> None:
        self.assertEqual(normalize_word("Re-use2!"), "reuse")


class ScanTitleTests(unittest.TestCase):
    def test_first_sentence_is_used(self) -> None:
        self.assertEqual(scan_title("Plants need light.  They grow."), "Plants need light.")

    def test_long_sentence_is_truncated(self) -> None:
        title = scan_title("Photosynthesis converts light energy into chemical energy")
        self.assertEqual(len(title), 30)
        self.assertTrue(title.endswith("…"))

    def test_blank_text_has_no_title(self) -> None:
        self.assertEqual(scan_title("   "), "")


if __name__ == "__main__":
    unittest.main()
