"""Turning scanned English text into candidate enemy words."""

from __future__ import annotations

import re
from typing import List

WORD_SAVE_LIMIT = 150
SHORT_ALLOWED = frozenset({"a", "i"})

_NON_LETTERS = re.compile(r"[^a-zA-Z]")
_REPEATED_CHAR = re.compile(r"^(.)\1{4,}$")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


def normalize_word(raw: str) -> str:
    return _NON_LETTERS.sub("", raw).lower()


def is_noise(word: str) -> bool:
    if not word:
        return True
    if len(word) <= 2 and word not in SHORT_ALLOWED:
        return True
    # OCR garbage such as "aaaaa"
    return bool(_REPEATED_CHAR.match(word))


def extract_words(text: str, limit: int = WORD_SAVE_LIMIT) -> List[str]:
    """Unique lowercase words in order of appearance, at most ``limit``."""
    if not text:
        return []
    seen = set()
    result: List[str] = []
    for token in text.split():
        word = normalize_word(token)
        if is_noise(word) or word in seen:
            continue
        seen.add(word)
        result.append(word)
        if len(result) >= limit:
            break
    return result


def scan_title(clean_text: str, max_length: int = 30) -> str:
    """Short display title from the first sentence of the scanned text."""
    stripped = " ".join(clean_text.split())
    if not stripped:
        return ""
    first = _SENTENCE_END.split(stripped, maxsplit=1)[0]
    if len(first) <= max_length:
        return first
    return first[: max_length - 1].rstrip() + "…"


__all__ = ["WORD_SAVE_LIMIT", "extract_words", "is_noise", "normalize_word", "scan_title"]
