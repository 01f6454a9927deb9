from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from potenote.models import WordCollectionScan, WordEnemy


class FixedClock:
    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now or datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class ChangeCounter:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


def make_scan(
    words: Sequence[Tuple[str, Optional[str]]],
    *,
    scan_id: str = "scan_test",
) -> WordCollectionScan:
    enemies: List[WordEnemy] = [WordEnemy(word=word, meaning=meaning) for word, meaning in words]
    return WordCollectionScan(id=scan_id, title="Test scan", words=enemies)


def numbered_words(count: int) -> List[Tuple[str, Optional[str]]]:
    return [(f"word{index:02d}", f"meaning {index:02d}") for index in range(count)]
