"""Error values and exceptions shared across the engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class InsufficientResource:
    """Returned (not raised) when currency, tickets or stamina cannot cover an action."""

    resource: str
    required: int
    available: int

    @property
    def message(self) -> str:
        return f"Not enough {self.resource}: need {self.required}, have {self.available}."


@dataclass(frozen=True)
class DailyLimitExceeded:
    feature: str
    limit: int
    message: str


@dataclass(frozen=True)
class LimitCheck:
    allowed: bool
    remaining: Optional[int]
    error: Optional[DailyLimitExceeded] = None

    @property
    def unlimited(self) -> bool:
        return self.remaining is None


class PotenoteError(Exception):
    """Base class for exceptions raised at the engine's outer boundaries."""


class SchemaValidationError(PotenoteError):
    """Raised when a generated payload does not match its expected shape."""


class UpstreamError(PotenoteError):
    """Raised when an OCR or generation call fails or times out."""


class RemoteStoreError(PotenoteError):
    """Raised by document stores; absorbed by the sync coordinator."""


__all__ = [
    "DailyLimitExceeded",
    "InsufficientResource",
    "LimitCheck",
    "PotenoteError",
    "RemoteStoreError",
    "SchemaValidationError",
    "UpstreamError",
]
