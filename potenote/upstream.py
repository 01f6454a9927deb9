"""Client for the OCR and generation services that feed the engine."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .config import Settings
from .errors import SchemaValidationError, UpstreamError
from .schemas import (
    LectureScript,
    QuizPayload,
    TranslationPayload,
    WordScanPayload,
    validate_lecture,
    validate_quiz,
    validate_translation,
    validate_word_scan,
)

logger = logging.getLogger("potenote.upstream")

DEFAULT_TIMEOUT = 120.0


class UpstreamClient:
    """Posts to the service endpoints and validates what comes back.

    A timeout is a failed request, never a partial result.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings, *, client: Optional[httpx.AsyncClient] = None) -> "UpstreamClient":
        if not settings.upstream_url:
            raise RuntimeError("POTENOTE_UPSTREAM_URL is not configured.")
        return cls(settings.upstream_url, timeout=settings.upstream_timeout, client=client)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> Any:
        started = time.perf_counter()
        try:
            response = await self._client.post(endpoint, json=body, timeout=self._timeout)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("%s timed out after %.1fs", endpoint, time.perf_counter() - started)
            raise UpstreamError(f"{endpoint} timed out") from exc
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            logger.warning("%s failed with %s: %s", endpoint, exc.response.status_code, detail)
            raise UpstreamError(detail or f"{endpoint} returned {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s request error: %s", endpoint, exc)
            raise UpstreamError(f"{endpoint} request failed: {exc}") from exc
        logger.debug("%s answered in %.2fs", endpoint, time.perf_counter() - started)
        return response.text

    async def extract_text(self, image: str) -> str:
        """OCR an image payload (data URL or base64)."""
        raw = await self._post("/api/ocr", {"image": image})
        payload = _decode(raw)
        text = str(payload.get("text") or "").strip() if isinstance(payload, dict) else ""
        if not text:
            raise UpstreamError("no text found")
        return text

    async def generate_quiz(self, text: str, *, mode: str = "quiz") -> QuizPayload:
        raw = await self._post("/api/generate-quiz", {"text": text, "mode": mode})
        return validate_quiz(raw)

    async def generate_lecture(self, text: str, *, tone: str = "normal") -> LectureScript:
        raw = await self._post("/api/generate-lecture", {"text": text, "tone": tone})
        return validate_lecture(raw)

    async def translate(self, text: str, *, mode: str = "english_learning") -> TranslationPayload:
        raw = await self._post("/api/translate", {"text": text, "mode": mode})
        return validate_translation(raw)

    async def scan_words(self, image: str) -> WordScanPayload:
        raw = await self._post("/api/word-collection-scan", {"image": image})
        return validate_word_scan(raw)


def _decode(raw: str) -> Any:
    # Generated payloads go through the schemas instead.
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SchemaValidationError(f"OCR response is not JSON: {exc}") from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return ""


__all__ = ["DEFAULT_TIMEOUT", "UpstreamClient"]
