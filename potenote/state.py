"""Local snapshot persistence for the game state tree."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Mapping, Optional

from .config import SNAPSHOT_VERSION, STORAGE_KEY
from .models import (
    GachaPity,
    GameState,
    HistoryLog,
    InventoryEntry,
    Journey,
    QuizHistory,
    TranslationHistory,
    UserProgressionState,
    WordCollectionScan,
)
from .utils import format_timestamp, utc_now

logger = logging.getLogger("potenote.state")


def serialize_game_state(state: GameState) -> Dict[str, object]:
    return {
        "uid": state.progression.uid,
        "userState": state.progression.to_dict(),
        "inventory": [entry.to_dict() for entry in state.inventory.values()],
        "equipment": dict(state.equipment),
        "gachaPity": state.pity.to_dict(),
        "journey": state.journey.to_dict(),
        "wordCollectionScans": [scan.to_dict() for scan in state.word_scans],
        "wordDexOrder": list(state.word_dex_order),
        "quizHistory": [record.to_dict() for record in state.history.quiz],
        "translationHistory": [record.to_dict() for record in state.history.translation],
        "lastScanQuizId": state.history.last_scan_quiz_id,
    }


def deserialize_game_state(payload: Mapping[str, object]) -> GameState:
    uid = payload.get("uid")
    inventory: Dict[str, InventoryEntry] = {}
    for raw in payload.get("inventory") or []:  # type: ignore[union-attr]
        entry = InventoryEntry.from_dict(raw)
        if entry.quantity > 0:
            inventory[entry.item_id] = entry
    equipment = payload.get("equipment") or {}
    last_scan_quiz_id = payload.get("lastScanQuizId")
    return GameState(
        progression=UserProgressionState.from_dict(
            payload.get("userState") or {},  # type: ignore[arg-type]
            uid=str(uid) if uid else None,
        ),
        inventory=inventory,
        equipment={str(k): str(v) for k, v in dict(equipment).items() if v},  # type: ignore[call-overload]
        pity=GachaPity.from_dict(payload.get("gachaPity") or {}),  # type: ignore[arg-type]
        journey=Journey.from_dict(payload.get("journey") or {}),  # type: ignore[arg-type]
        word_scans=[WordCollectionScan.from_dict(raw) for raw in payload.get("wordCollectionScans") or []],  # type: ignore[union-attr]
        word_dex_order=[str(word) for word in payload.get("wordDexOrder") or []],  # type: ignore[union-attr]
        history=HistoryLog(
            quiz=[QuizHistory.from_dict(raw) for raw in payload.get("quizHistory") or []],  # type: ignore[union-attr]
            translation=[TranslationHistory.from_dict(raw) for raw in payload.get("translationHistory") or []],  # type: ignore[union-attr]
            last_scan_quiz_id=str(last_scan_quiz_id) if last_scan_quiz_id else None,
        ),
    )


class LocalSnapshotStore:
    """One versioned JSON snapshot stored under the fixed storage key."""

    def __init__(self, path: Optional[Path] = None, *, key: str = STORAGE_KEY) -> None:
        self._path = path
        self.key = key

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def configure(self, path: Path) -> None:
        self._path = path

    def save(self, state: GameState) -> None:
        if self._path is None:
            raise RuntimeError("Snapshot path not configured. Call configure first.")
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "key": self.key,
            "version": SNAPSHOT_VERSION,
            "savedAt": format_timestamp(utc_now()),
            "state": serialize_game_state(state),
        }
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self._path)

    def load(self) -> GameState:
        """Read the snapshot once at startup; unreadable snapshots yield a fresh state."""
        if self._path is None or not self._path.exists():
            return GameState()
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("Failed to parse %s: %s", self._path, exc)
            return GameState()
        if not isinstance(payload, dict) or payload.get("key") != self.key:
            logger.warning("Ignoring snapshot %s with unexpected key", self._path)
            return GameState()
        if payload.get("version") != SNAPSHOT_VERSION:
            logger.warning(
                "Ignoring snapshot %s with version %s (expected %s)",
                self._path,
                payload.get("version"),
                SNAPSHOT_VERSION,
            )
            return GameState()
        try:
            return deserialize_game_state(payload.get("state") or {})
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed snapshot %s: %s", self._path, exc)
            return GameState()


__all__ = ["LocalSnapshotStore", "deserialize_game_state", "serialize_game_state"]
