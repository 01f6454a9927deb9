"""Best-effort mirroring of the local game state to the remote document store.

Local state is authoritative: every mutation is persisted locally first and
the remote write is scheduled afterwards as a fire-and-forget task. Remote
failures are logged here and never reach callers.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Set, Type, TypeVar

from .errors import RemoteStoreError
from .history import QUIZ_COLLECTION, TRANSLATION_COLLECTION, HistoryRecord, HistoryStore
from .models import (
    GachaPity,
    GameState,
    InventoryEntry,
    Journey,
    QuizHistory,
    TranslationHistory,
    UserProgressionState,
    copy_into,
)
from .remote import Document, DocumentStore, history_path, user_path
from .utils import format_timestamp, today_string, utc_now

logger = logging.getLogger("potenote.sync")

RecordT = TypeVar("RecordT", QuizHistory, TranslationHistory)


def _parse_records(model: Type[RecordT], documents: List[Document]) -> List[RecordT]:
    records: List[RecordT] = []
    for document in documents:
        try:
            records.append(model.from_dict(document))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed remote %s: %s", model.__name__, exc)
    return records


class SyncCoordinator:
    def __init__(
        self,
        state: GameState,
        remote: Optional[DocumentStore],
        *,
        history: HistoryStore,
        persist: Callable[[], None],
        clock: Callable[[], datetime] = utc_now,
        fetch_limit: int = 30,
    ) -> None:
        self._state = state
        self._remote = remote
        self._history = history
        self._persist = persist
        self._clock = clock
        self._fetch_limit = fetch_limit
        self._pending: Set["asyncio.Task[bool]"] = set()
        self._sync_task: Optional["asyncio.Task[bool]"] = None
        self._dirty = False

    @property
    def uid(self) -> Optional[str]:
        return self._state.progression.uid

    @property
    def enabled(self) -> bool:
        return self._remote is not None and self.uid is not None

    # Sign-in ----------------------------------------------------------------

    async def set_user_id(self, uid: Optional[str]) -> None:
        """Entry point for the auth provider: a user id on sign-in, ``None`` on sign-out."""
        self._state.progression.uid = uid
        self._persist()
        if uid is None:
            logger.info("Signed out; remote sync paused")
            return
        if self._remote is None:
            return
        try:
            document = await self._remote.get_document(user_path(uid))
        except RemoteStoreError as exc:
            logger.warning("Could not read remote state for %s: %s", uid, exc)
            return
        if document is None:
            logger.info("No remote state for %s; pushing local snapshot", uid)
            await self._first_sync()
            return
        try:
            self.apply_remote(document)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed remote state for %s: %s", uid, exc)
        else:
            self._persist()
        await self._pull_history(uid)

    async def _first_sync(self) -> None:
        if not await self.sync_with_cloud():
            return
        for record in self._state.history.quiz:
            await self.push_record(QUIZ_COLLECTION, record)
        for record in self._state.history.translation:
            await self.push_record(TRANSLATION_COLLECTION, record)

    async def _pull_history(self, uid: str) -> None:
        assert self._remote is not None
        try:
            quiz_docs = await self._remote.query_collection(
                history_path(uid, QUIZ_COLLECTION), limit=self._fetch_limit
            )
            translation_docs = await self._remote.query_collection(
                history_path(uid, TRANSLATION_COLLECTION), limit=self._fetch_limit
            )
        except RemoteStoreError as exc:
            logger.warning("Could not fetch remote history for %s: %s", uid, exc)
            return
        self._history.merge_remote(
            quizzes=_parse_records(QuizHistory, quiz_docs),
            translations=_parse_records(TranslationHistory, translation_docs),
        )
        logger.info(
            "Merged remote history for %s: %s quizzes, %s translations",
            uid,
            len(quiz_docs),
            len(translation_docs),
        )

    def apply_remote(self, document: Mapping[str, object]) -> None:
        """Overlay remote fields onto local state.

        A remote ``lastLoginDate`` never replaces a local one that is already
        today, so a bonus paid this session cannot be granted again. Every
        field is parsed before anything is assigned, so a malformed document
        leaves local state untouched.
        """
        progression = self._state.progression
        new_progression: Optional[UserProgressionState] = None
        remote_user = document.get("userState")
        if isinstance(remote_user, Mapping):
            payload: Dict[str, object] = dict(progression.to_dict())
            payload.update(remote_user)
            if progression.last_login_date == today_string(self._clock()):
                payload["lastLoginDate"] = progression.last_login_date
            new_progression = UserProgressionState.from_dict(payload, uid=progression.uid)

        new_inventory: Optional[Dict[str, InventoryEntry]] = None
        inventory = document.get("inventory")
        if isinstance(inventory, list):
            entries = [InventoryEntry.from_dict(raw) for raw in inventory]
            new_inventory = {entry.item_id: entry for entry in entries if entry.quantity > 0}

        equipment = document.get("equipment")
        new_equipment = (
            {str(k): str(v) for k, v in equipment.items() if v} if isinstance(equipment, Mapping) else None
        )
        pity = document.get("gachaPity")
        new_pity = GachaPity.from_dict(pity) if isinstance(pity, Mapping) else None
        journey = document.get("journey")
        new_journey = Journey.from_dict(journey) if isinstance(journey, Mapping) else None

        if new_progression is not None:
            copy_into(progression, new_progression)
        if new_inventory is not None:
            self._state.inventory.clear()
            self._state.inventory.update(new_inventory)
        if new_equipment is not None:
            self._state.equipment.clear()
            self._state.equipment.update(new_equipment)
        if new_pity is not None:
            copy_into(self._state.pity, new_pity)
        if new_journey is not None:
            copy_into(self._state.journey, new_journey)

    # Pushes -----------------------------------------------------------------

    def build_user_document(self) -> Document:
        state = self._state
        return {
            "userState": state.progression.to_dict(),
            "inventory": [entry.to_dict() for entry in state.inventory.values()],
            "equipment": dict(state.equipment),
            "gachaPity": state.pity.to_dict(),
            "journey": state.journey.to_dict(),
            "updatedAt": format_timestamp(self._clock()),
        }

    async def sync_with_cloud(self) -> bool:
        if not self.enabled:
            return False
        assert self._remote is not None and self.uid is not None
        try:
            await self._remote.set_document(user_path(self.uid), self.build_user_document(), merge=True)
        except RemoteStoreError as exc:
            logger.warning("Cloud sync failed: %s", exc)
            return False
        logger.debug("Synced user document for %s", self.uid)
        return True

    async def push_record(self, collection: str, record: HistoryRecord) -> bool:
        if not self.enabled:
            return False
        assert self._remote is not None and self.uid is not None
        path = f"{history_path(self.uid, collection)}/{record.id}"
        try:
            await self._remote.set_document(path, record.to_dict(), merge=True)
        except RemoteStoreError as exc:
            logger.warning("Failed to upsert %s: %s", path, exc)
            return False
        return True

    async def delete_record(self, collection: str, record_id: str) -> bool:
        if not self.enabled:
            return False
        assert self._remote is not None and self.uid is not None
        path = f"{history_path(self.uid, collection)}/{record_id}"
        try:
            await self._remote.delete_document(path)
        except RemoteStoreError as exc:
            logger.warning("Failed to delete %s: %s", path, exc)
            return False
        return True

    # Fire-and-forget --------------------------------------------------------

    def _spawn(self, factory: Callable[[], Awaitable[bool]], label: str) -> Optional["asyncio.Task[bool]"]:
        if not self.enabled:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; %s left for the next sync", label)
            return None
        task = loop.create_task(factory())  # type: ignore[arg-type]
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def schedule_sync(self) -> Optional["asyncio.Task[bool]"]:
        """Queue a push of the user document; bursts of mutations share one task."""
        self._dirty = True
        if self._sync_task is not None and not self._sync_task.done():
            return self._sync_task
        self._sync_task = self._spawn(self._sync_until_clean, "user sync")
        return self._sync_task

    async def _sync_until_clean(self) -> bool:
        synced = False
        while self._dirty:
            self._dirty = False
            synced = await self.sync_with_cloud()
        return synced

    def schedule_record(self, collection: str, record: HistoryRecord) -> Optional["asyncio.Task[bool]"]:
        return self._spawn(lambda: self.push_record(collection, record), f"{collection} upsert")

    def schedule_delete(self, collection: str, record_id: str) -> Optional["asyncio.Task[bool]"]:
        return self._spawn(lambda: self.delete_record(collection, record_id), f"{collection} delete")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled remote write (used at shutdown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


__all__ = ["SyncCoordinator"]
