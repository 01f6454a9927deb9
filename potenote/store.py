"""The constructed state container that wires every component together."""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Optional

from .capture import CaptureEngine
from .catalog import ItemCatalog, load_catalog
from .config import Settings, load_settings
from .gacha import GachaEngine
from .history import HistoryRecord, HistoryStore
from .inventory import Inventory
from .journey import JourneyTracker
from .ledger import LoginBonus, ResourceLedger
from .models import GameState
from .remote import DocumentStore, HttpDocumentStore
from .state import LocalSnapshotStore
from .sync import SyncCoordinator
from .utils import utc_now

logger = logging.getLogger("potenote.store")


class ProgressionStore:
    """Owns the :class:`GameState` tree and hands each component its slice.

    Every mutation is written to the local snapshot before the matching remote
    write is scheduled. Word-capture state stays local; progression, inventory
    and journey changes are mirrored to the user document; history records are
    upserted individually.
    """

    def __init__(
        self,
        *,
        snapshots: LocalSnapshotStore,
        catalog: Optional[ItemCatalog] = None,
        remote: Optional[DocumentStore] = None,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
        state: Optional[GameState] = None,
    ) -> None:
        self.settings = settings or Settings()
        self._snapshots = snapshots
        self.state = state if state is not None else snapshots.load()
        self.catalog = catalog or load_catalog(self.settings.catalog_path)
        rng = rng or random.Random()

        self.ledger = ResourceLedger(
            self.state.progression,
            limits=self.settings.limits,
            rewards=self.settings.rewards,
            clock=clock,
            on_change=self.commit,
        )
        self.inventory = Inventory(
            self.state.inventory,
            self.state.equipment,
            self.catalog,
            max_stack=self.settings.gacha.max_stack,
            on_change=self.commit,
        )
        self.gacha = GachaEngine(
            ledger=self.ledger,
            inventory=self.inventory,
            pity=self.state.pity,
            catalog=self.catalog,
            settings=self.settings.gacha,
            rng=rng,
            on_change=self.commit,
        )
        self.capture = CaptureEngine(
            self.state.word_scans,
            self.state.word_dex_order,
            settings=self.settings.capture,
            ledger=self.ledger,
            rng=rng,
            on_change=self.save_local,
        )
        self.journey = JourneyTracker(
            self.state.journey,
            self.ledger,
            rewards=self.settings.rewards,
            on_change=self.commit,
        )
        self.history = HistoryStore(
            self.state.history,
            translation_max=self.settings.limits.translation_history_max,
            on_change=self.save_local,
            on_record=self._record_saved,
            on_delete=self._record_deleted,
        )
        self.sync = SyncCoordinator(
            self.state,
            remote,
            history=self.history,
            persist=self.save_local,
            clock=clock,
            fetch_limit=self.settings.history_fetch_limit,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: object) -> "ProgressionStore":
        """Build a store with the snapshot path and remote store named by ``settings``."""
        remote: Optional[DocumentStore] = None
        if settings.remote_url:
            remote = HttpDocumentStore(
                settings.remote_url,
                token=settings.remote_token,
                timeout=settings.remote_timeout,
            )
        else:
            logger.info("POTENOTE_REMOTE_URL not set; running local-only.")
        return cls(
            snapshots=LocalSnapshotStore(settings.snapshot_path),
            remote=remote,
            settings=settings,
            **kwargs,  # type: ignore[arg-type]
        )

    @classmethod
    def from_env(cls, **kwargs: object) -> "ProgressionStore":
        return cls.from_settings(load_settings(), **kwargs)

    # Persistence hooks ------------------------------------------------------

    def save_local(self) -> None:
        self._snapshots.save(self.state)

    def commit(self) -> None:
        self.save_local()
        self.sync.schedule_sync()

    def _record_saved(self, collection: str, record: HistoryRecord) -> None:
        self.sync.schedule_record(collection, record)

    def _record_deleted(self, collection: str, record_id: str) -> None:
        self.sync.schedule_delete(collection, record_id)

    # Session ----------------------------------------------------------------

    async def set_user_id(self, uid: Optional[str]) -> None:
        await self.sync.set_user_id(uid)

    def login_check(self) -> LoginBonus:
        self.journey.ensure_starting_island()
        self.ledger.check_vip_status()
        return self.ledger.login_check()

    def reset(self) -> None:
        """Restore the initial game state, signed out, and persist it locally."""
        self.state.replace_with(GameState())
        self.save_local()
        logger.info("Game state reset")

    async def close(self) -> None:
        await self.sync.drain()


__all__ = ["ProgressionStore"]
