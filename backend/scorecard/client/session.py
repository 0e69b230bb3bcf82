"""One open round on the device: store, bridge and transport wired together."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .. import config
from .bridge import PersistenceBridge
from .backup import JsonFileBackup, LocalBackup
from .clock import AsyncioScheduler, Scheduler
from .store import ReconcileResult, ScoreEntryStore, StoreNotInitialized
from .transport import ScoreTransport

logger = logging.getLogger(__name__)


class RoundSession:
    def __init__(
        self,
        transport: ScoreTransport,
        *,
        backup: Optional[LocalBackup] = None,
        scheduler: Optional[Scheduler] = None,
        store: Optional[ScoreEntryStore] = None,
        **bridge_options: Any,
    ) -> None:
        self.transport = transport
        if store is None:
            if backup is None:
                backup = JsonFileBackup(config.SCORECARD_BACKUP_DIR)
            store = ScoreEntryStore(backup)
        self.store = store
        self.bridge = PersistenceBridge(
            self.store, transport, scheduler or AsyncioScheduler(), **bridge_options
        )
        self.closed = False

    @property
    def round_id(self) -> Optional[str]:
        return self.store.round_id

    async def open(self, round_id: str) -> ReconcileResult:
        """Fetch the server scorecard and reconcile it with any local backup."""

        scorecard = await self.transport.fetch_scorecard(round_id)
        result = self.bridge.resume(
            scorecard.round_id,
            scorecard.entries,
            scorecard.participant_order,
            scorecard.updated_at,
        )
        logger.info("Opened round %s (state from %s)", round_id, result.source.value)
        return result

    async def complete(self, nine: Optional[str] = None) -> Dict[str, Any]:
        """Flush every pending stroke, then ask the server to finish the round.

        Raises ``FlushFailed`` without contacting the completion endpoint when
        anything is still unsaved; server errors propagate as
        ``TransportError`` and leave the session open for another attempt.
        """

        round_id = self.store.round_id
        if round_id is None:
            raise StoreNotInitialized()
        await self.bridge.flush(raise_on_failure=True)
        result = await self.transport.complete_round(round_id, nine)
        self.close(discard=True)
        return result

    async def save_and_exit(self) -> bool:
        """Try one last save and leave the round.

        The local backup is only dropped when the save went through, so
        unsent strokes survive until the round is opened again.
        """

        saved = await self.bridge.flush()
        self.close(discard=saved)
        return saved

    def close(self, *, discard: bool = False) -> None:
        if self.closed:
            return
        self.bridge.close()
        if discard:
            self.store.reset()
        self.closed = True
