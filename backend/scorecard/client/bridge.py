"""Moves dirty scorecard entries from the store to the server.

State machine::

    idle -> pending -> in_flight -> success -> idle
                                 -> failure -> backoff -> pending

Store mutations (re)arm a debounce timer; when it fires the whole dirty set
goes out as one batch. Only one batch is ever in flight; edits made meanwhile
are picked up by a fresh debounce cycle once the flight resolves. Failures
keep the entries dirty and retry with exponential backoff until the retry
budget is spent, at which point the status becomes ``error`` and the bridge
waits for the next edit, reconnect or explicit flush.

Nothing here raises out of a timer callback. Problems are logged and
reflected in :attr:`PersistenceBridge.status`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .. import config
from .clock import Scheduler, TimerHandle
from .store import ReconcileResult, ReconcileSource, SaveStatus, ScoreEntry, ScoreEntryStore, ServerEntry
from .transport import ScoreBatch, ScoreTransport

logger = logging.getLogger(__name__)

SAVED_LOCALLY_MESSAGE = "Changes saved locally; will sync when the server is reachable"


class BridgeState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    BACKOFF = "backoff"


class FlushFailed(RuntimeError):
    """An explicit flush could not get every dirty entry to the server."""

    def __init__(self, message: str, dirty_count: int) -> None:
        super().__init__(message)
        self.dirty_count = dirty_count


StatusListener = Callable[[SaveStatus, Optional[str]], None]


class PersistenceBridge:
    def __init__(
        self,
        store: ScoreEntryStore,
        transport: ScoreTransport,
        scheduler: Scheduler,
        *,
        debounce: float = config.AUTOSAVE_DEBOUNCE_SECONDS,
        max_retries: int = config.AUTOSAVE_MAX_RETRIES,
        retry_delay: float = config.AUTOSAVE_RETRY_DELAY_SECONDS,
        request_timeout: float = config.AUTOSAVE_REQUEST_TIMEOUT_SECONDS,
        online: bool = True,
    ) -> None:
        self.store = store
        self.transport = transport
        self.scheduler = scheduler
        self.debounce = debounce
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout

        self.online = online
        self.state = BridgeState.IDLE
        self.retry_count = 0
        self.generation = 0
        self.last_error: Optional[str] = None

        self._timer: Optional[TimerHandle] = None
        self._flight: Optional[asyncio.Task] = None
        self._rearm = False
        self._status_listeners: List[StatusListener] = []
        self._reported: Tuple[SaveStatus, Optional[str]] = (store.save_status, store.save_error)
        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self._on_mutation)
        if not online:
            self.store.set_save_status(SaveStatus.OFFLINE)

    # ------------------------------------------------------------------
    # status
    # ------------------------------------------------------------------
    @property
    def status(self) -> SaveStatus:
        return self.store.save_status

    @property
    def in_flight(self) -> bool:
        return self._flight is not None and not self._flight.done()

    def on_status(self, listener: StatusListener) -> Callable[[], None]:
        self._status_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._status_listeners:
                self._status_listeners.remove(listener)

        return unsubscribe

    def _set_status(self, status: SaveStatus, error: Optional[str] = None) -> None:
        self.store.set_save_status(status, error)
        if (status, error) != self._reported:
            self._reported = (status, error)
            for listener in list(self._status_listeners):
                listener(status, error)

    # ------------------------------------------------------------------
    # timers
    # ------------------------------------------------------------------
    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _arm(self, delay: float) -> None:
        self._cancel_timer()
        self._timer = self.scheduler.call_later(delay, self._on_timer)

    def _on_mutation(self, entry: ScoreEntry) -> None:
        if self.in_flight:
            self._rearm = True
            return
        if self.retry_count >= self.max_retries:
            self.retry_count = 0
        if not self.online:
            self.state = BridgeState.PENDING
            self._set_status(SaveStatus.OFFLINE)
            return
        self.state = BridgeState.PENDING
        self._arm(self.debounce)

    def _on_timer(self) -> None:
        self._timer = None
        if not self.online:
            self.state = BridgeState.PENDING
            return
        if self.in_flight:
            self._rearm = True
            return
        if not self.store.initialized or not self.store.is_dirty:
            self.state = BridgeState.IDLE
            return
        self._start_flight()

    def _start_flight(self) -> asyncio.Task:
        self._flight = self.scheduler.spawn(self._send())
        return self._flight

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def _next_batch(self) -> Optional[ScoreBatch]:
        dirty = self.store.dirty_entries()
        if not dirty or self.store.round_id is None:
            return None
        self.generation += 1
        return ScoreBatch(
            round_id=self.store.round_id,
            generation=self.generation,
            entries={entry.entry_id: entry.current for entry in dirty},
        )

    async def _send(self) -> bool:
        batch = self._next_batch()
        if batch is None:
            self.state = BridgeState.IDLE
            return True

        self.state = BridgeState.IN_FLIGHT
        self._rearm = False
        self._set_status(SaveStatus.SAVING)
        logger.debug(
            "Sending batch %d for round %s (%d entries)",
            batch.generation,
            batch.round_id,
            len(batch.entries),
        )
        try:
            result = await asyncio.wait_for(
                self.transport.save_scores(batch), timeout=self.request_timeout
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._on_failure(batch, exc)
            return False

        if self.store.round_id != batch.round_id:
            # Round was closed while the write was out.
            self.state = BridgeState.IDLE
            return True

        self.retry_count = 0
        self.last_error = None
        self.store.mark_saved(result.saved_at, accepted=batch.entries)
        self._set_status(SaveStatus.SAVED if not self.store.is_dirty else SaveStatus.IDLE)
        self.state = BridgeState.IDLE

        if self.store.is_dirty:
            self.state = BridgeState.PENDING
            if self.online:
                self._arm(self.debounce)
        self._rearm = False
        return True

    def _on_failure(self, batch: ScoreBatch, exc: BaseException) -> None:
        if isinstance(exc, asyncio.TimeoutError):
            message = f"save timed out after {self.request_timeout:g}s"
        else:
            message = str(exc) or exc.__class__.__name__
        self.last_error = message
        self._rearm = False

        if not self.online:
            logger.info(
                "Batch %d for round %s failed while offline: %s",
                batch.generation,
                batch.round_id,
                message,
            )
            self.state = BridgeState.PENDING
            self._set_status(SaveStatus.OFFLINE)
            return

        if self.retry_count < self.max_retries:
            self.retry_count += 1
            delay = self.retry_delay * 2 ** (self.retry_count - 1)
            logger.warning(
                "Batch %d for round %s failed (%s); retry %d/%d in %.1fs",
                batch.generation,
                batch.round_id,
                message,
                self.retry_count,
                self.max_retries,
                delay,
            )
            self.state = BridgeState.BACKOFF
            self._set_status(SaveStatus.IDLE, message)
            self._arm(delay)
            return

        logger.error(
            "Giving up on round %s after %d retries: %s",
            batch.round_id,
            self.max_retries,
            message,
        )
        self._cancel_timer()
        self.state = BridgeState.IDLE
        self._set_status(SaveStatus.ERROR, SAVED_LOCALLY_MESSAGE)

    # ------------------------------------------------------------------
    # public operations
    # ------------------------------------------------------------------
    def set_online(self, online: bool) -> None:
        if online == self.online:
            return
        self.online = online
        if not online:
            self._cancel_timer()
            if self.store.is_dirty:
                self.state = BridgeState.PENDING
            self._set_status(SaveStatus.OFFLINE)
            logger.info("Went offline; holding %d unsaved entries", len(self.store.dirty_entries()))
            return

        self.retry_count = 0
        self._set_status(SaveStatus.IDLE)
        if not self.store.initialized or not self.store.is_dirty:
            return
        logger.info("Back online; syncing %d unsaved entries", len(self.store.dirty_entries()))
        self._cancel_timer()
        if self.in_flight:
            self._rearm = True
        else:
            self._start_flight()

    async def flush(self, raise_on_failure: bool = False) -> bool:
        """Write everything dirty now.

        Pending timers are cancelled and any in-flight write is awaited first.
        Returns ``True`` when nothing dirty remains.
        """

        self._cancel_timer()
        if self._flight is not None and not self._flight.done():
            await self._flight

        if self.store.initialized and self.store.is_dirty:
            if not self.online:
                self._set_status(SaveStatus.OFFLINE)
            else:
                self.retry_count = 0
                self._flight = self.scheduler.spawn(self._send())
                await self._flight
                # Nothing else should run automatically after an explicit flush.
                self._cancel_timer()
                if self.state is BridgeState.BACKOFF:
                    self.state = BridgeState.PENDING

        clean = not (self.store.initialized and self.store.is_dirty)
        if not clean and raise_on_failure:
            dirty_count = len(self.store.dirty_entries())
            reason = "offline" if not self.online else (self.last_error or "save failed")
            raise FlushFailed(
                f"{dirty_count} score entries could not be saved: {reason}", dirty_count
            )
        return clean

    def resume(
        self,
        round_id: str,
        entries: Iterable[ServerEntry],
        participant_order: Optional[Sequence[str]] = None,
        server_modified_at: Optional[datetime] = None,
    ) -> ReconcileResult:
        """Load a round into the store and push any restored local edits."""

        self._cancel_timer()
        self.retry_count = 0
        self.state = BridgeState.IDLE
        result = self.store.initialize(
            round_id, entries, participant_order, server_modified_at
        )
        if result.source is ReconcileSource.LOCAL and self.store.is_dirty:
            logger.info(
                "Resuming round %s with %d unsaved local entries", round_id, result.dirty_count
            )
            self.state = BridgeState.PENDING
            if self.online:
                self._arm(self.debounce)
        if not self.online:
            self._set_status(SaveStatus.OFFLINE)
        return result

    def close(self) -> None:
        self._cancel_timer()
        self.state = BridgeState.IDLE
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
