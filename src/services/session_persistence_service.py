"""
Session Persistence Service

Saves the playback session (queue, shuffle/repeat, power, volume, rate and
the active cassette) whenever one of them changes, and puts it back on
startup. Playing state and position are never saved: a restored session
always starts Idle at 0.

Writes run on a single background writer so event handlers never wait on
the database. A failed write leaves the service dirty and is retried on
the next position update.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, List, Optional
import json
import logging
import threading

from core.event_bus import EventBus, EventType
from core.ports.storage import IKeyValueStore
from models.errors import PersistenceError
from models.session import QueueState, SessionSnapshot

if TYPE_CHECKING:
    from services.cassette_library import CassetteLibrary
    from services.playback_controller import PlaybackController
    from services.queue_manager import QueueManager

logger = logging.getLogger(__name__)


class SessionPersistenceService:
    SESSION_KEY = "playback.session"

    _WATCHED_EVENTS = (
        EventType.QUEUE_CHANGED,
        EventType.POWER_CHANGED,
        EventType.VOLUME_CHANGED,
        EventType.RATE_CHANGED,
        EventType.ACTIVE_CASSETTE_CHANGED,
    )

    def __init__(
        self,
        store: IKeyValueStore,
        event_bus: EventBus,
        enabled: bool = True,
    ):
        self._store = store
        self._event_bus = event_bus
        self._enabled = enabled

        self._queue: Optional["QueueManager"] = None
        self._controller: Optional["PlaybackController"] = None
        self._library: Optional["CassetteLibrary"] = None
        self._sub_ids: List[str] = []
        self._suppress = False

        self._lock = threading.Lock()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="SessionWriter")
        self._pending: Optional[Future] = None
        self._dirty = False
        self._generation = 0
        self._closed = False

    def attach(
        self,
        queue: "QueueManager",
        controller: "PlaybackController",
        library: "CassetteLibrary",
    ) -> None:
        """Bind the session owners and start saving on changes"""
        self._queue = queue
        self._controller = controller
        self._library = library
        if not self._enabled or self._sub_ids:
            return

        for event_type in self._WATCHED_EVENTS:
            self._sub_ids.append(self._event_bus.subscribe(event_type, self._on_session_changed))
        self._sub_ids.append(
            self._event_bus.subscribe(EventType.POSITION_CHANGED, self._on_position_changed)
        )

    def shutdown(self) -> None:
        """Stop following changes and wait for the last write"""
        for sub_id in self._sub_ids:
            self._event_bus.unsubscribe(sub_id)
        self._sub_ids.clear()
        self._queue = None
        self._controller = None
        self._library = None

        with self._lock:
            self._closed = True
        self._writer.shutdown(wait=True)

    # ===== Save / load =====

    def save_session(self, snapshot: SessionSnapshot) -> bool:
        """Write a snapshot and wait for the result"""
        if not self._enabled:
            return False
        future = self._schedule(snapshot)
        if future is None:
            return False
        return future.result()

    def _schedule(self, snapshot: SessionSnapshot) -> Optional[Future]:
        raw = json.dumps(snapshot.to_dict(), ensure_ascii=False).encode("utf-8")
        with self._lock:
            if self._closed:
                logger.debug("Session writer closed, dropping save")
                return None
            self._dirty = True
            self._generation += 1
            self._pending = self._writer.submit(self._write, raw, self._generation)
            return self._pending

    def _write(self, raw: bytes, generation: int) -> bool:
        try:
            self._store.set(self.SESSION_KEY, raw)
        except PersistenceError as e:
            logger.warning("Session not saved, will retry on next sync: %s", e)
            return False
        with self._lock:
            if generation == self._generation:
                self._dirty = False
        return True

    @property
    def is_dirty(self) -> bool:
        """Whether the last scheduled write has not been confirmed"""
        with self._lock:
            return self._dirty

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for the scheduled write to finish"""
        with self._lock:
            pending = self._pending
        if pending is not None:
            pending.result(timeout=timeout)

    def load_session(self) -> Optional[SessionSnapshot]:
        try:
            raw = self._store.get(self.SESSION_KEY)
        except PersistenceError as e:
            logger.warning("Failed to read session: %s", e)
            return None
        if not raw:
            return None

        try:
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict):
                return None
            return SessionSnapshot.from_dict(data)
        except (ValueError, TypeError, KeyError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable session: %s", e)
            return None

    def capture(self) -> Optional[SessionSnapshot]:
        """Snapshot of the bound owners"""
        if self._queue is None or self._controller is None:
            return None

        queue_state = self._queue.state
        session = self._controller.session
        return SessionSnapshot(
            tracks=list(queue_state.tracks),
            current_index=queue_state.current_index,
            shuffle_enabled=queue_state.shuffle_enabled,
            repeat_mode=queue_state.repeat_mode,
            power_on=session.power_on,
            volume=session.volume,
            rate=session.rate,
            active_cassette_id=self._library.active_cassette_id if self._library else None,
        )

    def persist_now(self) -> bool:
        """Save the current session and wait for it"""
        snapshot = self.capture()
        if snapshot is None:
            return False
        return self.save_session(snapshot)

    def _persist_later(self) -> None:
        snapshot = self.capture()
        if snapshot is not None:
            self._schedule(snapshot)

    def restore_session(
        self,
        queue: "QueueManager",
        controller: "PlaybackController",
        library: "CassetteLibrary",
    ) -> bool:
        """Reapply the saved session without saving it back"""
        if not self._enabled:
            return False

        snapshot = self.load_session()
        if snapshot is None:
            return False

        self._suppress = True
        try:
            queue.restore(QueueState(
                tracks=tuple(snapshot.tracks),
                current_index=snapshot.current_index,
                shuffle_enabled=snapshot.shuffle_enabled,
                repeat_mode=snapshot.repeat_mode,
            ))
            controller.set_volume(snapshot.volume)
            controller.set_playback_rate(snapshot.rate)
            controller.set_power_state(snapshot.power_on)
            if snapshot.active_cassette_id and library.get_cassette(snapshot.active_cassette_id):
                library.set_active_cassette(snapshot.active_cassette_id)
        finally:
            self._suppress = False

        logger.info("Restored session with %s queued tracks", len(snapshot.tracks))
        return True

    def _on_session_changed(self, _data: Any) -> None:
        if self._suppress:
            return
        self._persist_later()

    def _on_position_changed(self, _data: Any) -> None:
        with self._lock:
            retry = self._dirty and (self._pending is None or self._pending.done())
        if retry:
            logger.debug("Retrying unsaved session")
            self._persist_later()
