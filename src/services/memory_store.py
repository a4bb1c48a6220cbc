"""
Memory Store Service

Remembers where each cassette was left off and brings it back on launch.

Checkpoints are taken at a fixed wall-clock interval while playing (not on
every engine tick) and once immediately on pause. Nothing is recorded while
power is off or when no cassette is active.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional
import logging
import time

from core.event_bus import EventBus, EventType
from models.cassette import Cassette
from models.session import PlaybackSession, PlayerPhase
from services.cassette_library import CassetteLibrary

if TYPE_CHECKING:
    from services.playback_controller import PlaybackController
    from services.queue_manager import QueueManager

logger = logging.getLogger(__name__)

# Only a decoded track reports a real position
_CHECKPOINT_PHASES = (PlayerPhase.READY_PAUSED, PlayerPhase.READY_PLAYING)


class MemoryStore:
    """
    Playback memory per cassette

    Example:
        memory = MemoryStore(library, controller, queue, event_bus)
        memory.attach()
        memory.resume_on_start()
    """

    def __init__(
        self,
        library: CassetteLibrary,
        controller: "PlaybackController",
        queue: "QueueManager",
        event_bus: EventBus,
        sync_interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._library = library
        self._controller = controller
        self._queue = queue
        self._event_bus = event_bus
        self._interval = float(sync_interval_seconds)
        self._clock = clock

        self._last_sync: Optional[float] = None
        self._sub_ids: List[str] = []

    def attach(self) -> None:
        """Start following playback events"""
        if self._sub_ids:
            return
        self._sub_ids.append(self._event_bus.subscribe(EventType.TRACK_STARTED, self._on_track_started))
        self._sub_ids.append(self._event_bus.subscribe(EventType.POSITION_CHANGED, self._on_position_changed))
        self._sub_ids.append(self._event_bus.subscribe(EventType.TRACK_PAUSED, self._on_track_paused))

    def shutdown(self) -> None:
        for sub_id in self._sub_ids:
            self._event_bus.unsubscribe(sub_id)
        self._sub_ids.clear()

    # ===== Memory =====

    def update_playback_memory(self, cassette_id: str, track_id: str, position: float) -> bool:
        """Store the resume bookmark on a cassette, stamped now"""
        return self._library.record_playback(cassette_id, track_id, position, datetime.now())

    def get_last_played_cassette(self) -> Optional[Cassette]:
        """
        Most recently played cassette

        Falls back to the first cassette in storage order when none has
        been played, None when the library is empty.
        """
        cassettes = self._library.list_cassettes()
        if not cassettes:
            return None

        played = [c for c in cassettes if c.last_played_at is not None]
        if played:
            return max(played, key=lambda c: c.last_played_at)
        return cassettes[0]

    @property
    def active_cassette(self) -> Optional[Cassette]:
        return self._library.active_cassette

    def set_active_cassette(self, cassette_id: Optional[str]) -> None:
        self._library.set_active_cassette(cassette_id)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled writes"""
        self._library.flush(timeout)

    # ===== Sync policy =====

    def checkpoint(self, session: Optional[PlaybackSession] = None) -> bool:
        """Record the current track and position on the active cassette"""
        session = session or self._controller.session
        cassette_id = self._library.active_cassette_id

        if not session.power_on or cassette_id is None or session.current_track is None:
            return False
        if session.phase not in _CHECKPOINT_PHASES:
            logger.debug("Track not ready (%s), keeping the stored bookmark", session.phase.value)
            return False

        cassette = self._library.get_cassette(cassette_id)
        if cassette is None or cassette.find_track(session.current_track.id) is None:
            logger.debug("Current track is not on the active cassette, skipping checkpoint")
            return False

        self._last_sync = self._clock()
        return self.update_playback_memory(cassette_id, session.current_track.id, session.current_time)

    def _on_track_started(self, session: PlaybackSession) -> None:
        self._last_sync = self._clock()

    def _on_position_changed(self, session: PlaybackSession) -> None:
        if not session.is_playing:
            return

        now = self._clock()
        if self._last_sync is None:
            self._last_sync = now
            return
        if now - self._last_sync >= self._interval:
            self._last_sync = now
            if not self.checkpoint(session) and self._library.is_dirty:
                self._library.persist()

    def _on_track_paused(self, session: PlaybackSession) -> None:
        self.checkpoint(session)

    # ===== Resume =====

    def resume_on_start(self) -> bool:
        """
        Bring back the last played cassette

        Does nothing when a track is already bound or the queue holds
        something other than that cassette.

        Returns:
            bool: Whether a track was loaded
        """
        if self._controller.current_track is not None:
            return False

        cassette = self.get_last_played_cassette()
        if cassette is None or not cassette.tracks:
            return False

        if len(self._queue) > 0 and self._library.active_cassette_id != cassette.id:
            return False

        if len(self._queue) == 0:
            self._queue.load_playlist(cassette.tracks)
        self._library.set_active_cassette(cassette.id)

        if cassette.has_bookmark:
            index = self._queue.index_of(cassette.last_played_track_id)
            if index is not None:
                self._queue.set_current_index(index)
                logger.info(
                    "Resuming %s at %.1fs of %s",
                    cassette.name, cassette.last_position, cassette.last_played_track_id,
                )
                self._controller.load_track(
                    self._queue.tracks[index],
                    start_position=cassette.last_position,
                )
                return True

        track = self._queue.current_track
        if track is None:
            return False
        logger.info("Resuming %s from the start", cassette.name)
        self._controller.load_track(track, start_position=0.0)
        return True
