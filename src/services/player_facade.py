# -*- coding: utf-8 -*-
"""
Player Facade Module

Provides a unified interface for the presentation layer to the playback
services, narrowing the dependency surface.

Design Principles:
- Presentation code depends only on this Facade, not directly on services.
- State is read through snapshot(); changes arrive as EventBus events.
- Commands never raise; playback errors show up in snapshot().session.last_error.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from models.session import PlayerSnapshot, RepeatMode

if TYPE_CHECKING:
    from enum import Enum
    from app.protocols import IConfigService, IEventBus
    from models.cassette import Cassette
    from models.track import Track
    from services.cassette_library import CassetteLibrary
    from services.memory_store import MemoryStore
    from services.playback_controller import PlaybackController
    from services.queue_manager import QueueManager
    from services.sound_effect_player import SoundEffectPlayer
    from services.track_catalog import TrackCatalog

logger = logging.getLogger(__name__)


class PlayerFacade:
    """Player Facade

    Usage Example:
        facade = container.facade
        facade.subscribe(EventType.TRACK_STARTED, on_started)

        facade.insert_cassette(cassette.id)
        facade.fast_forward()
        print(facade.snapshot().session.formatted_time)
    """

    def __init__(
        self,
        controller: "PlaybackController",
        queue: "QueueManager",
        library: "CassetteLibrary",
        memory: "MemoryStore",
        sfx: "SoundEffectPlayer",
        config: "IConfigService",
        event_bus: "IEventBus",
        catalog: Optional["TrackCatalog"] = None,
    ):
        self._controller = controller
        self._queue = queue
        self._library = library
        self._memory = memory
        self._sfx = sfx
        self._config = config
        self._event_bus = event_bus
        self._catalog = catalog

    # =========================================================================
    # State
    # =========================================================================

    def snapshot(self) -> PlayerSnapshot:
        """Read-only view of the session, queue and active cassette"""
        return PlayerSnapshot(
            session=self._controller.session,
            queue=self._queue.state,
            active_cassette_id=self._library.active_cassette_id,
            next_track=self._queue.peek_next(),
            previous_track=self._queue.peek_previous(),
        )

    @property
    def is_playing(self) -> bool:
        return self._controller.is_playing

    @property
    def current_track(self) -> Optional["Track"]:
        return self._controller.current_track

    # =========================================================================
    # Playback Control
    # =========================================================================

    def load_track(
        self,
        track: "Track",
        start_position: Optional[float] = None,
        autoplay: bool = False,
    ) -> None:
        self._controller.load_track(track, start_position, autoplay)

    def play(self) -> None:
        """Play; with nothing bound, start the queue's current track"""
        if self._controller.current_track is None:
            track = self._queue.current_track
            if track is not None and self._controller.power_on:
                self._controller.load_track(track, autoplay=True)
            return
        self._controller.play()

    def pause(self) -> None:
        self._controller.pause()

    def toggle_play_pause(self) -> None:
        if self._controller.current_track is None:
            self.play()
            return
        self._controller.toggle_play_pause()

    def seek_to(self, seconds: float) -> None:
        self._controller.seek_to(seconds)

    def rewind(self, seconds: Optional[float] = None) -> None:
        self._controller.rewind(seconds)

    def fast_forward(self, seconds: Optional[float] = None) -> None:
        self._controller.fast_forward(seconds)

    def restart_track(self) -> None:
        self._controller.restart_track()

    def retry(self) -> None:
        """Reload the current track after an error"""
        self._controller.retry()

    def set_power_state(self, on: bool) -> None:
        self._controller.set_power_state(on)

    def toggle_power(self) -> None:
        self._controller.set_power_state(not self._controller.power_on)

    def set_volume(self, level: float) -> None:
        self._controller.set_volume(level)

    def set_playback_rate(self, rate: float) -> None:
        self._controller.set_playback_rate(rate)

    # =========================================================================
    # Queue
    # =========================================================================

    def add_to_playlist(self, track: "Track") -> None:
        self._queue.add_to_playlist(track)

    def remove_from_playlist(self, track_id: str) -> None:
        self._queue.remove_from_playlist(track_id)

    def clear_playlist(self) -> None:
        self._queue.clear_playlist()

    def enqueue_next(self, track: "Track") -> None:
        self._queue.enqueue_next(track)

    def load_playlist(self, tracks: List["Track"]) -> None:
        self._queue.load_playlist(tracks)

    def jump_to_track(self, index: int) -> None:
        self._queue.jump_to_track(index)

    def play_next(self) -> None:
        self._queue.play_next()

    def play_previous(self) -> None:
        self._queue.play_previous()

    def toggle_shuffle(self) -> None:
        self._queue.toggle_shuffle()

    def shuffle_playlist(self) -> None:
        self._queue.shuffle_playlist()

    def set_repeat_mode(self, mode: RepeatMode) -> None:
        self._queue.set_repeat_mode(mode)

    def cycle_repeat_mode(self) -> RepeatMode:
        return self._queue.cycle_repeat_mode()

    # =========================================================================
    # Cassettes
    # =========================================================================

    def list_cassettes(self) -> List["Cassette"]:
        return self._library.list_cassettes()

    def get_cassette(self, cassette_id: str) -> Optional["Cassette"]:
        return self._library.get_cassette(cassette_id)

    def create_cassette(
        self,
        name: str,
        tracks: List["Track"],
        accent_color: Optional[str] = None,
    ) -> "Cassette":
        return self._library.add_cassette(name, tracks, accent_color)

    def rename_cassette(self, cassette_id: str, name: str) -> Optional["Cassette"]:
        return self._library.rename_cassette(cassette_id, name)

    def update_cassette(self, cassette_id: str, **changes: Any) -> Optional["Cassette"]:
        return self._library.update_cassette(cassette_id, **changes)

    def delete_cassette(self, cassette_id: str) -> bool:
        return self._library.remove_cassette(cassette_id)

    def insert_cassette(self, cassette_id: str) -> bool:
        """
        Put a cassette in the deck and start playing it

        Resumes from the cassette's bookmark when it has one.

        Returns:
            bool: False if the cassette is unknown or empty
        """
        cassette = self._library.get_cassette(cassette_id)
        if cassette is None or not cassette.tracks:
            logger.warning("Cannot insert cassette %s", cassette_id)
            return False

        self._library.load_cassette(cassette_id)
        self._sfx.play_effect("insert", delay_ms=int(self._config.get("sfx.insert_delay_ms", 250)))
        self._queue.load_playlist(cassette.tracks)

        start_position = None
        if cassette.has_bookmark:
            index = self._queue.index_of(cassette.last_played_track_id)
            if index is not None and self._queue.set_current_index(index):
                start_position = cassette.last_position

        track = self._queue.current_track
        logger.info("Inserted cassette %s", cassette.name)
        self._controller.load_track(track, start_position=start_position, autoplay=True)
        return True

    def eject_cassette(self) -> None:
        """Save the position, stop playback and take the cassette out"""
        if self._library.active_cassette_id is None:
            return

        self._memory.checkpoint()
        self._controller.pause()
        self._sfx.play_effect("eject", delay_ms=int(self._config.get("sfx.eject_delay_ms", 200)))
        self._library.set_active_cassette(None)

    def get_last_played_cassette(self) -> Optional["Cassette"]:
        return self._memory.get_last_played_cassette()

    # =========================================================================
    # Catalog
    # =========================================================================

    def get_available_tracks(self) -> List["Track"]:
        if self._catalog is None:
            return []
        return self._catalog.get_available_tracks()

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_config(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def set_config(self, key: str, value: Any) -> None:
        self._config.set(key, value)

    def save_config(self) -> bool:
        return self._config.save()

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(
        self,
        event_type: "Enum",
        callback: Callable[[Any], None]
    ) -> str:
        """Subscribe to an event, returning the subscription ID"""
        return self._event_bus.subscribe(event_type, callback)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._event_bus.unsubscribe(subscription_id)
