"""
Playback Controller Module

Owns the single decoded playback resource and the PlaybackSession that
mirrors it. It is the only caller of the engine's load/play/pause/seek.

Commands never raise: load and play failures are recorded in
session.last_error and published as ERROR_OCCURRED.
"""

from dataclasses import replace
from typing import TYPE_CHECKING, Optional
import logging
import threading

from core.audio_engine import EngineHandle, EngineStatus
from core.event_bus import EventBus, EventType
from core.ports.audio import IAudioEngine
from models.errors import ErrorInfo, LoadError, PlayError, PlaybackError
from models.session import MAX_RATE, MIN_RATE, PlaybackSession, PlayerPhase, RepeatMode
from models.track import Track

if TYPE_CHECKING:
    from app.protocols import IQueueNavigator

logger = logging.getLogger(__name__)

_READY_PHASES = (PlayerPhase.READY_PAUSED, PlayerPhase.READY_PLAYING)


class PlaybackController:
    """
    Playback Controller

    Example:
        controller = PlaybackController(engine, event_bus)
        controller.load_track(track, autoplay=True)

        # Engine statuses arrive through engine.poll()
        controller.fast_forward()
        controller.pause()
    """

    def __init__(
        self,
        engine: IAudioEngine,
        event_bus: EventBus,
        seek_step_seconds: float = 10.0,
        default_volume: float = 1.0,
        default_rate: float = 1.0,
    ):
        self._engine = engine
        self._event_bus = event_bus
        self._seek_step = float(seek_step_seconds)

        self._lock = threading.RLock()
        self._session = PlaybackSession(
            volume=min(1.0, max(0.0, default_volume)),
            rate=min(MAX_RATE, max(MIN_RATE, default_rate)),
        )
        self._handle: Optional[EngineHandle] = None
        self._pending_seek: Optional[float] = None
        self._play_intent = False
        # Handle whose end was already handled; cleared once it plays again
        self._finished_handle: Optional[EngineHandle] = None
        self._queue: Optional["IQueueNavigator"] = None

        self._engine.set_on_status(self._on_status)

    def attach_queue(self, queue: Optional["IQueueNavigator"]) -> None:
        """Queue consulted for the end-of-track advance policy"""
        self._queue = queue

    # ===== State =====

    @property
    def session(self) -> PlaybackSession:
        """Copy of the current session"""
        with self._lock:
            return replace(self._session)

    @property
    def current_track(self) -> Optional[Track]:
        with self._lock:
            return self._session.current_track

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self._session.is_playing

    @property
    def phase(self) -> PlayerPhase:
        with self._lock:
            return self._session.phase

    @property
    def power_on(self) -> bool:
        with self._lock:
            return self._session.power_on

    @property
    def has_live_resource(self) -> bool:
        with self._lock:
            return self._handle is not None

    @property
    def engine_name(self) -> str:
        return self._engine.get_engine_name()

    def _accepts_commands(self) -> bool:
        return self._session.power_on and self._session.current_track is not None

    # ===== Loading =====

    def load_track(
        self,
        track: Track,
        start_position: Optional[float] = None,
        autoplay: bool = False,
    ) -> None:
        """
        Bind a track and start decoding it

        Args:
            track: Track to bind
            start_position: Seek applied once the engine reports loaded
            autoplay: Start playback as soon as the track is loaded
        """
        if track is None:
            return

        with self._lock:
            current = self._session.current_track
            if (
                current is not None
                and current.id == track.id
                and self._handle is not None
                and self._session.phase in (PlayerPhase.LOADING,) + _READY_PHASES
            ):
                logger.debug("Track already bound, skipping reload: %s", track.id)
                if start_position is not None:
                    self._seek(start_position)
                if autoplay:
                    self.play()
                return

            self._release_handle()

            self._session.current_track = track
            self._session.phase = PlayerPhase.LOADING
            self._session.is_playing = False
            self._session.current_time = 0.0
            self._session.duration = track.duration_hint or 0.0
            self._pending_seek = max(0.0, start_position) if start_position is not None else None
            self._play_intent = autoplay

            try:
                self._handle = self._engine.load(track.audio_source)
            except Exception as e:
                self._fail(LoadError(f"Failed to load {track.audio_source}: {e}"))
                return

            logger.info("Loading track: %s", track.display_name)

        self._event_bus.publish_sync(EventType.TRACK_LOADING, track)

    def retry(self) -> None:
        """Load the current track again after an error"""
        with self._lock:
            track = self._session.current_track
        if track is not None:
            self.load_track(track, autoplay=True)

    def unload(self) -> None:
        """Release the bound resource and return to Idle"""
        with self._lock:
            self._release_handle()
            self._session.current_track = None
            self._session.phase = PlayerPhase.IDLE
            self._session.is_playing = False
            self._session.current_time = 0.0
            self._session.duration = 0.0
            self._session.last_error = None
            self._pending_seek = None
            self._play_intent = False

    def _release_handle(self) -> None:
        handle, self._handle = self._handle, None
        self._finished_handle = None
        if handle is None:
            return
        try:
            self._engine.release(handle)
        except Exception as e:
            logger.warning("Failed to release handle %s: %s", handle.id, e)

    # ===== Transport =====

    def play(self) -> None:
        with self._lock:
            if not self._accepts_commands():
                return

            phase = self._session.phase
            if phase == PlayerPhase.LOADING:
                self._play_intent = True
                return
            if phase != PlayerPhase.READY_PAUSED:
                return

            # A finished track starts over
            duration = self._session.duration
            if duration > 0 and self._session.current_time >= duration:
                self._seek(0.0)

            self._start_playback()

    def pause(self) -> None:
        """Pause playback; safe in any state"""
        with self._lock:
            self._play_intent = False
            if self._handle is None or not self._session.is_playing:
                return
            self._pause_engine()
            session = replace(self._session)

        self._event_bus.publish_sync(EventType.TRACK_PAUSED, session)

    def toggle_play_pause(self) -> None:
        with self._lock:
            if not self._accepts_commands():
                return
            playing = self._session.is_playing or (
                self._session.phase == PlayerPhase.LOADING and self._play_intent
            )
        if playing:
            self.pause()
        else:
            self.play()

    def _start_playback(self) -> None:
        try:
            self._engine.play(self._handle)
        except Exception as e:
            self._fail(PlayError(f"Engine rejected play: {e}"))
            return

        self._session.is_playing = True
        self._session.phase = PlayerPhase.READY_PLAYING
        self._event_bus.publish_sync(EventType.TRACK_STARTED, replace(self._session))

    def _pause_engine(self) -> None:
        try:
            self._engine.pause(self._handle)
        except Exception as e:
            logger.warning("Engine pause failed: %s", e)
        self._session.is_playing = False
        self._session.phase = PlayerPhase.READY_PAUSED

    # ===== Seeking =====

    def seek_to(self, seconds: float) -> None:
        """Seek to a position, clamped into [0, duration]"""
        with self._lock:
            if not self._accepts_commands():
                return
            self._seek(seconds)

    def _seek(self, seconds: float) -> None:
        phase = self._session.phase
        if phase == PlayerPhase.LOADING:
            self._pending_seek = max(0.0, seconds)
            return
        if phase not in _READY_PHASES:
            return

        target = self._clamp_position(seconds)
        try:
            self._engine.seek(self._handle, target)
        except Exception as e:
            self._fail(PlayError(f"Engine rejected seek: {e}"))
            return

        self._session.current_time = target
        self._event_bus.publish_sync(EventType.POSITION_CHANGED, replace(self._session))

    def _clamp_position(self, seconds: float) -> float:
        seconds = max(0.0, seconds)
        duration = self._session.duration
        if duration > 0:
            seconds = min(seconds, duration)
        return seconds

    def rewind(self, seconds: Optional[float] = None) -> None:
        step = self._seek_step if seconds is None else seconds
        with self._lock:
            if not self._accepts_commands():
                return
            self._seek(self._session.current_time - step)

    def fast_forward(self, seconds: Optional[float] = None) -> None:
        """Skip ahead; reaching the end finishes the track"""
        step = self._seek_step if seconds is None else seconds
        with self._lock:
            if not self._accepts_commands():
                return

            self._seek(self._session.current_time + step)

            duration = self._session.duration
            at_end = (
                self._session.phase in _READY_PHASES
                and duration > 0
                and self._session.current_time >= duration
            )
            if at_end:
                self._finish_track()

    def restart_track(self) -> None:
        """Seek to 0 without altering is_playing"""
        self.seek_to(0.0)

    # ===== Power / volume / rate =====

    def set_power_state(self, on: bool) -> None:
        """Turning off pauses playback; turning on does not resume it"""
        with self._lock:
            if self._session.power_on == on:
                return
            self._session.power_on = on

            paused_session = None
            if not on:
                self._play_intent = False
                if self._handle is not None and self._session.is_playing:
                    self._pause_engine()
                    paused_session = replace(self._session)

        logger.info("Power %s", "on" if on else "off")
        if paused_session is not None:
            self._event_bus.publish_sync(EventType.TRACK_PAUSED, paused_session)
        self._event_bus.publish_sync(EventType.POWER_CHANGED, on)

    def set_volume(self, level: float) -> None:
        with self._lock:
            self._session.volume = min(1.0, max(0.0, float(level)))
            self._apply_volume()
            volume = self._session.volume
        self._event_bus.publish_sync(EventType.VOLUME_CHANGED, volume)

    def set_playback_rate(self, rate: float) -> None:
        with self._lock:
            self._session.rate = min(MAX_RATE, max(MIN_RATE, float(rate)))
            self._apply_rate()
            rate = self._session.rate
        self._event_bus.publish_sync(EventType.RATE_CHANGED, rate)

    def _apply_volume(self) -> None:
        if self._handle is None:
            return
        if not self._engine.supports_volume():
            logger.info("%s has no volume control, keeping intent only", self.engine_name)
            return
        try:
            self._engine.set_volume(self._handle, self._session.volume)
        except Exception as e:
            logger.warning("Failed to apply volume: %s", e)

    def _apply_rate(self) -> None:
        if self._handle is None:
            return
        if not self._engine.supports_rate():
            logger.info("%s has no rate control, keeping intent only", self.engine_name)
            return
        try:
            self._engine.set_rate(self._handle, self._session.rate)
        except Exception as e:
            logger.warning("Failed to apply playback rate: %s", e)

    # ===== Engine status feed =====

    def _on_status(self, status: EngineStatus) -> None:
        with self._lock:
            if self._handle is None or status.handle != self._handle:
                logger.debug("Ignoring status for stale handle %s", status.handle.id)
                return

            if status.error:
                if self._session.phase == PlayerPhase.LOADING:
                    self._fail(LoadError(status.error))
                else:
                    self._fail(PlayError(status.error))
                return

            phase = self._session.phase
            if phase == PlayerPhase.LOADING:
                if status.loaded:
                    self._on_loaded(status)
                return

            if phase not in _READY_PHASES:
                return

            if status.duration > 0:
                self._session.duration = status.duration

            if status.did_just_finish:
                if self._finished_handle == self._handle:
                    logger.debug("Track already finished, ignoring late end report")
                    return
                self._finish_track()
                return
            if status.playing:
                self._finished_handle = None

            self._session.current_time = status.current_time
            if status.playing != self._session.is_playing:
                self._session.is_playing = status.playing
                self._session.phase = (
                    PlayerPhase.READY_PLAYING if status.playing else PlayerPhase.READY_PAUSED
                )
            session = replace(self._session)

        self._event_bus.publish_sync(EventType.POSITION_CHANGED, session)

    def _on_loaded(self, status: EngineStatus) -> None:
        self._session.phase = PlayerPhase.READY_PAUSED
        self._session.last_error = None
        self._session.current_time = 0.0
        if status.duration > 0:
            self._session.duration = status.duration

        # Intent set while nothing was loaded
        self._apply_volume()
        self._apply_rate()

        logger.info("Track loaded: %s", self._session.current_track.display_name)
        self._event_bus.publish_sync(EventType.TRACK_LOADED, replace(self._session))

        if self._pending_seek is not None:
            target, self._pending_seek = self._pending_seek, None
            self._seek(target)

        play, self._play_intent = self._play_intent, False
        if play and self._session.power_on and self._session.phase == PlayerPhase.READY_PAUSED:
            self._start_playback()

    def _finish_track(self) -> None:
        """Natural completion or fast-forward to the end"""
        track = self._session.current_track
        self._session.is_playing = False
        self._session.phase = PlayerPhase.READY_PAUSED
        self._session.current_time = self._session.duration
        self._finished_handle = self._handle

        logger.debug("Track finished: %s", track.id if track else None)
        self._event_bus.publish_sync(EventType.TRACK_ENDED, track)

        queue = self._queue
        if queue is None:
            return
        if queue.repeat_mode == RepeatMode.ONE:
            self._seek(0.0)
            if self._session.power_on:
                self._start_playback()
        else:
            queue.play_next(autoplay=True)

    def _fail(self, error: PlaybackError) -> None:
        track = self._session.current_track
        info = ErrorInfo.from_exception(error, track.id if track else None)
        logger.error("Playback error (%s): %s", info.kind.value, info.message)

        self._session.last_error = info
        self._session.is_playing = False
        self._play_intent = False
        if isinstance(error, LoadError):
            self._release_handle()
            self._session.phase = PlayerPhase.ERRORED
            self._pending_seek = None
        elif self._session.phase == PlayerPhase.READY_PLAYING:
            self._session.phase = PlayerPhase.READY_PAUSED

        self._event_bus.publish_sync(EventType.ERROR_OCCURRED, info)

    def shutdown(self) -> None:
        self._engine.set_on_status(None)
        with self._lock:
            self._release_handle()
