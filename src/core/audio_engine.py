"""
Audio Engine Module - Core for Audio Playback

Narrow capability interface over the audio output device. Every decoded
source is represented by an EngineHandle; loading is asynchronous and its
outcome is only observable through the status feed delivered by poll().

Backends: pygame (default), VLC (see vlc_engine.py).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Callable
import itertools
import queue
import threading
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineHandle:
    """Opaque reference to one decoded audio source"""
    id: int
    source: str


@dataclass(frozen=True)
class EngineStatus:
    """One entry of the engine status feed, tied to the handle it describes"""
    handle: EngineHandle
    loaded: bool = False
    playing: bool = False
    current_time: float = 0.0   # seconds
    duration: float = 0.0       # seconds
    did_just_finish: bool = False
    error: Optional[str] = None


class AudioEngineBase(ABC):
    """
    Abstract Base Class for Audio Engines

    Subclasses implement the playback primitives. Statuses produced on worker
    or library threads go through _post_status() and are delivered by poll()
    on the caller's thread, so listeners never run on a decoder thread.
    """

    def __init__(self):
        self._volume: float = 1.0
        self._rate: float = 1.0
        self._on_status_callback: Optional[Callable[[EngineStatus], None]] = None
        self._handle_ids = itertools.count(1)
        self._pending: "queue.Queue[EngineStatus]" = queue.Queue()

    @staticmethod
    def probe() -> bool:
        """
        Check if engine dependencies are available (without touching playback state)

        Returns:
            bool: True if dependencies are available
        """
        return False

    @property
    def volume(self) -> float:
        return self._volume

    @property
    def rate(self) -> float:
        return self._rate

    def set_on_status(self, callback: Optional[Callable[[EngineStatus], None]]) -> None:
        """Set the status feed listener"""
        self._on_status_callback = callback

    def _new_handle(self, source: str) -> EngineHandle:
        return EngineHandle(id=next(self._handle_ids), source=source)

    def _post_status(self, status: EngineStatus) -> None:
        """Queue a status for delivery on the next poll() (thread-safe)"""
        self._pending.put(status)

    def _emit(self, status: EngineStatus) -> None:
        callback = self._on_status_callback
        if callback is None:
            return
        try:
            callback(status)
        except Exception as e:
            logger.error("Status listener failed: %s", e)

    def poll(self) -> None:
        """
        Deliver queued statuses, then a fresh sample of the active handle.

        Called periodically by the playback ticker.
        """
        while True:
            try:
                status = self._pending.get_nowait()
            except queue.Empty:
                break
            self._emit(status)

        status = self._sample()
        if status is not None:
            self._emit(status)

    @abstractmethod
    def load(self, source: str) -> EngineHandle:
        """
        Start loading an audio source

        Returns immediately. The outcome is reported later through the
        status feed as loaded=True or an error.
        """

    @abstractmethod
    def play(self, handle: EngineHandle) -> None:
        """Start or resume playback; raises if the engine rejects it"""

    @abstractmethod
    def pause(self, handle: EngineHandle) -> None:
        """Pause playback"""

    @abstractmethod
    def seek(self, handle: EngineHandle, seconds: float) -> None:
        """Seek to a position; only valid once the handle is loaded"""

    @abstractmethod
    def release(self, handle: EngineHandle) -> None:
        """Unload the decoded resource. Safe for pending and stale handles."""

    @abstractmethod
    def _sample(self) -> Optional[EngineStatus]:
        """Current status of the active handle, None when nothing is loaded"""

    # ===== Optional capabilities =====

    def supports_volume(self) -> bool:
        return False

    def supports_rate(self) -> bool:
        return False

    def set_volume(self, handle: EngineHandle, volume: float) -> None:
        raise NotImplementedError(f"{self.get_engine_name()} has no volume control")

    def set_rate(self, handle: EngineHandle, rate: float) -> None:
        raise NotImplementedError(f"{self.get_engine_name()} has no rate control")

    def get_engine_name(self) -> str:
        return "base"

    def cleanup(self) -> None:
        """Clean up resources"""


class ClipBase(ABC):
    """One loaded instance of a short sound effect"""

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        ...

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        ...

    @abstractmethod
    def play(self) -> None:
        ...

    @abstractmethod
    def release(self) -> None:
        ...


class ClipBackendBase(ABC):
    """Creates sound effect instances, disjoint from the primary playback stream"""

    @abstractmethod
    def create(self, source: str) -> ClipBase:
        ...

    def cleanup(self) -> None:
        """Clean up resources"""


# ===== pygame backend =====

_mixer_lock = threading.Lock()
_mixer_initialized = False
_mixer_refcount = 0


def _acquire_mixer() -> bool:
    """Initialize the global pygame mixer, reference counted across users."""
    global _mixer_initialized, _mixer_refcount
    with _mixer_lock:
        if not _mixer_initialized:
            try:
                import pygame
                pygame.mixer.init(frequency=44100, size=-16, channels=2, buffer=2048)
                _mixer_initialized = True
            except Exception as e:
                logger.error("Pygame initialization failed: %s", e)
                return False

        _mixer_refcount += 1
        return True


def _release_mixer() -> None:
    global _mixer_initialized, _mixer_refcount
    with _mixer_lock:
        if _mixer_refcount > 0:
            _mixer_refcount -= 1
        should_quit = _mixer_initialized and _mixer_refcount == 0

        if should_quit:
            try:
                import pygame
                pygame.mixer.quit()
            except Exception as e:
                logger.warning("Pygame cleanup failed: %s", e)
            finally:
                _mixer_initialized = False


class PygameAudioEngine(AudioEngineBase):
    """
    Audio engine implementation based on Pygame

    pygame.mixer.music is a single global stream, so only the most recently
    requested handle is ever decoded; superseded loads are skipped.
    Supports volume, not playback rate.
    """

    @staticmethod
    def probe() -> bool:
        """Check if pygame dependency is available (without initializing mixer)"""
        try:
            import pygame
            return hasattr(pygame, 'mixer')
        except ImportError:
            return False

    def __init__(self):
        super().__init__()
        self._lock = threading.RLock()
        self._requested: Optional[EngineHandle] = None
        self._active: Optional[EngineHandle] = None
        self._duration: float = 0.0
        self._offset: float = 0.0
        self._playing = False
        self._paused = False
        # The stream has to be (re)started with play(start=offset)
        self._needs_restart = True
        self._cleaned_up = False

        self._mixer_ready = _acquire_mixer()

    def load(self, source: str) -> EngineHandle:
        handle = self._new_handle(source)
        with self._lock:
            self._requested = handle

        worker = threading.Thread(
            target=self._load_worker,
            args=(handle,),
            name="PygameLoader",
            daemon=True,
        )
        worker.start()
        return handle

    def _load_worker(self, handle: EngineHandle) -> None:
        import pygame

        with self._lock:
            if handle != self._requested:
                logger.debug("Skipping superseded load: %s", handle.source)
                return

            try:
                if not self._mixer_ready:
                    raise RuntimeError("pygame mixer is not initialized")
                pygame.mixer.music.load(handle.source)
                pygame.mixer.music.set_volume(self._volume)
            except Exception as e:
                self._post_status(EngineStatus(handle=handle, error=f"Failed to load file: {e}"))
                return

            self._active = handle
            self._duration = self._get_duration_from_file(handle.source)
            self._offset = 0.0
            self._playing = False
            self._paused = False
            self._needs_restart = True
            duration = self._duration

        self._post_status(EngineStatus(handle=handle, loaded=True, duration=duration))

    def _get_duration_from_file(self, file_path: str) -> float:
        """Get duration from file"""
        try:
            from mutagen import File
            audio = File(file_path)
            if audio and audio.info:
                return float(audio.info.length)
        except Exception:
            pass
        return 0.0

    def _require_active(self, handle: EngineHandle) -> None:
        if handle != self._active:
            raise RuntimeError(f"Handle {handle.id} is not the active stream")

    def _position(self) -> float:
        import pygame

        if self._needs_restart:
            return self._offset
        return self._offset + max(0, pygame.mixer.music.get_pos()) / 1000.0

    def play(self, handle: EngineHandle) -> None:
        import pygame

        with self._lock:
            self._require_active(handle)
            if self._needs_restart:
                pygame.mixer.music.play(start=self._offset)
                self._needs_restart = False
            elif self._paused:
                pygame.mixer.music.unpause()
            self._playing = True
            self._paused = False

    def pause(self, handle: EngineHandle) -> None:
        import pygame

        with self._lock:
            if handle != self._active or not self._playing:
                return
            pygame.mixer.music.pause()
            self._playing = False
            self._paused = True

    def seek(self, handle: EngineHandle, seconds: float) -> None:
        import pygame

        with self._lock:
            self._require_active(handle)
            self._offset = max(0.0, seconds)
            if self._playing:
                pygame.mixer.music.play(start=self._offset)
            else:
                # Picked up by the next play()
                self._needs_restart = True
                self._paused = False

    def release(self, handle: EngineHandle) -> None:
        import pygame

        with self._lock:
            if handle == self._requested:
                self._requested = None
            if handle != self._active:
                return

            try:
                pygame.mixer.music.stop()
                pygame.mixer.music.unload()
            except Exception as e:
                logger.warning("Failed to unload stream: %s", e)
            self._active = None
            self._playing = False
            self._paused = False
            self._needs_restart = True

    def supports_volume(self) -> bool:
        return True

    def set_volume(self, handle: EngineHandle, volume: float) -> None:
        import pygame

        with self._lock:
            self._volume = max(0.0, min(1.0, volume))
            if handle == self._active:
                pygame.mixer.music.set_volume(self._volume)

    def _sample(self) -> Optional[EngineStatus]:
        import pygame

        with self._lock:
            if self._active is None:
                return None

            if self._playing and not pygame.mixer.music.get_busy():
                self._playing = False
                self._needs_restart = True
                self._offset = self._duration
                return EngineStatus(
                    handle=self._active,
                    loaded=True,
                    playing=False,
                    current_time=self._duration,
                    duration=self._duration,
                    did_just_finish=True,
                )

            position = self._position()
            if self._duration > 0:
                position = min(position, self._duration)
            return EngineStatus(
                handle=self._active,
                loaded=True,
                playing=self._playing,
                current_time=position,
                duration=self._duration,
            )

    def cleanup(self) -> None:
        """Clean up resources"""
        with self._lock:
            if self._cleaned_up:
                return
            self._cleaned_up = True
            if self._active is not None:
                self.release(self._active)

        if self._mixer_ready:
            _release_mixer()

    def get_engine_name(self) -> str:
        return "pygame"


class PygameClip(ClipBase):
    """A pygame.mixer.Sound playing on its own channel"""

    def __init__(self, sound):
        self._sound = sound
        self._channel = None
        self._released = False

    @property
    def is_loaded(self) -> bool:
        return not self._released

    @property
    def is_playing(self) -> bool:
        if self._released or self._channel is None:
            return False
        return bool(self._channel.get_busy())

    def play(self) -> None:
        self._channel = self._sound.play()
        if self._channel is None:
            raise RuntimeError("No free mixer channel")

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._sound.stop()
        self._channel = None
        self._sound = None


class PygameClipBackend(ClipBackendBase):
    """Sound effect backend on pygame mixer channels"""

    def __init__(self):
        self._mixer_ready = _acquire_mixer()
        self._cleaned_up = False

    def create(self, source: str) -> ClipBase:
        import pygame

        if not self._mixer_ready:
            raise RuntimeError("pygame mixer is not initialized")
        return PygameClip(pygame.mixer.Sound(source))

    def cleanup(self) -> None:
        if self._cleaned_up:
            return
        self._cleaned_up = True
        if self._mixer_ready:
            _release_mixer()
