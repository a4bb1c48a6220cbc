"""
Sound Effect Player

Short mechanical sounds (insert, eject, button clicks) played on a pool of
clip instances disjoint from the primary playback stream.

At most one live instance exists per clip id: a request for a clip that is
still playing, or still waiting for its delay, is dropped.
"""

from typing import Dict, Optional
import logging
import threading

from core.ports.audio import IClip, IClipBackend
from models.errors import SfxError

logger = logging.getLogger(__name__)


class SoundEffectPlayer:
    """
    Sound Effect Player

    Example:
        sfx = SoundEffectPlayer(PygameClipBackend(), {"insert": "assets/sfx/insert.wav"})
        sfx.play_effect("insert", delay_ms=250)

        # Called periodically to free finished instances
        sfx.poll()
    """

    def __init__(self, backend: IClipBackend, clips: Optional[Dict[str, str]] = None):
        self._backend = backend
        self._clips: Dict[str, str] = dict(clips or {})

        self._lock = threading.Lock()
        self._active: Dict[str, IClip] = {}
        self._scheduled: Dict[str, threading.Timer] = {}
        self._closed = False

    @property
    def clip_ids(self):
        return sorted(self._clips)

    def register_clip(self, clip_id: str, source: str) -> None:
        with self._lock:
            self._clips[clip_id] = source

    def is_active(self, clip_id: str) -> bool:
        """Whether an instance of the clip is scheduled or playing"""
        with self._lock:
            return clip_id in self._scheduled or self._is_live(self._active.get(clip_id))

    @property
    def live_count(self) -> int:
        with self._lock:
            return sum(1 for clip in self._active.values() if clip.is_loaded)

    @staticmethod
    def _is_live(clip: Optional[IClip]) -> bool:
        if clip is None:
            return False
        try:
            return clip.is_loaded and clip.is_playing
        except Exception:
            return False

    def play_effect(self, clip_id: str, delay_ms: int = 0) -> None:
        """Play a clip after delay_ms; failures are logged and swallowed"""
        with self._lock:
            if self._closed:
                return

            source = self._clips.get(clip_id)
            if source is None:
                logger.warning("Unknown sound effect: %s", clip_id)
                return

            if clip_id in self._scheduled or self._is_live(self._active.get(clip_id)):
                logger.debug("Sound effect %s already playing, dropped", clip_id)
                return

            if delay_ms > 0:
                timer = threading.Timer(delay_ms / 1000.0, self._fire, args=(clip_id, source))
                timer.daemon = True
                self._scheduled[clip_id] = timer
                timer.start()
                return

            self._start(clip_id, source)

    def _fire(self, clip_id: str, source: str) -> None:
        with self._lock:
            if self._scheduled.pop(clip_id, None) is None or self._closed:
                return
            self._start(clip_id, source)

    def _start(self, clip_id: str, source: str) -> None:
        self._release(clip_id)
        try:
            self._active[clip_id] = self._create_and_play(clip_id, source)
        except SfxError as e:
            logger.warning("%s", e)

    def _create_and_play(self, clip_id: str, source: str) -> IClip:
        try:
            clip = self._backend.create(source)
        except Exception as e:
            raise SfxError(f"Sound effect {clip_id} failed to load: {e}") from e

        try:
            clip.play()
        except Exception as e:
            clip.release()
            raise SfxError(f"Sound effect {clip_id} failed to play: {e}") from e
        return clip

    def _release(self, clip_id: str) -> None:
        clip = self._active.pop(clip_id, None)
        if clip is None:
            return
        try:
            clip.release()
        except Exception as e:
            logger.warning("Failed to release sound effect %s: %s", clip_id, e)

    def poll(self) -> None:
        """Release instances that finished playing"""
        with self._lock:
            finished = [key for key, clip in self._active.items() if not self._is_live(clip)]
            for clip_id in finished:
                self._release(clip_id)

    def shutdown(self) -> None:
        """Cancel scheduled effects and release all instances"""
        with self._lock:
            self._closed = True
            for timer in self._scheduled.values():
                timer.cancel()
            self._scheduled.clear()
            for clip_id in list(self._active):
                self._release(clip_id)
