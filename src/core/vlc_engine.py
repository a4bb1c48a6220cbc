"""
VLC Audio Engine Implementation

Audio backend based on the python-vlc library. Unlike the pygame backend it
can change playback rate, and each handle owns its own MediaPlayer.

libvlc delivers events on its own threads, and calling back into libvlc from
there deadlocks, so every event is queued and delivered by poll().
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from core.audio_engine import AudioEngineBase, EngineHandle, EngineStatus

logger = logging.getLogger(__name__)

# Try to import vlc
try:
    import vlc
    VLC_AVAILABLE = True
except Exception:
    # python-vlc raises on import when libvlc itself is missing
    vlc = None  # type: ignore
    VLC_AVAILABLE = False
    logger.debug("python-vlc/libvlc unavailable; VLCEngine is disabled.")


class _Binding:
    """MediaPlayer and Media bound to one handle"""

    def __init__(self, player: Any, media: Any):
        self.player = player
        self.media = media
        self.loaded = False
        self.playing = False
        self.duration: float = 0.0
        # Position to apply once a stopped player starts again
        self.pending_position: Optional[float] = None


class VLCEngine(AudioEngineBase):
    """
    VLC-based Audio Engine

    Features:
    - Extensive format support
    - Volume and playback rate control (scaletempo keeps pitch)
    """

    @staticmethod
    def probe() -> bool:
        """Check if python-vlc dependencies are available."""
        return VLC_AVAILABLE

    def __init__(self):
        if not VLC_AVAILABLE:
            raise ImportError("The python-vlc library is not installed.")

        super().__init__()

        self._instance: Any = vlc.Instance(
            "--no-video",
            "--audio-filter=scaletempo",
        )
        self._bindings: Dict[EngineHandle, _Binding] = {}
        self._active: Optional[EngineHandle] = None
        self._lock = threading.Lock()

    def load(self, source: str) -> EngineHandle:
        handle = self._new_handle(source)

        media = self._instance.media_new(source)
        player = self._instance.media_player_new()
        player.set_media(media)
        binding = _Binding(player, media)

        with self._lock:
            self._bindings[handle] = binding
            self._active = handle

        def on_parsed(event, handle=handle):
            self._on_parsed(handle)

        def on_end_reached(event, handle=handle):
            self._post_status(EngineStatus(handle=handle, did_just_finish=True, loaded=True))

        def on_error(event, handle=handle):
            self._post_status(EngineStatus(handle=handle, error="VLC playback error"))

        media.event_manager().event_attach(vlc.EventType.MediaParsedChanged, on_parsed)
        events = player.event_manager()
        events.event_attach(vlc.EventType.MediaPlayerEndReached, on_end_reached)
        events.event_attach(vlc.EventType.MediaPlayerEncounteredError, on_error)

        media.parse_with_options(vlc.MediaParseFlag.local, 3000)
        return handle

    def _on_parsed(self, handle: EngineHandle) -> None:
        with self._lock:
            binding = self._bindings.get(handle)
            if binding is None:
                return
            status = binding.media.get_parsed_status()
            if status != vlc.MediaParsedStatus.done:
                self._post_status(EngineStatus(handle=handle, error=f"Failed to parse media ({status})"))
                return

            binding.loaded = True
            binding.duration = max(0, binding.media.get_duration()) / 1000.0
            duration = binding.duration

        self._post_status(EngineStatus(handle=handle, loaded=True, duration=duration))

    def _binding(self, handle: EngineHandle) -> _Binding:
        binding = self._bindings.get(handle)
        if binding is None:
            raise RuntimeError(f"Handle {handle.id} was released")
        return binding

    def play(self, handle: EngineHandle) -> None:
        with self._lock:
            binding = self._binding(handle)
            binding.player.audio_set_volume(int(self._volume * 100))
            binding.player.set_rate(self._rate)
            if binding.player.get_state() == vlc.State.Ended:
                binding.player.stop()
            if binding.player.play() != 0:
                raise RuntimeError("VLC refused to start playback")
            if binding.pending_position is not None:
                binding.player.set_time(int(binding.pending_position * 1000))
                binding.pending_position = None
            binding.playing = True

    def pause(self, handle: EngineHandle) -> None:
        with self._lock:
            binding = self._bindings.get(handle)
            if binding is None or not binding.playing:
                return
            binding.player.set_pause(1)
            binding.playing = False

    def seek(self, handle: EngineHandle, seconds: float) -> None:
        with self._lock:
            binding = self._binding(handle)
            if binding.player.get_state() in (vlc.State.Ended, vlc.State.Stopped, vlc.State.NothingSpecial):
                binding.pending_position = max(0.0, seconds)
            else:
                binding.player.set_time(int(max(0.0, seconds) * 1000))

    def release(self, handle: EngineHandle) -> None:
        with self._lock:
            binding = self._bindings.pop(handle, None)
            if self._active == handle:
                self._active = None
        if binding is None:
            return

        try:
            binding.player.stop()
            binding.player.release()
            binding.media.release()
        except Exception as e:
            logger.warning("Failed to release VLC player: %s", e)

    def supports_volume(self) -> bool:
        return True

    def supports_rate(self) -> bool:
        return True

    def set_volume(self, handle: EngineHandle, volume: float) -> None:
        with self._lock:
            self._volume = max(0.0, min(1.0, volume))
            binding = self._bindings.get(handle)
            if binding is not None:
                binding.player.audio_set_volume(int(self._volume * 100))

    def set_rate(self, handle: EngineHandle, rate: float) -> None:
        with self._lock:
            self._rate = rate
            binding = self._bindings.get(handle)
            if binding is not None:
                binding.player.set_rate(rate)

    def _sample(self) -> Optional[EngineStatus]:
        with self._lock:
            if self._active is None:
                return None
            binding = self._bindings.get(self._active)
            if binding is None or not binding.loaded:
                return None

            state = binding.player.get_state()
            if state == vlc.State.Ended:
                binding.playing = False
                # End already reported through MediaPlayerEndReached
                return None

            position = max(0, binding.player.get_time()) / 1000.0
            return EngineStatus(
                handle=self._active,
                loaded=True,
                playing=binding.playing,
                current_time=min(position, binding.duration) if binding.duration else position,
                duration=binding.duration,
            )

    def cleanup(self) -> None:
        """Clean up resources"""
        for handle in list(self._bindings):
            self.release(handle)
        try:
            self._instance.release()
        except Exception:
            pass

    def get_engine_name(self) -> str:
        return "vlc"
