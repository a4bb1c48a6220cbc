# -*- coding: utf-8 -*-
"""
Audio Engine Port Interface

Defines the capability interface the playback services depend on, so the
controller never imports a concrete audio backend.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol, runtime_checkable

from core.audio_engine import EngineHandle, EngineStatus


@runtime_checkable
class IAudioEngine(Protocol):
    """Audio Engine Interface

    Current implementations: PygameAudioEngine, VLCEngine
    """

    def load(self, source: str) -> EngineHandle:
        """Start decoding a source; readiness arrives via the status feed"""
        ...

    def play(self, handle: EngineHandle) -> None:
        ...

    def pause(self, handle: EngineHandle) -> None:
        ...

    def seek(self, handle: EngineHandle, seconds: float) -> None:
        ...

    def release(self, handle: EngineHandle) -> None:
        """Unload the decoded resource"""
        ...

    def set_on_status(self, callback: Optional[Callable[[EngineStatus], None]]) -> None:
        ...

    def poll(self) -> None:
        """Deliver pending statuses on the calling thread"""
        ...

    def supports_volume(self) -> bool:
        ...

    def supports_rate(self) -> bool:
        ...

    def set_volume(self, handle: EngineHandle, volume: float) -> None:
        """Only called when supports_volume() is True"""
        ...

    def set_rate(self, handle: EngineHandle, rate: float) -> None:
        """Only called when supports_rate() is True"""
        ...

    def get_engine_name(self) -> str:
        ...

    def cleanup(self) -> None:
        ...


@runtime_checkable
class IClip(Protocol):
    """One sound effect instance"""

    @property
    def is_loaded(self) -> bool:
        ...

    @property
    def is_playing(self) -> bool:
        ...

    def play(self) -> None:
        ...

    def release(self) -> None:
        ...


@runtime_checkable
class IClipBackend(Protocol):
    """Sound effect backend Interface

    Current implementation: PygameClipBackend
    """

    def create(self, source: str) -> IClip:
        ...

    def cleanup(self) -> None:
        ...
