# -*- coding: utf-8 -*-
"""
Protocols Definition Module

Defines the interface protocols (Protocol) for the services of the player.
Uses Protocol instead of ABC to support structural subtyping checks.

Design Decisions:
- Default to using Protocol + @runtime_checkable
- ABC is only used for base classes that need to share default implementations (e.g., AudioEngineBase)
- Runtime checks are performed as one-time assertions during testing
"""

from __future__ import annotations

from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

# Re-export infrastructure interfaces from core.ports
from core.ports.audio import IAudioEngine, IClipBackend
from core.ports.storage import IKeyValueStore

if TYPE_CHECKING:
    from models.cassette import Cassette
    from models.session import PlaybackSession, QueueState, RepeatMode
    from models.track import Track


# =============================================================================
# Event Bus Protocol
# =============================================================================

@runtime_checkable
class IEventBus(Protocol):
    """Event Bus Interface"""

    def subscribe(
        self,
        event_type: Enum,
        callback: Callable[[Any], None]
    ) -> str:
        """Subscribe to an event, returning a subscription ID"""
        ...

    def unsubscribe(self, subscription_id: str) -> bool:
        ...

    def publish(self, event_type: Enum, data: Any = None) -> None:
        ...

    def publish_sync(self, event_type: Enum, data: Any = None) -> bool:
        ...


# =============================================================================
# Configuration Service Protocol
# =============================================================================

@runtime_checkable
class IConfigService(Protocol):
    """Configuration Service Interface"""

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value (dot-separated key)"""
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def save(self) -> bool:
        ...


# =============================================================================
# Playback Protocols
# =============================================================================

@runtime_checkable
class IPlaybackController(Protocol):
    """The part of PlaybackController the queue and memory services drive"""

    @property
    def session(self) -> "PlaybackSession":
        ...

    @property
    def current_track(self) -> Optional["Track"]:
        ...

    @property
    def is_playing(self) -> bool:
        ...

    def load_track(
        self,
        track: "Track",
        start_position: Optional[float] = None,
        autoplay: bool = False,
    ) -> None:
        ...

    def play(self) -> None:
        ...

    def pause(self) -> None:
        ...


@runtime_checkable
class IQueueNavigator(Protocol):
    """What the controller needs from the queue to advance at end of track"""

    @property
    def repeat_mode(self) -> "RepeatMode":
        ...

    def play_next(self, autoplay: Optional[bool] = None) -> None:
        ...


@runtime_checkable
class IQueueManager(IQueueNavigator, Protocol):
    """Queue Manager Interface"""

    @property
    def state(self) -> "QueueState":
        ...

    @property
    def tracks(self) -> List["Track"]:
        ...

    def load_playlist(self, tracks: List["Track"]) -> None:
        ...

    def play_previous(self, autoplay: Optional[bool] = None) -> None:
        ...

    def jump_to_track(self, index: int) -> None:
        ...


# =============================================================================
# Cassette Protocols
# =============================================================================

@runtime_checkable
class ICassetteLibrary(Protocol):
    """Cassette Library Interface"""

    @property
    def active_cassette_id(self) -> Optional[str]:
        ...

    def get_cassette(self, cassette_id: str) -> Optional["Cassette"]:
        ...

    def list_cassettes(self) -> List["Cassette"]:
        ...

    def set_active_cassette(self, cassette_id: Optional[str]) -> None:
        ...


@runtime_checkable
class ISoundEffectPlayer(Protocol):
    """Sound Effect Player Interface"""

    def play_effect(self, clip_id: str, delay_ms: int = 0) -> None:
        ...

    def poll(self) -> None:
        ...

    def shutdown(self) -> None:
        ...


__all__ = [
    "IAudioEngine",
    "IClipBackend",
    "IKeyValueStore",
    "IEventBus",
    "IConfigService",
    "IPlaybackController",
    "IQueueNavigator",
    "IQueueManager",
    "ICassetteLibrary",
    "ISoundEffectPlayer",
]
