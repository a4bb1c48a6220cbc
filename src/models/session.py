"""
Playback session models

Live session state (PlaybackSession, QueueState), the read-only snapshot
handed to the presentation layer, and the persisted subset of the session.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from models.errors import ErrorInfo
from models.track import Track


class RepeatMode(Enum):
    """Repeat policy"""
    NONE = "none"
    ONE = "one"
    ALL = "all"


class PlayerPhase(Enum):
    """Controller lifecycle state"""
    IDLE = "idle"                    # No track bound
    LOADING = "loading"              # Waiting for the engine to report loaded
    READY_PAUSED = "ready_paused"
    READY_PLAYING = "ready_playing"
    ERRORED = "errored"


MIN_RATE = 0.5
MAX_RATE = 2.0


def format_time(seconds: float) -> str:
    """Format seconds as m:ss"""
    if not seconds or seconds <= 0:
        return "0:00"
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


@dataclass
class PlaybackSession:
    """Playback state owned by the PlaybackController"""
    current_track: Optional[Track] = None
    phase: PlayerPhase = PlayerPhase.IDLE
    is_playing: bool = False
    power_on: bool = True
    volume: float = 1.0
    rate: float = 1.0
    current_time: float = 0.0
    duration: float = 0.0
    last_error: Optional[ErrorInfo] = None

    @property
    def progress(self) -> float:
        """Normalized progress (0-1)"""
        if not self.duration or self.duration <= 0:
            return 0.0
        return min(1.0, max(0.0, self.current_time / self.duration))

    @property
    def formatted_time(self) -> str:
        return f"{format_time(self.current_time)} / {format_time(self.duration)}"

    @property
    def volume_percent(self) -> int:
        return round(self.volume * 100)

    @property
    def rate_display(self) -> str:
        return f"{self.rate:.1f}x"

    @property
    def can_interact(self) -> bool:
        return self.power_on and self.current_track is not None


@dataclass(frozen=True)
class QueueState:
    """Immutable view of the playback queue"""
    tracks: Tuple[Track, ...] = ()
    current_index: int = 0
    shuffle_enabled: bool = False
    repeat_mode: RepeatMode = RepeatMode.NONE

    @property
    def current_track(self) -> Optional[Track]:
        if 0 <= self.current_index < len(self.tracks):
            return self.tracks[self.current_index]
        return None

    @property
    def position_display(self) -> str:
        """1-based "n / total" position"""
        if not self.tracks:
            return "0 / 0"
        return f"{self.current_index + 1} / {len(self.tracks)}"


@dataclass(frozen=True)
class PlayerSnapshot:
    """Read-only snapshot for the presentation layer"""
    session: PlaybackSession
    queue: QueueState
    active_cassette_id: Optional[str] = None
    next_track: Optional[Track] = None
    previous_track: Optional[Track] = None


@dataclass
class SessionSnapshot:
    """
    Persisted subset of the session

    Live engine handles and the transient playing/time fields are never
    part of it; they always re-derive to Idle/0 at startup.
    """
    tracks: List[Track] = field(default_factory=list)
    current_index: int = 0
    shuffle_enabled: bool = False
    repeat_mode: RepeatMode = RepeatMode.NONE
    power_on: bool = True
    volume: float = 1.0
    rate: float = 1.0
    active_cassette_id: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'tracks': [t.to_dict() for t in self.tracks],
            'current_index': self.current_index,
            'shuffle_enabled': self.shuffle_enabled,
            'repeat_mode': self.repeat_mode.value,
            'power_on': self.power_on,
            'volume': self.volume,
            'rate': self.rate,
            'active_cassette_id': self.active_cassette_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SessionSnapshot':
        """Create SessionSnapshot from dictionary"""
        try:
            repeat_mode = RepeatMode(data.get('repeat_mode', RepeatMode.NONE.value))
        except ValueError:
            repeat_mode = RepeatMode.NONE

        tracks = [
            Track.from_dict(item)
            for item in data.get('tracks', [])
            if isinstance(item, dict) and item.get('id')
        ]

        current_index = int(data.get('current_index', 0) or 0)
        if not 0 <= current_index < len(tracks):
            current_index = 0

        return cls(
            tracks=tracks,
            current_index=current_index,
            shuffle_enabled=bool(data.get('shuffle_enabled', False)),
            repeat_mode=repeat_mode,
            power_on=bool(data.get('power_on', True)),
            volume=min(1.0, max(0.0, float(data.get('volume', 1.0)))),
            rate=min(MAX_RATE, max(MIN_RATE, float(data.get('rate', 1.0)))),
            active_cassette_id=data.get('active_cassette_id') or None,
        )
