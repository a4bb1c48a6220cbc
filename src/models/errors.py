"""
Playback error models
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PlaybackError(RuntimeError):
    """Base class for errors raised while driving the audio engine."""


class LoadError(PlaybackError):
    """Decoding or source resolution failed."""


class PlayError(PlaybackError):
    """The engine rejected an operation given its state."""


class PersistenceError(RuntimeError):
    """Durable read/write failed. Never fatal."""


class SfxError(RuntimeError):
    """A sound effect failed to load or play. Always swallowed."""


class ErrorKind(Enum):
    """Kinds of errors surfaced to the presentation layer"""
    LOAD_ERROR = "load_error"
    PLAY_ERROR = "play_error"


@dataclass(frozen=True)
class ErrorInfo:
    """Error shown next to the current track, with a retry affordance"""
    kind: ErrorKind
    message: str
    track_id: Optional[str] = None

    @classmethod
    def from_exception(cls, error: PlaybackError, track_id: Optional[str] = None) -> 'ErrorInfo':
        kind = ErrorKind.LOAD_ERROR if isinstance(error, LoadError) else ErrorKind.PLAY_ERROR
        return cls(kind=kind, message=str(error), track_id=track_id)
