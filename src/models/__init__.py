"""
Data Models Module
"""

from .track import Track
from .cassette import Cassette
from .errors import (
    ErrorInfo,
    ErrorKind,
    LoadError,
    PersistenceError,
    PlayError,
    PlaybackError,
    SfxError,
)
from .session import (
    PlaybackSession,
    PlayerPhase,
    PlayerSnapshot,
    QueueState,
    RepeatMode,
    SessionSnapshot,
)

__all__ = [
    'Track',
    'Cassette',
    'ErrorInfo',
    'ErrorKind',
    'LoadError',
    'PersistenceError',
    'PlayError',
    'PlaybackError',
    'SfxError',
    'PlaybackSession',
    'PlayerPhase',
    'PlayerSnapshot',
    'QueueState',
    'RepeatMode',
    'SessionSnapshot',
]
