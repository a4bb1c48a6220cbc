"""
Cassette Player Core Module
"""

from .event_bus import EventBus, EventType
from .audio_engine import (
    AudioEngineBase,
    ClipBackendBase,
    EngineHandle,
    EngineStatus,
    PygameAudioEngine,
    PygameClipBackend,
)
from .metadata import MetadataParser, AudioMetadata
from .database import DatabaseManager
from .engine_factory import AudioEngineFactory

__all__ = [
    'EventBus',
    'EventType',
    'AudioEngineBase',
    'ClipBackendBase',
    'EngineHandle',
    'EngineStatus',
    'PygameAudioEngine',
    'PygameClipBackend',
    'MetadataParser',
    'AudioMetadata',
    'DatabaseManager',
    'AudioEngineFactory',
]
