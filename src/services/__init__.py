"""
Service Layer Module
"""

from .config_service import ConfigService
from .persistence_gateway import PersistenceGateway
from .playback_controller import PlaybackController
from .queue_manager import QueueManager
from .cassette_library import CassetteLibrary
from .memory_store import MemoryStore
from .sound_effect_player import SoundEffectPlayer
from .session_persistence_service import SessionPersistenceService
from .track_catalog import TrackCatalog
from .player_facade import PlayerFacade

__all__ = [
    'ConfigService',
    'PersistenceGateway',
    'PlaybackController',
    'QueueManager',
    'CassetteLibrary',
    'MemoryStore',
    'SoundEffectPlayer',
    'SessionPersistenceService',
    'TrackCatalog',
    'PlayerFacade',
]
