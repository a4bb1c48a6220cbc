# -*- coding: utf-8 -*-
"""
Container Factory Module

Responsible for creating and assembling all application dependencies.

This is the **only** instance creation point (Composition Root) for the application.
All service instance creation should be done here, not within individual services.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from app.container import AppContainer
    from app.protocols import IAudioEngine, IClipBackend, IKeyValueStore
    from services.config_service import ConfigService

logger = logging.getLogger(__name__)


class AppContainerFactory:
    """Application Container Factory

    Usage Example:
        # In main.py
        container = AppContainerFactory.create()

        # In tests (fake engine, in-memory storage)
        container = AppContainerFactory.create_for_testing(FakeEngine(), FakeClipBackend())
    """

    @staticmethod
    def create(config_path: str = "config/default_config.yaml") -> "AppContainer":
        """Create Application Container

        Uses the configured audio backend, pygame sound effects and the
        SQLite database, then restores the previous session.
        """
        from core.audio_engine import PygameClipBackend
        from core.engine_factory import AudioEngineFactory
        from services.config_service import ConfigService

        logger.info("Creating application container...")

        # === 1. Infrastructure Layer ===
        config = ConfigService(config_path)
        db, store = AppContainerFactory._open_store(config.get("persistence.db_path") or None)

        # === 2. Audio ===
        backend = config.get("audio.backend", "pygame")
        try:
            engine = AudioEngineFactory.create(
                backend, require_rate=bool(config.get("audio.require_rate", False))
            )
        except RuntimeError as e:
            logger.error("Failed to create audio engine: %s", e)
            raise
        clip_backend = PygameClipBackend()

        container = AppContainerFactory._assemble(config, engine, clip_backend, store)
        container._db = db

        logger.info("Application container creation complete (engine: %s)", engine.get_engine_name())
        return container

    @staticmethod
    def _open_store(db_path: Optional[str]):
        """SQLite-backed store, or an in-memory one when the database cannot be opened"""
        from core.database import DatabaseManager
        from services.persistence_gateway import PersistenceGateway

        try:
            db = DatabaseManager(db_path)
        except (sqlite3.Error, OSError) as e:
            logger.warning("Database unavailable, state will not survive a restart: %s", e)
            DatabaseManager.reset_instance()
            return None, PersistenceGateway()
        return db, PersistenceGateway(db)

    @staticmethod
    def create_for_testing(
        engine: "IAudioEngine",
        clip_backend: "IClipBackend",
        config_path: str = "config/default_config.yaml",
        store: Optional["IKeyValueStore"] = None,
    ) -> "AppContainer":
        """Create a container for testing

        Uses the given engine and clip backend, an in-memory
        PersistenceGateway unless a store is passed, and no Qt.
        """
        from services.config_service import ConfigService
        from services.persistence_gateway import PersistenceGateway

        logger.info("Creating test application container...")

        config = ConfigService(config_path)
        if store is None:
            store = PersistenceGateway()
        return AppContainerFactory._assemble(config, engine, clip_backend, store)

    @staticmethod
    def _assemble(
        config: "ConfigService",
        engine: "IAudioEngine",
        clip_backend: "IClipBackend",
        store: "IKeyValueStore",
    ) -> "AppContainer":
        from app.container import AppContainer
        from core.event_bus import EventBus
        from services.cassette_library import CassetteLibrary
        from services.memory_store import MemoryStore
        from services.playback_controller import PlaybackController
        from services.player_facade import PlayerFacade
        from services.queue_manager import QueueManager
        from services.session_persistence_service import SessionPersistenceService
        from services.sound_effect_player import SoundEffectPlayer
        from services.track_catalog import TrackCatalog

        event_bus = EventBus()

        # === Playback ===
        controller = PlaybackController(
            engine,
            event_bus,
            seek_step_seconds=config.get_float("playback.seek_step_seconds", 10.0),
            default_volume=config.get_float("playback.default_volume", 1.0),
            default_rate=config.get_float("playback.default_rate", 1.0),
        )
        queue = QueueManager(controller, event_bus)
        controller.attach_queue(queue)

        sfx = SoundEffectPlayer(clip_backend, config.get("sfx.clips", {}) or {})

        # === Cassettes & memory ===
        library = CassetteLibrary(store, event_bus)
        memory = MemoryStore(
            library,
            controller,
            queue,
            event_bus,
            sync_interval_seconds=config.get_float("memory.sync_interval_seconds", 5.0),
        )
        session_persistence = SessionPersistenceService(
            store,
            event_bus,
            enabled=bool(config.get("playback.persist_session", True)),
        )

        facade = PlayerFacade(
            controller=controller,
            queue=queue,
            library=library,
            memory=memory,
            sfx=sfx,
            config=config,
            event_bus=event_bus,
            catalog=TrackCatalog.from_config(config),
        )

        # === Startup ===
        session_persistence.restore_session(queue, controller, library)
        session_persistence.attach(queue, controller, library)
        memory.attach()
        memory.resume_on_start()

        return AppContainer(
            config=config,
            event_bus=event_bus,
            engine=engine,
            sfx=sfx,
            facade=facade,
            _controller=controller,
            _queue=queue,
            _library=library,
            _memory=memory,
            _session_persistence=session_persistence,
            _store=store,
            _clip_backend=clip_backend,
        )
