# -*- coding: utf-8 -*-
"""
Application Container Module

Defines the dependency container for the player, holding all service instances centrally.

Design Principles:
- Only the entry point holds the complete AppContainer
- Presentation code accesses services via the facade, not the container
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from app.protocols import IAudioEngine, IConfigService, IEventBus, ISoundEffectPlayer
    from services.player_facade import PlayerFacade

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Application Dependency Container

    Usage Example:
        container = AppContainerFactory.create()
        ticker = PlaybackTicker(container.engine, container.sfx)
        container.facade.play()
        ...
        container.cleanup()
    """

    # === Public Attributes ===
    config: "IConfigService"
    event_bus: "IEventBus"
    engine: "IAudioEngine"
    sfx: "ISoundEffectPlayer"
    facade: "PlayerFacade"

    # === Internal Service References ===
    _controller: Any = field(default=None, repr=False)
    _queue: Any = field(default=None, repr=False)
    _library: Any = field(default=None, repr=False)
    _memory: Any = field(default=None, repr=False)
    _session_persistence: Any = field(default=None, repr=False)
    _store: Any = field(default=None, repr=False)
    _db: Any = field(default=None, repr=False)
    _clip_backend: Any = field(default=None, repr=False)

    def cleanup(self) -> None:
        """Clean up all resources

        Should be called when the application exits.
        """
        # Last bookmark and session before anything is torn down
        if self._memory is not None:
            self._memory.checkpoint()
            self._memory.shutdown()
        if self._session_persistence is not None:
            self._session_persistence.persist_now()
            self._session_persistence.shutdown()

        if self._library is not None:
            try:
                self._library.flush(timeout=5.0)
            except Exception as e:
                logger.warning("Pending cassette write did not finish: %s", e)
            self._library.shutdown()

        if self.sfx is not None:
            self.sfx.shutdown()
        if self._controller is not None:
            self._controller.shutdown()

        if self.engine is not None:
            self.engine.cleanup()
        if self._clip_backend is not None:
            self._clip_backend.cleanup()

        if self.event_bus is not None and hasattr(self.event_bus, 'shutdown'):
            self.event_bus.clear()
            self.event_bus.shutdown()

        if self._db is not None:
            self._db.close()
