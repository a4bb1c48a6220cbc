# -*- coding: utf-8 -*-
"""
Playback Ticker

Drives the engine status feed and sound effect cleanup from the Qt event
loop. Every engine status, and therefore every controller transition it
causes, is delivered on the thread that owns the ticker.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

if TYPE_CHECKING:
    from app.protocols import IAudioEngine, ISoundEffectPlayer

logger = logging.getLogger(__name__)


class PlaybackTicker(QObject):
    """Periodic poller for the audio engine and sound effects

    Usage Example:
        ticker = PlaybackTicker(container.engine, container.sfx, interval_ms=200)
        ticker.start()
    """

    ticked = pyqtSignal()

    def __init__(
        self,
        engine: "IAudioEngine",
        sfx: Optional["ISoundEffectPlayer"] = None,
        interval_ms: int = 200,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._engine = engine
        self._sfx = sfx

        self._timer = QTimer(self)
        self._timer.setInterval(max(10, int(interval_ms)))
        self._timer.timeout.connect(self.tick)

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def tick(self) -> None:
        """Poll once"""
        try:
            self._engine.poll()
        except Exception as e:
            logger.error("Engine poll failed: %s", e)

        if self._sfx is not None:
            try:
                self._sfx.poll()
            except Exception as e:
                logger.warning("Sound effect poll failed: %s", e)

        self.ticked.emit()
