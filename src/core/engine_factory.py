"""
Audio Engine Factory

Builds the playback engine named in the config. When that backend cannot be
constructed (missing library, no output device) the next backend in
PRIORITY_ORDER is tried.
"""

import logging
from typing import List, Type, Dict

from core.audio_engine import AudioEngineBase, PygameAudioEngine

logger = logging.getLogger(__name__)

_ENGINE_REGISTRY: Dict[str, Type[AudioEngineBase]] = {}


def register_engine(name: str, engine_class: Type[AudioEngineBase]) -> None:
    _ENGINE_REGISTRY[name] = engine_class


register_engine("pygame", PygameAudioEngine)

try:
    from core.vlc_engine import VLCEngine
    register_engine("vlc", VLCEngine)
except Exception:
    logger.debug("VLC backend unavailable")


class AudioEngineFactory:
    """
    Audio Engine Factory

    Usage Example:
        engine = AudioEngineFactory.create(config.get("audio.backend"))

        # Only backends that can change playback speed
        engine = AudioEngineFactory.create("pygame", require_rate=True)
    """

    # pygame first: it ships wheels everywhere, VLC needs the native library
    PRIORITY_ORDER = ["pygame", "vlc"]

    @classmethod
    def create(cls, backend: str = "pygame", require_rate: bool = False) -> AudioEngineBase:
        """
        Create an engine, starting with the requested backend.

        Args:
            backend: Preferred backend name
            require_rate: Skip backends without playback-rate control

        Raises:
            RuntimeError: If no candidate backend could be constructed
        """
        tried = []
        for name in cls._candidates(backend, require_rate):
            tried.append(name)
            try:
                engine = _ENGINE_REGISTRY[name]()
            except Exception as e:
                logger.warning("Audio backend %s failed to start: %s", name, e)
                continue

            if name != backend:
                logger.info("Backend %s unavailable, falling back to %s", backend, name)
            logger.info("Using audio backend: %s", name)
            return engine

        raise RuntimeError(
            f"No audio backend could be started (tried: {', '.join(tried) or 'none'}). "
            "Install pygame or python-vlc."
        )

    @classmethod
    def _candidates(cls, backend: str, require_rate: bool) -> List[str]:
        order = [backend] + [name for name in cls.PRIORITY_ORDER if name != backend]
        names = [name for name in order if name in _ENGINE_REGISTRY]
        if require_rate:
            names = [name for name in names if cls.get_backend_info(name).get("rate")]
        return names

    @classmethod
    def get_available_backends(cls) -> List[str]:
        """Backends whose libraries import, in priority order"""
        return [backend for backend in cls.PRIORITY_ORDER if cls.is_available(backend)]

    @classmethod
    def get_backend_info(cls, backend: str) -> Dict[str, bool]:
        """
        Capability flags of a backend, read from the class so nothing is
        initialized. Unknown backends report an empty dict.
        """
        engine_class = _ENGINE_REGISTRY.get(backend)
        if engine_class is None:
            return {}

        return {
            "volume": engine_class.supports_volume is not AudioEngineBase.supports_volume,
            "rate": engine_class.supports_rate is not AudioEngineBase.supports_rate,
        }

    @classmethod
    def is_available(cls, backend: str) -> bool:
        engine_class = _ENGINE_REGISTRY.get(backend)
        if engine_class is None:
            return False

        try:
            return engine_class.probe()
        except Exception:
            return False
