# -*- coding: utf-8 -*-
"""
Ports Interfaces Package

Defines the interfaces between the application and external infrastructure
(audio output, sound effects, durable storage).

Design Principles:
- Use Protocol to define interfaces, supporting structural subtyping.
- Service layer depends on these interfaces rather than concrete implementations.
- Facilitates replacing with fake/mock during testing.
"""

from core.ports.audio import IAudioEngine, IClip, IClipBackend
from core.ports.storage import IKeyValueStore

__all__ = [
    "IAudioEngine",
    "IClip",
    "IClipBackend",
    "IKeyValueStore",
]
