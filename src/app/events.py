# -*- coding: utf-8 -*-
"""
Event Types Module

EventType as seen by presentation code, so it can subscribe through the
facade without importing the core layer.

Usage Example:
    from app.events import EventType

    facade.subscribe(EventType.POSITION_CHANGED, on_position)
"""

from core.event_bus import EventType

__all__ = ["EventType"]
