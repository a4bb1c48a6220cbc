# -*- coding: utf-8 -*-
"""
Event Bus Module - Publish-Subscribe Pattern Implementation

Provides the observer mechanism between the playback services and the
presentation layer.

Design Notes:
- Pure Python implementation, does not depend on any UI framework
- One bus per application container (created by AppContainerFactory), so
  tests get isolated instances without resetting global state
"""

from typing import Callable, Dict, List, Any
from enum import Enum
import threading
import uuid
import logging
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event type enumeration"""

    # Playback events
    TRACK_LOADING = "track_loading"
    TRACK_LOADED = "track_loaded"
    TRACK_STARTED = "track_started"
    TRACK_PAUSED = "track_paused"
    TRACK_ENDED = "track_ended"
    POSITION_CHANGED = "position_changed"
    VOLUME_CHANGED = "volume_changed"
    RATE_CHANGED = "rate_changed"
    POWER_CHANGED = "power_changed"

    # Queue events
    QUEUE_CHANGED = "queue_changed"

    # Cassette library events
    CASSETTE_CREATED = "cassette_created"
    CASSETTE_UPDATED = "cassette_updated"
    CASSETTE_DELETED = "cassette_deleted"
    ACTIVE_CASSETTE_CHANGED = "active_cassette_changed"

    # System events
    ERROR_OCCURRED = "error_occurred"


class EventBus:
    """
    Event Bus

    Subscribers are kept per event type in subscription order. publish_sync
    runs them on the caller's thread; publish hands them to a small worker
    pool. A failing subscriber is logged and the remaining ones still run.

    Usage example:
        bus = EventBus()
        sub_id = bus.subscribe(EventType.TRACK_STARTED, on_track_started)
        bus.publish_sync(EventType.TRACK_STARTED, session)
        bus.unsubscribe(sub_id)
    """

    def __init__(self, max_workers: int = 2):
        self._subscribers: Dict[EventType, Dict[str, Callable]] = {}
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="EventBus")
        self._sub_lock = threading.Lock()

    def subscribe(self, event_type: EventType, callback: Callable[[Any], None]) -> str:
        """Register callback for event_type; returns the subscription ID"""
        subscription_id = uuid.uuid4().hex
        with self._sub_lock:
            self._subscribers.setdefault(event_type, {})[subscription_id] = callback
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        with self._sub_lock:
            for callbacks in self._subscribers.values():
                if callbacks.pop(subscription_id, None) is not None:
                    return True
        return False

    def _callbacks_for(self, event_type: EventType) -> List[Callable]:
        with self._sub_lock:
            return list(self._subscribers.get(event_type, {}).values())

    def publish(self, event_type: EventType, data: Any = None) -> None:
        """Deliver on the worker pool; returns immediately"""
        for callback in self._callbacks_for(event_type):
            self._executor.submit(self._safe_call, event_type, callback, data)

    def publish_sync(self, event_type: EventType, data: Any = None) -> bool:
        """Deliver on the calling thread; returns once every subscriber ran"""
        for callback in self._callbacks_for(event_type):
            self._safe_call(event_type, callback, data)
        return True

    @staticmethod
    def _safe_call(event_type: EventType, callback: Callable, data: Any) -> None:
        try:
            callback(data)
        except Exception:
            # Not republished as ERROR_OCCURRED: a broken error listener would loop
            logger.exception("Subscriber for %s raised", event_type.value)

    def clear(self) -> None:
        with self._sub_lock:
            self._subscribers.clear()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
