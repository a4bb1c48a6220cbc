"""
Cassette Library Service

Durable collection of user-created cassettes. The whole library is kept in
memory and written as one JSON document through the PersistenceGateway.

Writes are fire-and-forget on a single worker thread, so saving never
blocks playback controls. A failed write leaves the library dirty; the next
persist() writes the current state again.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional
import json
import logging
import threading

from core.event_bus import EventBus, EventType
from core.ports.storage import IKeyValueStore
from models.cassette import Cassette
from models.errors import PersistenceError
from models.track import Track

logger = logging.getLogger(__name__)


class CassetteLibrary:
    STORAGE_KEY = "cassette_library"

    # Fields update_cassette() may change
    EDITABLE_FIELDS = frozenset({
        "name",
        "tracks",
        "accent_color",
        "last_played_track_id",
        "last_position",
        "last_played_at",
    })

    def __init__(self, store: IKeyValueStore, event_bus: EventBus):
        self._store = store
        self._event_bus = event_bus

        self._lock = threading.RLock()
        self._cassettes: List[Cassette] = []
        self._active_id: Optional[str] = None

        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="CassetteWriter")
        self._pending: Optional[Future] = None
        self._dirty = False
        self._generation = 0

        self._load()

    # ===== Loading / saving =====

    def _load(self) -> None:
        try:
            raw = self._store.get(self.STORAGE_KEY)
        except PersistenceError as e:
            logger.warning("Failed to read cassette library: %s", e)
            return
        if not raw:
            return

        try:
            data = json.loads(raw.decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable cassette library: %s", e)
            return
        if not isinstance(data, dict):
            return

        cassettes = []
        for item in data.get("cassettes", []):
            if isinstance(item, dict):
                cassettes.append(Cassette.from_dict(item))

        active_id = data.get("active_cassette_id")
        with self._lock:
            self._cassettes = cassettes
            self._active_id = active_id if any(c.id == active_id for c in cassettes) else None

        logger.info("Loaded %s cassettes", len(cassettes))

    def _serialize(self) -> bytes:
        payload: Dict[str, Any] = {
            "cassettes": [c.to_dict() for c in self._cassettes],
            "active_cassette_id": self._active_id,
        }
        return json.dumps(payload, ensure_ascii=False).encode("utf-8")

    def persist(self) -> None:
        """Schedule a write of the current library"""
        with self._lock:
            raw = self._serialize()
            self._dirty = True
            self._generation += 1
            self._pending = self._writer.submit(self._write, raw, self._generation)

    def _write(self, raw: bytes, generation: int) -> None:
        try:
            self._store.set(self.STORAGE_KEY, raw)
        except PersistenceError as e:
            logger.warning("Cassette library not saved, will retry on next sync: %s", e)
            return
        with self._lock:
            if generation == self._generation:
                self._dirty = False

    @property
    def is_dirty(self) -> bool:
        """Whether the last scheduled write has not been confirmed"""
        with self._lock:
            return self._dirty

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for the scheduled write to finish"""
        with self._lock:
            pending = self._pending
        if pending is not None:
            pending.result(timeout=timeout)

    def shutdown(self) -> None:
        self._writer.shutdown(wait=True)

    # ===== Queries =====

    @staticmethod
    def _copy(cassette: Cassette) -> Cassette:
        return replace(cassette, tracks=list(cassette.tracks))

    def _find(self, cassette_id: str) -> Optional[Cassette]:
        for cassette in self._cassettes:
            if cassette.id == cassette_id:
                return cassette
        return None

    def get_cassette(self, cassette_id: str) -> Optional[Cassette]:
        with self._lock:
            cassette = self._find(cassette_id)
            return self._copy(cassette) if cassette else None

    def list_cassettes(self) -> List[Cassette]:
        """All cassettes in storage order"""
        with self._lock:
            return [self._copy(c) for c in self._cassettes]

    def __len__(self) -> int:
        with self._lock:
            return len(self._cassettes)

    @property
    def active_cassette_id(self) -> Optional[str]:
        with self._lock:
            return self._active_id

    @property
    def active_cassette(self) -> Optional[Cassette]:
        with self._lock:
            if self._active_id is None:
                return None
            return self.get_cassette(self._active_id)

    # ===== Mutations =====

    def add_cassette(
        self,
        name: str,
        tracks: List[Track],
        accent_color: Optional[str] = None,
    ) -> Cassette:
        cassette = Cassette(name=name, tracks=list(tracks))
        if accent_color:
            cassette.accent_color = accent_color

        with self._lock:
            self._cassettes.append(cassette)
            result = self._copy(cassette)
        self.persist()

        logger.info("Created cassette %s (%s tracks)", name, len(tracks))
        self._event_bus.publish_sync(EventType.CASSETTE_CREATED, result)
        return result

    def remove_cassette(self, cassette_id: str) -> bool:
        with self._lock:
            cassette = self._find(cassette_id)
            if cassette is None:
                return False
            self._cassettes.remove(cassette)
            was_active = self._active_id == cassette_id
            if was_active:
                self._active_id = None
        self.persist()

        self._event_bus.publish_sync(EventType.CASSETTE_DELETED, cassette_id)
        if was_active:
            self._event_bus.publish_sync(EventType.ACTIVE_CASSETTE_CHANGED, None)
        return True

    def update_cassette(self, cassette_id: str, **changes: Any) -> Optional[Cassette]:
        """
        Change fields of a cassette

        Returns:
            The updated cassette, or None when it does not exist or a
            field that is not editable was given
        """
        unknown = set(changes) - self.EDITABLE_FIELDS
        if unknown:
            logger.warning("Cannot update cassette fields: %s", sorted(unknown))
            return None

        with self._lock:
            cassette = self._find(cassette_id)
            if cassette is None:
                return None
            for key, value in changes.items():
                if key == "tracks":
                    value = list(value)
                setattr(cassette, key, value)
            result = self._copy(cassette)
        self.persist()

        self._event_bus.publish_sync(EventType.CASSETTE_UPDATED, result)
        return result

    def rename_cassette(self, cassette_id: str, name: str) -> Optional[Cassette]:
        return self.update_cassette(cassette_id, name=name)

    def record_playback(
        self,
        cassette_id: str,
        track_id: str,
        position: float,
        played_at: Optional[datetime] = None,
    ) -> bool:
        """Store the resume bookmark of a cassette"""
        with self._lock:
            cassette = self._find(cassette_id)
            if cassette is None:
                return False
            cassette.last_played_track_id = track_id
            cassette.last_position = max(0.0, float(position))
            cassette.last_played_at = played_at or datetime.now()
        self.persist()
        return True

    def set_active_cassette(self, cassette_id: Optional[str]) -> None:
        with self._lock:
            if cassette_id is not None and self._find(cassette_id) is None:
                logger.warning("Unknown cassette: %s", cassette_id)
                return
            if self._active_id == cassette_id:
                return
            self._active_id = cassette_id
        self.persist()
        self._event_bus.publish_sync(EventType.ACTIVE_CASSETTE_CHANGED, cassette_id)

    def load_cassette(self, cassette_id: str) -> Optional[Cassette]:
        """Mark a cassette active and return it"""
        cassette = self.get_cassette(cassette_id)
        if cassette is None:
            return None
        self.set_active_cassette(cassette_id)
        return cassette

    def clear_library(self) -> None:
        with self._lock:
            had_active = self._active_id is not None
            self._cassettes = []
            self._active_id = None
        self.persist()
        if had_active:
            self._event_bus.publish_sync(EventType.ACTIVE_CASSETTE_CHANGED, None)
