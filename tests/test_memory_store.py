"""
Cassette Library and Memory Store Tests
"""

import json
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from core.event_bus import EventType
from fakes import FakeClock, make_tracks
from models.errors import PersistenceError
from models.session import PlayerPhase


@pytest.fixture
def store():
    from services.persistence_gateway import PersistenceGateway

    return PersistenceGateway()


@pytest.fixture
def library(store, event_bus):
    from services.cassette_library import CassetteLibrary

    lib = CassetteLibrary(store, event_bus)
    yield lib
    lib.shutdown()


class TestCassetteLibrary:
    """Cassette CRUD and durability"""

    def test_add_and_list(self, library, tracks, event_bus):
        created = []
        event_bus.subscribe(EventType.CASSETTE_CREATED, created.append)

        cassette = library.add_cassette("Road Trip", tracks[:2], accent_color="#00AAFF")

        assert cassette.id.startswith("cassette_")
        assert cassette.accent_color == "#00AAFF"
        assert [c.name for c in library.list_cassettes()] == ["Road Trip"]
        assert created[0].id == cassette.id
        assert len(library) == 1

    def test_returned_cassettes_are_copies(self, library, tracks):
        cassette = library.add_cassette("Mix", tracks[:2])

        copy = library.get_cassette(cassette.id)
        copy.tracks.append(tracks[3])
        copy.name = "Changed"

        stored = library.get_cassette(cassette.id)
        assert stored.name == "Mix"
        assert stored.track_count == 2

    def test_round_trip_through_store(self, store, library, tracks, event_bus):
        from services.cassette_library import CassetteLibrary

        cassette = library.add_cassette("Side A", tracks)
        library.set_active_cassette(cassette.id)
        library.record_playback(cassette.id, "t2", 64.5, datetime(2024, 5, 1, 12, 0))
        library.flush(timeout=5)

        reloaded = CassetteLibrary(store, event_bus)
        try:
            restored = reloaded.get_cassette(cassette.id)
            assert reloaded.active_cassette_id == cassette.id
            assert [t.id for t in restored.tracks] == ["t0", "t1", "t2", "t3"]
            assert restored.tracks[0].title == "Track 0"
            assert restored.last_played_track_id == "t2"
            assert restored.last_position == 64.5
            assert restored.last_played_at == datetime(2024, 5, 1, 12, 0)
        finally:
            reloaded.shutdown()

    def test_stored_document_shape(self, store, library, tracks):
        cassette = library.add_cassette("Shape", tracks[:1])
        library.flush(timeout=5)

        data = json.loads(store.get("cassette_library").decode("utf-8"))
        assert data["active_cassette_id"] is None
        assert data["cassettes"][0]["id"] == cassette.id
        assert data["cassettes"][0]["tracks"][0]["audio_source"] == "/music/t0.mp3"

    def test_unreadable_document_gives_empty_library(self, store, event_bus):
        from services.cassette_library import CassetteLibrary

        store.set("cassette_library", b"{not json")
        lib = CassetteLibrary(store, event_bus)
        try:
            assert lib.list_cassettes() == []
        finally:
            lib.shutdown()

    def test_remove_active_cassette_clears_active(self, library, tracks, event_bus):
        changes = []
        event_bus.subscribe(EventType.ACTIVE_CASSETTE_CHANGED, changes.append)
        cassette = library.add_cassette("Gone", tracks[:1])
        library.set_active_cassette(cassette.id)

        assert library.remove_cassette(cassette.id) is True

        assert library.active_cassette_id is None
        assert changes == [cassette.id, None]
        assert library.remove_cassette(cassette.id) is False

    def test_update_cassette(self, library, tracks, event_bus):
        updated = []
        event_bus.subscribe(EventType.CASSETTE_UPDATED, updated.append)
        cassette = library.add_cassette("Old", tracks[:1])

        result = library.rename_cassette(cassette.id, "New")
        library.update_cassette(cassette.id, tracks=tracks[:3])

        assert result.name == "New"
        assert library.get_cassette(cassette.id).track_count == 3
        assert len(updated) == 2

    def test_update_rejects_unknown_fields(self, library, tracks):
        cassette = library.add_cassette("Strict", tracks[:1])

        assert library.update_cassette(cassette.id, id="other", name="Changed") is None

        stored = library.get_cassette(cassette.id)
        assert stored.id == cassette.id
        assert stored.name == "Strict"

    def test_update_missing_cassette(self, library):
        assert library.update_cassette("missing", name="x") is None

    def test_set_unknown_active_is_ignored(self, library, tracks):
        cassette = library.add_cassette("Known", tracks[:1])
        library.set_active_cassette(cassette.id)

        library.set_active_cassette("missing")

        assert library.active_cassette_id == cassette.id

    def test_load_cassette_marks_active(self, library, tracks):
        cassette = library.add_cassette("Deck", tracks[:2])
        loaded = library.load_cassette(cassette.id)
        assert loaded.id == cassette.id
        assert library.active_cassette.id == cassette.id
        assert library.load_cassette("missing") is None

    def test_clear_library(self, library, tracks):
        cassette = library.add_cassette("One", tracks[:1])
        library.set_active_cassette(cassette.id)
        library.clear_library()
        assert len(library) == 0
        assert library.active_cassette_id is None

    def test_failed_write_stays_dirty_until_next_persist(self, event_bus, tracks):
        from services.cassette_library import CassetteLibrary

        store = MagicMock()
        store.get.return_value = None
        store.set.side_effect = PersistenceError("disk full")
        lib = CassetteLibrary(store, event_bus)
        try:
            lib.add_cassette("Unsaved", tracks[:1])
            lib.flush(timeout=5)
            assert lib.is_dirty

            store.set.side_effect = None
            lib.persist()
            lib.flush(timeout=5)
            assert not lib.is_dirty
            assert store.set.call_count == 2
        finally:
            lib.shutdown()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def player(engine, event_bus, library, clock):
    """Controller, queue and memory store wired like the container does"""
    from services.memory_store import MemoryStore
    from services.playback_controller import PlaybackController
    from services.queue_manager import QueueManager

    controller = PlaybackController(engine, event_bus)
    queue = QueueManager(controller, event_bus)
    controller.attach_queue(queue)
    memory = MemoryStore(library, controller, queue, event_bus, sync_interval_seconds=5, clock=clock)
    memory.attach()
    yield controller, queue, memory
    memory.shutdown()
    controller.shutdown()


def _insert(library, queue, controller, engine, cassette, index=0):
    library.set_active_cassette(cassette.id)
    queue.load_playlist(cassette.tracks)
    queue.jump_to_track(index, autoplay=True)
    engine.emit_loaded()


class TestMemorySync:
    """Checkpoints while playing"""

    def test_checkpoint_on_interval(self, player, library, engine, clock, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Commute", tracks)
        _insert(library, queue, controller, engine, cassette)

        clock.advance(3)
        engine.emit_progress(3.0)
        assert library.get_cassette(cassette.id).last_position is None

        clock.advance(3)
        engine.emit_progress(6.0)

        stored = library.get_cassette(cassette.id)
        assert stored.last_played_track_id == "t0"
        assert stored.last_position == 6.0
        assert stored.last_played_at is not None

    def test_no_checkpoint_on_every_tick(self, player, library, engine, clock, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Ticks", tracks)
        _insert(library, queue, controller, engine, cassette)

        positions = []
        for second in range(1, 12):
            clock.advance(1)
            engine.emit_progress(float(second))
            positions.append(library.get_cassette(cassette.id).last_position)

        assert sorted(set(p for p in positions if p is not None)) == [5.0, 10.0]

    def test_pause_checkpoints_immediately(self, player, library, engine, clock, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Pause", tracks)
        _insert(library, queue, controller, engine, cassette, index=1)

        clock.advance(1)
        engine.emit_progress(12.0)
        controller.pause()

        stored = library.get_cassette(cassette.id)
        assert stored.last_played_track_id == "t1"
        assert stored.last_position == 12.0

    def test_power_off_records_nothing(self, player, library, engine, clock, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Off", tracks)
        _insert(library, queue, controller, engine, cassette)
        engine.emit_progress(20.0)

        controller.set_power_state(False)
        clock.advance(30)
        engine.emit_progress(20.0, playing=False)

        assert library.get_cassette(cassette.id).last_position is None
        assert memory.checkpoint() is False

    def test_no_active_cassette_records_nothing(self, player, library, engine, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Inactive", tracks)
        queue.load_playlist(cassette.tracks)
        queue.jump_to_track(0, autoplay=True)
        engine.emit_loaded()

        controller.pause()

        assert memory.checkpoint() is False
        assert library.get_cassette(cassette.id).last_position is None

    def test_track_not_on_cassette_is_skipped(self, player, library, engine, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Short", tracks[:1])
        library.set_active_cassette(cassette.id)
        controller.load_track(tracks[3], autoplay=True)
        engine.emit_loaded()

        assert memory.checkpoint() is False

    def test_loading_track_keeps_bookmark(self, player, library, engine, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Long", tracks)
        library.record_playback(cassette.id, "t2", 120.0)
        memory.resume_on_start()
        assert controller.phase == PlayerPhase.LOADING

        assert memory.checkpoint() is False

        stored = library.get_cassette(cassette.id)
        assert stored.last_played_track_id == "t2"
        assert stored.last_position == 120.0

    def test_errored_track_keeps_bookmark(self, player, library, engine, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Scratched", tracks)
        library.record_playback(cassette.id, "t2", 120.0)
        memory.resume_on_start()
        engine.emit_error("file not found")
        assert controller.phase == PlayerPhase.ERRORED

        assert memory.checkpoint() is False
        assert library.get_cassette(cassette.id).last_position == 120.0

    def test_update_playback_memory(self, player, library, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Manual", tracks)

        assert memory.update_playback_memory(cassette.id, "t3", 99.0) is True
        assert memory.update_playback_memory("missing", "t3", 1.0) is False
        assert library.get_cassette(cassette.id).last_position == 99.0


class TestLastPlayed:

    def test_most_recent_wins(self, player, library, tracks):
        controller, queue, memory = player
        first = library.add_cassette("First", tracks)
        second = library.add_cassette("Second", tracks)
        now = datetime.now()
        library.record_playback(first.id, "t0", 1.0, now)
        library.record_playback(second.id, "t0", 1.0, now - timedelta(days=1))

        assert memory.get_last_played_cassette().id == first.id

    def test_falls_back_to_first(self, player, library, tracks):
        controller, queue, memory = player
        first = library.add_cassette("First", tracks)
        library.add_cassette("Second", tracks)

        assert memory.get_last_played_cassette().id == first.id

    def test_empty_library(self, player):
        controller, queue, memory = player
        assert memory.get_last_played_cassette() is None


class TestResumeOnStart:

    def test_resume_from_bookmark(self, player, library, engine, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Resume", tracks)
        library.record_playback(cassette.id, "t2", 42.0)

        assert memory.resume_on_start() is True

        assert queue.current_index == 2
        assert library.active_cassette_id == cassette.id
        assert controller.current_track == tracks[2]
        assert controller.phase == PlayerPhase.LOADING

        engine.emit_loaded()
        assert controller.session.current_time == 42.0
        assert not controller.is_playing

    def test_resume_without_bookmark_starts_at_zero(self, player, library, engine, tracks):
        controller, queue, memory = player
        library.add_cassette("Fresh", tracks)

        assert memory.resume_on_start() is True

        assert controller.current_track == tracks[0]
        engine.emit_loaded()
        assert controller.session.current_time == 0.0

    def test_resume_bookmark_track_missing(self, player, library, engine, tracks):
        controller, queue, memory = player
        cassette = library.add_cassette("Edited", tracks[:2])
        library.record_playback(cassette.id, "t9", 30.0)

        assert memory.resume_on_start() is True
        assert controller.current_track == tracks[0]

    def test_nothing_to_resume(self, player):
        controller, queue, memory = player
        assert memory.resume_on_start() is False
        assert controller.current_track is None

    def test_skipped_when_track_bound(self, player, library, tracks):
        controller, queue, memory = player
        library.add_cassette("Later", tracks)
        other = make_tracks(6)[5]
        controller.load_track(other)

        assert memory.resume_on_start() is False
        assert controller.current_track == other

    def test_skipped_when_queue_holds_other_music(self, player, library, tracks):
        controller, queue, memory = player
        library.add_cassette("Tape", tracks[:2])
        queue.load_playlist(make_tracks(6)[4:])

        assert memory.resume_on_start() is False
        assert controller.current_track is None

    def test_resume_from_stored_text_position(self, engine, event_bus, tracks):
        from services.cassette_library import CassetteLibrary
        from services.memory_store import MemoryStore
        from services.persistence_gateway import PersistenceGateway
        from services.playback_controller import PlaybackController
        from services.queue_manager import QueueManager

        store = PersistenceGateway()
        store.set("cassette_library", json.dumps({
            "active_cassette_id": None,
            "cassettes": [{
                "id": "cassette_old",
                "name": "Imported",
                "tracks": [t.to_dict() for t in tracks],
                "last_played_track_id": "t1",
                "last_position": "95.5",
                "last_played_at": "2024-05-01T12:00:00",
            }],
        }).encode("utf-8"))
        library = CassetteLibrary(store, event_bus)
        controller = PlaybackController(engine, event_bus)
        queue = QueueManager(controller, event_bus)
        controller.attach_queue(queue)
        memory = MemoryStore(library, controller, queue, event_bus)
        try:
            assert memory.resume_on_start() is True
            engine.emit_loaded()

            assert controller.current_track == tracks[1]
            assert controller.session.current_time == 95.5
        finally:
            controller.shutdown()
            library.shutdown()
