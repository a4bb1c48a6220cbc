"""
Core Module Tests
"""

import sqlite3
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml


class TestEventBus:
    """Event Bus Tests"""

    def test_subscribe_and_publish(self, event_bus):
        """Test subscription and publication."""
        from core.event_bus import EventType

        received_data = []

        def callback(data):
            received_data.append(data)

        event_bus.subscribe(EventType.TRACK_STARTED, callback)
        event_bus.publish_sync(EventType.TRACK_STARTED, {"title": "Test Song"})

        assert len(received_data) == 1
        assert received_data[0]["title"] == "Test Song"

    def test_unsubscribe(self, event_bus):
        """Test unsubscription."""
        from core.event_bus import EventType

        received_data = []
        sub_id = event_bus.subscribe(EventType.TRACK_STARTED, received_data.append)

        assert event_bus.unsubscribe(sub_id) is True
        assert event_bus.unsubscribe(sub_id) is False
        event_bus.publish_sync(EventType.TRACK_STARTED, {"title": "Test"})

        assert received_data == []

    def test_instances_are_isolated(self):
        from core.event_bus import EventBus, EventType

        bus1, bus2 = EventBus(), EventBus()
        received = []
        bus1.subscribe(EventType.QUEUE_CHANGED, received.append)
        bus2.publish_sync(EventType.QUEUE_CHANGED, "other")

        assert received == []
        bus1.shutdown()
        bus2.shutdown()

    def test_failing_callback_does_not_stop_delivery(self, event_bus):
        from core.event_bus import EventType

        received = []

        def broken(data):
            raise ValueError("listener bug")

        event_bus.subscribe(EventType.ERROR_OCCURRED, broken)
        event_bus.subscribe(EventType.ERROR_OCCURRED, received.append)
        event_bus.publish_sync(EventType.ERROR_OCCURRED, "boom")

        assert received == ["boom"]

    def test_clear_drops_all_subscribers(self, event_bus):
        from core.event_bus import EventType

        received = []
        event_bus.subscribe(EventType.RATE_CHANGED, received.append)
        event_bus.clear()
        event_bus.publish_sync(EventType.RATE_CHANGED, 1.5)

        assert received == []

    def test_async_publish(self, event_bus):
        import threading
        from core.event_bus import EventType

        done = threading.Event()
        event_bus.subscribe(EventType.POWER_CHANGED, lambda on: done.set())
        event_bus.publish(EventType.POWER_CHANGED, True)

        assert done.wait(timeout=2)


class TestMetadataParser:
    """Metadata Parser Tests"""

    def test_parse_nonexistent_file(self):
        from core.metadata import MetadataParser

        assert MetadataParser.parse("nonexistent.mp3") is None
        assert MetadataParser.get_duration("nonexistent.mp3") is None

    def test_unsupported_format(self, tmp_path):
        from core.metadata import MetadataParser

        path = tmp_path / "notes.txt"
        path.write_text("not audio")

        assert MetadataParser.parse(str(path)) is None

    def test_unreadable_audio(self, tmp_path):
        from core.metadata import MetadataParser

        path = tmp_path / "broken.ogg"
        path.write_bytes(b"\x00" * 64)

        assert MetadataParser.get_duration(str(path)) is None


class TestDatabaseManager:
    """Database Manager Tests"""

    def test_singleton(self, tmp_path):
        from core.database import DatabaseManager

        db1 = DatabaseManager(str(tmp_path / "player.db"))
        db2 = DatabaseManager()
        assert db1 is db2
        assert db1.db_path == str(tmp_path / "player.db")

    def test_schema_created(self, tmp_path):
        from core.database import DatabaseManager

        db = DatabaseManager(str(tmp_path / "player.db"))
        row = db.fetch_one("SELECT name FROM sqlite_master WHERE type='table' AND name='app_state'")
        assert row["name"] == "app_state"

    def test_insert_and_fetch(self, tmp_path):
        from core.database import DatabaseManager

        db = DatabaseManager(str(tmp_path / "player.db"))
        db.execute("INSERT INTO app_state(key, value) VALUES(?, ?)", ("k", b"v"))

        rows = db.fetch_all("SELECT key, value FROM app_state")
        assert rows == [{"key": "k", "value": b"v"}]

    def test_default_path_in_data_dir(self, tmp_path):
        from core.database import DatabaseManager

        db = DatabaseManager()
        assert Path(db.db_path).name == "cassette_player.db"
        assert Path(db.db_path).parent.name == "cassette-player"


class TestPersistenceGateway:

    def test_in_memory(self):
        from services.persistence_gateway import PersistenceGateway

        store = PersistenceGateway()
        assert store.is_durable is False
        assert store.get("missing") is None

        store.set("key", b"value")
        assert store.get("key") == b"value"

        store.remove("key")
        assert store.get("key") is None

    def test_durable_round_trip(self, tmp_path):
        from core.database import DatabaseManager
        from services.persistence_gateway import PersistenceGateway

        db = DatabaseManager(str(tmp_path / "player.db"))
        PersistenceGateway(db).set("playback.session", b'{"volume": 0.5}')

        reopened = PersistenceGateway(db)
        assert reopened.is_durable
        assert reopened.get("playback.session") == b'{"volume": 0.5}'

    def test_write_failure_raises_persistence_error(self):
        from models.errors import PersistenceError
        from services.persistence_gateway import PersistenceGateway

        db = MagicMock()
        db.execute.side_effect = sqlite3.OperationalError("disk I/O error")
        store = PersistenceGateway(db)

        with pytest.raises(PersistenceError):
            store.set("key", b"value")

    def test_read_failure_uses_in_memory_copy(self):
        from services.persistence_gateway import PersistenceGateway

        db = MagicMock()
        store = PersistenceGateway(db)
        store.set("key", b"value")

        db.fetch_one.side_effect = sqlite3.OperationalError("database is locked")
        assert store.get("key") == b"value"


class TestConfigService:
    """Configuration Service Tests"""

    def test_singleton(self, tmp_path):
        from services.config_service import ConfigService

        config1 = ConfigService(str(tmp_path / "config.yaml"))
        config2 = ConfigService(str(tmp_path / "config.yaml"))
        assert config1 is config2

    def test_defaults(self, tmp_path):
        from services.config_service import ConfigService

        config = ConfigService(str(tmp_path / "config.yaml"))

        assert config.get("audio.backend") == "pygame"
        assert config.get("playback.seek_step_seconds") == 10
        assert config.get("memory.sync_interval_seconds") == 5
        assert config.get("sfx.clips.insert").endswith(".mp3")
        assert config.get("missing.key", "fallback") == "fallback"

    def test_partial_file_merges_with_defaults(self, tmp_path):
        from services.config_service import ConfigService

        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"playback": {"seek_step_seconds": 15}}))

        config = ConfigService(str(path))

        assert config.get("playback.seek_step_seconds") == 15
        assert config.get("playback.default_volume") == 1.0

    def test_set_save_reload(self, tmp_path):
        from services.config_service import ConfigService

        path = tmp_path / "config.yaml"
        config = ConfigService(str(path))
        config.set("audio.backend", "vlc")

        assert config.save() is True

        ConfigService.reset_instance()
        assert ConfigService(str(path)).get("audio.backend") == "vlc"

    def test_template_path_saves_to_user_dir(self, tmp_path, monkeypatch):
        from services.config_service import ConfigService

        monkeypatch.chdir(tmp_path)
        template = Path("config/default_config.yaml")
        template.parent.mkdir()
        template.write_text(yaml.safe_dump({"app": {"log_level": "DEBUG"}}))

        config = ConfigService(str(template))
        assert config.get("app.log_level") == "DEBUG"

        config.set("app.log_level", "WARNING")
        config.save()

        assert yaml.safe_load(template.read_text()) == {"app": {"log_level": "DEBUG"}}
        assert config.user_config_path.exists()

    def test_get_float(self, tmp_path):
        from services.config_service import ConfigService

        config = ConfigService(str(tmp_path / "config.yaml"))
        config.set("playback.seek_step_seconds", "fast")

        assert config.get_float("playback.seek_step_seconds", 10.0) == 10.0
        assert config.get_float("playback.default_rate", 1.0) == 1.0

    def test_non_mapping_file_is_ignored(self, tmp_path):
        from services.config_service import ConfigService

        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        config = ConfigService(str(path))
        assert config.get("audio.backend") == "pygame"

    def test_reset(self, tmp_path):
        from services.config_service import ConfigService

        config = ConfigService(str(tmp_path / "config.yaml"))
        config.set("audio.backend", "vlc")
        config.reset()
        assert config.get("audio.backend") == "pygame"


class TestModels:
    """Data model behavior"""

    def test_track_identity_is_id(self):
        from models.track import Track

        assert Track(id="a", title="One") == Track(id="a", title="Other")
        assert Track(id="a") != Track(id="b")

    def test_track_display(self):
        from models.track import Track

        track = Track(id="a", title="Song", artist="Band", duration_hint=125.0)
        assert track.display_name == "Band - Song"
        assert track.duration_str == "2:05"
        assert Track(id="b", title="Solo").display_name == "Solo"

    def test_cassette_bookmark(self):
        from models.cassette import Cassette

        cassette = Cassette(name="Tape")
        assert not cassette.has_bookmark
        cassette.last_played_track_id = "t0"
        cassette.last_position = 0.0
        assert cassette.has_bookmark

    def test_cassette_from_dict_tolerates_bad_dates(self):
        from models.cassette import Cassette

        cassette = Cassette.from_dict({
            "id": "cassette_x",
            "name": "Old",
            "created_at": "yesterday",
            "last_played_at": "not a date",
            "tracks": [{"id": "t0", "title": "Track"}, "garbage"],
        })

        assert cassette.id == "cassette_x"
        assert cassette.last_played_at is None
        assert cassette.track_count == 1

    def test_cassette_from_dict_coerces_position(self):
        from models.cassette import Cassette

        text = Cassette.from_dict({"last_played_track_id": 7, "last_position": "95.5"})
        assert text.last_position == 95.5
        assert text.last_played_track_id == "7"

        garbage = Cassette.from_dict({"last_played_track_id": "t0", "last_position": "soon"})
        assert garbage.last_position is None
        assert not garbage.has_bookmark

    def test_session_display(self):
        from models.session import PlaybackSession

        session = PlaybackSession(current_time=75.0, duration=300.0, volume=0.45)
        assert session.progress == 0.25
        assert session.formatted_time == "1:15 / 5:00"
        assert session.volume_percent == 45
        assert PlaybackSession().progress == 0.0

    def test_queue_state_position(self):
        from models.session import QueueState
        from models.track import Track

        assert QueueState().position_display == "0 / 0"
        assert QueueState().current_track is None
        state = QueueState(tracks=(Track(id="a"), Track(id="b")), current_index=1)
        assert state.position_display == "2 / 2"

    def test_error_info_kind(self):
        from models.errors import ErrorInfo, ErrorKind, LoadError, PlayError

        assert ErrorInfo.from_exception(LoadError("x")).kind == ErrorKind.LOAD_ERROR
        assert ErrorInfo.from_exception(PlayError("y"), "t1").track_id == "t1"
