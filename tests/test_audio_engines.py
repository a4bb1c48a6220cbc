"""
Audio Engine Tests

The pygame engine is exercised against a mocked pygame.mixer.music so no
audio device or media file is needed.
"""

import time
from unittest.mock import MagicMock

import pytest


def _drain(engine, statuses, count=1, timeout=2.0):
    """Poll until count statuses arrived (the pygame loader is a thread)"""
    deadline = time.monotonic() + timeout
    while len(statuses) < count and time.monotonic() < deadline:
        engine.poll()
        time.sleep(0.01)
    return statuses


class TestEngineFactory:
    """Audio Engine Factory Tests"""

    def test_pygame_capabilities(self):
        from core.engine_factory import AudioEngineFactory

        assert AudioEngineFactory.get_backend_info("pygame") == {"volume": True, "rate": False}

    def test_vlc_capabilities(self):
        from core.engine_factory import AudioEngineFactory, _ENGINE_REGISTRY

        if "vlc" not in _ENGINE_REGISTRY:
            pytest.skip("python-vlc is not installed")
        assert AudioEngineFactory.get_backend_info("vlc") == {"volume": True, "rate": True}

    def test_unknown_backend(self):
        from core.engine_factory import AudioEngineFactory

        assert AudioEngineFactory.get_backend_info("winamp") == {}
        assert AudioEngineFactory.is_available("winamp") is False

    def test_available_backends_in_priority_order(self):
        from core.engine_factory import AudioEngineFactory

        available = AudioEngineFactory.get_available_backends()
        order = AudioEngineFactory.PRIORITY_ORDER
        assert available == [b for b in order if b in available]

    def test_fallback_to_next_backend(self, monkeypatch):
        from core import engine_factory
        from core.engine_factory import AudioEngineFactory
        from fakes import FakeEngine

        class BrokenEngine(FakeEngine):
            def __init__(self):
                raise RuntimeError("no output device")

        monkeypatch.setitem(engine_factory._ENGINE_REGISTRY, "pygame", BrokenEngine)
        monkeypatch.setitem(engine_factory._ENGINE_REGISTRY, "vlc", FakeEngine)

        engine = AudioEngineFactory.create("pygame")

        assert isinstance(engine, FakeEngine)

    def test_require_rate_skips_pygame(self, monkeypatch):
        from core import engine_factory
        from core.engine_factory import AudioEngineFactory
        from fakes import FakeEngine

        from core.audio_engine import AudioEngineBase

        class VolumeOnlyEngine(FakeEngine):
            supports_rate = AudioEngineBase.supports_rate

        class RateEngine(FakeEngine):
            def supports_rate(self):
                return True

        monkeypatch.setitem(engine_factory._ENGINE_REGISTRY, "pygame", VolumeOnlyEngine)
        monkeypatch.setitem(engine_factory._ENGINE_REGISTRY, "vlc", RateEngine)

        engine = AudioEngineFactory.create("pygame", require_rate=True)

        assert isinstance(engine, RateEngine)

    def test_no_backend_available(self, monkeypatch):
        from core import engine_factory
        from core.engine_factory import AudioEngineFactory

        monkeypatch.setattr(engine_factory, "_ENGINE_REGISTRY", {})

        with pytest.raises(RuntimeError):
            AudioEngineFactory.create("pygame")


@pytest.fixture
def music(monkeypatch):
    """Mocked pygame.mixer.music with the mixer treated as initialized"""
    pygame = pytest.importorskip("pygame")
    from core import audio_engine

    fake_music = MagicMock()
    fake_music.get_pos.return_value = 0
    fake_music.get_busy.return_value = True
    monkeypatch.setattr(pygame.mixer, "music", fake_music)
    monkeypatch.setattr(audio_engine, "_acquire_mixer", lambda: True)
    monkeypatch.setattr(audio_engine, "_release_mixer", lambda: None)
    monkeypatch.setattr(
        audio_engine.PygameAudioEngine, "_get_duration_from_file", lambda self, path: 120.0
    )
    return fake_music


@pytest.fixture
def pygame_engine(music):
    from core.audio_engine import PygameAudioEngine

    engine = PygameAudioEngine()
    statuses = []
    engine.set_on_status(statuses.append)
    yield engine, statuses
    engine.cleanup()


class TestPygameAudioEngine:

    def test_capabilities(self, pygame_engine):
        engine, _ = pygame_engine
        assert engine.get_engine_name() == "pygame"
        assert engine.supports_volume()
        assert not engine.supports_rate()

    def test_load_reports_through_poll(self, pygame_engine, music):
        engine, statuses = pygame_engine

        handle = engine.load("tape.mp3")
        _drain(engine, statuses)

        first = statuses[0]
        assert first.handle == handle
        assert first.loaded
        assert first.duration == 120.0
        music.load.assert_called_once_with("tape.mp3")

    def test_load_failure_reports_error(self, pygame_engine, music):
        engine, statuses = pygame_engine
        music.load.side_effect = RuntimeError("unknown format")

        handle = engine.load("broken.mp3")
        _drain(engine, statuses)

        assert statuses[0].handle == handle
        assert "unknown format" in statuses[0].error
        assert not statuses[0].loaded

    def test_play_seek_pause(self, pygame_engine, music):
        engine, statuses = pygame_engine
        handle = engine.load("tape.mp3")
        _drain(engine, statuses)

        engine.seek(handle, 30.0)
        engine.play(handle)
        music.play.assert_called_with(start=30.0)

        engine.pause(handle)
        music.pause.assert_called_once()
        engine.play(handle)
        music.unpause.assert_called_once()

    def test_play_rejects_stale_handle(self, pygame_engine):
        from core.audio_engine import EngineHandle

        engine, _ = pygame_engine
        with pytest.raises(RuntimeError):
            engine.play(EngineHandle(id=999, source="other.mp3"))

    def test_release_is_safe_for_unknown_handle(self, pygame_engine):
        from core.audio_engine import EngineHandle

        engine, _ = pygame_engine
        engine.release(EngineHandle(id=999, source="other.mp3"))

    def test_finish_detected_by_sample(self, pygame_engine, music):
        engine, statuses = pygame_engine
        handle = engine.load("tape.mp3")
        _drain(engine, statuses)
        engine.play(handle)

        music.get_busy.return_value = False
        statuses.clear()
        engine.poll()

        assert statuses[-1].did_just_finish
        assert statuses[-1].current_time == 120.0

    def test_position_sample(self, pygame_engine, music):
        engine, statuses = pygame_engine
        handle = engine.load("tape.mp3")
        _drain(engine, statuses)
        engine.seek(handle, 10.0)
        engine.play(handle)

        music.get_pos.return_value = 2500
        statuses.clear()
        engine.poll()

        assert statuses[-1].playing
        assert statuses[-1].current_time == pytest.approx(12.5)

    def test_set_rate_not_supported(self, pygame_engine):
        engine, statuses = pygame_engine
        handle = engine.load("tape.mp3")
        _drain(engine, statuses)

        with pytest.raises(NotImplementedError):
            engine.set_rate(handle, 1.5)

    def test_volume(self, pygame_engine, music):
        engine, statuses = pygame_engine
        handle = engine.load("tape.mp3")
        _drain(engine, statuses)

        engine.set_volume(handle, 1.4)

        assert engine.volume == 1.0
        music.set_volume.assert_called_with(1.0)


class TestPygameClipBackend:

    def test_clip_lifecycle(self, monkeypatch):
        pygame = pytest.importorskip("pygame")
        from core import audio_engine

        channel = MagicMock()
        channel.get_busy.return_value = True
        sound = MagicMock()
        sound.play.return_value = channel
        monkeypatch.setattr(audio_engine, "_acquire_mixer", lambda: True)
        monkeypatch.setattr(audio_engine, "_release_mixer", lambda: None)
        monkeypatch.setattr(pygame.mixer, "Sound", MagicMock(return_value=sound))

        backend = audio_engine.PygameClipBackend()
        clip = backend.create("insert.mp3")
        clip.play()
        assert clip.is_playing

        clip.release()
        assert not clip.is_loaded
        assert not clip.is_playing
        sound.stop.assert_called_once()
        backend.cleanup()

    def test_no_free_channel(self, monkeypatch):
        pygame = pytest.importorskip("pygame")
        from core import audio_engine

        sound = MagicMock()
        sound.play.return_value = None
        monkeypatch.setattr(audio_engine, "_acquire_mixer", lambda: True)
        monkeypatch.setattr(audio_engine, "_release_mixer", lambda: None)
        monkeypatch.setattr(pygame.mixer, "Sound", MagicMock(return_value=sound))

        clip = audio_engine.PygameClipBackend().create("eject.mp3")
        with pytest.raises(RuntimeError):
            clip.play()
