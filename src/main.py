"""
Cassette Player - Main Entry Point

Runs the playback engine headless on a Qt event loop.
"""

import argparse
import logging
import os
import signal
import sys

# Add src to path
src_path = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, src_path)

from PyQt6.QtCore import QCoreApplication

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cassette player playback engine")
    parser.add_argument(
        "--config",
        default="config/default_config.yaml",
        help="Configuration file (default: %(default)s)",
    )
    parser.add_argument("--backend", help="Audio backend, overrides audio.backend")
    parser.add_argument(
        "--play",
        action="store_true",
        help="Queue the track catalog when nothing is queued and start playing",
    )
    parser.add_argument("--cassette", metavar="ID", help="Insert a cassette on startup")
    return parser.parse_args(argv)


def main(argv=None):
    """Application entry point"""
    args = parse_args(argv)

    from services.config_service import ConfigService
    config = ConfigService(args.config)
    if args.backend:
        config.set("audio.backend", args.backend)

    logging.basicConfig(
        level=str(config.get("app.log_level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = QCoreApplication(sys.argv)
    app.setApplicationName(config.get("app.name", "Cassette Player"))

    # Create dependency container (composition root)
    from app.container_factory import AppContainerFactory
    container = AppContainerFactory.create(args.config)

    from ui.playback_ticker import PlaybackTicker
    ticker = PlaybackTicker(
        container.engine,
        container.sfx,
        interval_ms=int(config.get("audio.status_interval_ms", 200)),
    )
    ticker.start()

    facade = container.facade

    from app.events import EventType
    facade.subscribe(
        EventType.TRACK_STARTED,
        lambda session: logger.info("Now playing: %s", session.current_track.display_name),
    )

    if args.cassette:
        facade.insert_cassette(args.cassette)
    elif args.play:
        if not facade.snapshot().queue.tracks:
            facade.load_playlist(facade.get_available_tracks())
        facade.play()

    # The ticker keeps the interpreter running often enough to see Ctrl+C
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    app.aboutToQuit.connect(ticker.stop)
    app.aboutToQuit.connect(container.cleanup)

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
