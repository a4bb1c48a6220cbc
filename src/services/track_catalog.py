"""
Track Catalog Service

Builds the tracks shipped with the player from the `catalog.tracks`
configuration. Each entry names an audio file under `catalog.directory`
plus its display metadata:

    catalog:
      directory: assets/mp3s
      tracks:
        - filename: Timeless.mp3
          title: Timeless
          artist: The Weeknd
          color: "#7E57FF"
          genre: Hip-Hop
          year: "2024"
"""

from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

from core.metadata import MetadataParser
from models.track import Track

logger = logging.getLogger(__name__)


class TrackCatalog:
    DEFAULT_COLOR = "#666666"
    DEFAULT_GENRE = "Unknown"

    def __init__(self, directory: str, entries: Optional[List[Dict[str, Any]]] = None):
        self._directory = Path(directory)
        self._entries = [e for e in (entries or []) if isinstance(e, dict) and e.get("filename")]
        self._tracks: Optional[List[Track]] = None

    @classmethod
    def from_config(cls, config) -> 'TrackCatalog':
        return cls(
            config.get("catalog.directory", "assets/mp3s"),
            config.get("catalog.tracks", []) or [],
        )

    def _build(self, entry: Dict[str, Any], index: int) -> Optional[Track]:
        filename = entry["filename"]
        path = self._directory / filename
        if not path.is_file():
            logger.warning("Audio file not found for catalog entry: %s", filename)
            return None

        year = entry.get("year")
        return Track(
            id=f"mp3_{filename}_{index}",
            title=entry.get("title") or path.stem,
            artist=entry.get("artist", ""),
            audio_source=str(path),
            artwork_source=entry.get("artwork"),
            accent_color=entry.get("color") or self.DEFAULT_COLOR,
            genre=entry.get("genre") or self.DEFAULT_GENRE,
            year=str(year) if year else str(date.today().year),
            album_name=entry.get("album_name"),
            duration_hint=MetadataParser.get_duration(str(path)),
        )

    def get_available_tracks(self) -> List[Track]:
        """Tracks whose audio file exists, in configuration order"""
        if self._tracks is None:
            tracks = []
            for index, entry in enumerate(self._entries):
                track = self._build(entry, index)
                if track is not None:
                    tracks.append(track)
            self._tracks = tracks
            logger.info("Catalog has %s of %s configured tracks", len(tracks), len(self._entries))
        return list(self._tracks)

    def get_track_by_filename(self, filename: str) -> Optional[Track]:
        for index, entry in enumerate(self._entries):
            if entry["filename"] == filename:
                return self._build(entry, index)
        return None

    def get_available_filenames(self) -> List[str]:
        return [entry["filename"] for entry in self._entries]

    def refresh(self) -> None:
        """Forget cached tracks so files are checked again"""
        self._tracks = None
