"""
Metadata Parser Module

Reads duration and basic tags from audio files so configured catalog
entries can carry a duration hint before the engine decodes them.
"""

from dataclasses import dataclass
from typing import Optional
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


@dataclass
class AudioMetadata:
    """Audio metadata"""

    title: str = ""
    artist: str = ""
    album: str = ""
    genre: str = ""
    year: Optional[int] = None
    duration_ms: int = 0
    format: str = ""
    file_path: str = ""

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000.0


class MetadataParser:
    """
    Metadata parser

    Uses mutagen's easy tag interface, which maps ID3, Vorbis and MP4
    atoms onto the same keys.

    Usage example:
        metadata = MetadataParser.parse("tapes/side_a.mp3")
        if metadata:
            print(metadata.duration_seconds)
    """

    SUPPORTED_FORMATS = {'.mp3', '.flac', '.wav', '.ogg', '.m4a',
                         '.aac', '.opus'}

    @classmethod
    def parse(cls, file_path: str) -> Optional[AudioMetadata]:
        """
        Parse audio file metadata

        Returns:
            AudioMetadata: Metadata object, None if the file is missing,
            unsupported or unreadable
        """
        path = Path(file_path)

        if not path.exists():
            return None

        suffix = path.suffix.lower()
        if suffix not in cls.SUPPORTED_FORMATS:
            return None

        try:
            from mutagen import File

            audio = File(file_path, easy=True)
            if audio is None:
                return None

            metadata = AudioMetadata(file_path=file_path, format=suffix[1:].upper())
            if audio.info:
                metadata.duration_ms = int(audio.info.length * 1000)

            tags = audio.tags or {}
            metadata.title = cls._first(tags, 'title') or path.stem
            metadata.artist = cls._first(tags, 'artist')
            metadata.album = cls._first(tags, 'album')
            metadata.genre = cls._first(tags, 'genre')

            date = cls._first(tags, 'date')
            if date:
                try:
                    metadata.year = int(date[:4])
                except ValueError as e:
                    logger.debug("Year parse failed for %s: %s", file_path, e)

            return metadata

        except Exception as e:
            logger.debug("Parsing failed: %s, Error: %s", file_path, e)
            return None

    @staticmethod
    def _first(tags, key: str) -> str:
        try:
            values = tags.get(key)
        except Exception:
            return ""
        if not values:
            return ""
        return str(values[0])

    @classmethod
    def get_duration(cls, file_path: str) -> Optional[float]:
        """Duration in seconds, None when unknown"""
        metadata = cls.parse(file_path)
        if metadata is None or metadata.duration_ms <= 0:
            return None
        return metadata.duration_seconds
