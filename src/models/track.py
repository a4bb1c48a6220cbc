"""
Track data model
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Track:
    """
    Track data model

    Immutable audio item. Two tracks are the same track when their ids match,
    regardless of the metadata they carry.
    """

    id: str
    title: str = field(default="", compare=False)
    artist: str = field(default="", compare=False)

    # Opaque source resolved by the audio engine (file path or URI)
    audio_source: str = field(default="", compare=False)
    artwork_source: Optional[str] = field(default=None, compare=False)
    accent_color: str = field(default="#666666", compare=False)

    # Optional metadata
    genre: Optional[str] = field(default=None, compare=False)
    year: Optional[str] = field(default=None, compare=False)
    album_name: Optional[str] = field(default=None, compare=False)
    duration_hint: Optional[float] = field(default=None, compare=False)  # seconds

    @property
    def display_name(self) -> str:
        """Display name"""
        if self.artist:
            return f"{self.artist} - {self.title}"
        return self.title

    @property
    def duration_str(self) -> str:
        """Formatted duration hint (m:ss), empty when unknown"""
        if not self.duration_hint:
            return ""
        total_seconds = int(self.duration_hint)
        return f"{total_seconds // 60}:{total_seconds % 60:02d}"

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'id': self.id,
            'title': self.title,
            'artist': self.artist,
            'audio_source': self.audio_source,
            'artwork_source': self.artwork_source,
            'accent_color': self.accent_color,
            'genre': self.genre,
            'year': self.year,
            'album_name': self.album_name,
            'duration_hint': self.duration_hint,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Track':
        """Create Track object from dictionary"""
        duration_hint = data.get('duration_hint')
        if duration_hint is not None:
            try:
                duration_hint = float(duration_hint)
            except (ValueError, TypeError):
                duration_hint = None

        return cls(
            id=str(data['id']),
            title=data.get('title', ''),
            artist=data.get('artist', ''),
            audio_source=data.get('audio_source', ''),
            artwork_source=data.get('artwork_source'),
            accent_color=data.get('accent_color') or '#666666',
            genre=data.get('genre'),
            year=data.get('year'),
            album_name=data.get('album_name'),
            duration_hint=duration_hint,
        )
