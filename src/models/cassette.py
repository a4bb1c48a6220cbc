"""
Cassette data model
"""

from dataclasses import dataclass, field
from typing import List, Optional
from datetime import datetime
import uuid

from models.track import Track


def _new_cassette_id() -> str:
    return f"cassette_{uuid.uuid4().hex[:12]}"


@dataclass
class Cassette:
    """
    Cassette data model

    A named, user-created track collection carrying a resume bookmark
    (last played track, position and timestamp).
    """

    id: str = field(default_factory=_new_cassette_id)
    name: str = ""
    tracks: List[Track] = field(default_factory=list)
    accent_color: str = "#FF7E57"
    created_at: datetime = field(default_factory=datetime.now)

    # Resume bookmark
    last_played_track_id: Optional[str] = None
    last_position: Optional[float] = None  # seconds
    last_played_at: Optional[datetime] = None

    @property
    def track_count(self) -> int:
        return len(self.tracks)

    @property
    def has_bookmark(self) -> bool:
        """Whether a track + position can be resumed"""
        return self.last_played_track_id is not None and self.last_position is not None

    def find_track(self, track_id: str) -> Optional[Track]:
        """Find a track of this cassette by id"""
        for track in self.tracks:
            if track.id == track_id:
                return track
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary"""
        return {
            'id': self.id,
            'name': self.name,
            'tracks': [t.to_dict() for t in self.tracks],
            'accent_color': self.accent_color,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'last_played_track_id': self.last_played_track_id,
            'last_position': self.last_position,
            'last_played_at': self.last_played_at.isoformat() if self.last_played_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Cassette':
        """Create Cassette object from dictionary"""
        created_at = datetime.now()
        if data.get('created_at'):
            try:
                created_at = datetime.fromisoformat(data['created_at'])
            except (ValueError, TypeError):
                pass

        last_played_at = None
        if data.get('last_played_at'):
            try:
                last_played_at = datetime.fromisoformat(data['last_played_at'])
            except (ValueError, TypeError):
                pass

        last_position = data.get('last_position')
        if last_position is not None:
            try:
                last_position = float(last_position)
            except (ValueError, TypeError):
                last_position = None

        last_played_track_id = data.get('last_played_track_id')
        if last_played_track_id is not None:
            last_played_track_id = str(last_played_track_id)

        tracks = []
        for item in data.get('tracks', []):
            if isinstance(item, dict) and item.get('id'):
                tracks.append(Track.from_dict(item))

        return cls(
            id=data.get('id') or _new_cassette_id(),
            name=data.get('name', ''),
            tracks=tracks,
            accent_color=data.get('accent_color') or '#FF7E57',
            created_at=created_at,
            last_played_track_id=last_played_track_id,
            last_position=last_position,
            last_played_at=last_played_at,
        )
