"""
Queue Manager Module

Ordered playback queue with shuffle/repeat policy. Navigation picks an
index and hands the track to the PlaybackController.
"""

from typing import TYPE_CHECKING, List, Optional
import random
import logging
import threading

from core.event_bus import EventBus, EventType
from models.session import QueueState, RepeatMode
from models.track import Track

if TYPE_CHECKING:
    from app.protocols import IPlaybackController

logger = logging.getLogger(__name__)

# NONE -> ALL -> ONE -> NONE
_REPEAT_CYCLE = {
    RepeatMode.NONE: RepeatMode.ALL,
    RepeatMode.ALL: RepeatMode.ONE,
    RepeatMode.ONE: RepeatMode.NONE,
}


class QueueManager:
    """
    Queue Manager

    While the queue is non-empty, current_index indexes a track;
    an empty queue has current_index 0.

    Example:
        queue = QueueManager(controller, event_bus)
        queue.load_playlist(tracks)
        queue.set_repeat_mode(RepeatMode.ALL)
        queue.play_next()
    """

    def __init__(
        self,
        controller: "IPlaybackController",
        event_bus: EventBus,
        rng: Optional[random.Random] = None,
    ):
        self._controller = controller
        self._event_bus = event_bus
        self._rng = rng or random.Random()

        self._lock = threading.RLock()
        self._tracks: List[Track] = []
        self._current_index = 0
        self._shuffle_enabled = False
        self._repeat_mode = RepeatMode.NONE

    # ===== State =====

    @property
    def state(self) -> QueueState:
        with self._lock:
            return QueueState(
                tracks=tuple(self._tracks),
                current_index=self._current_index,
                shuffle_enabled=self._shuffle_enabled,
                repeat_mode=self._repeat_mode,
            )

    @property
    def tracks(self) -> List[Track]:
        with self._lock:
            return self._tracks.copy()

    @property
    def current_index(self) -> int:
        with self._lock:
            return self._current_index

    @property
    def current_track(self) -> Optional[Track]:
        with self._lock:
            if 0 <= self._current_index < len(self._tracks):
                return self._tracks[self._current_index]
            return None

    @property
    def shuffle_enabled(self) -> bool:
        with self._lock:
            return self._shuffle_enabled

    @property
    def repeat_mode(self) -> RepeatMode:
        with self._lock:
            return self._repeat_mode

    def __len__(self) -> int:
        with self._lock:
            return len(self._tracks)

    def _notify(self) -> None:
        self._event_bus.publish_sync(EventType.QUEUE_CHANGED, self.state)

    # ===== Mutations =====

    def add_to_playlist(self, track: Track) -> None:
        with self._lock:
            self._tracks.append(track)
        self._notify()

    def remove_from_playlist(self, track_id: str) -> None:
        """
        Remove every track with this id

        current_index is not moved to follow the removal; it is only pulled
        back into range when it would point past the end.
        """
        with self._lock:
            remaining = [t for t in self._tracks if t.id != track_id]
            if len(remaining) == len(self._tracks):
                return
            self._tracks = remaining
            if self._current_index >= len(self._tracks):
                self._current_index = max(0, len(self._tracks) - 1)
        self._notify()

    def clear_playlist(self) -> None:
        with self._lock:
            self._tracks = []
            self._current_index = 0
        self._notify()

    def enqueue_next(self, track: Track) -> None:
        """Insert a track right after the current one"""
        with self._lock:
            if self._tracks:
                self._tracks.insert(self._current_index + 1, track)
            else:
                self._tracks.append(track)
        self._notify()

    def load_playlist(self, tracks: List[Track]) -> None:
        """Replace the queue wholesale"""
        with self._lock:
            self._tracks = list(tracks)
            self._current_index = 0
        self._notify()

    def toggle_shuffle(self) -> None:
        with self._lock:
            self._shuffle_enabled = not self._shuffle_enabled
        self._notify()

    def set_shuffle(self, enabled: bool) -> None:
        with self._lock:
            if self._shuffle_enabled == enabled:
                return
            self._shuffle_enabled = enabled
        self._notify()

    def set_repeat_mode(self, mode: RepeatMode) -> None:
        with self._lock:
            self._repeat_mode = mode
        self._notify()

    def cycle_repeat_mode(self) -> RepeatMode:
        with self._lock:
            self._repeat_mode = _REPEAT_CYCLE[self._repeat_mode]
            mode = self._repeat_mode
        self._notify()
        return mode

    def shuffle_playlist(self) -> None:
        """Reorder the whole queue (Fisher-Yates) and restart at index 0"""
        with self._lock:
            tracks = self._tracks
            for i in range(len(tracks) - 1, 0, -1):
                j = self._rng.randint(0, i)
                tracks[i], tracks[j] = tracks[j], tracks[i]
            self._current_index = 0
        self._notify()

    # ===== Navigation =====
    #
    # The controller is called outside the queue lock: its end-of-track
    # path calls back into play_next() while holding its own lock.

    def jump_to_track(self, index: int, autoplay: Optional[bool] = None) -> None:
        """Load the track at index; out-of-range indexes are ignored"""
        with self._lock:
            if not 0 <= index < len(self._tracks):
                logger.debug("Ignoring jump to index %s (queue size %s)", index, len(self._tracks))
                return
            track = self._select(index)
        self._load(track, autoplay)

    def play_next(self, autoplay: Optional[bool] = None) -> None:
        """
        Advance per shuffle/repeat policy

        Stops at the end unless repeat is ALL. autoplay=None keeps the
        controller's current playing state.
        """
        with self._lock:
            size = len(self._tracks)
            if size == 0:
                return

            if self._shuffle_enabled:
                index = self._rng.randrange(size)
            elif self._current_index + 1 < size:
                index = self._current_index + 1
            elif self._repeat_mode == RepeatMode.ALL:
                index = 0
            else:
                logger.debug("End of queue reached")
                return

            track = self._select(index)
        self._load(track, autoplay)

    def play_previous(self, autoplay: Optional[bool] = None) -> None:
        """Step back, wrapping to the last track regardless of repeat mode"""
        with self._lock:
            size = len(self._tracks)
            if size == 0:
                return
            index = self._current_index - 1 if self._current_index > 0 else size - 1
            track = self._select(index)
        self._load(track, autoplay)

    def peek_next(self) -> Optional[Track]:
        """Following track in queue order; None at the end"""
        with self._lock:
            if self._current_index + 1 < len(self._tracks):
                return self._tracks[self._current_index + 1]
            return None

    def peek_previous(self) -> Optional[Track]:
        with self._lock:
            size = len(self._tracks)
            if size == 0:
                return None
            index = self._current_index - 1 if self._current_index > 0 else size - 1
            return self._tracks[index]

    def set_current_index(self, index: int) -> bool:
        """Move the cursor without loading anything"""
        with self._lock:
            if not 0 <= index < len(self._tracks):
                return False
            self._current_index = index
        self._notify()
        return True

    def index_of(self, track_id: str) -> Optional[int]:
        with self._lock:
            for i, track in enumerate(self._tracks):
                if track.id == track_id:
                    return i
        return None

    def _select(self, index: int) -> Track:
        self._current_index = index
        return self._tracks[index]

    def _load(self, track: Track, autoplay: Optional[bool]) -> None:
        if autoplay is None:
            autoplay = self._controller.is_playing
        self._notify()
        self._controller.load_track(track, autoplay=autoplay)

    # ===== Restore =====

    def restore(self, state: QueueState) -> None:
        """Reapply a saved queue without touching playback"""
        with self._lock:
            self._tracks = list(state.tracks)
            index = state.current_index
            self._current_index = index if 0 <= index < len(self._tracks) else 0
            self._shuffle_enabled = state.shuffle_enabled
            self._repeat_mode = state.repeat_mode
        self._notify()
