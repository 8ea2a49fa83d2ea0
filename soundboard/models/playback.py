"""Playback target and runtime state owned by the orchestrator."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from soundboard.models.track import Track


class PlaybackStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class PlaybackTarget:
    """What is loaded: a button's tracks and the index being played."""
    button_id: str
    tracks: Tuple[Track, ...]
    current_index: int = 0

    @property
    def current_track(self) -> Track:
        return self.tracks[self.current_index]

    @property
    def track_count(self) -> int:
        return len(self.tracks)


@dataclass(frozen=True)
class ActivePlayback:
    """The single active target plus its status.

    Idle is the absence of an ActivePlayback, so a playing status always
    comes with a target. ``loaded`` is False when the current track has to
    be started again instead of resumed. ``token`` identifies one load so a
    late result can be told apart from a newer one.
    """
    target: PlaybackTarget
    status: PlaybackStatus
    token: int
    loaded: bool = False


@dataclass(frozen=True)
class PlaybackRuntimeState:
    """Snapshot read by the API layer."""
    status: PlaybackStatus
    is_playing: bool
    volume: float
    is_muted: bool
    position_seconds: float
    duration_seconds: float
    last_error: Optional[str]
    button_id: Optional[str] = None
    current_index: int = 0
    current_track: Optional[Track] = None
