"""Tracks and sound buttons (owned by the button library, read by playback)."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class SourceKind(str, Enum):
    """Which backend plays a track."""
    LOCAL = "local"
    REMOTE = "spotify"


class ButtonKind(str, Enum):
    SINGLE = "single"
    PLAYLIST = "playlist"


@dataclass(frozen=True)
class Track:
    """One playable entry: a local file/stream or a Spotify track."""
    display_name: str
    source_kind: SourceKind = SourceKind.LOCAL
    locator: str = ""  # URL or path for local tracks
    remote_id: str = ""
    remote_uri: str = ""  # spotify:track:<id>

    @property
    def is_remote(self) -> bool:
        return self.source_kind is SourceKind.REMOTE


@dataclass(frozen=True)
class SoundButton:
    """Pre-configured button: a single sound or a playlist of tracks."""
    id: str
    name: str
    kind: ButtonKind = ButtonKind.SINGLE
    tracks: Tuple[Track, ...] = field(default_factory=tuple)
    color: Optional[str] = None
