"""Remote (Spotify Connect) session state."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    OFFLINE = "offline"
    ERRORED = "errored"


@dataclass(frozen=True)
class RemoteSessionSnapshot:
    """Device readiness plus what was last started on it.

    ``last_loaded_remote_uri`` decides between resuming and restarting a
    remote track.
    """
    device_id: Optional[str] = None
    is_ready: bool = False
    last_loaded_remote_uri: Optional[str] = None
    is_remote_paused: bool = False
