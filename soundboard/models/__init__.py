"""Data models for tracks, playback, auth and the remote session."""
from soundboard.models.auth import AuthFlowState, Credential
from soundboard.models.playback import (
    ActivePlayback,
    PlaybackRuntimeState,
    PlaybackStatus,
    PlaybackTarget,
)
from soundboard.models.session import RemoteSessionSnapshot, SessionState
from soundboard.models.track import ButtonKind, SoundButton, SourceKind, Track

__all__ = [
    "ActivePlayback",
    "AuthFlowState",
    "ButtonKind",
    "Credential",
    "PlaybackRuntimeState",
    "PlaybackStatus",
    "PlaybackTarget",
    "RemoteSessionSnapshot",
    "SessionState",
    "SoundButton",
    "SourceKind",
    "Track",
]
