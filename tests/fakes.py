"""Test doubles for the Spotify Web API client and the Connect session."""
from typing import Dict, List, Optional

from soundboard.core.errors import RemoteNotReady
from soundboard.core.remote_session import RemoteSession
from soundboard.core.token_store import now_ms
from soundboard.models.auth import Credential
from soundboard.models.track import ButtonKind, SoundButton, SourceKind, Track


class FakeCatalogClient:
    """Records every call; ``failures[name]`` is raised instead of succeeding."""

    def __init__(self) -> None:
        self.token: Optional[str] = None
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.device_list: List[dict] = []
        self.playback: Optional[dict] = None
        self.search_items: List[dict] = []

    @property
    def has_token(self) -> bool:
        return self.token is not None

    def set_token(self, access_token: Optional[str]) -> None:
        self.token = access_token or None

    def calls_named(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    def _record(self, name: str, *args) -> None:
        if self.token is None:
            raise RemoteNotReady()
        self.calls.append((name,) + args)
        exc = self.failures.get(name)
        if exc is not None:
            raise exc

    async def search(self, query: str, type_: str = "track", limit: int = 20) -> List[dict]:
        self._record("search", query, type_, limit)
        return self.search_items

    async def transfer_playback(self, device_id: str) -> None:
        self._record("transfer", device_id)

    async def start_playback(self, device_id: str, uris: Optional[List[str]] = None) -> None:
        self._record("start", device_id, uris)

    async def pause_playback(self, device_id: Optional[str] = None) -> None:
        self._record("pause", device_id)

    async def set_volume(self, volume_percent: int, device_id: Optional[str] = None) -> None:
        self._record("volume", volume_percent, device_id)

    async def devices(self) -> List[dict]:
        self._record("devices")
        return self.device_list

    async def current_playback(self) -> Optional[dict]:
        self._record("current_playback")
        return self.playback


class FakeRemoteSession(RemoteSession):
    """Becomes ready with ``device_id`` on connect (unless device_id is None)."""

    def __init__(self, device_id: Optional[str] = "device-1") -> None:
        super().__init__()
        self.device_id = device_id
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    def _record(self, name: str, *args) -> None:
        self.calls.append((name,) + args)
        exc = self.failures.get(name)
        if exc is not None:
            raise exc

    async def connect(self) -> bool:
        self._record("connect")
        if self.device_id:
            await self._emit("ready", self.device_id)
        return True

    async def disconnect(self) -> None:
        self._record("disconnect")

    async def pause(self) -> None:
        self._record("pause")

    async def resume(self) -> None:
        self._record("resume")

    async def set_volume(self, level: float) -> None:
        self._record("volume", level)

    async def emit(self, event: str, *args) -> None:
        await self._emit(event, *args)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def valid_credential(token: str = "access-token") -> Credential:
    return Credential(access_token=token, expires_at_ms=now_ms() + 3600 * 1000)


def local_track(locator: str) -> Track:
    return Track(display_name=locator, source_kind=SourceKind.LOCAL, locator=locator)


def remote_track(track_id: str) -> Track:
    return Track(
        display_name=f"Spotify {track_id}",
        source_kind=SourceKind.REMOTE,
        remote_id=track_id,
        remote_uri=f"spotify:track:{track_id}",
    )


def make_button(button_id: str, *tracks: Track) -> SoundButton:
    kind = ButtonKind.PLAYLIST if len(tracks) > 1 else ButtonKind.SINGLE
    return SoundButton(id=button_id, name=f"Button {button_id}", kind=kind, tracks=tuple(tracks))
