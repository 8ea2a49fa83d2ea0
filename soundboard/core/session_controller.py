"""
Remote session controller: owns the Connect session, its readiness state and
what was last started on it.

States: UNINITIALIZED -> INITIALIZING -> READY -> (OFFLINE | ERRORED).
An authentication failure from the session or from any control call clears
the stored credential and tears the session down.
"""
import asyncio
import dataclasses
import logging
from typing import Awaitable, Callable, Optional

from soundboard.config import TRANSFER_SETTLE_SEC
from soundboard.core.errors import (
    RemoteAuthExpired,
    RemoteError,
    RemoteNotReady,
    RemotePremiumRequired,
    RemoteUriMissing,
)
from soundboard.core.remote_session import RemoteSession
from soundboard.core.spotify_client import RemoteCatalogClient
from soundboard.core.token_store import TokenStore, now_ms
from soundboard.models.auth import Credential
from soundboard.models.session import RemoteSessionSnapshot, SessionState
from soundboard.models.track import Track

logger = logging.getLogger(__name__)

SessionFactory = Callable[[RemoteCatalogClient], RemoteSession]


class RemoteSessionController:
    """Single owner of the remote session; all remote playback goes through here."""

    def __init__(
        self,
        client: RemoteCatalogClient,
        token_store: TokenStore,
        session_factory: SessionFactory,
        settle_sec: float = TRANSFER_SETTLE_SEC,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._token_store = token_store
        self._session_factory = session_factory
        self._settle_sec = settle_sec
        self._sleep = sleep
        self._session: Optional[RemoteSession] = None
        self._state = SessionState.UNINITIALIZED
        self._snapshot = RemoteSessionSnapshot()
        self._start_lock = asyncio.Lock()
        self._volume: Optional[float] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def snapshot(self) -> RemoteSessionSnapshot:
        return self._snapshot

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY and self._snapshot.device_id is not None

    def _update(self, **changes) -> None:
        self._snapshot = dataclasses.replace(self._snapshot, **changes)

    # -- lifecycle --

    async def connect(self, credential: Credential) -> bool:
        """Start a session with ``credential``. Returns False if it could not start."""
        if not credential.is_valid(now_ms()):
            raise RemoteAuthExpired()
        if self._session is not None:
            await self.disconnect()
        self._client.set_token(credential.access_token)
        session = self._session_factory(self._client)
        session.add_listener("ready", self._on_ready)
        session.add_listener("not_ready", self._on_not_ready)
        session.add_listener("initialization_error", self._on_initialization_error)
        session.add_listener("authentication_error", self._on_authentication_error)
        session.add_listener("account_error", self._on_account_error)
        session.add_listener("playback_error", self._on_playback_error)
        session.add_listener("player_state_changed", self._on_player_state_changed)
        self._session = session
        self._state = SessionState.INITIALIZING
        self.last_error = None
        logger.info("Remote session initializing")
        connected = await session.connect()
        if not connected:
            logger.error("Failed to connect remote session (state %s)", self._state.value)
        return connected

    async def disconnect(self) -> None:
        """Stop the session and forget the device (used on logout)."""
        session = self._session
        self._session = None
        if session is not None:
            await session.disconnect()
        self._client.set_token(None)
        self._snapshot = RemoteSessionSnapshot()
        self._state = SessionState.UNINITIALIZED
        logger.info("Remote session disconnected")

    async def handle_auth_error(self, message: str) -> None:
        """Teardown for a RemoteAuthExpired raised outside playback (e.g. search)."""
        await self._teardown_auth(message)

    async def _teardown_auth(self, message: str) -> None:
        logger.error("Spotify authentication error: %s", message)
        self._token_store.clear()
        session = self._session
        self._session = None
        if session is not None:
            await session.disconnect()
        self._client.set_token(None)
        self._snapshot = RemoteSessionSnapshot()
        self._state = SessionState.ERRORED
        self.last_error = str(RemoteAuthExpired())

    # -- session signals --

    async def _on_ready(self, device_id: str) -> None:
        logger.info("Remote player ready with device id %s", device_id)
        self._update(device_id=device_id, is_ready=True)
        self._state = SessionState.READY
        if self._volume is not None:
            await self.set_remote_volume(self._volume)

    def _on_not_ready(self, device_id: str) -> None:
        logger.info("Remote device has gone offline: %s", device_id)
        self._update(device_id=None, is_ready=False)
        self._state = SessionState.OFFLINE

    def _on_initialization_error(self, message: str) -> None:
        logger.error("Remote session initialization error: %s", message)
        self._update(is_ready=False)
        self._state = SessionState.ERRORED
        self.last_error = message

    async def _on_authentication_error(self, message: str) -> None:
        await self._teardown_auth(message)

    def _on_account_error(self, message: str) -> None:
        logger.error("Remote account error (Premium required?): %s", message)
        self._update(is_ready=False)
        self._state = SessionState.ERRORED
        self.last_error = str(RemotePremiumRequired())

    def _on_playback_error(self, message: str) -> None:
        logger.error("Remote playback error: %s", message)

    def _on_player_state_changed(self, paused: bool) -> None:
        self._update(is_remote_paused=paused)

    # -- playback --

    def _require_ready(self) -> RemoteSession:
        if not self.is_ready or self._session is None:
            raise RemoteNotReady()
        return self._session

    async def _guard_auth(self, coro: Awaitable[None]) -> None:
        try:
            await coro
        except RemoteAuthExpired as e:
            await self._teardown_auth(str(e))
            raise

    async def play_remote(self, track: Track) -> None:
        """Resume ``track`` if it is the paused loaded one, else transfer and start it."""
        self._require_ready()
        if not track.remote_uri:
            raise RemoteUriMissing()
        async with self._start_lock:
            session = self._require_ready()
            snapshot = self._snapshot
            if snapshot.last_loaded_remote_uri == track.remote_uri and snapshot.is_remote_paused:
                try:
                    await session.resume()
                    self._update(is_remote_paused=False)
                    logger.info("Resumed remote track %s", track.remote_uri)
                    return
                except RemoteError as e:
                    logger.info("Resume failed, falling back to play from start: %s", e)

            device_id = snapshot.device_id
            logger.info("Transferring playback to device %s", device_id)
            await self._guard_auth(self._client.transfer_playback(device_id))
            await self._sleep(self._settle_sec)
            await self._guard_auth(self._client.start_playback(device_id, uris=[track.remote_uri]))
            self._update(last_loaded_remote_uri=track.remote_uri, is_remote_paused=False)
            logger.info("Remote track started: %s", track.remote_uri)

    async def pause_remote(self) -> None:
        session = self._require_ready()
        await self._guard_auth(session.pause())
        self._update(is_remote_paused=True)

    async def resume_remote(self) -> None:
        session = self._require_ready()
        await self._guard_auth(session.resume())
        self._update(is_remote_paused=False)

    async def stop_remote(self) -> None:
        """Forget the loaded track so the next play restarts; pause best-effort."""
        self._update(last_loaded_remote_uri=None)
        if not self.is_ready or self._session is None:
            return
        try:
            await self._guard_auth(self._session.pause())
            self._update(is_remote_paused=True)
        except RemoteError as e:
            logger.warning("Remote stop: pause failed: %s", e)

    async def set_remote_volume(self, level: float) -> None:
        """Best-effort; the level is remembered and re-sent when the device gets ready."""
        self._volume = max(0.0, min(1.0, level))
        if not self.is_ready or self._session is None:
            return
        try:
            await self._session.set_volume(self._volume)
        except RemoteError as e:
            logger.warning("Remote volume: %s", e)
