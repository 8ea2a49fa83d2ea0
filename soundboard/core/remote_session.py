"""
Remote playback session: the Spotify Connect device that plays remote tracks.

RemoteSession is the contract the session controller consumes (connect,
pause, resume, set_volume plus readiness/error/state signals).

ConnectDeviceSession implements it for a Connect receiver such as librespot
or spotifyd registered under a known device name. It polls the Web API for
the device list and the current playback and turns changes into signals.
"""
import asyncio
import logging
from typing import Optional

from soundboard.config import SPOTIFY_DEVICE_NAME, SPOTIFY_DEVICE_POLL_SEC
from soundboard.core.errors import (
    RemoteAuthExpired,
    RemoteError,
    RemotePremiumRequired,
    RemoteUnavailable,
)
from soundboard.core.events import EventEmitter
from soundboard.core.spotify_client import RemoteCatalogClient

logger = logging.getLogger(__name__)


class RemoteSession(EventEmitter):
    """Signals:

    ready(device_id), not_ready(device_id), initialization_error(message),
    authentication_error(message), account_error(message),
    playback_error(message), player_state_changed(paused)
    """

    events = (
        "ready",
        "not_ready",
        "initialization_error",
        "authentication_error",
        "account_error",
        "playback_error",
        "player_state_changed",
    )

    async def connect(self) -> bool:
        raise NotImplementedError

    async def disconnect(self) -> None:
        raise NotImplementedError

    async def pause(self) -> None:
        raise NotImplementedError

    async def resume(self) -> None:
        raise NotImplementedError

    async def set_volume(self, level: float) -> None:
        """``level`` is 0..1."""
        raise NotImplementedError


class ConnectDeviceSession(RemoteSession):
    """Session bound to the Connect device named ``device_name``."""

    def __init__(
        self,
        client: RemoteCatalogClient,
        device_name: str = SPOTIFY_DEVICE_NAME,
        poll_interval: float = SPOTIFY_DEVICE_POLL_SEC,
    ) -> None:
        super().__init__()
        self._client = client
        self._device_name = device_name
        self._poll_interval = poll_interval
        self._device_id: Optional[str] = None
        self._paused: Optional[bool] = None
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def device_id(self) -> Optional[str]:
        return self._device_id

    async def connect(self) -> bool:
        """First poll, then keep polling in the background. False if the first poll failed."""
        try:
            await self._poll_once()
        except RemoteAuthExpired as e:
            await self._emit("authentication_error", str(e))
            return False
        except RemotePremiumRequired as e:
            await self._emit("account_error", str(e))
            return False
        except RemoteError as e:
            await self._emit("initialization_error", str(e))
            return False
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info("Connect session started for device %r", self._device_name)
        return True

    async def disconnect(self) -> None:
        # Called from inside the poll loop on an auth error: the loop exits by itself
        if self._poll_task is asyncio.current_task():
            self._poll_task = None
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        self._device_id = None
        self._paused = None

    async def pause(self) -> None:
        await self._client.pause_playback(self._device_id)

    async def resume(self) -> None:
        await self._client.start_playback(self._device_id)

    async def set_volume(self, level: float) -> None:
        await self._client.set_volume(round(level * 100), self._device_id)

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self._poll_once()
            except RemoteAuthExpired as e:
                logger.error("Connect session: authentication failed, stopping poll")
                await self._emit("authentication_error", str(e))
                return
            except RemotePremiumRequired as e:
                await self._emit("account_error", str(e))
                return
            except RemoteUnavailable as e:
                logger.debug("Connect session: transient poll failure: %s", e)
            except RemoteError as e:
                logger.warning("Connect session: poll failed: %s", e)
                await self._emit("playback_error", str(e))

    async def _poll_once(self) -> None:
        devices = await self._client.devices()
        match = next(
            (d for d in devices if d.get("name") == self._device_name and d.get("id")),
            None,
        )
        if match is None:
            if self._device_id is not None:
                gone = self._device_id
                self._device_id = None
                self._paused = None
                logger.info("Connect device %r went offline (%s)", self._device_name, gone)
                await self._emit("not_ready", gone)
            return
        if match["id"] != self._device_id:
            self._device_id = match["id"]
            logger.info("Connect device %r ready with id %s", self._device_name, self._device_id)
            await self._emit("ready", self._device_id)

        playback = await self._client.current_playback()
        if not playback or (playback.get("device") or {}).get("id") != self._device_id:
            return
        paused = not bool(playback.get("is_playing"))
        if paused != self._paused:
            self._paused = paused
            await self._emit("player_state_changed", paused)
