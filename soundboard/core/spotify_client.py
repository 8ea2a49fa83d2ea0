"""Spotify Web API client via Spotipy; bearer token from the PKCE login.

Spotipy is blocking, so every call runs in the default executor. Errors are
classified (see core.errors) before they leave this module.
"""
import asyncio
import functools
import logging
from typing import Any, Callable, List, Optional

import spotipy

from soundboard.config import SPOTIFY_REQUEST_TIMEOUT
from soundboard.core.errors import RemoteNotReady, classify_remote_exception

logger = logging.getLogger(__name__)

SEARCH_TYPES = ("track", "playlist")


class RemoteCatalogClient:
    """Authenticated search and playback-control calls."""

    def __init__(
        self,
        requests_timeout: int = SPOTIFY_REQUEST_TIMEOUT,
        client_factory: Callable[..., spotipy.Spotify] = spotipy.Spotify,
    ) -> None:
        self._requests_timeout = requests_timeout
        self._client_factory = client_factory
        self._sp: Optional[spotipy.Spotify] = None

    @property
    def has_token(self) -> bool:
        return self._sp is not None

    def set_token(self, access_token: Optional[str]) -> None:
        """Use ``access_token`` for subsequent calls; None drops the client."""
        if not access_token:
            self._sp = None
            return
        self._sp = self._client_factory(auth=access_token, requests_timeout=self._requests_timeout)

    async def _call(self, description: str, fn_name: str, *args: Any, **kwargs: Any) -> Any:
        sp = self._sp
        if sp is None:
            raise RemoteNotReady("Spotify not linked. Use the Connect page to log in.")
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(getattr(sp, fn_name), *args, **kwargs))
        except Exception as e:
            error = classify_remote_exception(e)
            logger.warning("Spotify %s failed: %s (%s)", description, e, type(error).__name__)
            raise error from e

    async def search(self, query: str, type_: str = "track", limit: int = 20) -> List[dict]:
        """Search tracks or playlists; returns the item list."""
        if type_ not in SEARCH_TYPES:
            raise ValueError(f"search type must be one of {SEARCH_TYPES}")
        results = await self._call("search", "search", q=query, type=type_, limit=limit)
        items = ((results or {}).get(f"{type_}s") or {}).get("items") or []
        # Spotify returns null entries for unavailable playlists
        return [item for item in items if item]

    async def transfer_playback(self, device_id: str) -> None:
        """Make ``device_id`` the active device without starting playback."""
        await self._call("transfer", "transfer_playback", device_id=device_id, force_play=False)

    async def start_playback(self, device_id: str, uris: Optional[List[str]] = None) -> None:
        """Start ``uris`` on the device; without uris, resume what is loaded."""
        await self._call("play", "start_playback", device_id=device_id, uris=uris)

    async def pause_playback(self, device_id: Optional[str] = None) -> None:
        await self._call("pause", "pause_playback", device_id=device_id)

    async def set_volume(self, volume_percent: int, device_id: Optional[str] = None) -> None:
        volume_percent = max(0, min(100, int(volume_percent)))
        await self._call("volume", "volume", volume_percent, device_id=device_id)

    async def devices(self) -> List[dict]:
        result = await self._call("devices", "devices")
        return (result or {}).get("devices") or []

    async def current_playback(self) -> Optional[dict]:
        return await self._call("current playback", "current_playback")
