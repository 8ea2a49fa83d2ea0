"""Spotify login (PKCE), callback, logout, status, search and devices."""
import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, RedirectResponse

from soundboard.api.state import AppState, get_state
from soundboard.config import SOUNDBOARD_WEB_ORIGIN, SPOTIFY_DEVICE_NAME
from soundboard.core.errors import (
    AuthError,
    RemoteAuthExpired,
    RemoteError,
    http_status_for,
)
from soundboard.models.session import SessionState

logger = logging.getLogger(__name__)

router = APIRouter()


def _page(message: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(f"<body><p>{html.escape(message)}</p></body>", status_code=status_code)


def _back_to_web(result: str) -> Optional[RedirectResponse]:
    if not SOUNDBOARD_WEB_ORIGIN:
        return None
    return RedirectResponse(url=f"{SOUNDBOARD_WEB_ORIGIN.rstrip('/')}/?spotify={result}", status_code=302)


async def _ensure_connected(state: AppState) -> None:
    credential = state.authenticator.stored_credential()
    if credential is None or state.remote.state not in (SessionState.UNINITIALIZED, SessionState.ERRORED):
        return
    try:
        await state.remote.connect(credential)
    except RemoteError as e:
        logger.warning("Could not connect Spotify session: %s", e)


@router.get("/auth-url")
def get_auth_url(state: AppState = Depends(get_state)):
    """Return the PKCE authorization URL and whether the user is logged in."""
    if not state.authenticator.is_configured:
        return {"auth_url": None, "error": "SPOTIFY_CLIENT_ID not set", "logged_in": False}
    if state.authenticator.stored_credential() is not None:
        return {"auth_url": None, "logged_in": True}
    try:
        url = state.authenticator.begin_authentication()
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Could not start login: {e}")
    return {"auth_url": url, "logged_in": False}


@router.get("/login")
async def login(state: AppState = Depends(get_state)):
    """Redirect to Spotify, unless a valid credential is already stored."""
    if not state.authenticator.is_configured:
        raise HTTPException(status_code=503, detail="SPOTIFY_CLIENT_ID not set")
    if state.authenticator.stored_credential() is not None:
        await _ensure_connected(state)
        return _back_to_web("success") or _page("Spotify is already linked.")
    try:
        url = state.authenticator.begin_authentication()
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"Could not start login: {e}")
    return RedirectResponse(url=url, status_code=302)


@router.get("/callback")
async def spotify_callback(
    code: str | None = None,
    state_param: str | None = Query(None, alias="state"),
    error: str | None = None,
    state: AppState = Depends(get_state),
):
    """Exchange the code (once), start the remote session, then redirect to the web app."""
    if error:
        logger.error("Spotify authentication error: %s", error)
        return _back_to_web("error") or _page(f"Spotify login failed: {error}", status_code=400)
    if not code:
        return _page("Missing authorization code. Try logging in again.", status_code=400)
    try:
        credential = await state.authenticator.complete_authentication(code, state_param)
    except AuthError as e:
        return _page(str(e), status_code=http_status_for(e))

    try:
        await state.remote.connect(credential)
    except RemoteError as e:
        logger.warning("Logged in but Spotify session did not start: %s", e)
    return _back_to_web("success") or _page("Spotify linked successfully. You can close this window.")


@router.post("/logout")
async def logout(state: AppState = Depends(get_state)):
    """Forget the token and stop the remote session."""
    await state.orchestrator.stop()
    await state.remote.disconnect()
    state.token_store.clear()
    return {"ok": True}


@router.get("/status")
def get_status(state: AppState = Depends(get_state)):
    """Login and remote session state."""
    snapshot = state.remote.snapshot
    return {
        "configured": state.authenticator.is_configured,
        "logged_in": state.authenticator.stored_credential() is not None,
        "session_state": state.remote.state.value,
        "is_ready": state.remote.is_ready,
        "device_name": SPOTIFY_DEVICE_NAME,
        "device_id": snapshot.device_id,
        "last_loaded_uri": snapshot.last_loaded_remote_uri,
        "is_paused": snapshot.is_remote_paused,
        "error": state.remote.last_error,
    }


def _map_track(item: dict) -> dict:
    album = item.get("album") or {}
    images = album.get("images") or []
    return {
        "id": item.get("id", ""),
        "uri": item.get("uri", ""),
        "name": item.get("name", ""),
        "artist_name": ", ".join(a.get("name", "") for a in item.get("artists") or []),
        "album_name": album.get("name", ""),
        "image_url": images[0]["url"] if images else None,
        "duration_ms": int(item.get("duration_ms") or 0),
    }


def _map_playlist(item: dict) -> dict:
    images = item.get("images") or []
    return {
        "id": item.get("id", ""),
        "uri": item.get("uri", ""),
        "name": item.get("name", ""),
        "owner_name": (item.get("owner") or {}).get("display_name", ""),
        "image_url": images[0]["url"] if images else None,
        "track_count": int((item.get("tracks") or {}).get("total") or 0),
    }


@router.get("/search")
async def search(
    q: str,
    type: str = "track",
    limit: int = Query(20, ge=1, le=50),
    state: AppState = Depends(get_state),
):
    """Search Spotify tracks or playlists."""
    if type not in ("track", "playlist"):
        raise HTTPException(status_code=400, detail="type must be 'track' or 'playlist'")
    if not q.strip():
        return []
    try:
        items = await state.client.search(q, type_=type, limit=limit)
    except RemoteAuthExpired as e:
        await state.remote.handle_auth_error(str(e))
        raise
    mapper = _map_track if type == "track" else _map_playlist
    return [mapper(item) for item in items]


@router.get("/devices")
async def list_devices(state: AppState = Depends(get_state)):
    """Spotify Connect devices visible to the account."""
    try:
        devices = await state.client.devices()
    except RemoteAuthExpired as e:
        await state.remote.handle_auth_error(str(e))
        raise
    return [
        {
            "id": d.get("id"),
            "name": d.get("name", ""),
            "type": d.get("type", ""),
            "is_active": bool(d.get("is_active")),
            "is_soundboard": d.get("name") == SPOTIFY_DEVICE_NAME,
        }
        for d in devices
    ]
