"""Playback: button play/pause toggle, stop, next/previous, seek, volume, mute."""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from soundboard.api.state import AppState, get_state
from soundboard.models.playback import PlaybackRuntimeState
from soundboard.models.track import Track

router = APIRouter()


def _track_to_dict(t: Track | None):
    if t is None:
        return None
    return {
        "name": t.display_name,
        "type": t.source_kind.value,
        "url": t.locator,
        "spotify_id": t.remote_id,
        "spotify_uri": t.remote_uri,
    }


def _runtime_to_dict(s: PlaybackRuntimeState) -> dict:
    return {
        "status": s.status.value,
        "is_playing": s.is_playing,
        "volume": s.volume,
        "is_muted": s.is_muted,
        "position_seconds": s.position_seconds,
        "duration_seconds": s.duration_seconds,
        "error": s.last_error,
        "button_id": s.button_id,
        "track_index": s.current_index,
        "track": _track_to_dict(s.current_track),
    }


class SeekBody(BaseModel):
    position_seconds: float


class VolumeBody(BaseModel):
    volume: float


@router.get("")
def get_playback(state: AppState = Depends(get_state)):
    """Return the current playback state."""
    return _runtime_to_dict(state.orchestrator.runtime_state())


@router.post("/buttons/{button_id}/play")
async def play_button(button_id: str, state: AppState = Depends(get_state)):
    """Play a button, or pause/resume it when it is already the active one."""
    button = state.library.get(button_id)
    if button is None:
        raise HTTPException(status_code=404, detail="Button not found")
    await state.orchestrator.play(button)
    return _runtime_to_dict(state.orchestrator.runtime_state())


@router.post("/stop")
async def playback_stop(state: AppState = Depends(get_state)):
    await state.orchestrator.stop()
    return _runtime_to_dict(state.orchestrator.runtime_state())


@router.post("/next")
async def playback_next(state: AppState = Depends(get_state)):
    await state.orchestrator.next()
    return _runtime_to_dict(state.orchestrator.runtime_state())


@router.post("/previous")
async def playback_previous(state: AppState = Depends(get_state)):
    await state.orchestrator.previous()
    return _runtime_to_dict(state.orchestrator.runtime_state())


@router.post("/seek")
async def playback_seek(body: SeekBody, state: AppState = Depends(get_state)):
    """Seek within the current local track (ignored for Spotify tracks)."""
    await state.orchestrator.seek(body.position_seconds)
    return _runtime_to_dict(state.orchestrator.runtime_state())


@router.post("/volume")
async def playback_volume(body: VolumeBody, state: AppState = Depends(get_state)):
    """Set volume 0..1 (out-of-range values are clamped)."""
    await state.orchestrator.set_volume(body.volume)
    return _runtime_to_dict(state.orchestrator.runtime_state())


@router.post("/mute")
async def playback_mute(state: AppState = Depends(get_state)):
    await state.orchestrator.toggle_mute()
    return _runtime_to_dict(state.orchestrator.runtime_state())


@router.delete("/error", status_code=204)
async def clear_error(state: AppState = Depends(get_state)):
    state.orchestrator.clear_error()
