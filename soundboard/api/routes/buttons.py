"""Sound button CRUD (in memory; lost on restart)."""
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from soundboard.api.state import AppState, get_state
from soundboard.models.track import ButtonKind, SoundButton, SourceKind, Track

router = APIRouter()

# Spotify web URL or URI for a track
_SPOTIFY_TRACK_REGEX = re.compile(
    r"^(?:https?://(?:open\.)?spotify\.com/track/|spotify:track:)([a-zA-Z0-9]+)(?:\?|$)",
    re.IGNORECASE,
)


class TrackBody(BaseModel):
    name: str
    type: SourceKind = SourceKind.LOCAL
    url: str = ""
    spotify_id: str = ""
    spotify_uri: str = ""


class CreateButtonBody(BaseModel):
    name: str
    type: ButtonKind = ButtonKind.SINGLE
    tracks: List[TrackBody] = []
    color: Optional[str] = None


class UpdateButtonBody(BaseModel):
    name: Optional[str] = None
    type: Optional[ButtonKind] = None
    tracks: Optional[List[TrackBody]] = None
    color: Optional[str] = None


def _to_track(body: TrackBody) -> Track:
    """Build a Track; a Spotify URL/URI in spotify_uri fills in the id."""
    remote_id, remote_uri = body.spotify_id, body.spotify_uri
    if body.type is SourceKind.REMOTE:
        match = _SPOTIFY_TRACK_REGEX.match(remote_uri.strip()) if remote_uri else None
        if match:
            remote_id = remote_id or match.group(1)
            remote_uri = f"spotify:track:{match.group(1)}"
        elif remote_id and not remote_uri:
            remote_uri = f"spotify:track:{remote_id}"
    return Track(
        display_name=body.name,
        source_kind=body.type,
        locator=body.url,
        remote_id=remote_id,
        remote_uri=remote_uri,
    )


def _button_to_dict(b: SoundButton):
    return {
        "id": b.id,
        "name": b.name,
        "type": b.kind.value,
        "color": b.color,
        "tracks": [
            {
                "name": t.display_name,
                "type": t.source_kind.value,
                "url": t.locator,
                "spotify_id": t.remote_id,
                "spotify_uri": t.remote_uri,
            }
            for t in b.tracks
        ],
    }


@router.get("/")
def list_buttons(state: AppState = Depends(get_state)):
    """List all sound buttons."""
    return [_button_to_dict(b) for b in state.library.list()]


@router.get("/{button_id}")
def get_button(button_id: str, state: AppState = Depends(get_state)):
    button = state.library.get(button_id)
    if not button:
        raise HTTPException(status_code=404, detail="Button not found")
    return _button_to_dict(button)


@router.post("/")
def create_button(body: CreateButtonBody, state: AppState = Depends(get_state)):
    """Create a button from a name and its tracks."""
    if not body.name.strip():
        raise HTTPException(status_code=400, detail="Button name is required")
    button = state.library.add(
        body.name.strip(),
        [_to_track(t) for t in body.tracks],
        kind=body.type,
        color=body.color,
    )
    return _button_to_dict(button)


@router.patch("/{button_id}")
def update_button(
    button_id: str,
    body: UpdateButtonBody,
    state: AppState = Depends(get_state),
):
    """Update a button. Omitted fields keep their value."""
    updated = state.library.update(
        button_id,
        name=body.name,
        kind=body.type,
        tracks=[_to_track(t) for t in body.tracks] if body.tracks is not None else None,
        color=body.color,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Button not found")
    return _button_to_dict(updated)


@router.delete("/{button_id}", status_code=204)
async def delete_button(button_id: str, state: AppState = Depends(get_state)):
    """Delete a button; stops playback first if it is the active one."""
    active = state.orchestrator.active
    if active is not None and active.target.button_id == button_id:
        await state.orchestrator.stop()
    if not state.library.delete(button_id):
        raise HTTPException(status_code=404, detail="Button not found")
