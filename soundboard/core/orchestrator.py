"""
Playback orchestrator: one play/pause/stop/seek/volume/next/previous
contract over the local media backend and the remote session controller.

State: at most one ActivePlayback (target + status), or None for idle.
Every load carries a token; a result that arrives after a newer load has
started is dropped instead of overwriting the newer state.

All failures reaching this layer are already classified; they surface as
``last_error``, which clears after ERROR_CLEAR_DELAY_SEC or on the next
successful operation.
"""
import asyncio
import dataclasses
import itertools
import logging
from typing import Optional

from soundboard.config import DEFAULT_VOLUME, ERROR_CLEAR_DELAY_SEC
from soundboard.core.errors import LocalError, LocalSourceMissing, SoundboardError
from soundboard.core.media_backend import LocalMediaBackend
from soundboard.core.session_controller import RemoteSessionController
from soundboard.models.playback import (
    ActivePlayback,
    PlaybackRuntimeState,
    PlaybackStatus,
    PlaybackTarget,
)
from soundboard.models.track import SoundButton, SourceKind, Track

logger = logging.getLogger(__name__)

NO_TRACKS_MESSAGE = "No tracks found in this button."
LOCAL_ERROR_MESSAGE = "Audio playback failed. Check the file URL or format."


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


class PlaybackOrchestrator:
    """The only entry point for playback; owns the play-state machine."""

    def __init__(
        self,
        local: LocalMediaBackend,
        remote: RemoteSessionController,
        volume: float = DEFAULT_VOLUME,
        error_clear_delay: float = ERROR_CLEAR_DELAY_SEC,
    ) -> None:
        self._local = local
        self._remote = remote
        self._active: Optional[ActivePlayback] = None
        self._tokens = itertools.count(1)
        self._volume = clamp01(volume)
        self._muted = False
        self._position = 0.0
        self._duration = 0.0
        self._last_error: Optional[str] = None
        self._error_timer: Optional[asyncio.TimerHandle] = None
        self._error_clear_delay = error_clear_delay

        local.add_listener("time_update", self._on_time_update)
        local.add_listener("duration", self._on_duration)
        local.add_listener("ended", self._on_local_ended)
        local.add_listener("error", self._on_local_error)

    # ── State ──

    @property
    def active(self) -> Optional[ActivePlayback]:
        return self._active

    @property
    def status(self) -> PlaybackStatus:
        return self._active.status if self._active else PlaybackStatus.IDLE

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def effective_volume(self) -> float:
        return 0.0 if self._muted else self._volume

    def runtime_state(self) -> PlaybackRuntimeState:
        active = self._active
        return PlaybackRuntimeState(
            status=self.status,
            is_playing=self.status is PlaybackStatus.PLAYING,
            volume=self._volume,
            is_muted=self._muted,
            position_seconds=self._position,
            duration_seconds=self._duration,
            last_error=self._last_error,
            button_id=active.target.button_id if active else None,
            current_index=active.target.current_index if active else 0,
            current_track=active.target.current_track if active else None,
        )

    def _set_status(self, active: ActivePlayback, status: PlaybackStatus, **changes) -> ActivePlayback:
        updated = dataclasses.replace(active, status=status, **changes)
        self._active = updated
        return updated

    def _is_current(self, token: int) -> bool:
        return self._active is not None and self._active.token == token

    # ── Errors ──

    def _set_error(self, message: str) -> None:
        logger.warning("Playback error: %s", message)
        self._last_error = message
        if self._error_timer is not None:
            self._error_timer.cancel()
        loop = asyncio.get_running_loop()
        self._error_timer = loop.call_later(self._error_clear_delay, self._expire_error)

    def _expire_error(self) -> None:
        self._error_timer = None
        self._last_error = None

    def clear_error(self) -> None:
        if self._error_timer is not None:
            self._error_timer.cancel()
            self._error_timer = None
        self._last_error = None

    # ── Public operations ──

    async def play(self, button: SoundButton) -> None:
        """Toggle the active button, or replace whatever is active with ``button``."""
        active = self._active
        if active is not None and active.target.button_id == button.id:
            if active.status is PlaybackStatus.PLAYING:
                await self._pause_active(active)
                return
            if active.status is PlaybackStatus.LOADING:
                logger.debug("Button %s is still loading, ignoring", button.id)
                return
            if active.loaded:
                await self._resume_active(active)
                return
            # Paused after a failed track or the end of a single track: start it again
            await self._load(active.target, keep_target_on_failure=True)
            return

        if not button.tracks:
            self._set_error(NO_TRACKS_MESSAGE)
            return
        target = PlaybackTarget(button_id=button.id, tracks=tuple(button.tracks), current_index=0)
        logger.info("Playing button %s (%d tracks)", button.id, target.track_count)
        await self._load(target, keep_target_on_failure=False)

    async def stop(self) -> None:
        """Stop both backends and go idle."""
        logger.info("Stopping playback")
        self._active = None
        self._position = 0.0
        self._duration = 0.0
        try:
            await self._local.stop()
        except LocalError as e:
            logger.warning("Local stop failed: %s", e)
        await self._remote.stop_remote()
        self.clear_error()

    async def next(self) -> None:
        active = self._active
        if active is None or active.target.track_count <= 1:
            return
        index = (active.target.current_index + 1) % active.target.track_count
        await self._load(dataclasses.replace(active.target, current_index=index), keep_target_on_failure=True)

    async def previous(self) -> None:
        active = self._active
        if active is None or active.target.track_count <= 1:
            return
        count = active.target.track_count
        current = active.target.current_index
        index = count - 1 if current == 0 else current - 1
        await self._load(dataclasses.replace(active.target, current_index=index), keep_target_on_failure=True)

    async def seek(self, position_seconds: float) -> None:
        """Seek the local backend; no-op for remote tracks or when idle."""
        active = self._active
        if active is None or active.target.current_track.source_kind is not SourceKind.LOCAL:
            return
        position = max(0.0, float(position_seconds))
        if self._duration > 0:
            position = min(position, self._duration)
        try:
            await self._local.set_current_time(position)
        except LocalError as e:
            self._set_error(str(e))
            return
        self._position = position

    async def set_volume(self, level: float) -> None:
        self._volume = clamp01(level)
        await self._apply_volume()

    async def toggle_mute(self) -> None:
        self._muted = not self._muted
        await self._apply_volume()

    async def apply_volume(self) -> None:
        """Push the effective volume to both backends (e.g. at startup)."""
        await self._apply_volume()

    # ── Internals ──

    async def _apply_volume(self) -> None:
        volume = self.effective_volume
        try:
            await self._local.set_volume(volume)
        except LocalError as e:
            logger.warning("Local volume failed: %s", e)
        await self._remote.set_remote_volume(volume)

    async def _load(self, target: PlaybackTarget, keep_target_on_failure: bool) -> None:
        token = next(self._tokens)
        track = target.current_track
        self._active = ActivePlayback(target=target, status=PlaybackStatus.LOADING, token=token)
        self._position = 0.0
        self._duration = 0.0
        await self._silence(other_than=track.source_kind)
        try:
            await self._start_track(track)
        except SoundboardError as e:
            if not self._is_current(token):
                logger.info("Superseded load of %s failed: %s", track.display_name, e)
                return
            if keep_target_on_failure:
                self._set_status(self._active, PlaybackStatus.PAUSED, loaded=False)
            else:
                self._active = None
            self._set_error(str(e))
            return

        if not self._is_current(token):
            logger.info("Load of %s superseded, discarding result", track.display_name)
            current = self._active
            if current is None or current.target.current_track.source_kind is not track.source_kind:
                await self._silence_kind(track.source_kind)
            return
        self._set_status(self._active, PlaybackStatus.PLAYING, loaded=True)
        self.clear_error()

    async def _start_track(self, track: Track) -> None:
        logger.info("Starting %s track %r", track.source_kind.value, track.display_name)
        if track.source_kind is SourceKind.REMOTE:
            await self._remote.play_remote(track)
        else:
            if not track.locator:
                raise LocalSourceMissing()
            await self._local.set_source(track.locator)
            await self._local.play()

    async def _pause_active(self, active: ActivePlayback) -> None:
        try:
            if active.target.current_track.source_kind is SourceKind.REMOTE:
                await self._remote.pause_remote()
            else:
                await self._local.pause()
        except SoundboardError as e:
            # Still playing on the backend
            self._set_error(str(e))
            return
        if self._is_current(active.token):
            self._set_status(self._active, PlaybackStatus.PAUSED)
        self.clear_error()

    async def _resume_active(self, active: ActivePlayback) -> None:
        track = active.target.current_track
        try:
            if track.source_kind is SourceKind.REMOTE:
                # Resumes if still loaded and paused, otherwise restarts
                await self._remote.play_remote(track)
            else:
                await self._local.play()
        except SoundboardError as e:
            # Source stays loaded and paused; the next press retries
            if self._is_current(active.token):
                self._set_error(str(e))
            return
        if self._is_current(active.token):
            self._set_status(self._active, PlaybackStatus.PLAYING)
        self.clear_error()

    async def _silence(self, other_than: SourceKind) -> None:
        kind = SourceKind.LOCAL if other_than is SourceKind.REMOTE else SourceKind.REMOTE
        await self._silence_kind(kind)

    async def _silence_kind(self, kind: SourceKind) -> None:
        """Best-effort pause of one backend."""
        try:
            if kind is SourceKind.REMOTE:
                if self._remote.is_ready and not self._remote.snapshot.is_remote_paused:
                    await self._remote.pause_remote()
            else:
                await self._local.pause()
        except SoundboardError as e:
            logger.warning("Could not pause %s backend: %s", kind.value, e)

    # ── Local backend signals ──

    def _current_local_track(self) -> Optional[ActivePlayback]:
        active = self._active
        if active is None or active.target.current_track.source_kind is not SourceKind.LOCAL:
            return None
        return active

    def _on_time_update(self, seconds: float) -> None:
        if self._current_local_track() is not None:
            self._position = seconds

    def _on_duration(self, seconds: float) -> None:
        if self._current_local_track() is not None:
            self._duration = seconds

    async def _on_local_ended(self) -> None:
        active = self._current_local_track()
        if active is None or active.status is not PlaybackStatus.PLAYING:
            return
        if active.target.track_count > 1:
            logger.info("Track ended, advancing")
            await self.next()
        else:
            self._set_status(active, PlaybackStatus.PAUSED, loaded=False)

    def _on_local_error(self, message: str) -> None:
        active = self._current_local_track()
        if active is None:
            return
        logger.error("Local audio error: %s", message)
        self._set_status(active, PlaybackStatus.PAUSED, loaded=False)
        self._set_error(LOCAL_ERROR_MESSAGE)
