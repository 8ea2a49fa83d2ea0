"""Error taxonomy. str(error) is the message shown to the user."""
from typing import Optional

import requests
from spotipy.exceptions import SpotifyException

UNAVAILABLE_STATUSES = (429, 500, 502, 503, 504)


class SoundboardError(Exception):
    """Base for classified playback and auth failures."""

    default_message = "Playback failed. Please try again."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


# -- Remote (Spotify) --


class RemoteError(SoundboardError):
    default_message = "Spotify playback error."


class RemoteNotReady(RemoteError):
    default_message = (
        "Spotify player not ready yet. Please wait a moment and try again. "
        "Make sure you have Spotify Premium."
    )


class RemoteUriMissing(RemoteError):
    default_message = "Spotify URI missing. Cannot play track."


class RemoteAuthExpired(RemoteError):
    default_message = "Spotify authentication error. Please reconnect your account."


class RemoteUnavailable(RemoteError):
    default_message = "Spotify service temporarily unavailable. Please try again."


class RemoteNotFound(RemoteError):
    default_message = "Track not found on Spotify. It may have been removed."


class RemotePremiumRequired(RemoteError):
    default_message = "Spotify Premium required for track playback. Please upgrade your account."


class RemotePlaybackFailed(RemoteError):
    pass


# -- Local media --


class LocalError(SoundboardError):
    default_message = "Local audio playback error."


class LocalSourceMissing(LocalError):
    default_message = "No audio URL provided for local track."


class LocalSourceUnsupported(LocalError):
    default_message = "Audio format not supported or file not found."

    @classmethod
    def for_locator(cls, locator: str) -> "LocalSourceUnsupported":
        return cls(f"Audio format not supported or file not found: {locator}")


class LocalPlaybackBlocked(LocalError):
    default_message = "Audio output blocked playback. Check the audio device and try again."


class LocalInterrupted(LocalError):
    default_message = "Audio playback was interrupted."


class LocalPlaybackFailed(LocalError):
    pass


# -- Authentication --


class AuthError(SoundboardError):
    default_message = "Spotify login failed. Please try again."


class VerifierMissing(AuthError):
    default_message = "Code verifier not found in any storage. Please try authenticating again."


class TokenExchangeFailed(AuthError):
    default_message = "Failed to exchange authorization code for a token."


class AuthInProgress(AuthError):
    default_message = "Another Spotify login is already being completed."


class CodeAlreadyUsed(AuthError):
    default_message = "This authorization code was already used. Please log in again."


def classify_spotify_error(exc: SpotifyException) -> RemoteError:
    """Map a spotipy error (HTTP status + reason) onto the remote taxonomy."""
    status = exc.http_status
    reason = (getattr(exc, "reason", None) or "").upper()
    if status == 403 and reason == "PREMIUM_REQUIRED":
        return RemotePremiumRequired()
    if status in (401, 403):
        return RemoteAuthExpired()
    if status == 404:
        return RemoteNotFound()
    if status in UNAVAILABLE_STATUSES:
        return RemoteUnavailable()
    return RemotePlaybackFailed(f"Spotify playback error: {exc.msg or status}")


def classify_remote_exception(exc: Exception) -> SoundboardError:
    """Classify anything a Web API call can raise."""
    if isinstance(exc, SoundboardError):
        return exc
    if isinstance(exc, SpotifyException):
        return classify_spotify_error(exc)
    if isinstance(exc, requests.RequestException):
        return RemoteUnavailable()
    return RemotePlaybackFailed(f"Spotify playback error: {exc}")


def http_status_for(error: SoundboardError) -> int:
    """HTTP status the API answers with for a classified error."""
    if isinstance(error, (RemoteNotReady, AuthInProgress)):
        return 503
    if isinstance(error, RemoteAuthExpired):
        return 401
    if isinstance(error, RemotePremiumRequired):
        return 403
    if isinstance(error, RemoteNotFound):
        return 404
    if isinstance(error, (RemoteUnavailable, TokenExchangeFailed)):
        return 502
    if isinstance(error, (RemoteUriMissing, LocalSourceMissing, VerifierMissing, CodeAlreadyUsed)):
        return 400
    return 500
