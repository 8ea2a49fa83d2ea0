"""Core services: auth, Spotify client and session, local audio, playback."""
from soundboard.core.authenticator import PKCEAuthenticator
from soundboard.core.orchestrator import PlaybackOrchestrator
from soundboard.core.session_controller import RemoteSessionController
from soundboard.core.token_store import TokenStore

__all__ = ["PKCEAuthenticator", "PlaybackOrchestrator", "RemoteSessionController", "TokenStore"]
