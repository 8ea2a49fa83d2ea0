"""Shared application state (injected into routes)."""
from fastapi import Request

from soundboard.config import (
    LOCAL_STORAGE_PATH,
    SIMULATE_AUDIO,
    SPOTIFY_CLIENT_ID,
    SPOTIFY_REDIRECT_URI,
    SPOTIFY_REQUEST_TIMEOUT,
    SPOTIFY_SCOPES,
)
from soundboard.core.authenticator import PKCEAuthenticator
from soundboard.core.button_library import ButtonLibrary
from soundboard.core.media_backend import (
    LocalMediaBackend,
    MpvMediaBackend,
    SimulatedMediaBackend,
)
from soundboard.core.orchestrator import PlaybackOrchestrator
from soundboard.core.remote_session import ConnectDeviceSession
from soundboard.core.session_controller import RemoteSessionController, SessionFactory
from soundboard.core.spotify_client import RemoteCatalogClient
from soundboard.core.storage import JsonFileStore, KeyValueStore, MemoryStore
from soundboard.core.token_store import TokenStore


class AppState:
    """Owns every long-lived component; each one can be replaced for tests."""

    def __init__(
        self,
        *,
        file_store: KeyValueStore | None = None,
        memory_store: KeyValueStore | None = None,
        client: RemoteCatalogClient | None = None,
        authenticator: PKCEAuthenticator | None = None,
        remote: RemoteSessionController | None = None,
        session_factory: SessionFactory = ConnectDeviceSession,
        local_backend: LocalMediaBackend | None = None,
        library: ButtonLibrary | None = None,
    ) -> None:
        self.file_store = file_store if file_store is not None else JsonFileStore(LOCAL_STORAGE_PATH)
        self.memory_store = memory_store if memory_store is not None else MemoryStore()
        self.token_store = TokenStore(self.file_store)
        self.client = client or RemoteCatalogClient(requests_timeout=SPOTIFY_REQUEST_TIMEOUT)
        self.authenticator = authenticator or PKCEAuthenticator(
            client_id=SPOTIFY_CLIENT_ID,
            redirect_uri=SPOTIFY_REDIRECT_URI,
            scopes=SPOTIFY_SCOPES,
            token_store=self.token_store,
            verifier_stores=[self.file_store, self.memory_store],
        )
        self.remote = remote or RemoteSessionController(
            client=self.client,
            token_store=self.token_store,
            session_factory=session_factory,
        )
        if local_backend is None:
            local_backend = SimulatedMediaBackend() if SIMULATE_AUDIO else MpvMediaBackend()
        self.local_backend = local_backend
        self.orchestrator = PlaybackOrchestrator(self.local_backend, self.remote)
        self.library = library or ButtonLibrary()


def get_state(request: Request) -> AppState:
    return request.app.state.soundboard
