"""Expiry-aware storage of the Spotify access token."""
import logging
import time
from typing import Callable, Optional

from soundboard.core.storage import KeyValueStore
from soundboard.models.auth import Credential

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "spotify_access_token"
TOKEN_EXPIRY_KEY = "spotify_token_expiry"


def now_ms(clock: Callable[[], float] = time.time) -> int:
    return int(clock() * 1000)


class TokenStore:
    """Saves, loads and clears the credential. Never returns an expired one."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    def save(self, credential: Credential) -> None:
        self._store.set(ACCESS_TOKEN_KEY, credential.access_token)
        self._store.set(TOKEN_EXPIRY_KEY, str(credential.expires_at_ms))

    def load(self) -> Optional[Credential]:
        """Return the stored credential, or None (clearing storage) if missing or expired."""
        token = self._store.get(ACCESS_TOKEN_KEY)
        expiry = self._store.get(TOKEN_EXPIRY_KEY)
        try:
            expires_at_ms = int(expiry) if expiry is not None else None
        except ValueError:
            expires_at_ms = None
        if token and expires_at_ms is not None:
            credential = Credential(access_token=token, expires_at_ms=expires_at_ms)
            if credential.is_valid(now_ms(self._clock)):
                return credential
            logger.info("Stored Spotify token expired, clearing")
        self.clear()
        return None

    def clear(self) -> None:
        self._store.delete(ACCESS_TOKEN_KEY)
        self._store.delete(TOKEN_EXPIRY_KEY)
