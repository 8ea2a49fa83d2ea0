"""
Spotify login via Authorization Code with PKCE.

begin_authentication() stores the verifier redundantly (state parameter plus
every configured store) and returns the URL to redirect the user to.
complete_authentication() recovers the verifier after the redirect, trying
the state parameter first and then each store in order, and exchanges the
code at most once.
"""
import asyncio
import functools
import logging
import time
from typing import Callable, Optional, Sequence, Set, Tuple

import requests

from soundboard.core import pkce
from soundboard.core.errors import (
    AuthInProgress,
    CodeAlreadyUsed,
    TokenExchangeFailed,
    VerifierMissing,
)
from soundboard.core.storage import KeyValueStore
from soundboard.core.token_store import TokenStore, now_ms
from soundboard.models.auth import AuthFlowState, Credential

logger = logging.getLogger(__name__)

VERIFIER_KEY = "spotify_code_verifier"
CHALLENGE_KEY = "spotify_code_challenge"

ExchangeFn = Callable[[str, str, str, str], dict]


class PKCEAuthenticator:
    """Runs the PKCE flow and hands the resulting credential to the TokenStore."""

    def __init__(
        self,
        client_id: str,
        redirect_uri: str,
        scopes: str,
        token_store: TokenStore,
        verifier_stores: Sequence[KeyValueStore],
        exchange: ExchangeFn = pkce.exchange_code,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._scopes = scopes
        self._token_store = token_store
        self._stores = list(verifier_stores)
        self._exchange = exchange
        self._clock = clock
        # Single-flight marker: (code, task) of the exchange being run
        self._in_flight: Optional[Tuple[str, "asyncio.Task[Credential]"]] = None
        self._used_codes: Set[str] = set()

    @property
    def is_configured(self) -> bool:
        return bool(self._client_id)

    @property
    def exchange_in_progress(self) -> bool:
        return self._in_flight is not None

    def stored_credential(self) -> Optional[Credential]:
        """Valid stored credential, if any. Callers check this before redirecting."""
        return self._token_store.load()

    def begin_authentication(self) -> str:
        """Create a new flow, persist the verifier and return the authorization URL."""
        verifier = pkce.generate_code_verifier()
        flow = AuthFlowState(
            code_verifier=verifier,
            code_challenge=pkce.generate_code_challenge(verifier),
            issued_at_ms=now_ms(self._clock),
        )
        state = pkce.encode_state(flow.code_verifier, flow.issued_at_ms)

        stored = 0
        for store in self._stores:
            try:
                store.set(VERIFIER_KEY, flow.code_verifier)
                store.set(CHALLENGE_KEY, flow.code_challenge)
                stored += 1
            except OSError as e:
                logger.warning("Could not store code verifier in %s store: %s", store.name, e)
        if self._stores and stored == 0:
            raise OSError("code verifier could not be written to any store")

        logger.info("Starting Spotify login (verifier %s...)", flow.code_verifier[:10])
        return pkce.build_auth_url(
            self._client_id, self._redirect_uri, flow.code_challenge, self._scopes, state
        )

    def recover_verifier(self, state: Optional[str]) -> str:
        """Verifier from the state parameter, else from each store in order."""
        if state:
            try:
                verifier = pkce.decode_state(state)
                logger.info("Found code verifier in state parameter")
                return verifier
            except ValueError as e:
                logger.warning("Could not parse state parameter: %s", e)
        for store in self._stores:
            try:
                verifier = store.get(VERIFIER_KEY)
            except OSError as e:
                logger.warning("Could not read %s store: %s", store.name, e)
                continue
            if verifier:
                logger.info("Found code verifier in %s store", store.name)
                return verifier
        raise VerifierMissing()

    async def complete_authentication(self, code: str, state: Optional[str] = None) -> Credential:
        """Exchange ``code`` for a credential, at most once per code."""
        if self._in_flight is not None:
            in_flight_code, task = self._in_flight
            if in_flight_code == code:
                logger.info("Token exchange already in progress for this code, joining it")
                return await asyncio.shield(task)
            raise AuthInProgress()
        if code in self._used_codes:
            raise CodeAlreadyUsed()

        task = asyncio.ensure_future(self._exchange_code(code, state))
        self._in_flight = (code, task)
        self._used_codes.add(code)
        try:
            return await task
        finally:
            self._in_flight = None

    async def _exchange_code(self, code: str, state: Optional[str]) -> Credential:
        verifier = self.recover_verifier(state)
        logger.info("Exchanging authorization code %s... for token", code[:8])
        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(
                None,
                functools.partial(self._exchange, code, self._client_id, verifier, self._redirect_uri),
            )
        except requests.HTTPError as e:
            body = e.response.text if e.response is not None else ""
            logger.error("Token exchange failed: %s %s", e, body)
            raise TokenExchangeFailed(f"Token exchange failed: {e}") from e
        except requests.RequestException as e:
            logger.error("Token exchange request failed: %s", e)
            raise TokenExchangeFailed() from e
        finally:
            self._purge_verifier()

        try:
            credential = Credential.from_token_response(data, now_ms(self._clock))
        except (KeyError, TypeError, ValueError) as e:
            raise TokenExchangeFailed("Token response missing access_token") from e
        self._token_store.save(credential)
        logger.info("Token exchange successful")
        return credential

    def _purge_verifier(self) -> None:
        for store in self._stores:
            try:
                store.delete(VERIFIER_KEY)
                store.delete(CHALLENGE_KEY)
            except OSError as e:
                logger.warning("Could not purge code verifier from %s store: %s", store.name, e)
