"""
Tests for the PKCE login flow.

Tests cover:
- Verifier written to every store, state parameter carries it
- Verifier recovery order: state, file store, memory store
- Single-flight exchange per code, in-progress and reused codes
- Verifier purged after success and after failure
"""
import asyncio
import threading
import time
import urllib.parse

import pytest
import requests

from soundboard.core import pkce
from soundboard.core.authenticator import CHALLENGE_KEY, VERIFIER_KEY, PKCEAuthenticator
from soundboard.core.errors import (
    AuthInProgress,
    CodeAlreadyUsed,
    TokenExchangeFailed,
    VerifierMissing,
)
from soundboard.core.storage import KeyValueStore, MemoryStore
from soundboard.core.token_store import TokenStore


class FailingStore(KeyValueStore):
    name = "broken"

    def get(self, key):
        raise OSError("read-only")

    def set(self, key, value):
        raise OSError("read-only")

    def delete(self, key):
        raise OSError("read-only")


class FakeExchange:
    """Stands in for pkce.exchange_code; counts calls and can block or fail."""

    def __init__(self, delay: float = 0.0, error: Exception | None = None) -> None:
        self.delay = delay
        self.error = error
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, code, client_id, verifier, redirect_uri):
        with self._lock:
            self.calls.append((code, client_id, verifier, redirect_uri))
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"access_token": f"token-for-{code}", "expires_in": 3600}


@pytest.fixture
def file_store():
    store = MemoryStore()
    store.name = "file"
    return store


@pytest.fixture
def session_store():
    return MemoryStore()


def make_authenticator(file_store, session_store, exchange, token_store=None):
    return PKCEAuthenticator(
        client_id="client-id",
        redirect_uri="http://localhost:8000/api/spotify/callback",
        scopes="streaming",
        token_store=token_store or TokenStore(MemoryStore()),
        verifier_stores=[file_store, session_store],
        exchange=exchange,
    )


def state_from(url: str) -> str:
    return dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))["state"]


class TestBeginAuthentication:
    def test_verifier_stored_everywhere_and_in_state(self, file_store, session_store):
        auth = make_authenticator(file_store, session_store, FakeExchange())
        url = auth.begin_authentication()

        verifier = file_store.get(VERIFIER_KEY)
        assert verifier and session_store.get(VERIFIER_KEY) == verifier
        assert file_store.get(CHALLENGE_KEY) == pkce.generate_code_challenge(verifier)
        assert pkce.decode_state(state_from(url)) == verifier

        params = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(url).query))
        assert params["code_challenge"] == pkce.generate_code_challenge(verifier)
        assert params["client_id"] == "client-id"

    def test_one_failing_store_is_skipped(self, session_store):
        auth = make_authenticator(FailingStore(), session_store, FakeExchange())
        auth.begin_authentication()
        assert session_store.get(VERIFIER_KEY)

    def test_all_stores_failing_raises(self):
        auth = make_authenticator(FailingStore(), FailingStore(), FakeExchange())
        with pytest.raises(OSError):
            auth.begin_authentication()


class TestRecoverVerifier:
    def test_state_wins_over_stores(self, file_store, session_store):
        file_store.set(VERIFIER_KEY, "from-file")
        auth = make_authenticator(file_store, session_store, FakeExchange())
        assert auth.recover_verifier(pkce.encode_state("from-state", 1)) == "from-state"

    def test_bad_state_falls_back_to_file_store(self, file_store, session_store):
        file_store.set(VERIFIER_KEY, "from-file")
        session_store.set(VERIFIER_KEY, "from-session")
        auth = make_authenticator(file_store, session_store, FakeExchange())
        assert auth.recover_verifier("garbage!") == "from-file"

    def test_memory_store_is_last_resort(self, file_store, session_store):
        session_store.set(VERIFIER_KEY, "from-session")
        auth = make_authenticator(file_store, session_store, FakeExchange())
        assert auth.recover_verifier(None) == "from-session"

    def test_nothing_found_raises(self, file_store, session_store):
        auth = make_authenticator(file_store, session_store, FakeExchange())
        with pytest.raises(VerifierMissing):
            auth.recover_verifier(None)


class TestCompleteAuthentication:
    def test_success_saves_credential_and_purges_verifier(self, file_store, session_store):
        tokens = TokenStore(MemoryStore())
        exchange = FakeExchange()
        auth = make_authenticator(file_store, session_store, exchange, token_store=tokens)
        state = state_from(auth.begin_authentication())
        verifier = file_store.get(VERIFIER_KEY)

        credential = asyncio.run(auth.complete_authentication("code-1", state))

        assert credential.access_token == "token-for-code-1"
        assert tokens.load() == credential
        assert exchange.calls[0][2] == verifier
        for store in (file_store, session_store):
            assert store.get(VERIFIER_KEY) is None
            assert store.get(CHALLENGE_KEY) is None
        assert not auth.exchange_in_progress

    def test_same_code_twice_concurrently_exchanges_once(self, file_store, session_store):
        exchange = FakeExchange(delay=0.05)
        auth = make_authenticator(file_store, session_store, exchange)
        state = state_from(auth.begin_authentication())

        async def run():
            return await asyncio.gather(
                auth.complete_authentication("code-1", state),
                auth.complete_authentication("code-1", state),
            )

        first, second = asyncio.run(run())
        assert len(exchange.calls) == 1
        assert first == second

    def test_different_code_while_in_flight_raises(self, file_store, session_store):
        exchange = FakeExchange(delay=0.05)
        auth = make_authenticator(file_store, session_store, exchange)
        state = state_from(auth.begin_authentication())

        async def run():
            return await asyncio.gather(
                auth.complete_authentication("code-1", state),
                auth.complete_authentication("code-2", state),
                return_exceptions=True,
            )

        first, second = asyncio.run(run())
        assert first.access_token == "token-for-code-1"
        assert isinstance(second, AuthInProgress)
        assert len(exchange.calls) == 1

    def test_used_code_is_rejected(self, file_store, session_store):
        auth = make_authenticator(file_store, session_store, FakeExchange())
        state = state_from(auth.begin_authentication())
        asyncio.run(auth.complete_authentication("code-1", state))

        with pytest.raises(CodeAlreadyUsed):
            asyncio.run(auth.complete_authentication("code-1", state))

    def test_exchange_failure_purges_verifier(self, file_store, session_store):
        exchange = FakeExchange(error=requests.HTTPError("400 Client Error: invalid_grant"))
        tokens = TokenStore(MemoryStore())
        auth = make_authenticator(file_store, session_store, exchange, token_store=tokens)
        state = state_from(auth.begin_authentication())

        with pytest.raises(TokenExchangeFailed):
            asyncio.run(auth.complete_authentication("code-1", state))

        assert file_store.get(VERIFIER_KEY) is None
        assert session_store.get(VERIFIER_KEY) is None
        assert tokens.load() is None
        assert not auth.exchange_in_progress

    def test_transport_failure_is_token_exchange_failed(self, file_store, session_store):
        exchange = FakeExchange(error=requests.ConnectionError("offline"))
        auth = make_authenticator(file_store, session_store, exchange)
        state = state_from(auth.begin_authentication())

        with pytest.raises(TokenExchangeFailed):
            asyncio.run(auth.complete_authentication("code-1", state))

    def test_missing_verifier_does_not_call_exchange(self, file_store, session_store):
        exchange = FakeExchange()
        auth = make_authenticator(file_store, session_store, exchange)

        with pytest.raises(VerifierMissing):
            asyncio.run(auth.complete_authentication("code-1", None))
        assert exchange.calls == []
