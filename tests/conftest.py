"""Shared pytest fixtures for the soundboard test suite."""

from __future__ import annotations

import os
import tempfile

# Settings are read at import time: keep test runs away from the real data dir and audio device
os.environ["SOUNDBOARD_DATA_DIR"] = tempfile.mkdtemp(prefix="soundboard-test-")
os.environ["SOUNDBOARD_SIMULATE_AUDIO"] = "1"
os.environ["SOUNDBOARD_WEB_ORIGIN"] = ""

import pytest

from soundboard.core.media_backend import SimulatedMediaBackend
from soundboard.core.session_controller import RemoteSessionController
from soundboard.core.storage import MemoryStore
from soundboard.core.token_store import TokenStore
from tests.fakes import FakeCatalogClient, FakeRemoteSession, RecordingSleep


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def token_store(store) -> TokenStore:
    return TokenStore(store)


@pytest.fixture
def catalog() -> FakeCatalogClient:
    return FakeCatalogClient()


@pytest.fixture
def session() -> FakeRemoteSession:
    return FakeRemoteSession()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def controller(catalog, token_store, session, sleep) -> RemoteSessionController:
    """Controller wired to fakes; not connected yet."""
    return RemoteSessionController(
        client=catalog,
        token_store=token_store,
        session_factory=lambda client: session,
        sleep=sleep,
    )


@pytest.fixture
def local() -> SimulatedMediaBackend:
    return SimulatedMediaBackend(default_duration=120.0)
