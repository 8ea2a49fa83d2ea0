"""
Tests for RemoteSessionController.

Tests cover:
- Readiness state machine driven by session signals
- Start sequence (transfer, settle, start) and resume of a paused track
- Failures leave the snapshot unchanged
- Authentication failures tear the session down and clear the token
"""
import asyncio

import pytest

from soundboard.core.errors import (
    RemoteAuthExpired,
    RemoteNotReady,
    RemotePremiumRequired,
    RemoteUnavailable,
    RemoteUriMissing,
)
from soundboard.core.session_controller import RemoteSessionController
from soundboard.models.auth import Credential
from soundboard.models.session import SessionState
from soundboard.models.track import SourceKind, Track
from tests.fakes import FakeRemoteSession, remote_track, valid_credential

URI = "spotify:track:abc"


def run(coro):
    return asyncio.run(coro)


class TestLifecycle:
    def test_connect_with_expired_credential_raises(self, controller):
        with pytest.raises(RemoteAuthExpired):
            run(controller.connect(Credential(access_token="t", expires_at_ms=1)))
        assert controller.state is SessionState.UNINITIALIZED

    def test_ready_signal_makes_controller_ready(self, controller, catalog):
        assert run(controller.connect(valid_credential())) is True
        assert controller.state is SessionState.READY
        assert controller.is_ready
        assert controller.snapshot.device_id == "device-1"
        assert catalog.token == "access-token"

    def test_without_device_stays_initializing(self, catalog, token_store, sleep):
        session = FakeRemoteSession(device_id=None)
        controller = RemoteSessionController(catalog, token_store, lambda c: session, sleep=sleep)
        run(controller.connect(valid_credential()))
        assert controller.state is SessionState.INITIALIZING
        assert not controller.is_ready

    def test_not_ready_signal_goes_offline(self, controller, session):
        async def scenario():
            await controller.connect(valid_credential())
            await session.emit("not_ready", "device-1")

        run(scenario())
        assert controller.state is SessionState.OFFLINE
        assert controller.snapshot.device_id is None

    def test_account_error_records_premium_message(self, controller, session):
        async def scenario():
            await controller.connect(valid_credential())
            await session.emit("account_error", "premium")

        run(scenario())
        assert controller.state is SessionState.ERRORED
        assert controller.last_error == str(RemotePremiumRequired())

    def test_authentication_error_signal_tears_down(self, controller, session, token_store, catalog):
        credential = valid_credential()
        token_store.save(credential)

        async def scenario():
            await controller.connect(credential)
            await session.emit("authentication_error", "expired")

        run(scenario())
        assert controller.state is SessionState.ERRORED
        assert token_store.load() is None
        assert catalog.token is None
        assert session.count("disconnect") == 1
        assert controller.snapshot.device_id is None

    def test_disconnect_resets(self, controller, catalog):
        async def scenario():
            await controller.connect(valid_credential())
            await controller.disconnect()

        run(scenario())
        assert controller.state is SessionState.UNINITIALIZED
        assert catalog.token is None


class TestPlayRemote:
    def test_not_ready_raises(self, controller):
        with pytest.raises(RemoteNotReady):
            run(controller.play_remote(remote_track("abc")))

    def test_missing_uri_raises(self, controller):
        run(controller.connect(valid_credential()))
        track = Track(display_name="no uri", source_kind=SourceKind.REMOTE)
        with pytest.raises(RemoteUriMissing):
            run(controller.play_remote(track))

    def test_transfer_settle_then_start(self, controller, catalog, sleep):
        async def scenario():
            await controller.connect(valid_credential())
            await controller.play_remote(remote_track("abc"))

        run(scenario())
        assert [c[0] for c in catalog.calls] == ["transfer", "start"]
        assert catalog.calls_named("start") == [("start", "device-1", [URI])]
        assert sleep.delays == [0.5]
        assert controller.snapshot.last_loaded_remote_uri == URI
        assert controller.snapshot.is_remote_paused is False

    def test_transfer_failure_leaves_snapshot_unchanged(self, controller, catalog):
        catalog.failures["transfer"] = RemoteUnavailable()

        async def scenario():
            await controller.connect(valid_credential())
            before = controller.snapshot
            with pytest.raises(RemoteUnavailable):
                await controller.play_remote(remote_track("abc"))
            return before

        before = run(scenario())
        assert controller.snapshot == before
        assert controller.snapshot.last_loaded_remote_uri is None
        assert catalog.calls_named("start") == []

    def test_play_pause_play_resumes_once(self, controller, catalog, session):
        async def scenario():
            await controller.connect(valid_credential())
            await controller.play_remote(remote_track("abc"))
            await controller.pause_remote()
            await controller.play_remote(remote_track("abc"))

        run(scenario())
        assert session.count("resume") == 1
        assert len(catalog.calls_named("transfer")) == 1
        assert controller.snapshot.is_remote_paused is False

    def test_failed_resume_falls_back_to_full_start(self, controller, catalog, session):
        session.failures["resume"] = RemoteUnavailable()

        async def scenario():
            await controller.connect(valid_credential())
            await controller.play_remote(remote_track("abc"))
            await controller.pause_remote()
            await controller.play_remote(remote_track("abc"))

        run(scenario())
        assert session.count("resume") == 1
        assert len(catalog.calls_named("start")) == 2

    def test_auth_error_during_start_tears_down(self, controller, catalog, token_store):
        credential = valid_credential()
        token_store.save(credential)
        catalog.failures["start"] = RemoteAuthExpired()

        async def scenario():
            await controller.connect(credential)
            with pytest.raises(RemoteAuthExpired):
                await controller.play_remote(remote_track("abc"))

        run(scenario())
        assert controller.state is SessionState.ERRORED
        assert token_store.load() is None
        assert controller.snapshot.last_loaded_remote_uri is None


class TestStopPauseVolume:
    def test_stop_clears_last_loaded_uri(self, controller, session):
        async def scenario():
            await controller.connect(valid_credential())
            await controller.play_remote(remote_track("abc"))
            await controller.stop_remote()

        run(scenario())
        assert controller.snapshot.last_loaded_remote_uri is None
        assert session.count("pause") == 1

    def test_stop_when_not_ready_does_not_raise(self, controller):
        run(controller.stop_remote())
        assert controller.snapshot.last_loaded_remote_uri is None

    def test_stop_swallows_pause_failure(self, controller, session):
        session.failures["pause"] = RemoteUnavailable()

        async def scenario():
            await controller.connect(valid_credential())
            await controller.play_remote(remote_track("abc"))
            await controller.stop_remote()

        run(scenario())
        assert controller.snapshot.last_loaded_remote_uri is None

    def test_pause_failure_keeps_paused_flag(self, controller, session):
        session.failures["pause"] = RemoteUnavailable()

        async def scenario():
            await controller.connect(valid_credential())
            with pytest.raises(RemoteUnavailable):
                await controller.pause_remote()

        run(scenario())
        assert controller.snapshot.is_remote_paused is False

    def test_volume_remembered_until_ready(self, catalog, token_store, sleep):
        session = FakeRemoteSession()
        controller = RemoteSessionController(catalog, token_store, lambda c: session, sleep=sleep)

        async def scenario():
            await controller.set_remote_volume(1.4)
            await controller.connect(valid_credential())

        run(scenario())
        assert ("volume", 1.0) in session.calls
