"""
Tests for RemoteCatalogClient and Spotify error classification.

Spotipy is replaced by a Mock through the client factory.
"""
import asyncio
from unittest.mock import Mock

import pytest
import requests
from spotipy.exceptions import SpotifyException

from soundboard.core.errors import (
    CodeAlreadyUsed,
    LocalPlaybackBlocked,
    RemoteAuthExpired,
    RemoteNotFound,
    RemoteNotReady,
    RemotePlaybackFailed,
    RemotePremiumRequired,
    RemoteUnavailable,
    TokenExchangeFailed,
    classify_remote_exception,
    classify_spotify_error,
    http_status_for,
)
from soundboard.core.spotify_client import RemoteCatalogClient


def make_client():
    sp = Mock()
    factory = Mock(return_value=sp)
    client = RemoteCatalogClient(requests_timeout=7, client_factory=factory)
    client.set_token("token")
    return client, sp, factory


class TestClassification:
    @pytest.mark.parametrize(
        "status,reason,expected",
        [
            (401, None, RemoteAuthExpired),
            (403, None, RemoteAuthExpired),
            (403, "PREMIUM_REQUIRED", RemotePremiumRequired),
            (404, None, RemoteNotFound),
            (429, None, RemoteUnavailable),
            (500, None, RemoteUnavailable),
            (502, None, RemoteUnavailable),
            (503, None, RemoteUnavailable),
            (400, None, RemotePlaybackFailed),
        ],
    )
    def test_spotify_status_mapping(self, status, reason, expected):
        exc = SpotifyException(status, -1, "message", reason=reason)
        assert type(classify_spotify_error(exc)) is expected

    def test_transport_error_is_unavailable(self):
        assert isinstance(classify_remote_exception(requests.ConnectionError()), RemoteUnavailable)

    def test_classified_error_passes_through(self):
        error = RemoteNotFound()
        assert classify_remote_exception(error) is error

    @pytest.mark.parametrize(
        "error,status",
        [
            (RemoteNotReady(), 503),
            (RemoteAuthExpired(), 401),
            (RemotePremiumRequired(), 403),
            (RemoteNotFound(), 404),
            (RemoteUnavailable(), 502),
            (TokenExchangeFailed(), 502),
            (CodeAlreadyUsed(), 400),
            (LocalPlaybackBlocked(), 500),
        ],
    )
    def test_http_status(self, error, status):
        assert http_status_for(error) == status


class TestRemoteCatalogClient:
    def test_without_token_raises_not_ready(self):
        client = RemoteCatalogClient(client_factory=Mock())
        with pytest.raises(RemoteNotReady):
            asyncio.run(client.devices())

    def test_set_token_builds_spotipy_client(self):
        client, _, factory = make_client()
        factory.assert_called_once_with(auth="token", requests_timeout=7)
        assert client.has_token
        client.set_token(None)
        assert not client.has_token

    def test_search_drops_null_items(self):
        client, sp, _ = make_client()
        sp.search.return_value = {"playlists": {"items": [{"id": "p1"}, None, {"id": "p2"}]}}

        items = asyncio.run(client.search("dungeon", type_="playlist", limit=5))

        assert [i["id"] for i in items] == ["p1", "p2"]
        sp.search.assert_called_once_with(q="dungeon", type="playlist", limit=5)

    def test_search_rejects_unknown_type(self):
        client, _, _ = make_client()
        with pytest.raises(ValueError):
            asyncio.run(client.search("x", type_="album"))

    def test_transfer_does_not_autostart(self):
        client, sp, _ = make_client()
        asyncio.run(client.transfer_playback("dev"))
        sp.transfer_playback.assert_called_once_with(device_id="dev", force_play=False)

    def test_start_playback_with_uris(self):
        client, sp, _ = make_client()
        asyncio.run(client.start_playback("dev", uris=["spotify:track:1"]))
        sp.start_playback.assert_called_once_with(device_id="dev", uris=["spotify:track:1"])

    def test_volume_is_clamped_to_percent(self):
        client, sp, _ = make_client()
        asyncio.run(client.set_volume(150, "dev"))
        sp.volume.assert_called_once_with(100, device_id="dev")

    def test_spotify_errors_are_classified(self):
        client, sp, _ = make_client()
        sp.start_playback.side_effect = SpotifyException(401, -1, "The access token expired")
        with pytest.raises(RemoteAuthExpired):
            asyncio.run(client.start_playback("dev", uris=["spotify:track:1"]))

    def test_devices_returns_list(self):
        client, sp, _ = make_client()
        sp.devices.return_value = {"devices": [{"id": "d1", "name": "RPG Sound Assistant"}]}
        assert asyncio.run(client.devices()) == [{"id": "d1", "name": "RPG Sound Assistant"}]
