"""Tests for the playback_server module."""
import asyncio
import socket

from aiohttp.test_utils import TestClient, TestServer

from floating_lyrics.events import LYRICS_UPDATE, PROGRESS_UPDATE, PlaybackEventHub
from floating_lyrics.playback_server import PlaybackServer, create_app


def _request(hub, method, path, **kwargs):
    """Hace una petición contra la app y retorna (status, texto, headers)."""

    async def run():
        async with TestClient(TestServer(create_app(hub))) as client:
            response = await client.request(method, path, **kwargs)
            return response.status, await response.text(), response.headers

    return asyncio.run(run())


class TestEndpoints:
    """Tests for the HTTP endpoints."""

    def test_post_lyrics(self):
        """Test that POST /lyrics is forwarded to lyrics-update."""
        hub = PlaybackEventHub()
        received = []
        hub.on(LYRICS_UPDATE, received.append)

        status, text, _ = _request(
            hub,
            "POST",
            "/lyrics",
            json={
                "track": {"title": "Dynamite", "artist": "BTS"},
                "lyrics": [{"startTime": 0.5, "text": "Cause I"}],
                "isSynced": True,
            },
        )

        assert status == 200
        assert text == "OK"
        assert received[0].track.title == "Dynamite"

    def test_post_progress(self):
        """Test that POST /progress is forwarded to progress-update."""
        hub = PlaybackEventHub()
        received = []
        hub.on(PROGRESS_UPDATE, received.append)

        status, _, _ = _request(
            hub, "POST", "/progress", json={"position": 12.3, "isPlaying": False}
        )

        assert status == 200
        assert received[0].position == 12.3
        assert received[0].is_playing is False

    def test_invalid_json(self):
        """Test that a body that is not JSON answers 400."""
        hub = PlaybackEventHub()
        received = []
        hub.on(PROGRESS_UPDATE, received.append)

        status, text, _ = _request(hub, "POST", "/progress", data="not json")

        assert status == 400
        assert text == "invalid JSON"
        assert received == []

    def test_invalid_payload(self):
        """Test that a JSON payload with a bad shape answers 400."""
        hub = PlaybackEventHub()
        status, _, _ = _request(hub, "POST", "/progress", json={"position": "x"})
        assert status == 400

    def test_cors_headers(self):
        """Test that responses allow any origin."""
        hub = PlaybackEventHub()
        _, _, headers = _request(
            hub, "POST", "/progress", json={"position": 1, "isPlaying": True}
        )
        assert headers["Access-Control-Allow-Origin"] == "*"

    def test_cors_on_error(self):
        """Test that error responses also carry CORS headers."""
        hub = PlaybackEventHub()
        _, _, headers = _request(hub, "POST", "/progress", data="{")
        assert headers["Access-Control-Allow-Origin"] == "*"

    def test_preflight(self):
        """Test that OPTIONS preflight requests are answered."""
        hub = PlaybackEventHub()
        status, _, headers = _request(hub, "OPTIONS", "/lyrics")
        assert status == 204
        assert "POST" in headers["Access-Control-Allow-Methods"]

    def test_get_not_allowed(self):
        """Test that only POST is routed."""
        hub = PlaybackEventHub()
        status, _, _ = _request(hub, "GET", "/lyrics")
        assert status == 405


class TestPlaybackServer:
    """Tests for PlaybackServer lifecycle."""

    def test_start_and_close(self):
        """Test starting and stopping on a free port."""

        async def run():
            server = PlaybackServer(PlaybackEventHub(), port=0)
            started = await server.start()
            running = server.is_running
            await server.close()
            return started, running, server.is_running

        assert asyncio.run(run()) == (True, True, False)

    def test_port_in_use(self):
        """Test that a busy port is reported instead of raising."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen()
            port = sock.getsockname()[1]

            async def run():
                server = PlaybackServer(PlaybackEventHub(), port=port)
                started = await server.start()
                return started, server.is_running

            assert asyncio.run(run()) == (False, False)
