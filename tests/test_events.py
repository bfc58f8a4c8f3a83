"""Tests for the events module."""
import pytest

from floating_lyrics.events import (
    CHANNELS,
    LOCK_STATE_UPDATE,
    LYRICS_UPDATE,
    OVERLAY_HOVER,
    PROGRESS_UPDATE,
    UNLOCK_PROGRESS,
    PlaybackEventHub,
)
from floating_lyrics.models import LyricsPayload, PayloadError, ProgressSnapshot


class TestChannels:
    """Tests for channel names."""

    def test_channel_names(self):
        """Test the wire names of the channels."""
        assert set(CHANNELS) == {
            "lyrics-update",
            "progress-update",
            "lock-state-update",
            "overlay-hover",
            "unlock-progress",
        }


class TestPlaybackEventHub:
    """Tests for PlaybackEventHub class."""

    def test_emit_lyrics(self):
        """Test that a lyrics payload is parsed and delivered."""
        hub = PlaybackEventHub()
        received = []
        hub.on(LYRICS_UPDATE, received.append)

        ok = hub.emit(
            LYRICS_UPDATE,
            {"track": {"title": "x"}, "lyrics": [{"startTime": 0, "text": "a"}]},
        )

        assert ok is True
        assert isinstance(received[0], LyricsPayload)
        assert len(received[0].lyrics) == 1

    def test_emit_progress(self):
        """Test that a progress payload is parsed and delivered."""
        hub = PlaybackEventHub()
        received = []
        hub.on(PROGRESS_UPDATE, received.append)
        hub.emit(PROGRESS_UPDATE, {"position": 3, "isPlaying": True})
        assert received == [ProgressSnapshot(position=3.0, is_playing=True)]

    @pytest.mark.parametrize("channel", [LOCK_STATE_UPDATE, OVERLAY_HOVER])
    def test_boolean_channels(self, channel):
        """Test that boolean channels only accept booleans."""
        hub = PlaybackEventHub()
        received = []
        hub.on(channel, received.append)

        assert hub.emit(channel, True) is True
        assert hub.emit(channel, "true") is False
        assert hub.emit(channel, 1) is False
        assert received == [True]

    def test_unlock_progress_clamped(self):
        """Test that unlock progress is clamped to 0-100."""
        hub = PlaybackEventHub()
        received = []
        hub.on(UNLOCK_PROGRESS, received.append)
        hub.emit(UNLOCK_PROGRESS, 150)
        hub.emit(UNLOCK_PROGRESS, -3)
        hub.emit(UNLOCK_PROGRESS, 42.5)
        assert received == [100.0, 0.0, 42.5]

    @pytest.mark.parametrize("payload", [True, "50", float("nan"), None])
    def test_unlock_progress_invalid(self, payload):
        """Test that invalid unlock progress payloads are dropped."""
        hub = PlaybackEventHub()
        received = []
        hub.on(UNLOCK_PROGRESS, received.append)
        assert hub.emit(UNLOCK_PROGRESS, payload) is False
        assert received == []

    def test_invalid_payload_dropped(self, caplog):
        """Test that malformed payloads are logged and dropped."""
        hub = PlaybackEventHub()
        received = []
        hub.on(PROGRESS_UPDATE, received.append)

        assert hub.emit(PROGRESS_UPDATE, {"isPlaying": True}) is False
        assert received == []
        assert "Payload inválido" in caplog.text

    def test_unknown_channel(self):
        """Test emitting and subscribing to an unknown channel."""
        hub = PlaybackEventHub()
        assert hub.emit("volume-update", 3) is False
        with pytest.raises(KeyError):
            hub.on("volume-update", print)

    def test_parse_raises(self):
        """Test that parse() exposes payload errors."""
        hub = PlaybackEventHub()
        with pytest.raises(PayloadError):
            hub.parse(OVERLAY_HOVER, "yes")
        with pytest.raises(KeyError):
            hub.parse("nope", True)

    def test_delivery_order(self):
        """Test that events of one channel arrive in emission order."""
        hub = PlaybackEventHub()
        received = []
        hub.on(UNLOCK_PROGRESS, received.append)
        for value in (10, 20, 30):
            hub.emit(UNLOCK_PROGRESS, value)
        assert received == [10.0, 20.0, 30.0]

    def test_callback_error_is_isolated(self):
        """Test that a failing listener does not stop the others."""
        hub = PlaybackEventHub()
        received = []

        def failing(_event):
            raise RuntimeError("boom")

        hub.on(OVERLAY_HOVER, failing)
        hub.on(OVERLAY_HOVER, received.append)
        assert hub.emit(OVERLAY_HOVER, True) is True
        assert received == [True]
