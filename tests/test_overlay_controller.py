"""Tests for the overlay_controller module."""
import json

import pytest

from conftest import FailingHost
from floating_lyrics.display_rules import HOVER_DIM_OPACITY, TrackDisplay
from floating_lyrics.events import (
    LOCK_STATE_UPDATE,
    LYRICS_UPDATE,
    OVERLAY_HOVER,
    PROGRESS_UPDATE,
    UNLOCK_PROGRESS,
    PlaybackEventHub,
)
from floating_lyrics.models import LyricLine
from floating_lyrics.overlay_controller import LineTexts, OverlayController
from floating_lyrics.settings import OverlaySettings

LYRICS = {
    "track": {"title": "Dynamite", "artist": "BTS", "duration": 199},
    "lyrics": [
        {"startTime": 0, "text": "uno", "pronText": "oo-no", "transText": "one"},
        {"startTime": 5, "text": "dos", "transText": "two"},
        {"startTime": 10, "text": "tres"},
    ],
    "isSynced": True,
}


@pytest.fixture
def hub():
    return PlaybackEventHub()


@pytest.fixture
def controller(overlay_store, fake_host, hub):
    controller = OverlayController(overlay_store, fake_host)
    controller.attach(hub)
    controller.start()
    return controller


def replicate(settings_store, overlay_store, slot, **values):
    """Escribe desde la ventana de ajustes y replica al overlay."""
    settings_store.update(values)
    overlay_store.handle_storage_change(slot.read())


class TestLineTexts:
    """Tests for LineTexts."""

    def test_respects_show_flags(self):
        """Test that hidden elements are dropped."""
        settings = OverlaySettings(show_phonetic=False)
        line = LyricLine(start_time=0, text="a", phonetic="b", translation="c")
        assert LineTexts.from_line(line, settings) == LineTexts("a", None, "c")

    def test_hide_original(self):
        """Test hiding the original text."""
        settings = OverlaySettings(show_original=False)
        line = LyricLine(start_time=0, text="a", translation="c")
        assert LineTexts.from_line(line, settings).main is None


class TestStartup:
    """Tests for the initial host synchronization."""

    def test_start_configures_host(self, controller, fake_host):
        """Test that start() pushes lock state and gesture options."""
        assert fake_host.calls_to("set_lock_state") == [(True,)]
        assert fake_host.calls_to("set_pointer_passthrough") == [(True,)]
        assert fake_host.calls_to("set_unlock_timing") == [(1.2, 3.0)]
        assert fake_host.calls_to("set_hover_unlock_enabled") == [(True,)]
        assert fake_host.calls_to("set_auto_lock") == [(False, 3.0)]

    def test_initial_view_is_waiting(self, controller):
        """Test the view before any event."""
        view = controller.view_state
        assert view.is_waiting
        assert view.track is None
        assert view.opacity == 1.0
        assert view.is_locked is True

    def test_failing_host_is_not_fatal(self, overlay_store, hub, caplog):
        """Test that host failures are logged and skipped."""
        controller = OverlayController(overlay_store, FailingHost())
        controller.attach(hub)
        controller.start()
        hub.emit(LOCK_STATE_UPDATE, False)

        assert overlay_store.get("is_locked") is False
        assert "set_lock_state" in caplog.text


class TestPlaybackEvents:
    """Tests for lyrics and progress events."""

    def test_active_line(self, controller, hub):
        """Test that the active line follows the progress."""
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(PROGRESS_UPDATE, {"position": 6, "isPlaying": True})

        view = controller.view_state
        assert view.track.title == "Dynamite"
        assert view.active_line == LineTexts("dos", None, "two")
        assert not view.is_waiting
        assert view.is_playing

    def test_before_first_line_waits(self, controller, hub):
        """Test that a position before the first line shows the waiting state."""
        lyrics = dict(LYRICS, lyrics=[{"startTime": 3, "text": "x"}])
        hub.emit(LYRICS_UPDATE, lyrics)
        hub.emit(PROGRESS_UPDATE, {"position": 1, "isPlaying": True})
        assert controller.view_state.is_waiting

    def test_unsynced_lyrics_wait(self, controller, hub):
        """Test that unsynced lyrics show the waiting state."""
        hub.emit(LYRICS_UPDATE, dict(LYRICS, isSynced=False))
        hub.emit(PROGRESS_UPDATE, {"position": 6, "isPlaying": True})
        assert controller.view_state.is_waiting

    def test_progress_before_lyrics(self, controller, hub):
        """Test that a progress arriving before the lyrics is tolerated."""
        hub.emit(PROGRESS_UPDATE, {"position": 11, "isPlaying": True})
        assert controller.view_state.is_waiting
        hub.emit(LYRICS_UPDATE, LYRICS)
        assert controller.view_state.active_line.main == "tres"

    def test_context_lines(self, controller, hub, settings_store, overlay_store, slot):
        """Test that context lines follow the configured counts."""
        replicate(settings_store, overlay_store, slot, lyrics_prev_lines=1, lyrics_next_lines=1)
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(PROGRESS_UPDATE, {"position": 6, "isPlaying": True})

        view = controller.view_state
        assert [line.main for line in view.context_before] == ["uno"]
        assert [line.main for line in view.context_after] == ["tres"]

    def test_show_flags_applied(self, controller, hub, settings_store, overlay_store, slot):
        """Test that replicated show flags change the view."""
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(PROGRESS_UPDATE, {"position": 0, "isPlaying": True})
        assert controller.view_state.active_line.phonetic == "oo-no"

        replicate(settings_store, overlay_store, slot, show_phonetic=False)
        assert controller.view_state.active_line.phonetic is None

    def test_view_callbacks(self, controller, hub):
        """Test that view listeners receive every published state."""
        views = []
        controller.on_view_change(views.append)
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(PROGRESS_UPDATE, {"position": 6, "isPlaying": True})
        assert views[-1].active_line.main == "dos"

    def test_track_change_replaces_lyrics(self, controller, hub):
        """Test that a new lyrics event replaces the previous track."""
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(
            LYRICS_UPDATE,
            {"track": {"title": "Palette", "artist": "IU"}, "lyrics": [], "isSynced": True},
        )
        view = controller.view_state
        assert view.track.title == "Palette"
        assert view.is_waiting


class TestLookahead:
    """Tests for the next track preview."""

    def test_next_track_near_end(self, controller, hub):
        """Test that the next track is shown near the end."""
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(
            PROGRESS_UPDATE,
            {
                "position": 190,
                "isPlaying": True,
                "remaining": 9,
                "nextTrack": {"title": "Palette", "artist": "IU"},
            },
        )
        view = controller.view_state
        assert view.track_display is TrackDisplay.NEXT
        assert view.display_track.title == "Palette"
        assert view.track.title == "Dynamite"

    def test_missing_remaining_shows_current(self, controller, hub):
        """Test that a progress without remaining shows the current track."""
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(
            PROGRESS_UPDATE,
            {"position": 190, "isPlaying": True, "nextTrack": {"title": "Palette"}},
        )
        view = controller.view_state
        assert view.track_display is TrackDisplay.CURRENT
        assert view.display_track.title == "Dynamite"

    def test_threshold_from_settings(self, controller, hub, settings_store, overlay_store, slot):
        """Test that the threshold comes from next_track_seconds."""
        replicate(settings_store, overlay_store, slot, next_track_seconds=5)
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(
            PROGRESS_UPDATE,
            {
                "position": 190,
                "isPlaying": True,
                "remaining": 9,
                "nextTrack": {"title": "Palette"},
            },
        )
        assert controller.view_state.track_display is TrackDisplay.CURRENT


class TestVisibility:
    """Tests for the opacity in the view."""

    def test_hover_dims_locked_overlay(self, controller, hub):
        """Test that hovering the locked overlay dims it."""
        hub.emit(OVERLAY_HOVER, True)
        assert controller.view_state.opacity == HOVER_DIM_OPACITY
        hub.emit(OVERLAY_HOVER, False)
        assert controller.view_state.opacity == 1.0

    def test_hide_when_paused(self, controller, hub, settings_store, overlay_store, slot):
        """Test that a paused track hides the overlay when configured."""
        replicate(settings_store, overlay_store, slot, hide_when_paused=True)
        hub.emit(LYRICS_UPDATE, LYRICS)
        hub.emit(PROGRESS_UPDATE, {"position": 6, "isPlaying": False})
        hub.emit(OVERLAY_HOVER, True)
        assert controller.view_state.opacity == 0.0


class TestLocking:
    """Tests for lock state handling."""

    def test_lock_event_writes_flag(self, controller, hub, fake_host, overlay_store, slot):
        """Test that a lock-state-update writes the lock flag."""
        hub.emit(LOCK_STATE_UPDATE, False)

        assert overlay_store.get("is_locked") is False
        assert json.loads(slot.read())["is_locked"] is False
        assert fake_host.calls_to("set_lock_state")[-1] == (False,)
        assert fake_host.calls_to("set_pointer_passthrough")[-1] == (False,)
        assert controller.view_state.is_locked is False

    def test_same_lock_value_is_noop(self, controller, hub, fake_host, slot):
        """Test that re-sending the current lock value writes nothing."""
        hub.emit(LOCK_STATE_UPDATE, True)
        assert slot.read() is None
        assert fake_host.calls_to("set_lock_state") == [(True,)]

    def test_replicated_lock_change(self, controller, fake_host, settings_store, overlay_store, slot):
        """Test that a lock change from the settings surface reaches the host."""
        replicate(settings_store, overlay_store, slot, is_locked=False)
        assert fake_host.calls_to("set_lock_state")[-1] == (False,)
        assert fake_host.calls_to("set_pointer_passthrough")[-1] == (False,)

    def test_toggle_lock(self, controller, overlay_store):
        """Test toggling the lock flag."""
        controller.toggle_lock()
        assert overlay_store.get("is_locked") is False
        controller.toggle_lock()
        assert overlay_store.get("is_locked") is True

    def test_unlock_progress(self, controller, hub):
        """Test that the unlock progress is shown and reset on lock change."""
        hub.emit(UNLOCK_PROGRESS, 40)
        assert controller.view_state.unlock_progress == 40.0

        hub.emit(LOCK_STATE_UPDATE, False)
        assert controller.view_state.unlock_progress == 0.0

    def test_drag_and_settings_only_unlocked(self, controller, hub, fake_host):
        """Test that drag and settings requests need the overlay unlocked."""
        controller.request_drag()
        controller.request_settings()
        assert fake_host.calls_to("begin_window_drag") == []
        assert fake_host.calls_to("open_settings_window") == []

        hub.emit(LOCK_STATE_UPDATE, False)
        controller.request_drag()
        controller.request_settings()
        assert fake_host.calls_to("begin_window_drag") == [()]
        assert fake_host.calls_to("open_settings_window") == [()]

    def test_gesture_settings_forwarded(self, controller, fake_host, settings_store, overlay_store, slot):
        """Test that gesture options changed in settings reach the host."""
        replicate(
            settings_store,
            overlay_store,
            slot,
            unlock_wait_time=2.0,
            enable_auto_lock=True,
            auto_lock_delay=5.0,
        )
        assert fake_host.calls_to("set_unlock_timing")[-1] == (2.0, 3.0)
        assert fake_host.calls_to("set_auto_lock")[-1] == (True, 5.0)

    def test_unrelated_settings_do_not_touch_gesture(
        self, controller, fake_host, settings_store, overlay_store, slot
    ):
        """Test that style changes do not reconfigure the gesture."""
        replicate(settings_store, overlay_store, slot, text_color="#ff0000")
        assert len(fake_host.calls_to("set_unlock_timing")) == 1
        assert len(fake_host.calls_to("set_lock_state")) == 1

