"""Tests for the main module (command line and window mode)."""
import asyncio
from pathlib import Path

import pytest

from floating_lyrics import main as main_module
from floating_lyrics.main import (
    SETTINGS_FILE_ENV,
    build_parser,
    parse_window_mode,
)
from floating_lyrics.playback_server import DEFAULT_PORT
from floating_lyrics.settings import DEFAULT_SETTINGS_PATH, WindowMode


class TestParseWindowMode:
    """Tests for parse_window_mode function."""

    def test_default_is_overlay(self):
        """Test that no flag starts the overlay."""
        assert parse_window_mode([]) is WindowMode.OVERLAY

    def test_settings_flag(self):
        """Test that --settings starts the settings surface."""
        assert parse_window_mode(["--settings"]) is WindowMode.SETTINGS

    @pytest.mark.parametrize(
        "url,mode",
        [
            ("index.html?settings=true", WindowMode.SETTINGS),
            ("index.html?settings=TRUE&x=1", WindowMode.SETTINGS),
            ("index.html?settings=false", WindowMode.OVERLAY),
            ("index.html", WindowMode.OVERLAY),
        ],
    )
    def test_url_query(self, url, mode):
        """Test the start URL query parameter."""
        assert parse_window_mode(["--url", url]) is mode

    def test_ignores_qt_arguments(self):
        """Test that unknown Qt arguments do not break parsing."""
        assert parse_window_mode(["-platform", "offscreen", "--settings"]) is WindowMode.SETTINGS


class TestBuildParser:
    """Tests for the argument parser."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        monkeypatch.delenv(SETTINGS_FILE_ENV, raising=False)
        args = build_parser().parse_args([])
        assert args.port == DEFAULT_PORT
        assert args.settings_file == Path(DEFAULT_SETTINGS_PATH)
        assert args.debug is False

    def test_settings_file_from_env(self, monkeypatch, tmp_path):
        """Test that the settings file can come from the environment."""
        monkeypatch.setenv(SETTINGS_FILE_ENV, str(tmp_path / "s.json"))
        args = build_parser().parse_args([])
        assert args.settings_file == tmp_path / "s.json"

    def test_explicit_values(self, tmp_path):
        """Test explicit options."""
        args = build_parser().parse_args(
            ["--port", "16000", "--settings-file", str(tmp_path / "x.json"), "--debug"]
        )
        assert args.port == 16000
        assert args.settings_file == tmp_path / "x.json"
        assert args.debug is True


class _FakeApplication:
    def __init__(self, argv):
        self.argv = argv

    def setApplicationName(self, name):
        pass

    def setQuitOnLastWindowClosed(self, value):
        pass


class _InterruptedLoop:
    """Loop que simula Ctrl+C en la primera ejecución."""

    def __init__(self, app):
        self.calls = 0

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def run_until_complete(self, coro):
        self.calls += 1
        if self.calls == 1:
            coro.close()
            raise KeyboardInterrupt
        return asyncio.run(coro)


class _RecordingRunner:
    instances = []

    def __init__(self, app, settings_path):
        self.cleanups = 0
        _RecordingRunner.instances.append(self)

    async def run(self):
        pass

    async def cleanup(self):
        self.cleanups += 1


class TestMainShutdown:
    """Tests for the shutdown path of main()."""

    def test_keyboard_interrupt_runs_cleanup(self, monkeypatch, tmp_path):
        """Test that an interrupted loop still cleans up the runner."""
        _RecordingRunner.instances.clear()
        monkeypatch.setattr(main_module, "QApplication", _FakeApplication)
        monkeypatch.setattr(main_module, "SettingsApp", _RecordingRunner)
        monkeypatch.setattr(main_module.qasync, "QEventLoop", _InterruptedLoop)
        monkeypatch.setattr(main_module.asyncio, "set_event_loop", lambda loop: None)

        code = main_module.main(["--settings", "--settings-file", str(tmp_path / "s.json")])

        assert code == 0
        assert len(_RecordingRunner.instances) == 1
        assert _RecordingRunner.instances[0].cleanups == 1
