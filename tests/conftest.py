"""Fixtures compartidas de los tests."""
import pytest

from floating_lyrics.models import LyricLine, LyricSet, TrackInfo
from floating_lyrics.settings import SettingsFile, SettingsStore, WindowMode


class FakeHost:
    """Host que registra las llamadas en lugar de tocar ventanas."""

    def __init__(self):
        self.calls = []

    def _record(self, name, *args):
        self.calls.append((name, args))

    def calls_to(self, name):
        return [args for called, args in self.calls if called == name]

    def set_lock_state(self, locked):
        self._record("set_lock_state", locked)

    def set_pointer_passthrough(self, ignore):
        self._record("set_pointer_passthrough", ignore)

    def set_unlock_timing(self, wait_time, hold_time):
        self._record("set_unlock_timing", wait_time, hold_time)

    def set_hover_unlock_enabled(self, enabled):
        self._record("set_hover_unlock_enabled", enabled)

    def set_auto_lock(self, enabled, delay):
        self._record("set_auto_lock", enabled, delay)

    def begin_window_drag(self):
        self._record("begin_window_drag")

    def open_settings_window(self):
        self._record("open_settings_window")


class FailingHost:
    """Host cuyas llamadas siempre fallan."""

    def __getattr__(self, name):
        def fail(*args):
            raise RuntimeError(f"{name} no disponible")

        return fail


@pytest.fixture
def slot(tmp_path):
    """Archivo de configuración temporal."""
    return SettingsFile(tmp_path / "overlay-settings.json")


@pytest.fixture
def overlay_store(slot):
    """Réplica del overlay (solo escribe is_locked)."""
    store = SettingsStore(slot, role=WindowMode.OVERLAY)
    store.load()
    return store


@pytest.fixture
def settings_store(slot):
    """Store de la ventana de ajustes."""
    store = SettingsStore(slot, role=WindowMode.SETTINGS)
    store.load()
    return store


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def track():
    return TrackInfo(title="Dynamite", artist="BTS", album="BE", duration=199.0)


def make_lines(*starts, prefix="línea"):
    """Crea líneas con los tiempos de inicio dados."""
    return [LyricLine(start_time=s, text=f"{prefix} {i}") for i, s in enumerate(starts)]


@pytest.fixture
def lyric_set():
    """Letras sincronizadas con líneas en 0, 5 y 10 segundos."""
    return LyricSet.from_lines(make_lines(0.0, 5.0, 10.0))
