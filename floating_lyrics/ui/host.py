"""
Runtime nativo del overlay.

Implementa con Qt las llamadas que el controlador hace a la ventana:
bloqueo, click-through, tiempos del gesto, arrastre, apertura de la
ventana de ajustes y listado de fuentes.
"""

import logging
import sys
from typing import TYPE_CHECKING, Optional

from PyQt6.QtCore import QProcess, Qt
from PyQt6.QtGui import QFontDatabase

from ..unlock_gesture import GestureTicker
from .tray import TrayIcon

if TYPE_CHECKING:
    from .overlay import LyricsOverlay

logger = logging.getLogger(__name__)


def list_font_families() -> list[str]:
    """Familias de fuentes instaladas, ordenadas y sin repetir."""
    return sorted(set(QFontDatabase.families()))


def settings_command() -> tuple[str, list[str]]:
    """Programa y argumentos para lanzar la ventana de ajustes."""
    if getattr(sys, "frozen", False):
        # Ejecutable empaquetado: el propio binario acepta --settings
        return sys.executable, ["--settings"]
    return sys.executable, ["-m", "floating_lyrics.main", "--settings"]


class QtHost:
    """
    Host de la ventana overlay.

    Los métodos pueden lanzar excepciones de Qt; el controlador las
    registra y sigue.
    """

    def __init__(
        self,
        overlay: "LyricsOverlay",
        ticker: GestureTicker,
        tray: Optional[TrayIcon] = None,
        settings_args: tuple[str, ...] = (),
    ):
        self._overlay = overlay
        self._ticker = ticker
        self._tray = tray
        self._settings_args = list(settings_args)
        self._settings_process: Optional[QProcess] = None

    # --- Bloqueo ---

    def set_lock_state(self, locked: bool) -> None:
        self._ticker.sync_lock(locked)
        self._overlay.set_locked(locked)
        if self._tray:
            self._tray.set_locked(locked)

    def set_pointer_passthrough(self, ignore: bool) -> None:
        """Activa o desactiva el click-through de la ventana."""
        overlay = self._overlay
        if bool(overlay.windowFlags() & Qt.WindowType.WindowTransparentForInput) == ignore:
            return
        was_visible = overlay.isVisible()
        overlay.setWindowFlag(Qt.WindowType.WindowTransparentForInput, ignore)
        # Cambiar flags oculta la ventana en la mayoría de plataformas
        if was_visible:
            overlay.show()
        logger.debug(f"Click-through {'activado' if ignore else 'desactivado'}")

    # --- Gesto ---

    def set_unlock_timing(self, wait_time: float, hold_time: float) -> None:
        self._ticker.configure(wait_time=wait_time, hold_time=hold_time)

    def set_hover_unlock_enabled(self, enabled: bool) -> None:
        self._ticker.configure(hover_unlock_enabled=enabled)

    def set_auto_lock(self, enabled: bool, delay: float) -> None:
        self._ticker.configure(auto_lock_enabled=enabled, auto_lock_delay=delay)

    # --- Ventana ---

    def begin_window_drag(self) -> None:
        handle = self._overlay.windowHandle()
        if handle is None:
            raise RuntimeError("La ventana overlay no tiene handle nativo")
        if not handle.startSystemMove():
            logger.debug("El sistema no soporta arrastre nativo")

    def open_settings_window(self) -> None:
        """Lanza la ventana de ajustes como proceso hijo (una sola)."""
        process = self._settings_process
        if process is not None and process.state() != QProcess.ProcessState.NotRunning:
            logger.info("La ventana de ajustes ya está abierta")
            return

        program, args = settings_command()
        process = QProcess()
        process.setProgram(program)
        process.setArguments(args + self._settings_args)
        process.start()
        if not process.waitForStarted(3000):
            raise RuntimeError(f"No se pudo iniciar la ventana de ajustes: {process.errorString()}")
        self._settings_process = process
        logger.info("Ventana de ajustes abierta")

    def close(self) -> None:
        """Cierra la ventana de ajustes si sigue abierta."""
        process = self._settings_process
        if process is not None and process.state() != QProcess.ProcessState.NotRunning:
            process.terminate()
            process.waitForFinished(2000)
        self._settings_process = None
