"""
Letras flotantes - Aplicación principal

Overlay de letras sincronizadas siempre visible, alimentado por una
fuente de reproducción externa que envía letras y progreso por HTTP.
El mismo programa abre la ventana de ajustes con --settings.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import parse_qs, urlparse

import qasync
from PyQt6.QtCore import QTimer
from PyQt6.QtWidgets import QApplication

from .events import LOCK_STATE_UPDATE, OVERLAY_HOVER, UNLOCK_PROGRESS, PlaybackEventHub
from .overlay_controller import OverlayController, OverlayViewState
from .playback_server import DEFAULT_PORT, PlaybackServer
from .settings import (
    DEFAULT_SETTINGS_PATH,
    SettingsFile,
    SettingsFileWatcher,
    SettingsStore,
    WindowMode,
)
from .ui.host import QtHost, list_font_families
from .ui.overlay import HoverPoller, LyricsOverlay
from .ui.settings import SettingsWindow
from .ui.tray import TrayIcon
from .unlock_gesture import GestureTicker, UnlockGesture

logger = logging.getLogger(__name__)

SETTINGS_FILE_ENV = "FLOATING_LYRICS_SETTINGS"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="floating-lyrics",
        description="Overlay de letras sincronizadas",
    )
    parser.add_argument(
        "--settings",
        action="store_true",
        help="Abrir la ventana de ajustes en lugar del overlay",
    )
    parser.add_argument(
        "--url",
        help="URL de inicio; con ?settings=true abre la ventana de ajustes",
    )
    parser.add_argument(
        "--settings-file",
        type=Path,
        default=Path(os.environ.get(SETTINGS_FILE_ENV, DEFAULT_SETTINGS_PATH)),
        help="Archivo JSON de configuración compartido",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Puerto del servidor de reproducción (por defecto {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Logging detallado",
    )
    return parser


def window_mode_from_args(args: argparse.Namespace) -> WindowMode:
    """Decide la superficie del proceso a partir de los argumentos."""
    if args.settings:
        return WindowMode.SETTINGS
    if args.url:
        query = parse_qs(urlparse(args.url).query)
        if query.get("settings", [""])[0].lower() == "true":
            return WindowMode.SETTINGS
    return WindowMode.OVERLAY


def parse_window_mode(argv: Sequence[str]) -> WindowMode:
    """Modo de ventana para una línea de comandos (ignora argumentos de Qt)."""
    args, _unknown = build_parser().parse_known_args(list(argv))
    return window_mode_from_args(args)


def setup_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


class OverlayApp:
    """
    Proceso del overlay: orquesta servidor, controlador, gesto y ventana.
    """

    def __init__(self, app: QApplication, settings_path: Path, port: int):
        self.app = app
        self._running: bool = False
        self._cleaned: bool = False

        # Configuración replicada (el overlay solo escribe is_locked)
        self.slot = SettingsFile(settings_path)
        self.store = SettingsStore(self.slot, role=WindowMode.OVERLAY)
        self.store.load()
        self.watcher = SettingsFileWatcher(self.store, self.slot)

        self.hub = PlaybackEventHub()

        # UI
        self.overlay = LyricsOverlay()
        self.tray = TrayIcon()

        # Gesto de desbloqueo
        settings = self.store.settings
        self.gesture = UnlockGesture(
            settings.unlock_wait_time,
            settings.unlock_hold_time,
            auto_lock_delay=settings.auto_lock_delay,
            auto_lock_enabled=settings.enable_auto_lock,
            hover_unlock_enabled=settings.enable_hover_unlock,
            locked=settings.is_locked,
        )
        self.gesture.on_progress(lambda p: self.hub.emit(UNLOCK_PROGRESS, p))
        self.gesture.on_lock_request(lambda locked: self.hub.emit(LOCK_STATE_UPDATE, locked))
        self.ticker = GestureTicker(self.gesture)

        self.host = QtHost(
            self.overlay,
            self.ticker,
            self.tray,
            settings_args=("--settings-file", str(self.slot.path)),
        )
        self.controller = OverlayController(self.store, self.host)
        self.controller.attach(self.hub)
        self.controller.on_view_change(self.overlay.apply_view_state)
        self.controller.on_view_change(self._update_tray)

        self.poller = HoverPoller(self.overlay)
        self.poller.hover_changed.connect(self._on_hover_changed)
        self.poller.pointer_moved.connect(self.ticker.pointer_activity)

        self.server = PlaybackServer(self.hub, port=port)

        # Signals de la ventana
        self.overlay.lock_clicked.connect(self.controller.toggle_lock)
        self.overlay.settings_clicked.connect(self.controller.request_settings)
        self.overlay.drag_requested.connect(self._on_drag_requested)

        # Signals del tray
        self.tray.toggle_lock.connect(self._toggle_lock)
        self.tray.open_settings.connect(self._open_settings)
        self.tray.reset_position.connect(self.overlay.reset_position)
        self.tray.quit_app.connect(self._quit)

    # --- Callbacks ---

    def _on_hover_changed(self, hovering: bool) -> None:
        self.hub.emit(OVERLAY_HOVER, hovering)
        self.ticker.set_hovering(hovering)

    def _on_drag_requested(self) -> None:
        self.ticker.pointer_activity()
        self.controller.request_drag()

    def _toggle_lock(self) -> None:
        self.hub.emit(LOCK_STATE_UPDATE, not self.store.get("is_locked"))

    def _open_settings(self) -> None:
        """Desde el tray los ajustes se abren aunque el overlay esté bloqueado."""
        try:
            self.host.open_settings_window()
        except Exception as e:
            logger.error(f"No se pudo abrir la ventana de ajustes: {e}")

    def _update_tray(self, state: OverlayViewState) -> None:
        if state.track is None:
            self.tray.clear_track_info()
        else:
            self.tray.update_track_info(state.track.artist, state.track.title)

    def _quit(self) -> None:
        """Cierra la aplicación de forma segura."""
        logger.info("Cerrando aplicación...")
        self._running = False

    # --- Ciclo de vida ---

    async def run(self) -> None:
        self._running = True

        self.watcher.start()
        self.controller.start()
        self.overlay.show()
        self.tray.show()
        self.poller.start()

        if not await self.server.start():
            logger.warning("Sin servidor de reproducción: el overlay no recibirá letras")

        try:
            # El loop de Qt maneja los eventos
            while self._running:
                await asyncio.sleep(0.1)
        finally:
            await self.cleanup()

    async def cleanup(self) -> None:
        """Limpia recursos (solo la primera vez)."""
        if self._cleaned:
            return
        self._cleaned = True

        self.poller.stop()
        self.ticker.stop()
        self.watcher.stop()
        await self.server.close()
        try:
            self.host.close()
            self.overlay.hide()
            self.overlay.close()
            self.tray.hide()
        except Exception as e:
            logger.error(f"Error al limpiar recursos: {e}")

        # Salir del loop de Qt
        QTimer.singleShot(100, self.app.quit)
        logger.info("Aplicación cerrada")


class SettingsApp:
    """Proceso de la ventana de ajustes."""

    def __init__(self, app: QApplication, settings_path: Path):
        self.app = app
        self._running: bool = False
        self._cleaned: bool = False

        self.slot = SettingsFile(settings_path)
        self.store = SettingsStore(self.slot, role=WindowMode.SETTINGS)
        self.store.load()
        self.watcher = SettingsFileWatcher(self.store, self.slot)

        self.window = SettingsWindow(self.store, list_font_families)
        self.window.closed.connect(self._quit)

    def _quit(self) -> None:
        self._running = False

    async def run(self) -> None:
        self._running = True
        self.watcher.start()
        self.window.show()

        try:
            while self._running:
                await asyncio.sleep(0.1)
        finally:
            await self.cleanup()

    async def cleanup(self) -> None:
        if self._cleaned:
            return
        self._cleaned = True

        self.watcher.stop()
        self.window.close()
        QTimer.singleShot(0, self.app.quit)
        logger.info("Ventana de ajustes cerrada")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Punto de entrada principal."""
    argv = list(sys.argv[1:] if argv is None else argv)
    args, qt_args = build_parser().parse_known_args(argv)
    setup_logging(args.debug)

    mode = window_mode_from_args(args)
    logger.info(f"Iniciando en modo {mode.value}")

    # Crear aplicación Qt
    app = QApplication([sys.argv[0]] + qt_args)
    app.setApplicationName("Letras flotantes")
    # El cierre lo decide cada runner (tray o ventana de ajustes)
    app.setQuitOnLastWindowClosed(False)

    if mode is WindowMode.OVERLAY:
        print(
            """
    ╔═══════════════════════════════════════════════╗
    ║                                               ║
    ║   🎵  LETRAS FLOTANTES  🎵                    ║
    ║                                               ║
    ║   Overlay sincronizado • Clic-through        ║
    ║                                               ║
    ╚═══════════════════════════════════════════════╝
    """
        )
        runner = OverlayApp(app, args.settings_file, args.port)
    else:
        runner = SettingsApp(app, args.settings_file)

    # Crear event loop con qasync
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)

    with loop:
        try:
            loop.run_until_complete(runner.run())
        except KeyboardInterrupt:
            logger.info("Interrupción de teclado")
        finally:
            loop.run_until_complete(runner.cleanup())
    return 0


if __name__ == "__main__":
    sys.exit(main())
