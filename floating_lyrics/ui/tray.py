"""
System Tray del overlay de letras.

Icono en la bandeja del sistema con menú para bloquear/desbloquear
el overlay, abrir los ajustes, resetear la posición y salir.
"""

import logging
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal
from PyQt6.QtGui import QAction, QColor, QFont, QIcon, QPainter, QPixmap
from PyQt6.QtWidgets import QMenu, QSystemTrayIcon

logger = logging.getLogger(__name__)


class TrayIcon(QObject):
    """
    Icono de bandeja del sistema con menú contextual.

    Signals:
        toggle_lock: Solicita alternar el bloqueo del overlay
        open_settings: Solicita abrir la ventana de ajustes
        reset_position: Solicita mover el overlay a su posición inicial
        quit_app: Solicita cerrar la aplicación
    """

    # Signals
    toggle_lock = pyqtSignal()
    open_settings = pyqtSignal()
    reset_position = pyqtSignal()
    quit_app = pyqtSignal()

    def __init__(self, parent=None):
        super().__init__(parent)

        self._tray: Optional[QSystemTrayIcon] = None
        self._menu: Optional[QMenu] = None
        self._locked: bool = True

        self._setup_tray()

    def _create_icon(self) -> QIcon:
        """Genera un icono simple con el símbolo ♪."""
        size = 64
        pixmap = QPixmap(size, size)
        pixmap.fill(QColor(0, 0, 0, 0))

        painter = QPainter(pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        # Círculo de fondo
        painter.setBrush(QColor(29, 185, 84))
        painter.setPen(QColor(0, 0, 0, 0))
        painter.drawEllipse(4, 4, size - 8, size - 8)

        painter.setPen(QColor(255, 255, 255))
        painter.setFont(QFont("Segoe UI", 28, QFont.Weight.Bold))
        painter.drawText(pixmap.rect(), 0x0084, "♪")  # AlignCenter

        painter.end()
        return QIcon(pixmap)

    def _setup_tray(self) -> None:
        """Configura el icono del tray y el menú."""
        self._tray = QSystemTrayIcon(self._create_icon())
        self._menu = QMenu()

        # Info del track actual
        self._track_action = QAction("🎵 Sin reproducción")
        self._track_action.setEnabled(False)
        self._menu.addAction(self._track_action)

        self._menu.addSeparator()

        self._lock_action = QAction("🔓 Desbloquear overlay")
        self._lock_action.triggered.connect(lambda: self.toggle_lock.emit())
        self._menu.addAction(self._lock_action)

        settings_action = QAction("⚙ Ajustes")
        settings_action.triggered.connect(lambda: self.open_settings.emit())
        self._menu.addAction(settings_action)

        reset_action = QAction("↺ Resetear posición")
        reset_action.triggered.connect(lambda: self.reset_position.emit())
        self._menu.addAction(reset_action)

        self._menu.addSeparator()

        quit_action = QAction("❌ Salir")
        quit_action.triggered.connect(lambda: self.quit_app.emit())
        self._menu.addAction(quit_action)

        self._tray.setContextMenu(self._menu)
        self._tray.setToolTip("Letras flotantes\nClic para abrir el menú")

        # El clic izquierdo también abre el menú
        self._tray.activated.connect(self._on_tray_activated)

    def _on_tray_activated(self, reason: QSystemTrayIcon.ActivationReason) -> None:
        if reason == QSystemTrayIcon.ActivationReason.Trigger and self._menu:
            self._menu.popup(self._tray.geometry().center())

    # --- API Pública ---

    def show(self) -> None:
        if self._tray:
            self._tray.show()
            logger.info("Tray icon mostrado")

    def hide(self) -> None:
        if self._tray:
            self._tray.hide()

    def set_locked(self, locked: bool) -> None:
        """Refleja el estado de bloqueo en el menú."""
        self._locked = locked
        if locked:
            self._lock_action.setText("🔓 Desbloquear overlay")
        else:
            self._lock_action.setText("🔒 Bloquear overlay")

    def update_track_info(self, artist: str, title: str) -> None:
        """Actualiza la información del track actual."""
        display_text = f"{artist} - {title}"
        if len(display_text) > 40:
            display_text = display_text[:37] + "..."
        self._track_action.setText(f"🎵 {display_text}")
        if self._tray:
            self._tray.setToolTip(f"Letras flotantes\n{artist} - {title}")

    def clear_track_info(self) -> None:
        self._track_action.setText("🎵 Sin reproducción")
        if self._tray:
            self._tray.setToolTip("Letras flotantes\nClic para abrir el menú")
