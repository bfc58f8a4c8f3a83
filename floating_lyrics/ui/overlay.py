"""
Overlay transparente para mostrar letras sincronizadas.

Ventana sin bordes, siempre visible y sin foco que dibuja el
OverlayViewState del controlador: info del track, línea activa con
sus textos fonético y traducido, y líneas de contexto.
"""

import logging
from typing import Optional

from PyQt6.QtCore import (
    QEasingCurve,
    QObject,
    QPoint,
    QPropertyAnimation,
    QTimer,
    Qt,
    pyqtSignal,
)
from PyQt6.QtGui import QColor, QCursor, QMouseEvent
from PyQt6.QtWidgets import (
    QFrame,
    QGraphicsDropShadowEffect,
    QGraphicsOpacityEffect,
    QHBoxLayout,
    QLabel,
    QProgressBar,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from ..display_rules import TrackDisplay
from ..overlay_controller import LineTexts, OverlayViewState
from ..settings import OverlaySettings

logger = logging.getLogger(__name__)

_ALIGNMENTS = {
    "left": Qt.AlignmentFlag.AlignLeft,
    "center": Qt.AlignmentFlag.AlignHCenter,
    "right": Qt.AlignmentFlag.AlignRight,
}

_BUTTON_STYLE = """
    QPushButton {
        background-color: rgba(0, 0, 0, 0.6);
        color: rgba(255, 255, 255, 0.8);
        border: none;
        border-radius: 12px;
        font-size: 13px;
    }
    QPushButton:hover {
        background-color: rgba(29, 185, 84, 0.8);
        color: white;
    }
"""


def _rgba(color: str, percent: int) -> str:
    """Convierte '#rrggbb' + opacidad 0-100 a rgba() de stylesheet."""
    qcolor = QColor(color)
    return f"rgba({qcolor.red()}, {qcolor.green()}, {qcolor.blue()}, {percent / 100:.2f})"


def _font_css(family: str, size: int, weight: str) -> str:
    css = f"font-size: {size}px; font-weight: {weight};"
    if family:
        css += f" font-family: '{family}';"
    return css


class LyricsOverlay(QWidget):
    """
    Overlay de letras.

    Signals:
        lock_clicked: Clic en el botón de candado (solo desbloqueado)
        settings_clicked: Clic en el botón de ajustes
        drag_requested: Clic izquierdo sobre el contenido
    """

    lock_clicked = pyqtSignal()
    settings_clicked = pyqtSignal()
    drag_requested = pyqtSignal()

    DEFAULT_WIDTH = 800
    DEFAULT_HEIGHT = 220

    def __init__(self):
        super().__init__()

        self._render_key: Optional[tuple] = None
        self._active_key: Optional[tuple] = None
        self._locked: bool = True

        self._opacity_anim = QPropertyAnimation(self, b"windowOpacity")
        self._opacity_anim.setEasingCurve(QEasingCurve.Type.OutCubic)

        self._setup_window()
        self._setup_ui()

    def _setup_window(self) -> None:
        """Configura las propiedades de la ventana."""
        self.setWindowFlags(
            Qt.WindowType.FramelessWindowHint
            | Qt.WindowType.WindowStaysOnTopHint
            | Qt.WindowType.Tool  # No aparece en taskbar
            | Qt.WindowType.WindowDoesNotAcceptFocus
        )
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setAttribute(Qt.WidgetAttribute.WA_ShowWithoutActivating)
        self.resize(self.DEFAULT_WIDTH, self.DEFAULT_HEIGHT)
        self.reset_position()

    def _setup_ui(self) -> None:
        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(4)

        # Barra de controles (visible desbloqueado o durante el gesto)
        controls = QHBoxLayout()
        controls.setContentsMargins(0, 0, 0, 0)
        controls.addStretch()

        self.unlock_bar = QProgressBar()
        self.unlock_bar.setRange(0, 100)
        self.unlock_bar.setTextVisible(False)
        self.unlock_bar.setFixedSize(120, 6)
        self.unlock_bar.setStyleSheet(
            """
            QProgressBar {
                background-color: rgba(255, 255, 255, 0.15);
                border: none;
                border-radius: 3px;
            }
            QProgressBar::chunk {
                background-color: #1db954;
                border-radius: 3px;
            }
        """
        )
        self.unlock_bar.hide()
        controls.addWidget(self.unlock_bar, alignment=Qt.AlignmentFlag.AlignVCenter)

        self.settings_btn = QPushButton("⚙")
        self.settings_btn.setFixedSize(24, 24)
        self.settings_btn.setCursor(Qt.CursorShape.PointingHandCursor)
        self.settings_btn.setToolTip("Ajustes")
        self.settings_btn.setStyleSheet(_BUTTON_STYLE)
        self.settings_btn.clicked.connect(self.settings_clicked.emit)
        controls.addWidget(self.settings_btn)

        self.lock_btn = QPushButton("🔒")
        self.lock_btn.setFixedSize(24, 24)
        self.lock_btn.setCursor(Qt.CursorShape.PointingHandCursor)
        self.lock_btn.setStyleSheet(_BUTTON_STYLE)
        self.lock_btn.clicked.connect(self.lock_clicked.emit)
        controls.addWidget(self.lock_btn)

        main_layout.addLayout(controls)

        # Container con el contenido
        self.container = QFrame()
        self.container.setObjectName("container")
        self.content_layout = QVBoxLayout(self.container)
        main_layout.addWidget(self.container)
        main_layout.addStretch()

        self.set_locked(True)

    # --- API pública ---

    def set_locked(self, locked: bool) -> None:
        """Muestra u oculta los controles según el bloqueo."""
        self._locked = locked
        self.lock_btn.setText("🔒" if locked else "🔓")
        self.lock_btn.setToolTip("Bloquear" if not locked else "Bloqueado")
        self.lock_btn.setVisible(not locked)
        self.settings_btn.setVisible(not locked)
        self.unlock_bar.hide()
        self.setCursor(
            Qt.CursorShape.ArrowCursor if locked else Qt.CursorShape.SizeAllCursor
        )

    def reset_position(self) -> None:
        """Centra el overlay en la parte inferior de la pantalla."""
        screen = self.screen()
        if screen:
            rect = screen.availableGeometry()
            x = rect.x() + (rect.width() - self.width()) // 2
            y = rect.y() + rect.height() - self.height() - 100  # 100px desde abajo
            self.move(x, y)

    def apply_view_state(self, state: OverlayViewState) -> None:
        """Aplica un nuevo estado de vista."""
        self._apply_opacity(state.opacity, state.settings.animation_duration)
        self._apply_unlock_progress(state)

        key = self._content_key(state)
        if key == self._render_key:
            return
        self._render_key = key
        self._rebuild(state)

    # --- Render ---

    def _apply_opacity(self, target: float, duration_ms: int) -> None:
        if self._opacity_anim.endValue() == target:
            return
        self._opacity_anim.stop()
        self._opacity_anim.setDuration(duration_ms)
        self._opacity_anim.setStartValue(self.windowOpacity())
        self._opacity_anim.setEndValue(target)
        self._opacity_anim.start()

    def _apply_unlock_progress(self, state: OverlayViewState) -> None:
        if state.is_locked and state.unlock_progress > 0:
            self.unlock_bar.setValue(int(state.unlock_progress))
            self.unlock_bar.show()
        else:
            self.unlock_bar.hide()

    @staticmethod
    def _content_key(state: OverlayViewState) -> tuple:
        return (
            state.display_track,
            state.track_display,
            state.active_line,
            state.context_before,
            state.context_after,
            state.settings,
        )

    def _rebuild(self, state: OverlayViewState) -> None:
        settings = state.settings
        self._clear_content()
        self._style_container(settings)

        layout = self.content_layout
        layout.setContentsMargins(
            settings.padding, settings.padding, settings.padding, settings.padding
        )
        layout.setSpacing(settings.section_gap)

        order = settings.element_order
        track_widget = self._build_track_info(state) if settings.show_track_info else None
        lyrics_widget = self._build_lyrics(state)

        # La info del track va antes o después del bloque de letras
        lyric_positions = [order.index(e) for e in order if e != "track_info"]
        track_first = order.index("track_info") < min(lyric_positions)
        blocks = [track_widget, lyrics_widget] if track_first else [lyrics_widget, track_widget]
        for block in blocks:
            if block is not None:
                layout.addWidget(block)

        if settings.overlay_max_width:
            self.setMaximumWidth(settings.overlay_max_width)
        else:
            self.setMaximumWidth(16777215)  # QWIDGETSIZE_MAX

        if settings.custom_stylesheet:
            self.container.setStyleSheet(
                self.container.styleSheet() + "\n" + settings.custom_stylesheet
            )

        self.adjustSize()

    def _clear_content(self) -> None:
        while self.content_layout.count():
            item = self.content_layout.takeAt(0)
            widget = item.widget()
            if widget is not None:
                widget.deleteLater()

    def _style_container(self, settings: OverlaySettings) -> None:
        if settings.background_mode == "solid":
            background = _rgba(
                settings.solid_background_color, settings.solid_background_opacity
            )
        else:
            background = "transparent"
        self.container.setStyleSheet(
            f"""
            QFrame#container {{
                background-color: {background};
                border-radius: {settings.border_radius}px;
            }}
        """
        )

    def _build_track_info(self, state: OverlayViewState) -> Optional[QWidget]:
        track = state.display_track
        if track is None:
            return None
        settings = state.settings

        row = QWidget()
        layout = QHBoxLayout(row)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(8)

        if settings.show_album_art:
            cover = QLabel("♪")
            cover.setFixedSize(settings.album_art_size, settings.album_art_size)
            cover.setAlignment(Qt.AlignmentFlag.AlignCenter)
            cover.setStyleSheet(
                f"""
                background-color: {_rgba(settings.active_color, 80)};
                color: white;
                border-radius: {settings.album_art_border_radius}px;
                font-size: {settings.album_art_size // 2}px;
            """
            )
            if track.album_art:
                cover.setToolTip(track.album_art)
            layout.addWidget(cover)

        prefix = "Siguiente: " if state.track_display is TrackDisplay.NEXT else ""
        label = QLabel(f"{prefix}{track.artist} - {track.title}")
        label.setStyleSheet(
            f"""
            color: {_rgba(settings.track_info_color, settings.track_info_opacity)};
            {_font_css("", settings.track_info_font_size, settings.track_info_font_weight)}
            background: transparent;
        """
        )
        layout.addWidget(label)

        align = settings.text_align
        if align != "left":
            layout.insertStretch(0)
        if align != "right":
            layout.addStretch()
        return row

    def _build_lyrics(self, state: OverlayViewState) -> QWidget:
        settings = state.settings
        block = QWidget()
        layout = QVBoxLayout(block)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(settings.lyrics_set_gap)

        if state.is_waiting:
            text = "♪" if state.track is not None else "Esperando reproducción..."
            waiting = QLabel(text)
            waiting.setAlignment(_ALIGNMENTS[settings.text_align])
            waiting.setStyleSheet(
                f"color: {_rgba(settings.text_color, 60)}; "
                f"{_font_css(settings.original_font_family, settings.original_font_size, '400')} "
                "background: transparent;"
            )
            layout.addWidget(waiting)
            return block

        for line in state.context_before:
            layout.addWidget(self._build_line(line, settings, active=False))

        active = self._build_line(state.active_line, settings, active=True)
        layout.addWidget(active)

        for line in state.context_after:
            layout.addWidget(self._build_line(line, settings, active=False))

        self._apply_text_effect(block, settings)

        active_key = (state.track, state.active_line)
        if active_key != self._active_key:
            self._active_key = active_key
            self._animate_line(active, settings)
        return block

    def _build_line(self, texts: LineTexts, settings: OverlaySettings, active: bool) -> QWidget:
        widget = QFrame()
        layout = QVBoxLayout(widget)
        layout.setContentsMargins(8, 2, 8, 2)
        layout.setSpacing(settings.line_gap)

        dim = 100 if active or not settings.fade_non_active_lyrics else 50
        parts = {
            "original": (
                texts.main,
                settings.active_color if active else settings.text_color,
                _font_css(
                    settings.original_font_family,
                    settings.original_font_size,
                    settings.original_font_weight,
                ),
            ),
            "phonetic": (
                texts.phonetic,
                settings.phonetic_color,
                _font_css(
                    settings.phonetic_font_family,
                    settings.phonetic_font_size,
                    settings.phonetic_font_weight,
                ),
            ),
            "translation": (
                texts.translation,
                settings.translation_color,
                _font_css(
                    settings.translation_font_family,
                    settings.translation_font_size,
                    settings.translation_font_weight,
                ),
            ),
        }

        for element in settings.element_order:
            if element not in parts:
                continue
            text, color, font = parts[element]
            if not text:
                continue
            label = QLabel(text)
            label.setWordWrap(True)
            label.setAlignment(_ALIGNMENTS[settings.text_align])
            label.setStyleSheet(f"color: {_rgba(color, dim)}; {font} background: transparent;")
            layout.addWidget(label)

        if settings.background_mode == "line":
            widget.setStyleSheet(
                f"QFrame {{ background-color: "
                f"{_rgba(settings.background_color, settings.line_background_opacity)}; "
                f"border-radius: {settings.border_radius}px; }}"
            )
        return widget

    @staticmethod
    def _apply_text_effect(widget: QWidget, settings: OverlaySettings) -> None:
        """Contorno o sombra del texto (un solo efecto por widget)."""
        if settings.text_stroke:
            effect = QGraphicsDropShadowEffect()
            effect.setOffset(0, 0)
            effect.setBlurRadius(settings.text_stroke_size * 2)
            effect.setColor(QColor(0, 0, 0, 255))
        elif settings.text_shadow == "soft":
            effect = QGraphicsDropShadowEffect()
            effect.setOffset(0, 2)
            effect.setBlurRadius(12)
            effect.setColor(QColor(0, 0, 0, 160))
        elif settings.text_shadow == "hard":
            effect = QGraphicsDropShadowEffect()
            effect.setOffset(2, 2)
            effect.setBlurRadius(0)
            effect.setColor(QColor(0, 0, 0, 220))
        else:
            return
        widget.setGraphicsEffect(effect)

    def _animate_line(self, widget: QWidget, settings: OverlaySettings) -> None:
        """Entrada de la línea activa; todos los tipos animan la opacidad."""
        if settings.animation_type == "none":
            return
        effect = QGraphicsOpacityEffect(widget)
        widget.setGraphicsEffect(effect)
        anim = QPropertyAnimation(effect, b"opacity", widget)
        anim.setDuration(settings.animation_duration)
        anim.setStartValue(0.0)
        anim.setEndValue(1.0)
        if settings.animation_type == "scale":
            anim.setEasingCurve(QEasingCurve.Type.OutBack)
        else:
            anim.setEasingCurve(QEasingCurve.Type.OutCubic)
        anim.start()

    # --- Eventos ---

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """Clic izquierdo: arrastre nativo (el controlador filtra si está bloqueado)."""
        if event.button() == Qt.MouseButton.LeftButton:
            self.drag_requested.emit()
            event.accept()
            return
        super().mousePressEvent(event)


class HoverPoller(QObject):
    """
    Detecta el mouse sobre el overlay muestreando el cursor.

    Con click-through activo la ventana no recibe eventos de entrada,
    así que se compara la posición global del cursor con su geometría.

    Signals:
        hover_changed: El cursor entró (True) o salió (False)
        pointer_moved: El cursor se movió estando encima
    """

    hover_changed = pyqtSignal(bool)
    pointer_moved = pyqtSignal()

    POLL_INTERVAL_MS = 100

    def __init__(self, overlay: QWidget, parent=None):
        super().__init__(parent)
        self._overlay = overlay
        self._hovering: bool = False
        self._last_pos: Optional[QPoint] = None

        self._timer = QTimer(self)
        self._timer.setInterval(self.POLL_INTERVAL_MS)
        self._timer.timeout.connect(self.poll)

    @property
    def is_hovering(self) -> bool:
        return self._hovering

    def start(self) -> None:
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def poll(self) -> None:
        pos = QCursor.pos()
        inside = self._overlay.isVisible() and self._overlay.frameGeometry().contains(pos)

        if inside != self._hovering:
            self._hovering = inside
            self.hover_changed.emit(inside)
        elif inside and pos != self._last_pos:
            self.pointer_moved.emit()
        self._last_pos = pos
