"""
Ventana de ajustes del overlay.

Corre en su propio proceso (--settings). Cada control escribe su clave
en el SettingsStore al cambiar; el overlay recibe el documento por el
archivo compartido. Si otra ventana cambia el documento, los controles
se refrescan.
"""

import logging
from typing import Any, Callable

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QCloseEvent, QColor
from PyQt6.QtWidgets import (
    QAbstractItemView,
    QCheckBox,
    QColorDialog,
    QComboBox,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QScrollArea,
    QSlider,
    QTabWidget,
    QVBoxLayout,
    QWidget,
)

from ..settings import (
    OverlaySettings,
    SettingsStore,
    setting_choices,
    setting_range,
)

logger = logging.getLogger(__name__)


# ── Estilos compartidos ────────────────────────────────────────────────────
_DARK_STYLE = """
    QWidget {
        background-color: #1a1a2e;
        color: #ffffff;
    }
    QTabBar::tab {
        background: #2a2a4e;
        color: #aaa;
        padding: 8px 18px;
        border-top-left-radius: 6px;
        border-top-right-radius: 6px;
        margin-right: 2px;
    }
    QTabBar::tab:selected {
        background: #1a1a2e;
        color: #1db954;
        font-weight: bold;
    }
    QGroupBox {
        border: 1px solid rgba(255,255,255,0.15);
        border-radius: 8px;
        margin-top: 14px;
        padding-top: 18px;
        color: #1db954;
        font-weight: bold;
    }
    QGroupBox::title {
        subcontrol-origin: margin;
        left: 12px;
    }
    QLabel { color: #ddd; font-size: 13px; }
    QSlider::groove:horizontal {
        height: 6px; background: #333; border-radius: 3px;
    }
    QSlider::handle:horizontal {
        background: #1db954; width: 16px; margin: -5px 0;
        border-radius: 8px;
    }
    QSlider::sub-page:horizontal { background: #1db954; border-radius: 3px; }
    QCheckBox { color: #ddd; font-size: 13px; spacing: 6px; }
    QCheckBox::indicator { width: 18px; height: 18px; }
    QCheckBox::indicator:unchecked { border: 2px solid #555; border-radius: 4px; background: #2a2a4e; }
    QCheckBox::indicator:checked  { border: 2px solid #1db954; border-radius: 4px; background: #1db954; }
    QComboBox, QListWidget, QPlainTextEdit {
        background: #2a2a4e; color: white; border: 1px solid #555;
        border-radius: 5px; padding: 4px 8px;
    }
    QComboBox::drop-down { border: none; }
    QComboBox QAbstractItemView { background: #2a2a4e; color: white; selection-background-color: #1db954; }
    QPushButton {
        background-color: #1db954; color: #1a1a2e;
        border: none; border-radius: 6px; padding: 8px 20px;
        font-weight: bold; font-size: 13px;
    }
    QPushButton:hover { background-color: #17a34a; }
    QPushButton:pressed { background-color: #128a3e; }
    QPushButton#resetBtn {
        background-color: #444; color: white;
    }
    QPushButton#resetBtn:hover {
        background-color: #555;
    }
"""

# Escala de los sliders de claves con decimales (pasos de 0.1)
_FLOAT_SCALE = 10

_ELEMENT_LABELS = {
    "track_info": "Info del track",
    "original": "Letra original",
    "phonetic": "Pronunciación",
    "translation": "Traducción",
}

_LANGUAGE_LABELS = {"es": "Español", "en": "English", "ko": "한국어"}


class SettingsWindow(QWidget):
    """Superficie de ajustes: edita el documento compartido en vivo."""

    closed = pyqtSignal()

    def __init__(
        self,
        store: SettingsStore,
        font_families: Callable[[], list[str]],
        parent=None,
    ):
        super().__init__(parent)
        self._store = store
        self._font_families = font_families
        # Por clave: función que lleva el valor del documento al control
        self._refreshers: dict[str, Callable[[Any], None]] = {}
        self._updating: bool = False

        self.setWindowTitle("⚙ Ajustes · Letras flotantes")
        self.setMinimumSize(520, 600)
        self.setStyleSheet(_DARK_STYLE)
        self._build_ui()
        self._refresh(self._store.settings)

        self._store.on_external_change(self._on_external_change)

    # ── UI ──────────────────────────────────────────────────────────────────

    def _build_ui(self) -> None:
        root = QVBoxLayout(self)
        root.setSpacing(10)

        tabs = QTabWidget()
        tabs.addTab(self._build_display_tab(), "👁 Visualización")
        tabs.addTab(self._build_style_tab(), "🎨 Estilo")
        tabs.addTab(self._build_layout_tab(), "📐 Diseño")
        tabs.addTab(self._build_system_tab(), "⚙ Sistema")
        root.addWidget(tabs, 1)

        btn_row = QHBoxLayout()
        reset_btn = QPushButton("Restaurar")
        reset_btn.setObjectName("resetBtn")
        reset_btn.clicked.connect(self._on_reset)
        btn_row.addWidget(reset_btn)
        btn_row.addStretch()

        close_btn = QPushButton("Cerrar")
        close_btn.clicked.connect(self.close)
        btn_row.addWidget(close_btn)
        root.addLayout(btn_row)

    @staticmethod
    def _scrollable(content: QWidget) -> QScrollArea:
        area = QScrollArea()
        area.setWidgetResizable(True)
        area.setWidget(content)
        return area

    def _build_display_tab(self) -> QWidget:
        page = QWidget()
        lay = QVBoxLayout(page)

        g_elements = QGroupBox("Elementos")
        fl = QFormLayout(g_elements)
        self._add_check(fl, "show_original", "Letra original")
        self._add_check(fl, "show_phonetic", "Pronunciación")
        self._add_check(fl, "show_translation", "Traducción")
        self._add_check(fl, "show_track_info", "Info del track")
        self._add_check(fl, "show_album_art", "Carátula")
        lay.addWidget(g_elements)

        g_lyrics = QGroupBox("Letras")
        fl = QFormLayout(g_lyrics)
        self._add_slider(fl, "lyrics_prev_lines", "Líneas anteriores:")
        self._add_slider(fl, "lyrics_next_lines", "Líneas siguientes:")
        self._add_check(fl, "fade_non_active_lyrics", "Atenuar líneas no activas")
        lay.addWidget(g_lyrics)

        g_visibility = QGroupBox("Visibilidad")
        fl = QFormLayout(g_visibility)
        self._add_check(fl, "hide_when_paused", "Ocultar en pausa")
        self._add_check(fl, "show_next_track", "Mostrar la siguiente canción")
        self._add_slider(fl, "next_track_seconds", "Segundos antes del final:", "s")
        lay.addWidget(g_visibility)

        lay.addStretch()
        return self._scrollable(page)

    def _build_style_tab(self) -> QWidget:
        page = QWidget()
        lay = QVBoxLayout(page)

        for prefix, title in (
            ("original", "Letra original"),
            ("phonetic", "Pronunciación"),
            ("translation", "Traducción"),
        ):
            group = QGroupBox(title)
            fl = QFormLayout(group)
            self._add_font_combo(fl, f"{prefix}_font_family", "Fuente:")
            self._add_slider(fl, f"{prefix}_font_size", "Tamaño:", "px")
            self._add_combo(fl, f"{prefix}_font_weight", "Peso:")
            lay.addWidget(group)

        g_track = QGroupBox("Info del track")
        fl = QFormLayout(g_track)
        self._add_slider(fl, "track_info_font_size", "Tamaño:", "px")
        self._add_combo(fl, "track_info_font_weight", "Peso:")
        self._add_slider(fl, "track_info_opacity", "Opacidad:", "%")
        lay.addWidget(g_track)

        g_colors = QGroupBox("Colores")
        fl = QFormLayout(g_colors)
        self._add_color(fl, "text_color", "Texto:")
        self._add_color(fl, "active_color", "Línea activa:")
        self._add_color(fl, "phonetic_color", "Pronunciación:")
        self._add_color(fl, "translation_color", "Traducción:")
        self._add_color(fl, "track_info_color", "Info del track:")
        self._add_color(fl, "background_color", "Fondo de línea:")
        lay.addWidget(g_colors)

        g_effects = QGroupBox("Efectos")
        fl = QFormLayout(g_effects)
        self._add_check(fl, "text_stroke", "Contorno del texto")
        self._add_slider(fl, "text_stroke_size", "Grosor del contorno:", "px")
        self._add_combo(fl, "text_shadow", "Sombra:")
        self._add_combo(fl, "animation_type", "Animación:")
        self._add_slider(fl, "animation_duration", "Duración:", "ms")
        lay.addWidget(g_effects)

        lay.addStretch()
        return self._scrollable(page)

    def _build_layout_tab(self) -> QWidget:
        page = QWidget()
        lay = QVBoxLayout(page)

        g_layout = QGroupBox("Distribución")
        fl = QFormLayout(g_layout)
        self._add_combo(fl, "text_align", "Alineación:")
        self._add_slider(fl, "overlay_max_width", "Ancho máximo (0 = libre):", "px")
        self._add_slider(fl, "section_gap", "Espacio entre secciones:", "px")
        self._add_slider(fl, "lyrics_set_gap", "Espacio entre líneas:", "px")
        self._add_slider(fl, "line_gap", "Espacio interno:", "px")
        self._add_slider(fl, "border_radius", "Radio de borde:", "px")
        self._add_slider(fl, "padding", "Relleno:", "px")
        lay.addWidget(g_layout)

        g_order = QGroupBox("Orden de elementos (arrastrar)")
        ol = QVBoxLayout(g_order)
        self._order_list = QListWidget()
        self._order_list.setDragDropMode(QAbstractItemView.DragDropMode.InternalMove)
        self._order_list.setMaximumHeight(130)
        self._order_list.model().rowsMoved.connect(self._on_order_moved)
        ol.addWidget(self._order_list)
        self._refreshers["element_order"] = self._set_order
        lay.addWidget(g_order)

        g_background = QGroupBox("Fondo")
        fl = QFormLayout(g_background)
        self._add_combo(fl, "background_mode", "Modo:")
        self._add_slider(fl, "line_background_opacity", "Opacidad por línea:", "%")
        self._add_color(fl, "solid_background_color", "Color sólido:")
        self._add_slider(fl, "solid_background_opacity", "Opacidad sólida:", "%")
        lay.addWidget(g_background)

        g_art = QGroupBox("Carátula")
        fl = QFormLayout(g_art)
        self._add_slider(fl, "album_art_size", "Tamaño:", "px")
        self._add_slider(fl, "album_art_border_radius", "Radio de borde:", "px")
        lay.addWidget(g_art)

        lay.addStretch()
        return self._scrollable(page)

    def _build_system_tab(self) -> QWidget:
        page = QWidget()
        lay = QVBoxLayout(page)

        g_lock = QGroupBox("Bloqueo")
        fl = QFormLayout(g_lock)
        self._add_check(fl, "is_locked", "Overlay bloqueado (click-through)")
        self._add_check(fl, "enable_hover_unlock", "Desbloquear manteniendo el mouse encima")
        self._add_slider(fl, "unlock_wait_time", "Espera antes del hold:", "s")
        self._add_slider(fl, "unlock_hold_time", "Duración del hold:", "s")
        self._add_check(fl, "enable_auto_lock", "Bloquear automáticamente")
        self._add_slider(fl, "auto_lock_delay", "Retardo del auto-bloqueo:", "s")
        lay.addWidget(g_lock)

        g_system = QGroupBox("Sistema")
        fl = QFormLayout(g_system)
        combo = QComboBox()
        for code in setting_choices("language"):
            combo.addItem(_LANGUAGE_LABELS.get(code, code), code)
        combo.currentIndexChanged.connect(
            lambda _i: self._write("language", combo.currentData())
        )
        fl.addRow("Idioma:", combo)
        self._refreshers["language"] = lambda v: self._select_data(combo, v)
        lay.addWidget(g_system)

        g_css = QGroupBox("Stylesheet personalizado")
        cl = QVBoxLayout(g_css)
        self._css_edit = QPlainTextEdit()
        self._css_edit.setPlaceholderText("QLabel { letter-spacing: 1px; }")
        self._css_edit.setMaximumHeight(120)
        cl.addWidget(self._css_edit)
        apply_btn = QPushButton("Aplicar")
        apply_btn.clicked.connect(
            lambda: self._write("custom_stylesheet", self._css_edit.toPlainText())
        )
        cl.addWidget(apply_btn, 0, Qt.AlignmentFlag.AlignRight)
        self._refreshers["custom_stylesheet"] = self._css_edit.setPlainText
        lay.addWidget(g_css)

        lay.addStretch()
        return self._scrollable(page)

    # ── Controles ligados a claves ─────────────────────────────────────────

    def _add_check(self, form: QFormLayout, key: str, text: str) -> None:
        check = QCheckBox(text)
        check.toggled.connect(lambda v: self._write(key, v))
        form.addRow(check)
        self._refreshers[key] = check.setChecked

    def _add_slider(self, form: QFormLayout, key: str, text: str, unit: str = "") -> None:
        low, high = setting_range(key)
        is_float = isinstance(low, float) or isinstance(high, float)
        scale = _FLOAT_SCALE if is_float else 1

        slider = QSlider(Qt.Orientation.Horizontal)
        slider.setRange(int(low * scale), int(high * scale))
        label = QLabel()
        label.setMinimumWidth(56)

        def show(raw: int) -> None:
            value = raw / scale
            label.setText(f"{value:.1f}{unit}" if is_float else f"{raw}{unit}")

        slider.valueChanged.connect(show)
        slider.valueChanged.connect(
            lambda raw: self._write(key, raw / scale if is_float else raw)
        )

        row = QHBoxLayout()
        row.addWidget(slider, 1)
        row.addWidget(label)
        form.addRow(text, row)

        def refresh(value) -> None:
            slider.setValue(int(round(value * scale)))
            show(slider.value())

        self._refreshers[key] = refresh

    def _add_combo(self, form: QFormLayout, key: str, text: str) -> None:
        combo = QComboBox()
        for choice in setting_choices(key):
            combo.addItem(choice, choice)
        combo.currentIndexChanged.connect(lambda _i: self._write(key, combo.currentData()))
        form.addRow(text, combo)
        self._refreshers[key] = lambda v: self._select_data(combo, v)

    def _add_font_combo(self, form: QFormLayout, key: str, text: str) -> None:
        combo = QComboBox()
        combo.addItem("Fuente del sistema", "")
        for family in self._available_fonts():
            combo.addItem(family, family)
        combo.currentIndexChanged.connect(lambda _i: self._write(key, combo.currentData()))
        form.addRow(text, combo)

        def refresh(value: str) -> None:
            # Una fuente guardada que ya no existe se muestra igual
            if combo.findData(value) < 0:
                combo.addItem(value, value)
            self._select_data(combo, value)

        self._refreshers[key] = refresh

    def _add_color(self, form: QFormLayout, key: str, text: str) -> None:
        button = QPushButton()
        button.setFixedSize(64, 24)

        def pick() -> None:
            current = QColor(self._store.get(key))
            color = QColorDialog.getColor(current, self, text.rstrip(":"))
            if color.isValid():
                self._write(key, color.name())

        button.clicked.connect(pick)
        form.addRow(text, button)

        def refresh(value: str) -> None:
            button.setStyleSheet(
                f"QPushButton {{ background-color: {value}; border: 1px solid #888; }}"
            )
            button.setToolTip(value)

        self._refreshers[key] = refresh

    def _available_fonts(self) -> list[str]:
        try:
            return self._font_families()
        except Exception as e:
            logger.error(f"No se pudieron listar las fuentes: {e}")
            return []

    @staticmethod
    def _select_data(combo: QComboBox, value: Any) -> None:
        index = combo.findData(value)
        if index >= 0:
            combo.setCurrentIndex(index)

    def _set_order(self, order: list[str]) -> None:
        self._order_list.clear()
        for element in order:
            item = QListWidgetItem(_ELEMENT_LABELS.get(element, element))
            item.setData(Qt.ItemDataRole.UserRole, element)
            self._order_list.addItem(item)

    def _on_order_moved(self, *_args) -> None:
        order = [
            self._order_list.item(i).data(Qt.ItemDataRole.UserRole)
            for i in range(self._order_list.count())
        ]
        self._write("element_order", order)

    # ── Documento ──────────────────────────────────────────────────────────

    def _write(self, key: str, value: Any) -> None:
        if self._updating:
            return
        self._store.update({key: value})

    def _refresh(self, settings: OverlaySettings) -> None:
        """Lleva el documento a los controles sin escribir de vuelta."""
        self._updating = True
        try:
            for key, refresher in self._refreshers.items():
                refresher(getattr(settings, key))
        finally:
            self._updating = False

    def _on_external_change(self, settings: OverlaySettings, _changed: frozenset) -> None:
        logger.debug("Refrescando controles por cambio externo")
        self._refresh(settings)

    def closeEvent(self, event: QCloseEvent) -> None:
        self.closed.emit()
        super().closeEvent(event)

    def _confirm_reset(self) -> bool:
        answer = QMessageBox.question(
            self,
            "Restaurar ajustes",
            "¿Restaurar todos los ajustes a sus valores por defecto?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        return answer == QMessageBox.StandardButton.Yes

    def _on_reset(self) -> None:
        """Restaura los valores por defecto conservando el idioma."""
        if not self._confirm_reset():
            return
        settings = self._store.reset(("language",))
        self._refresh(settings)
        logger.info("Ajustes restaurados")

