"""
Configuración compartida entre el overlay y la ventana de ajustes.

Las dos ventanas corren en procesos separados y solo comparten un
archivo JSON:
- La ventana de ajustes escribe el documento completo.
- El overlay mantiene una réplica y solo escribe la clave is_locked.
- Cada proceso detecta las escrituras del otro con QFileSystemWatcher.

El documento siempre se fusiona sobre los valores por defecto, nunca
los reemplaza: las claves nuevas quedan con su default.
"""

import json
import logging
import math
import os
import re
import tempfile
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

from PyQt6.QtCore import QFileSystemWatcher, QObject

logger = logging.getLogger(__name__)

# Ruta por defecto del archivo de configuración
DEFAULT_SETTINGS_PATH = Path.home() / ".floating-lyrics" / "overlay-settings.json"

DEFAULT_ELEMENT_ORDER = ("track_info", "original", "phonetic", "translation")


class WindowMode(Enum):
    """Superficie que corre en este proceso (fija durante toda su vida)."""

    OVERLAY = "overlay"
    SETTINGS = "settings"


class SettingsPermissionError(PermissionError):
    """Escritura de una clave que esta ventana no posee."""


# Claves que el overlay puede escribir; el resto es de la ventana de ajustes
OVERLAY_WRITABLE_KEYS = frozenset({"is_locked"})


@dataclass
class OverlaySettings:
    """Documento de configuración completo."""

    # --- Elementos visibles ---
    show_original: bool = True
    show_phonetic: bool = True
    show_translation: bool = True
    show_track_info: bool = True
    show_album_art: bool = True

    # --- Letras ---
    lyrics_prev_lines: int = 0
    lyrics_next_lines: int = 0
    lyrics_set_gap: int = 8
    fade_non_active_lyrics: bool = True

    # --- Visibilidad ---
    hide_when_paused: bool = False
    show_next_track: bool = True
    next_track_seconds: int = 15

    # --- Tipografía ---
    original_font_size: int = 24
    original_font_family: str = ""  # "" = fuente del sistema
    original_font_weight: str = "700"
    phonetic_font_size: int = 14
    phonetic_font_family: str = ""
    phonetic_font_weight: str = "500"
    translation_font_size: int = 16
    translation_font_family: str = ""
    translation_font_weight: str = "500"
    track_info_font_size: int = 13
    track_info_font_weight: str = "600"
    track_info_opacity: int = 90

    # --- Colores ---
    text_color: str = "#ffffff"
    active_color: str = "#1db954"
    phonetic_color: str = "#cccccc"
    translation_color: str = "#aaaaaa"
    track_info_color: str = "#ffffff"
    background_color: str = "#000000"

    # --- Efectos ---
    text_stroke: bool = False
    text_stroke_size: int = 1
    text_shadow: str = "none"

    # --- Layout ---
    text_align: str = "center"
    overlay_max_width: int = 0  # 0 = sin límite
    section_gap: int = 8
    line_gap: int = 6
    border_radius: int = 12
    padding: int = 12
    element_order: list[str] = field(
        default_factory=lambda: list(DEFAULT_ELEMENT_ORDER)
    )

    # --- Fondo ---
    background_mode: str = "line"
    line_background_opacity: int = 60
    solid_background_color: str = "#000000"
    solid_background_opacity: int = 50

    # --- Carátula ---
    album_art_size: int = 40
    album_art_border_radius: int = 6

    # --- Animación ---
    animation_type: str = "slide"
    animation_duration: int = 300

    # --- Bloqueo ---
    is_locked: bool = True
    enable_hover_unlock: bool = True
    unlock_wait_time: float = 1.2
    unlock_hold_time: float = 3.0
    enable_auto_lock: bool = False
    auto_lock_delay: float = 3.0

    # --- Sistema ---
    language: str = "es"
    custom_stylesheet: str = ""

    def validate(self) -> None:
        """Valida y corrige valores fuera de rango."""
        for name, (low, high) in _RANGES.items():
            value = getattr(self, name)
            setattr(self, name, _clamp(value, low, high))

        for name, choices in _CHOICES.items():
            if getattr(self, name) not in choices:
                setattr(self, name, _DEFAULT_VALUES[name])

        for name in _COLOR_KEYS:
            if not _COLOR_PATTERN.match(getattr(self, name)):
                setattr(self, name, _DEFAULT_VALUES[name])

        self.element_order = _normalize_order(self.element_order)

    def copy(self) -> "OverlaySettings":
        data = asdict(self)
        return OverlaySettings(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")

_WEIGHTS = ("300", "400", "500", "600", "700", "800")

_CHOICES: dict[str, tuple[str, ...]] = {
    "text_shadow": ("none", "soft", "hard"),
    "text_align": ("left", "center", "right"),
    "background_mode": ("none", "line", "solid"),
    "animation_type": ("fade", "slide", "scale", "none"),
    "language": ("es", "en", "ko"),
    "original_font_weight": _WEIGHTS,
    "phonetic_font_weight": _WEIGHTS,
    "translation_font_weight": _WEIGHTS,
    "track_info_font_weight": _WEIGHTS,
}

_COLOR_KEYS = (
    "text_color",
    "active_color",
    "phonetic_color",
    "translation_color",
    "track_info_color",
    "background_color",
    "solid_background_color",
)

_RANGES: dict[str, tuple[float, float]] = {
    "lyrics_prev_lines": (0, 5),
    "lyrics_next_lines": (0, 5),
    "lyrics_set_gap": (0, 32),
    "next_track_seconds": (5, 30),
    "original_font_size": (12, 48),
    "phonetic_font_size": (10, 32),
    "translation_font_size": (10, 32),
    "track_info_font_size": (10, 32),
    "track_info_opacity": (0, 100),
    "text_stroke_size": (1, 5),
    "overlay_max_width": (0, 1000),
    "section_gap": (0, 32),
    "line_gap": (0, 20),
    "border_radius": (0, 24),
    "padding": (0, 32),
    "line_background_opacity": (0, 100),
    "solid_background_opacity": (0, 100),
    "album_art_size": (24, 64),
    "album_art_border_radius": (0, 32),
    "animation_duration": (100, 1000),
    "unlock_wait_time": (0.5, 3.0),
    "unlock_hold_time": (1.0, 5.0),
    "auto_lock_delay": (1.0, 10.0),
}

_DEFAULT_VALUES: dict[str, Any] = asdict(OverlaySettings())
_FIELD_TYPES: dict[str, type] = {
    name: type(value) for name, value in _DEFAULT_VALUES.items()
}

# Marca para valores que no se pueden aplicar
_INVALID = object()


def setting_range(key: str) -> Optional[tuple[float, float]]:
    """Rango válido de una clave numérica, o None."""
    return _RANGES.get(key)


def setting_choices(key: str) -> tuple[str, ...]:
    """Valores permitidos de una clave enumerada (vacío si es libre)."""
    return _CHOICES.get(key, ())


def _clamp(value, low, high):
    clamped = max(low, min(high, value))
    return type(value)(clamped)


def _normalize_order(order: Iterable[str]) -> list[str]:
    """Ids conocidos sin repetir, en el orden dado; los faltantes al final."""
    result: list[str] = []
    for element in order:
        if element in DEFAULT_ELEMENT_ORDER and element not in result:
            result.append(element)
    result.extend(e for e in DEFAULT_ELEMENT_ORDER if e not in result)
    return result


def _coerce(key: str, value: Any) -> Any:
    """Convierte un valor entrante al tipo del campo, o _INVALID."""
    expected = _FIELD_TYPES[key]

    if expected is bool:
        return value if isinstance(value, bool) else _INVALID

    if expected in (int, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return _INVALID
        if not math.isfinite(value):
            return _INVALID
        return int(round(value)) if expected is int else float(value)

    if expected is str:
        if not isinstance(value, str):
            return _INVALID
        if key in _CHOICES and value not in _CHOICES[key]:
            return _INVALID
        if key in _COLOR_KEYS and not _COLOR_PATTERN.match(value):
            return _INVALID
        return value

    if expected is list:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            return _INVALID
        return _normalize_order(value)

    return _INVALID


def merge_settings(base: OverlaySettings, patch: Mapping[str, Any]) -> OverlaySettings:
    """
    Fusiona un documento parcial sobre una base.

    Claves desconocidas se descartan; valores de tipo incorrecto o fuera
    del dominio se ignoran (se conserva el de la base); los números se
    recortan a su rango. Determinista e idempotente.

    Args:
        base: Documento base (no se modifica).
        patch: Documento parcial o completo.

    Returns:
        Nuevo documento fusionado.
    """
    result = base.copy()
    for key, value in patch.items():
        if key not in _FIELD_TYPES:
            continue
        coerced = _coerce(key, value)
        if coerced is _INVALID:
            logger.debug(f"Valor inválido para '{key}': {value!r}, se ignora")
            continue
        setattr(result, key, coerced)
    result.validate()
    return result


def parse_settings(raw: Optional[str]) -> Optional[dict]:
    """Parsea el contenido del archivo. None si falta o es inválido."""
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except ValueError as e:
        logger.warning(f"Configuración ilegible: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning("Configuración ilegible: no es un objeto JSON")
        return None
    return data


class SettingsFile:
    """
    Slot durable: un archivo JSON con el documento serializado.

    Las escrituras son atómicas (archivo temporal + os.replace) para que
    el otro proceso nunca lea un archivo a medio escribir.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> Optional[str]:
        """Lee el contenido crudo, o None si no existe o no se puede leer."""
        if not self._path.exists():
            return None
        try:
            return self._path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Error leyendo configuración: {e}")
            return None

    def write(self, text: str) -> None:
        """Escribe el contenido de forma atómica."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=".settings-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise


OnSettingsChangedCallback = Callable[[OverlaySettings, frozenset], None]


class SettingsStore:
    """
    Documento de configuración del proceso.

    Carga desde el slot durable, persiste en cada cambio y republica
    los cambios hechos por la otra ventana. Última escritura gana: no
    hay fusión de ediciones concurrentes entre ventanas.
    """

    def __init__(self, slot: SettingsFile, role: WindowMode = WindowMode.SETTINGS):
        self._slot = slot
        self._role = role
        self._settings = OverlaySettings()

        # Callbacks
        self._on_change: list[OnSettingsChangedCallback] = []
        self._on_external_change: list[OnSettingsChangedCallback] = []

    @property
    def settings(self) -> OverlaySettings:
        """Copia del documento actual."""
        return self._settings.copy()

    @property
    def role(self) -> WindowMode:
        return self._role

    def get(self, key: str) -> Any:
        return getattr(self._settings, key)

    # --- Operaciones ---

    def load(self) -> OverlaySettings:
        """Carga desde el slot. Sin archivo o ilegible: valores por defecto."""
        data = parse_settings(self._slot.read())
        if data is None:
            logger.info("Sin configuración guardada, usando valores por defecto")
            self._settings = OverlaySettings()
        else:
            self._settings = merge_settings(OverlaySettings(), data)
            logger.info(f"Configuración cargada desde {self._slot.path}")
        return self.settings

    def update(self, patch: Mapping[str, Any]) -> OverlaySettings:
        """
        Fusiona cambios, persiste y notifica.

        Raises:
            SettingsPermissionError: Si el rol no puede escribir alguna clave.
        """
        self._check_writable(patch.keys())
        new_settings = merge_settings(self._settings, patch)
        self._replace(new_settings, external=False)
        return self.settings

    def reset(self, preserve_keys: Iterable[str] = ()) -> OverlaySettings:
        """
        Restaura los valores por defecto salvo las claves preservadas.

        Args:
            preserve_keys: Claves que conservan su valor actual (ej. language).
        """
        if self._role is not WindowMode.SETTINGS:
            raise SettingsPermissionError("Solo la ventana de ajustes puede restaurar")

        kept = {
            key: getattr(self._settings, key)
            for key in preserve_keys
            if key in _FIELD_TYPES
        }
        new_settings = merge_settings(OverlaySettings(), kept)
        self._replace(new_settings, external=False, force=True)
        logger.info("Configuración restaurada a valores por defecto")
        return self.settings

    def handle_storage_change(self, raw: Optional[str]) -> None:
        """
        Aplica una escritura observada en el slot.

        Contenido ausente o ilegible se ignora; un contenido igual al
        documento actual (eco de la propia escritura) no notifica.
        """
        data = parse_settings(raw)
        if data is None:
            return
        new_settings = merge_settings(OverlaySettings(), data)
        if new_settings == self._settings:
            return
        logger.debug("Configuración actualizada por otra ventana")
        self._replace(new_settings, external=True)

    # --- Callbacks ---

    def on_change(self, callback: OnSettingsChangedCallback) -> None:
        """Registra callback para cualquier cambio del documento."""
        self._on_change.append(callback)

    def on_external_change(self, callback: OnSettingsChangedCallback) -> None:
        """Registra callback para cambios hechos por otra ventana."""
        self._on_external_change.append(callback)

    # --- Internos ---

    def _check_writable(self, keys: Iterable[str]) -> None:
        if self._role is WindowMode.SETTINGS:
            return
        forbidden = set(keys) - OVERLAY_WRITABLE_KEYS
        if forbidden:
            raise SettingsPermissionError(
                f"El overlay no puede escribir: {', '.join(sorted(forbidden))}"
            )

    def _replace(
        self, new_settings: OverlaySettings, external: bool, force: bool = False
    ) -> None:
        old = self._settings.to_dict()
        new = new_settings.to_dict()
        changed = frozenset(key for key in new if new[key] != old[key])
        if not changed and not force:
            return

        self._settings = new_settings
        if not external:
            self._persist()

        listeners = list(self._on_change)
        if external:
            listeners += self._on_external_change
        for callback in listeners:
            try:
                callback(self.settings, changed)
            except Exception as e:
                logger.error(f"Error en callback de configuración: {e}")

    def _persist(self) -> None:
        try:
            self._slot.write(
                json.dumps(self._settings.to_dict(), ensure_ascii=False, indent=2)
            )
            logger.debug(f"Configuración guardada en {self._slot.path}")
        except OSError as e:
            logger.warning(f"Error guardando configuración: {e}")


class SettingsFileWatcher(QObject):
    """
    Notificación de cambios del slot para el otro proceso.

    Vigila el archivo y su directorio: os.replace crea un archivo nuevo
    y QFileSystemWatcher deja de vigilar la ruta anterior.
    """

    def __init__(self, store: SettingsStore, slot: SettingsFile, parent=None):
        super().__init__(parent)
        self._store = store
        self._slot = slot
        self._watcher = QFileSystemWatcher(self)
        self._watcher.fileChanged.connect(self._on_path_changed)
        self._watcher.directoryChanged.connect(self._on_path_changed)

    def start(self) -> None:
        """Comienza a vigilar el archivo de configuración."""
        directory = self._slot.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        self._watcher.addPath(str(directory))
        self._arm_file()
        logger.info(f"Vigilando cambios en {self._slot.path}")

    def stop(self) -> None:
        paths = self._watcher.files() + self._watcher.directories()
        if paths:
            self._watcher.removePaths(paths)

    def _arm_file(self) -> None:
        path = str(self._slot.path)
        if self._slot.path.exists() and path not in self._watcher.files():
            self._watcher.addPath(path)

    def _on_path_changed(self, _path: str) -> None:
        self._arm_file()
        self._store.handle_storage_change(self._slot.read())
