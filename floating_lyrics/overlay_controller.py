"""
Controlador de la superficie overlay.

Orquesta los componentes del overlay:
- Eventos de reproducción -> SyncEngine + vista previa de siguiente canción
- Configuración replicada -> parámetros de cada componente
- Flag de bloqueo -> llamadas al host (click-through, gesto)
- Todo lo anterior -> OverlayViewState para la capa de render
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .display_rules import TrackDisplay, compute_opacity, select_track_display
from .events import (
    LOCK_STATE_UPDATE,
    LYRICS_UPDATE,
    OVERLAY_HOVER,
    PROGRESS_UPDATE,
    UNLOCK_PROGRESS,
    PlaybackEventHub,
)
from .models import LyricLine, LyricsPayload, NextTrackInfo, ProgressSnapshot, TrackInfo
from .settings import OverlaySettings, SettingsStore
from .sync_engine import SyncEngine

logger = logging.getLogger(__name__)

# Claves que se reenvían al gesto de desbloqueo del host
_GESTURE_KEYS = frozenset(
    {
        "unlock_wait_time",
        "unlock_hold_time",
        "enable_hover_unlock",
        "enable_auto_lock",
        "auto_lock_delay",
    }
)


@dataclass(frozen=True)
class LineTexts:
    """Textos de una línea filtrados por las opciones de visualización."""

    main: Optional[str]
    phonetic: Optional[str]
    translation: Optional[str]

    @classmethod
    def from_line(cls, line: LyricLine, settings: OverlaySettings) -> "LineTexts":
        main, phonetic, translation = line.display_texts()
        return cls(
            main=main if settings.show_original and main else None,
            phonetic=phonetic if settings.show_phonetic else None,
            translation=translation if settings.show_translation else None,
        )


@dataclass(frozen=True)
class OverlayViewState:
    """Todo lo que la capa de render necesita para dibujar el overlay."""

    track: Optional[TrackInfo]
    track_display: TrackDisplay
    display_track: Optional[Union[TrackInfo, NextTrackInfo]]
    active_line: Optional[LineTexts]
    context_before: tuple[LineTexts, ...]
    context_after: tuple[LineTexts, ...]
    is_playing: bool
    is_hovering: bool
    is_locked: bool
    opacity: float
    unlock_progress: float
    settings: OverlaySettings

    @property
    def is_waiting(self) -> bool:
        """Sin línea activa: se muestra el estado de espera."""
        return self.active_line is None


OnViewChangeCallback = Callable[[OverlayViewState], None]


class OverlayController:
    """
    Estado del overlay derivado de eventos y configuración.

    El host es cualquier objeto con los métodos de la ventana nativa
    (set_lock_state, set_pointer_passthrough, set_unlock_timing,
    set_hover_unlock_enabled, set_auto_lock, begin_window_drag,
    open_settings_window). Sus fallos se registran y se ignoran.
    """

    def __init__(
        self,
        store: SettingsStore,
        host: Any,
        sync_engine: Optional[SyncEngine] = None,
    ):
        self._store = store
        self._host = host
        self.sync_engine = sync_engine or SyncEngine()

        # Estado de reproducción
        self._progress: Optional[ProgressSnapshot] = None
        self._is_hovering: bool = False
        self._unlock_progress: float = 0.0

        self._on_view_change: list[OnViewChangeCallback] = []

        self._store.on_change(self._on_settings_changed)
        self._apply_context_size(self._store.settings)

    # --- Ciclo de vida ---

    def attach(self, hub: PlaybackEventHub) -> None:
        """Suscribe el controlador a los canales de eventos."""
        hub.on(LYRICS_UPDATE, self.handle_lyrics_update)
        hub.on(PROGRESS_UPDATE, self.handle_progress_update)
        hub.on(LOCK_STATE_UPDATE, self.handle_lock_state_update)
        hub.on(OVERLAY_HOVER, self.handle_overlay_hover)
        hub.on(UNLOCK_PROGRESS, self.handle_unlock_progress)

    def start(self) -> None:
        """Sincroniza el host con la configuración inicial."""
        settings = self._store.settings
        self._apply_lock(settings.is_locked)
        self._apply_gesture_settings(settings)
        self._publish()

    # --- Eventos entrantes ---

    def handle_lyrics_update(self, payload: LyricsPayload) -> None:
        logger.info(f"Letras recibidas: {payload.track} ({len(payload.lyrics)} líneas)")
        self.sync_engine.set_lyrics(payload.track, payload.lyrics)
        self._publish()

    def handle_progress_update(self, snapshot: ProgressSnapshot) -> None:
        self._progress = snapshot
        self.sync_engine.update_position(snapshot.position, snapshot.is_playing)
        self._publish()

    def handle_lock_state_update(self, locked: bool) -> None:
        """Cambio del flag de bloqueo (bandeja o gesto): escritura estrecha del overlay."""
        if locked == self._store.get("is_locked"):
            return
        logger.info(f"Overlay {'bloqueado' if locked else 'desbloqueado'}")
        self._store.update({"is_locked": locked})

    def handle_overlay_hover(self, hovering: bool) -> None:
        if hovering == self._is_hovering:
            return
        self._is_hovering = hovering
        self._publish()

    def handle_unlock_progress(self, progress: float) -> None:
        self._unlock_progress = max(0.0, min(100.0, progress))
        self._publish()

    # --- Acciones de la UI ---

    def toggle_lock(self) -> None:
        self.handle_lock_state_update(not self._store.get("is_locked"))

    def request_drag(self) -> None:
        """Inicia el arrastre de la ventana (solo desbloqueado)."""
        if self._store.get("is_locked"):
            return
        self._call_host("begin_window_drag")

    def request_settings(self) -> None:
        """Abre la ventana de ajustes (solo desbloqueado)."""
        if self._store.get("is_locked"):
            return
        self._call_host("open_settings_window")

    # --- Vista ---

    def on_view_change(self, callback: OnViewChangeCallback) -> None:
        """Registra callback para cambios del estado de vista."""
        self._on_view_change.append(callback)

    @property
    def view_state(self) -> OverlayViewState:
        settings = self._store.settings
        sync = self.sync_engine.state
        track = self.sync_engine.track
        is_playing = self._progress.is_playing if self._progress else False

        display = select_track_display(
            remaining=self._progress.remaining if self._progress else None,
            next_track_seconds=settings.next_track_seconds,
            show_next_track=settings.show_next_track,
            next_track=self._progress.next_track if self._progress else None,
        )
        if display is TrackDisplay.NEXT:
            display_track = self._progress.next_track
        else:
            display_track = track

        return OverlayViewState(
            track=track,
            track_display=display,
            display_track=display_track,
            active_line=LineTexts.from_line(sync.line, settings) if sync.line else None,
            context_before=tuple(
                LineTexts.from_line(line, settings) for line in sync.context_before
            ),
            context_after=tuple(
                LineTexts.from_line(line, settings) for line in sync.context_after
            ),
            is_playing=is_playing,
            is_hovering=self._is_hovering,
            is_locked=settings.is_locked,
            opacity=compute_opacity(
                is_playing=is_playing,
                hide_when_paused=settings.hide_when_paused,
                has_track=track is not None,
                is_hovering=self._is_hovering,
                is_locked=settings.is_locked,
            ),
            unlock_progress=self._unlock_progress,
            settings=settings,
        )

    # --- Internos ---

    def _on_settings_changed(self, settings: OverlaySettings, changed: frozenset) -> None:
        if "is_locked" in changed:
            self._apply_lock(settings.is_locked)
        if changed & _GESTURE_KEYS:
            self._apply_gesture_settings(settings)
        self._apply_context_size(settings)
        self._publish()

    def _apply_lock(self, locked: bool) -> None:
        self._unlock_progress = 0.0
        self._call_host("set_lock_state", locked)
        self._call_host("set_pointer_passthrough", locked)

    def _apply_gesture_settings(self, settings: OverlaySettings) -> None:
        self._call_host(
            "set_unlock_timing", settings.unlock_wait_time, settings.unlock_hold_time
        )
        self._call_host("set_hover_unlock_enabled", settings.enable_hover_unlock)
        self._call_host("set_auto_lock", settings.enable_auto_lock, settings.auto_lock_delay)

    def _apply_context_size(self, settings: OverlaySettings) -> None:
        self.sync_engine.set_context_size(
            settings.lyrics_prev_lines, settings.lyrics_next_lines
        )

    def _call_host(self, method: str, *args) -> None:
        """Llamada al host: los fallos se registran, nunca se reintentan."""
        try:
            getattr(self._host, method)(*args)
        except Exception as e:
            logger.error(f"Fallo en llamada al host '{method}': {e}")

    def _publish(self) -> None:
        state = self.view_state
        for callback in self._on_view_change:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error en callback on_view_change: {e}")
