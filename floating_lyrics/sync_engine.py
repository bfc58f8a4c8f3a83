"""
Motor de sincronización de letras.

Determina qué línea está activa según la posición de reproducción:
- Resolución pura (lista ordenada, posición) -> índice
- Estado de la canción actual con líneas de contexto
- Tolerancia a eventos desordenados entre letras y progreso
"""

import logging
import math
from bisect import bisect_right
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .models import LyricLine, LyricSet, TrackInfo

logger = logging.getLogger(__name__)


def resolve_active_line(lines: Sequence[LyricLine], position: float) -> Optional[int]:
    """
    Encuentra la línea activa para una posición.

    Args:
        lines: Líneas ordenadas por start_time (no decreciente).
        position: Posición actual en segundos.

    Returns:
        Índice de la última línea con start_time <= posición, o None
        si no hay líneas o la posición es anterior a la primera.
    """
    if not lines or math.isnan(position):
        return None

    # bisect_right deja el índice después de los empates: gana la última
    starts = [line.start_time for line in lines]
    index = bisect_right(starts, position) - 1
    return index if index >= 0 else None


@dataclass(frozen=True)
class SyncState:
    """Estado actual de la sincronización."""

    line_index: Optional[int]
    line: Optional[LyricLine]
    position: float
    is_playing: bool
    context_before: tuple[LyricLine, ...] = ()
    context_after: tuple[LyricLine, ...] = ()


OnSyncUpdateCallback = Callable[[SyncState], None]


class SyncEngine:
    """
    Mantiene las letras y la posición de la canción actual.

    Los eventos de letras y de progreso pueden llegar en cualquier
    orden: mientras son inconsistentes se muestra lo último conocido.
    """

    def __init__(self) -> None:
        self._track: Optional[TrackInfo] = None
        self._lyrics: LyricSet = LyricSet()
        self._position: float = 0.0
        self._is_playing: bool = False
        self._current_line_index: Optional[int] = None

        # Líneas de contexto alrededor de la activa
        self._lines_before: int = 0
        self._lines_after: int = 0

        self._on_sync_update: list[OnSyncUpdateCallback] = []

    # --- Letras ---

    def set_lyrics(self, track: Optional[TrackInfo], lyrics: Optional[LyricSet]) -> None:
        """
        Establece la canción y sus letras.

        Args:
            track: Canción actual, o None si no hay.
            lyrics: Letras, o None para limpiar.
        """
        self._track = track
        self._lyrics = lyrics if lyrics is not None else LyricSet()

        if not self._lyrics.is_synced and not self._lyrics.is_empty:
            logger.info("Letras sin sincronizar: no se resaltará ninguna línea")
        else:
            logger.info(f"Letras cargadas: {len(self._lyrics)} líneas")

        self._recompute(force=True)

    def clear_lyrics(self) -> None:
        """Limpia canción y letras."""
        self.set_lyrics(None, None)

    @property
    def track(self) -> Optional[TrackInfo]:
        return self._track

    @property
    def lyrics(self) -> LyricSet:
        return self._lyrics

    @property
    def has_lyrics(self) -> bool:
        """True si hay líneas sincronizadas para mostrar."""
        return bool(self._lyrics.timed_lines)

    # --- Progreso ---

    def update_position(self, position: float, is_playing: bool) -> None:
        """
        Actualiza la posición de reproducción.

        La posición puede retroceder (seek o cambio de canción).
        """
        self._position = position
        self._is_playing = is_playing
        self._recompute()

    @property
    def position(self) -> float:
        return self._position

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    # --- Contexto ---

    def set_context_size(self, before: int, after: int) -> None:
        """Cantidad de líneas anteriores/siguientes a incluir en el estado."""
        before, after = max(0, before), max(0, after)
        if (before, after) == (self._lines_before, self._lines_after):
            return
        self._lines_before = before
        self._lines_after = after
        self._recompute(force=True)

    def get_context_lines(self) -> tuple[tuple[LyricLine, ...], tuple[LyricLine, ...]]:
        """
        Obtiene las líneas de contexto alrededor de la línea actual.

        Returns:
            Tupla (anteriores, siguientes).
        """
        lines = self._lyrics.timed_lines
        index = self._current_line_index
        if index is None:
            # Antes de la primera línea solo hay "siguientes"
            if lines and self._lines_after:
                return (), lines[: self._lines_after]
            return (), ()

        start = max(0, index - self._lines_before)
        end = min(len(lines), index + self._lines_after + 1)
        return lines[start:index], lines[index + 1 : end]

    @property
    def state(self) -> SyncState:
        """Estado de sincronización actual."""
        lines = self._lyrics.timed_lines
        index = self._current_line_index
        before, after = self.get_context_lines()
        return SyncState(
            line_index=index,
            line=lines[index] if index is not None else None,
            position=self._position,
            is_playing=self._is_playing,
            context_before=before,
            context_after=after,
        )

    # --- Callbacks ---

    def on_sync_update(self, callback: OnSyncUpdateCallback) -> None:
        """Registra callback para cambios de línea activa."""
        self._on_sync_update.append(callback)

    def _recompute(self, force: bool = False) -> None:
        index = resolve_active_line(self._lyrics.timed_lines, self._position)
        if index == self._current_line_index and not force:
            return

        self._current_line_index = index
        logger.debug(f"Línea activa: {index}")
        self._notify_sync_update(self.state)

    def _notify_sync_update(self, state: SyncState) -> None:
        """Notifica a los listeners de cambio en sincronización."""
        for callback in self._on_sync_update:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error en callback on_sync_update: {e}")
