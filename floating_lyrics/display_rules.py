"""
Reglas de visibilidad y de vista previa de la siguiente canción.

Funciones puras: devuelven solo el valor objetivo, la animación
la hace la capa de render.
"""

import math
from enum import Enum
from typing import Optional

from .models import NextTrackInfo

# Opacidad al pasar el mouse sobre el overlay bloqueado
HOVER_DIM_OPACITY = 0.2


class TrackDisplay(Enum):
    """Qué metadatos mostrar."""

    CURRENT = "current"
    NEXT = "next"


def compute_opacity(
    is_playing: bool,
    hide_when_paused: bool,
    has_track: bool,
    is_hovering: bool,
    is_locked: bool,
) -> float:
    """
    Calcula la opacidad objetivo del overlay.

    Orden de reglas:
    1. Pausado con canción cargada y hide_when_paused -> 0
    2. Mouse encima con overlay bloqueado -> atenuado
    3. En otro caso -> 1
    """
    if hide_when_paused and has_track and not is_playing:
        return 0.0
    if is_hovering and is_locked:
        return HOVER_DIM_OPACITY
    return 1.0


def select_track_display(
    remaining: Optional[float],
    next_track_seconds: float,
    show_next_track: bool,
    next_track: Optional[NextTrackInfo],
) -> TrackDisplay:
    """
    Decide si sustituir los metadatos por los de la siguiente canción.

    Se muestra la siguiente cuando la opción está activa, hay info de la
    siguiente y 0 < remaining <= next_track_seconds. Con remaining <= 0 la
    canción ya terminó y la info de la siguiente se considera obsoleta.
    """
    if not show_next_track or next_track is None or remaining is None:
        return TrackDisplay.CURRENT
    if math.isnan(remaining):
        return TrackDisplay.CURRENT
    if 0 < remaining <= next_track_seconds:
        return TrackDisplay.NEXT
    return TrackDisplay.CURRENT
