"""
Canales de eventos entrantes del overlay.

Cada canal tiene un nombre fijo y un payload tipado. Los payloads
inválidos se registran y se descartan: el overlay nunca falla por un
evento mal formado.
"""

import logging
from typing import Any, Callable

from .models import LyricsPayload, PayloadError, ProgressSnapshot

logger = logging.getLogger(__name__)

# Nombres de canal
LYRICS_UPDATE = "lyrics-update"
PROGRESS_UPDATE = "progress-update"
LOCK_STATE_UPDATE = "lock-state-update"
OVERLAY_HOVER = "overlay-hover"
UNLOCK_PROGRESS = "unlock-progress"

CHANNELS = (
    LYRICS_UPDATE,
    PROGRESS_UPDATE,
    LOCK_STATE_UPDATE,
    OVERLAY_HOVER,
    UNLOCK_PROGRESS,
)


def _parse_bool(payload: Any) -> bool:
    if not isinstance(payload, bool):
        raise PayloadError(f"se esperaba booleano, llegó {payload!r}")
    return payload


def _parse_progress(payload: Any) -> float:
    if isinstance(payload, bool) or not isinstance(payload, (int, float)):
        raise PayloadError(f"se esperaba número, llegó {payload!r}")
    if payload != payload:  # NaN
        raise PayloadError("progreso NaN")
    return max(0.0, min(100.0, float(payload)))


_PARSERS: dict[str, Callable[[Any], Any]] = {
    LYRICS_UPDATE: LyricsPayload.from_payload,
    PROGRESS_UPDATE: ProgressSnapshot.from_payload,
    LOCK_STATE_UPDATE: _parse_bool,
    OVERLAY_HOVER: _parse_bool,
    UNLOCK_PROGRESS: _parse_progress,
}


class PlaybackEventHub:
    """
    Despachador de eventos por canal.

    Los eventos de un mismo canal se entregan en el orden de emisión;
    entre canales distintos no hay orden garantizado.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Callable[[Any], None]]] = {
            channel: [] for channel in CHANNELS
        }

    def on(self, channel: str, callback: Callable[[Any], None]) -> None:
        """Registra un callback para un canal."""
        if channel not in self._listeners:
            raise KeyError(f"Canal desconocido: {channel}")
        self._listeners[channel].append(callback)

    def parse(self, channel: str, payload: Any) -> Any:
        """
        Valida y convierte el payload crudo de un canal.

        Raises:
            KeyError: Canal desconocido.
            PayloadError: Payload inválido.
        """
        if channel not in _PARSERS:
            raise KeyError(f"Canal desconocido: {channel}")
        return _PARSERS[channel](payload)

    def emit(self, channel: str, payload: Any) -> bool:
        """
        Emite un payload crudo (JSON ya decodificado).

        Returns:
            True si el evento se entregó, False si se descartó.
        """
        try:
            event = self.parse(channel, payload)
        except KeyError as e:
            logger.warning(f"Evento descartado: {e}")
            return False
        except PayloadError as e:
            logger.warning(f"Payload inválido en '{channel}': {e}")
            return False

        self.dispatch(channel, event)
        return True

    def dispatch(self, channel: str, event: Any) -> None:
        """Entrega un evento ya tipado a los listeners del canal."""
        for callback in self._listeners.get(channel, []):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error en callback de '{channel}': {e}")
