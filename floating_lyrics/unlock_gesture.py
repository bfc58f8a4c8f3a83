"""
Gesto de desbloqueo por hover sostenido.

Con el overlay bloqueado (click-through), mantener el mouse encima
durante wait_time + hold_time lo desbloquea sin hacer clic:

    LOCKED --hover--> AWAITING_HOLD --wait_time--> HOLDING --hold_time--> UNLOCKED
       ^                    |                          |                      |
       +------ leave -------+---------- leave ---------+---- auto-lock -------+

Todos los tiempos se miden con un reloj monotónico muestreado en cada
tick, así el progreso no depende de la tasa de frames. Cada transición
descarta el deadline pendiente del estado anterior.
"""

import logging
import time
from enum import Enum
from typing import Callable, Optional

from PyQt6.QtCore import QObject, QTimer

logger = logging.getLogger(__name__)

# Duración mínima aceptada para cualquier temporizador (segundos)
MIN_DURATION_S = 0.1


class GestureState(Enum):
    """Estado del gesto de desbloqueo."""

    LOCKED = "locked"
    AWAITING_HOLD = "awaiting_hold"
    HOLDING = "holding"
    UNLOCKED = "unlocked"


OnProgressCallback = Callable[[float], None]
OnLockRequestCallback = Callable[[bool], None]
OnStateChangeCallback = Callable[[GestureState], None]


def _duration(value: float) -> float:
    """Recorta una duración configurada a un mínimo positivo."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return MIN_DURATION_S
    if value != value:  # NaN
        return MIN_DURATION_S
    return max(MIN_DURATION_S, value)


class UnlockGesture:
    """
    Máquina de estados del gesto, por ventana.

    No escribe la configuración directamente: pide el cambio del flag de
    bloqueo vía on_lock_request (desbloqueo al completar, bloqueo al
    expirar el auto-lock). Los cambios externos del flag entran por
    sync_lock() y no generan pedidos.
    """

    def __init__(
        self,
        wait_time: float = 1.2,
        hold_time: float = 3.0,
        *,
        auto_lock_delay: float = 3.0,
        auto_lock_enabled: bool = False,
        hover_unlock_enabled: bool = True,
        locked: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._wait_time = _duration(wait_time)
        self._hold_time = _duration(hold_time)
        self._auto_lock_delay = _duration(auto_lock_delay)
        self._auto_lock_enabled = auto_lock_enabled
        self._hover_unlock_enabled = hover_unlock_enabled

        self._state = GestureState.LOCKED
        self._progress: float = 0.0
        self._hovering: bool = False

        # Deadline del estado actual (fin de espera, fin de hold o auto-lock)
        self._deadline: Optional[float] = None
        self._hold_started: Optional[float] = None

        # Callbacks
        self._on_progress: list[OnProgressCallback] = []
        self._on_lock_request: list[OnLockRequestCallback] = []
        self._on_state_change: list[OnStateChangeCallback] = []

        if not locked:
            self._enter(GestureState.UNLOCKED, self._clock())

    # --- Propiedades ---

    @property
    def state(self) -> GestureState:
        return self._state

    @property
    def progress(self) -> float:
        """Progreso del hold en [0, 100]."""
        return self._progress

    @property
    def is_locked(self) -> bool:
        return self._state is not GestureState.UNLOCKED

    @property
    def is_hovering(self) -> bool:
        return self._hovering

    @property
    def has_pending_deadline(self) -> bool:
        """True si hace falta seguir muestreando el reloj."""
        return self._deadline is not None

    @property
    def wait_time(self) -> float:
        return self._wait_time

    @property
    def hold_time(self) -> float:
        return self._hold_time

    @property
    def auto_lock_delay(self) -> float:
        return self._auto_lock_delay

    # --- Entradas ---

    def configure(
        self,
        *,
        wait_time: Optional[float] = None,
        hold_time: Optional[float] = None,
        hover_unlock_enabled: Optional[bool] = None,
        auto_lock_enabled: Optional[bool] = None,
        auto_lock_delay: Optional[float] = None,
        now: Optional[float] = None,
    ) -> None:
        """Actualiza tiempos y opciones (las duraciones se recortan a un mínimo)."""
        now = self._now(now)
        if wait_time is not None:
            self._wait_time = _duration(wait_time)
        if hold_time is not None:
            self._hold_time = _duration(hold_time)
        if auto_lock_delay is not None:
            self._auto_lock_delay = _duration(auto_lock_delay)

        if hover_unlock_enabled is not None:
            self._hover_unlock_enabled = hover_unlock_enabled
            if not hover_unlock_enabled and self._state in (
                GestureState.AWAITING_HOLD,
                GestureState.HOLDING,
            ):
                self._enter(GestureState.LOCKED, now)

        if auto_lock_enabled is not None:
            self._auto_lock_enabled = auto_lock_enabled

        if self._state is GestureState.UNLOCKED:
            self._arm_auto_lock(now)

    def set_hovering(self, hovering: bool, now: Optional[float] = None) -> None:
        """Entrada/salida del mouse de la zona de activación."""
        now = self._now(now)
        if hovering == self._hovering:
            return
        self._hovering = hovering

        if hovering:
            if self._state is GestureState.LOCKED and self._hover_unlock_enabled:
                self._enter(GestureState.AWAITING_HOLD, now)
            elif self._state is GestureState.UNLOCKED:
                # Con el mouse encima la ventana está en uso
                self._deadline = None
        else:
            if self._state in (GestureState.AWAITING_HOLD, GestureState.HOLDING):
                logger.debug("Gesto cancelado: el mouse salió de la zona")
                self._enter(GestureState.LOCKED, now)
            elif self._state is GestureState.UNLOCKED:
                self._arm_auto_lock(now)

    def pointer_activity(self, now: Optional[float] = None) -> None:
        """Cualquier interacción reinicia el retardo del auto-lock."""
        if self._state is GestureState.UNLOCKED:
            self._arm_auto_lock(self._now(now))

    def sync_lock(self, locked: bool, now: Optional[float] = None) -> None:
        """
        Aplica un cambio externo del flag de bloqueo.

        Salta directo a LOCKED o UNLOCKED desde cualquier estado y
        cancela los temporizadores pendientes.
        """
        now = self._now(now)
        if locked and self._state is not GestureState.LOCKED:
            self._enter(GestureState.LOCKED, now)
        elif not locked and self._state is not GestureState.UNLOCKED:
            self._enter(GestureState.UNLOCKED, now)

    def tick(self, now: Optional[float] = None) -> None:
        """
        Muestrea el reloj y avanza la máquina.

        Un tick tardío se procesa en orden: el fin de la espera pasa a
        HOLDING con inicio en el deadline y se evalúa el hold en el
        mismo tick.
        """
        now = self._now(now)

        if self._state is GestureState.AWAITING_HOLD:
            if now < self._deadline:
                return
            self._enter(GestureState.HOLDING, self._deadline)

        if self._state is GestureState.HOLDING:
            elapsed = now - self._hold_started
            progress = min(100.0, max(0.0, elapsed / self._hold_time * 100.0))
            if progress >= 100.0:
                logger.info("Overlay desbloqueado por hover sostenido")
                self._enter(GestureState.UNLOCKED, now)
                self._notify_lock_request(False)
            else:
                self._set_progress(progress)
            return

        if self._state is GestureState.UNLOCKED and self._deadline is not None:
            if now >= self._deadline:
                logger.info("Auto-lock: overlay bloqueado por inactividad")
                self._enter(GestureState.LOCKED, now)
                self._notify_lock_request(True)

    # --- Callbacks públicos ---

    def on_progress(self, callback: OnProgressCallback) -> None:
        """Registra callback para el progreso del hold (0-100)."""
        self._on_progress.append(callback)

    def on_lock_request(self, callback: OnLockRequestCallback) -> None:
        """Registra callback para escrituras del flag de bloqueo."""
        self._on_lock_request.append(callback)

    def on_state_change(self, callback: OnStateChangeCallback) -> None:
        """Registra callback para cambios de estado."""
        self._on_state_change.append(callback)

    # --- Internos ---

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _enter(self, state: GestureState, now: float) -> None:
        previous = self._state
        self._state = state
        # Cancelación: ningún deadline sobrevive a una transición
        self._deadline = None
        self._hold_started = None

        if state is GestureState.AWAITING_HOLD:
            self._deadline = now + self._wait_time
        elif state is GestureState.HOLDING:
            self._hold_started = now
            self._deadline = now + self._hold_time
        elif state is GestureState.UNLOCKED:
            self._arm_auto_lock(now)

        if state is not GestureState.HOLDING:
            self._set_progress(0.0)

        if state is not previous:
            logger.debug(f"Gesto: {previous.value} -> {state.value}")
            for callback in self._on_state_change:
                try:
                    callback(state)
                except Exception as e:
                    logger.error(f"Error en callback on_state_change: {e}")

    def _arm_auto_lock(self, now: float) -> None:
        if self._auto_lock_enabled and not self._hovering:
            self._deadline = now + self._auto_lock_delay
        else:
            self._deadline = None

    def _set_progress(self, progress: float) -> None:
        if progress == 0.0 and self._progress == 0.0:
            return
        self._progress = progress
        for callback in self._on_progress:
            try:
                callback(progress)
            except Exception as e:
                logger.error(f"Error en callback on_progress: {e}")

    def _notify_lock_request(self, locked: bool) -> None:
        for callback in self._on_lock_request:
            try:
                callback(locked)
            except Exception as e:
                logger.error(f"Error en callback on_lock_request: {e}")


class GestureTicker(QObject):
    """
    Muestrea el gesto con un QTimer mientras tenga un deadline pendiente.

    El timer solo corre en AWAITING_HOLD, HOLDING o con el auto-lock
    armado; en reposo se detiene.
    """

    TICK_INTERVAL_MS = 16

    def __init__(self, gesture: UnlockGesture, parent=None):
        super().__init__(parent)
        self._gesture = gesture
        self._timer = QTimer(self)
        self._timer.setInterval(self.TICK_INTERVAL_MS)
        self._timer.timeout.connect(self._on_timer_tick)

    @property
    def gesture(self) -> UnlockGesture:
        return self._gesture

    @property
    def is_active(self) -> bool:
        """True mientras el timer de muestreo está corriendo."""
        return self._timer.isActive()

    def set_hovering(self, hovering: bool) -> None:
        self._gesture.set_hovering(hovering)
        self._refresh()

    def pointer_activity(self) -> None:
        self._gesture.pointer_activity()
        self._refresh()

    def sync_lock(self, locked: bool) -> None:
        self._gesture.sync_lock(locked)
        self._refresh()

    def configure(self, **options) -> None:
        self._gesture.configure(**options)
        self._refresh()

    def stop(self) -> None:
        self._timer.stop()

    def _on_timer_tick(self) -> None:
        try:
            self._gesture.tick()
        except Exception as e:
            logger.error(f"Error en tick del gesto: {e}")
        self._refresh()

    def _refresh(self) -> None:
        if self._gesture.has_pending_deadline:
            if not self._timer.isActive():
                self._timer.start()
        elif self._timer.isActive():
            self._timer.stop()
