"""
Modelos de datos del overlay de letras.

Snapshots inmutables que llegan desde la fuente de reproducción:
- TrackInfo / NextTrackInfo: metadatos de la canción
- LyricLine / LyricSet: letras ordenadas por tiempo de inicio
- ProgressSnapshot: posición de reproducción

Los payloads JSON usan claves camelCase; aquí se validan y convierten.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Optional


class PayloadError(ValueError):
    """Payload entrante con forma inválida."""


def _require_mapping(data: Any, what: str) -> dict:
    if not isinstance(data, dict):
        raise PayloadError(f"{what}: se esperaba un objeto, llegó {type(data).__name__}")
    return data


def _is_number(value: Any) -> bool:
    # bool es subclase de int, pero no es un número válido aquí
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number(data: dict, key: str, what: str) -> float:
    value = data.get(key)
    if not _is_number(value):
        raise PayloadError(f"{what}: '{key}' debe ser numérico")
    return float(value)


def _optional_number(data: dict, key: str) -> Optional[float]:
    """Retorna el número o None si falta o es inválido."""
    value = data.get(key)
    if not _is_number(value) or math.isnan(value):
        return None
    return float(value)


def _optional_text(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def _text(data: dict, key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class TrackInfo:
    """Información de la canción actual."""

    title: str
    artist: str
    album: str = ""
    album_art: Optional[str] = None
    duration: float = 0.0  # segundos

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}"

    @classmethod
    def from_payload(cls, data: Any) -> "TrackInfo":
        data = _require_mapping(data, "track")
        duration = _optional_number(data, "duration")
        return cls(
            title=_text(data, "title"),
            artist=_text(data, "artist"),
            album=_text(data, "album"),
            album_art=_optional_text(data, "albumArt"),
            duration=duration if duration is not None and duration > 0 else 0.0,
        )


@dataclass(frozen=True)
class NextTrackInfo:
    """Subconjunto de TrackInfo para la vista previa de la siguiente canción."""

    title: str
    artist: str
    album_art: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}"

    @classmethod
    def from_payload(cls, data: Any) -> "NextTrackInfo":
        data = _require_mapping(data, "nextTrack")
        title = _text(data, "title")
        if not title:
            raise PayloadError("nextTrack: falta 'title'")
        return cls(
            title=title,
            artist=_text(data, "artist"),
            album_art=_optional_text(data, "albumArt"),
        )


@dataclass(frozen=True)
class LyricLine:
    """Una línea de letra con su tiempo de inicio en segundos."""

    start_time: float
    text: str
    end_time: Optional[float] = None  # Solo informativo
    phonetic: Optional[str] = None
    translation: Optional[str] = None

    def display_texts(self) -> tuple[str, Optional[str], Optional[str]]:
        """
        Textos a mostrar: (principal, fonético, traducción).

        El fonético y la traducción se omiten si están vacíos o
        repiten el texto principal.
        """
        phonetic = self.phonetic if self.phonetic and self.phonetic != self.text else None
        translation = (
            self.translation
            if self.translation and self.translation != self.text
            else None
        )
        return self.text or "", phonetic, translation

    @classmethod
    def from_payload(cls, data: Any) -> "LyricLine":
        data = _require_mapping(data, "lyric line")
        start = _number(data, "startTime", "lyric line")
        end = _optional_number(data, "endTime")
        # 'translation' es el nombre antiguo de 'transText'
        translation = _optional_text(data, "transText") or _optional_text(
            data, "translation"
        )
        return cls(
            start_time=start,
            text=_text(data, "text"),
            end_time=end,
            phonetic=_optional_text(data, "pronText"),
            translation=translation,
        )


@dataclass(frozen=True)
class LyricSet:
    """
    Secuencia de líneas con start_time no decreciente.

    Si is_synced es False no hay timestamps utilizables y la
    resolución de línea activa la trata como vacía.
    """

    lines: tuple[LyricLine, ...] = ()
    is_synced: bool = True

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def timed_lines(self) -> tuple[LyricLine, ...]:
        """Líneas utilizables para sincronizar (vacío si no está sincronizada)."""
        return self.lines if self.is_synced else ()

    @classmethod
    def from_lines(cls, lines: list[LyricLine], is_synced: bool = True) -> "LyricSet":
        """Crea el set ordenando de forma estable por tiempo de inicio."""
        timed = [line for line in lines if math.isfinite(line.start_time)]
        timed.sort(key=lambda line: line.start_time)
        return cls(lines=tuple(timed), is_synced=is_synced)


@dataclass(frozen=True)
class LyricsPayload:
    """Contenido del canal lyrics-update."""

    track: TrackInfo
    lyrics: LyricSet

    @classmethod
    def from_payload(cls, data: Any) -> "LyricsPayload":
        data = _require_mapping(data, "lyrics-update")
        # Algunas fuentes envuelven el contenido en 'lyricsData'
        if "lyricsData" in data:
            data = _require_mapping(data["lyricsData"], "lyricsData")

        track = TrackInfo.from_payload(data.get("track"))
        raw_lines = data.get("lyrics")
        if raw_lines is None:
            raw_lines = []
        if not isinstance(raw_lines, list):
            raise PayloadError("lyrics-update: 'lyrics' debe ser una lista")

        is_synced = data.get("isSynced", True)
        if not isinstance(is_synced, bool):
            raise PayloadError("lyrics-update: 'isSynced' debe ser booleano")

        lines = [LyricLine.from_payload(item) for item in raw_lines]
        return cls(track=track, lyrics=LyricSet.from_lines(lines, is_synced))


@dataclass(frozen=True)
class ProgressSnapshot:
    """Contenido del canal progress-update (segundos)."""

    position: float
    is_playing: bool
    remaining: Optional[float] = None
    duration: Optional[float] = None
    next_track: Optional[NextTrackInfo] = field(default=None)

    @classmethod
    def from_payload(cls, data: Any) -> "ProgressSnapshot":
        data = _require_mapping(data, "progress-update")
        if "progressData" in data:
            data = _require_mapping(data["progressData"], "progressData")

        position = _number(data, "position", "progress-update")
        if not math.isfinite(position):
            raise PayloadError("progress-update: 'position' no es finita")
        is_playing = data.get("isPlaying")
        if not isinstance(is_playing, bool):
            raise PayloadError("progress-update: 'isPlaying' debe ser booleano")

        # Campos opcionales: si son inválidos se tratan como ausentes
        next_track = None
        if data.get("nextTrack") is not None:
            try:
                next_track = NextTrackInfo.from_payload(data["nextTrack"])
            except PayloadError:
                next_track = None

        return cls(
            position=position,
            is_playing=is_playing,
            remaining=_optional_number(data, "remaining"),
            duration=_optional_number(data, "duration"),
            next_track=next_track,
        )
