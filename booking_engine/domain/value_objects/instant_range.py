"""Value Object InstantRange - intervalo semiabierto de instantes absolutos."""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True)
class InstantRange:
    """
    Value Object inmutable que representa el intervalo [start, end).

    Ambos extremos son instantes absolutos (timezone-aware). Dos rangos que
    solo se tocan en un extremo no se superponen.

    Attributes:
        start: Instante de inicio (incluido).
        end: Instante de fin (excluido).
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("InstantRange requiere instantes con timezone")
        if self.start >= self.end:
            raise ValueError(
                f"start debe ser anterior a end: {self.start} >= {self.end}"
            )

    @property
    def duration(self) -> timedelta:
        """Retorna la duración del rango."""
        return self.end - self.start

    def overlaps_with(self, other: "InstantRange") -> bool:
        """Verifica si este rango se superpone con otro (intersección semiabierta)."""
        return self.start < other.end and other.start < self.end

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()} -> {self.end.isoformat()}"
