"""
Adaptador de reloj civil.

Único lugar donde las fechas y horas civiles de una reserva se convierten en
instantes absolutos. Toda comparación entre reservas y "ahora" pasa por aquí.
"""

from datetime import date, datetime, time, timedelta

import pytz

from booking_engine.application.interfaces.clock import Clock
from booking_engine.domain.entities.booking import Booking, Schedule
from booking_engine.domain.errors import ValidationError
from booking_engine.domain.value_objects.instant_range import InstantRange

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMATS = ("%H:%M", "%H:%M:%S")


class CivilClock:
    """
    Convierte fechas/horas civiles de una zona horaria fija en instantes UTC.

    Args:
        clock: Fuente del instante actual.
        timezone_name: Nombre IANA de la zona del local (ej. "Asia/Bangkok").
    """

    def __init__(self, clock: Clock, timezone_name: str = "Asia/Bangkok") -> None:
        self._clock = clock
        self._tz = pytz.timezone(timezone_name)

    @property
    def timezone(self):
        return self._tz

    def now(self) -> datetime:
        return self._clock.now()

    def today(self) -> date:
        """Fecha civil de hoy en la zona horaria del local."""
        return self.now().astimezone(self._tz).date()

    # === Interpretación ===

    def parse_date(self, value: str | date, field: str = "date") -> date:
        """
        Interpreta un string YYYY-MM-DD y rechaza fechas inexistentes.

        Raises:
            ValidationError: Si el formato es inválido o la fecha no existe.
        """
        if isinstance(value, datetime):
            raise ValidationError(field, "se esperaba una fecha civil, no un instante")
        if isinstance(value, date):
            return value
        try:
            return datetime.strptime(value.strip(), DATE_FORMAT).date()
        except (ValueError, AttributeError) as exc:
            raise ValidationError(field, f"fecha inválida '{value}' (formato YYYY-MM-DD)") from exc

    def parse_time(self, value: str | time | None, field: str = "time") -> time | None:
        if value is None or value == "":
            return None
        if isinstance(value, time):
            return value
        for fmt in TIME_FORMATS:
            try:
                return datetime.strptime(value.strip(), fmt).time()
            except ValueError:
                continue
        raise ValidationError(field, f"hora inválida '{value}' (formato HH:MM)")

    # === Conversión ===

    def to_instant(self, date_value: str | date, time_value: str | time | None = None) -> datetime:
        """
        Fecha civil (+ hora opcional) a un instante UTC con zona.

        Sin hora se toma el inicio de ese día civil.
        """
        day = self.parse_date(date_value)
        clock_time = self.parse_time(time_value) or time.min
        local = self._tz.localize(datetime.combine(day, clock_time))
        return local.astimezone(pytz.UTC)

    def booking_range(
        self,
        start_date: str | date,
        end_date: str | date | None = None,
        start_time: str | time | None = None,
        end_time: str | time | None = None,
    ) -> InstantRange:
        """
        Rango semiabierto de instantes que ocupa una reserva.

        Sin hora de fin el rango se extiende hasta la medianoche posterior a su
        último día.

        Raises:
            ValidationError: Si el fin es anterior al inicio o el rango queda vacío.
        """
        first_day = self.parse_date(start_date, "start_date")
        last_day = self.parse_date(end_date, "end_date") if end_date else first_day
        if last_day < first_day:
            raise ValidationError("end_date", "end_date no puede ser anterior a start_date")

        start_clock = self.parse_time(start_time, "start_time")
        end_clock = self.parse_time(end_time, "end_time")

        start = self.to_instant(first_day, start_clock)
        if end_clock is not None:
            end = self.to_instant(last_day, end_clock)
        else:
            end = self.to_instant(last_day + timedelta(days=1))

        if end <= start:
            raise ValidationError("end_time", "end_time debe ser posterior a start_time")
        return InstantRange(start=start, end=end)

    def schedule_range(self, schedule: Schedule) -> InstantRange:
        return self.booking_range(
            schedule.start_date, schedule.end_date, schedule.start_time, schedule.end_time
        )

    def start_instant(self, booking: Booking) -> datetime:
        return self.to_instant(booking.start_date, booking.start_time)

    def end_instant(self, booking: Booking) -> datetime:
        return self.schedule_range(booking.schedule).end

    # === Consultas ===

    def is_past(self, instant: datetime) -> bool:
        return instant <= self.now()

    def has_started(self, booking: Booking) -> bool:
        return self.is_past(self.start_instant(booking))

    def has_ended(self, booking: Booking) -> bool:
        return self.is_past(self.end_instant(booking))
