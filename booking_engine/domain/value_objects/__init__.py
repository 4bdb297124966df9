"""Value Objects del dominio."""

from booking_engine.domain.value_objects.instant_range import InstantRange
from booking_engine.domain.value_objects.reference_number import ReferenceNumber

__all__ = ["InstantRange", "ReferenceNumber"]
