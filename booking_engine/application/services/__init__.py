"""Servicios de aplicación compartidos por los casos de uso."""

from booking_engine.application.services.civil_clock import CivilClock
from booking_engine.application.services.concurrency_guard import ConcurrencyGuard
from booking_engine.application.services.overlap_detector import OverlapDetector
from booking_engine.application.services.side_effects import SideEffects
from booking_engine.application.services.token_validator import TokenValidator

__all__ = [
    "CivilClock",
    "ConcurrencyGuard",
    "OverlapDetector",
    "SideEffects",
    "TokenValidator",
]
