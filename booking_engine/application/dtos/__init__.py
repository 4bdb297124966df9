"""Data Transfer Objects de la capa de aplicación."""

from booking_engine.application.dtos.transition_dto import (
    AutoUpdateResult,
    ProcessRetryJobsResult,
    TransitionRequestDTO,
    TransitionResultDTO,
)

__all__ = [
    "AutoUpdateResult",
    "ProcessRetryJobsResult",
    "TransitionRequestDTO",
    "TransitionResultDTO",
]
