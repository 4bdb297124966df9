from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, constr

from booking_engine.application.dtos.transition_dto import (
    AutoUpdateResult,
    ProcessRetryJobsResult,
    TransitionResultDTO,
)
from booking_engine.domain.entities.booking import Booking
from booking_engine.domain.entities.retry_job import RetryJob
from booking_engine.domain.entities.status_history import StatusHistoryEntry
from booking_engine.domain.state_machine import ActionDefinition


class TransitionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    requested_status: constr(strip_whitespace=True, min_length=1)
    action: str | None = None
    actor: str | None = None
    reason: str | None = Field(default=None, max_length=1000)
    admin_notes: str | None = Field(default=None, max_length=5000)
    acknowledge_warnings: bool = False
    extra_payload: dict[str, Any] = Field(default_factory=dict)


class SubmitDepositRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    deposit_evidence_ref: constr(strip_whitespace=True, min_length=1, max_length=500)


class CancelByTokenRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = Field(default=None, max_length=1000)


class BookingResponse(BaseModel):
    id: str
    reference_number: str
    name: str
    email: str
    status: str
    start_date: date
    end_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    proposed_start_date: date | None = None
    proposed_end_date: date | None = None
    proposed_start_time: time | None = None
    proposed_end_time: time | None = None
    token_expires_at: datetime | None = None
    deposit_evidence_ref: str | None = None
    deposit_verified_at: datetime | None = None
    deposit_verified_by: str | None = None
    deposit_verified_other_channel: bool = False
    admin_notes: str | None = None
    user_response: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            reference_number=booking.reference_number,
            name=booking.name,
            email=booking.email,
            status=booking.status.value,
            start_date=booking.start_date,
            end_date=booking.end_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            proposed_start_date=booking.proposed_start_date,
            proposed_end_date=booking.proposed_end_date,
            proposed_start_time=booking.proposed_start_time,
            proposed_end_time=booking.proposed_end_time,
            token_expires_at=booking.token_expires_at,
            deposit_evidence_ref=booking.deposit_evidence_ref,
            deposit_verified_at=booking.deposit_verified_at,
            deposit_verified_by=booking.deposit_verified_by,
            deposit_verified_other_channel=booking.deposit_verified_other_channel,
            admin_notes=booking.admin_notes,
            user_response=booking.user_response,
            updated_at=booking.updated_at,
        )


class StatusHistoryResponse(BaseModel):
    id: str
    booking_id: str
    previous_status: str
    new_status: str
    actor: str | None = None
    reason: str | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, entry: StatusHistoryEntry) -> "StatusHistoryResponse":
        return cls(
            id=entry.id,
            booking_id=entry.booking_id,
            previous_status=entry.previous_status.value,
            new_status=entry.new_status.value,
            actor=entry.actor,
            reason=entry.reason,
            created_at=entry.created_at,
        )


class RetryJobResponse(BaseModel):
    id: str
    type: str
    payload: dict[str, Any]
    priority: int
    attempts: int
    max_attempts: int
    next_run_at: datetime | None = None
    status: str
    last_error: str | None = None

    @classmethod
    def from_entity(cls, job: RetryJob) -> "RetryJobResponse":
        return cls(
            id=job.id,
            type=job.type,
            payload=job.payload,
            priority=job.priority,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            next_run_at=job.next_run_at,
            status=job.status.value,
            last_error=job.last_error,
        )


class TransitionResponse(BaseModel):
    booking: BookingResponse
    status_history: StatusHistoryResponse
    warnings: list[str] = Field(default_factory=list)
    retry_jobs: list[RetryJobResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: TransitionResultDTO) -> "TransitionResponse":
        return cls(
            booking=BookingResponse.from_entity(result.booking),
            status_history=StatusHistoryResponse.from_entity(result.status_history),
            warnings=result.warnings,
            retry_jobs=[RetryJobResponse.from_entity(job) for job in result.retry_jobs],
        )


class ActionResponse(BaseModel):
    id: str
    label: str
    target_status: str
    is_destructive: bool
    requires_validation: bool
    description: str = ""

    @classmethod
    def from_definition(cls, action: ActionDefinition) -> "ActionResponse":
        return cls(**action.to_dict())


class DeleteBookingResponse(BaseModel):
    booking_id: str
    deleted: bool
    cleanup_job_id: str | None = None


class AutoUpdateResponse(BaseModel):
    cancelled: list[str]
    finished: list[str]
    skipped: list[dict[str, str]]

    @classmethod
    def from_result(cls, result: AutoUpdateResult) -> "AutoUpdateResponse":
        return cls(cancelled=result.cancelled, finished=result.finished, skipped=result.skipped)


class ProcessRetryJobsResponse(BaseModel):
    claimed: int
    succeeded: int
    retried: int
    dead: int
    stale: int = 0

    @classmethod
    def from_result(cls, result: ProcessRetryJobsResult) -> "ProcessRetryJobsResponse":
        return cls(
            claimed=result.claimed,
            succeeded=result.succeeded,
            retried=result.retried,
            dead=result.dead,
            stale=result.stale,
        )
