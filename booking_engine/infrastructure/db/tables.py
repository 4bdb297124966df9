from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Time,
)
from sqlalchemy.dialects import mysql

metadata = MetaData()

# updated_at es la versión del bloqueo optimista: necesita microsegundos en MySQL
PreciseDateTime = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")

bookings = Table(
    "bookings",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("reference_number", String(32), nullable=False, unique=True),
    Column("name", String(255), nullable=False, default=""),
    Column("email", String(255), nullable=False, default=""),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date),
    Column("start_time", Time),
    Column("end_time", Time),
    Column("proposed_start_date", Date),
    Column("proposed_end_date", Date),
    Column("proposed_start_time", Time),
    Column("proposed_end_time", Time),
    Column("status", String(32), nullable=False),
    Column("response_token", String(64), unique=True),
    Column("token_expires_at", PreciseDateTime),
    Column("deposit_evidence_ref", String(500)),
    Column("deposit_verified_at", PreciseDateTime),
    Column("deposit_verified_by", String(255)),
    Column("deposit_verified_other_channel", Boolean, nullable=False, default=False),
    Column("admin_notes", Text),
    Column("user_response", String(64)),
    Column("user_response_at", PreciseDateTime),
    Column("created_at", PreciseDateTime, nullable=False),
    Column("updated_at", PreciseDateTime, nullable=False),
    Index("ix_bookings_status_dates", "status", "start_date", "end_date"),
)

booking_status_history = Table(
    "booking_status_history",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "booking_id",
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("previous_status", String(32), nullable=False),
    Column("new_status", String(32), nullable=False),
    Column("actor", String(255)),
    Column("reason", Text),
    Column("created_at", PreciseDateTime, nullable=False),
)

retry_jobs = Table(
    "retry_jobs",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("type", String(64), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("priority", Integer, nullable=False, default=5),
    Column("attempts", Integer, nullable=False, default=0),
    Column("max_attempts", Integer, nullable=False, default=3),
    Column("next_run_at", PreciseDateTime),
    Column("status", String(16), nullable=False, default="pending"),
    Column("last_error", Text),
    Column("locked_by", String(64)),
    Column("lock_expires_at", PreciseDateTime),
    Column("created_at", PreciseDateTime, nullable=False),
    Column("updated_at", PreciseDateTime, nullable=False),
    Index("ix_retry_jobs_due", "status", "priority", "next_run_at"),
)
