"""Constantes del dominio."""

BOOKING_STATUS_PENDING = "pending"
BOOKING_STATUS_PENDING_DEPOSIT = "pending_deposit"
BOOKING_STATUS_PAID_DEPOSIT = "paid_deposit"
BOOKING_STATUS_CONFIRMED = "confirmed"
BOOKING_STATUS_CANCELLED = "cancelled"
BOOKING_STATUS_FINISHED = "finished"

# Solo las reservas confirmadas bloquean el calendario
BLOCKING_STATUSES = frozenset({BOOKING_STATUS_CONFIRMED})

# Tokens
TOKEN_GRACE_SECONDS = 5 * 60
TOKEN_EXTENDED_GRACE_SECONDS = 15 * 60
TOKEN_BYTES = 32

# Ventana para la advertencia "el usuario respondió recientemente"
RECENT_USER_RESPONSE_SECONDS = 5 * 60

# Tipos de job de la cola de reintentos
JOB_DELETE_ORPHANED_BLOB = "delete-orphaned-blob"
JOB_DISPATCH_NOTIFICATION = "dispatch-notification"

CLEANUP_JOB_PRIORITY = 5
CLEANUP_JOB_MAX_ATTEMPTS = 3
NOTIFICATION_JOB_PRIORITY = 3
NOTIFICATION_JOB_MAX_ATTEMPTS = 5

# Backoff de la cola: 1min, 5min, 15min, 30min, 1h
RETRY_BACKOFF_SECONDS = (60, 300, 900, 1800, 3600)

SYSTEM_ACTOR = "system"
