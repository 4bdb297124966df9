import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from booking_engine.api.deps import engine
from booking_engine.api.routers.bookings import router as bookings_router
from booking_engine.api.routers.health import router as health_router
from booking_engine.api.routers.worker import router as worker_router
from booking_engine.config import get_settings
from booking_engine.domain.errors import (
    BookingOverlapError,
    DomainError,
    IllegalTransitionError,
    NotFoundError,
    OptimisticLockError,
    TokenExpiredError,
    ValidationError,
    WarningsNotAcknowledgedError,
)
from booking_engine.infrastructure.db.tables import metadata

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Domain error -> HTTP status; first match wins
ERROR_STATUS_CODES: list[tuple[type[DomainError], int]] = [
    (NotFoundError, 404),
    (TokenExpiredError, 410),
    (IllegalTransitionError, 422),
    (ValidationError, 422),
    (BookingOverlapError, 409),
    (OptimisticLockError, 409),
    (WarningsNotAcknowledgedError, 409),
]


def status_code_for(exc: DomainError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize DB tables (for dev/demo purposes)
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title="Booking Engine API",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(DomainError)
async def domain_exception_handler(request: Request, exc: DomainError):
    status_code = status_code_for(exc)
    logger.info(
        "Domain error",
        extra={"code": exc.code, "path": request.url.path, "status_code": status_code},
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler to prevent stack trace exposure to clients.
    All unhandled exceptions are logged internally and return a generic error message.
    """
    error_id = str(uuid.uuid4())

    logger.error(
        "Unhandled exception occurred",
        exc_info=exc,
        extra={
            "error_id": error_id,
            "path": request.url.path,
            "method": request.method,
            "client_host": request.client.host if request.client else None,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please contact support with the error_id if the issue persists.",
        },
    )


app.include_router(health_router, tags=["Health"])
app.include_router(bookings_router, prefix="/api/v1", tags=["Bookings"])
app.include_router(worker_router, prefix="/api/v1", tags=["Worker"])
