"""
Pytest configuration and shared fixtures.

Este módulo provee fixtures reutilizables para:
- Reloj fijo (FakeClock) y reloj civil en Asia/Bangkok
- Infraestructura in-memory y casos de uso ya cableados
- Base de datos SQLite in-memory (aiosqlite) para los repositorios SQL
- Reset de circuit breakers entre tests
"""

import pytest
import pytest_asyncio
from sqlalchemy import event

from booking_engine.api.dependencies import build_use_cases
from booking_engine.application.interfaces.clock import FakeClock
from booking_engine.application.services.civil_clock import CivilClock
from booking_engine.config import Settings
from booking_engine.infrastructure.db.engine import build_engine, build_sessionmaker
from booking_engine.infrastructure.db.tables import metadata
from booking_engine.infrastructure.in_memory import (
    InMemoryBlobStore,
    InMemoryBookingRepo,
    InMemoryNotificationDispatcher,
    InMemoryRetryJobRepo,
    NoopTransactionManager,
)
from tests.factories import NOW

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ============================================================================
# RELOJ Y CONFIGURACIÓN
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def civil_clock(clock) -> CivilClock:
    return CivilClock(clock, "Asia/Bangkok")


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, use_in_memory=True, civil_timezone="Asia/Bangkok")


# ============================================================================
# INFRAESTRUCTURA IN-MEMORY
# ============================================================================


@pytest.fixture
def bundle():
    return {
        "booking_repo": InMemoryBookingRepo(),
        "retry_job_repo": InMemoryRetryJobRepo(),
        "blob_store": InMemoryBlobStore(),
        "notifier": InMemoryNotificationDispatcher(),
        "tx_manager": NoopTransactionManager(),
    }


@pytest.fixture
def use_cases(settings, clock, bundle):
    return build_use_cases(settings=settings, clock=clock, **bundle)


@pytest.fixture
def booking_repo(bundle) -> InMemoryBookingRepo:
    return bundle["booking_repo"]


@pytest.fixture
def retry_job_repo(bundle) -> InMemoryRetryJobRepo:
    return bundle["retry_job_repo"]


@pytest.fixture
def blob_store(bundle) -> InMemoryBlobStore:
    return bundle["blob_store"]


@pytest.fixture
def notifier(bundle) -> InMemoryNotificationDispatcher:
    return bundle["notifier"]


# ============================================================================
# FIXTURES DE BASE DE DATOS
# ============================================================================


@pytest_asyncio.fixture
async def test_engine():
    engine = build_engine(TEST_DATABASE_URL)

    # SQLite solo aplica ON DELETE CASCADE con foreign_keys activado
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    async with build_sessionmaker(test_engine)() as session:
        yield session
        await session.rollback()


# ============================================================================
# MARKERS DE PYTEST
# ============================================================================


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: Tests que usan base de datos SQLite")
    config.addinivalue_line("markers", "circuit_breaker: Tests del circuit breaker")
    config.addinivalue_line("markers", "deadlock: Tests de reintento por deadlock")


@pytest.fixture(autouse=True)
def reset_circuit_breakers():
    """
    Reset circuit breakers antes de cada test.
    Evita que tests fallen por breakers abiertos de tests anteriores.
    """
    from booking_engine.infrastructure.circuit_breaker import (
        blob_store_breaker,
        notification_breaker,
    )

    blob_store_breaker.close()
    notification_breaker.close()

    yield

    blob_store_breaker.close()
    notification_breaker.close()
