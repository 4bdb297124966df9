"""Worker de la cola durable de reintentos."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from uuid import uuid4

from booking_engine.application.dtos.transition_dto import ProcessRetryJobsResult

logger = logging.getLogger(__name__)

BatchRunner = Callable[[str], Awaitable[ProcessRetryJobsResult]]


class RetryWorker:
    """
    Worker que procesa la cola de reintentos en modo polling.

    Cada ciclo ejecuta un lote mediante `run_batch` (normalmente
    ProcessRetryJobsUseCase.execute con su propia sesión de base de datos).
    Si el lote vino lleno se encadena el siguiente sin esperar.

    Características:
    - Polling configurable
    - Leases por worker: un worker caído libera sus jobs al expirar el lease
    - Graceful shutdown
    """

    def __init__(
        self,
        run_batch: BatchRunner,
        worker_id: str | None = None,
        poll_interval_seconds: float = 5.0,
    ) -> None:
        """
        Inicializa el worker.

        Args:
            run_batch: Corrutina que procesa un lote para un worker_id dado.
            worker_id: Identificador único del worker (auto-generado si no se provee).
            poll_interval_seconds: Intervalo entre polls cuando no hay trabajo.
        """
        self._run_batch = run_batch
        self._worker_id = worker_id or f"worker-{uuid4().hex[:8]}"
        self._poll_interval = poll_interval_seconds
        self._running = False

    @property
    def worker_id(self) -> str:
        return self._worker_id

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> ProcessRetryJobsResult:
        result = await self._run_batch(self._worker_id)
        if result.claimed:
            logger.info(
                f"RetryWorker {self._worker_id} procesó lote",
                extra={
                    "claimed": result.claimed,
                    "succeeded": result.succeeded,
                    "retried": result.retried,
                    "dead": result.dead,
                    "stale": result.stale,
                },
            )
        return result

    async def start(self) -> None:
        """Inicia el worker en modo polling hasta que se llame a stop()."""
        self._running = True
        logger.info(f"RetryWorker {self._worker_id} iniciado")

        while self._running:
            try:
                result = await self.run_once()
                if result.claimed == 0:
                    await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                self._running = False
                raise
            except Exception as e:
                logger.exception(f"Error en ciclo del worker: {e}")
                await asyncio.sleep(self._poll_interval)

    async def stop(self) -> None:
        """Detiene el worker de forma graceful."""
        self._running = False
        logger.info(f"RetryWorker {self._worker_id} detenido")
