import logging

import httpx

from booking_engine.application.interfaces.blob_store import BlobStore
from booking_engine.infrastructure.circuit_breaker import blob_store_breaker, call_with_breaker

logger = logging.getLogger(__name__)


class HttpBlobStore(BlobStore):
    def __init__(
        self,
        base_url: str,
        api_token: str | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        """
        Blob store client that deletes deposit evidence over HTTP.

        Args:
            base_url: Base URL of the storage API
            api_token: Bearer token sent on every request
            timeout_seconds: Request timeout in seconds
        """
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout_seconds

    def _headers(self) -> dict[str, str]:
        if not self._api_token:
            return {}
        return {"Authorization": f"Bearer {self._api_token}"}

    async def delete(self, ref: str) -> None:
        """
        Delete a stored file. A 404 means it is already gone and counts as success.

        Raises:
            httpx.HTTPError: Network failure or non-2xx response
            CircuitBreakerError: The breaker is open
        """
        url = f"{self._base_url}/blobs"

        async def _make_request():
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.request(
                    "DELETE", url, params={"ref": ref}, headers=self._headers()
                )
            if response.status_code == 404:
                logger.info("Blob already deleted", extra={"evidence_ref": ref})
                return
            response.raise_for_status()

        await call_with_breaker(blob_store_breaker, _make_request)
        logger.info("Blob deleted", extra={"evidence_ref": ref})
