from booking_engine.application.interfaces.blob_store import BlobStore


class InMemoryBlobStore(BlobStore):
    """Almacén fake; `fail_deletes` simula una caída del servicio de archivos."""

    def __init__(self, fail_deletes: bool = False) -> None:
        self.blobs: set[str] = set()
        self.deleted: list[str] = []
        self.fail_deletes = fail_deletes

    async def delete(self, ref: str) -> None:
        if self.fail_deletes:
            raise ConnectionError(f"Blob store unavailable while deleting {ref}")
        self.blobs.discard(ref)
        self.deleted.append(ref)
