class BlobStore:
    """Almacenamiento de archivos de comprobantes (solo se usa la eliminación)."""

    async def delete(self, ref: str) -> None:
        """
        Elimina el archivo referenciado.

        Debe ser idempotente: eliminar un archivo inexistente no es un error.
        Cualquier otro fallo se propaga como excepción.
        """
        raise NotImplementedError
