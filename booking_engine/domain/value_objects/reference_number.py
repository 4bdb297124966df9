"""Value Object ReferenceNumber - número de referencia legible de una reserva."""

import secrets
from dataclasses import dataclass


@dataclass(frozen=True)
class ReferenceNumber:
    """
    Value Object inmutable con el número de referencia mostrado al cliente.

    Formato: prefijo BK- seguido de 8 caracteres sin ambigüedad visual
    (sin 0/O ni 1/I). Ejemplo: BK-7K4M9QXA.
    """

    value: str

    PREFIX = "BK-"
    CODE_LENGTH = 8
    ALLOWED_CHARS = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("reference_number no puede estar vacío")

        if len(self.value) > 32:
            raise ValueError(f"reference_number excede 32 caracteres: {len(self.value)}")

    def __str__(self) -> str:
        return self.value

    @classmethod
    def generate(cls) -> "ReferenceNumber":
        """Genera un nuevo número de referencia aleatorio."""
        code = "".join(secrets.choice(cls.ALLOWED_CHARS) for _ in range(cls.CODE_LENGTH))
        return cls(value=f"{cls.PREFIX}{code}")

    @classmethod
    def from_string(cls, value: str) -> "ReferenceNumber":
        return cls(value=value.upper().strip())
