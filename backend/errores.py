"""Errores de dominio que main.py traduce a respuestas JSON.

Las respuestas conservan la forma que consume el frontend:
``{"message": ...}``, ``{"mensaje": ...}``, ``{"error": ...}`` o
``{"message": ..., "errores": [...]}`` para validaciones acumuladas.
"""
from typing import List, Optional


class ErrorAPI(Exception):
    def __init__(self, status_code: int, mensaje: str, clave: str = "message", extra: Optional[dict] = None):
        super().__init__(mensaje)
        self.status_code = status_code
        self.mensaje = mensaje
        self.clave = clave
        self.extra = extra or {}

    def cuerpo(self) -> dict:
        body = {self.clave: self.mensaje}
        body.update(self.extra)
        return body


class ErrorValidacion(ErrorAPI):
    """422 con la lista completa de fallos acumulados."""

    def __init__(self, errores: List[str], mensaje: str = "Error de validación", status_code: int = 422):
        super().__init__(status_code, mensaje, extra={"errores": list(errores)})
        self.errores = list(errores)


class ErrorCuota(ErrorAPI):
    def __init__(self, mensaje: str):
        super().__init__(413, mensaje, clave="mensaje")
