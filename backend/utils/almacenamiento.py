"""Almacén de objetos en disco local con claves estilo S3 (``gastos/2024/05/<ms>-<aleatorio>-<nombre>``)."""
import logging
import re
import time
import unicodedata
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from backend import config

logger = logging.getLogger(__name__)


def slugify(nombre: str) -> str:
    base = unicodedata.normalize("NFKD", nombre).encode("ascii", "ignore").decode("ascii")
    base = re.sub(r"[^A-Za-z0-9._-]+", "-", base).strip("-").lower()
    return base or "archivo"


def extension_de(nombre: str) -> str:
    return nombre.rsplit(".", 1)[-1].lower() if "." in nombre else ""


def construir_clave(prefijo: str, nombre_original: str, cuando: Optional[datetime] = None) -> str:
    cuando = cuando or datetime.now()
    prefijo = prefijo.strip("/")
    marca = int(time.time() * 1000)
    sufijo = uuid.uuid4().hex[:8]
    return f"{prefijo}/{cuando:%Y}/{cuando:%m}/{marca}-{sufijo}-{slugify(nombre_original)}"


class AlmacenamientoLocal:
    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def _ruta(self, clave: str) -> Path:
        ruta = (self.base_dir / clave).resolve()
        if self.base_dir.resolve() not in ruta.parents:
            raise ValueError(f"Clave fuera del almacenamiento: {clave}")
        return ruta

    def guardar(self, clave: str, contenido: bytes) -> str:
        ruta = self._ruta(clave)
        ruta.parent.mkdir(parents=True, exist_ok=True)
        ruta.write_bytes(contenido)
        logger.info(f"Objeto almacenado: {clave} ({len(contenido)} bytes)")
        return clave

    def leer(self, clave: str) -> Optional[bytes]:
        ruta = self._ruta(clave)
        if not ruta.exists():
            return None
        return ruta.read_bytes()

    def eliminar(self, clave: str) -> None:
        ruta = self._ruta(clave)
        if ruta.exists():
            ruta.unlink()
            logger.info(f"Objeto eliminado: {clave}")


def get_almacenamiento() -> AlmacenamientoLocal:
    return AlmacenamientoLocal(config.UPLOAD_DIR)
