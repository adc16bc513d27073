import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlmodel import Session

from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.cuota_manager import sumar_uso_storage
from backend.gestion.validaciones import ArchivoAdjunto
from backend.modelos import Archivo, EventoArchivo
from backend.utils.almacenamiento import AlmacenamientoLocal, construir_clave

logger = logging.getLogger(__name__)

REGISTRO_FACTURAS_GASTOS = "facturasGastos"
REGISTRO_REPOSITORIO = "repositorio"


def registrar_evento(
    db: Session,
    archivo_id: int,
    accion: str,
    contexto: ContextoSolicitud,
    detalles: Optional[Dict[str, Any]] = None,
) -> EventoArchivo:
    """Agrega una entrada a la bitácora. Nunca se actualiza ni se borra."""
    evento = EventoArchivo(
        archivo_id=archivo_id,
        accion=accion,
        usuario_id=contexto.usuario_id,
        fecha_hora=datetime.now(timezone.utc),
        ip=contexto.ip,
        user_agent=contexto.user_agent,
        detalles=detalles or {},
    )
    db.add(evento)
    return evento


def guardar_archivo(
    db: Session,
    almacenamiento: AlmacenamientoLocal,
    contexto: ContextoSolicitud,
    adjunto: ArchivoAdjunto,
    prefijo: str,
    registro_tipo: str,
    registro_id: Optional[int] = None,
    carpeta_id: Optional[int] = None,
    detalles: Optional[Dict[str, Any]] = None,
) -> Archivo:
    """Sube el objeto, crea la fila de archivo, su evento 'subida' y suma el uso.

    No hace commit: la transacción es del llamador. Si algo falla después de
    subir, el llamador debe eliminar ``archivo.ruta_s3`` del almacenamiento.
    """
    clave = construir_clave(prefijo, adjunto.nombre_original)
    almacenamiento.guardar(clave, adjunto.contenido)

    archivo = Archivo(
        registro_tipo=registro_tipo,
        registro_id=registro_id,
        carpeta_id=carpeta_id,
        nombre_original=adjunto.nombre_original,
        extension=adjunto.extension,
        tamanio_bytes=adjunto.tamanio,
        ruta_s3=clave,
        subido_por=contexto.usuario_id,
    )
    try:
        db.add(archivo)
        db.flush()
    except Exception:
        almacenamiento.eliminar(clave)
        raise

    info = {
        "registroTipo": registro_tipo,
        "registroId": registro_id,
        "nombreOriginal": adjunto.nombre_original,
        "tamanioBytes": adjunto.tamanio,
        "contentType": adjunto.content_type,
    }
    if detalles:
        info.update(detalles)
    registrar_evento(db, archivo.id, "subida", contexto, info)
    sumar_uso_storage(db, contexto.usuario_id, adjunto.tamanio)
    logger.info(f"Archivo {archivo.id} registrado en {clave} por usuario {contexto.usuario_id}")
    return archivo
