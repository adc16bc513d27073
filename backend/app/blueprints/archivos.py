import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Header, Query, UploadFile
from sqlmodel import Session, select

from backend import config
from backend.database import get_db
from backend.errores import ErrorAPI
from backend.gestion.archivos_manager import REGISTRO_REPOSITORIO, guardar_archivo
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.guardias import validar_cuota, validar_destino_repositorio
from backend.gestion.validaciones import ArchivoAdjunto
from backend.modelos import Archivo, CarpetaArchivo, EventoArchivo, Gasto
from backend.security import obtener_contexto
from backend.utils.almacenamiento import AlmacenamientoLocal, get_almacenamiento

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/archivos", tags=["Archivos"])

REGISTRO_COMPROBANTES_PAGO = "comprobantesPagos"


def _leer_adjunto(archivo: UploadFile, extensiones: tuple, limite_bytes: int) -> ArchivoAdjunto:
    contenido = archivo.file.read()
    adjunto = ArchivoAdjunto(archivo.filename or "", contenido, archivo.content_type)
    if not adjunto.nombre_original:
        raise ErrorAPI(400, "No se recibió ningún archivo.", clave="mensaje")
    if adjunto.extension not in extensiones:
        raise ErrorAPI(400, f"Tipo de archivo no permitido ({', '.join(extensiones)})", clave="mensaje")
    if adjunto.tamanio > limite_bytes:
        limite = limite_bytes // (1024 * 1024)
        raise ErrorAPI(413, f"El archivo excede el tamaño máximo permitido ({limite}MB)", clave="mensaje")
    return adjunto


@router.post("/subir", status_code=201)
def subir_archivo(
    archivo: UploadFile = File(...),
    carpetaId: Optional[str] = Form(None),
    prefijoS3: Optional[str] = Form(None),
    tamanioBytes: Optional[str] = Form(None),
    x_file_size: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
    almacenamiento: AlmacenamientoLocal = Depends(get_almacenamiento),
):
    """Sube un archivo al repositorio, dentro de una carpeta o bajo un prefijo."""
    carpeta_id, prefijo = validar_destino_repositorio(carpetaId, prefijoS3)
    adjunto = _leer_adjunto(archivo, config.EXTENSIONES_SUBIDA, config.MAX_UPLOAD_BYTES)
    validar_cuota(db, contexto, x_file_size, tamanioBytes, adjunto.tamanio)

    if carpeta_id is not None:
        carpeta = db.get(CarpetaArchivo, carpeta_id)
        if not carpeta:
            raise ErrorAPI(404, "Carpeta no encontrada.", clave="mensaje")
        prefijo = carpeta.prefijo

    try:
        nuevo = guardar_archivo(
            db, almacenamiento, contexto, adjunto,
            prefijo=prefijo or REGISTRO_REPOSITORIO,
            registro_tipo=REGISTRO_REPOSITORIO,
            carpeta_id=carpeta_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Archivo subido correctamente", "idArchivo": nuevo.id, "rutaS3": nuevo.ruta_s3}


@router.post("/gastos/{gasto_id}/comprobante", status_code=201)
def subir_comprobante_gasto(
    gasto_id: int,
    archivo: UploadFile = File(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
    almacenamiento: AlmacenamientoLocal = Depends(get_almacenamiento),
):
    """Adjunta un comprobante de pago a un gasto existente sin modificar el gasto."""
    gasto = db.get(Gasto, gasto_id)
    if not gasto:
        raise ErrorAPI(404, "Gasto no encontrado")
    adjunto = _leer_adjunto(archivo, config.EXTENSIONES_DOCUMENTO_GASTO, config.GASTO_DOCUMENTO_MAX_BYTES)
    validar_cuota(db, contexto, tamanio_archivo=adjunto.tamanio)
    try:
        nuevo = guardar_archivo(
            db, almacenamiento, contexto, adjunto,
            prefijo="comprobantes",
            registro_tipo=REGISTRO_COMPROBANTES_PAGO,
            registro_id=gasto.id,
            detalles={"codigoGasto": gasto.codigo},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"message": "Comprobante subido correctamente", "idArchivo": nuevo.id, "rutaS3": nuevo.ruta_s3}


@router.post("/verificar-cuota")
def verificar_cuota(
    payload: Optional[Dict[str, Any]] = Body(None),
    x_file_size: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
):
    """Chequeo previo a una subida directa: el cliente declara el tamaño."""
    cuerpo = (payload or {}).get("tamanioBytes")
    evaluados = validar_cuota(db, contexto, x_file_size, cuerpo)
    return {"ok": True, "tamanioBytes": evaluados}


@router.get("/eventos")
def listar_eventos(
    limit: int = Query(50),
    offset: int = Query(0),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
):
    limit = min(max(1, limit), 200)
    stmt = (
        select(EventoArchivo, Archivo)
        .join(Archivo, Archivo.id == EventoArchivo.archivo_id)
        .order_by(EventoArchivo.fecha_hora.desc(), EventoArchivo.id.desc())
    )
    if contexto.rol_id not in (config.ROL_SUPERADMIN_ID, config.ROL_SUPERVISOR_ID):
        stmt = stmt.where(EventoArchivo.usuario_id == contexto.usuario_id)
    filas = db.exec(stmt.offset(max(offset, 0)).limit(limit)).all()
    return [
        {
            "id": ev.id,
            "archivoId": ev.archivo_id,
            "nombreOriginal": arch.nombre_original,
            "accion": ev.accion,
            "usuarioId": ev.usuario_id,
            "fechaHora": ev.fecha_hora,
            "ip": ev.ip,
            "userAgent": ev.user_agent,
            "detalles": ev.detalles,
        }
        for ev, arch in filas
    ]
