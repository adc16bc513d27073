"""Guardias que se ejecutan antes de una operación: cuota, borrado de clientes,
reutilización de contraseña y destino de subida."""
import logging
from typing import Any, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from backend.errores import ErrorAPI, ErrorCuota
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.cuota_manager import tiene_espacio
from backend.modelos import Cotizacion, CuentaPorCobrar, Usuario
from backend.security import verificar_password
from backend.utils.formato import parsear_entero

logger = logging.getLogger(__name__)

MENSAJE_CUOTA_EXCEDIDA = "Has superado tu cuota de almacenamiento. Elimina archivos o solicita más espacio."


def _tamanio_declarado(*fuentes: Any) -> Optional[int]:
    for fuente in fuentes:
        if fuente is None or (isinstance(fuente, str) and not fuente.strip()):
            continue
        valor = parsear_entero(fuente)
        if valor is None or valor < 0:
            raise ErrorAPI(400, "Tamaño de archivo declarado inválido.", clave="mensaje")
        return valor
    return None


def validar_cuota(
    db: Session,
    contexto: Optional[ContextoSolicitud],
    tamanio_header: Any = None,
    tamanio_cuerpo: Any = None,
    tamanio_archivo: Optional[int] = None,
) -> Optional[int]:
    """Rechaza la subida si excede la cuota del usuario.

    Sin archivo (subida directa) se evalúa el tamaño declarado en el header
    o, si falta, en el cuerpo. Con archivo se evalúa el mayor entre el
    declarado y el real. Un tamaño declarado que no es un entero no negativo
    es un 400. Sin tamaño conocido la guardia no actúa. Devuelve los bytes
    evaluados.
    """
    if contexto is None or not contexto.autenticado:
        raise ErrorAPI(401, "No autenticado.", clave="mensaje")

    nuevos = _tamanio_declarado(tamanio_header, tamanio_cuerpo)
    if tamanio_archivo is not None:
        nuevos = max(nuevos or 0, tamanio_archivo)
    if not nuevos:
        return None

    try:
        usuario = db.get(Usuario, contexto.usuario_id)
    except SQLAlchemyError as e:
        logger.error(f"Error consultando cuota del usuario {contexto.usuario_id}: {e}", exc_info=True)
        raise ErrorAPI(500, "Error interno al validar cuota de almacenamiento.", clave="mensaje")

    if usuario is None:
        raise ErrorAPI(404, "Usuario no encontrado.", clave="mensaje")

    if not tiene_espacio(usuario.cuota_mb, usuario.uso_storage_bytes, nuevos):
        logger.warning(
            f"Cuota excedida usuario={usuario.id} uso={usuario.uso_storage_bytes} "
            f"nuevos={nuevos} cuota_mb={usuario.cuota_mb}"
        )
        raise ErrorCuota(MENSAJE_CUOTA_EXCEDIDA)
    return nuevos


def validar_eliminacion_cliente(db: Session, cliente_id: int) -> None:
    try:
        cuentas = db.exec(
            select(func.count()).select_from(CuentaPorCobrar).where(
                CuentaPorCobrar.cliente_id == cliente_id, CuentaPorCobrar.estado == "pendiente"
            )
        ).one()
        if cuentas > 0:
            raise ErrorAPI(400, "No se puede eliminar: el cliente tiene cuentas por cobrar pendientes.", clave="error")

        cotizaciones = db.exec(
            select(func.count()).select_from(Cotizacion).where(
                Cotizacion.cliente_id == cliente_id, Cotizacion.estado == "pendiente"
            )
        ).one()
        if cotizaciones > 0:
            raise ErrorAPI(400, "No se puede eliminar: el cliente tiene cotizaciones en proceso.", clave="error")
    except SQLAlchemyError as e:
        logger.error(f"Error validando eliminación del cliente {cliente_id}: {e}", exc_info=True)
        raise ErrorAPI(500, "Error interno al validar eliminación")


def validar_password_distinta(db: Session, usuario_id: int, password: Optional[str]) -> None:
    if not password:
        return
    try:
        usuario = db.get(Usuario, usuario_id)
        if usuario is None:
            raise ErrorAPI(404, "Usuario no encontrado")
        misma = verificar_password(password, usuario.password_hash)
    except ErrorAPI:
        raise
    except (SQLAlchemyError, ValueError, TypeError) as e:
        logger.error(f"Error comparando contraseña del usuario {usuario_id}: {e}", exc_info=True)
        raise ErrorAPI(500, "Error interno validando contraseña.")
    if misma:
        raise ErrorAPI(400, "La nueva contraseña debe ser diferente a la actual.")


def validar_destino_repositorio(carpeta_id: Any, prefijo_s3: Any) -> Tuple[Optional[int], Optional[str]]:
    tiene_carpeta = carpeta_id is not None and str(carpeta_id).strip() != ""
    tiene_prefijo = prefijo_s3 is not None and str(prefijo_s3).strip() != ""
    if tiene_carpeta and tiene_prefijo:
        raise ErrorAPI(400, "Envía solo carpetaId o prefijoS3, no ambos.", clave="mensaje")
    if not tiene_carpeta and not tiene_prefijo:
        raise ErrorAPI(400, "Debes enviar carpetaId o prefijoS3.", clave="mensaje")
    if tiene_carpeta:
        ident = parsear_entero(carpeta_id)
        if ident is None:
            raise ErrorAPI(400, "carpetaId debe ser numérico.", clave="mensaje")
        return ident, None
    return None, str(prefijo_s3).strip().strip("/")
