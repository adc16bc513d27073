import logging
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Body, Depends, Request, Response
from sqlmodel import Session, select
from starlette.datastructures import UploadFile

from backend import config
from backend.database import get_db
from backend.errores import ErrorAPI
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.guardias import validar_cuota
from backend.gestion.registros_manager import crear_registro
from backend.gestion.validaciones import ArchivoAdjunto, validar_registro, validar_tipo
from backend.modelos import Cliente, Proveedor, ServicioProducto, TipoGasto
from backend.security import exigir_permiso, obtener_contexto
from backend.utils.almacenamiento import AlmacenamientoLocal, get_almacenamiento
from backend.utils.pdf_documentos import generar_pdf_cotizacion

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/registros", tags=["Registros (gastos y cotizaciones)"])

TIPOS_REGISTRO = [
    {"id": "gasto", "nombre": "Gasto"},
    {"id": "cotizacion", "nombre": "Cotización"},
]


async def leer_payload_registro(request: Request) -> Tuple[Dict[str, Any], Optional[ArchivoAdjunto]]:
    """Lee el cuerpo como multipart (con 'documento') o como JSON.

    El archivo se carga completo en memoria antes de validar.
    """
    content_type = request.headers.get("content-type", "")
    archivo: Optional[ArchivoAdjunto] = None
    if content_type.startswith("multipart/form-data") or content_type.startswith("application/x-www-form-urlencoded"):
        form = await request.form()
        datos: Dict[str, Any] = {}
        for clave, valor in form.multi_items():
            if isinstance(valor, UploadFile):
                if clave != "documento" or not valor.filename:
                    continue
                contenido = await valor.read()
                if len(contenido) > config.MAX_UPLOAD_BYTES:
                    limite = config.MAX_UPLOAD_BYTES // (1024 * 1024)
                    raise ErrorAPI(413, f"El archivo excede el tamaño máximo permitido ({limite}MB)", clave="mensaje")
                archivo = ArchivoAdjunto(valor.filename, contenido, valor.content_type)
            else:
                datos[clave] = valor
        return datos, archivo

    try:
        datos = await request.json()
    except ValueError:
        raise ErrorAPI(400, "Cuerpo de la solicitud inválido")
    if not isinstance(datos, dict):
        raise ErrorAPI(400, "Cuerpo de la solicitud inválido")
    return datos, None


@router.get("")
def obtener_datos_registro(db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(obtener_contexto)):
    """Catálogos que necesita el formulario de registro."""
    servicios = db.exec(select(ServicioProducto).where(ServicioProducto.estado == "activo")).all()
    clientes = db.exec(select(Cliente).order_by(Cliente.nombre)).all()
    proveedores = db.exec(select(Proveedor).where(Proveedor.estado == "activo").order_by(Proveedor.nombre)).all()
    return {
        "servicios": [
            {"id": s.id, "nombre": s.nombre, "precio": float(s.precio), "tipo": s.tipo,
             "porcentaje_iva": s.porcentaje_iva, "cantidad_actual": s.cantidad_actual}
            for s in servicios
        ],
        "clientes": [{"id": c.id, "nombre": c.nombre, "sucursal_id": c.sucursal_id} for c in clientes],
        "proveedores": [{"id": p.id, "nombre": p.nombre} for p in proveedores],
        "tiposRegistro": TIPOS_REGISTRO,
    }


@router.get("/tipos-gasto")
def obtener_tipos_gasto(db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(obtener_contexto)):
    return db.exec(select(TipoGasto).order_by(TipoGasto.id)).all()


@router.post("", status_code=201)
def crear_nuevo_registro(
    request: Request,
    contexto: ContextoSolicitud = Depends(obtener_contexto),
    payload: Tuple[Dict[str, Any], Optional[ArchivoAdjunto]] = Depends(leer_payload_registro),
    db: Session = Depends(get_db),
    almacenamiento: AlmacenamientoLocal = Depends(get_almacenamiento),
):
    datos, archivo = payload
    tipo = validar_tipo(datos)
    exigir_permiso(db, contexto, f"crear_{tipo}", "No tienes permiso para crear este tipo de registro")

    registro = validar_registro(db, datos, archivo, contexto)
    if registro.archivo is not None:
        validar_cuota(
            db,
            contexto,
            tamanio_header=request.headers.get("x-file-size"),
            tamanio_cuerpo=datos.get("tamanioBytes"),
            tamanio_archivo=registro.archivo.tamanio,
        )
    return crear_registro(db, almacenamiento, registro, contexto)


@router.post("/cotizaciones/vista-previa")
def vista_previa_cotizacion(
    payload: Optional[Dict[str, Any]] = Body(None),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
):
    datos = payload.get("datos") if isinstance(payload, dict) else None
    if not datos or not isinstance(datos, dict):
        raise ErrorAPI(400, "Faltan datos de cotización para generar la vista previa.")
    try:
        pdf_bytes = generar_pdf_cotizacion(datos)
    except Exception as e:
        logger.error(f"Error generando vista previa de cotización: {e}", exc_info=True)
        raise ErrorAPI(500, "Error al generar la vista previa de cotización")
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": "inline; filename=preview-cotizacion.pdf"},
    )
