import logging

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import HTMLResponse
from sqlmodel import Session

from backend.database import get_db
from backend.errores import ErrorAPI
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.solicitudes_manager import armar_datos_orden_pago
from backend.modelos import SolicitudPago
from backend.security import requiere_permiso
from backend.utils.almacenamiento import AlmacenamientoLocal, get_almacenamiento
from backend.utils.documentos import generar_html_orden_pago
from backend.utils.pdf_documentos import generar_pdf_orden_pago

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/solicitudes-pago", tags=["Solicitudes de pago"])


@router.get("/{solicitud_id}/pdf")
def descargar_orden_pago(
    solicitud_id: int,
    formato: str = Query("pdf", pattern="^(pdf|html)$"),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("ver_solicitudes_pago")),
    almacenamiento: AlmacenamientoLocal = Depends(get_almacenamiento),
):
    solicitud = db.get(SolicitudPago, solicitud_id)
    if not solicitud:
        raise ErrorAPI(404, "Solicitud de pago no encontrada")
    datos = armar_datos_orden_pago(db, solicitud, almacenamiento)
    if formato == "html":
        return HTMLResponse(generar_html_orden_pago(datos))
    try:
        pdf_bytes = generar_pdf_orden_pago(datos)
    except Exception as e:
        logger.error(f"Error generando la orden de pago {solicitud_id}: {e}", exc_info=True)
        raise ErrorAPI(500, "Error al generar la orden de pago")
    codigo = datos["codigo"]
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"inline; filename=orden-pago-{codigo}.pdf"},
    )
