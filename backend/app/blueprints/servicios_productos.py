import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session, select

from backend.database import get_db
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.validaciones_catalogo import validar_servicio_producto
from backend.modelos import ServicioProducto
from backend.security import obtener_contexto, requiere_permiso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/servicios-productos", tags=["Servicios y productos"])


@router.get("")
def listar_servicios_productos(
    tipo: Optional[str] = None,
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
):
    stmt = select(ServicioProducto).order_by(ServicioProducto.nombre)
    if tipo:
        stmt = stmt.where(ServicioProducto.tipo == tipo)
    return db.exec(stmt).all()


@router.post("", status_code=201)
def crear_servicio_producto(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("crear_servicio")),
):
    limpio = validar_servicio_producto(data)
    item = ServicioProducto(**limpio)
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info(f"{item.tipo.capitalize()} {item.id} creado por usuario {contexto.usuario_id}")
    return {"message": "Servicio/producto creado", "id": item.id}
