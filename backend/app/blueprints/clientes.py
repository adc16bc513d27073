import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session, select

from backend.database import get_db
from backend.errores import ErrorAPI
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.guardias import validar_eliminacion_cliente
from backend.gestion.validaciones_catalogo import validar_cliente
from backend.modelos import Cliente, Sucursal
from backend.security import obtener_contexto, requiere_permiso
from backend.utils.formato import parsear_entero

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clientes", tags=["Clientes"])


@router.get("")
def listar_clientes(db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(obtener_contexto)):
    return db.exec(select(Cliente).order_by(Cliente.nombre)).all()


@router.post("", status_code=201)
def crear_cliente(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("crear_cliente")),
):
    limpio = validar_cliente(db, data)
    sucursal_id = parsear_entero(data.get("sucursal_id"))
    if sucursal_id is not None and db.get(Sucursal, sucursal_id) is None:
        raise ErrorAPI(404, "Sucursal no encontrada")
    cliente = Cliente(**limpio, sucursal_id=sucursal_id)
    db.add(cliente)
    db.commit()
    db.refresh(cliente)
    logger.info(f"Cliente {cliente.id} creado por usuario {contexto.usuario_id}")
    return cliente


@router.delete("/{cliente_id}")
def eliminar_cliente(
    cliente_id: int,
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("eliminar_cliente")),
):
    validar_eliminacion_cliente(db, cliente_id)
    cliente = db.get(Cliente, cliente_id)
    if not cliente:
        raise ErrorAPI(404, "Cliente no encontrado")
    db.delete(cliente)
    db.commit()
    logger.info(f"Cliente {cliente_id} eliminado por usuario {contexto.usuario_id}")
    return {"message": "Cliente eliminado correctamente"}
