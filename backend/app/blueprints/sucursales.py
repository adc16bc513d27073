import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy import func
from sqlmodel import Session, select

from backend.database import get_db
from backend.errores import ErrorAPI
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.validaciones_catalogo import existe_codigo_sucursal, validar_sucursal
from backend.modelos import Cliente, Cotizacion, Gasto, Sucursal
from backend.security import obtener_contexto, requiere_permiso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sucursales", tags=["Sucursales"])


@router.get("")
def listar_sucursales(db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(obtener_contexto)):
    return db.exec(select(Sucursal).order_by(Sucursal.nombre)).all()


@router.get("/dropdown/list")
def listar_sucursales_dropdown(db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(obtener_contexto)):
    sucursales = db.exec(select(Sucursal).order_by(Sucursal.nombre)).all()
    return [{"id": s.id, "nombre": s.nombre} for s in sucursales]


@router.post("", status_code=201)
def crear_sucursal(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("crear_sucursal")),
):
    limpio = validar_sucursal(data)
    if existe_codigo_sucursal(db, limpio["codigo"]):
        raise ErrorAPI(409, "Ya existe una sucursal con ese código")
    sucursal = Sucursal(**limpio)
    db.add(sucursal)
    db.commit()
    db.refresh(sucursal)
    logger.info(f"Sucursal {sucursal.id} ({sucursal.codigo}) creada por usuario {contexto.usuario_id}")
    return sucursal


@router.patch("/{sucursal_id}")
def actualizar_sucursal(
    sucursal_id: int,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("editar_sucursal")),
):
    """Actualización parcial: los campos ausentes conservan su valor."""
    sucursal = db.get(Sucursal, sucursal_id)
    if not sucursal:
        raise ErrorAPI(404, "Sucursal no encontrada")
    actual = sucursal.model_dump(exclude={"id"})
    actual.update({k: v for k, v in data.items() if k in actual})
    limpio = validar_sucursal(actual)
    if existe_codigo_sucursal(db, limpio["codigo"], excluir_id=sucursal_id):
        raise ErrorAPI(409, "Ya existe una sucursal con ese código")
    for campo, valor in limpio.items():
        setattr(sucursal, campo, valor)
    db.add(sucursal)
    db.commit()
    db.refresh(sucursal)
    return sucursal


@router.delete("/{sucursal_id}")
def eliminar_sucursal(
    sucursal_id: int,
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("eliminar_sucursal")),
):
    sucursal = db.get(Sucursal, sucursal_id)
    if not sucursal:
        raise ErrorAPI(404, "Sucursal no encontrada")
    for modelo in (Cliente, Gasto, Cotizacion):
        usados = db.exec(select(func.count()).select_from(modelo).where(modelo.sucursal_id == sucursal_id)).one()
        if usados > 0:
            raise ErrorAPI(400, "No se puede eliminar: la sucursal tiene registros asociados.")
    db.delete(sucursal)
    db.commit()
    logger.info(f"Sucursal {sucursal_id} eliminada por usuario {contexto.usuario_id}")
    return {"message": "Sucursal eliminada correctamente"}
