import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy import func
from sqlmodel import Session, select

from backend.database import get_db
from backend.errores import ErrorAPI
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.validaciones_catalogo import existe_banco, validar_banco
from backend.modelos import Banco, SolicitudPago
from backend.security import obtener_contexto, requiere_permiso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bancos", tags=["Bancos"])


@router.get("")
def listar_bancos(
    tipo_identificador: Optional[str] = None,
    estado: Optional[str] = None,
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
):
    stmt = select(Banco)
    if tipo_identificador:
        stmt = stmt.where(Banco.tipo_identificador == tipo_identificador)
    if estado:
        stmt = stmt.where(Banco.estado == estado)
    return {"bancos": db.exec(stmt.order_by(Banco.id.desc())).all()}


@router.get("/{banco_id}")
def obtener_banco(banco_id: int, db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(obtener_contexto)):
    banco = db.get(Banco, banco_id)
    if not banco:
        raise ErrorAPI(404, "Banco no encontrado")
    return banco


@router.post("", status_code=201)
def crear_banco(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("crear_banco")),
):
    limpio = validar_banco(data)
    if existe_banco(db, limpio):
        raise ErrorAPI(409, "Banco ya registrado")
    banco = Banco(**limpio)
    db.add(banco)
    db.commit()
    db.refresh(banco)
    logger.info(f"Banco {banco.id} creado por usuario {contexto.usuario_id}")
    return {"message": "Banco creado correctamente", "id": banco.id, **limpio}


@router.put("/{banco_id}")
def actualizar_banco(
    banco_id: int,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("editar_banco")),
):
    banco = db.get(Banco, banco_id)
    if not banco:
        raise ErrorAPI(404, "Banco no encontrado")
    limpio = validar_banco(data)
    if existe_banco(db, limpio, excluir_id=banco_id):
        raise ErrorAPI(409, "Banco ya registrado")
    for campo, valor in limpio.items():
        setattr(banco, campo, valor)
    banco.actualizado_en = datetime.now(timezone.utc)
    db.add(banco)
    db.commit()
    return {"message": "Banco actualizado correctamente", "id": banco_id}


@router.delete("/{banco_id}")
def eliminar_banco(
    banco_id: int,
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("eliminar_banco")),
):
    banco = db.get(Banco, banco_id)
    if not banco:
        raise ErrorAPI(404, "Banco no encontrado")
    if banco.estado == "activo":
        raise ErrorAPI(400, "No se puede eliminar un banco activo. Primero inactívelo.")
    en_uso = db.exec(
        select(func.count()).select_from(SolicitudPago).where(SolicitudPago.banco_id == banco_id)
    ).one()
    if en_uso > 0:
        raise ErrorAPI(400, "No se puede eliminar: el banco tiene solicitudes de pago asociadas.")
    db.delete(banco)
    db.commit()
    logger.info(f"Banco {banco_id} eliminado por usuario {contexto.usuario_id}")
    return {"message": "Banco eliminado correctamente"}
