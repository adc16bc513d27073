import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy import func
from sqlmodel import Session, select

from backend.database import get_db
from backend.errores import ErrorAPI
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.validaciones_catalogo import buscar_duplicados_proveedor, validar_proveedor
from backend.modelos import Proveedor
from backend.security import obtener_contexto, requiere_permiso

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proveedores", tags=["Proveedores"])


@router.get("")
def listar_proveedores(
    page: int = Query(1),
    limit: int = Query(25),
    buscar: str = Query(""),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
):
    page = max(1, page)
    limit = min(max(1, limit), 100)
    termino = buscar.strip()

    stmt = select(Proveedor)
    total_stmt = select(func.count()).select_from(Proveedor)
    if termino:
        stmt = stmt.where(Proveedor.nombre.like(f"{termino}%"))
        total_stmt = total_stmt.where(Proveedor.nombre.like(f"{termino}%"))

    total = db.exec(total_stmt).one()
    proveedores = db.exec(stmt.order_by(Proveedor.nombre).offset((page - 1) * limit).limit(limit)).all()
    return {"proveedores": proveedores, "total": total, "page": page, "limit": limit}


@router.get("/check")
def verificar_proveedor_existente(
    nombre: Optional[str] = None,
    email: Optional[str] = None,
    telefono: Optional[str] = None,
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(obtener_contexto),
):
    nombre = (nombre or "").strip()
    email = (email or "").strip()
    telefono = (telefono or "").strip()
    if not nombre and not email and not telefono:
        raise ErrorAPI(
            400,
            "Debes proporcionar al menos nombre, email o teléfono para verificar duplicados",
            clave="error",
        )
    duplicados = buscar_duplicados_proveedor(db, nombre, email, telefono)
    return {"exists": any(duplicados.values()), "duplicateFields": duplicados}


@router.post("", status_code=201)
def crear_proveedor(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("crear_proveedor")),
):
    limpio = validar_proveedor(data)
    duplicados = buscar_duplicados_proveedor(db, limpio["nombre"], limpio["email"], limpio["telefono"])
    if any(duplicados.values()):
        campos = ", ".join(k for k, v in duplicados.items() if v)
        raise ErrorAPI(400, f"Ya existe un proveedor con el mismo {campos}", extra={"duplicateFields": duplicados})

    proveedor = Proveedor(**limpio)
    db.add(proveedor)
    db.commit()
    db.refresh(proveedor)
    logger.info(f"Proveedor {proveedor.id} creado por usuario {contexto.usuario_id}")
    return proveedor
