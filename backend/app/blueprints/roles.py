from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session, select

from backend.database import get_db
from backend.errores import ErrorAPI
from backend.gestion.contexto import ContextoSolicitud
from backend.modelos import Permiso, Rol, RolPermiso
from backend.security import obtener_contexto, requiere_permiso

router = APIRouter(prefix="/roles", tags=["Roles y permisos"])


@router.get("")
def listar_roles(db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(obtener_contexto)):
    return db.exec(select(Rol).order_by(Rol.id)).all()


@router.post("", status_code=201)
def crear_rol(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("gestionar_roles")),
):
    nombre = data.get("nombre")
    if not isinstance(nombre, str) or not nombre.strip():
        raise ErrorAPI(400, "El nombre del rol es obligatorio")
    if db.exec(select(Rol).where(Rol.nombre == nombre.strip())).first():
        raise ErrorAPI(400, "Ya existe un rol con ese nombre")
    rol = Rol(nombre=nombre.strip(), descripcion=data.get("descripcion"))
    db.add(rol)
    db.commit()
    db.refresh(rol)
    return {"message": "Rol creado", "id": rol.id}


@router.get("/{rol_id}/permisos")
def listar_permisos_rol(rol_id: int, db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(obtener_contexto)):
    if db.get(Rol, rol_id) is None:
        raise ErrorAPI(404, "Rol no encontrado")
    stmt = (
        select(Permiso)
        .join(RolPermiso, RolPermiso.permiso_id == Permiso.id)
        .where(RolPermiso.rol_id == rol_id)
        .order_by(Permiso.nombre)
    )
    return db.exec(stmt).all()


@router.put("/{rol_id}/permisos")
def asignar_permisos_rol(
    rol_id: int,
    permisos: List[int] = Body(..., embed=True),
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("gestionar_roles")),
):
    if db.get(Rol, rol_id) is None:
        raise ErrorAPI(404, "Rol no encontrado")
    for actual in db.exec(select(RolPermiso).where(RolPermiso.rol_id == rol_id)).all():
        db.delete(actual)
    db.flush()
    for permiso_id in set(permisos):
        if db.get(Permiso, permiso_id) is None:
            db.rollback()
            raise ErrorAPI(404, f"Permiso {permiso_id} no encontrado")
        db.add(RolPermiso(rol_id=rol_id, permiso_id=permiso_id))
    db.commit()
    return {"message": "Permisos actualizados"}
