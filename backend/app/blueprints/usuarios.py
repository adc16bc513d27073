from fastapi import APIRouter, Depends, HTTPException
from typing import Optional
from pydantic import BaseModel, Field
from sqlalchemy import or_
from sqlmodel import Session, select

from backend.database import get_db
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.guardias import validar_password_distinta
from backend.modelos import Usuario, Rol
from backend.security import get_password_hash, requiere_permiso

router = APIRouter(prefix="/usuarios", tags=["Usuarios"])


class UsuarioCreate(BaseModel):
    username: str = Field(..., description="Nombre de usuario para iniciar sesión")
    nombre: str
    email: Optional[str] = None
    password: str
    rol_id: int
    cuota_mb: Optional[int] = Field(None, description="Cuota de almacenamiento en MB; vacío = sin límite")


class UsuarioUpdate(BaseModel):
    nombre: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    rol_id: Optional[int] = None
    estado: Optional[str] = None
    cuota_mb: Optional[int] = None


def _serializar(u: Usuario, roles_map: dict) -> dict:
    return {
        "id": u.id,
        "nombre_usuario": u.nombre_usuario,
        "nombre": u.nombre,
        "email": u.email,
        "estado": u.estado,
        "rol_id": u.rol_id,
        "rol_nombre": roles_map.get(u.rol_id),
        "cuota_mb": u.cuota_mb,
        "uso_storage_bytes": u.uso_storage_bytes,
        "creado_en": u.creado_en,
    }


@router.get("")
def listar_usuarios(db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(requiere_permiso("ver_usuarios"))):
    rows = db.exec(select(Usuario).order_by(Usuario.id)).all()
    roles_map = {r.id: r.nombre for r in db.exec(select(Rol)).all()}
    return [_serializar(u, roles_map) for u in rows]


@router.post("", status_code=201)
def crear_usuario(data: UsuarioCreate, db: Session = Depends(get_db), contexto: ContextoSolicitud = Depends(requiere_permiso("crear_usuario"))):
    username = data.username.strip()
    condiciones = [Usuario.nombre_usuario == username]
    if data.email:
        condiciones.append(Usuario.email == data.email.strip())
    if db.exec(select(Usuario).where(or_(*condiciones))).first():
        raise HTTPException(status_code=400, detail="Usuario o email ya existe")
    rol = db.get(Rol, data.rol_id)
    if not rol:
        raise HTTPException(status_code=404, detail="Rol no encontrado")
    nuevo = Usuario(
        nombre_usuario=username,
        nombre=data.nombre.strip(),
        email=data.email.strip() if data.email else None,
        password_hash=get_password_hash(data.password),
        rol_id=rol.id,
        cuota_mb=data.cuota_mb,
    )
    db.add(nuevo)
    db.commit()
    db.refresh(nuevo)
    return {"id": nuevo.id, "nombre_usuario": nuevo.nombre_usuario, "rol": rol.nombre}


@router.put("/{usuario_id}")
def actualizar_usuario(
    usuario_id: int,
    data: UsuarioUpdate,
    db: Session = Depends(get_db),
    contexto: ContextoSolicitud = Depends(requiere_permiso("editar_usuario")),
):
    validar_password_distinta(db, usuario_id, data.password)
    u = db.get(Usuario, usuario_id)
    if not u:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
    if data.password:
        u.password_hash = get_password_hash(data.password)
    if data.nombre:
        u.nombre = data.nombre.strip()
    if data.email:
        u.email = data.email.strip()
    if data.rol_id is not None:
        if not db.get(Rol, data.rol_id):
            raise HTTPException(status_code=404, detail="Rol no encontrado")
        u.rol_id = data.rol_id
    if data.estado is not None:
        if data.estado not in ("activo", "inactivo"):
            raise HTTPException(status_code=400, detail="Estado inválido (activo o inactivo)")
        u.estado = data.estado
    if "cuota_mb" in data.model_fields_set:
        u.cuota_mb = data.cuota_mb
    db.add(u)
    db.commit()
    return {"message": "Usuario actualizado correctamente"}
