from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session
from pydantic import BaseModel

from backend.database import get_db
from backend.gestion.auth_manager import autenticar_usuario
from backend.modelos import Usuario, Rol
from backend.security import (
    crear_access_token,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    obtener_usuario_actual,
)

router = APIRouter(prefix="/auth", tags=["Autenticación y Autorización"])


class UserMeResponse(BaseModel):
    id: int
    username: str
    nombre: str
    email: Optional[str] = None
    rol_id: int
    role: str
    estado: str
    cuota_mb: Optional[int] = None


@router.post("/token")
def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Autenticación contra la tabla usuarios (por nombre de usuario o email)."""
    usuario = autenticar_usuario(db, form_data.username.strip(), form_data.password)
    if not usuario:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciales inválidas")

    rol = db.get(Rol, usuario.rol_id)
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    token = crear_access_token({"sub": usuario.nombre_usuario, "rol_id": usuario.rol_id}, access_token_expires)
    return {
        "access_token": token,
        "token_type": "bearer",
        "user_info": {"id": usuario.id, "username": usuario.nombre_usuario, "role": rol.nombre if rol else "?"},
    }


@router.get("/me", response_model=UserMeResponse, summary="Información del usuario autenticado")
def obtener_usuario_me(user: Usuario = Depends(obtener_usuario_actual), db: Session = Depends(get_db)):
    rol = db.get(Rol, user.rol_id) if user.rol_id else None
    return UserMeResponse(
        id=user.id,
        username=user.nombre_usuario,
        nombre=user.nombre,
        email=user.email,
        rol_id=user.rol_id,
        role=rol.nombre if rol else "?",
        estado=user.estado,
        cuota_mb=user.cuota_mb,
    )
