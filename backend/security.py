"""Contraseñas (passlib/bcrypt), tokens JWT (python-jose) y dependencias de acceso."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from backend import config
from backend.database import get_db
from backend.gestion.contexto import ContextoSolicitud
from backend.modelos import Permiso, RolPermiso, Usuario

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{config.API_PREFIX}/auth/token")

ACCESS_TOKEN_EXPIRE_MINUTES = config.ACCESS_TOKEN_EXPIRE_MINUTES

CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Credenciales inválidas o token expirado",
    headers={"WWW-Authenticate": "Bearer"},
)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verificar_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def crear_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def obtener_usuario_actual(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Usuario:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        raise CREDENTIALS_EXCEPTION
    username = payload.get("sub")
    if not username:
        raise CREDENTIALS_EXCEPTION
    usuario = db.exec(select(Usuario).where(Usuario.nombre_usuario == username)).first()
    if not usuario or usuario.estado != "activo":
        raise CREDENTIALS_EXCEPTION
    return usuario


def obtener_contexto(request: Request, usuario: Usuario = Depends(obtener_usuario_actual)) -> ContextoSolicitud:
    """Arma el contexto explícito de la solicitud a partir del usuario autenticado."""
    return ContextoSolicitud(
        usuario_id=usuario.id,
        rol_id=usuario.rol_id,
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def tiene_permiso(db: Session, rol_id: Optional[int], nombre_permiso: str) -> bool:
    # SuperAdmin tiene todos los permisos
    if rol_id == config.ROL_SUPERADMIN_ID:
        return True
    if rol_id is None:
        return False
    stmt = (
        select(RolPermiso)
        .join(Permiso, Permiso.id == RolPermiso.permiso_id)
        .where(RolPermiso.rol_id == rol_id, Permiso.nombre == nombre_permiso)
    )
    return db.exec(stmt).first() is not None


def exigir_permiso(db: Session, contexto: ContextoSolicitud, nombre_permiso: str, detalle: str = "No tienes permiso para esta acción") -> None:
    if not tiene_permiso(db, contexto.rol_id, nombre_permiso):
        logger.warning(f"Permiso '{nombre_permiso}' denegado a usuario {contexto.usuario_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detalle)


def requiere_permiso(nombre_permiso: str):
    """Factoría de dependencias: exige un permiso concreto al rol del usuario."""
    def chequear(
        contexto: ContextoSolicitud = Depends(obtener_contexto),
        db: Session = Depends(get_db),
    ) -> ContextoSolicitud:
        exigir_permiso(db, contexto, nombre_permiso)
        return contexto

    return chequear
