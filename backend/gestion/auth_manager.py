from sqlalchemy import or_
from sqlmodel import Session, select
from backend.modelos import Usuario
# Importamos la función de seguridad para verificar contraseñas
from backend.security import verificar_password


def autenticar_usuario(db: Session, username: str, password: str) -> Usuario | None:
    """
    Busca un usuario por nombre de usuario o email, verifica su contraseña y su estado.
    Devuelve el objeto Usuario completo si todo es correcto, o None si algo falla.
    """
    statement = select(Usuario).where(or_(Usuario.nombre_usuario == username, Usuario.email == username))
    usuario = db.exec(statement).first()

    if not usuario or not verificar_password(password, usuario.password_hash):
        return None

    # Usuario inactivo o sin rol no puede iniciar sesión
    if usuario.estado != "activo" or not usuario.rol_id:
        return None

    return usuario
