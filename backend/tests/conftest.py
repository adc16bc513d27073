import os, sys, pathlib, tempfile
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

# Asegurar que el root del repo esté en sys.path para importar 'backend'
ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="gastos-test-")
os.environ.setdefault("API_PREFIX", "")
os.environ.setdefault("SECRET_KEY", "clave-de-pruebas")

from sqlmodel import SQLModel  # noqa: E402

from backend.main import app  # noqa: E402
from backend.database import SessionLocal, engine  # noqa: E402
from backend.gestion.contexto import ContextoSolicitud  # noqa: E402
from backend.gestion.semilla import sembrar_datos_base  # noqa: E402
from backend.modelos import Cliente, Proveedor, ServicioProducto, Usuario  # noqa: E402
from backend.security import crear_access_token, get_password_hash  # noqa: E402

PASSWORD_ADMIN = "Admin123!"
PASSWORD_EMPLEADO = "Empleado123!"


class SesionProhibida:
    """Falla ante cualquier acceso: sirve para comprobar que no se consulta la base."""

    def __getattr__(self, nombre):
        raise AssertionError(f"No se esperaba acceso a la base de datos ({nombre})")


@pytest.fixture()
def sesion_prohibida():
    return SesionProhibida()


@pytest.fixture(scope="session")
def hashes():
    # bcrypt es lento: se calcula una sola vez
    return {
        "admin": get_password_hash(PASSWORD_ADMIN),
        "empleado": get_password_hash(PASSWORD_EMPLEADO),
    }


@pytest.fixture(autouse=True)
def preparar_db(hashes):
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    with SessionLocal() as db:
        sembrar_datos_base(db)
        db.add(Usuario(id=1, nombre_usuario="admin", nombre="Ana Admin", email="admin@ejemplo.com",
                       password_hash=hashes["admin"], rol_id=1))
        db.add(Usuario(id=2, nombre_usuario="empleado", nombre="Pedro Pérez", email="pedro@ejemplo.com",
                       password_hash=hashes["empleado"], rol_id=3, cuota_mb=1))
        db.add(Cliente(id=7, nombre="Importadora Caribe", email="compras@caribe.com", telefono="04121234567",
                       direccion="Av. Bolívar 10", identificacion="V12345678", sucursal_id=1))
        db.add(Cliente(id=8, nombre="Cliente Sin Sucursal", email="sin@sucursal.com", telefono="04129876543",
                       direccion="Calle 5", identificacion="E1234567"))
        db.add(ServicioProducto(id=5, nombre="Agenciamiento aduanal", descripcion="Trámite de aduana",
                                precio=Decimal("50.00"), tipo="servicio", porcentaje_iva=16))
        db.add(ServicioProducto(id=6, nombre="Precinto", descripcion="Precinto de seguridad",
                                precio=Decimal("10.00"), tipo="producto", porcentaje_iva=16,
                                cantidad_actual=3, cantidad_anterior=3))
        db.add(Proveedor(id=1, nombre="Transportes Andinos", email="info@andinos.com", telefono="0212555123",
                         direccion="Zona Industrial", rif="J-123456789", estado="activo"))
        db.commit()
    yield


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


def _auth(username: str) -> dict:
    return {"Authorization": f"Bearer {crear_access_token({'sub': username})}"}


@pytest.fixture()
def auth_admin():
    return _auth("admin")


@pytest.fixture()
def auth_empleado():
    return _auth("empleado")


@pytest.fixture()
def ctx_admin():
    return ContextoSolicitud(usuario_id=1, rol_id=1, ip="127.0.0.1", user_agent="pytest")


@pytest.fixture()
def ctx_empleado():
    return ContextoSolicitud(usuario_id=2, rol_id=3, ip="127.0.0.1", user_agent="pytest")
