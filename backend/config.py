import os
import logging
from dotenv import load_dotenv, find_dotenv
from pathlib import Path

logger = logging.getLogger(__name__)

# --- Carga de .env ---
# 1) Si el usuario exportó DOTENV_PATH lo usamos
dotenv_path = os.getenv('DOTENV_PATH')
if dotenv_path and Path(dotenv_path).exists():
    load_dotenv(dotenv_path=dotenv_path)
    logger.debug(f"Cargando .env desde DOTENV_PATH: '{dotenv_path}'")
else:
    # 2) Intentar localizar automáticamente con find_dotenv()
    found = find_dotenv()
    if found:
        load_dotenv(found)
        dotenv_path = found
        logger.debug(f"find_dotenv() encontró: '{dotenv_path}'")
    else:
        # 3) .env relativo al repo (un nivel arriba de backend/)
        candidate = Path(__file__).resolve().parents[1] / '.env'
        if candidate.exists():
            load_dotenv(dotenv_path=str(candidate))
            dotenv_path = str(candidate)
        else:
            dotenv_path = None
            logger.debug("No se encontró archivo .env; se usan variables del entorno.")
# --- Fin Carga .env ---


def _get(nombre: str, default: str | None = None) -> str | None:
    v = os.getenv(nombre)
    if isinstance(v, str):
        v = v.strip()
    return v if v else default


def _parse_int(v: str | None, default: int) -> int:
    try:
        return int(v) if v is not None else default
    except ValueError:
        logger.warning(f"Valor entero inválido '{v}', se usa {default}")
        return default


CONFIG_DIR = Path(__file__).resolve().parent
REPO_DIR = CONFIG_DIR.parent

# --- SEGURIDAD ---
SECRET_KEY = _get('SECRET_KEY', 'cambia-esta-clave-en-produccion')
ALGORITHM = "HS256"
# Sesión de 8 horas
ACCESS_TOKEN_EXPIRE_MINUTES = _parse_int(_get('ACCESS_TOKEN_EXPIRE_MINUTES'), 8 * 60)
ROL_SUPERADMIN_ID = _parse_int(_get('ROL_SUPERADMIN_ID'), 1)
ROL_SUPERVISOR_ID = _parse_int(_get('ROL_SUPERVISOR_ID'), 2)

# --- Base de datos ---
DB_HOST = _get("DB_HOST")
DB_USER = _get("DB_USER")
DB_PASSWORD = _get("DB_PASSWORD")
DB_NAME = _get("DB_NAME")
DB_PORT = _get("DB_PORT", "3306")

DATABASE_URL = _get("DATABASE_URL", "")
if not DATABASE_URL:
    if DB_HOST and DB_USER and DB_NAME:
        # Usar mysql+pymysql como driver; sin password la URL no lleva ":None@"
        pwd_part = f":{DB_PASSWORD}" if DB_PASSWORD else ""
        DATABASE_URL = f"mysql+pymysql://{DB_USER}{pwd_part}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    elif _get("SQLITE_DB_PATH"):
        DATABASE_URL = f"sqlite:///{_get('SQLITE_DB_PATH')}"
    else:
        DATABASE_URL = f"sqlite:///{REPO_DIR / 'gastos.db'}"

# --- Archivos ---
UPLOAD_DIR = Path(_get('UPLOAD_DIR', str(REPO_DIR / 'uploads')))
MAX_UPLOAD_BYTES = _parse_int(_get('MAX_UPLOAD_BYTES'), 5 * 1024 * 1024)
GASTO_DOCUMENTO_MAX_BYTES = _parse_int(_get('GASTO_DOCUMENTO_MAX_BYTES'), 2 * 1024 * 1024)
EXTENSIONES_SUBIDA = ("pdf", "png", "jpg", "jpeg")
EXTENSIONES_DOCUMENTO_GASTO = ("pdf", "png", "jpg", "jpeg", "webp")

# --- Dominio ---
TIPO_GASTO_OPERATIVO_ID = _parse_int(_get('TIPO_GASTO_OPERATIVO_ID'), 1)

# --- Servidor ---
FRONT_URL = _get('FRONT_URL', 'http://localhost:5173')
API_PREFIX = _get('API_PREFIX', '') or ''
LOG_LEVEL = (_get('LOG_LEVEL', 'INFO') or 'INFO').upper()
