import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text

from backend import config
from backend.database import engine, create_db_and_tables
from backend.errores import ErrorAPI
from backend.app.blueprints import (
    almacenamiento, archivos, auth_router, bancos, clientes, proveedores, registros, roles,
    servicios_productos, solicitudes_pago, sucursales, usuarios,
)

logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO), format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
logger = logging.getLogger(__name__)

app = FastAPI(
    title="API Gastos y Cotizaciones",
    description="API para registrar gastos y cotizaciones con validación, cuotas de almacenamiento y auditoría de archivos",
    version="1.0.0"
)

# --- Configuración de CORS ---
origins = [
    "http://localhost:5173",
    config.FRONT_URL,
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(dict.fromkeys(origins)),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

API_PREFIX = config.API_PREFIX


def _mount(router):
    # Si se define un prefijo global (ej /api) se antepone al del router
    if API_PREFIX and not router.prefix.startswith(API_PREFIX):
        app.include_router(router, prefix=API_PREFIX)
    else:
        app.include_router(router)


_mount(auth_router.router)
_mount(registros.router)
_mount(proveedores.router)
_mount(clientes.router)
_mount(servicios_productos.router)
_mount(sucursales.router)
_mount(bancos.router)
_mount(roles.router)
_mount(usuarios.router)
_mount(archivos.router)
_mount(almacenamiento.router)
_mount(solicitudes_pago.router)


# --- Errores ---
@app.exception_handler(ErrorAPI)
async def manejar_error_api(request: Request, exc: ErrorAPI):
    return JSONResponse(status_code=exc.status_code, content=exc.cuerpo())


@app.exception_handler(StarletteHTTPException)
async def manejar_http(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(status_code=404, content={"message": "Ruta API no encontrada"})
    return await http_exception_handler(request, exc)


@app.exception_handler(Exception)
async def manejar_error_inesperado(request: Request, exc: Exception):
    logger.error(f"Error no controlado en {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Error interno del servidor"})


# --- Log de peticiones ---
@app.middleware("http")
async def registrar_peticion(request: Request, call_next):
    inicio = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - inicio) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({ms:.1f} ms)")
    return response


# --- Verificación Inicial ---
@app.on_event("startup")
def startup_event():
    """Crea las tablas que falten al iniciar la API."""
    logger.info("--- Evento de Inicio de la API ---")
    create_db_and_tables()


def _db_ok() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Healthcheck: base de datos no disponible: {e}")
        return False


@app.get("/healthz", tags=["infra"], summary="Health check básico")
def healthz():
    """Devuelve el estado básico del servicio para monitoreo / load balancers."""
    return {
        "status": "ok",
        "version": app.version,
        "database": _db_ok(),
    }
