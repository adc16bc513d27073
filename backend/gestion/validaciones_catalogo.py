"""Validadores de catálogos: proveedores, clientes, servicios/productos, sucursales y bancos."""
import logging
import re
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import and_, or_
from sqlmodel import Session, select

from backend.errores import ErrorAPI, ErrorValidacion
from backend.gestion.validaciones import Resultado
from backend.modelos import Banco, Cliente, Proveedor, Sucursal
from backend.utils.formato import parsear_entero, parsear_monto

logger = logging.getLogger(__name__)

RE_EMAIL_PROVEEDOR = re.compile(r"^[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,6}$")
RE_TELEFONO_PROVEEDOR = re.compile(r"^[0-9]{10}$")
RE_RIF = re.compile(r"^J-\d{9}$")

RE_NOMBRE_CLIENTE = re.compile(r"^[a-zA-ZÁÉÍÓÚÜÑáéíóúüñ\s]+$")
RE_EMAIL_CLIENTE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
RE_TELEFONO_CLIENTE = re.compile(r"^[0-9]{7,15}$")
RE_IDENTIFICACION = re.compile(r"^[VE][0-9]{5,10}$")

RE_CODIGO_SUCURSAL = re.compile(r"^[A-Z0-9]{2,10}$")
RE_NOMBRE_SUCURSAL = re.compile(r"^[a-zA-ZáéíóúÁÉÍÓÚñÑüÜ\s\-0-9]+$")
RE_TELEFONO_SUCURSAL = re.compile(r"^\+?[0-9\s-]{7,15}$")

RE_NOMBRE_BANCO = re.compile(r"^[A-Za-zÁÉÍÓÚáéíóúÜüÑñ\s]+$")
RE_EMAIL_BANCO = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
RE_CUENTA_BANCO = re.compile(r"^[0-9]+$")
MONEDAS_BANCO = ("VES", "USD")
TIPOS_IDENTIFICADOR_BANCO = ("nro_cuenta", "email")

ESTADOS_CATALOGO = ("activo", "inactivo")
IVAS_VALIDOS = (0, 8, 16)
PRECIO_MAXIMO = Decimal("999999.99")


def _texto(datos: Mapping, campo: str) -> str:
    valor = datos.get(campo)
    return valor.strip() if isinstance(valor, str) else ""


# --- Proveedores ---

def validar_proveedor(datos: Mapping) -> Dict[str, str]:
    campos = ("nombre", "email", "telefono", "direccion", "rif", "estado")
    limpio = {c: _texto(datos, c) for c in campos}
    if not all(limpio.values()):
        raise ErrorAPI(400, "Todos los campos son obligatorios")
    if not RE_EMAIL_PROVEEDOR.match(limpio["email"]):
        raise ErrorAPI(400, "Formato de email inválido")
    if not RE_TELEFONO_PROVEEDOR.match(limpio["telefono"]):
        raise ErrorAPI(400, "El teléfono debe tener 10 dígitos numéricos")
    if not RE_RIF.match(limpio["rif"]):
        raise ErrorAPI(400, "El RIF debe tener formato J-XXXXXXXXX")
    if limpio["estado"] not in ESTADOS_CATALOGO:
        raise ErrorAPI(400, "Estado inválido. Debe ser 'activo' o 'inactivo'")
    return limpio


def buscar_duplicados_proveedor(
    db: Session,
    nombre: Optional[str] = None,
    email: Optional[str] = None,
    telefono: Optional[str] = None,
    excluir_id: Optional[int] = None,
) -> Dict[str, bool]:
    """Indica qué campos ya están registrados en otro proveedor."""
    conds = []
    if nombre:
        conds.append(Proveedor.nombre == nombre)
    if email:
        conds.append(Proveedor.email == email)
    if telefono:
        conds.append(Proveedor.telefono == telefono)
    encontrados = {"nombre": False, "email": False, "telefono": False}
    if not conds:
        return encontrados
    stmt = select(Proveedor).where(or_(*conds))
    if excluir_id is not None:
        stmt = stmt.where(Proveedor.id != excluir_id)
    for p in db.exec(stmt).all():
        encontrados["nombre"] |= bool(nombre) and p.nombre == nombre
        encontrados["email"] |= bool(email) and p.email == email
        encontrados["telefono"] |= bool(telefono) and p.telefono == telefono
    return encontrados


# --- Clientes ---

def validar_cliente(db: Session, datos: Mapping, id_en_ruta: Optional[int] = None) -> Dict[str, str]:
    limpio = {c: _texto(datos, c) for c in ("nombre", "email", "telefono", "direccion", "identificacion")}
    r = Resultado()
    if not limpio["nombre"]:
        r.error("El nombre es obligatorio.")
    if not limpio["email"]:
        r.error("El email es obligatorio.")
    if not limpio["telefono"]:
        r.error("El teléfono es obligatorio.")
    if not limpio["direccion"]:
        r.error("La dirección es obligatoria.")
    if not limpio["identificacion"]:
        r.error("La identificación es obligatoria.")

    if limpio["nombre"] and not RE_NOMBRE_CLIENTE.match(limpio["nombre"]):
        r.error("El nombre solo puede contener letras y espacios.")
    if limpio["email"] and not RE_EMAIL_CLIENTE.match(limpio["email"]):
        r.error("Formato de email inválido.")
    if limpio["telefono"] and not RE_TELEFONO_CLIENTE.match(limpio["telefono"]):
        r.error("Teléfono inválido (7-15 dígitos).")
    if limpio["identificacion"] and not RE_IDENTIFICACION.match(limpio["identificacion"]):
        r.error("Identificación: V/E + 5-10 dígitos.")
    r.exigir(logger, "cliente")

    stmt = select(Cliente).where(
        or_(Cliente.identificacion == limpio["identificacion"], Cliente.email == limpio["email"])
    )
    if id_en_ruta is not None:
        stmt = stmt.where(Cliente.id != id_en_ruta)
    if db.exec(stmt).first():
        raise ErrorValidacion(
            ["Email o identificación ya registrados."],
            mensaje="Conflicto de datos únicos",
            status_code=409,
        )
    return limpio


# --- Servicios y productos ---

def validar_servicio_producto(datos: Mapping) -> Dict[str, Any]:
    nombre = _texto(datos, "nombre")
    descripcion = _texto(datos, "descripcion")
    tipo = _texto(datos, "tipo")
    estado = _texto(datos, "estado") or "activo"
    r = Resultado()

    if not nombre or not descripcion or datos.get("precio") is None or not tipo:
        r.error("Todos los campos básicos son obligatorios.")
    if nombre and not 3 <= len(nombre) <= 100:
        r.error("El nombre debe tener entre 3 y 100 caracteres.")
    if descripcion and not 5 <= len(descripcion) <= 255:
        r.error("La descripción debe tener entre 5 y 255 caracteres.")

    precio = parsear_monto(datos.get("precio"))
    if precio is None or precio <= 0:
        r.error("El precio debe ser un número positivo.")
    elif precio > PRECIO_MAXIMO:
        r.error("El precio no puede exceder 999.999,99.")

    if tipo not in ("servicio", "producto"):
        r.error("El tipo debe ser 'servicio' o 'producto'.")

    iva = parsear_monto(datos.get("porcentaje_iva"))
    if iva is None:
        r.error("El porcentaje de IVA es obligatorio y debe ser numérico.")
    elif iva not in [Decimal(v) for v in IVAS_VALIDOS]:
        r.error("El porcentaje de IVA debe ser 0, 8 o 16.")

    if estado not in ESTADOS_CATALOGO:
        r.error("Estado inválido (activo o inactivo).")

    cantidad_actual = parsear_entero(datos.get("cantidad_actual"))
    cantidad_anterior = parsear_entero(datos.get("cantidad_anterior"))
    if tipo == "producto":
        if cantidad_actual is None or cantidad_anterior is None or cantidad_actual < 0 or cantidad_anterior < 0:
            r.error("Los productos deben tener cantidades válidas (actual y anterior).")

    r.exigir(logger, "servicio/producto")
    return {
        "nombre": nombre,
        "descripcion": descripcion,
        "precio": precio,
        "tipo": tipo,
        "porcentaje_iva": int(iva),
        "cantidad_actual": cantidad_actual or 0,
        "cantidad_anterior": cantidad_anterior or 0,
        "estado": estado,
    }


# --- Sucursales ---

CAMPOS_OPCIONALES_SUCURSAL = ("ciudad", "estado_provincia", "pais", "telefono", "email", "responsable")


def validar_sucursal(datos: Mapping) -> Dict[str, Optional[str]]:
    """Valida y recorta los campos de una sucursal.

    Faltantes → 400 con ``detalles`` por campo. Formatos inválidos → 400 con
    un ``errores`` por campo. Los opcionales vacíos quedan en ``None``.
    """
    codigo = _texto(datos, "codigo")
    nombre = _texto(datos, "nombre")
    direccion = _texto(datos, "direccion")
    if not codigo or not nombre or not direccion:
        raise ErrorAPI(400, "Código, nombre y dirección son campos obligatorios", extra={"detalles": {
            "codigo": None if codigo else "Falta el código",
            "nombre": None if nombre else "Falta el nombre",
            "direccion": None if direccion else "Falta la dirección",
        }})

    limpio: Dict[str, Optional[str]] = {"codigo": codigo, "nombre": nombre, "direccion": direccion}
    for campo in CAMPOS_OPCIONALES_SUCURSAL:
        limpio[campo] = _texto(datos, campo) or None

    errores = {}
    if not RE_CODIGO_SUCURSAL.match(codigo):
        errores["codigo"] = "El código debe contener solo letras mayúsculas y números (2-10 caracteres)"
    if not RE_NOMBRE_SUCURSAL.match(nombre):
        errores["nombre"] = "El nombre solo puede contener letras, números, espacios y guiones"
    if limpio["telefono"] and not RE_TELEFONO_SUCURSAL.match(limpio["telefono"]):
        errores["telefono"] = "Formato de teléfono inválido (ej: +58 212 5551234)"
    if limpio["email"] and not RE_EMAIL_CLIENTE.match(limpio["email"]):
        errores["email"] = "Formato de email inválido"
    if errores:
        logger.warning(f"Validación de sucursal fallida: {errores}")
        raise ErrorAPI(400, "Errores de validación", extra={"errores": errores})
    return limpio


def existe_codigo_sucursal(db: Session, codigo: str, excluir_id: Optional[int] = None) -> bool:
    stmt = select(Sucursal).where(Sucursal.codigo == codigo)
    if excluir_id is not None:
        stmt = stmt.where(Sucursal.id != excluir_id)
    return db.exec(stmt).first() is not None


# --- Bancos ---

def validar_banco(datos: Mapping) -> Dict[str, str]:
    limpio = {c: _texto(datos, c) for c in ("nombre", "moneda", "tipo_identificador", "identificador", "estado")}
    if not all(limpio[c] for c in ("nombre", "moneda", "tipo_identificador", "identificador")):
        raise ErrorAPI(400, "Los campos nombre, moneda, tipo_identificador e identificador son obligatorios.")
    if not RE_NOMBRE_BANCO.match(limpio["nombre"]):
        raise ErrorAPI(400, "El nombre sólo puede contener letras y espacios.")
    if limpio["moneda"] not in MONEDAS_BANCO:
        raise ErrorAPI(400, "La moneda debe ser 'VES' o 'USD'.")
    if limpio["tipo_identificador"] not in TIPOS_IDENTIFICADOR_BANCO:
        raise ErrorAPI(400, "El tipo_identificador debe ser 'nro_cuenta' o 'email'.")
    if limpio["tipo_identificador"] == "email":
        if not RE_EMAIL_BANCO.match(limpio["identificador"]):
            raise ErrorAPI(400, "El identificador debe ser un email válido.")
    elif not RE_CUENTA_BANCO.match(limpio["identificador"]):
        raise ErrorAPI(400, "El identificador debe contener sólo dígitos.")
    if not limpio["estado"]:
        limpio["estado"] = "activo"
    elif limpio["estado"] not in ESTADOS_CATALOGO:
        raise ErrorAPI(400, "El estado debe ser 'activo' o 'inactivo'.")
    return limpio


def existe_banco(db: Session, limpio: Mapping, excluir_id: Optional[int] = None) -> bool:
    """Mismo nombre, o misma cuenta/email con el mismo tipo de identificador."""
    stmt = select(Banco).where(or_(
        Banco.nombre == limpio["nombre"],
        and_(Banco.tipo_identificador == limpio["tipo_identificador"], Banco.identificador == limpio["identificador"]),
    ))
    if excluir_id is not None:
        stmt = stmt.where(Banco.id != excluir_id)
    return db.exec(stmt).first() is not None
