"""Cadena de validación de registros (gastos y cotizaciones).

Cada chequeo devuelve un ``Resultado`` con la lista de errores y los datos
normalizados; ``combinar`` los une en orden y ``Resultado.exigir`` corta la
petición con un 422 que lista todos los fallos juntos.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlmodel import Session, select

from backend import config
from backend.errores import ErrorAPI, ErrorValidacion
from backend.gestion.contexto import ContextoSolicitud
from backend.modelos import (
    Archivo, Cliente, Cotizacion, Gasto, Proveedor, ServicioProducto, Sucursal, TipoGasto, Usuario,
)
from backend.utils.almacenamiento import extension_de
from backend.utils.formato import parsear_entero, parsear_fecha, parsear_monto

logger = logging.getLogger(__name__)

TIPOS_REGISTRO = ("gasto", "cotizacion")
MONEDAS = ("USD", "VES")
ESTADOS_GASTO = ("pendiente", "solicitado", "aprobado", "pagado")
ESTADOS_COTIZACION = ("pendiente", "aprobada", "rechazada")
IVA_POR_DEFECTO_DETALLE = Decimal("16")

MENSAJE_GASTO_DUPLICADO = "Ya existe un gasto con el mismo proveedor, concepto, subtotal, fecha y sucursal"
MENSAJE_COTIZACION_DUPLICADA = "Ya existe una cotización para este cliente con la misma fecha y total"


@dataclass
class Resultado:
    errores: List[str] = field(default_factory=list)
    datos: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errores

    def error(self, mensaje: str) -> "Resultado":
        self.errores.append(mensaje)
        return self

    def exigir(self, log: logging.Logger = logger, etiqueta: str = "registro") -> Dict[str, Any]:
        if self.errores:
            log.warning(f"Validación de {etiqueta} fallida: {self.errores}")
            raise ErrorValidacion(self.errores)
        return self.datos


def combinar(*resultados: Resultado) -> Resultado:
    total = Resultado()
    for r in resultados:
        total.errores.extend(r.errores)
        total.datos.update(r.datos)
    return total


@dataclass
class ArchivoAdjunto:
    nombre_original: str
    contenido: bytes
    content_type: Optional[str] = None

    @property
    def tamanio(self) -> int:
        return len(self.contenido)

    @property
    def extension(self) -> str:
        return extension_de(self.nombre_original)


@dataclass
class RegistroNormalizado:
    tipo: str
    datos: Dict[str, Any]
    archivo: Optional[ArchivoAdjunto] = None


# ---------------------------------------------------------------------------
# Chequeos de campo
# ---------------------------------------------------------------------------

def _vacio(valor: Any) -> bool:
    return valor is None or (isinstance(valor, str) and not valor.strip())


def entero_requerido(datos: Mapping, nombre: str) -> Resultado:
    valor = parsear_entero(datos.get(nombre))
    if valor is None:
        return Resultado([f"{nombre} es requerido y debe ser numérico"])
    return Resultado(datos={nombre: valor})


def entero_opcional(datos: Mapping, nombre: str) -> Resultado:
    if _vacio(datos.get(nombre)):
        return Resultado(datos={nombre: None})
    valor = parsear_entero(datos.get(nombre))
    if valor is None:
        return Resultado([f"{nombre} debe ser numérico si se incluye"])
    return Resultado(datos={nombre: valor})


def monto_opcional(datos: Mapping, nombre: str) -> Resultado:
    if _vacio(datos.get(nombre)):
        return Resultado(datos={nombre: None})
    valor = parsear_monto(datos.get(nombre))
    if valor is None:
        return Resultado([f"{nombre} debe ser numérico si se incluye"])
    return Resultado(datos={nombre: valor})


def monto_positivo(datos: Mapping, nombre: str) -> Resultado:
    valor = parsear_monto(datos.get(nombre))
    if valor is None or valor <= 0:
        return Resultado([f"{nombre} es requerido y debe ser un número positivo"])
    return Resultado(datos={nombre: valor})


def texto_requerido(datos: Mapping, nombre: str) -> Resultado:
    valor = datos.get(nombre)
    if not isinstance(valor, str) or not valor.strip():
        return Resultado([f"{nombre} es requerido y debe ser texto"])
    return Resultado(datos={nombre: valor.strip()})


def fecha_no_futura(datos: Mapping, requerida: bool = True) -> Resultado:
    crudo = datos.get("fecha")
    if _vacio(crudo) and not requerida:
        return Resultado(datos={"fecha": date.today()})
    fecha = parsear_fecha(crudo)
    if fecha is None:
        return Resultado(["fecha inválida"])
    if fecha > date.today():
        return Resultado(["La fecha no puede ser futura"])
    return Resultado(datos={"fecha": fecha})


def creador(datos: Mapping, contexto: ContextoSolicitud) -> Resultado:
    crudo = datos.get("usuario_id")
    if _vacio(crudo):
        crudo = contexto.usuario_id
    valor = parsear_entero(crudo)
    if valor is None:
        return Resultado(["usuario_id es requerido y debe ser numérico"])
    return Resultado(datos={"usuario_id": valor})


def opcion(datos: Mapping, nombre: str, opciones: tuple, defecto: str, mensaje: str, mayusculas: bool = False) -> Resultado:
    valor = datos.get(nombre)
    if _vacio(valor):
        return Resultado(datos={nombre: defecto})
    valor = str(valor).strip()
    valor = valor.upper() if mayusculas else valor.lower()
    if valor not in opciones:
        return Resultado([mensaje])
    return Resultado(datos={nombre: valor})


def documento_gasto(archivo: Optional[ArchivoAdjunto]) -> Resultado:
    if archivo is None or not archivo.nombre_original:
        return Resultado(["El documento es obligatorio para gastos"])
    r = Resultado()
    if archivo.extension not in config.EXTENSIONES_DOCUMENTO_GASTO:
        permitidas = ", ".join(config.EXTENSIONES_DOCUMENTO_GASTO)
        r.error(f"Extensión de documento no permitida ({permitidas})")
    if archivo.tamanio > config.GASTO_DOCUMENTO_MAX_BYTES:
        limite_mb = config.GASTO_DOCUMENTO_MAX_BYTES // (1024 * 1024)
        r.error(f"El documento excede el tamaño máximo de {limite_mb}MB")
    return r


def _leer_detalle(crudo: Any) -> Optional[list]:
    if isinstance(crudo, str):
        try:
            crudo = json.loads(crudo)
        except ValueError:
            return None
    return crudo if isinstance(crudo, list) else None


def detalle_cotizacion(datos: Mapping) -> Resultado:
    items = _leer_detalle(datos.get("detalle"))
    if not items:
        return Resultado(["detalle debe ser una lista con al menos un ítem"])
    r = Resultado()
    normalizados = []
    for n, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            r.error(f"Ítem {n}: formato inválido")
            continue
        sp_id = parsear_entero(item.get("servicio_productos_id"))
        cantidad = parsear_entero(item.get("cantidad"))
        precio = parsear_monto(item.get("precio_unitario"))
        iva_crudo = item.get("porcentaje_iva")
        iva = IVA_POR_DEFECTO_DETALLE if _vacio(iva_crudo) else parsear_monto(iva_crudo)
        if sp_id is None:
            r.error(f"Ítem {n}: servicio_productos_id es requerido y debe ser numérico")
        if cantidad is None or cantidad <= 0:
            r.error(f"Ítem {n}: cantidad debe ser un entero positivo")
        if precio is None or precio < 0:
            r.error(f"Ítem {n}: precio_unitario debe ser un número no negativo")
        if iva is None or iva < 0:
            r.error(f"Ítem {n}: porcentaje_iva debe ser un número no negativo")
        normalizados.append({
            "servicio_productos_id": sp_id,
            "cantidad": cantidad,
            "precio_unitario": precio,
            "porcentaje_iva": iva,
        })
    r.datos["detalle"] = normalizados
    return r


# ---------------------------------------------------------------------------
# Chequeos contra la base de datos (una consulta por chequeo)
# ---------------------------------------------------------------------------

def existe(db: Session, modelo, ident: Optional[int], mensaje: str) -> Resultado:
    if ident is None:
        return Resultado()
    if db.get(modelo, ident) is None:
        return Resultado([mensaje])
    return Resultado()


def nombre_archivo_libre(db: Session, archivo: Optional[ArchivoAdjunto]) -> Resultado:
    if archivo is None or not archivo.nombre_original:
        return Resultado()
    previo = db.exec(select(Archivo).where(Archivo.nombre_original == archivo.nombre_original)).first()
    if previo:
        return Resultado([f"Ya existe un documento con el nombre '{archivo.nombre_original}'"])
    return Resultado()


def gasto_no_duplicado(db: Session, d: Dict[str, Any]) -> Resultado:
    claves = ("concepto_pago", "subtotal", "fecha", "sucursal_id")
    if any(d.get(k) is None for k in claves):
        return Resultado()
    stmt = select(Gasto).where(
        Gasto.concepto_pago == d["concepto_pago"],
        Gasto.subtotal == d["subtotal"],
        Gasto.fecha == d["fecha"],
        Gasto.sucursal_id == d["sucursal_id"],
    )
    if d.get("proveedor_id") is None:
        stmt = stmt.where(Gasto.proveedor_id.is_(None))
    else:
        stmt = stmt.where(Gasto.proveedor_id == d["proveedor_id"])
    if db.exec(stmt).first():
        return Resultado([MENSAJE_GASTO_DUPLICADO])
    return Resultado()


def cotizacion_no_duplicada(db: Session, d: Dict[str, Any]) -> Resultado:
    if any(d.get(k) is None for k in ("cliente_id", "fecha", "total")):
        return Resultado()
    stmt = select(Cotizacion).where(
        Cotizacion.cliente_id == d["cliente_id"],
        Cotizacion.fecha == d["fecha"],
        Cotizacion.total == d["total"],
    )
    if db.exec(stmt).first():
        return Resultado([MENSAJE_COTIZACION_DUPLICADA])
    return Resultado()


def cliente_y_sucursal(db: Session, cliente_id: Optional[int], sucursal_id: Optional[int]) -> Resultado:
    """Verifica el cliente y resuelve la sucursal: la indicada o, si falta, la del cliente."""
    if sucursal_id is not None and db.get(Sucursal, sucursal_id) is None:
        return Resultado(["La sucursal indicada no existe"])
    if cliente_id is None:
        return Resultado()
    cliente = db.get(Cliente, cliente_id)
    if cliente is None:
        return Resultado(["El cliente indicado no existe"])
    if sucursal_id is None:
        if cliente.sucursal_id is None:
            return Resultado(["El cliente no tiene sucursal asignada; indique sucursal_id"])
        return Resultado(datos={"sucursal_id": cliente.sucursal_id})
    return Resultado()


def stock_y_existencia_detalle(db: Session, detalle: List[dict]) -> Resultado:
    r = Resultado()
    consumo: Dict[int, int] = {}
    for n, item in enumerate(detalle, start=1):
        sp_id = item.get("servicio_productos_id")
        if sp_id is None:
            continue
        sp = db.get(ServicioProducto, sp_id)
        if sp is None:
            r.error(f"Ítem {n}: el servicio o producto indicado no existe")
            continue
        item["tipo"] = sp.tipo
        item["nombre"] = sp.nombre
        if sp.tipo == "producto" and item.get("cantidad"):
            consumo[sp_id] = consumo.get(sp_id, 0) + item["cantidad"]
            if consumo[sp_id] > (sp.cantidad_actual or 0):
                r.error(f"Ítem {n}: stock insuficiente para '{sp.nombre}'")
    return r


# ---------------------------------------------------------------------------
# Entradas públicas
# ---------------------------------------------------------------------------

def validar_tipo(datos: Mapping) -> str:
    tipo = datos.get("tipo")
    tipo = tipo.strip().lower() if isinstance(tipo, str) else tipo
    if tipo not in TIPOS_REGISTRO:
        raise ErrorAPI(400, "Tipo de registro inválido")
    return tipo


def _validar_gasto(db: Session, datos: Mapping, archivo: Optional[ArchivoAdjunto], contexto: ContextoSolicitud) -> Resultado:
    formato = combinar(
        entero_requerido(datos, "tipo_gasto_id"),
        texto_requerido(datos, "concepto_pago"),
        monto_positivo(datos, "subtotal"),
        fecha_no_futura(datos),
        entero_requerido(datos, "sucursal_id"),
        creador(datos, contexto),
        opcion(datos, "moneda", MONEDAS, "USD", "moneda inválida (USD o VES)", mayusculas=True),
        entero_opcional(datos, "cotizacion_id"),
        monto_opcional(datos, "tasa_cambio"),
        entero_opcional(datos, "proveedor_id"),
        documento_gasto(archivo),
        opcion(datos, "estado", ESTADOS_GASTO, "pendiente", "estado inválido (pendiente, solicitado, aprobado, pagado)"),
    )
    d = formato.datos

    iva_crudo = datos.get("porcentaje_iva")
    iva = Decimal("0") if _vacio(iva_crudo) else parsear_monto(iva_crudo)
    if iva is None or iva < 0:
        formato.error("porcentaje_iva debe ser un número no negativo")
    d["porcentaje_iva"] = iva

    if d.get("moneda") == "VES" and (d.get("tasa_cambio") is None or d["tasa_cambio"] <= 0):
        if "tasa_cambio debe ser numérico si se incluye" not in formato.errores:
            formato.error("tasa_cambio es requerido para moneda VES")

    tipo_gasto_id = d.get("tipo_gasto_id")
    if tipo_gasto_id == config.TIPO_GASTO_OPERATIVO_ID and _vacio(datos.get("proveedor_id")):
        formato.error("proveedor_id es obligatorio para gastos de tipo Operativo")

    descripcion = datos.get("descripcion")
    d["descripcion"] = descripcion.strip() if isinstance(descripcion, str) and descripcion.strip() else None

    return combinar(
        formato,
        existe(db, Sucursal, d.get("sucursal_id"), "La sucursal indicada no existe"),
        existe(db, Usuario, d.get("usuario_id"), "El usuario indicado no existe"),
        existe(db, TipoGasto, tipo_gasto_id, "El tipo de gasto indicado no existe"),
        existe(db, Proveedor, d.get("proveedor_id"), "El proveedor indicado no existe"),
        existe(db, Cotizacion, d.get("cotizacion_id"), "La cotización indicada no existe"),
        nombre_archivo_libre(db, archivo),
        gasto_no_duplicado(db, d) if formato.ok else Resultado(),
    )


def _validar_cotizacion(db: Session, datos: Mapping, contexto: ContextoSolicitud) -> Resultado:
    formato = combinar(
        entero_requerido(datos, "cliente_id"),
        monto_positivo(datos, "total"),
        fecha_no_futura(datos, requerida=False),
        entero_opcional(datos, "sucursal_id"),
        creador(datos, contexto),
        opcion(datos, "estado", ESTADOS_COTIZACION, "pendiente", "estado inválido (pendiente, aprobada, rechazada)"),
        detalle_cotizacion(datos),
    )
    d = formato.datos
    for campo in ("observaciones", "operacion", "puerto", "bl", "mercancia", "contenedor"):
        valor = datos.get(campo)
        d[campo] = str(valor).strip() if not _vacio(valor) else None
    d["confirmacion_cliente"] = str(datos.get("confirmacion_cliente", "")).strip().lower() in ("1", "true", "si", "sí", "on")

    r = combinar(
        formato,
        cliente_y_sucursal(db, d.get("cliente_id"), d.get("sucursal_id")),
        existe(db, Usuario, d.get("usuario_id"), "El usuario indicado no existe"),
        stock_y_existencia_detalle(db, d.get("detalle") or []),
    )
    if formato.ok:
        r = combinar(r, cotizacion_no_duplicada(db, r.datos))
    return r


def validar_registro(
    db: Session,
    datos: Mapping,
    archivo: Optional[ArchivoAdjunto],
    contexto: ContextoSolicitud,
) -> RegistroNormalizado:
    """Valida un gasto o una cotización y devuelve el payload normalizado.

    - Tipo ausente o desconocido: 400 antes de tocar la base de datos.
    - Cualquier otro fallo se acumula y termina en un único 422 con la lista.
    """
    tipo = validar_tipo(datos)
    if tipo == "gasto":
        resultado = _validar_gasto(db, datos, archivo, contexto)
    else:
        resultado = _validar_cotizacion(db, datos, contexto)
    normalizados = resultado.exigir(logger, tipo)
    return RegistroNormalizado(tipo=tipo, datos=normalizados, archivo=archivo if tipo == "gasto" else None)
