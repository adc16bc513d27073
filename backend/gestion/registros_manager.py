"""Alta de registros ya validados: gastos con su documento y cotizaciones con su detalle."""
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from backend.errores import ErrorValidacion
from backend.gestion.archivos_manager import REGISTRO_FACTURAS_GASTOS, guardar_archivo
from backend.gestion.contexto import ContextoSolicitud
from backend.gestion.validaciones import (
    MENSAJE_COTIZACION_DUPLICADA, MENSAJE_GASTO_DUPLICADO, RegistroNormalizado,
)
from backend.modelos import Cotizacion, DetalleCotizacion, Gasto, ServicioProducto
from backend.utils.almacenamiento import AlmacenamientoLocal

logger = logging.getLogger(__name__)

CENTAVOS = Decimal("0.01")


def _redondear(valor: Decimal) -> Decimal:
    return valor.quantize(CENTAVOS, rounding=ROUND_HALF_UP)


def _es_duplicado(error: IntegrityError) -> bool:
    msg = str(error.orig).upper()
    return "UNIQUE" in msg or "DUPLICATE" in msg


def crear_gasto(db: Session, almacenamiento: AlmacenamientoLocal, registro: RegistroNormalizado, contexto: ContextoSolicitud) -> dict:
    d = registro.datos
    subtotal = d["subtotal"]
    impuesto = _redondear(subtotal * d["porcentaje_iva"] / Decimal("100"))
    gasto = Gasto(
        proveedor_id=d.get("proveedor_id"),
        tipo_gasto_id=d["tipo_gasto_id"],
        concepto_pago=d["concepto_pago"],
        descripcion=d.get("descripcion"),
        subtotal=subtotal,
        porcentaje_iva=d["porcentaje_iva"],
        impuesto=impuesto,
        total=_redondear(subtotal + impuesto),
        fecha=d["fecha"],
        sucursal_id=d["sucursal_id"],
        cotizacion_id=d.get("cotizacion_id"),
        moneda=d["moneda"],
        tasa_cambio=d.get("tasa_cambio"),
        estado=d["estado"],
        usuario_id=d["usuario_id"],
    )
    clave: Optional[str] = None
    try:
        db.add(gasto)
        db.flush()
        gasto.codigo = f"G-{gasto.id:06d}"
        archivo = guardar_archivo(
            db, almacenamiento, contexto, registro.archivo,
            prefijo="gastos",
            registro_tipo=REGISTRO_FACTURAS_GASTOS,
            registro_id=gasto.id,
        )
        clave = archivo.ruta_s3
        gasto.documento = clave
        db.add(gasto)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if clave:
            almacenamiento.eliminar(clave)
        if _es_duplicado(e):
            logger.warning(f"Gasto duplicado detectado al insertar: {e.orig}")
            raise ErrorValidacion([MENSAJE_GASTO_DUPLICADO])
        raise
    except Exception:
        db.rollback()
        if clave:
            almacenamiento.eliminar(clave)
        raise

    logger.info(f"Gasto {gasto.id} ({gasto.codigo}) creado por usuario {contexto.usuario_id}")
    return {
        "message": "Gasto creado con éxito",
        "registro_id": gasto.id,
        "codigo": gasto.codigo,
        "tipo": "gasto",
    }


def crear_cotizacion(db: Session, registro: RegistroNormalizado, contexto: ContextoSolicitud) -> dict:
    d = registro.datos
    cotizacion = Cotizacion(
        cliente_id=d["cliente_id"],
        usuario_id=d["usuario_id"],
        sucursal_id=d["sucursal_id"],
        fecha=d["fecha"],
        total=d["total"],
        estado=d["estado"],
        confirmacion_cliente=d.get("confirmacion_cliente", False),
        observaciones=d.get("observaciones"),
        operacion=d.get("operacion"),
        puerto=d.get("puerto"),
        bl=d.get("bl"),
        mercancia=d.get("mercancia"),
        contenedor=d.get("contenedor"),
    )
    try:
        db.add(cotizacion)
        db.flush()
        cotizacion.codigo_referencia = f"COT-{cotizacion.id:04d}"

        subtotal_total = Decimal("0")
        impuesto_total = Decimal("0")
        for item in d["detalle"]:
            cantidad = item["cantidad"]
            precio = item["precio_unitario"]
            iva = item["porcentaje_iva"]
            linea = _redondear(precio * cantidad)
            impuesto = _redondear(linea * iva / Decimal("100"))
            db.add(DetalleCotizacion(
                cotizacion_id=cotizacion.id,
                servicio_productos_id=item["servicio_productos_id"],
                cantidad=cantidad,
                precio_unitario=precio,
                porcentaje_iva=iva,
                subtotal=linea,
                impuesto=impuesto,
                total=linea + impuesto,
            ))
            subtotal_total += linea
            impuesto_total += impuesto

            if item.get("tipo") == "producto":
                producto = db.get(ServicioProducto, item["servicio_productos_id"])
                producto.cantidad_anterior = producto.cantidad_actual
                producto.cantidad_actual = producto.cantidad_actual - cantidad
                db.add(producto)

        cotizacion.subtotal = subtotal_total
        cotizacion.impuesto = impuesto_total
        db.add(cotizacion)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _es_duplicado(e):
            logger.warning(f"Cotización duplicada detectada al insertar: {e.orig}")
            raise ErrorValidacion([MENSAJE_COTIZACION_DUPLICADA])
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(f"Cotización {cotizacion.id} ({cotizacion.codigo_referencia}) creada por usuario {contexto.usuario_id}")
    return {
        "message": "Cotización creada con éxito",
        "registro_id": cotizacion.id,
        "codigo": cotizacion.codigo_referencia,
        "tipo": "cotizacion",
        "total": float(cotizacion.total),
    }


def crear_registro(db: Session, almacenamiento: AlmacenamientoLocal, registro: RegistroNormalizado, contexto: ContextoSolicitud) -> dict:
    if registro.tipo == "gasto":
        return crear_gasto(db, almacenamiento, registro, contexto)
    return crear_cotizacion(db, registro, contexto)
