import logging
from typing import Any, Dict, Optional

from sqlmodel import Session

from backend.modelos import Banco, Gasto, Proveedor, SolicitudPago, Usuario
from backend.utils.almacenamiento import AlmacenamientoLocal

logger = logging.getLogger(__name__)


def _usuario(db: Session, usuario_id: Optional[int]) -> Optional[Usuario]:
    return db.get(Usuario, usuario_id) if usuario_id else None


def _firma(almacenamiento: AlmacenamientoLocal, usuario: Optional[Usuario]) -> Optional[bytes]:
    if usuario is None or not usuario.firma:
        return None
    contenido = almacenamiento.leer(usuario.firma)
    if contenido is None:
        logger.warning(f"Firma de usuario {usuario.id} no encontrada en {usuario.firma}")
    return contenido


def armar_datos_orden_pago(db: Session, solicitud: SolicitudPago, almacenamiento: AlmacenamientoLocal) -> Dict[str, Any]:
    """Reúne todo lo que imprime la orden de pago: personas, banco, gasto, proveedor y firmas."""
    solicita = _usuario(db, solicitud.usuario_solicita_id)
    revisa = _usuario(db, solicitud.usuario_revisa_id)
    aprueba = _usuario(db, solicitud.usuario_aprueba_id)
    banco = db.get(Banco, solicitud.banco_id) if solicitud.banco_id else None
    gasto = db.get(Gasto, solicitud.gasto_id) if solicitud.gasto_id else None
    proveedor_id = solicitud.proveedor_id or (gasto.proveedor_id if gasto else None)
    proveedor = db.get(Proveedor, proveedor_id) if proveedor_id else None

    return {
        "codigo": solicitud.codigo or f"SP-{solicitud.id:04d}",
        "estado": solicitud.estado,
        "fecha_solicitud": solicitud.fecha_solicitud,
        "fecha_pago": solicitud.fecha_pago,
        "solicitado_por": solicita.nombre if solicita else None,
        "autorizado_por": revisa.nombre if revisa else None,
        "aprobado_por": aprueba.nombre if aprueba else None,
        "metodo_pago": solicitud.metodo_pago,
        "banco": banco.nombre if banco else None,
        "referencia": solicitud.referencia_pago,
        "moneda": solicitud.moneda,
        "tasa_cambio": solicitud.tasa_cambio,
        "monto_total": solicitud.monto_total,
        "monto_pagado": solicitud.monto_pagado,
        "observaciones": solicitud.observaciones,
        "gasto": {
            "codigo": gasto.codigo,
            "concepto_pago": gasto.concepto_pago,
            "total": gasto.total,
            "moneda": gasto.moneda,
        } if gasto else None,
        "proveedor": {
            "nombre": proveedor.nombre,
            "rif": proveedor.rif,
            "telefono": proveedor.telefono,
            "email": proveedor.email,
        } if proveedor else None,
        "firmas": {
            "solicita": _firma(almacenamiento, solicita),
            "autoriza": _firma(almacenamiento, revisa),
            "aprueba": _firma(almacenamiento, aprueba),
        },
    }
