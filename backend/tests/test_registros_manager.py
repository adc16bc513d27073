from datetime import date
from decimal import Decimal

import pytest
from sqlmodel import select

from backend.errores import ErrorValidacion
from backend.gestion.registros_manager import crear_cotizacion, crear_gasto
from backend.gestion.validaciones import (
    MENSAJE_COTIZACION_DUPLICADA,
    MENSAJE_GASTO_DUPLICADO,
    ArchivoAdjunto,
    RegistroNormalizado,
)
from backend.modelos import Archivo, Cotizacion, Gasto
from backend.utils.almacenamiento import AlmacenamientoLocal


def _gasto_normalizado(nombre_documento: str, proveedor_id=None) -> RegistroNormalizado:
    datos = {
        "proveedor_id": proveedor_id,
        "tipo_gasto_id": 2,
        "concepto_pago": "Peaje",
        "descripcion": None,
        "subtotal": Decimal("10.00"),
        "porcentaje_iva": Decimal("0"),
        "fecha": date(2024, 1, 1),
        "sucursal_id": 1,
        "moneda": "USD",
        "estado": "pendiente",
        "usuario_id": 1,
    }
    adjunto = ArchivoAdjunto(nombre_documento, b"%PDF-1.4 peaje", "application/pdf")
    return RegistroNormalizado("gasto", datos, adjunto)


def _cotizacion_normalizada() -> RegistroNormalizado:
    datos = {
        "cliente_id": 7,
        "usuario_id": 1,
        "sucursal_id": 1,
        "fecha": date(2024, 5, 10),
        "total": Decimal("116.00"),
        "estado": "pendiente",
        "detalle": [{
            "servicio_productos_id": 5,
            "cantidad": 2,
            "precio_unitario": Decimal("50"),
            "porcentaje_iva": Decimal("16"),
            "tipo": "servicio",
        }],
    }
    return RegistroNormalizado("cotizacion", datos)


def test_gasto_sin_proveedor_repetido_choca_con_la_restriccion(db, ctx_admin, tmp_path):
    almacen = AlmacenamientoLocal(tmp_path)
    primero = crear_gasto(db, almacen, _gasto_normalizado("peaje-1.pdf"), ctx_admin)
    assert primero["codigo"] == "G-000001"

    with pytest.raises(ErrorValidacion) as exc:
        crear_gasto(db, almacen, _gasto_normalizado("peaje-2.pdf"), ctx_admin)
    assert exc.value.errores == [MENSAJE_GASTO_DUPLICADO]
    assert exc.value.status_code == 422

    assert len(db.exec(select(Gasto)).all()) == 1
    assert [a.nombre_original for a in db.exec(select(Archivo)).all()] == ["peaje-1.pdf"]
    assert len([p for p in tmp_path.rglob("*") if p.is_file()]) == 1


def test_gasto_mismo_concepto_con_y_sin_proveedor(db, ctx_admin, tmp_path):
    almacen = AlmacenamientoLocal(tmp_path)
    crear_gasto(db, almacen, _gasto_normalizado("peaje-1.pdf"), ctx_admin)
    segundo = crear_gasto(db, almacen, _gasto_normalizado("peaje-2.pdf", proveedor_id=1), ctx_admin)
    assert segundo["codigo"] == "G-000002"
    claves = sorted(g.proveedor_clave for g in db.exec(select(Gasto)).all())
    assert claves == [0, 1]


def test_cotizacion_repetida_choca_con_la_restriccion(db, ctx_admin):
    primera = crear_cotizacion(db, _cotizacion_normalizada(), ctx_admin)
    assert primera["codigo"] == "COT-0001"

    with pytest.raises(ErrorValidacion) as exc:
        crear_cotizacion(db, _cotizacion_normalizada(), ctx_admin)
    assert exc.value.errores == [MENSAJE_COTIZACION_DUPLICADA]
    assert len(db.exec(select(Cotizacion)).all()) == 1
