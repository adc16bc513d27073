from datetime import date, timedelta
from decimal import Decimal

import pytest

from backend.errores import ErrorAPI, ErrorValidacion
from backend.gestion.validaciones import (
    MENSAJE_COTIZACION_DUPLICADA,
    MENSAJE_GASTO_DUPLICADO,
    ArchivoAdjunto,
    Resultado,
    combinar,
    validar_registro,
)
from backend.modelos import Archivo, Cotizacion, Gasto


def _pdf(nombre="factura-001.pdf", tam=64):
    return ArchivoAdjunto(nombre_original=nombre, contenido=b"%" * tam, content_type="application/pdf")


def _gasto(**extra):
    datos = {
        "tipo": "gasto",
        "tipo_gasto_id": "2",
        "concepto_pago": "Papelería",
        "subtotal": "100",
        "fecha": "2024-05-10",
        "sucursal_id": "1",
    }
    datos.update(extra)
    return datos


def _cotizacion(**extra):
    datos = {
        "tipo": "cotizacion",
        "cliente_id": 7,
        "total": 150,
        "fecha": "2024-05-10",
        "detalle": [{"servicio_productos_id": 5, "cantidad": 2, "precio_unitario": 50, "porcentaje_iva": 16}],
    }
    datos.update(extra)
    return datos


def test_combinar_copia_datos_y_acumula_errores():
    a = Resultado(["uno"], {"x": 1})
    b = Resultado(["dos"], {"y": 2})
    total = combinar(a, b)
    a.datos["x"] = 99
    assert total.errores == ["uno", "dos"]
    assert total.datos == {"x": 1, "y": 2}


@pytest.mark.parametrize("datos", [{}, {"tipo": "factura"}, {"tipo": None}])
def test_tipo_invalido_responde_400_sin_consultar_la_base(datos, sesion_prohibida, ctx_admin):
    with pytest.raises(ErrorAPI) as exc:
        validar_registro(sesion_prohibida, datos, None, ctx_admin)
    assert exc.value.status_code == 400
    assert exc.value.cuerpo() == {"message": "Tipo de registro inválido"}


def test_gasto_valido_normaliza_tipos(db, ctx_admin):
    registro = validar_registro(db, _gasto(subtotal="1.234,56", moneda="usd"), _pdf(), ctx_admin)
    d = registro.datos
    assert registro.tipo == "gasto"
    assert d["subtotal"] == Decimal("1234.56")
    assert d["fecha"] == date(2024, 5, 10)
    assert d["moneda"] == "USD"
    assert d["estado"] == "pendiente"
    assert d["usuario_id"] == 1
    assert d["proveedor_id"] is None
    assert registro.archivo is not None


def test_gasto_acumula_todos_los_errores(db, ctx_admin):
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _gasto(subtotal="-5"), None, ctx_admin)
    errores = exc.value.errores
    assert exc.value.status_code == 422
    assert "subtotal es requerido y debe ser un número positivo" in errores
    assert "El documento es obligatorio para gastos" in errores
    assert exc.value.cuerpo()["message"] == "Error de validación"


def test_gasto_en_bolivares_exige_tasa(db, ctx_admin):
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _gasto(moneda="VES"), _pdf(), ctx_admin)
    assert exc.value.errores == ["tasa_cambio es requerido para moneda VES"]

    registro = validar_registro(db, _gasto(moneda="VES", tasa_cambio="36,50"), _pdf(), ctx_admin)
    assert registro.datos["tasa_cambio"] == Decimal("36.50")


def test_gasto_operativo_exige_proveedor(db, ctx_admin):
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _gasto(tipo_gasto_id="1"), _pdf(), ctx_admin)
    assert "proveedor_id es obligatorio para gastos de tipo Operativo" in exc.value.errores

    registro = validar_registro(db, _gasto(tipo_gasto_id="1", proveedor_id="1"), _pdf(), ctx_admin)
    assert registro.datos["proveedor_id"] == 1


def test_gasto_con_fecha_futura(db, ctx_admin):
    manana = (date.today() + timedelta(days=1)).isoformat()
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _gasto(fecha=manana), _pdf(), ctx_admin)
    assert exc.value.errores == ["La fecha no puede ser futura"]


def test_gasto_documento_extension_y_tamanio(db, ctx_admin):
    grande = ArchivoAdjunto(nombre_original="factura.exe", contenido=b"0" * (2 * 1024 * 1024 + 1))
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _gasto(), grande, ctx_admin)
    assert "Extensión de documento no permitida (pdf, png, jpg, jpeg, webp)" in exc.value.errores
    assert "El documento excede el tamaño máximo de 2MB" in exc.value.errores


def test_gasto_referencias_inexistentes(db, ctx_admin):
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _gasto(sucursal_id="99", proveedor_id="42"), _pdf(), ctx_admin)
    assert "La sucursal indicada no existe" in exc.value.errores
    assert "El proveedor indicado no existe" in exc.value.errores


def test_gasto_nombre_de_documento_repetido(db, ctx_admin):
    db.add(Archivo(registro_tipo="facturasGastos", nombre_original="factura-001.pdf", extension="pdf",
                   tamanio_bytes=10, ruta_s3="gastos/2024/05/1-factura-001.pdf", subido_por=1))
    db.commit()
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _gasto(), _pdf(), ctx_admin)
    assert exc.value.errores == ["Ya existe un documento con el nombre 'factura-001.pdf'"]


def test_gasto_duplicado(db, ctx_admin):
    db.add(Gasto(tipo_gasto_id=2, concepto_pago="Papelería", subtotal=Decimal("100.00"), fecha=date(2024, 5, 10),
                 sucursal_id=1, usuario_id=1, impuesto=Decimal("0"), total=Decimal("100.00"), codigo="G-000001"))
    db.commit()
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _gasto(), _pdf("otra.pdf"), ctx_admin)
    assert exc.value.errores == [MENSAJE_GASTO_DUPLICADO]


def test_cotizacion_toma_sucursal_del_cliente(db, ctx_empleado):
    registro = validar_registro(db, _cotizacion(), None, ctx_empleado)
    d = registro.datos
    assert d["sucursal_id"] == 1
    assert d["usuario_id"] == 2
    assert d["total"] == Decimal("150")
    assert d["detalle"][0]["tipo"] == "servicio"
    assert d["detalle"][0]["nombre"] == "Agenciamiento aduanal"


def test_cotizacion_sin_fecha_usa_hoy(db, ctx_admin):
    datos = _cotizacion()
    del datos["fecha"]
    registro = validar_registro(db, datos, None, ctx_admin)
    assert registro.datos["fecha"] == date.today()


def test_cotizacion_cliente_sin_sucursal(db, ctx_admin):
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _cotizacion(cliente_id=8), None, ctx_admin)
    assert exc.value.errores == ["El cliente no tiene sucursal asignada; indique sucursal_id"]


def test_cotizacion_errores_de_formato(db, ctx_admin):
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _cotizacion(cliente_id="abc", total=0, detalle=[]), None, ctx_admin)
    assert exc.value.errores == [
        "cliente_id es requerido y debe ser numérico",
        "total es requerido y debe ser un número positivo",
        "detalle debe ser una lista con al menos un ítem",
    ]


def test_cotizacion_detalle_como_json_y_stock(db, ctx_admin):
    detalle = '[{"servicio_productos_id": 6, "cantidad": 5, "precio_unitario": 10}]'
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _cotizacion(detalle=detalle), None, ctx_admin)
    assert exc.value.errores == ["Ítem 1: stock insuficiente para 'Precinto'"]


def test_cotizacion_item_inexistente(db, ctx_admin):
    detalle = [{"servicio_productos_id": 999, "cantidad": 1, "precio_unitario": 10}]
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _cotizacion(detalle=detalle), None, ctx_admin)
    assert exc.value.errores == ["Ítem 1: el servicio o producto indicado no existe"]


def test_cotizacion_duplicada(db, ctx_admin):
    db.add(Cotizacion(cliente_id=7, sucursal_id=1, usuario_id=1, fecha=date(2024, 5, 10),
                      subtotal=Decimal("100.00"), impuesto=Decimal("16.00"), total=Decimal("150.00"),
                      codigo_referencia="COT-0001"))
    db.commit()
    with pytest.raises(ErrorValidacion) as exc:
        validar_registro(db, _cotizacion(), None, ctx_admin)
    assert exc.value.errores == [MENSAJE_COTIZACION_DUPLICADA]
