from decimal import Decimal

from backend.utils.documentos import (
    generar_html_cotizacion,
    generar_html_orden_pago,
    normalizar_cotizacion,
    normalizar_orden_pago,
)
from backend.utils.pdf_documentos import generar_pdf_cotizacion, generar_pdf_orden_pago

ORDEN = {
    "codigo": "SP-0001",
    "estado": "pagada",
    "fecha_solicitud": "2024-05-10",
    "fecha_pago": "2024-05-12",
    "solicitado_por": "Pedro Pérez",
    "aprobado_por": "Ana Admin",
    "metodo_pago": "transferencia",
    "banco": "Banco de Venezuela",
    "referencia": "REF-998",
    "moneda": "VES",
    "tasa_cambio": "36.5",
    "monto_total": 1500,
    "monto_pagado": 1500,
    "gasto": {"codigo": "G-000001", "concepto_pago": "Flete", "total": 1500, "moneda": "VES"},
    "proveedor": {"nombre": "Transportes Andinos", "rif": "J-123456789"},
}


def test_normalizar_orden_pago_calcula_diferencia():
    o = normalizar_orden_pago(dict(ORDEN, monto_pagado="1.000,00"))
    assert o["diferencia"] == Decimal("500.00")
    assert o["es_transferencia"] is True
    assert o["fecha_solicitud"] == "10/05/2024"
    assert o["autorizado_por"] == "N/A"


def test_html_orden_saldada_en_verde():
    html = generar_html_orden_pago(ORDEN)
    assert "ORDEN DE PAGO: SP-0001" in html
    assert "color: green" in html
    assert "Bs 1.500,00" in html
    assert "Banco de Venezuela" in html
    assert "Transportes Andinos" in html


def test_html_orden_con_saldo_en_rojo_y_sin_banco():
    html = generar_html_orden_pago(dict(ORDEN, monto_pagado=1000, metodo_pago="efectivo"))
    assert "color: red" in html
    assert "Bs 500,00" in html
    assert "Banco de Venezuela" not in html


def test_html_orden_escapa_texto_y_embebe_firmas():
    firmas = {"solicita": b"\x89PNG-firma"}
    html = generar_html_orden_pago(dict(ORDEN, solicitado_por="<script>", firmas=firmas))
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "data:image/png;base64," in html


def test_normalizar_cotizacion_vista_previa():
    c = normalizar_cotizacion({
        "cliente": "Importadora Caribe",
        "servicios": [{"nombre": "Agenciamiento", "cantidad": 2, "precio_unitario": 50, "porcentaje_iva": 16}],
        "productos": [{"nombre": "Precinto", "cantidad": 1, "precioUnitario": 10, "iva": 1.6}],
    })
    assert len(c["servicios"]) == 1
    assert len(c["productos"]) == 1
    assert c["subtotal"] == Decimal("110")
    assert c["impuesto"] == Decimal("17.6")
    assert c["total"] == Decimal("127.6")
    assert c["codigo"] == "Vista previa"


def test_html_cotizacion_sin_items():
    html = generar_html_cotizacion({"cliente": "X"})
    assert "No hay productos ni servicios." in html


def test_pdf_cotizacion_y_orden_son_pdf():
    cotizacion = generar_pdf_cotizacion({
        "cliente": "Importadora Caribe",
        "moneda": "USD",
        "servicios": [{"nombre": "Agenciamiento", "cantidad": 2, "precio_unitario": 50}],
        "observaciones": "Válida por 15 días",
    })
    orden = generar_pdf_orden_pago(dict(ORDEN, firmas={"aprueba": b"no es una imagen"}))
    assert cotizacion.startswith(b"%PDF")
    assert orden.startswith(b"%PDF")
