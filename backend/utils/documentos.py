"""Datos y plantillas HTML de los documentos imprimibles: vista previa de
cotización y orden de pago. El PDF se arma en ``pdf_documentos`` con los
mismos datos normalizados."""
import base64
from decimal import Decimal
from html import escape
from typing import Any, Dict, List, Optional

from backend.utils.formato import format_fecha, format_moneda, format_number, parsear_monto

CERO = Decimal("0")


def _d(valor: Any) -> Decimal:
    return parsear_monto(valor) or CERO


def _txt(valor: Any, defecto: str = "N/A") -> str:
    if valor is None or (isinstance(valor, str) and not valor.strip()):
        return defecto
    return str(valor)


# ===================================================================
# === COTIZACIÓN
# ===================================================================

def _item_cotizacion(item: Dict[str, Any], tipo: str) -> Dict[str, Any]:
    cantidad = _d(item.get("cantidad"))
    precio = _d(item.get("precio_unitario", item.get("precioUnitario")))
    subtotal = cantidad * precio
    if item.get("porcentaje_iva") is None and item.get("iva") is not None:
        # En la vista previa 'iva' llega como monto
        impuesto = _d(item.get("iva"))
        porcentaje = (impuesto / subtotal * 100) if subtotal else CERO
    else:
        porcentaje = _d(item.get("porcentaje_iva", 16))
        impuesto = subtotal * porcentaje / 100
    total = parsear_monto(item.get("total")) or subtotal + impuesto
    return {
        "nombre": _txt(item.get("nombre") or item.get("servicio") or item.get("descripcion"), "Ítem"),
        "tipo": item.get("tipo") or tipo,
        "cantidad": cantidad,
        "precio_unitario": precio,
        "porcentaje_iva": porcentaje,
        "impuesto": impuesto,
        "total": total,
    }


def normalizar_cotizacion(datos: Dict[str, Any]) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = []
    for item in datos.get("servicios") or []:
        items.append(_item_cotizacion(item, "servicio"))
    for item in datos.get("productos") or []:
        items.append(_item_cotizacion(item, "producto"))
    for item in datos.get("detalle") or []:
        items.append(_item_cotizacion(item, item.get("tipo") or "servicio"))

    subtotal = sum((i["total"] - i["impuesto"] for i in items), CERO)
    impuesto = sum((i["impuesto"] for i in items), CERO)
    return {
        "codigo": _txt(datos.get("codigo"), "Vista previa"),
        "cliente": _txt(datos.get("cliente") or datos.get("cliente_nombre")),
        "fecha": format_fecha(datos.get("fecha_emision") or datos.get("fecha")),
        "sucursal": _txt(datos.get("sucursal")),
        "declarante": _txt(datos.get("declarante")),
        "moneda": datos.get("moneda") or "USD",
        "operacion": _txt(datos.get("operacion")),
        "mercancia": _txt(datos.get("mercancia")),
        "bl": _txt(datos.get("bl")),
        "contenedor": _txt(datos.get("contenedor")),
        "puerto": _txt(datos.get("puerto")),
        "observaciones": datos.get("observaciones") or "",
        "servicios": [i for i in items if i["tipo"] != "producto"],
        "productos": [i for i in items if i["tipo"] == "producto"],
        "subtotal": parsear_monto(datos.get("subtotal")) or subtotal,
        "impuesto": parsear_monto(datos.get("impuesto")) or impuesto,
        "total": parsear_monto(datos.get("total")) or subtotal + impuesto,
    }


def generar_html_cotizacion(datos: Dict[str, Any]) -> str:
    c = normalizar_cotizacion(datos)
    moneda = c["moneda"]
    filas = ""
    for titulo, items in (("Servicios", c["servicios"]), ("Productos", c["productos"])):
        if not items:
            continue
        filas += f'<tr class="grupo"><td colspan="5">{titulo}</td></tr>'
        for i in items:
            filas += (
                f"<tr><td>{escape(i['nombre'])}</td>"
                f"<td class='c'>{format_number(i['cantidad'], 0)}</td>"
                f"<td class='r'>{format_moneda(i['precio_unitario'], moneda)}</td>"
                f"<td class='c'>{format_number(i['porcentaje_iva'])}%</td>"
                f"<td class='r'>{format_moneda(i['total'], moneda)}</td></tr>"
            )
    if not filas:
        filas = '<tr><td colspan="5" class="c">No hay productos ni servicios.</td></tr>'

    obs = f"<div class='obs'><h3>Observaciones</h3><p>{escape(c['observaciones'])}</p></div>" if c["observaciones"] else ""
    return f"""<html lang="es">
<head><meta charset="UTF-8"><title>Cotización</title>
<style>
body {{ font-family: Helvetica, Arial, sans-serif; font-size: 12px; }}
table {{ width: 100%; border-collapse: collapse; }}
td, th {{ border: 1px solid #999; padding: 4px; }}
.c {{ text-align: center; }} .r {{ text-align: right; }}
.grupo td {{ background: #dbeafe; font-weight: bold; }}
</style></head>
<body>
<h2>COTIZACIÓN {escape(c['codigo'])}</h2>
<p><b>Cliente:</b> {escape(c['cliente'])} &nbsp; <b>Fecha:</b> {c['fecha']} &nbsp; <b>Sucursal:</b> {escape(c['sucursal'])}</p>
<p><b>Operación:</b> {escape(c['operacion'])} &nbsp; <b>Mercancía:</b> {escape(c['mercancia'])} &nbsp;
<b>BL:</b> {escape(c['bl'])} &nbsp; <b>Contenedor:</b> {escape(c['contenedor'])} &nbsp; <b>Puerto:</b> {escape(c['puerto'])}</p>
<table>
<thead><tr><th>Descripción</th><th>Cantidad</th><th>Precio unitario</th><th>IVA</th><th>Total</th></tr></thead>
<tbody>{filas}</tbody>
</table>
<table class="totales">
<tr><td class="r"><b>Subtotal:</b></td><td class="r">{format_moneda(c['subtotal'], moneda)}</td></tr>
<tr><td class="r"><b>IVA:</b></td><td class="r">{format_moneda(c['impuesto'], moneda)}</td></tr>
<tr><td class="r"><b>Total:</b></td><td class="r">{format_moneda(c['total'], moneda)}</td></tr>
</table>
{obs}
</body></html>"""


# ===================================================================
# === ORDEN DE PAGO
# ===================================================================

def normalizar_orden_pago(datos: Dict[str, Any]) -> Dict[str, Any]:
    """Completa la orden con valores por defecto y calcula la diferencia."""
    moneda = (datos.get("moneda") or "USD").upper()
    monto_total = _d(datos.get("monto_total"))
    monto_pagado = _d(datos.get("monto_pagado"))
    metodo = _txt(datos.get("metodo_pago")).upper()
    gasto = datos.get("gasto") or None
    proveedor = datos.get("proveedor") or None
    firmas = datos.get("firmas") or {}
    return {
        "codigo": _txt(datos.get("codigo")),
        "estado": _txt(datos.get("estado")).upper(),
        "fecha_solicitud": format_fecha(datos.get("fecha_solicitud")),
        "fecha_pago": format_fecha(datos.get("fecha_pago")),
        "solicitado_por": _txt(datos.get("solicitado_por")),
        "autorizado_por": _txt(datos.get("autorizado_por")),
        "aprobado_por": _txt(datos.get("aprobado_por")),
        "metodo_pago": metodo,
        "es_transferencia": metodo == "TRANSFERENCIA",
        "banco": _txt(datos.get("banco")),
        "referencia": _txt(datos.get("referencia")),
        "moneda": moneda,
        "tasa_cambio": format_number(datos.get("tasa_cambio"), 4) if datos.get("tasa_cambio") else "N/A",
        "monto_total": monto_total,
        "monto_pagado": monto_pagado,
        "diferencia": monto_total - monto_pagado,
        "gasto": gasto,
        "proveedor": proveedor,
        "observaciones": datos.get("observaciones") or "",
        "firmas": {
            "solicita": firmas.get("solicita"),
            "autoriza": firmas.get("autoriza"),
            "aprueba": firmas.get("aprueba"),
        },
    }


def _img_firma(contenido: Optional[bytes]) -> str:
    if not contenido:
        return '<div class="sin-firma"></div>'
    b64 = base64.b64encode(contenido).decode("ascii")
    return f'<img src="data:image/png;base64,{b64}" class="firma" />'


def generar_html_orden_pago(datos: Dict[str, Any]) -> str:
    o = normalizar_orden_pago(datos)
    moneda = o["moneda"]
    color = "green" if o["diferencia"] == 0 else "red"

    banco = ""
    if o["es_transferencia"]:
        banco = f"<p><b>Banco:</b> {escape(o['banco'])}</p><p><b>Referencia:</b> {escape(o['referencia'])}</p>"

    gasto = ""
    if o["gasto"]:
        g = o["gasto"]
        gasto = (
            "<div class='bloque'><h3>Gasto asociado</h3>"
            f"<p><b>Código:</b> {escape(_txt(g.get('codigo')))} &nbsp; <b>Concepto:</b> {escape(_txt(g.get('concepto_pago')))}</p>"
            f"<p><b>Total:</b> {format_moneda(g.get('total'), g.get('moneda') or moneda)}</p></div>"
        )

    proveedor = ""
    if o["proveedor"]:
        p = o["proveedor"]
        proveedor = (
            "<div class='bloque'><h3>Proveedor</h3>"
            f"<p><b>Nombre:</b> {escape(_txt(p.get('nombre')))} &nbsp; <b>RIF:</b> {escape(_txt(p.get('rif')))}</p>"
            f"<p><b>Teléfono:</b> {escape(_txt(p.get('telefono')))} &nbsp; <b>Email:</b> {escape(_txt(p.get('email')))}</p></div>"
        )

    obs = f"<div class='bloque'><h3>Observaciones</h3><p>{escape(o['observaciones'])}</p></div>" if o["observaciones"] else ""

    f = o["firmas"]
    return f"""<html lang="es">
<head><meta charset="UTF-8"><title>Orden de Pago</title>
<style>
body {{ font-family: Helvetica, Arial, sans-serif; font-size: 12px; }}
.cols {{ display: flex; justify-content: space-between; }}
table {{ width: 100%; border-collapse: collapse; }}
td, th {{ border: 1px solid #999; padding: 4px; text-align: center; }}
.firma {{ height: 60px; }} .sin-firma {{ height: 60px; }}
.bloque {{ margin: 8px 0; padding: 6px; border: 1px solid #ccc; }}
</style></head>
<body>
<h2>ORDEN DE PAGO: {escape(o['codigo'])}</h2>
<h3>ESTADO: {escape(o['estado'])}</h3>
<div class="cols">
  <div>
    <p><b>Fecha de solicitud:</b> {o['fecha_solicitud']}</p>
    <p><b>Fecha de pago:</b> {o['fecha_pago']}</p>
    <p><b>Solicitado por:</b> {escape(o['solicitado_por'])}</p>
    <p><b>Aprobado por:</b> {escape(o['aprobado_por'])}</p>
  </div>
  <div>
    <p><b>Método de pago:</b> {escape(o['metodo_pago'])}</p>
    {banco}
  </div>
</div>
{gasto}
{proveedor}
{obs}
<table>
<thead><tr><th>Moneda</th><th>Tasa</th><th>Monto solicitado</th><th>Monto pagado</th><th>Diferencia</th></tr></thead>
<tbody><tr>
<td>{moneda}</td><td>{o['tasa_cambio']}</td>
<td>{format_moneda(o['monto_total'], moneda)}</td>
<td>{format_moneda(o['monto_pagado'], moneda)}</td>
<td style="color: {color}; font-weight: bold;">{format_moneda(o['diferencia'], moneda)}</td>
</tr></tbody>
</table>
<table class="firmas">
<tr><td>{_img_firma(f['solicita'])}</td><td>{_img_firma(f['autoriza'])}</td><td>{_img_firma(f['aprueba'])}</td></tr>
<tr><td>{escape(o['solicitado_por'])}</td><td>{escape(o['autorizado_por'])}</td><td>{escape(o['aprobado_por'])}</td></tr>
<tr><th>Solicitado por</th><th>Autorizado por</th><th>Aprobado por</th></tr>
</table>
</body></html>"""
