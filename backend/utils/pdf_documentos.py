import logging
from io import BytesIO
from typing import Any, Dict, List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from backend.utils.documentos import normalizar_cotizacion, normalizar_orden_pago
from backend.utils.formato import format_moneda, format_number

logger = logging.getLogger(__name__)

ANCHO, ALTO = A4
MARGEN = 18 * mm


class _Lienzo:
    """Pequeño envoltorio del canvas con cursor vertical y salto de página."""

    def __init__(self, titulo: str):
        self.buffer = BytesIO()
        self.c = canvas.Canvas(self.buffer, pagesize=A4)
        self.c.setTitle(titulo)
        self.y = ALTO - MARGEN

    def espacio(self, alto: float) -> None:
        if self.y - alto < MARGEN:
            self.c.showPage()
            self.y = ALTO - MARGEN

    def texto(self, texto: str, x: float = MARGEN, fuente: str = "Helvetica", tam: int = 9, salto: float = 5 * mm) -> None:
        self.espacio(salto)
        self.c.setFont(fuente, tam)
        self.c.drawString(x, self.y, texto)
        self.y -= salto

    def par(self, izq: str, der: str, fuente: str = "Helvetica", tam: int = 9) -> None:
        """Una línea con dos columnas."""
        self.espacio(5 * mm)
        self.c.setFont(fuente, tam)
        self.c.drawString(MARGEN, self.y, izq)
        self.c.drawString(ANCHO / 2 + 5 * mm, self.y, der)
        self.y -= 5 * mm

    def separador(self) -> None:
        self.espacio(4 * mm)
        self.c.line(MARGEN, self.y, ANCHO - MARGEN, self.y)
        self.y -= 4 * mm

    def fila(self, columnas: List[str], xs: List[float], fuente: str = "Helvetica", tam: int = 8,
             derecha: Optional[List[bool]] = None) -> None:
        self.espacio(5 * mm)
        self.c.setFont(fuente, tam)
        derecha = derecha or [False] * len(columnas)
        for texto, x, alinear_der in zip(columnas, xs, derecha):
            if alinear_der:
                self.c.drawRightString(x, self.y, texto)
            else:
                self.c.drawString(x, self.y, texto)
        self.y -= 5 * mm

    def cerrar(self) -> bytes:
        self.c.showPage()
        self.c.save()
        return self.buffer.getvalue()


def generar_pdf_cotizacion(datos: Dict[str, Any]) -> bytes:
    cot = normalizar_cotizacion(datos)
    moneda = cot["moneda"]
    p = _Lienzo("Cotización")

    p.texto(f"COTIZACIÓN {cot['codigo']}", fuente="Helvetica-Bold", tam=14, salto=8 * mm)
    p.par(f"Cliente: {cot['cliente']}", f"Fecha: {cot['fecha']}")
    p.par(f"Sucursal: {cot['sucursal']}", f"Declarante: {cot['declarante']}")
    p.par(f"Operación: {cot['operacion']}", f"Mercancía: {cot['mercancia']}")
    p.par(f"BL: {cot['bl']}", f"Contenedor: {cot['contenedor']}  Puerto: {cot['puerto']}")
    p.separador()

    xs = [MARGEN, 105 * mm, 140 * mm, 160 * mm, ANCHO - MARGEN]
    der = [False, False, True, False, True]
    p.fila(["Descripción", "Cantidad", "Precio unit.", "IVA", "Total"], xs, fuente="Helvetica-Bold", derecha=der)
    hay_items = False
    for titulo, items in (("Servicios", cot["servicios"]), ("Productos", cot["productos"])):
        if not items:
            continue
        hay_items = True
        p.texto(titulo, fuente="Helvetica-Bold", tam=9)
        for i in items:
            p.fila(
                [
                    i["nombre"][:55],
                    format_number(i["cantidad"], 0),
                    format_moneda(i["precio_unitario"], moneda),
                    f"{format_number(i['porcentaje_iva'])}%",
                    format_moneda(i["total"], moneda),
                ],
                xs,
                derecha=der,
            )
    if not hay_items:
        p.texto("No hay productos ni servicios.", tam=8)
    p.separador()

    xs_tot = [140 * mm, ANCHO - MARGEN]
    p.fila(["Subtotal:", format_moneda(cot["subtotal"], moneda)], xs_tot, derecha=[False, True])
    p.fila(["IVA:", format_moneda(cot["impuesto"], moneda)], xs_tot, derecha=[False, True])
    p.fila(["Total:", format_moneda(cot["total"], moneda)], xs_tot, fuente="Helvetica-Bold", derecha=[False, True])

    if cot["observaciones"]:
        p.separador()
        p.texto("Observaciones:", fuente="Helvetica-Bold")
        p.texto(cot["observaciones"][:120], tam=8)
    return p.cerrar()


def _dibujar_firma(p: _Lienzo, contenido: Optional[bytes], x: float, y: float, ancho: float) -> None:
    if not contenido:
        return
    try:
        imagen = ImageReader(BytesIO(contenido))
        p.c.drawImage(imagen, x + 5 * mm, y, width=ancho - 10 * mm, height=18 * mm,
                      preserveAspectRatio=True, mask="auto")
    except Exception as e:
        # Firma corrupta: se deja el espacio en blanco
        logger.warning(f"No se pudo dibujar la firma: {e}")


def generar_pdf_orden_pago(datos: Dict[str, Any]) -> bytes:
    o = normalizar_orden_pago(datos)
    moneda = o["moneda"]
    p = _Lienzo("Orden de Pago")

    # Encabezado
    p.texto(f"ORDEN DE PAGO: {o['codigo']}", fuente="Helvetica-Bold", tam=14, salto=7 * mm)
    p.texto(f"ESTADO: {o['estado']}", fuente="Helvetica-Bold", tam=10, salto=7 * mm)
    p.separador()

    # Información básica en dos columnas
    p.par(f"Fecha de solicitud: {o['fecha_solicitud']}", f"Método de pago: {o['metodo_pago']}")
    p.par(f"Fecha de pago: {o['fecha_pago']}", f"Banco: {o['banco']}" if o["es_transferencia"] else "")
    p.par(f"Solicitado por: {o['solicitado_por']}", f"Referencia: {o['referencia']}" if o["es_transferencia"] else "")
    p.par(f"Aprobado por: {o['aprobado_por']}", "")

    if o["gasto"]:
        g = o["gasto"]
        p.separador()
        p.texto("Gasto asociado", fuente="Helvetica-Bold", tam=10)
        p.par(f"Código: {g.get('codigo') or 'N/A'}", f"Concepto: {(g.get('concepto_pago') or 'N/A')[:45]}")
        p.texto(f"Total: {format_moneda(g.get('total'), g.get('moneda') or moneda)}")

    if o["proveedor"]:
        pr = o["proveedor"]
        p.separador()
        p.texto("Proveedor", fuente="Helvetica-Bold", tam=10)
        p.par(f"Nombre: {pr.get('nombre') or 'N/A'}", f"RIF: {pr.get('rif') or 'N/A'}")
        p.par(f"Teléfono: {pr.get('telefono') or 'N/A'}", f"Email: {pr.get('email') or 'N/A'}")

    if o["observaciones"]:
        p.separador()
        p.texto("Observaciones", fuente="Helvetica-Bold", tam=10)
        p.texto(o["observaciones"][:120], tam=8)

    # Tabla de montos
    p.separador()
    xs = [MARGEN, 40 * mm, 95 * mm, 140 * mm, ANCHO - MARGEN]
    der = [False, False, True, True, True]
    p.fila(["Moneda", "Tasa", "Monto solicitado", "Monto pagado", "Diferencia"], xs, fuente="Helvetica-Bold", derecha=der)
    p.fila(
        [moneda, o["tasa_cambio"], format_moneda(o["monto_total"], moneda), format_moneda(o["monto_pagado"], moneda), ""],
        xs,
        derecha=der,
    )
    # La diferencia va en verde si está saldada y en rojo si no
    p.c.setFillColor(colors.green if o["diferencia"] == 0 else colors.red)
    p.c.setFont("Helvetica-Bold", 8)
    p.c.drawRightString(xs[-1], p.y + 5 * mm, format_moneda(o["diferencia"], moneda))
    p.c.setFillColor(colors.black)

    # Firmas
    p.espacio(40 * mm)
    p.y -= 25 * mm
    ancho_col = (ANCHO - 2 * MARGEN) / 3
    etiquetas = (
        ("Solicitado por", o["solicitado_por"], o["firmas"]["solicita"]),
        ("Autorizado por", o["autorizado_por"], o["firmas"]["autoriza"]),
        ("Aprobado por", o["aprobado_por"], o["firmas"]["aprueba"]),
    )
    for n, (etiqueta, nombre, firma) in enumerate(etiquetas):
        x = MARGEN + n * ancho_col
        _dibujar_firma(p, firma, x, p.y + 2 * mm, ancho_col)
        p.c.line(x + 5 * mm, p.y, x + ancho_col - 5 * mm, p.y)
        p.c.setFont("Helvetica", 8)
        p.c.drawCentredString(x + ancho_col / 2, p.y - 4 * mm, nombre)
        p.c.setFont("Helvetica-Bold", 8)
        p.c.drawCentredString(x + ancho_col / 2, p.y - 8 * mm, etiqueta)
    p.y -= 12 * mm
    return p.cerrar()
