"""Formato y lectura de montos y fechas en convención es-VE.

Miles con punto y decimales con coma: ``1.234,56``.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def format_number(value: Any, decimales: int = 2) -> str:
    if value is None or value == "":
        value = 0
    try:
        num = Decimal(str(value))
    except InvalidOperation:
        return str(value)
    s = f"{abs(num):.{decimales}f}"
    if "." in s:
        int_part, dec_part = s.split(".")
    else:
        int_part, dec_part = s, ""
    # Agregar puntos cada 3 dígitos en la parte entera
    rev = int_part[::-1]
    with_dots = ".".join([rev[i:i + 3] for i in range(0, len(rev), 3)])
    final_int = with_dots[::-1]
    signo = "-" if num < 0 else ""
    return f"{signo}{final_int},{dec_part}" if dec_part else f"{signo}{final_int}"


def simbolo_moneda(moneda: Optional[str]) -> str:
    return "Bs" if (moneda or "").upper() == "VES" else "$"


def format_moneda(value: Any, moneda: Optional[str] = "USD") -> str:
    return f"{simbolo_moneda(moneda)} {format_number(value)}"


def format_fecha(value: Any) -> str:
    if value is None or value == "":
        return "N/A"
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    try:
        return datetime.fromisoformat(str(value)).strftime("%d/%m/%Y")
    except ValueError:
        return str(value)


def parsear_monto(value: Any) -> Optional[Decimal]:
    """Convierte números, cadenas decimales simples o con formato es-VE a Decimal.

    Devuelve None si el valor no es numérico.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    s = str(value).strip().replace(" ", "")
    for simbolo in ("Bs", "$"):
        s = s.replace(simbolo, "")
    if not s:
        return None
    if "," in s:
        # es-VE: el punto es separador de miles
        s = s.replace(".", "").replace(",", ".")
    try:
        num = Decimal(s)
    except InvalidOperation:
        return None
    if not num.is_finite():
        return None
    return num


def parsear_entero(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        num = Decimal(s)
    except InvalidOperation:
        return None
    if not num.is_finite() or num != num.to_integral_value():
        return None
    return int(num)


def parsear_fecha(value: Any) -> Optional[date]:
    """Acepta date/datetime, ISO ``YYYY-MM-DD`` (con o sin hora) y ``DD/MM/YYYY``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(s, "%d/%m/%Y").date()
    except ValueError:
        return None
