from typing import Optional

from sqlmodel import Session

from backend.modelos import Usuario

BYTES_POR_MB = 1024 * 1024


def tiene_espacio(cuota_mb: Optional[int], uso_bytes: int, nuevos_bytes: int) -> bool:
    """Admite si uso + nuevos <= cuota. Cuota NULL es ilimitada."""
    if cuota_mb is None:
        return True
    return (uso_bytes or 0) + nuevos_bytes <= cuota_mb * BYTES_POR_MB


def sumar_uso_storage(db: Session, usuario_id: int, bytes_agregados: int) -> None:
    """Suma al uso acumulado; el commit queda a cargo del llamador."""
    usuario = db.get(Usuario, usuario_id)
    if usuario is None:
        return
    usuario.uso_storage_bytes = (usuario.uso_storage_bytes or 0) + max(bytes_agregados, 0)
    db.add(usuario)


def obtener_uso(usuario: Usuario) -> dict:
    usado_mb = round((usuario.uso_storage_bytes or 0) / BYTES_POR_MB, 2)
    if usuario.cuota_mb is None:
        return {"cuotaMb": None, "usadoMb": usado_mb, "disponibleMb": None, "porcentajeUso": None}
    disponible = round(max(usuario.cuota_mb - usado_mb, 0), 2)
    porcentaje = round(usado_mb / usuario.cuota_mb * 100, 2) if usuario.cuota_mb else 100.0
    return {
        "cuotaMb": usuario.cuota_mb,
        "usadoMb": usado_mb,
        "disponibleMb": disponible,
        "porcentajeUso": porcentaje,
    }
