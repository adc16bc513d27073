from fastapi import APIRouter, Depends

from backend.gestion.cuota_manager import obtener_uso
from backend.modelos import Usuario
from backend.security import obtener_usuario_actual

router = APIRouter(prefix="/almacenamiento", tags=["Almacenamiento"])


@router.get("/mi-uso")
def obtener_uso_almacenamiento(usuario: Usuario = Depends(obtener_usuario_actual)):
    return obtener_uso(usuario)
