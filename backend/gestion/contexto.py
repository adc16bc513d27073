from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ContextoSolicitud:
    """Identidad del solicitante que viaja explícita hacia validadores y controladores."""
    usuario_id: Optional[int]
    rol_id: Optional[int] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None

    @property
    def autenticado(self) -> bool:
        return self.usuario_id is not None
