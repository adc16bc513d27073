from . import (
    almacenamiento,
    archivos,
    auth_router,
    bancos,
    clientes,
    proveedores,
    registros,
    roles,
    servicios_productos,
    solicitudes_pago,
    sucursales,
    usuarios,
)
