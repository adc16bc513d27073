"""Datos de referencia mínimos: roles, permisos, tipos de gasto y sucursal principal."""
import logging

from sqlmodel import Session, select

from backend.modelos import Permiso, Rol, RolPermiso, Sucursal, TipoGasto

logger = logging.getLogger(__name__)

ROLES = [
    (1, "SuperAdmin", "Acceso total"),
    (2, "Supervisor", "Supervisa registros y archivos"),
    (3, "Empleado", "Registra gastos y cotizaciones"),
]

PERMISOS = [
    "crear_gasto",
    "crear_cotizacion",
    "crear_proveedor",
    "crear_cliente",
    "eliminar_cliente",
    "crear_servicio",
    "gestionar_roles",
    "ver_usuarios",
    "crear_usuario",
    "editar_usuario",
    "ver_solicitudes_pago",
    "crear_sucursal",
    "editar_sucursal",
    "eliminar_sucursal",
    "crear_banco",
    "editar_banco",
    "eliminar_banco",
]

PERMISOS_POR_ROL = {
    2: PERMISOS[:6] + ["ver_usuarios", "ver_solicitudes_pago"],
    3: ["crear_gasto", "crear_cotizacion", "crear_cliente"],
}

TIPOS_GASTO = [
    (1, "Operativo", "Gastos operativos con proveedor", True),
    (2, "Administrativo", "Gastos de administración", False),
    (3, "Financiero", "Comisiones e intereses", False),
]


def sembrar_datos_base(db: Session) -> None:
    """Idempotente: solo inserta lo que falta."""
    for rol_id, nombre, descripcion in ROLES:
        if db.get(Rol, rol_id) is None:
            db.add(Rol(id=rol_id, nombre=nombre, descripcion=descripcion))

    existentes = {p.nombre for p in db.exec(select(Permiso)).all()}
    for nombre in PERMISOS:
        if nombre not in existentes:
            db.add(Permiso(nombre=nombre))
    db.flush()

    permisos = {p.nombre: p.id for p in db.exec(select(Permiso)).all()}
    for rol_id, nombres in PERMISOS_POR_ROL.items():
        for nombre in nombres:
            if db.get(RolPermiso, (rol_id, permisos[nombre])) is None:
                db.add(RolPermiso(rol_id=rol_id, permiso_id=permisos[nombre]))

    for tipo_id, nombre, descripcion, rentable in TIPOS_GASTO:
        if db.get(TipoGasto, tipo_id) is None:
            db.add(TipoGasto(id=tipo_id, nombre=nombre, descripcion=descripcion, rentable=rentable))

    if db.exec(select(Sucursal)).first() is None:
        db.add(Sucursal(codigo="PRINCIPAL", nombre="Principal", direccion="Caracas", ciudad="Caracas"))
    db.commit()
    logger.info("Datos base verificados")
