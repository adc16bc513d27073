#/gastosAPI/backend/modelos.py

from datetime import datetime, date, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlmodel import Field, Relationship, SQLModel, JSON, Column
from sqlalchemy import DECIMAL, BigInteger, Text, UniqueConstraint, event


def _ahora() -> datetime:
    return datetime.now(timezone.utc)


# ===================================================================
# === USUARIOS, ROLES Y PERMISOS
# ===================================================================

class Rol(SQLModel, table=True):
    __tablename__ = "roles"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(index=True, unique=True)
    descripcion: Optional[str] = None
    usuarios: List["Usuario"] = Relationship(back_populates="rol")


class Permiso(SQLModel, table=True):
    __tablename__ = "permisos"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(index=True, unique=True)
    descripcion: Optional[str] = None


class RolPermiso(SQLModel, table=True):
    __tablename__ = "roles_permisos"
    rol_id: int = Field(foreign_key="roles.id", primary_key=True)
    permiso_id: int = Field(foreign_key="permisos.id", primary_key=True)


class Usuario(SQLModel, table=True):
    __tablename__ = "usuarios"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre_usuario: str = Field(index=True, unique=True)
    nombre: str
    email: Optional[str] = Field(default=None, index=True, unique=True)
    password_hash: str
    estado: str = Field(default="activo")
    # Clave en el almacenamiento de la imagen de firma
    firma: Optional[str] = None
    # NULL = sin límite
    cuota_mb: Optional[int] = None
    uso_storage_bytes: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    creado_en: datetime = Field(default_factory=_ahora)
    rol_id: int = Field(foreign_key="roles.id")
    rol: Optional[Rol] = Relationship(back_populates="usuarios")


# ===================================================================
# === CATÁLOGOS
# ===================================================================

class Sucursal(SQLModel, table=True):
    __tablename__ = "sucursales"
    id: Optional[int] = Field(default=None, primary_key=True)
    codigo: Optional[str] = Field(default=None, unique=True)
    nombre: str
    direccion: Optional[str] = None
    ciudad: Optional[str] = None
    estado_provincia: Optional[str] = None
    pais: Optional[str] = None
    telefono: Optional[str] = None
    email: Optional[str] = None
    responsable: Optional[str] = None


class Cliente(SQLModel, table=True):
    __tablename__ = "clientes"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(index=True)
    email: str = Field(index=True, unique=True)
    telefono: str
    direccion: str
    identificacion: str = Field(index=True, unique=True)
    sucursal_id: Optional[int] = Field(default=None, foreign_key="sucursales.id")


class Proveedor(SQLModel, table=True):
    __tablename__ = "proveedores"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(index=True)
    email: str
    telefono: str
    direccion: str
    rif: str
    estado: str = Field(default="activo")


class TipoGasto(SQLModel, table=True):
    __tablename__ = "tipos_gasto"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(unique=True)
    descripcion: Optional[str] = None
    rentable: bool = Field(default=False)


class ServicioProducto(SQLModel, table=True):
    __tablename__ = "servicios_productos"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(index=True)
    descripcion: str
    precio: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    tipo: str  # servicio | producto
    porcentaje_iva: int = Field(default=16)
    cantidad_actual: int = Field(default=0)
    cantidad_anterior: int = Field(default=0)
    estado: str = Field(default="activo")


class Banco(SQLModel, table=True):
    __tablename__ = "bancos"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(index=True)
    moneda: str = Field(default="VES")
    tipo_identificador: str = Field(default="nro_cuenta")  # nro_cuenta | email
    identificador: Optional[str] = None
    estado: str = Field(default="activo")
    actualizado_en: datetime = Field(default_factory=_ahora)


# ===================================================================
# === REGISTROS: GASTOS Y COTIZACIONES
# ===================================================================

class Gasto(SQLModel, table=True):
    __tablename__ = "gastos"
    __table_args__ = (
        UniqueConstraint("proveedor_clave", "concepto_pago", "subtotal", "fecha", "sucursal_id", name="uq_gasto_duplicado"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    codigo: Optional[str] = Field(default=None, index=True)
    proveedor_id: Optional[int] = Field(default=None, foreign_key="proveedores.id")
    # proveedor_id o 0: la restricción única no distingue NULLs
    proveedor_clave: int = Field(default=0)
    tipo_gasto_id: int = Field(foreign_key="tipos_gasto.id")
    concepto_pago: str
    descripcion: Optional[str] = Field(default=None, sa_column=Column(Text))
    subtotal: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    porcentaje_iva: Decimal = Field(default=Decimal("0"), sa_column=Column(DECIMAL(5, 2), nullable=False))
    impuesto: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    total: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    fecha: date
    sucursal_id: int = Field(foreign_key="sucursales.id")
    cotizacion_id: Optional[int] = Field(default=None, foreign_key="cotizaciones.id")
    moneda: str = Field(default="USD")
    tasa_cambio: Optional[Decimal] = Field(default=None, sa_column=Column(DECIMAL(14, 4)))
    estado: str = Field(default="pendiente")
    documento: Optional[str] = None
    usuario_id: int = Field(foreign_key="usuarios.id")
    created_at: datetime = Field(default_factory=_ahora)
    updated_at: datetime = Field(default_factory=_ahora)


@event.listens_for(Gasto, "before_insert")
@event.listens_for(Gasto, "before_update")
def _sincronizar_proveedor_clave(mapper, connection, gasto: Gasto) -> None:
    gasto.proveedor_clave = gasto.proveedor_id or 0


class Cotizacion(SQLModel, table=True):
    __tablename__ = "cotizaciones"
    __table_args__ = (
        UniqueConstraint("cliente_id", "fecha", "total", name="uq_cotizacion_duplicada"),
    )
    id: Optional[int] = Field(default=None, primary_key=True)
    codigo_referencia: Optional[str] = Field(default=None, index=True)
    cliente_id: int = Field(foreign_key="clientes.id")
    usuario_id: int = Field(foreign_key="usuarios.id")
    sucursal_id: int = Field(foreign_key="sucursales.id")
    fecha: date
    subtotal: Decimal = Field(default=Decimal("0"), sa_column=Column(DECIMAL(12, 2), nullable=False))
    impuesto: Decimal = Field(default=Decimal("0"), sa_column=Column(DECIMAL(12, 2), nullable=False))
    total: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    estado: str = Field(default="pendiente")
    confirmacion_cliente: bool = Field(default=False)
    observaciones: Optional[str] = Field(default=None, sa_column=Column(Text))
    operacion: Optional[str] = None
    puerto: Optional[str] = None
    bl: Optional[str] = None
    mercancia: Optional[str] = None
    contenedor: Optional[str] = None
    created_at: datetime = Field(default_factory=_ahora)
    detalles: List["DetalleCotizacion"] = Relationship(back_populates="cotizacion")


class DetalleCotizacion(SQLModel, table=True):
    __tablename__ = "detalle_cotizacion"
    id: Optional[int] = Field(default=None, primary_key=True)
    cotizacion_id: int = Field(foreign_key="cotizaciones.id")
    servicio_productos_id: int = Field(foreign_key="servicios_productos.id")
    cantidad: int
    precio_unitario: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    porcentaje_iva: Decimal = Field(default=Decimal("16"), sa_column=Column(DECIMAL(5, 2), nullable=False))
    subtotal: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    impuesto: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    total: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    cotizacion: Optional[Cotizacion] = Relationship(back_populates="detalles")


class CuentaPorCobrar(SQLModel, table=True):
    __tablename__ = "cuentas_por_cobrar"
    id: Optional[int] = Field(default=None, primary_key=True)
    cliente_id: int = Field(foreign_key="clientes.id")
    cotizacion_id: Optional[int] = Field(default=None, foreign_key="cotizaciones.id")
    monto: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    estado: str = Field(default="pendiente")
    fecha_emision: date = Field(default_factory=date.today)


class SolicitudPago(SQLModel, table=True):
    __tablename__ = "solicitudes_pago"
    id: Optional[int] = Field(default=None, primary_key=True)
    codigo: Optional[str] = Field(default=None, index=True)
    gasto_id: Optional[int] = Field(default=None, foreign_key="gastos.id")
    proveedor_id: Optional[int] = Field(default=None, foreign_key="proveedores.id")
    banco_id: Optional[int] = Field(default=None, foreign_key="bancos.id")
    usuario_solicita_id: int = Field(foreign_key="usuarios.id")
    usuario_revisa_id: Optional[int] = Field(default=None, foreign_key="usuarios.id")
    usuario_aprueba_id: Optional[int] = Field(default=None, foreign_key="usuarios.id")
    metodo_pago: str = Field(default="TRANSFERENCIA")
    referencia_pago: Optional[str] = None
    monto_total: Decimal = Field(sa_column=Column(DECIMAL(12, 2), nullable=False))
    monto_pagado: Decimal = Field(default=Decimal("0"), sa_column=Column(DECIMAL(12, 2), nullable=False))
    moneda: str = Field(default="USD")
    tasa_cambio: Optional[Decimal] = Field(default=None, sa_column=Column(DECIMAL(14, 4)))
    estado: str = Field(default="por_pagar")
    observaciones: Optional[str] = Field(default=None, sa_column=Column(Text))
    fecha_solicitud: date = Field(default_factory=date.today)
    fecha_pago: Optional[date] = None


# ===================================================================
# === REPOSITORIO DE ARCHIVOS Y AUDITORÍA
# ===================================================================

class CarpetaArchivo(SQLModel, table=True):
    __tablename__ = "carpetas"
    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str
    prefijo: str
    creado_por: int = Field(foreign_key="usuarios.id")
    creado_en: datetime = Field(default_factory=_ahora)


class Archivo(SQLModel, table=True):
    __tablename__ = "archivos"
    id: Optional[int] = Field(default=None, primary_key=True)
    registro_tipo: str = Field(index=True)
    registro_id: Optional[int] = Field(default=None, index=True)
    carpeta_id: Optional[int] = Field(default=None, foreign_key="carpetas.id")
    nombre_original: str = Field(index=True)
    extension: str
    tamanio_bytes: int = Field(default=0, sa_column=Column(BigInteger, nullable=False, default=0))
    ruta_s3: str
    subido_por: int = Field(foreign_key="usuarios.id")
    creado_en: datetime = Field(default_factory=_ahora)
    actualizado_en: datetime = Field(default_factory=_ahora)


class EventoArchivo(SQLModel, table=True):
    """Bitácora append-only de acciones sobre archivos."""
    __tablename__ = "eventos_archivo"
    id: Optional[int] = Field(default=None, primary_key=True)
    archivo_id: int = Field(foreign_key="archivos.id", index=True)
    accion: str
    usuario_id: int = Field(foreign_key="usuarios.id")
    fecha_hora: datetime = Field(default_factory=_ahora)
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    detalles: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
