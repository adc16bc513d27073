from datetime import date
from decimal import Decimal

from backend.database import SessionLocal
from backend.gestion.validaciones import ArchivoAdjunto, validar_registro
from backend.modelos import Cliente, Cotizacion, CuentaPorCobrar, ServicioProducto, Sucursal

PROVEEDOR = {
    "nombre": "Logística del Centro",
    "email": "ventas@logcentro.com",
    "telefono": "0241555987",
    "direccion": "Valencia",
    "rif": "J-987654321",
    "estado": "activo",
}

CLIENTE = {
    "nombre": "María Gómez",
    "email": "maria@gomez.com",
    "telefono": "04141234567",
    "direccion": "Maracay",
    "identificacion": "V20123456",
    "sucursal_id": 1,
}

SUCURSAL = {
    "codigo": "OCC01",
    "nombre": " Occidente ",
    "direccion": "Av. 5 de Julio, Maracaibo",
    "ciudad": "Maracaibo",
    "pais": "",
    "telefono": "+58 261 5551234",
    "email": "occidente@ejemplo.com",
}

BANCO = {
    "nombre": "Banco de Venezuela",
    "moneda": "VES",
    "tipo_identificador": "nro_cuenta",
    "identificador": "01020123456789",
}

ZELLE = {
    "nombre": "Zelle",
    "moneda": "USD",
    "tipo_identificador": "email",
    "identificador": "pagos@ejemplo.com",
}

SERVICIO = {
    "nombre": "Almacenaje",
    "descripcion": "Almacenaje por día",
    "precio": "25,50",
    "tipo": "servicio",
    "porcentaje_iva": 16,
}


# --- Proveedores ---

def test_listar_proveedores_con_busqueda(client, auth_empleado):
    r = client.get("/proveedores", params={"buscar": "Trans", "limit": 500}, headers=auth_empleado)
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1
    assert body["limit"] == 100
    assert body["proveedores"][0]["rif"] == "J-123456789"

    r = client.get("/proveedores", params={"buscar": "Zeta"}, headers=auth_empleado)
    assert r.json()["total"] == 0


def test_check_proveedor(client, auth_empleado):
    r = client.get("/proveedores/check", params={"email": "info@andinos.com"}, headers=auth_empleado)
    assert r.json() == {"exists": True, "duplicateFields": {"nombre": False, "email": True, "telefono": False}}

    r = client.get("/proveedores/check", params={"nombre": "Nadie"}, headers=auth_empleado)
    assert r.json()["exists"] is False


def test_check_proveedor_sin_parametros(client, auth_empleado):
    r = client.get("/proveedores/check", headers=auth_empleado)
    assert r.status_code == 400
    assert "error" in r.json()


def test_crear_proveedor(client, auth_admin):
    r = client.post("/proveedores", json=PROVEEDOR, headers=auth_admin)
    assert r.status_code == 201, r.text
    assert r.json()["nombre"] == "Logística del Centro"


def test_crear_proveedor_requiere_permiso(client, auth_empleado):
    r = client.post("/proveedores", json=PROVEEDOR, headers=auth_empleado)
    assert r.status_code == 403


def test_crear_proveedor_validaciones(client, auth_admin):
    r = client.post("/proveedores", json=dict(PROVEEDOR, rif="123"), headers=auth_admin)
    assert r.status_code == 400
    assert r.json() == {"message": "El RIF debe tener formato J-XXXXXXXXX"}

    r = client.post("/proveedores", json=dict(PROVEEDOR, direccion=""), headers=auth_admin)
    assert r.json() == {"message": "Todos los campos son obligatorios"}


def test_crear_proveedor_duplicado(client, auth_admin):
    r = client.post("/proveedores", json=dict(PROVEEDOR, telefono="0212555123"), headers=auth_admin)
    assert r.status_code == 400
    assert r.json()["duplicateFields"]["telefono"] is True


# --- Clientes ---

def test_crear_cliente(client, auth_empleado):
    r = client.post("/clientes", json=CLIENTE, headers=auth_empleado)
    assert r.status_code == 201, r.text
    assert r.json()["sucursal_id"] == 1


def test_crear_cliente_acumula_errores(client, auth_empleado):
    datos = dict(CLIENTE, nombre="María 2", telefono="12", identificacion="X1")
    r = client.post("/clientes", json=datos, headers=auth_empleado)
    assert r.status_code == 422
    assert r.json()["errores"] == [
        "El nombre solo puede contener letras y espacios.",
        "Teléfono inválido (7-15 dígitos).",
        "Identificación: V/E + 5-10 dígitos.",
    ]


def test_crear_cliente_duplicado(client, auth_empleado):
    r = client.post("/clientes", json=dict(CLIENTE, identificacion="V12345678"), headers=auth_empleado)
    assert r.status_code == 409
    assert r.json() == {"message": "Conflicto de datos únicos", "errores": ["Email o identificación ya registrados."]}


def test_crear_cliente_sucursal_inexistente(client, auth_empleado):
    r = client.post("/clientes", json=dict(CLIENTE, sucursal_id=99), headers=auth_empleado)
    assert r.status_code == 404


def test_eliminar_cliente_con_pendientes(client, auth_admin):
    with SessionLocal() as s:
        s.add(CuentaPorCobrar(cliente_id=7, monto=Decimal("40.00")))
        s.commit()
    r = client.delete("/clientes/7", headers=auth_admin)
    assert r.status_code == 400
    assert r.json() == {"error": "No se puede eliminar: el cliente tiene cuentas por cobrar pendientes."}


def test_eliminar_cliente_con_cotizacion_en_proceso(client, auth_admin):
    with SessionLocal() as s:
        s.add(Cotizacion(cliente_id=7, usuario_id=1, sucursal_id=1, fecha=date(2024, 5, 10), total=Decimal("10")))
        s.commit()
    r = client.delete("/clientes/7", headers=auth_admin)
    assert r.status_code == 400
    assert r.json() == {"error": "No se puede eliminar: el cliente tiene cotizaciones en proceso."}


def test_eliminar_cliente(client, auth_admin):
    r = client.delete("/clientes/8", headers=auth_admin)
    assert r.status_code == 200
    assert r.json() == {"message": "Cliente eliminado correctamente"}
    with SessionLocal() as s:
        assert s.get(Cliente, 8) is None


def test_eliminar_cliente_inexistente(client, auth_admin):
    r = client.delete("/clientes/999", headers=auth_admin)
    assert r.status_code == 404
    assert r.json() == {"message": "Cliente no encontrado"}


def test_eliminar_cliente_requiere_permiso(client, auth_empleado):
    r = client.delete("/clientes/8", headers=auth_empleado)
    assert r.status_code == 403


# --- Servicios y productos ---

def test_crear_servicio(client, auth_admin):
    r = client.post("/servicios-productos", json=SERVICIO, headers=auth_admin)
    assert r.status_code == 201, r.text
    with SessionLocal() as s:
        item = s.get(ServicioProducto, r.json()["id"])
        assert Decimal(str(item.precio)) == Decimal("25.50")
        assert item.porcentaje_iva == 16


def test_servicio_iva_fuera_de_lista(client, auth_admin):
    r = client.post("/servicios-productos", json=dict(SERVICIO, porcentaje_iva=12), headers=auth_admin)
    assert r.status_code == 422
    assert r.json()["errores"] == ["El porcentaje de IVA debe ser 0, 8 o 16."]


def test_producto_exige_cantidades(client, auth_admin):
    r = client.post("/servicios-productos", json=dict(SERVICIO, tipo="producto"), headers=auth_admin)
    assert r.status_code == 422
    assert r.json()["errores"] == ["Los productos deben tener cantidades válidas (actual y anterior)."]


def test_listar_por_tipo(client, auth_empleado):
    r = client.get("/servicios-productos", params={"tipo": "producto"}, headers=auth_empleado)
    assert [i["id"] for i in r.json()] == [6]


# --- Sucursales ---

def test_listar_sucursales_y_dropdown(client, auth_empleado):
    r = client.get("/sucursales", headers=auth_empleado)
    assert r.status_code == 200
    assert r.json()[0]["codigo"] == "PRINCIPAL"
    r = client.get("/sucursales/dropdown/list", headers=auth_empleado)
    assert r.json() == [{"id": 1, "nombre": "Principal"}]


def test_crear_sucursal(client, auth_admin):
    r = client.post("/sucursales", json=SUCURSAL, headers=auth_admin)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["codigo"] == "OCC01"
    assert body["nombre"] == "Occidente"
    assert body["pais"] is None
    assert body["telefono"] == "+58 261 5551234"


def test_crear_sucursal_requiere_permiso(client, auth_empleado):
    r = client.post("/sucursales", json=SUCURSAL, headers=auth_empleado)
    assert r.status_code == 403


def test_crear_sucursal_campos_faltantes(client, auth_admin):
    r = client.post("/sucursales", json={"nombre": "Occidente"}, headers=auth_admin)
    assert r.status_code == 400
    assert r.json() == {
        "message": "Código, nombre y dirección son campos obligatorios",
        "detalles": {"codigo": "Falta el código", "nombre": None, "direccion": "Falta la dirección"},
    }


def test_crear_sucursal_formatos_invalidos(client, auth_admin):
    datos = dict(SUCURSAL, codigo="occ-1", email="no-es-email")
    r = client.post("/sucursales", json=datos, headers=auth_admin)
    assert r.status_code == 400
    body = r.json()
    assert body["message"] == "Errores de validación"
    assert set(body["errores"]) == {"codigo", "email"}


def test_crear_sucursal_codigo_repetido(client, auth_admin):
    r = client.post("/sucursales", json=dict(SUCURSAL, codigo="PRINCIPAL"), headers=auth_admin)
    assert r.status_code == 409


def test_sucursal_nueva_sirve_para_registrar_gastos(client, auth_admin, db, ctx_admin):
    sucursal_id = client.post("/sucursales", json=SUCURSAL, headers=auth_admin).json()["id"]
    datos = {"tipo": "gasto", "tipo_gasto_id": "2", "concepto_pago": "Papelería", "subtotal": "100",
             "fecha": "2024-05-10", "sucursal_id": str(sucursal_id)}
    adjunto = ArchivoAdjunto("factura-occ.pdf", b"%PDF-1.4", "application/pdf")
    assert validar_registro(db, datos, adjunto, ctx_admin).datos["sucursal_id"] == sucursal_id


def test_actualizar_sucursal_parcial(client, auth_admin):
    r = client.patch("/sucursales/1", json={"nombre": "Sede Central", "otro": "x"}, headers=auth_admin)
    assert r.status_code == 200, r.text
    assert r.json()["nombre"] == "Sede Central"
    assert r.json()["codigo"] == "PRINCIPAL"

    assert client.patch("/sucursales/99", json={"nombre": "X"}, headers=auth_admin).status_code == 404


def test_eliminar_sucursal(client, auth_admin):
    r = client.delete("/sucursales/1", headers=auth_admin)
    assert r.status_code == 400
    assert r.json() == {"message": "No se puede eliminar: la sucursal tiene registros asociados."}

    sucursal_id = client.post("/sucursales", json=SUCURSAL, headers=auth_admin).json()["id"]
    r = client.delete(f"/sucursales/{sucursal_id}", headers=auth_admin)
    assert r.status_code == 200
    with SessionLocal() as s:
        assert s.get(Sucursal, sucursal_id) is None


# --- Bancos ---

def test_crear_banco(client, auth_admin):
    r = client.post("/bancos", json=BANCO, headers=auth_admin)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "Banco creado correctamente"
    assert body["estado"] == "activo"
    assert body["identificador"] == "01020123456789"


def test_crear_banco_requiere_permiso(client, auth_empleado):
    assert client.post("/bancos", json=BANCO, headers=auth_empleado).status_code == 403


def test_crear_banco_validaciones(client, auth_admin):
    casos = [
        ({"nombre": "Banesco"}, "Los campos nombre, moneda, tipo_identificador e identificador son obligatorios."),
        (dict(BANCO, nombre="Banco 123"), "El nombre sólo puede contener letras y espacios."),
        (dict(BANCO, moneda="EUR"), "La moneda debe ser 'VES' o 'USD'."),
        (dict(BANCO, tipo_identificador="pago_movil"), "El tipo_identificador debe ser 'nro_cuenta' o 'email'."),
        (dict(BANCO, identificador="0102-0123"), "El identificador debe contener sólo dígitos."),
        (dict(BANCO, tipo_identificador="email", identificador="zelle"), "El identificador debe ser un email válido."),
        (dict(BANCO, estado="cerrado"), "El estado debe ser 'activo' o 'inactivo'."),
    ]
    for datos, mensaje in casos:
        r = client.post("/bancos", json=datos, headers=auth_admin)
        assert r.status_code == 400
        assert r.json() == {"message": mensaje}


def test_crear_banco_duplicado(client, auth_admin):
    client.post("/bancos", json=BANCO, headers=auth_admin)
    r = client.post("/bancos", json=dict(BANCO, nombre="Otro Banco"), headers=auth_admin)
    assert r.status_code == 409
    assert r.json() == {"message": "Banco ya registrado"}


def test_listar_y_obtener_bancos(client, auth_admin, auth_empleado):
    client.post("/bancos", json=BANCO, headers=auth_admin)
    client.post("/bancos", json=ZELLE, headers=auth_admin)

    r = client.get("/bancos", headers=auth_empleado)
    assert [b["nombre"] for b in r.json()["bancos"]] == ["Zelle", "Banco de Venezuela"]

    r = client.get("/bancos", params={"tipo_identificador": "email"}, headers=auth_empleado)
    assert [b["nombre"] for b in r.json()["bancos"]] == ["Zelle"]

    banco_id = r.json()["bancos"][0]["id"]
    assert client.get(f"/bancos/{banco_id}", headers=auth_empleado).json()["moneda"] == "USD"
    assert client.get("/bancos/999", headers=auth_empleado).status_code == 404


def test_eliminar_banco_activo_e_inactivo(client, auth_admin):
    banco_id = client.post("/bancos", json=BANCO, headers=auth_admin).json()["id"]
    r = client.delete(f"/bancos/{banco_id}", headers=auth_admin)
    assert r.status_code == 400
    assert r.json() == {"message": "No se puede eliminar un banco activo. Primero inactívelo."}

    r = client.put(f"/bancos/{banco_id}", json=dict(BANCO, estado="inactivo"), headers=auth_admin)
    assert r.status_code == 200
    r = client.delete(f"/bancos/{banco_id}", headers=auth_admin)
    assert r.json() == {"message": "Banco eliminado correctamente"}
    assert client.delete(f"/bancos/{banco_id}", headers=auth_admin).status_code == 404


# --- Roles ---

def test_crear_rol_sin_nombre(client, auth_admin):
    r = client.post("/roles", json={"descripcion": "x"}, headers=auth_admin)
    assert r.status_code == 400
    assert r.json() == {"message": "El nombre del rol es obligatorio"}


def test_crear_rol_y_asignar_permisos(client, auth_admin):
    r = client.post("/roles", json={"nombre": "Contador"}, headers=auth_admin)
    assert r.status_code == 201
    rol_id = r.json()["id"]

    permisos = client.get("/roles/2/permisos", headers=auth_admin).json()
    ids = [p["id"] for p in permisos][:2]
    r = client.put(f"/roles/{rol_id}/permisos", json={"permisos": ids}, headers=auth_admin)
    assert r.status_code == 200
    asignados = client.get(f"/roles/{rol_id}/permisos", headers=auth_admin).json()
    assert sorted(p["id"] for p in asignados) == sorted(ids)


def test_gestionar_roles_requiere_permiso(client, auth_empleado):
    r = client.post("/roles", json={"nombre": "Otro"}, headers=auth_empleado)
    assert r.status_code == 403
