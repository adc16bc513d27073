#!/usr/bin/env python3
"""Crea las tablas, carga los datos base y el primer usuario SuperAdmin."""

import os
import sys
import argparse
import logging

# Asegurar import del paquete backend
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from sqlmodel import select
from backend.database import SessionLocal, create_db_and_tables
from backend.gestion.semilla import sembrar_datos_base
from backend.modelos import Usuario
from backend.security import get_password_hash

logger = logging.getLogger("inicializar_db")


def crear_admin(username: str, password: str, nombre: str, email: str | None) -> bool:
    with SessionLocal() as db:
        sembrar_datos_base(db)
        existente = db.exec(select(Usuario).where(Usuario.nombre_usuario == username)).first()
        if existente:
            logger.warning(f"El usuario '{username}' ya existe (ID: {existente.id}). No se realizan cambios.")
            return False
        admin = Usuario(
            nombre_usuario=username,
            nombre=nombre,
            email=email,
            password_hash=get_password_hash(password),
            rol_id=1,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        logger.info(f"Usuario SuperAdmin '{username}' creado con ID {admin.id}")
        return True


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
    parser = argparse.ArgumentParser(description="Inicializa la base de datos y crea el primer SuperAdmin.")
    parser.add_argument("username", help="Nombre de usuario del administrador")
    parser.add_argument("password", help="Contraseña del administrador")
    parser.add_argument("--nombre", default="Administrador", help="Nombre visible")
    parser.add_argument("--email", default=None, help="Email del administrador")
    args = parser.parse_args()

    create_db_and_tables()
    ok = crear_admin(args.username, args.password, args.nombre, args.email)
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
