# backend/database.py

import logging
from sqlmodel import create_engine, Session, SQLModel
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL


def _crear_engine(url: str):
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        # En memoria todas las sesiones deben compartir la misma conexión
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    safe = url.split("@")[-1]
    logger.info(f"[DB] Conectando a ...@{safe}")
    return create_engine(
        url,
        echo=False,
        pool_size=20,
        max_overflow=40,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


engine = _crear_engine(DATABASE_URL)

# Fábrica de sesiones para scripts externos y para get_db
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=Session)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_db_and_tables():
    # Importación local para evitar ciclos; registra las tablas en el metadata
    from backend import modelos  # noqa: F401
    logger.info("Creando tablas en la base de datos...")
    SQLModel.metadata.create_all(engine)
    logger.info("Tablas creadas exitosamente.")
