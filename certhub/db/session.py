# certhub/db/session.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from certhub.core.config import settings


def create_db_engine(database_uri: str, **kwargs) -> Engine:
    """
    Crea el motor de SQLAlchemy.

    En SQLite (desarrollo local y pruebas) cada transacción se abre con
    BEGIN IMMEDIATE y un busy timeout: los escritores concurrentes esperan su
    turno en lugar de fallar con "database is locked", igual que los bloqueos
    de fila de PostgreSQL serializan el cierre de un intento.
    """
    if not database_uri.startswith("sqlite"):
        return create_engine(database_uri, pool_pre_ping=True, **kwargs)

    engine = create_engine(
        database_uri,
        connect_args={"check_same_thread": False, "timeout": 30},
        **kwargs
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


# Se crea el motor (engine) de SQLAlchemy usando la URI de la configuración.
engine = create_db_engine(settings.DATABASE_URI)

# Se crea una fábrica de sesiones que se usará para crear sesiones individuales.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Función generadora para obtener instancias de base de datos
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
