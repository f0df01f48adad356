# certhub/scripts/prestart.py
import logging
import sys
import time
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from certhub.core.config import settings
from certhub.db.session import create_db_engine

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

max_tries = 60
wait_seconds = 2


def wait_for_db() -> bool:
    # Imprimimos la URI que estamos intentando usar para depuración
    db_uri_censored = str(settings.DATABASE_URI).replace(settings.POSTGRES_PASSWORD, "******")
    logger.info(f"Esperando a la base de datos en: {db_uri_censored}")

    engine = create_db_engine(settings.DATABASE_URI)
    for i in range(1, max_tries + 1):
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            logger.info("Conexión a la base de datos establecida")
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Intento {i}/{max_tries}: Base de datos no está lista. Reintentando...")
            logger.debug(f"Error de conexión: {e}")
            time.sleep(wait_seconds)

    logger.error("No se pudo conectar a la base de datos después de varios intentos. Saliendo.")
    return False


if __name__ == "__main__":
    sys.exit(0 if wait_for_db() else 1)
