# certhub/core/config.py
from dataclasses import dataclass
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn, computed_field


class Settings(BaseSettings):
    """
    Gestiona la configuración de la aplicación cargando variables de entorno.
    Utiliza Pydantic para la validación de tipos.
    """
    model_config = SettingsConfigDict(
        env_file=".env", env_ignore_case=True, extra="ignore"
    )

    # Variables de la base de datos leídas desde el archivo .env
    POSTGRES_USER: str = "certhub"
    POSTGRES_PASSWORD: str = "certhub"
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_DB: str = "certhub"
    POSTGRES_PORT: int = 5432

    # Si se define, tiene prioridad sobre POSTGRES_* (p. ej. sqlite:///./certhub.db)
    DATABASE_URL: Optional[str] = None

    # --- JWT Settings ---
    SECRET_KEY: str = "dev-secret-key-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # --- Exam engine ---
    EXAM_PASS_THRESHOLD: float = 70.0
    EXAM_DEFAULT_DURATION_MINUTES: int = 30
    EXAM_SHUFFLE_ENABLED: bool = True
    EXAM_RESET_TRAININGS_ON_FAIL: bool = False

    # Barrido periódico de intentos vencidos (opcional, la expiración perezosa basta)
    EXPIRY_SWEEP_ENABLED: bool = False
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = 60
    EXPIRY_SWEEP_BATCH_SIZE: int = 200

    # --- Logging / CORS ---
    LOG_DIR: str = "logs"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    @computed_field
    @property
    def DATABASE_URI(self) -> str:
        """
        Genera la URI de conexión a la base de datos en formato SQLAlchemy.
        Pydantic validará que la URI construida sea correcta.
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        dsn = PostgresDsn.build(
            scheme="postgresql+psycopg2",
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_SERVER,
            port=self.POSTGRES_PORT,
            path=self.POSTGRES_DB,
        )
        return str(dsn)


@dataclass(frozen=True)
class ExamEngineConfig:
    """
    Parámetros explícitos del motor de exámenes.

    Se construye una vez a partir de Settings y se inyecta en el controlador
    de intentos y en el motor de calificación; ninguno de los dos lee el
    estado global directamente.
    """
    pass_threshold: float = 70.0
    default_duration_minutes: int = 30
    shuffle_enabled: bool = True
    reset_trainings_on_fail: bool = False

    @classmethod
    def from_settings(cls, source: "Settings") -> "ExamEngineConfig":
        return cls(
            pass_threshold=source.EXAM_PASS_THRESHOLD,
            default_duration_minutes=source.EXAM_DEFAULT_DURATION_MINUTES,
            shuffle_enabled=source.EXAM_SHUFFLE_ENABLED,
            reset_trainings_on_fail=source.EXAM_RESET_TRAININGS_ON_FAIL,
        )


# Instancia única de la configuración que será usada en toda la aplicación.
settings = Settings()
