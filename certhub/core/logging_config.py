import logging
import logging.config
import json
from datetime import datetime
from typing import Dict, Any, Optional
from pathlib import Path

from certhub.core.config import settings


# Campos extra que se copian al JSON cuando vienen en el LogRecord
STRUCTURED_FIELDS = (
    "service",
    "endpoint",
    "method",
    "status_code",
    "response_time_ms",
    "request_id",
    "learner_id",
    "exam_id",
    "attempt_id",
    "trigger",
    "error_code",
)


class StructuredFormatter(logging.Formatter):
    """
    Formatter que genera logs en formato JSON estructurado
    para facilitar la integración con sistemas de monitoreo
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Formatea el registro de log como JSON estructurado
        """
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread": record.thread,
        }

        # Agregar información adicional si está disponible
        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Agregar información de excepción si existe
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 10


def _rotating_file(path: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "structured",
        "filename": str(path),
        "maxBytes": LOG_MAX_BYTES,
        "backupCount": LOG_BACKUP_COUNT,
        "level": level,
    }


def setup_logging(log_dir: Optional[str] = None) -> None:
    """
    Configura el sistema de logging con rotación y formato estructurado.

    - app.log: todo lo de certhub y uvicorn
    - errors.log: solo ERROR
    - exams.log: ciclo de vida de los intentos (inicio, envío, expiración)
    """
    log_path = Path(log_dir or settings.LOG_DIR)
    log_path.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {"()": StructuredFormatter},
            "simple": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": "INFO",
                "stream": "ext://sys.stdout",
            },
            "file_all": _rotating_file(log_path / "app.log", "INFO"),
            "file_errors": _rotating_file(log_path / "errors.log", "ERROR"),
            "file_exams": _rotating_file(log_path / "exams.log", "INFO"),
        },
        "loggers": {
            "certhub": {"level": "INFO", "handlers": ["console", "file_all", "file_errors"], "propagate": False},
            "certhub.services": {"level": "INFO", "handlers": ["console", "file_exams", "file_errors"], "propagate": False},
            "uvicorn": {"level": "INFO", "handlers": ["console", "file_all"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["file_all"], "propagate": False},
        },
        "root": {"level": "WARNING", "handlers": ["console", "file_all"]},
    })

    logger = logging.getLogger("certhub")
    logger.info("Logging system initialized successfully")
    logger.info(f"Log files will be stored in: {log_path.absolute()}")


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter personalizado para agregar contexto adicional a los logs
    """

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """
        Procesa el mensaje y kwargs antes del logging
        """
        # Combinar el contexto del adapter con el extra de la llamada
        if self.extra:
            merged = dict(self.extra)
            merged.update(kwargs.get('extra', {}))
            kwargs['extra'] = merged

        return msg, kwargs


def get_exam_logger() -> LoggerAdapter:
    """
    Obtiene un logger específico para el ciclo de vida de los intentos de examen
    """
    base_logger = logging.getLogger("certhub.services.exam_attempts")
    return LoggerAdapter(base_logger, {"service": "exam_attempts"})


def log_api_request(logger: logging.Logger, method: str, endpoint: str,
                    status_code: int = None, response_time_ms: int = None,
                    request_id: str = None, **kwargs):
    """
    Registra información de una petición API con contexto estructurado

    Args:
        logger: Logger a usar
        method: Método HTTP
        endpoint: Endpoint accedido
        status_code: Código de respuesta HTTP
        response_time_ms: Tiempo de respuesta en millisegundos
        request_id: Identificador de la petición
        **kwargs: Información adicional
    """
    extra = {
        "method": method,
        "endpoint": endpoint,
        "service": "api"
    }

    if status_code:
        extra["status_code"] = status_code
    if response_time_ms is not None:
        extra["response_time_ms"] = response_time_ms
    if request_id:
        extra["request_id"] = request_id

    extra.update(kwargs)

    if status_code and status_code >= 500:
        logger.error(f"API request failed: {method} {endpoint}", extra=extra)
    else:
        logger.info(f"API request: {method} {endpoint}", extra=extra)
