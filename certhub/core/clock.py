# certhub/core/clock.py
"""
Reloj autoritativo del servidor.

Toda operación sensible al tiempo (inicio, vencimiento, envío) consulta este
reloj; la hora que reporte el navegador nunca participa en el cálculo de la
fecha límite. Las respuestas que incluyen una fecha límite incluyen también
`server_now`, para que el cliente calcule su desfase una sola vez.
"""
from datetime import datetime, timezone
from typing import Optional


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normaliza un datetime a UTC con zona horaria.
    SQLite devuelve datetimes "naive"; se asume que están en UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock:
    """Interfaz mínima del reloj."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Reloj de pared del servidor, siempre en UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = SystemClock()
