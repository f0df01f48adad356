from typing import Optional
from pydantic import BaseModel


class TokenPayload(BaseModel):
    """
    Schema para el payload del token JWT.
    sub = ID del alumno; role = "admin" habilita los reportes.
    """
    sub: Optional[str] = None
    role: Optional[str] = None
