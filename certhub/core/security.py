from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Union

from jose import jwt

from certhub.core.config import settings


def create_access_token(
    subject: Union[str, Any], expires_delta: timedelta = None, role: Optional[str] = None
) -> str:
    """
    Crea un token de acceso JWT.
    Los tokens de alumnos los emite el servicio de autenticación; esta función
    se usa en herramientas internas y pruebas.
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
    to_encode = {"exp": expire, "sub": str(subject)}
    if role:
        to_encode["role"] = role
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decodifica y valida un token JWT. Lanza JWTError si es inválido o expiró.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
