from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from certhub.core.clock import Clock, system_clock
from certhub.core.config import ExamEngineConfig, settings
from certhub.core.security import decode_access_token
from certhub.db.session import get_db
from certhub.schemas.token import TokenPayload
from certhub.services.exam_attempt_service import ExamAttemptService

# Los tokens los emite el servicio de autenticación externo
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def get_token_payload(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    """
    Dependencia que valida el token JWT y devuelve su payload.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = TokenPayload(**decode_access_token(token))
    except (JWTError, ValidationError):
        raise credentials_exception

    if payload.sub is None or not payload.sub.isdigit():
        raise credentials_exception
    return payload


def get_current_learner_id(payload: TokenPayload = Depends(get_token_payload)) -> int:
    """
    Dependencia para obtener el ID del alumno actual desde el token JWT.
    """
    return int(payload.sub)


def require_admin(payload: TokenPayload = Depends(get_token_payload)) -> TokenPayload:
    if payload.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Se requieren permisos de administrador",
        )
    return payload


def get_clock() -> Clock:
    return system_clock


def get_engine_config() -> ExamEngineConfig:
    return ExamEngineConfig.from_settings(settings)


def get_exam_attempt_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    config: ExamEngineConfig = Depends(get_engine_config),
) -> ExamAttemptService:
    return ExamAttemptService(db, clock=clock, config=config)
