# certhub/api/v1/errors.py
"""
Traducción de errores del motor de exámenes a respuestas HTTP.
"""
from fastapi import HTTPException, status

from certhub.services.exam_errors import (
    AccessDenied,
    AlreadyPassed,
    AttemptClosed,
    ExamAttemptError,
    InvalidChoice,
    InvalidQuestion,
    NotEligible,
    NotFound,
)

STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (NotEligible, status.HTTP_400_BAD_REQUEST),
    (InvalidQuestion, status.HTTP_400_BAD_REQUEST),
    (InvalidChoice, status.HTTP_400_BAD_REQUEST),
    (AttemptClosed, status.HTTP_409_CONFLICT),
    (AlreadyPassed, status.HTTP_409_CONFLICT),
)


def to_http_exception(error: ExamAttemptError) -> HTTPException:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.to_detail())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.to_detail())
