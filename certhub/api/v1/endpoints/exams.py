# certhub/api/v1/endpoints/exams.py
"""
Reportes de administración sobre intentos de examen (solo lectura).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from certhub.api.v1.errors import to_http_exception
from certhub.core.deps import get_exam_attempt_service, require_admin
from certhub.schemas.exam_attempt import AttemptReportRow, AttemptReview
from certhub.services.exam_attempt_service import ExamAttemptService
from certhub.services.exam_errors import ExamAttemptError

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get(
    "/attempts",
    response_model=List[AttemptReportRow],
    summary="Listar intentos enviados"
)
def list_attempts(
    exam_id: Optional[int] = Query(None, description="Filtrar por examen"),
    search: Optional[str] = Query(None, description="Filtro por título del examen"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    service: ExamAttemptService = Depends(get_exam_attempt_service)
):
    return service.list_attempts(exam_id=exam_id, search=search, skip=skip, limit=limit)


@router.get(
    "/attempts/{attempt_id}/review",
    response_model=AttemptReview,
    summary="Revisión de un intento pregunta por pregunta"
)
def review_attempt(
    attempt_id: int,
    service: ExamAttemptService = Depends(get_exam_attempt_service)
):
    try:
        return service.review_attempt(attempt_id)
    except ExamAttemptError as e:
        raise to_http_exception(e)
