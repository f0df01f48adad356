# certhub/api/v1/endpoints/my_exams.py
"""
Endpoints del alumno: listado de exámenes, inicio, respuestas y envío.
El tiempo lo impone el servidor; cada respuesta con fecha límite incluye
server_now para que el cliente corrija el desfase de su reloj.
"""
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, Query

from certhub.api.v1.errors import to_http_exception
from certhub.core.clock import Clock
from certhub.core.deps import get_clock, get_current_learner_id, get_exam_attempt_service
from certhub.schemas.exam_attempt import (
    AnswerRecorded,
    AnswerRequest,
    AttemptStartResponse,
    AttemptView,
    ExamSummary,
    ServerClock,
    SubmissionResponse,
)
from certhub.services.exam_attempt_service import ExamAttemptService
from certhub.services.exam_errors import ExamAttemptError

router = APIRouter()
logger = logging.getLogger('certhub.my_exams')


@router.get(
    "",
    response_model=List[ExamSummary],
    summary="Listar mis exámenes",
    description="Exámenes publicados para el alumno (directamente o por proyecto) con el estado de su intento."
)
def list_my_exams(
    search: Optional[str] = Query(None, description="Filtro por título"),
    learner_id: int = Depends(get_current_learner_id),
    service: ExamAttemptService = Depends(get_exam_attempt_service)
):
    return service.list_my_exams(learner_id, search=search)


@router.get(
    "/clock",
    response_model=ServerClock,
    summary="Hora del servidor",
    description="Permite al cliente calcular el desfase entre su reloj y el del servidor."
)
def server_clock(clock: Clock = Depends(get_clock)):
    return ServerClock(server_now=clock.now())


@router.get(
    "/exam/{exam_id}",
    response_model=ExamSummary,
    summary="Detalle de un examen"
)
def exam_detail(
    exam_id: int,
    learner_id: int = Depends(get_current_learner_id),
    service: ExamAttemptService = Depends(get_exam_attempt_service)
):
    try:
        return service.exam_detail(learner_id, exam_id)
    except ExamAttemptError as e:
        raise to_http_exception(e)


@router.post(
    "/start/{exam_id}",
    response_model=AttemptStartResponse,
    summary="Iniciar o retomar un intento"
)
def start_exam(
    exam_id: int,
    learner_id: int = Depends(get_current_learner_id),
    service: ExamAttemptService = Depends(get_exam_attempt_service)
):
    """
    Inicia un intento nuevo o devuelve el intento en curso.

    - **400 TRAININGS_NOT_COMPLETED**: quedan capacitaciones asignadas sin completar
    - **409 ALREADY_PASSED**: el examen ya fue aprobado
    """
    try:
        started = service.start(learner_id, exam_id)
    except ExamAttemptError as e:
        logger.info(f"Start rechazado: learner={learner_id}, exam={exam_id}, code={e.code}")
        raise to_http_exception(e)

    return AttemptStartResponse.model_validate(started)


@router.get(
    "/attempt/{attempt_id}",
    response_model=AttemptView,
    summary="Ver intento"
)
def get_attempt(
    attempt_id: int,
    learner_id: int = Depends(get_current_learner_id),
    service: ExamAttemptService = Depends(get_exam_attempt_service)
):
    try:
        return service.get_view(attempt_id, learner_id=learner_id)
    except ExamAttemptError as e:
        raise to_http_exception(e)


@router.post(
    "/attempt/{attempt_id}/answer",
    response_model=AnswerRecorded,
    summary="Guardar respuesta"
)
def record_answer(
    attempt_id: int,
    request: AnswerRequest,
    learner_id: int = Depends(get_current_learner_id),
    service: ExamAttemptService = Depends(get_exam_attempt_service)
):
    """
    Guarda la opción elegida para una pregunta (idempotente).

    - **409 ATTEMPT_CLOSED**: el intento terminó; si venció, se envió automáticamente
    """
    try:
        return service.record_answer(
            attempt_id,
            request.question_id,
            request.choice_id,
            learner_id=learner_id,
        )
    except ExamAttemptError as e:
        raise to_http_exception(e)


@router.post(
    "/attempt/{attempt_id}/submit",
    response_model=SubmissionResponse,
    summary="Enviar intento"
)
def submit_attempt(
    attempt_id: int,
    learner_id: int = Depends(get_current_learner_id),
    service: ExamAttemptService = Depends(get_exam_attempt_service)
):
    """
    Envía el intento y devuelve la calificación. Repetir el envío devuelve
    el mismo resultado.
    """
    try:
        result = service.submit(attempt_id, learner_id=learner_id)
    except ExamAttemptError as e:
        raise to_http_exception(e)

    return SubmissionResponse.model_validate(result)
