from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from certhub.services.exam_attempt_service import AttemptStatus


# --- Solicitudes ---

class AnswerRequest(BaseModel):
    """
    Respuesta a una pregunta. choice_id null = pregunta omitida.
    """
    question_id: int = Field(..., description="ID de la pregunta dentro del snapshot del intento")
    choice_id: Optional[int] = Field(None, description="ID de la opción elegida (null para omitir)")

    class Config:
        json_schema_extra = {
            "example": {
                "question_id": 12,
                "choice_id": 47
            }
        }


# --- Vistas de alumno ---

class ServerClock(BaseModel):
    server_now: datetime = Field(..., description="Hora autoritativa del servidor (UTC)")


class ExamSummary(BaseModel):
    """
    Examen publicado para el alumno con el estado de su intento actual.
    """
    exam_id: int
    title: str
    duration_minutes: int
    question_count: int
    status: AttemptStatus
    attempt_id: Optional[int] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None


class AttemptStartResponse(BaseModel):
    attempt_id: int
    exam_id: int
    title: str
    duration_minutes: int
    started_at: datetime
    ends_at: datetime = Field(..., description="Fecha límite del intento")
    server_now: datetime
    created: bool = Field(..., description="False si se retomó un intento existente")
    auto_submitted: bool = False
    submitted_at: Optional[datetime] = None
    message: Optional[str] = None

    class Config:
        from_attributes = True


class ChoiceView(BaseModel):
    id: int
    text: Optional[str] = None
    image_url: Optional[str] = None


class QuestionView(BaseModel):
    id: int
    order: int = Field(..., description="Posición en el orden del intento, desde 1")
    text: str
    choices: List[ChoiceView]


class AnswerView(BaseModel):
    question_id: int
    choice_id: Optional[int] = None
    updated_at: datetime


class AttemptView(BaseModel):
    """
    Vista completa del intento. Nunca incluye qué opción es correcta.
    """
    attempt_id: int
    exam_id: int
    title: str
    duration_minutes: int
    status: AttemptStatus
    started_at: datetime
    ends_at: datetime
    server_now: datetime
    remaining_seconds: int
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    auto_submitted: bool = False
    duration_used_sec: Optional[int] = None
    message: Optional[str] = None
    questions: List[QuestionView]
    answers: List[AnswerView]


class AnswerRecorded(BaseModel):
    attempt_id: int
    question_id: int
    choice_id: Optional[int] = None
    changed: bool = Field(..., description="False si la opción ya estaba registrada")
    updated_at: datetime
    ends_at: datetime
    server_now: datetime


class SubmissionResponse(BaseModel):
    attempt_id: int
    submitted_at: datetime
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    auto_submitted: bool
    duration_used_sec: Optional[int] = None
    message: str

    class Config:
        from_attributes = True


# --- Reportes de administración ---

class AttemptReportRow(BaseModel):
    attempt_id: int
    exam_id: int
    exam_title: Optional[str] = None
    learner_id: int
    started_at: datetime
    submitted_at: Optional[datetime] = None
    duration_used_sec: Optional[int] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    auto_submitted: bool = False


class ReviewChoice(ChoiceView):
    is_correct: bool


class ReviewQuestion(BaseModel):
    question_id: int
    order: int
    text: str
    choices: List[ReviewChoice]
    selected_choice_id: Optional[int] = None
    is_correct: bool


class AttemptReview(BaseModel):
    attempt_id: int
    exam_id: int
    exam_title: Optional[str] = None
    learner_id: int
    status: AttemptStatus
    started_at: datetime
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    is_passed: Optional[bool] = None
    auto_submitted: bool = False
    questions: List[ReviewQuestion]
