# certhub/services/exam_errors.py
from typing import Any, Dict, List, Optional


TIME_EXPIRED_MESSAGE = "El tiempo del examen terminó. Tus respuestas fueron guardadas."


class ExamAttemptError(Exception):
    """Excepción base del motor de intentos de examen"""
    code = "EXAM_ATTEMPT_ERROR"
    default_message = "Error en el intento de examen"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFound(ExamAttemptError):
    code = "NOT_FOUND"
    default_message = "Recurso no encontrado"


class ExamNotFound(NotFound):
    code = "EXAM_NOT_FOUND"
    default_message = "Examen no encontrado"


class AttemptNotFound(NotFound):
    code = "ATTEMPT_NOT_FOUND"
    default_message = "Intento no encontrado"


class AccessDenied(ExamAttemptError):
    code = "ACCESS_DENIED"
    default_message = "No tienes acceso a este examen"


class AlreadyPassed(ExamAttemptError):
    code = "ALREADY_PASSED"
    default_message = "Ya aprobaste este examen."


class NotEligible(ExamAttemptError):
    """
    La compuerta de elegibilidad negó el inicio: quedan capacitaciones
    asignadas sin completar. No se reintenta tal cual; el alumno debe
    terminar sus capacitaciones primero.
    """
    code = "TRAININGS_NOT_COMPLETED"
    default_message = "Debes completar todas las capacitaciones asignadas antes de presentar el examen."

    def __init__(self, incomplete_count: int, incomplete_training_ids: Optional[List[int]] = None):
        self.incomplete_count = incomplete_count
        self.incomplete_training_ids = list(incomplete_training_ids or [])
        super().__init__()

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["incomplete_training_count"] = self.incomplete_count
        detail["incomplete_training_ids"] = self.incomplete_training_ids
        return detail


class AttemptClosed(ExamAttemptError):
    """
    Se intentó modificar un intento terminado o vencido.
    El cliente debe refrescar la vista, no repetir la operación.
    """
    code = "ATTEMPT_CLOSED"
    default_message = "El examen ya fue finalizado."

    def __init__(self, attempt_id: int, auto_submitted: bool = False):
        self.attempt_id = attempt_id
        self.auto_submitted = auto_submitted
        super().__init__(TIME_EXPIRED_MESSAGE if auto_submitted else None)

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["attempt_id"] = self.attempt_id
        detail["auto_submitted"] = self.auto_submitted
        return detail


class InvalidQuestion(ExamAttemptError):
    code = "INVALID_QUESTION"
    default_message = "La pregunta no pertenece a este examen."


class InvalidChoice(ExamAttemptError):
    code = "INVALID_CHOICE"
    default_message = "La opción no pertenece a la pregunta indicada."
