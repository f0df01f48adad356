# certhub/services/exam_attempt_service.py
"""
Controlador del ciclo de vida de los intentos de examen.

Estados: not_started -> in_progress -> completed (terminal).

- El tiempo lo impone el servidor: toda operación que toca un intento revisa
  primero si venció su fecha límite y, de ser así, lo envía automáticamente
  (expiración perezosa). El barrido periódico es solo una optimización.
- El paso a completado es un compare-and-set sobre submitted_at; solo quien
  gana la transición califica, el resto devuelve el resultado ya guardado.
"""
import enum
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from prometheus_client import Counter
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certhub.core.clock import Clock, ensure_utc, system_clock
from certhub.core.config import ExamEngineConfig, settings
from certhub.core.logging_config import get_exam_logger
from certhub.crud import crud_attempt, crud_exam, crud_training
from certhub.models.exam import Exam, ExamAttempt
from certhub.services.attempt_snapshot import (
    build_exam_snapshot,
    build_shuffle_state,
    find_question,
    is_valid_shuffle_state,
    ordered_questions,
)
from certhub.services.eligibility import EligibilityGate
from certhub.services.exam_errors import (
    TIME_EXPIRED_MESSAGE,
    AccessDenied,
    AlreadyPassed,
    AttemptClosed,
    AttemptNotFound,
    ExamNotFound,
    InvalidChoice,
    InvalidQuestion,
)
from certhub.services.scoring import ScoringEngine


# Métricas de Prometheus del motor de exámenes
exam_attempts_started_total = Counter(
    'certhub_exam_attempts_started_total',
    'Exam attempts created'
)

exam_submissions_total = Counter(
    'certhub_exam_submissions_total',
    'Exam attempts completed',
    ['trigger', 'result']
)

exam_answers_recorded_total = Counter(
    'certhub_exam_answers_recorded_total',
    'Answer upserts accepted',
    ['changed']
)

exam_attempts_swept_total = Counter(
    'certhub_exam_attempts_swept_total',
    'Expired attempts closed by the periodic sweep'
)


SUBMITTED_MESSAGE = "Examen enviado correctamente."


class AttemptStatus(str, enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SubmitTrigger(str, enum.Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class SubmissionResult:
    attempt_id: int
    submitted_at: datetime
    score: Optional[float]
    is_passed: Optional[bool]
    auto_submitted: bool
    duration_used_sec: Optional[int]
    message: str


@dataclass(frozen=True)
class AttemptStarted:
    attempt_id: int
    exam_id: int
    title: str
    duration_minutes: int
    started_at: datetime
    ends_at: datetime
    server_now: datetime
    created: bool
    auto_submitted: bool = False
    submitted_at: Optional[datetime] = None
    message: Optional[str] = None


def _submission_result(attempt: ExamAttempt) -> SubmissionResult:
    auto = bool(attempt.auto_submitted)
    return SubmissionResult(
        attempt_id=attempt.id,
        submitted_at=ensure_utc(attempt.submitted_at),
        score=attempt.score,
        is_passed=attempt.is_passed,
        auto_submitted=auto,
        duration_used_sec=attempt.duration_used_sec,
        message=TIME_EXPIRED_MESSAGE if auto else SUBMITTED_MESSAGE,
    )


class ExamAttemptService:
    """
    Orquesta inicio, vista, respuestas y envío de intentos.
    Se crea una instancia por sesión de base de datos.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        config: Optional[ExamEngineConfig] = None,
        scoring: Optional[ScoringEngine] = None,
        gate: Optional[EligibilityGate] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.clock = clock or system_clock
        self.config = config or ExamEngineConfig.from_settings(settings)
        self.scoring = scoring or ScoringEngine(self.config.pass_threshold)
        self.gate = gate or EligibilityGate(db, self.clock)
        self.rng = rng or random.SystemRandom()
        self.logger = get_exam_logger()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_attempt(self, attempt_id: int, learner_id: Optional[int] = None, lock: bool = False) -> ExamAttempt:
        attempt = crud_attempt.get_attempt(self.db, attempt_id, lock=lock)
        if attempt is None:
            raise AttemptNotFound()
        if learner_id is not None and attempt.learner_id != learner_id:
            raise AccessDenied("El intento pertenece a otro alumno")
        return attempt

    def _load_exam(self, learner_id: int, exam_id: int) -> Exam:
        exam = crud_exam.get_exam(self.db, exam_id)
        if exam is None:
            raise ExamNotFound()
        if not crud_exam.has_exam_access(self.db, learner_id, exam_id):
            raise AccessDenied()
        return exam

    @staticmethod
    def _is_expired(attempt: ExamAttempt, now: datetime) -> bool:
        return attempt.submitted_at is None and now >= ensure_utc(attempt.ends_at)

    def _expire_if_due(self, attempt: ExamAttempt) -> Optional[SubmissionResult]:
        """Expiración perezosa: envía el intento si ya pasó su fecha límite."""
        now = self.clock.now()
        if not self._is_expired(attempt, now):
            return None
        return self._finalize(attempt, SubmitTrigger.TIMEOUT, now)

    def _finalize(self, attempt: ExamAttempt, trigger: SubmitTrigger, now: datetime) -> SubmissionResult:
        """
        Única transición in_progress -> completed.

        El envío por tiempo registra submitted_at = fecha límite; el manual, la
        hora actual. Reclamo, calificación y resultado van en una sola
        transacción; si otro proceso ganó el reclamo se devuelve su resultado.
        """
        attempt_id = attempt.id
        auto = trigger == SubmitTrigger.TIMEOUT
        deadline = ensure_utc(attempt.ends_at)
        submitted_at = deadline if auto else min(now, deadline)
        log_extra = {
            "attempt_id": attempt_id,
            "exam_id": attempt.exam_id,
            "learner_id": attempt.learner_id,
            "trigger": trigger.value,
        }

        try:
            if not crud_attempt.claim_submission(self.db, attempt_id, submitted_at, auto):
                self.db.rollback()
                self.logger.info(f"Attempt {attempt_id} already submitted, returning stored result", extra=log_extra)
                return _submission_result(self._load_attempt(attempt_id))

            answers = crud_attempt.get_answer_map(self.db, attempt_id)
            result = self.scoring.score(attempt.exam_snapshot, answers)

            started_at = ensure_utc(attempt.started_at)
            duration_used = max(0, int((submitted_at - started_at).total_seconds()))
            crud_attempt.store_result(self.db, attempt_id, result.score, result.is_passed, duration_used)

            if not result.is_passed and self.config.reset_trainings_on_fail:
                reset = crud_training.reset_training_progress(self.db, attempt.learner_id, now)
                self.logger.info(f"Capacitaciones reiniciadas tras reprobar: {reset}", extra=log_extra)

            self.db.commit()
        except Exception:
            self.db.rollback()
            self.logger.error(f"Error finalizando intento {attempt_id}", exc_info=True, extra=log_extra)
            raise

        exam_submissions_total.labels(
            trigger=trigger.value,
            result="passed" if result.is_passed else "failed",
        ).inc()
        self.logger.info(
            f"Attempt {attempt_id} submitted: score={result.score} "
            f"({result.correct_count}/{result.total_questions}), passed={result.is_passed}",
            extra=log_extra,
        )
        return _submission_result(self._load_attempt(attempt_id))

    def _ensure_shuffle(self, attempt: ExamAttempt) -> Optional[dict]:
        """
        Devuelve el orden registrado del intento; si falta o está corrupto en
        un intento en curso, lo regenera y lo guarda.
        """
        if is_valid_shuffle_state(attempt.shuffle_json):
            return attempt.shuffle_json
        if attempt.is_completed or not attempt.exam_snapshot.get("questions"):
            return None

        state = build_shuffle_state(attempt.exam_snapshot, self.rng, self.config.shuffle_enabled)
        attempt.shuffle_json = state
        self.db.commit()
        return state

    def _started(self, attempt: ExamAttempt, created: bool, expired: Optional[SubmissionResult] = None) -> AttemptStarted:
        snapshot = attempt.exam_snapshot
        return AttemptStarted(
            attempt_id=attempt.id,
            exam_id=attempt.exam_id,
            title=snapshot["title"],
            duration_minutes=snapshot["duration_minutes"],
            started_at=ensure_utc(attempt.started_at),
            ends_at=ensure_utc(attempt.ends_at),
            server_now=self.clock.now(),
            created=created,
            auto_submitted=expired is not None,
            submitted_at=expired.submitted_at if expired else None,
            message=expired.message if expired else None,
        )

    def _resume(self, attempt: ExamAttempt) -> AttemptStarted:
        expired = self._expire_if_due(attempt)
        return self._started(attempt, created=False, expired=expired)

    # ------------------------------------------------------------------
    # Operaciones
    # ------------------------------------------------------------------

    def start(self, learner_id: int, exam_id: int) -> AttemptStarted:
        """
        Inicia (o retoma) el intento del alumno.

        Raises:
            ExamNotFound, AccessDenied, AlreadyPassed, NotEligible
        """
        exam = self._load_exam(learner_id, exam_id)

        if crud_attempt.has_passed(self.db, exam_id, learner_id):
            raise AlreadyPassed()

        self.gate.ensure_can_start(learner_id, exam_id)

        open_attempt = crud_attempt.get_open_attempt(self.db, exam_id, learner_id)
        if open_attempt is not None:
            return self._resume(open_attempt)

        now = self.clock.now()
        snapshot = build_exam_snapshot(exam, self.config.default_duration_minutes)
        shuffle_state = build_shuffle_state(snapshot, self.rng, self.config.shuffle_enabled)

        try:
            attempt = crud_attempt.create_attempt(
                self.db,
                exam_id=exam_id,
                learner_id=learner_id,
                started_at=now,
                ends_at=now + timedelta(minutes=snapshot["duration_minutes"]),
                exam_snapshot=snapshot,
                shuffle_json=shuffle_state,
            )
            self.db.commit()
        except IntegrityError:
            # Otro inicio concurrente ganó el índice único de intentos abiertos
            self.db.rollback()
            open_attempt = crud_attempt.get_open_attempt(self.db, exam_id, learner_id)
            if open_attempt is None:
                raise
            self.logger.info(
                f"Concurrent start resolved to attempt {open_attempt.id}",
                extra={"attempt_id": open_attempt.id, "exam_id": exam_id, "learner_id": learner_id},
            )
            return self._resume(open_attempt)

        exam_attempts_started_total.inc()
        self.logger.info(
            f"Exam attempt started: ends_at={ensure_utc(attempt.ends_at).isoformat()}",
            extra={"attempt_id": attempt.id, "exam_id": exam_id, "learner_id": learner_id},
        )
        return self._started(attempt, created=True)

    def get_view(self, attempt_id: int, learner_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Vista del intento para el cliente: preguntas en el orden del intento,
        respuestas actuales, fecha límite y hora del servidor. Si el intento
        venció, primero se envía automáticamente.
        """
        attempt = self._load_attempt(attempt_id, learner_id)
        self._expire_if_due(attempt)

        shuffle_state = self._ensure_shuffle(attempt)
        snapshot = attempt.exam_snapshot
        now = self.clock.now()
        ends_at = ensure_utc(attempt.ends_at)
        completed = attempt.is_completed
        auto = bool(attempt.auto_submitted) if completed else False

        if completed:
            message = TIME_EXPIRED_MESSAGE if auto else SUBMITTED_MESSAGE
        else:
            message = None

        answers = [
            {
                "question_id": answer.question_id,
                "choice_id": answer.choice_id,
                "updated_at": ensure_utc(answer.updated_at),
            }
            for answer in crud_attempt.get_answers(self.db, attempt.id)
        ]

        return {
            "attempt_id": attempt.id,
            "exam_id": attempt.exam_id,
            "title": snapshot["title"],
            "duration_minutes": snapshot["duration_minutes"],
            "status": AttemptStatus.COMPLETED if completed else AttemptStatus.IN_PROGRESS,
            "started_at": ensure_utc(attempt.started_at),
            "ends_at": ends_at,
            "server_now": now,
            "remaining_seconds": 0 if completed else max(0, int((ends_at - now).total_seconds())),
            "submitted_at": ensure_utc(attempt.submitted_at),
            "score": attempt.score,
            "is_passed": attempt.is_passed,
            "auto_submitted": auto,
            "duration_used_sec": attempt.duration_used_sec,
            "message": message,
            "questions": ordered_questions(snapshot, shuffle_state),
            "answers": answers,
        }

    def record_answer(
        self,
        attempt_id: int,
        question_id: int,
        choice_id: Optional[int],
        learner_id: Optional[int] = None,
        _retry: bool = True,
    ) -> Dict[str, Any]:
        """
        Guarda (upsert) la respuesta de una pregunta.

        Raises:
            AttemptClosed: intento terminado o vencido (en este caso se envía antes)
            InvalidQuestion: la pregunta no pertenece al snapshot del intento
            InvalidChoice: la opción no pertenece a la pregunta
        """
        attempt = self._load_attempt(attempt_id, learner_id, lock=True)
        now = self.clock.now()

        if attempt.is_completed:
            auto = bool(attempt.auto_submitted)
            self.db.rollback()
            raise AttemptClosed(attempt_id, auto_submitted=auto)

        if self._is_expired(attempt, now):
            # Liberar el bloqueo compartido antes de reclamar el envío
            self.db.rollback()
            self._finalize(self._load_attempt(attempt_id), SubmitTrigger.TIMEOUT, now)
            raise AttemptClosed(attempt_id, auto_submitted=True)

        question = find_question(attempt.exam_snapshot, question_id)
        if question is None:
            self.db.rollback()
            raise InvalidQuestion()

        if choice_id is not None and choice_id not in {choice["id"] for choice in question["choices"]}:
            self.db.rollback()
            raise InvalidChoice()

        try:
            answer, changed = crud_attempt.upsert_answer(self.db, attempt_id, question_id, choice_id, now)
            updated_at = ensure_utc(answer.updated_at)
            ends_at = ensure_utc(attempt.ends_at)
            self.db.commit()
        except IntegrityError:
            # Dos escrituras simultáneas de la misma pregunta: reintentar como update
            self.db.rollback()
            if not _retry:
                raise
            return self.record_answer(attempt_id, question_id, choice_id, learner_id, _retry=False)

        exam_answers_recorded_total.labels(changed=str(changed).lower()).inc()
        return {
            "attempt_id": attempt_id,
            "question_id": question_id,
            "choice_id": choice_id,
            "changed": changed,
            "updated_at": updated_at,
            "ends_at": ends_at,
            "server_now": now,
        }

    def submit(
        self,
        attempt_id: int,
        learner_id: Optional[int] = None,
        trigger: SubmitTrigger = SubmitTrigger.MANUAL,
    ) -> SubmissionResult:
        """
        Envía el intento. Idempotente: sobre un intento completado devuelve el
        resultado guardado. Un envío manual en o después de la fecha límite
        se trata como envío por tiempo.
        """
        attempt = self._load_attempt(attempt_id, learner_id)
        if attempt.is_completed:
            return _submission_result(attempt)

        now = self.clock.now()
        if now >= ensure_utc(attempt.ends_at):
            trigger = SubmitTrigger.TIMEOUT

        return self._finalize(attempt, trigger, now)

    def sweep_expired(self, limit: int = 200) -> int:
        """
        Cierra los intentos abiertos cuya fecha límite ya pasó.
        Devuelve cuántos intentos se procesaron.
        """
        now = self.clock.now()
        attempt_ids = crud_attempt.get_expired_open_attempt_ids(self.db, now, limit)
        self.db.commit()

        closed = 0
        for attempt_id in attempt_ids:
            attempt = crud_attempt.get_attempt(self.db, attempt_id)
            if attempt is None or attempt.is_completed:
                continue
            self._finalize(attempt, SubmitTrigger.TIMEOUT, now)
            closed += 1

        if closed:
            exam_attempts_swept_total.inc(closed)
            self.logger.info(f"Expiry sweep closed {closed} attempts")
        return closed

    # ------------------------------------------------------------------
    # Vistas de alumno (listado y detalle de exámenes)
    # ------------------------------------------------------------------

    def _expire_open_attempts(self, learner_id: int, exam_ids: List[int]) -> None:
        for attempt in crud_attempt.get_open_attempts(self.db, learner_id, exam_ids):
            self._expire_if_due(attempt)

    @staticmethod
    def _exam_summary(
        exam: Exam,
        question_count: int,
        open_attempt: Optional[ExamAttempt],
        last_attempt: Optional[ExamAttempt],
    ) -> Dict[str, Any]:
        summary = {
            "exam_id": exam.id,
            "title": exam.title,
            "duration_minutes": exam.duration_minutes,
            "question_count": question_count,
            "status": AttemptStatus.NOT_STARTED,
            "attempt_id": None,
            "score": None,
            "is_passed": None,
        }
        if open_attempt is not None:
            summary.update(status=AttemptStatus.IN_PROGRESS, attempt_id=open_attempt.id)
        elif last_attempt is not None:
            summary.update(
                status=AttemptStatus.COMPLETED,
                attempt_id=last_attempt.id,
                score=last_attempt.score,
                is_passed=last_attempt.is_passed,
            )
        return summary

    def list_my_exams(self, learner_id: int, search: Optional[str] = None) -> List[Dict[str, Any]]:
        exam_ids = crud_exam.get_assigned_exam_ids(self.db, learner_id)
        if not exam_ids:
            return []

        self._expire_open_attempts(learner_id, exam_ids)

        exams = crud_exam.get_exams(self.db, exam_ids, search)
        ids = [exam.id for exam in exams]
        counts = crud_exam.count_questions(self.db, ids)
        open_by_exam = {a.exam_id: a for a in crud_attempt.get_open_attempts(self.db, learner_id, ids)}
        last_by_exam = crud_attempt.get_last_submitted_attempts(self.db, learner_id, ids)

        return [
            self._exam_summary(exam, counts.get(exam.id, 0), open_by_exam.get(exam.id), last_by_exam.get(exam.id))
            for exam in exams
        ]

    def exam_detail(self, learner_id: int, exam_id: int) -> Dict[str, Any]:
        exam = self._load_exam(learner_id, exam_id)
        self._expire_open_attempts(learner_id, [exam_id])

        open_attempt = crud_attempt.get_open_attempt(self.db, exam_id, learner_id)
        last_attempt = crud_attempt.get_last_submitted_attempts(self.db, learner_id, [exam_id]).get(exam_id)
        return self._exam_summary(exam, len(exam.questions), open_attempt, last_attempt)

    # ------------------------------------------------------------------
    # Reportes de administración (solo lectura)
    # ------------------------------------------------------------------

    def list_attempts(
        self,
        exam_id: Optional[int] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        attempts = crud_attempt.get_submitted_attempts(self.db, exam_id=exam_id, search=search, skip=skip, limit=limit)
        return [
            {
                "attempt_id": attempt.id,
                "exam_id": attempt.exam_id,
                "exam_title": attempt.exam_snapshot.get("title"),
                "learner_id": attempt.learner_id,
                "started_at": ensure_utc(attempt.started_at),
                "submitted_at": ensure_utc(attempt.submitted_at),
                "duration_used_sec": attempt.duration_used_sec,
                "score": attempt.score,
                "is_passed": attempt.is_passed,
                "auto_submitted": bool(attempt.auto_submitted),
            }
            for attempt in attempts
        ]

    def review_attempt(self, attempt_id: int) -> Dict[str, Any]:
        """
        Revisión pregunta por pregunta contra el snapshot del intento:
        opción elegida, opciones correctas y si la respuesta fue correcta.
        """
        attempt = self._load_attempt(attempt_id)
        self._expire_if_due(attempt)

        snapshot = attempt.exam_snapshot
        answers = crud_attempt.get_answer_map(self.db, attempt.id)

        rows = []
        for question in ordered_questions(snapshot, None, include_correct=True):
            selected = answers.get(question["id"])
            correct_ids = {choice["id"] for choice in question["choices"] if choice["is_correct"]}
            rows.append({
                "question_id": question["id"],
                "order": question["order"],
                "text": question["text"],
                "choices": question["choices"],
                "selected_choice_id": selected,
                "is_correct": selected is not None and selected in correct_ids,
            })

        return {
            "attempt_id": attempt.id,
            "exam_id": attempt.exam_id,
            "exam_title": snapshot.get("title"),
            "learner_id": attempt.learner_id,
            "status": AttemptStatus.COMPLETED if attempt.is_completed else AttemptStatus.IN_PROGRESS,
            "started_at": ensure_utc(attempt.started_at),
            "submitted_at": ensure_utc(attempt.submitted_at),
            "score": attempt.score,
            "is_passed": attempt.is_passed,
            "auto_submitted": bool(attempt.auto_submitted),
            "questions": rows,
        }
