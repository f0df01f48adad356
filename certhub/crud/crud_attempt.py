from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import desc, update

from certhub.models.exam import Exam, ExamAttempt, ExamAttemptAnswer


def get_attempt(db: Session, attempt_id: int, lock: bool = False) -> Optional[ExamAttempt]:
    """
    Obtiene un intento por su ID.
    Con lock=True toma un bloqueo compartido (FOR SHARE) sobre la fila: las
    respuestas concurrentes conviven, pero un cierre concurrente espera.
    """
    query = db.query(ExamAttempt).filter(ExamAttempt.id == attempt_id)
    if lock:
        query = query.with_for_update(read=True)
    return query.first()


def get_open_attempt(db: Session, exam_id: int, learner_id: int) -> Optional[ExamAttempt]:
    return db.query(ExamAttempt).filter(
        ExamAttempt.exam_id == exam_id,
        ExamAttempt.learner_id == learner_id,
        ExamAttempt.submitted_at.is_(None),
    ).first()


def get_open_attempts(db: Session, learner_id: int, exam_ids: List[int]) -> List[ExamAttempt]:
    if not exam_ids:
        return []
    return db.query(ExamAttempt).filter(
        ExamAttempt.learner_id == learner_id,
        ExamAttempt.exam_id.in_(exam_ids),
        ExamAttempt.submitted_at.is_(None),
    ).all()


def get_last_submitted_attempts(db: Session, learner_id: int, exam_ids: List[int]) -> Dict[int, ExamAttempt]:
    """
    Último intento terminado por examen, indexado por exam_id.
    """
    if not exam_ids:
        return {}

    attempts = (
        db.query(ExamAttempt)
        .filter(
            ExamAttempt.learner_id == learner_id,
            ExamAttempt.exam_id.in_(exam_ids),
            ExamAttempt.submitted_at.isnot(None),
        )
        .order_by(desc(ExamAttempt.submitted_at), desc(ExamAttempt.id))
        .all()
    )

    latest: Dict[int, ExamAttempt] = {}
    for attempt in attempts:
        latest.setdefault(attempt.exam_id, attempt)
    return latest


def has_passed(db: Session, exam_id: int, learner_id: int) -> bool:
    return db.query(
        db.query(ExamAttempt.id).filter(
            ExamAttempt.exam_id == exam_id,
            ExamAttempt.learner_id == learner_id,
            ExamAttempt.submitted_at.isnot(None),
            ExamAttempt.is_passed.is_(True),
        ).exists()
    ).scalar()


def create_attempt(
    db: Session,
    exam_id: int,
    learner_id: int,
    started_at: datetime,
    ends_at: datetime,
    exam_snapshot: dict,
    shuffle_json: Optional[dict] = None,
) -> ExamAttempt:
    """
    Inserta un intento en curso. Hace flush pero no commit: una violación del
    índice único de intentos abiertos se manifiesta aquí como IntegrityError.
    """
    db_attempt = ExamAttempt(
        exam_id=exam_id,
        learner_id=learner_id,
        started_at=started_at,
        ends_at=ends_at,
        exam_snapshot=exam_snapshot,
        shuffle_json=shuffle_json,
    )
    db.add(db_attempt)
    db.flush()
    return db_attempt


def claim_submission(db: Session, attempt_id: int, submitted_at: datetime, auto_submitted: bool) -> bool:
    """
    Compare-and-set sobre submitted_at: solo asigna si sigue en NULL.
    Devuelve True si esta llamada ganó la transición a completado.
    """
    result = db.execute(
        update(ExamAttempt)
        .where(ExamAttempt.id == attempt_id, ExamAttempt.submitted_at.is_(None))
        .values(submitted_at=submitted_at, auto_submitted=auto_submitted)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def store_result(db: Session, attempt_id: int, score: float, is_passed: bool, duration_used_sec: int) -> None:
    db.execute(
        update(ExamAttempt)
        .where(ExamAttempt.id == attempt_id)
        .values(score=score, is_passed=is_passed, duration_used_sec=duration_used_sec)
        .execution_options(synchronize_session=False)
    )


def get_answers(db: Session, attempt_id: int) -> List[ExamAttemptAnswer]:
    return (
        db.query(ExamAttemptAnswer)
        .filter(ExamAttemptAnswer.attempt_id == attempt_id)
        .order_by(ExamAttemptAnswer.id)
        .all()
    )


def get_answer_map(db: Session, attempt_id: int) -> Dict[int, Optional[int]]:
    """
    {question_id: choice_id} de un intento; choice_id None = omitida.
    """
    return {answer.question_id: answer.choice_id for answer in get_answers(db, attempt_id)}


def upsert_answer(
    db: Session,
    attempt_id: int,
    question_id: int,
    choice_id: Optional[int],
    now: datetime,
) -> Tuple[ExamAttemptAnswer, bool]:
    """
    Crea o actualiza la respuesta de (attempt_id, question_id).
    Repetir la misma opción no escribe nada. Devuelve (respuesta, cambió).
    """
    answer = db.query(ExamAttemptAnswer).filter(
        ExamAttemptAnswer.attempt_id == attempt_id,
        ExamAttemptAnswer.question_id == question_id,
    ).first()

    if answer is None:
        answer = ExamAttemptAnswer(
            attempt_id=attempt_id,
            question_id=question_id,
            choice_id=choice_id,
            created_at=now,
            updated_at=now,
        )
        db.add(answer)
        db.flush()
        return answer, True

    if answer.choice_id == choice_id:
        return answer, False

    answer.choice_id = choice_id
    answer.updated_at = now
    db.flush()
    return answer, True


def get_expired_open_attempt_ids(db: Session, now: datetime, limit: int = 200) -> List[int]:
    rows = (
        db.query(ExamAttempt.id)
        .filter(ExamAttempt.submitted_at.is_(None), ExamAttempt.ends_at <= now)
        .order_by(ExamAttempt.ends_at)
        .limit(limit)
        .all()
    )
    return [row.id for row in rows]


def get_submitted_attempts(
    db: Session,
    exam_id: Optional[int] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[ExamAttempt]:
    """
    Intentos terminados, del más reciente al más antiguo.
    search filtra por título del examen.
    """
    query = (
        db.query(ExamAttempt)
        .join(Exam, Exam.id == ExamAttempt.exam_id)
        .filter(ExamAttempt.submitted_at.isnot(None))
    )

    if exam_id is not None:
        query = query.filter(ExamAttempt.exam_id == exam_id)

    if search and search.strip():
        query = query.filter(Exam.title.ilike(f"%{search.strip()}%"))

    return (
        query.order_by(desc(ExamAttempt.submitted_at), desc(ExamAttempt.id))
        .offset(skip)
        .limit(limit)
        .all()
    )
