"""
Fixtures compartidas: base de datos SQLite temporal por prueba, reloj manual
y helpers para sembrar exámenes, asignaciones y capacitaciones.
"""
import os
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

# Debe definirse antes de importar certhub: el motor global se crea al importar
os.environ.setdefault("DATABASE_URL", "sqlite:///./certhub_test.db")
os.environ.setdefault("LOG_DIR", "./logs")

import pytest
from sqlalchemy.orm import sessionmaker

from certhub.core.clock import Clock
from certhub.core.config import ExamEngineConfig
from certhub.db.base import Base
from certhub.db.models_registry import (
    Exam,
    ExamAssignment,
    ExamChoice,
    ExamQuestion,
    TrainingAssignment,
    TrainingProgress,
    UserProject,
)
from certhub.db.session import create_db_engine
from certhub.services.exam_attempt_service import ExamAttemptService

LEARNER_ID = 1001
OTHER_LEARNER_ID = 2002
START_TIME = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)

# (texto, [(opción, es_correcta), ...])
DEFAULT_QUESTIONS = [
    ("¿Qué se usa para proteger la cabeza?", [("Casco", True), ("Gorra", False), ("Nada", False)]),
    ("¿Qué color identifica una ruta de evacuación?", [("Verde", True), ("Rojo", False)]),
]


class ManualClock(Clock):
    """Reloj controlado por la prueba."""

    def __init__(self, now: datetime = START_TIME):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now


@dataclass
class SeededExam:
    exam_id: int
    question_ids: List[int]
    correct_choice: Dict[int, int]
    wrong_choice: Dict[int, int] = field(default_factory=dict)


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'exams.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def engine_config():
    return ExamEngineConfig(pass_threshold=70.0, default_duration_minutes=30, shuffle_enabled=True)


@pytest.fixture
def make_service(session_factory, clock, engine_config):
    """
    Fábrica de servicios, cada uno con su propia sesión.
    Las sesiones se cierran al terminar la prueba.
    """
    sessions = []

    def _make(**kwargs) -> ExamAttemptService:
        db = session_factory()
        sessions.append(db)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("config", engine_config)
        kwargs.setdefault("rng", random.Random(7))
        return ExamAttemptService(db, **kwargs)

    yield _make

    for db in sessions:
        db.close()


@pytest.fixture
def service(make_service):
    return make_service()


def seed_exam(
    session_factory,
    learner_id: Optional[int] = LEARNER_ID,
    project_id: Optional[int] = None,
    questions: Sequence[Tuple[str, Sequence[Tuple[str, bool]]]] = DEFAULT_QUESTIONS,
    title: str = "Seguridad industrial",
    duration_minutes: int = 30,
    pass_threshold: Optional[float] = None,
) -> SeededExam:
    """
    Crea un examen y lo publica para el alumno (o para un proyecto).
    Devuelve solo identificadores; la sesión queda cerrada.
    """
    db = session_factory()
    try:
        exam = Exam(title=title, duration_minutes=duration_minutes, pass_threshold=pass_threshold)
        for order, (text, choices) in enumerate(questions, start=1):
            question = ExamQuestion(text=text, order=order)
            question.choices = [ExamChoice(text=label, is_correct=is_correct) for label, is_correct in choices]
            exam.questions.append(question)
        db.add(exam)
        db.flush()

        if learner_id is not None and project_id is None:
            db.add(ExamAssignment(exam_id=exam.id, learner_id=learner_id))
        if project_id is not None:
            db.add(ExamAssignment(exam_id=exam.id, project_id=project_id))
        db.flush()

        seeded = SeededExam(exam_id=exam.id, question_ids=[], correct_choice={})
        for question in exam.questions:
            seeded.question_ids.append(question.id)
            for choice in question.choices:
                if choice.is_correct:
                    seeded.correct_choice.setdefault(question.id, choice.id)
                else:
                    seeded.wrong_choice.setdefault(question.id, choice.id)

        db.commit()
        return seeded
    finally:
        db.close()


def seed_training(
    session_factory,
    training_id: int,
    learner_id: Optional[int] = LEARNER_ID,
    project_id: Optional[int] = None,
    progress: Optional[int] = None,
    unpublish_at: Optional[datetime] = None,
    progress_learner_id: Optional[int] = None,
) -> None:
    """
    Asigna una capacitación (al alumno o a un proyecto) y opcionalmente
    registra el progreso del alumno en ella.
    """
    db = session_factory()
    try:
        db.add(TrainingAssignment(
            training_id=training_id,
            learner_id=None if project_id is not None else learner_id,
            project_id=project_id,
            unpublish_at=unpublish_at,
        ))
        if progress is not None:
            db.add(TrainingProgress(
                training_id=training_id,
                learner_id=progress_learner_id or learner_id,
                progress=progress,
            ))
        db.commit()
    finally:
        db.close()


def seed_membership(session_factory, learner_id: int, project_id: int) -> None:
    db = session_factory()
    try:
        db.add(UserProject(learner_id=learner_id, project_id=project_id))
        db.commit()
    finally:
        db.close()
