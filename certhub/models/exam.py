# certhub/models/exam.py
from sqlalchemy import (
    Boolean, CheckConstraint, Column, Float, Integer, String, ForeignKey,
    Index, JSON, TIMESTAMP, UniqueConstraint, func, text
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from certhub.db.base import Base


# JSONB en PostgreSQL, JSON plano en SQLite
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Exam(Base):
    __tablename__ = 'exams'

    id = Column(Integer, primary_key=True)
    title = Column(String(300), nullable=False)
    project_id = Column(Integer, nullable=True, index=True)
    duration_minutes = Column(Integer, nullable=False, default=30)
    # NULL = usar EXAM_PASS_THRESHOLD
    pass_threshold = Column(Float, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    questions = relationship(
        "ExamQuestion",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="ExamQuestion.order",
    )


class ExamQuestion(Base):
    __tablename__ = 'exam_questions'

    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(1000), nullable=False)
    order = Column(Integer, nullable=False, default=0)

    exam = relationship("Exam", back_populates="questions")
    choices = relationship(
        "ExamChoice",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="ExamChoice.id",
    )


class ExamChoice(Base):
    __tablename__ = 'exam_choices'

    id = Column(Integer, primary_key=True)
    question_id = Column(Integer, ForeignKey("exam_questions.id", ondelete="CASCADE"), nullable=False, index=True)
    text = Column(String(400), nullable=True)
    image_url = Column(String(600), nullable=True)
    is_correct = Column(Boolean, nullable=False, default=False)

    question = relationship("ExamQuestion", back_populates="choices")


class ExamAssignment(Base):
    """Publicación de un examen a un alumno o a un proyecto completo."""
    __tablename__ = 'exam_assignments'
    __table_args__ = (
        CheckConstraint(
            "(learner_id IS NOT NULL AND project_id IS NULL) OR "
            "(learner_id IS NULL AND project_id IS NOT NULL)",
            name="ck_exam_assignments_target",
        ),
        UniqueConstraint('exam_id', 'learner_id', name='uq_exam_assignments_learner'),
        UniqueConstraint('exam_id', 'project_id', name='uq_exam_assignments_project'),
    )

    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    learner_id = Column(Integer, nullable=True)
    project_id = Column(Integer, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class ExamAttempt(Base):
    """
    Intento cronometrado de un alumno.

    submitted_at NULL = en curso. Una vez asignado, el intento es inmutable.
    exam_snapshot congela preguntas, opciones, duración y umbral al inicio,
    de modo que editar el examen después no altera intentos existentes.
    """
    __tablename__ = 'exam_attempts'
    __table_args__ = (
        # A lo sumo un intento abierto por (examen, alumno)
        Index(
            'uq_exam_attempts_open',
            'exam_id', 'learner_id',
            unique=True,
            postgresql_where=text("submitted_at IS NULL"),
            sqlite_where=text("submitted_at IS NULL"),
        ),
        Index('ix_exam_attempts_open_ends_at', 'submitted_at', 'ends_at'),
    )

    id = Column(Integer, primary_key=True)
    exam_id = Column(Integer, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    learner_id = Column(Integer, nullable=False, index=True)

    started_at = Column(TIMESTAMP(timezone=True), nullable=False)
    ends_at = Column(TIMESTAMP(timezone=True), nullable=False)
    submitted_at = Column(TIMESTAMP(timezone=True), nullable=True)
    duration_used_sec = Column(Integer, nullable=True)

    score = Column(Float, nullable=True)
    is_passed = Column(Boolean, nullable=True)
    auto_submitted = Column(Boolean, nullable=True)
    note = Column(String(600), nullable=True)

    exam_snapshot = Column(JSONType, nullable=False)
    shuffle_json = Column(JSONType, nullable=True)

    exam = relationship("Exam")
    answers = relationship(
        "ExamAttemptAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
    )

    @property
    def is_completed(self) -> bool:
        return self.submitted_at is not None

    def __repr__(self):
        return f"<ExamAttempt(id={self.id}, exam_id={self.exam_id}, learner_id={self.learner_id}, submitted_at={self.submitted_at})>"


class ExamAttemptAnswer(Base):
    __tablename__ = 'exam_attempt_answers'
    __table_args__ = (
        UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_question'),
    )

    id = Column(Integer, primary_key=True)
    attempt_id = Column(Integer, ForeignKey("exam_attempts.id", ondelete="CASCADE"), nullable=False, index=True)
    # Identificadores del snapshot, sin FK al contenido vivo del examen
    question_id = Column(Integer, nullable=False)
    choice_id = Column(Integer, nullable=True)  # NULL = pregunta omitida
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)

    attempt = relationship("ExamAttempt", back_populates="answers")
