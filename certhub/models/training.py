# certhub/models/training.py
"""
Modelos de lectura del módulo de capacitación.

El motor de exámenes solo los consulta (compuerta de elegibilidad); su
administración vive fuera de este servicio.
"""
from sqlalchemy import Column, Integer, TIMESTAMP, UniqueConstraint, func

from certhub.db.base import Base


class UserProject(Base):
    __tablename__ = "user_projects"

    learner_id = Column(Integer, primary_key=True)
    project_id = Column(Integer, primary_key=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())


class TrainingAssignment(Base):
    __tablename__ = "training_assignments"

    id = Column(Integer, primary_key=True, index=True)
    training_id = Column(Integer, nullable=False, index=True)
    learner_id = Column(Integer, nullable=True, index=True)
    project_id = Column(Integer, nullable=True, index=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    # Pasada esta fecha la asignación deja de contar
    unpublish_at = Column(TIMESTAMP(timezone=True), nullable=True)


class TrainingProgress(Base):
    """
    Progreso de un alumno en una capacitación (0..100).
    Una capacitación se considera completa con progress >= 100.
    """
    __tablename__ = "training_progress"
    __table_args__ = (
        UniqueConstraint('learner_id', 'training_id', name='uq_learner_training'),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    training_id = Column(Integer, nullable=False, index=True)
    learner_id = Column(Integer, nullable=False, index=True)
    progress = Column(Integer, nullable=False, default=0)
    last_viewed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    completed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<TrainingProgress(learner_id={self.learner_id}, training_id={self.training_id}, progress={self.progress})>"
