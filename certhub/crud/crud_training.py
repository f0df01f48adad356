from datetime import datetime
from typing import List
from sqlalchemy.orm import Session
from sqlalchemy import or_

from certhub.models.training import UserProject, TrainingAssignment, TrainingProgress

COMPLETED_PROGRESS = 100


def get_learner_project_ids(db: Session, learner_id: int) -> List[int]:
    """
    Obtiene los proyectos a los que pertenece un alumno.
    """
    rows = db.query(UserProject.project_id).filter(UserProject.learner_id == learner_id).all()
    return sorted({row.project_id for row in rows})


def get_assigned_training_ids(db: Session, learner_id: int, now: datetime) -> List[int]:
    """
    Capacitaciones asignadas al alumno, directamente o a través de sus proyectos.
    Las asignaciones con unpublish_at vencido no cuentan.
    """
    project_ids = get_learner_project_ids(db, learner_id)

    target = TrainingAssignment.learner_id == learner_id
    if project_ids:
        target = or_(target, TrainingAssignment.project_id.in_(project_ids))

    rows = (
        db.query(TrainingAssignment.training_id)
        .filter(target)
        .filter(or_(TrainingAssignment.unpublish_at.is_(None), TrainingAssignment.unpublish_at > now))
        .distinct()
        .all()
    )
    return sorted(row.training_id for row in rows)


def get_incomplete_training_ids(db: Session, learner_id: int, now: datetime) -> List[int]:
    """
    Capacitaciones asignadas que el alumno todavía no completa (progress < 100).
    """
    assigned = get_assigned_training_ids(db, learner_id, now)
    if not assigned:
        return []

    completed = {
        row.training_id
        for row in db.query(TrainingProgress.training_id).filter(
            TrainingProgress.learner_id == learner_id,
            TrainingProgress.training_id.in_(assigned),
            TrainingProgress.progress >= COMPLETED_PROGRESS,
        )
    }
    return [training_id for training_id in assigned if training_id not in completed]


def reset_training_progress(db: Session, learner_id: int, now: datetime) -> int:
    """
    Reinicia a 0 el progreso de todas las capacitaciones asignadas al alumno.
    Crea los registros faltantes. No hace commit; participa en la transacción
    del llamador. Devuelve cuántas capacitaciones quedaron reiniciadas.
    """
    training_ids = get_assigned_training_ids(db, learner_id, now)
    if not training_ids:
        return 0

    progresses = db.query(TrainingProgress).filter(
        TrainingProgress.learner_id == learner_id,
        TrainingProgress.training_id.in_(training_ids),
    ).all()

    existing = {progress.training_id for progress in progresses}
    for training_id in training_ids:
        if training_id not in existing:
            progress = TrainingProgress(learner_id=learner_id, training_id=training_id)
            db.add(progress)
            progresses.append(progress)

    for progress in progresses:
        progress.progress = 0
        progress.last_viewed_at = None
        progress.completed_at = None
        progress.updated_at = now

    db.flush()
    return len(progresses)
