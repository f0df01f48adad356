from typing import Dict, List, Optional
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, or_

from certhub.crud.crud_training import get_learner_project_ids
from certhub.models.exam import Exam, ExamQuestion, ExamAssignment


def get_exam(db: Session, exam_id: int) -> Optional[Exam]:
    """
    Obtiene un examen con sus preguntas y opciones cargadas.
    """
    return (
        db.query(Exam)
        .options(selectinload(Exam.questions).selectinload(ExamQuestion.choices))
        .filter(Exam.id == exam_id)
        .first()
    )


def _assignment_target(db: Session, learner_id: int):
    project_ids = get_learner_project_ids(db, learner_id)
    target = ExamAssignment.learner_id == learner_id
    if project_ids:
        target = or_(target, ExamAssignment.project_id.in_(project_ids))
    return target


def has_exam_access(db: Session, learner_id: int, exam_id: int) -> bool:
    """
    Un examen está publicado para el alumno si está asignado a él
    o a alguno de sus proyectos.
    """
    return db.query(
        db.query(ExamAssignment.id)
        .filter(ExamAssignment.exam_id == exam_id)
        .filter(_assignment_target(db, learner_id))
        .exists()
    ).scalar()


def get_assigned_exam_ids(db: Session, learner_id: int) -> List[int]:
    rows = (
        db.query(ExamAssignment.exam_id)
        .filter(_assignment_target(db, learner_id))
        .distinct()
        .all()
    )
    return sorted(row.exam_id for row in rows)


def get_exams(db: Session, exam_ids: List[int], search: Optional[str] = None) -> List[Exam]:
    """
    Lista exámenes por ID, opcionalmente filtrados por título, ordenados por título.
    """
    if not exam_ids:
        return []

    query = db.query(Exam).filter(Exam.id.in_(exam_ids))
    if search and search.strip():
        query = query.filter(Exam.title.ilike(f"%{search.strip()}%"))

    return query.order_by(Exam.title).all()


def count_questions(db: Session, exam_ids: List[int]) -> Dict[int, int]:
    if not exam_ids:
        return {}

    rows = (
        db.query(ExamQuestion.exam_id, func.count(ExamQuestion.id))
        .filter(ExamQuestion.exam_id.in_(exam_ids))
        .group_by(ExamQuestion.exam_id)
        .all()
    )
    return {exam_id: count for exam_id, count in rows}
