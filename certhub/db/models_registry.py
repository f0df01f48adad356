# certhub/db/models_registry.py
# Este archivo importa todos los modelos para que Base.metadata los registre
# (create_all en pruebas y seeds, autogenerate de Alembic)

from certhub.db.base import Base
from certhub.models.exam import (
    Exam, ExamQuestion, ExamChoice, ExamAssignment, ExamAttempt, ExamAttemptAnswer
)
from certhub.models.training import UserProject, TrainingAssignment, TrainingProgress

# Exportar Base para uso en Alembic
__all__ = [
    "Base",
    "Exam", "ExamQuestion", "ExamChoice", "ExamAssignment", "ExamAttempt", "ExamAttemptAnswer",
    "UserProject", "TrainingAssignment", "TrainingProgress",
]
