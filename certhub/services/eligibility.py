# certhub/services/eligibility.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from certhub.core.clock import Clock, system_clock
from certhub.crud import crud_training
from certhub.services.exam_errors import NotEligible

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EligibilityResult:
    allowed: bool
    incomplete_count: int
    incomplete_training_ids: List[int] = field(default_factory=list)


class EligibilityGate:
    """
    Compuerta previa al inicio de un examen: el alumno debe haber completado
    todas las capacitaciones asignadas (a él o a sus proyectos).
    Solo lectura, sin efectos secundarios.
    """

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or system_clock

    def can_start(self, learner_id: int, exam_id: int) -> EligibilityResult:
        incomplete = crud_training.get_incomplete_training_ids(self.db, learner_id, self.clock.now())
        return EligibilityResult(
            allowed=len(incomplete) == 0,
            incomplete_count=len(incomplete),
            incomplete_training_ids=incomplete,
        )

    def ensure_can_start(self, learner_id: int, exam_id: int) -> EligibilityResult:
        """
        Raises:
            NotEligible: si quedan capacitaciones pendientes
        """
        result = self.can_start(learner_id, exam_id)
        if not result.allowed:
            logger.info(
                f"Inicio denegado: learner={learner_id}, exam={exam_id}, "
                f"capacitaciones pendientes={result.incomplete_count}"
            )
            raise NotEligible(result.incomplete_count, result.incomplete_training_ids)
        return result
