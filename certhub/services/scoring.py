# certhub/services/scoring.py
"""
Motor de calificación.

Trabaja exclusivamente sobre el snapshot congelado del intento, sin tocar la
base de datos, así que es determinista y se prueba de forma aislada.
"""
from dataclasses import dataclass
from typing import Dict, Optional

DEFAULT_PASS_THRESHOLD = 70.0


@dataclass(frozen=True)
class ScoreResult:
    score: float
    is_passed: bool
    correct_count: int
    total_questions: int


class ScoringEngine:
    """
    score = 100 * correctas / total, redondeado a un decimal.
    Una pregunta sin respuesta (o con opción None) cuenta como incorrecta.

    Precedencia del umbral: argumento explícito, luego el pass_threshold del
    snapshot (umbral propio del examen), luego el umbral del motor.
    """

    def __init__(self, pass_threshold: float = DEFAULT_PASS_THRESHOLD):
        self.pass_threshold = pass_threshold

    def resolve_threshold(self, snapshot: dict, pass_threshold: Optional[float] = None) -> float:
        if pass_threshold is not None:
            return float(pass_threshold)
        if snapshot.get("pass_threshold") is not None:
            return float(snapshot["pass_threshold"])
        return float(self.pass_threshold)

    def score(
        self,
        snapshot: dict,
        answers: Dict[int, Optional[int]],
        pass_threshold: Optional[float] = None,
    ) -> ScoreResult:
        questions = snapshot.get("questions", [])

        correct = 0
        for question in questions:
            picked = answers.get(question["id"])
            if picked is None:
                continue
            correct_ids = {choice["id"] for choice in question["choices"] if choice["is_correct"]}
            if picked in correct_ids:
                correct += 1

        total = len(questions)
        score = round(correct * 100.0 / max(1, total), 1)
        threshold = self.resolve_threshold(snapshot, pass_threshold)

        return ScoreResult(
            score=score,
            is_passed=score >= threshold,
            correct_count=correct,
            total_questions=total,
        )
