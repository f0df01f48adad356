"""
Pruebas del motor de calificación (sin base de datos).
"""
import pytest

from certhub.services.scoring import DEFAULT_PASS_THRESHOLD, ScoringEngine


def make_snapshot(question_count: int, pass_threshold=None) -> dict:
    return {
        "exam_id": 1,
        "title": "Examen",
        "duration_minutes": 30,
        "pass_threshold": pass_threshold,
        "questions": [
            {
                "id": qid,
                "order": qid,
                "text": f"Pregunta {qid}",
                "choices": [
                    {"id": qid * 10 + 1, "text": "Correcta", "image_url": None, "is_correct": True},
                    {"id": qid * 10 + 2, "text": "Incorrecta", "image_url": None, "is_correct": False},
                ],
            }
            for qid in range(1, question_count + 1)
        ],
    }


def correct_answers(snapshot: dict) -> dict:
    return {q["id"]: q["id"] * 10 + 1 for q in snapshot["questions"]}


def test_default_threshold_is_seventy():
    assert DEFAULT_PASS_THRESHOLD == 70.0
    assert ScoringEngine().pass_threshold == 70.0


def test_all_correct_passes_with_full_score():
    snapshot = make_snapshot(4)
    result = ScoringEngine().score(snapshot, correct_answers(snapshot))

    assert result.score == 100.0
    assert result.is_passed is True
    assert result.correct_count == 4
    assert result.total_questions == 4


def test_no_answers_fails_with_zero():
    result = ScoringEngine().score(make_snapshot(3), {})

    assert result.score == 0.0
    assert result.is_passed is False
    assert result.correct_count == 0


def test_skipped_and_wrong_answers_count_as_incorrect():
    snapshot = make_snapshot(3)
    answers = {1: 11, 2: None, 3: 32}

    result = ScoringEngine().score(snapshot, answers)

    assert result.correct_count == 1
    assert result.score == 33.3


def test_score_is_rounded_to_one_decimal():
    snapshot = make_snapshot(3)
    answers = {1: 11, 2: 21}

    assert ScoringEngine().score(snapshot, answers).score == 66.7


def test_pass_boundary_is_inclusive():
    snapshot = make_snapshot(2)
    result = ScoringEngine(pass_threshold=50.0).score(snapshot, {1: 11})

    assert result.score == 50.0
    assert result.is_passed is True


def test_exam_with_no_questions_scores_zero():
    result = ScoringEngine().score(make_snapshot(0), {})

    assert result.score == 0.0
    assert result.total_questions == 0
    assert result.is_passed is False


def test_answers_outside_snapshot_are_ignored():
    snapshot = make_snapshot(2)
    answers = {1: 11, 99: 991}

    result = ScoringEngine().score(snapshot, answers)

    assert result.correct_count == 1
    assert result.total_questions == 2


@pytest.mark.parametrize(
    "argument, snapshot_threshold, expected",
    [
        (90.0, 40.0, 90.0),
        (None, 40.0, 40.0),
        (None, None, 70.0),
    ],
)
def test_threshold_precedence(argument, snapshot_threshold, expected):
    engine = ScoringEngine(pass_threshold=70.0)
    snapshot = make_snapshot(1, pass_threshold=snapshot_threshold)

    assert engine.resolve_threshold(snapshot, argument) == expected


def test_scoring_is_deterministic():
    snapshot = make_snapshot(5)
    answers = {1: 11, 2: 22, 3: 31, 5: None}
    engine = ScoringEngine()

    results = {engine.score(snapshot, answers) for _ in range(20)}

    assert len(results) == 1
