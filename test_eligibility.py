"""
Pruebas de la compuerta de elegibilidad (capacitaciones completadas).
"""
from dataclasses import replace
from datetime import timedelta

import pytest

from certhub.models.exam import ExamAttempt
from certhub.services.eligibility import EligibilityGate
from certhub.services.exam_errors import NotEligible

from conftest import LEARNER_ID, OTHER_LEARNER_ID, START_TIME, seed_exam, seed_membership, seed_training


def test_learner_without_trainings_is_allowed(session_factory, clock):
    db = session_factory()
    try:
        result = EligibilityGate(db, clock).can_start(LEARNER_ID, exam_id=1)
    finally:
        db.close()

    assert result.allowed is True
    assert result.incomplete_count == 0


def test_incomplete_and_missing_progress_are_counted(session_factory, clock):
    seed_training(session_factory, training_id=1, progress=100)
    seed_training(session_factory, training_id=2, progress=40)
    seed_training(session_factory, training_id=3)

    db = session_factory()
    try:
        result = EligibilityGate(db, clock).can_start(LEARNER_ID, exam_id=1)
    finally:
        db.close()

    assert result.allowed is False
    assert result.incomplete_count == 2
    assert result.incomplete_training_ids == [2, 3]


def test_project_trainings_are_included(session_factory, clock):
    seed_membership(session_factory, LEARNER_ID, project_id=77)
    seed_training(session_factory, training_id=5, project_id=77)

    db = session_factory()
    try:
        result = EligibilityGate(db, clock).can_start(LEARNER_ID, exam_id=1)
    finally:
        db.close()

    assert result.incomplete_training_ids == [5]


def test_unpublished_assignments_are_ignored(session_factory, clock):
    seed_training(session_factory, training_id=8, unpublish_at=START_TIME - timedelta(days=1))
    seed_training(session_factory, training_id=9, unpublish_at=START_TIME + timedelta(days=1))

    db = session_factory()
    try:
        result = EligibilityGate(db, clock).can_start(LEARNER_ID, exam_id=1)
    finally:
        db.close()

    assert result.incomplete_training_ids == [9]


def test_other_learners_progress_does_not_count(session_factory, clock):
    seed_training(session_factory, training_id=4, progress=100, progress_learner_id=OTHER_LEARNER_ID)

    db = session_factory()
    try:
        result = EligibilityGate(db, clock).can_start(LEARNER_ID, exam_id=1)
    finally:
        db.close()

    assert result.allowed is False


def test_ensure_can_start_raises_with_details(session_factory, clock):
    seed_training(session_factory, training_id=2, progress=99)

    db = session_factory()
    try:
        with pytest.raises(NotEligible) as exc_info:
            EligibilityGate(db, clock).ensure_can_start(LEARNER_ID, exam_id=1)
    finally:
        db.close()

    detail = exc_info.value.to_detail()
    assert detail["code"] == "TRAININGS_NOT_COMPLETED"
    assert detail["incomplete_training_count"] == 1
    assert detail["incomplete_training_ids"] == [2]


def test_start_is_denied_without_creating_an_attempt(session_factory, service):
    exam = seed_exam(session_factory)
    seed_training(session_factory, training_id=1, progress=10)

    with pytest.raises(NotEligible):
        service.start(LEARNER_ID, exam.exam_id)

    assert service.db.query(ExamAttempt).count() == 0


def test_failed_attempt_resets_trainings_when_enabled(session_factory, make_service, engine_config):
    exam = seed_exam(session_factory)
    seed_training(session_factory, training_id=1, progress=100)

    config = replace(engine_config, reset_trainings_on_fail=True)
    service = make_service(config=config)

    started = service.start(LEARNER_ID, exam.exam_id)
    result = service.submit(started.attempt_id)

    assert result.is_passed is False
    with pytest.raises(NotEligible):
        service.start(LEARNER_ID, exam.exam_id)


def test_failed_attempt_keeps_trainings_by_default(session_factory, service):
    exam = seed_exam(session_factory)
    seed_training(session_factory, training_id=1, progress=100)

    started = service.start(LEARNER_ID, exam.exam_id)
    service.submit(started.attempt_id)

    retry = service.start(LEARNER_ID, exam.exam_id)
    assert retry.created is True
