# certhub/services/attempt_snapshot.py
"""
Snapshot del examen y orden aleatorio por intento.

Al iniciar un intento se congela una copia del examen (preguntas, opciones,
respuesta correcta, duración y umbral). El orden aleatorio de preguntas y
opciones se guarda en shuffle_json para que recargar la página muestre
siempre el mismo orden.
"""
import random
from typing import Dict, List, Optional

from certhub.models.exam import Exam


def build_exam_snapshot(exam: Exam, default_duration_minutes: int = 30) -> dict:
    questions = sorted(exam.questions, key=lambda q: (q.order, q.id))
    return {
        "exam_id": exam.id,
        "title": exam.title,
        "duration_minutes": exam.duration_minutes or default_duration_minutes,
        "pass_threshold": exam.pass_threshold,
        "questions": [
            {
                "id": question.id,
                "order": question.order,
                "text": question.text,
                "choices": [
                    {
                        "id": choice.id,
                        "text": choice.text,
                        "image_url": choice.image_url,
                        "is_correct": bool(choice.is_correct),
                    }
                    for choice in sorted(question.choices, key=lambda c: c.id)
                ],
            }
            for question in questions
        ],
    }


def build_shuffle_state(snapshot: dict, rng: Optional[random.Random] = None, shuffle: bool = True) -> dict:
    """
    Genera el orden de preguntas y de opciones por pregunta.
    Con shuffle=False conserva el orden del snapshot.
    """
    rng = rng or random.Random()

    question_ids = [question["id"] for question in snapshot["questions"]]
    if shuffle:
        rng.shuffle(question_ids)

    choice_ids_by_question: Dict[str, List[int]] = {}
    for question in snapshot["questions"]:
        choice_ids = [choice["id"] for choice in question["choices"]]
        if shuffle:
            rng.shuffle(choice_ids)
        # Las llaves JSON siempre son texto
        choice_ids_by_question[str(question["id"])] = choice_ids

    return {
        "question_ids": question_ids,
        "choice_ids_by_question": choice_ids_by_question,
    }


def is_valid_shuffle_state(state) -> bool:
    if not isinstance(state, dict):
        return False
    question_ids = state.get("question_ids")
    by_question = state.get("choice_ids_by_question")
    return isinstance(question_ids, list) and len(question_ids) > 0 and isinstance(by_question, dict)


def find_question(snapshot: dict, question_id: int) -> Optional[dict]:
    for question in snapshot.get("questions", []):
        if question["id"] == question_id:
            return question
    return None


def ordered_questions(snapshot: dict, shuffle_state: Optional[dict], include_correct: bool = False) -> List[dict]:
    """
    Devuelve las preguntas en el orden registrado del intento, numeradas desde 1.
    Elementos que falten en shuffle_state se agregan al final en el orden del snapshot.
    """
    questions = snapshot.get("questions", [])
    by_id = {question["id"]: question for question in questions}

    if is_valid_shuffle_state(shuffle_state):
        question_ids = [qid for qid in shuffle_state["question_ids"] if qid in by_id]
        choice_orders = shuffle_state["choice_ids_by_question"]
    else:
        question_ids = []
        choice_orders = {}

    seen = set(question_ids)
    question_ids.extend(question["id"] for question in questions if question["id"] not in seen)

    result = []
    for position, question_id in enumerate(question_ids, start=1):
        question = by_id[question_id]
        choices_by_id = {choice["id"]: choice for choice in question["choices"]}

        order = [cid for cid in choice_orders.get(str(question_id), []) if cid in choices_by_id]
        used = set(order)
        order.extend(choice["id"] for choice in question["choices"] if choice["id"] not in used)

        choices = []
        for choice_id in order:
            choice = choices_by_id[choice_id]
            item = {"id": choice["id"], "text": choice["text"], "image_url": choice["image_url"]}
            if include_correct:
                item["is_correct"] = choice["is_correct"]
            choices.append(item)

        result.append({
            "id": question["id"],
            "order": position,
            "text": question["text"],
            "choices": choices,
        })

    return result
