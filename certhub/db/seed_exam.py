"""
Seed script para un examen de demostración con su capacitación previa.

Ejecutar con:
    python -m certhub.db.seed_exam
"""
from certhub.db.base import Base
from certhub.db.models_registry import (
    Exam,
    ExamAssignment,
    ExamChoice,
    ExamQuestion,
    TrainingAssignment,
    TrainingProgress,
)
from certhub.db.session import engine, SessionLocal


DEMO_LEARNER_ID = 1
DEMO_TRAINING_ID = 1

EXAM = {
    "title": "Seguridad industrial básica",
    "duration_minutes": 15,
    "pass_threshold": 80.0,
}

# Cada entrada: (texto de la pregunta, [opciones], índice de la opción correcta)
QUESTIONS = [
    (
        "¿Qué equipo de protección es obligatorio en el área de producción?",
        ["Casco, lentes y calzado de seguridad", "Solo guantes", "Ninguno", "Solo chaleco"],
        0,
    ),
    (
        "¿Qué se debe hacer antes de dar mantenimiento a una máquina?",
        ["Trabajar rápido", "Aplicar bloqueo y etiquetado (LOTO)", "Avisar al terminar", "Nada"],
        1,
    ),
    (
        "¿Cuál es la primera acción ante un derrame químico?",
        ["Limpiarlo con agua", "Ignorarlo", "Aislar el área y avisar al responsable", "Cubrirlo con cartón"],
        2,
    ),
    (
        "¿Dónde deben quedar las rutas de evacuación?",
        ["Bloqueadas con material", "Libres y señalizadas", "Cerradas con llave", "Sin señalización"],
        1,
    ),
    (
        "¿Cada cuánto se revisan los extintores?",
        ["Nunca", "Cada 10 años", "Solo tras un incendio", "Mensualmente"],
        3,
    ),
]


def seed():
    """Crea las tablas (si no existen), el examen de demostración y su publicación."""
    Base.metadata.create_all(bind=engine)
    print("Tablas creadas / verificadas.")

    db = SessionLocal()
    try:
        existing = db.query(Exam).filter_by(title=EXAM["title"]).first()
        if existing:
            print(f"El examen '{EXAM['title']}' ya existe (id={existing.id}).")
            return

        exam = Exam(**EXAM)
        for order, (text, options, correct) in enumerate(QUESTIONS, start=1):
            question = ExamQuestion(text=text, order=order)
            question.choices = [
                ExamChoice(text=option, is_correct=index == correct)
                for index, option in enumerate(options)
            ]
            exam.questions.append(question)
        db.add(exam)
        db.flush()

        db.add(ExamAssignment(exam_id=exam.id, learner_id=DEMO_LEARNER_ID))
        db.add(TrainingAssignment(training_id=DEMO_TRAINING_ID, learner_id=DEMO_LEARNER_ID))
        db.add(TrainingProgress(training_id=DEMO_TRAINING_ID, learner_id=DEMO_LEARNER_ID, progress=100))
        db.commit()

        print(f"Examen creado (id={exam.id}) con {len(QUESTIONS)} preguntas.")
        print(f"Publicado para el alumno {DEMO_LEARNER_ID} con su capacitación completada.")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
