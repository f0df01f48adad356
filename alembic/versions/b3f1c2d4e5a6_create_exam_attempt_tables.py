"""create_exam_attempt_tables

Revision ID: b3f1c2d4e5a6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'b3f1c2d4e5a6'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    """Create exam, attempt and training read-model tables."""
    op.create_table(
        'exams',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('pass_threshold', sa.Float(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_exams_project_id', 'exams', ['project_id'])

    op.create_table(
        'exam_questions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('text', sa.String(1000), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_exam_questions_exam_id', 'exam_questions', ['exam_id'])

    op.create_table(
        'exam_choices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('text', sa.String(400), nullable=True),
        sa.Column('image_url', sa.String(600), nullable=True),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['question_id'], ['exam_questions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_exam_choices_question_id', 'exam_choices', ['question_id'])

    op.create_table(
        'exam_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('learner_id', sa.Integer(), nullable=True),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.CheckConstraint(
            '(learner_id IS NOT NULL AND project_id IS NULL) OR '
            '(learner_id IS NULL AND project_id IS NOT NULL)',
            name='ck_exam_assignments_target'
        ),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('exam_id', 'learner_id', name='uq_exam_assignments_learner'),
        sa.UniqueConstraint('exam_id', 'project_id', name='uq_exam_assignments_project')
    )
    op.create_index('ix_exam_assignments_exam_id', 'exam_assignments', ['exam_id'])

    op.create_table(
        'exam_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('exam_id', sa.Integer(), nullable=False),
        sa.Column('learner_id', sa.Integer(), nullable=False),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('ends_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('duration_used_sec', sa.Integer(), nullable=True),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('is_passed', sa.Boolean(), nullable=True),
        sa.Column('auto_submitted', sa.Boolean(), nullable=True),
        sa.Column('note', sa.String(600), nullable=True),
        sa.Column('exam_snapshot', JSONType, nullable=False),
        sa.Column('shuffle_json', JSONType, nullable=True),
        sa.ForeignKeyConstraint(['exam_id'], ['exams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_exam_attempts_exam_id', 'exam_attempts', ['exam_id'])
    op.create_index('ix_exam_attempts_learner_id', 'exam_attempts', ['learner_id'])
    op.create_index('ix_exam_attempts_open_ends_at', 'exam_attempts', ['submitted_at', 'ends_at'])
    # A lo sumo un intento abierto por (examen, alumno)
    op.create_index(
        'uq_exam_attempts_open',
        'exam_attempts',
        ['exam_id', 'learner_id'],
        unique=True,
        postgresql_where=sa.text('submitted_at IS NULL'),
        sqlite_where=sa.text('submitted_at IS NULL')
    )

    op.create_table(
        'exam_attempt_answers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attempt_id', sa.Integer(), nullable=False),
        sa.Column('question_id', sa.Integer(), nullable=False),
        sa.Column('choice_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['attempt_id'], ['exam_attempts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_attempt_question')
    )
    op.create_index('ix_exam_attempt_answers_attempt_id', 'exam_attempt_answers', ['attempt_id'])

    op.create_table(
        'user_projects',
        sa.Column('learner_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('learner_id', 'project_id')
    )

    op.create_table(
        'training_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('training_id', sa.Integer(), nullable=False),
        sa.Column('learner_id', sa.Integer(), nullable=True),
        sa.Column('project_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('unpublish_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_training_assignments_id', 'training_assignments', ['id'])
    op.create_index('ix_training_assignments_training_id', 'training_assignments', ['training_id'])
    op.create_index('ix_training_assignments_learner_id', 'training_assignments', ['learner_id'])
    op.create_index('ix_training_assignments_project_id', 'training_assignments', ['project_id'])

    op.create_table(
        'training_progress',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('training_id', sa.Integer(), nullable=False),
        sa.Column('learner_id', sa.Integer(), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_viewed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('learner_id', 'training_id', name='uq_learner_training')
    )
    op.create_index('ix_training_progress_id', 'training_progress', ['id'])
    op.create_index('ix_training_progress_training_id', 'training_progress', ['training_id'])
    op.create_index('ix_training_progress_learner_id', 'training_progress', ['learner_id'])


def downgrade() -> None:
    """Drop exam, attempt and training read-model tables."""
    op.drop_table('training_progress')
    op.drop_table('training_assignments')
    op.drop_table('user_projects')
    op.drop_table('exam_attempt_answers')
    op.drop_index('uq_exam_attempts_open', table_name='exam_attempts')
    op.drop_table('exam_attempts')
    op.drop_table('exam_assignments')
    op.drop_table('exam_choices')
    op.drop_table('exam_questions')
    op.drop_table('exams')
