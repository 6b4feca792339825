"""Create shareable quiz tables

Revision ID: 3f9a2c7d1e04
Revises:
Create Date: 2026-10-19 10:12:44.318207

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision = '3f9a2c7d1e04'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    inspector = inspect(op.get_bind())
    tables = inspector.get_table_names()

    if 'quizzes' not in tables:
        op.create_table('quizzes',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('title', sa.String(length=255), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('class_id', sa.String(length=64), nullable=True),
            sa.Column('teacher_id', sa.String(length=128), nullable=False),
            sa.Column('teacher_name', sa.String(length=255), nullable=False),
            sa.Column('teacher_email', sa.String(length=255), nullable=True),
            sa.Column('time_limit_minutes', sa.Integer(), nullable=True),
            sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('show_correct_answers', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('show_score_immediately', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('randomize_questions', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('require_login', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('available_from', sa.DateTime(), nullable=True),
            sa.Column('available_until', sa.DateTime(), nullable=True),
            sa.Column('passing_score', sa.Numeric(precision=5, scale=2), nullable=True),
            sa.Column('shareable_link', sa.String(length=64), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quizzes_shareable_link', 'quizzes', ['shareable_link'], unique=True)
        op.create_index('ix_quizzes_teacher_id', 'quizzes', ['teacher_id'], unique=False)
        op.create_index('ix_quizzes_class_id', 'quizzes', ['class_id'], unique=False)
        op.create_index('ix_quizzes_is_active', 'quizzes', ['is_active'], unique=False)
        op.create_index('ix_quizzes_created_at', 'quizzes', ['created_at'], unique=False)
        op.create_index('ix_quizzes_teacher_active', 'quizzes', ['teacher_id', 'is_active'], unique=False)

    if 'quiz_questions' not in tables:
        op.create_table('quiz_questions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('question_type', sa.String(length=50), nullable=False),
            sa.Column('question_text', sa.Text(), nullable=False),
            sa.Column('points', sa.Numeric(precision=6, scale=2), nullable=False, server_default='1'),
            sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('correct_answer', sa.Text(), nullable=False),
            sa.Column('explanation', sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('quiz_id', 'order_index', name='uq_quiz_question_order')
        )
        op.create_index('ix_quiz_questions_quiz_id', 'quiz_questions', ['quiz_id'], unique=False)

    if 'quiz_question_options' not in tables:
        op.create_table('quiz_question_options',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('question_id', sa.Integer(), nullable=False),
            sa.Column('option_text', sa.Text(), nullable=False),
            sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
            sa.ForeignKeyConstraint(['question_id'], ['quiz_questions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_quiz_question_options_question_id', 'quiz_question_options', ['question_id'], unique=False)

    if 'quiz_submissions' not in tables:
        op.create_table('quiz_submissions',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('quiz_id', sa.Integer(), nullable=False),
            sa.Column('session_id', sa.String(length=64), nullable=False),
            sa.Column('taker_id', sa.String(length=128), nullable=False),
            sa.Column('taker_name', sa.String(length=255), nullable=False),
            sa.Column('score', sa.Numeric(precision=8, scale=2), nullable=False),
            sa.Column('total_points', sa.Numeric(precision=8, scale=2), nullable=False),
            sa.Column('percentage', sa.Integer(), nullable=False),
            sa.Column('time_spent_seconds', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('finalized_by', sa.String(length=20), nullable=False, server_default='submitted'),
            sa.Column('ip_address', sa.String(length=45), nullable=True),
            sa.Column('started_at', sa.DateTime(), nullable=True),
            sa.Column('submitted_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['quiz_id'], ['quizzes.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('session_id')
        )
        op.create_index('ix_quiz_submissions_quiz_id', 'quiz_submissions', ['quiz_id'], unique=False)
        op.create_index('ix_quiz_submissions_submitted_at', 'quiz_submissions', ['submitted_at'], unique=False)
        op.create_index('ix_quiz_submissions_quiz_taker', 'quiz_submissions', ['quiz_id', 'taker_id'], unique=False)

    if 'quiz_submission_answers' not in tables:
        op.create_table('quiz_submission_answers',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('submission_id', sa.Integer(), nullable=False),
            sa.Column('question_index', sa.Integer(), nullable=False),
            sa.Column('answer', sa.JSON(), nullable=True),
            sa.Column('is_correct', sa.Boolean(), nullable=False, server_default='0'),
            sa.Column('points_earned', sa.Numeric(precision=6, scale=2), nullable=False, server_default='0'),
            sa.ForeignKeyConstraint(['submission_id'], ['quiz_submissions.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('submission_id', 'question_index', name='uq_submission_question')
        )
        op.create_index('ix_quiz_submission_answers_submission_id', 'quiz_submission_answers', ['submission_id'], unique=False)


def downgrade():
    op.drop_index('ix_quiz_submission_answers_submission_id', table_name='quiz_submission_answers')
    op.drop_table('quiz_submission_answers')

    op.drop_index('ix_quiz_submissions_quiz_taker', table_name='quiz_submissions')
    op.drop_index('ix_quiz_submissions_submitted_at', table_name='quiz_submissions')
    op.drop_index('ix_quiz_submissions_quiz_id', table_name='quiz_submissions')
    op.drop_table('quiz_submissions')

    op.drop_index('ix_quiz_question_options_question_id', table_name='quiz_question_options')
    op.drop_table('quiz_question_options')

    op.drop_index('ix_quiz_questions_quiz_id', table_name='quiz_questions')
    op.drop_table('quiz_questions')

    op.drop_index('ix_quizzes_teacher_active', table_name='quizzes')
    op.drop_index('ix_quizzes_created_at', table_name='quizzes')
    op.drop_index('ix_quizzes_is_active', table_name='quizzes')
    op.drop_index('ix_quizzes_class_id', table_name='quizzes')
    op.drop_index('ix_quizzes_teacher_id', table_name='quizzes')
    op.drop_index('ix_quizzes_shareable_link', table_name='quizzes')
    op.drop_table('quizzes')
