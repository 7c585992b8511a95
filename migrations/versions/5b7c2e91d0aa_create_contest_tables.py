"""create question, submission, active_session and game_settings tables

Revision ID: 5b7c2e91d0aa
Revises:
Create Date: 2026-02-20 18:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7c2e91d0aa'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'question' not in existing_tables:
        op.create_table(
            'question',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('text', sa.Text(), nullable=False),
            sa.Column('kind', sa.String(length=32), nullable=False, server_default='free_text'),
            sa.Column('options', sa.Text(), nullable=True),
            sa.Column('correct_answer', sa.String(length=256), nullable=False),
            sa.Column('start_time', sa.DateTime(), nullable=False),
            sa.Column('end_time', sa.DateTime(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_question_start_time', 'question', ['start_time'])

    if 'submission' not in existing_tables:
        op.create_table(
            'submission',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('question_id', sa.Integer(), sa.ForeignKey('question.id'), nullable=False),
            sa.Column('name', sa.String(length=128), nullable=False),
            sa.Column('normalized_name', sa.String(length=128), nullable=False),
            sa.Column('answer', sa.Text(), nullable=False),
            sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('result_viewed', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('submitted_at', sa.DateTime(), nullable=False),
            # Final arbiter for duplicate answers racing past the application pre-check
            sa.UniqueConstraint('question_id', 'normalized_name', name='uq_submission_question_identity'),
        )
        op.create_index('ix_submission_normalized_name', 'submission', ['normalized_name'])

    if 'active_session' not in existing_tables:
        op.create_table(
            'active_session',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_name', sa.String(length=128), nullable=False),
            sa.Column('session_id', sa.String(length=64), nullable=False),
            sa.Column('last_seen', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_active_session_user_name', 'active_session', ['user_name'])
        op.create_index('ix_active_session_session_id', 'active_session', ['session_id'], unique=True)

    if 'game_settings' not in existing_tables:
        op.create_table(
            'game_settings',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('show_winner', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                'current_question_id',
                sa.Integer(),
                sa.ForeignKey('question.id', name='fk_game_settings_current_question_id'),
                nullable=True,
            ),
            sa.Column('winner_name', sa.String(length=128), nullable=True),
        )


def downgrade():
    op.drop_table('game_settings')
    op.drop_index('ix_active_session_session_id', table_name='active_session')
    op.drop_index('ix_active_session_user_name', table_name='active_session')
    op.drop_table('active_session')
    op.drop_index('ix_submission_normalized_name', table_name='submission')
    op.drop_table('submission')
    op.drop_index('ix_question_start_time', table_name='question')
    op.drop_table('question')
