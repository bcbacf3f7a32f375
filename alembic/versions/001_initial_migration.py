"""Initial migration: cards, card_progress, learn_last_missed, learn_sessions

Revision ID: 001_initial_migration
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_migration'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """
    Create card, schedule, last-missed and session history tables.
    """
    op.create_table(
        'cards',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('owner_key', sa.String(), nullable=False),
        sa.Column('type', sa.Enum('VOCAB', 'SENTENCE', name='cardtype'), nullable=False),
        sa.Column('front_text', sa.String(), nullable=False),
        sa.Column('back_text', sa.String(), nullable=False),
        sa.Column('image_path', sa.String(), nullable=True),
        sa.Column('audio_path', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='cards_pkey')
    )
    op.create_index(op.f('ix_cards_owner_key'), 'cards', ['owner_key'], unique=False)

    op.create_table(
        'card_progress',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_key', sa.String(), nullable=False),
        sa.Column('card_id', sa.String(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['card_id'], ['cards.id'], name='card_progress_card_id_fkey'),
        sa.PrimaryKeyConstraint('id', name='card_progress_pkey'),
        sa.UniqueConstraint('owner_key', 'card_id', name='card_progress_owner_card_key'),
        sa.CheckConstraint('level >= 0 AND level <= 5', name='card_progress_level_check')
    )
    op.create_index(op.f('ix_card_progress_owner_key'), 'card_progress', ['owner_key'], unique=False)
    op.create_index(op.f('ix_card_progress_card_id'), 'card_progress', ['card_id'], unique=False)

    op.create_table(
        'learn_last_missed',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_key', sa.String(), nullable=False),
        sa.Column('card_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['card_id'], ['cards.id'], name='learn_last_missed_card_id_fkey'),
        sa.PrimaryKeyConstraint('id', name='learn_last_missed_pkey'),
        sa.UniqueConstraint('owner_key', 'card_id', name='learn_last_missed_owner_card_key')
    )
    op.create_index(op.f('ix_learn_last_missed_owner_key'), 'learn_last_missed', ['owner_key'], unique=False)

    op.create_table(
        'learn_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_key', sa.String(), nullable=False),
        sa.Column('mode', sa.Enum('LEITNER', 'DRILL', name='learnmode'), nullable=False),
        sa.Column('total_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('correct_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wrong_card_ids', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='learn_sessions_pkey')
    )
    op.create_index(op.f('ix_learn_sessions_owner_key'), 'learn_sessions', ['owner_key'], unique=False)
    op.create_index(op.f('ix_learn_sessions_created_at'), 'learn_sessions', ['created_at'], unique=False)


def downgrade() -> None:
    """
    Drop all tables.
    """
    op.drop_index(op.f('ix_learn_sessions_created_at'), table_name='learn_sessions')
    op.drop_index(op.f('ix_learn_sessions_owner_key'), table_name='learn_sessions')
    op.drop_table('learn_sessions')
    op.drop_index(op.f('ix_learn_last_missed_owner_key'), table_name='learn_last_missed')
    op.drop_table('learn_last_missed')
    op.drop_index(op.f('ix_card_progress_card_id'), table_name='card_progress')
    op.drop_index(op.f('ix_card_progress_owner_key'), table_name='card_progress')
    op.drop_table('card_progress')
    op.drop_index(op.f('ix_cards_owner_key'), table_name='cards')
    op.drop_table('cards')
    sa.Enum(name='learnmode').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='cardtype').drop(op.get_bind(), checkfirst=True)
