"""create protocols

Revision ID: f7a8b9c0d1e2
Revises: e1f2a3b4c5d6
Create Date: 2026-10-18 14:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = 'f7a8b9c0d1e2'
down_revision: Union[str, None] = 'e1f2a3b4c5d6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

framework_type = postgresql.ENUM('pico', 'spider', 'other', name='framework_type', create_type=False)
protocol_status = postgresql.ENUM('draft', 'active', 'completed', 'archived', name='protocol_status', create_type=False)


def _text_array(name):
    return sa.Column(name, postgresql.ARRAY(sa.Text()), nullable=False, server_default='{}')


def upgrade() -> None:
    bind = op.get_bind()
    framework_type.create(bind, checkfirst=True)
    protocol_status.create(bind, checkfirst=True)

    op.create_table(
        'protocols',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'), index=True),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('research_question', sa.Text(), nullable=False),
        sa.Column('framework_type', framework_type, nullable=False, server_default='pico', index=True),
        sa.Column('population', sa.Text(), nullable=True),
        sa.Column('intervention', sa.Text(), nullable=True),
        sa.Column('comparison', sa.Text(), nullable=True),
        sa.Column('outcome', sa.Text(), nullable=True),
        sa.Column('sample', sa.Text(), nullable=True),
        sa.Column('phenomenon', sa.Text(), nullable=True),
        sa.Column('design', sa.Text(), nullable=True),
        sa.Column('evaluation', sa.Text(), nullable=True),
        sa.Column('research_type', sa.Text(), nullable=True),
        _text_array('inclusion_criteria'),
        _text_array('exclusion_criteria'),
        sa.Column('search_strategy', postgresql.JSONB(), nullable=False, server_default='{}'),
        _text_array('databases'),
        _text_array('keywords'),
        sa.Column('date_range', postgresql.JSONB(), nullable=True),
        _text_array('study_types'),
        sa.Column('status', protocol_status, nullable=False, server_default='draft', index=True),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('ai_generated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('ai_guidance_used', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('protocols')

    bind = op.get_bind()
    protocol_status.drop(bind, checkfirst=True)
    framework_type.drop(bind, checkfirst=True)
