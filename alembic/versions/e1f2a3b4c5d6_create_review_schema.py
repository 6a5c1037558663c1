"""create review schema

Revision ID: e1f2a3b4c5d6
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = 'e1f2a3b4c5d6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

project_type = postgresql.ENUM(
    'systematic_review', 'meta_analysis', 'scoping_review', 'narrative_review', 'umbrella_review', 'custom',
    name='project_type', create_type=False
)
project_status = postgresql.ENUM(
    'draft', 'active', 'review', 'completed', 'archived',
    name='project_status', create_type=False
)
message_role = postgresql.ENUM('user', 'assistant', 'system', name='message_role', create_type=False)
article_source = postgresql.ENUM('pubmed', 'scopus', 'wos', 'manual', 'other', name='article_source', create_type=False)
article_status = postgresql.ENUM('pending', 'processing', 'completed', 'error', name='article_status', create_type=False)
screening_decision = postgresql.ENUM('include', 'exclude', 'maybe', name='screening_decision', create_type=False)

ENUMS = [project_type, project_status, message_role, article_source, article_status, screening_decision]


def _id_column():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'), index=True)


def _timestamps(updated=True):
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False))
    return columns


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'profiles',
        _id_column(),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('full_name', sa.String(200), nullable=True),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        sa.Column('organization', sa.String(200), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'projects',
        _id_column(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('project_type', project_type, nullable=False, server_default='systematic_review'),
        sa.Column('status', project_status, nullable=False, server_default='draft', index=True),
        sa.Column('research_domain', sa.String(200), nullable=True),
        sa.Column('progress_percentage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_stage', sa.String(100), nullable=False, server_default='Planning'),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('progress_percentage >= 0 AND progress_percentage <= 100', name='ck_projects_progress_range'),
    )

    op.create_table(
        'conversations',
        _id_column(),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(200), nullable=False, server_default='New Conversation'),
        sa.Column('context', sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'messages',
        _id_column(),
        sa.Column('conversation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('role', message_role, nullable=False, index=True),
        sa.Column('content', sa.Text(), nullable=False, server_default=''),
        sa.Column('metadata', postgresql.JSONB(), nullable=False, server_default='{}'),
        *_timestamps(updated=False),
    )

    op.create_table(
        'articles',
        _id_column(),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('external_id', sa.String(255), nullable=True),
        sa.Column('source', article_source, nullable=False, server_default='manual'),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('authors', postgresql.ARRAY(sa.Text()), nullable=True),
        sa.Column('abstract', sa.Text(), nullable=True),
        sa.Column('publication_date', sa.Date(), nullable=True),
        sa.Column('journal', sa.String(500), nullable=True),
        sa.Column('doi', sa.String(255), nullable=True),
        sa.Column('pmid', sa.String(50), nullable=True),
        sa.Column('url', sa.String(1000), nullable=True),
        sa.Column('status', article_status, nullable=False, server_default='pending', index=True),
        sa.Column('screening_decision', screening_decision, nullable=True, index=True),
        sa.Column('screening_notes', sa.Text(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=False, server_default='{}'),
        *_timestamps(),
        sa.UniqueConstraint('project_id', 'source', 'external_id', name='uq_articles_project_source_external'),
    )

    op.create_table(
        'export_logs',
        _id_column(),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('export_type', sa.String(20), nullable=False),
        sa.Column('record_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('filters', postgresql.JSONB(), nullable=True),
        *_timestamps(updated=False),
    )


def downgrade() -> None:
    op.drop_table('export_logs')
    op.drop_table('articles')
    op.drop_table('messages')
    op.drop_table('conversations')
    op.drop_table('projects')
    op.drop_table('profiles')

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
