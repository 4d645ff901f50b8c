"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 10:00:00

"""
from alembic import op
from tribute.core.config import settings
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _fk(target: str) -> str:
    if settings.DB_SCHEMA:
        return f'{settings.DB_SCHEMA}.{target}'
    return target


def upgrade() -> None:
    if settings.DB_SCHEMA:
        op.execute(f'CREATE SCHEMA IF NOT EXISTS "{settings.DB_SCHEMA}"')

    # Entries, documents and gallery images (owned by the wider application)
    op.create_table(
        'entries',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('organization_id', sa.String(255), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        schema=settings.DB_SCHEMA
    )
    op.create_index('idx_entries_user', 'entries', ['user_id'], schema=settings.DB_SCHEMA)
    op.create_index('idx_entries_org', 'entries', ['organization_id'], schema=settings.DB_SCHEMA)

    op.create_table(
        'documents',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('entry_id', postgresql.UUID(as_uuid=True), sa.ForeignKey(_fk('entries.id'), ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('kind', sa.String(16), nullable=False, server_default='obituary'),
        sa.Column('commenting_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        schema=settings.DB_SCHEMA
    )
    op.create_index('idx_documents_entry', 'documents', ['entry_id'], schema=settings.DB_SCHEMA)

    op.create_table(
        'entry_images',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('entry_id', postgresql.UUID(as_uuid=True), sa.ForeignKey(_fk('entries.id'), ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('url', sa.String(2048), nullable=False),
        sa.Column('caption', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        schema=settings.DB_SCHEMA
    )
    op.create_index('idx_entry_images_entry_created', 'entry_images', ['entry_id', 'created_at'], schema=settings.DB_SCHEMA)

    # Share links: no FK to the resource so links outlive deleted documents/images
    op.create_table(
        'share_links',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('share_key', sa.String(64), nullable=False),
        sa.Column('resource_type', sa.String(16), nullable=False),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('entry_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('permission', sa.String(16), nullable=False, server_default='view'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint("resource_type IN ('document', 'image')", name='ck_share_links_resource_type'),
        sa.CheckConstraint("permission IN ('view', 'comment')", name='ck_share_links_permission'),
        schema=settings.DB_SCHEMA
    )
    op.create_index('ix_share_links_share_key', 'share_links', ['share_key'], unique=True, schema=settings.DB_SCHEMA)
    op.create_index('idx_share_links_resource', 'share_links', ['resource_type', 'resource_id'], schema=settings.DB_SCHEMA)
    op.create_index('idx_share_links_entry', 'share_links', ['entry_id'], schema=settings.DB_SCHEMA)

    op.create_table(
        'guest_commenters',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('share_link_id', postgresql.UUID(as_uuid=True), sa.ForeignKey(_fk('share_links.id'), ondelete='CASCADE'), nullable=False),
        sa.Column('display_name', sa.String(80), nullable=False),
        sa.Column('fingerprint', sa.String(64), nullable=False),
        sa.Column('first_seen_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('last_seen_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.UniqueConstraint('share_link_id', 'fingerprint', name='uq_guest_commenters_link_fingerprint'),
        schema=settings.DB_SCHEMA
    )
    op.create_index('ix_guest_commenters_share_link_id', 'guest_commenters', ['share_link_id'], schema=settings.DB_SCHEMA)

    op.create_table(
        'document_comments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('document_id', postgresql.UUID(as_uuid=True), sa.ForeignKey(_fk('documents.id'), ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('guest_commenter_id', postgresql.UUID(as_uuid=True), sa.ForeignKey(_fk('guest_commenters.id'), ondelete='SET NULL'), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('status_changed_by', sa.String(255), nullable=True),
        sa.Column('status_changed_at', sa.DateTime(), nullable=True),
        sa.Column('parent_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('anchor_start', sa.Integer(), nullable=True),
        sa.Column('anchor_end', sa.Integer(), nullable=True),
        sa.Column('anchor_text', sa.Text(), nullable=True),
        sa.Column('anchor_prefix', sa.Text(), nullable=True),
        sa.Column('anchor_suffix', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('(user_id IS NULL) <> (guest_commenter_id IS NULL)', name='ck_document_comments_single_author'),
        schema=settings.DB_SCHEMA
    )
    op.create_index('idx_document_comments_document_created', 'document_comments', ['document_id', 'created_at'], schema=settings.DB_SCHEMA)

    # Ledger of cache tags whose invalidation failed after commit
    op.create_table(
        'pending_invalidations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tag', sa.String(255), nullable=False),
        sa.Column('freshness', sa.String(16), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        schema=settings.DB_SCHEMA
    )
    op.create_index('ix_pending_invalidations_tag', 'pending_invalidations', ['tag'], schema=settings.DB_SCHEMA)


def downgrade() -> None:
    op.drop_table('pending_invalidations', schema=settings.DB_SCHEMA)
    op.drop_table('document_comments', schema=settings.DB_SCHEMA)
    op.drop_table('guest_commenters', schema=settings.DB_SCHEMA)
    op.drop_table('share_links', schema=settings.DB_SCHEMA)
    op.drop_table('entry_images', schema=settings.DB_SCHEMA)
    op.drop_table('documents', schema=settings.DB_SCHEMA)
    op.drop_table('entries', schema=settings.DB_SCHEMA)
