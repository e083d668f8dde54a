"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - users: link owners and admins
    - links: slug to destination mapping
    - sessions: browser-locking redirect tokens (6 minute TTL)
    - suspicious_ips: flagged IPs (24 hour TTL)
    - challenges: outstanding anti-bot challenges (expire at expires_at)
    """
    bind = op.get_bind()
    existing_tables = inspect(bind).get_table_names()

    if 'users' not in existing_tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('name', sa.String(length=200), nullable=True),
            sa.Column('email', sa.String(length=320), nullable=True),
            sa.Column('image', sa.Text(), nullable=True),
            sa.Column('role', sa.String(length=10), nullable=False, server_default='user'),
            sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_links_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('link_shortify_key', sa.String(length=200), nullable=True),
            sa.Column('aro_links_key', sa.String(length=200), nullable=True),
            sa.Column('vp_link_key', sa.String(length=200), nullable=True),
            sa.Column('in_short_url_key', sa.String(length=200), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)

    if 'links' not in existing_tables:
        op.create_table(
            'links',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('slug', sa.String(length=64), nullable=False),
            sa.Column('original_url', sa.Text(), nullable=False),
            sa.Column('link_shortify_url', sa.Text(), nullable=True),
            sa.Column('aro_links_url', sa.Text(), nullable=True),
            sa.Column('vp_link_url', sa.Text(), nullable=True),
            sa.Column('in_short_url_url', sa.Text(), nullable=True),
            sa.Column('urls', sa.JSON(), nullable=False),
            sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_links_slug', 'links', ['slug'], unique=True)
        op.create_index('ix_links_owner_id', 'links', ['owner_id'])

    if 'sessions' not in existing_tables:
        op.create_table(
            'sessions',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('token', sa.String(length=64), nullable=False),
            sa.Column('target_url', sa.Text(), nullable=False),
            sa.Column('ip_address', sa.String(length=45), nullable=False),
            sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('max_uses', sa.Integer(), nullable=False, server_default='3'),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('link_id', sa.Integer(), sa.ForeignKey('links.id'), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_sessions_token', 'sessions', ['token'], unique=True)
        op.create_index('ix_sessions_created_at', 'sessions', ['created_at'])

    if 'suspicious_ips' not in existing_tables:
        op.create_table(
            'suspicious_ips',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('ip_address', sa.String(length=45), nullable=False),
            sa.Column('reason', sa.String(length=200), nullable=False),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_suspicious_ips_ip_address', 'suspicious_ips', ['ip_address'])
        op.create_index('ix_suspicious_ips_created_at', 'suspicious_ips', ['created_at'])

    if 'challenges' not in existing_tables:
        op.create_table(
            'challenges',
            sa.Column('id', sa.Integer(), nullable=False, autoincrement=True),
            sa.Column('challenge_id', sa.String(length=64), nullable=False),
            sa.Column('nonce', sa.String(length=64), nullable=False),
            sa.Column('rotating_secret', sa.String(length=64), nullable=False),
            sa.Column('signature', sa.String(length=64), nullable=False),
            sa.Column('difficulty', sa.Integer(), nullable=False),
            sa.Column('expires_at', sa.BigInteger(), nullable=False),
            sa.Column('ip', sa.String(length=45), nullable=False),
            sa.Column('ua_hash', sa.String(length=64), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index('ix_challenges_challenge_id', 'challenges', ['challenge_id'], unique=True)
        op.create_index('ix_challenges_expires_at', 'challenges', ['expires_at'])


def downgrade() -> None:
    """Drop all tables; indexes go with them."""
    for table in ('challenges', 'suspicious_ips', 'sessions', 'links', 'users'):
        op.drop_table(table)
