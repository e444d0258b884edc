"""Add custom_domains and quota_locks

Revision ID: 0001_custom_domains
Revises: 0000_initial
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_custom_domains'
down_revision = '0000_initial'
branch_labels = None
depends_on = None


custom_domain_status = sa.Enum('pending', 'active', 'failed', 'blocked', name='custom_domain_status')
resource_kind = sa.Enum('vcard', 'project', 'pixel', 'custom_domain', name='resource_kind')


def upgrade():
    op.create_table(
        'custom_domains',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('domain', sa.String(length=253), nullable=False),
        sa.Column('status', custom_domain_status, nullable=False, server_default='pending'),
        sa.Column('verification_token', sa.String(length=64), nullable=False),
        sa.Column('cname_target', sa.String(length=253), nullable=False),
        sa.Column('landing_url', sa.String(length=500), nullable=False),
        sa.Column('not_found_url', sa.String(length=500), nullable=False),
        sa.Column('vcard_id', sa.Integer(), sa.ForeignKey('vcards.id', ondelete='SET NULL')),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('verified_at', sa.DateTime()),
        sa.Column('last_checked_at', sa.DateTime()),
        # One domain per host name, one domain per vCard.
        sa.UniqueConstraint('vcard_id', name='uq_custom_domains_vcard_id'),
    )
    op.create_index('ix_custom_domains_domain', 'custom_domains', ['domain'], unique=True)
    op.create_index('ix_custom_domains_user_id', 'custom_domains', ['user_id'], unique=False)
    op.create_index('ix_custom_domains_created_at', 'custom_domains', ['created_at'], unique=False)

    op.create_table(
        'quota_locks',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('resource_kind', resource_kind, primary_key=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table('quota_locks')
    resource_kind.drop(op.get_bind(), checkfirst=True)

    op.drop_index('ix_custom_domains_created_at', table_name='custom_domains')
    op.drop_index('ix_custom_domains_user_id', table_name='custom_domains')
    op.drop_index('ix_custom_domains_domain', table_name='custom_domains')
    op.drop_table('custom_domains')
    custom_domain_status.drop(op.get_bind(), checkfirst=True)
