"""Initial schema: users, plans, subscriptions and plan-gated resources

Revision ID: 0000_initial
Revises:
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0000_initial'
down_revision = None
branch_labels = None
depends_on = None


subscription_status = sa.Enum('pending', 'active', 'canceled', 'expired', name='subscription_status')


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=120)),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=False)

    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('description', sa.String(length=255)),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('duration_days', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('features', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('name', name='uq_plans_name'),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id'), nullable=False),
        sa.Column('status', subscription_status, nullable=False, server_default='pending'),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime()),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'], unique=False)

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_projects_user_id', 'projects', ['user_id'], unique=False)
    op.create_index('ix_projects_created_at', 'projects', ['created_at'], unique=False)

    op.create_table(
        'vcards',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='SET NULL')),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('url', sa.String(length=200), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('url', name='uq_vcards_url'),
    )
    op.create_index('ix_vcards_user_id', 'vcards', ['user_id'], unique=False)
    op.create_index('ix_vcards_created_at', 'vcards', ['created_at'], unique=False)

    op.create_table(
        'pixels',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vcard_id', sa.Integer(), sa.ForeignKey('vcards.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_pixels_vcard_id', 'pixels', ['vcard_id'], unique=False)
    op.create_index('ix_pixels_created_at', 'pixels', ['created_at'], unique=False)


def downgrade():
    op.drop_index('ix_pixels_created_at', table_name='pixels')
    op.drop_index('ix_pixels_vcard_id', table_name='pixels')
    op.drop_table('pixels')

    op.drop_index('ix_vcards_created_at', table_name='vcards')
    op.drop_index('ix_vcards_user_id', table_name='vcards')
    op.drop_table('vcards')

    op.drop_index('ix_projects_created_at', table_name='projects')
    op.drop_index('ix_projects_user_id', table_name='projects')
    op.drop_table('projects')

    op.drop_index('ix_subscriptions_user_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    subscription_status.drop(op.get_bind(), checkfirst=True)

    op.drop_table('plans')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
