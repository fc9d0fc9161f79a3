"""create membership and admission tables

Creates the project role / join method enum types and the four tables
behind project access control:
- project_members: one row per (project, user)
- project_invite_links: admission links, at most one active per project
- member_join_logs: append-only record of every join
- role_change_logs: append-only record of every role change

Revision ID: 4f1c2a9d7e10
Revises:
Create Date: 2026-10-19 09:14:52.318044

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4f1c2a9d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ROLES = ('owner', 'admin', 'member', 'viewer')
JOIN_METHODS = ('direct-add', 'invitation')


def upgrade() -> None:
    """Upgrade schema."""
    project_role_enum = postgresql.ENUM(*ROLES, name='project_role_enum')
    project_role_enum.create(op.get_bind())
    join_method_enum = postgresql.ENUM(*JOIN_METHODS, name='join_method_enum')
    join_method_enum.create(op.get_bind())

    # Column types reuse the types created above
    role_type = postgresql.ENUM(*ROLES, name='project_role_enum', create_type=False)
    join_method_type = postgresql.ENUM(*JOIN_METHODS, name='join_method_enum', create_type=False)

    # --- project_members ----------------------------------------------------
    op.create_table(
        'project_members',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', sa.String(255), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('role', role_type, nullable=False, server_default='member'),
        sa.Column('joined_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.String(255), nullable=True),
        sa.Column('updated_by_user_id', sa.String(255), nullable=True),
    )
    op.create_index('ix_project_members_project_id', 'project_members', ['project_id'])
    op.create_index('ix_project_members_user_id', 'project_members', ['user_id'])
    op.create_index('ix_project_members_project_user', 'project_members', ['project_id', 'user_id'], unique=True)
    op.create_index('ix_project_members_project_role', 'project_members', ['project_id', 'role'])
    op.create_index(
        'uq_project_members_one_owner',
        'project_members',
        ['project_id'],
        unique=True,
        postgresql_where=sa.text("role = 'owner'"),
    )

    # --- project_invite_links -----------------------------------------------
    op.create_table(
        'project_invite_links',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', sa.String(255), nullable=False),
        sa.Column('secret_token', sa.String(255), nullable=False),
        sa.Column('role', role_type, nullable=False, server_default='member'),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('current_uses', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('TRUE')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_by_user_id', sa.String(255), nullable=True),
        sa.Column('updated_by_user_id', sa.String(255), nullable=True),
        sa.CheckConstraint('max_uses IS NULL OR max_uses >= 1', name='ck_invite_links_max_uses_positive'),
        sa.CheckConstraint(
            'max_uses IS NULL OR current_uses <= max_uses',
            name='ck_invite_links_uses_within_budget',
        ),
    )
    op.create_index('ix_project_invite_links_project_id', 'project_invite_links', ['project_id'])
    op.create_index('ix_project_invite_links_secret_token', 'project_invite_links', ['secret_token'], unique=True)
    op.create_index(
        'uq_invite_links_one_active_per_project',
        'project_invite_links',
        ['project_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
    )

    # --- member_join_logs ---------------------------------------------------
    op.create_table(
        'member_join_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', sa.String(255), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('role', role_type, nullable=False),
        sa.Column('join_method', join_method_type, nullable=False),
        sa.Column('invite_link_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('ip_address', sa.String(255), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('joined_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.ForeignKeyConstraint(['invite_link_id'], ['project_invite_links.id'], ondelete='RESTRICT'),
    )
    op.create_index('ix_member_join_logs_invite_link_id', 'member_join_logs', ['invite_link_id'])
    op.create_index('ix_member_join_logs_project_joined', 'member_join_logs', ['project_id', 'joined_at'])
    op.create_index('ix_member_join_logs_user_joined', 'member_join_logs', ['user_id', 'joined_at'])

    # --- role_change_logs ---------------------------------------------------
    op.create_table(
        'role_change_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', sa.String(255), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('changed_by_user_id', sa.String(255), nullable=False),
        sa.Column('old_role', role_type, nullable=False),
        sa.Column('new_role', role_type, nullable=False),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column('changed_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_role_change_logs_changed_by_user_id', 'role_change_logs', ['changed_by_user_id'])
    op.create_index('ix_role_change_logs_project_changed', 'role_change_logs', ['project_id', 'changed_at'])
    op.create_index('ix_role_change_logs_user_changed', 'role_change_logs', ['user_id', 'changed_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_role_change_logs_user_changed', table_name='role_change_logs')
    op.drop_index('ix_role_change_logs_project_changed', table_name='role_change_logs')
    op.drop_index('ix_role_change_logs_changed_by_user_id', table_name='role_change_logs')
    op.drop_table('role_change_logs')

    op.drop_index('ix_member_join_logs_user_joined', table_name='member_join_logs')
    op.drop_index('ix_member_join_logs_project_joined', table_name='member_join_logs')
    op.drop_index('ix_member_join_logs_invite_link_id', table_name='member_join_logs')
    op.drop_table('member_join_logs')

    op.drop_index('uq_invite_links_one_active_per_project', table_name='project_invite_links')
    op.drop_index('ix_project_invite_links_secret_token', table_name='project_invite_links')
    op.drop_index('ix_project_invite_links_project_id', table_name='project_invite_links')
    op.drop_table('project_invite_links')

    op.drop_index('uq_project_members_one_owner', table_name='project_members')
    op.drop_index('ix_project_members_project_role', table_name='project_members')
    op.drop_index('ix_project_members_project_user', table_name='project_members')
    op.drop_index('ix_project_members_user_id', table_name='project_members')
    op.drop_index('ix_project_members_project_id', table_name='project_members')
    op.drop_table('project_members')

    postgresql.ENUM(*JOIN_METHODS, name='join_method_enum').drop(op.get_bind())
    postgresql.ENUM(*ROLES, name='project_role_enum').drop(op.get_bind())
