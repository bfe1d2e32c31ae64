"""create_filevault_tables

Revision ID: 20260301_120000
Revises:
Create Date: 2026-03-01 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260301_120000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, sessions, folders and files."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('password', sa.String(128), nullable=False),
        sa.Column('role', sa.Enum('admin', 'guest', name='user_role'), nullable=False, server_default='guest'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
    )
    op.create_index('idx_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'sessions',
        sa.Column('token', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_sessions_user_id', 'sessions', ['user_id'])
    op.create_index('idx_sessions_expires_at', 'sessions', ['expires_at'])

    op.create_table(
        'folders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('folders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('color', sa.String(16), nullable=True, server_default='#3B82F6'),
    )
    op.create_index('ix_folders_parent_id', 'folders', ['parent_id'])

    op.create_table(
        'files',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('original_name', sa.Text(), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=False),
        sa.Column('mime_type', sa.Text(), nullable=False),
        sa.Column('object_path', sa.Text(), nullable=False),
        sa.Column('uploaded_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('processing', 'synced', 'failed', name='file_status'),
            nullable=False,
            server_default='processing'
        ),
        sa.Column('folder_id', sa.String(36), sa.ForeignKey('folders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
    )
    op.create_index('ix_files_folder_id', 'files', ['folder_id'])
    op.create_index('ix_files_uploaded_at', 'files', ['uploaded_at'])
    op.create_index('ix_files_status', 'files', ['status'])


def downgrade() -> None:
    """Drop all FileVault tables and enum types."""
    op.drop_index('ix_files_status', table_name='files')
    op.drop_index('ix_files_uploaded_at', table_name='files')
    op.drop_index('ix_files_folder_id', table_name='files')
    op.drop_table('files')

    op.drop_index('ix_folders_parent_id', table_name='folders')
    op.drop_table('folders')

    op.drop_index('idx_sessions_expires_at', table_name='sessions')
    op.drop_index('idx_sessions_user_id', table_name='sessions')
    op.drop_table('sessions')

    op.drop_index('idx_users_username', table_name='users')
    op.drop_table('users')

    sa.Enum(name='file_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='user_role').drop(op.get_bind(), checkfirst=True)
