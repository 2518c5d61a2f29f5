"""Create file, file_live and file_versions tables.

Databases coming from the flat storage layout already have a ``file`` table with
a ``filename`` column. That table is kept and only gains the missing columns, so
the legacy filenames stay available to the file migration.

Revision ID: a1c3e5f7b9d2
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a1c3e5f7b9d2'
down_revision = None
branch_labels = None
depends_on = None

FILE_CLASS = sa.Enum('FILE', 'IMAGE', 'FOLDER', name='file_class_enum', native_enum=False, length=20)
STAGE = sa.Enum('DRAFT', 'LIVE', name='stage_enum', native_enum=False, length=20)
TIMESTAMP_COLUMNS = ('created_at', 'updated_at')


def _record_columns(autoincrement: bool):
    return [
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=autoincrement),
        sa.Column('class_name', FILE_CLASS, nullable=False, server_default='FILE'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('file_filename', sa.String(length=500), nullable=True),
        sa.Column('file_hash', sa.String(length=64), nullable=True),
        sa.Column('image_width', sa.Integer(), nullable=True),
        sa.Column('image_height', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def _create_indexes(table: str) -> None:
    op.create_index(f'ix_{table}_class_name', table, ['class_name'], unique=False)
    op.create_index(f'ix_{table}_parent_id', table, ['parent_id'], unique=False)


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())

    if inspector.has_table('file'):
        existing = {column['name'] for column in inspector.get_columns('file')}
        for column in _record_columns(autoincrement=True):
            if column.name in existing:
                continue
            if column.name in TIMESTAMP_COLUMNS:
                # SQLite only adds columns with a constant default
                op.add_column('file', sa.Column(column.name, sa.DateTime(), nullable=True))
                op.execute(f'UPDATE "file" SET {column.name} = CURRENT_TIMESTAMP')
            else:
                op.add_column('file', column)
        existing_indexes = {index['name'] for index in inspector.get_indexes('file')}
        if 'ix_file_class_name' not in existing_indexes:
            op.create_index('ix_file_class_name', 'file', ['class_name'], unique=False)
        if 'ix_file_parent_id' not in existing_indexes:
            op.create_index('ix_file_parent_id', 'file', ['parent_id'], unique=False)
    else:
        op.create_table('file', *_record_columns(autoincrement=True))
        _create_indexes('file')
    op.create_index('idx_file_parent_name', 'file', ['parent_id', 'name'], unique=False)

    op.create_table('file_live', *_record_columns(autoincrement=False))
    _create_indexes('file_live')

    op.create_table(
        'file_versions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('stage', STAGE, nullable=False),
        sa.Column('class_name', FILE_CLASS, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('file_filename', sa.String(length=500), nullable=True),
        sa.Column('file_hash', sa.String(length=64), nullable=True),
        sa.Column('written_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_file_versions_record_id', 'file_versions', ['record_id'], unique=False)
    op.create_index('idx_file_versions_record_version', 'file_versions', ['record_id', 'version'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_file_versions_record_version', table_name='file_versions')
    op.drop_index('ix_file_versions_record_id', table_name='file_versions')
    op.drop_table('file_versions')
    op.drop_index('ix_file_live_parent_id', table_name='file_live')
    op.drop_index('ix_file_live_class_name', table_name='file_live')
    op.drop_table('file_live')
    op.drop_index('idx_file_parent_name', table_name='file')
    # The legacy file table predates this revision and is left in place
