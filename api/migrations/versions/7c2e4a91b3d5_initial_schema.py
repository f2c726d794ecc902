"""initial_schema

Revision ID: 7c2e4a91b3d5
Revises:
Create Date: 2025-10-06 09:14:02.318554

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '7c2e4a91b3d5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create actors table
    op.create_table('actors',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )

    # Create notes table
    op.create_table('notes',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('project_id', sa.Text(), nullable=True),
        sa.Column('author_id', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('is_pinned', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['author_id'], ['actors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Keep updated_at current on every row update
    op.execute("""
        CREATE OR REPLACE FUNCTION set_updated_at() RETURNS trigger AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """)
    op.execute("""
        CREATE TRIGGER trg_notes_set_updated_at
        BEFORE UPDATE ON notes
        FOR EACH ROW EXECUTE FUNCTION set_updated_at()
    """)

    # Create note_tags table
    op.create_table('note_tags',
        sa.Column('note_id', sa.Text(), nullable=False),
        sa.Column('tag', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['note_id'], ['notes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('note_id', 'tag')
    )

    # Create note_revisions table
    op.create_table('note_revisions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('note_id', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('editor_id', sa.Text(), nullable=False),
        sa.Column('edited_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['note_id'], ['notes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['editor_id'], ['actors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create attachments table
    op.create_table('attachments',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('note_id', sa.Text(), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('file_name', sa.Text(), nullable=False),
        sa.Column('file_type', sa.Text(), nullable=False),
        sa.Column('uploaded_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('sha256', sa.Text(), nullable=True),
        sa.Column('size_bytes', sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(['note_id'], ['notes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create the required indexes
    op.create_index('idx_notes_project_id', 'notes', ['project_id'], unique=False)
    op.create_index('idx_notes_author_id', 'notes', ['author_id'], unique=False)
    op.create_index('idx_notes_is_pinned', 'notes', ['is_pinned'], unique=False)
    op.execute("""
        CREATE INDEX idx_notes_fts ON notes
        USING GIN (to_tsvector('english', coalesce(title,'') || ' ' || coalesce(content,'')))
    """)
    op.create_index('idx_note_tags_tag', 'note_tags', ['tag'], unique=False)


def downgrade() -> None:
    # Drop indexes first
    op.drop_index('idx_note_tags_tag', table_name='note_tags')
    op.execute("DROP INDEX IF EXISTS idx_notes_fts")
    op.drop_index('idx_notes_is_pinned', table_name='notes')
    op.drop_index('idx_notes_author_id', table_name='notes')
    op.drop_index('idx_notes_project_id', table_name='notes')

    # Drop tables in reverse order due to foreign key constraints
    op.drop_table('attachments')
    op.drop_table('note_revisions')
    op.drop_table('note_tags')
    op.execute("DROP TRIGGER IF EXISTS trg_notes_set_updated_at ON notes")
    op.drop_table('notes')
    op.execute("DROP FUNCTION IF EXISTS set_updated_at()")
    op.drop_table('actors')
