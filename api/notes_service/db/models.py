"""SQLAlchemy models for the notes schema."""

from sqlalchemy import (
    BigInteger, Boolean, Column, DateTime, ForeignKey, Index, PrimaryKeyConstraint,
    Text, create_engine, text
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from ..config import get_settings

# Create base class for models
Base = declarative_base()


class Actor(Base):
    """Actors table model."""
    __tablename__ = 'actors'

    id = Column(Text, primary_key=True)
    display_name = Column(Text)
    avatar_url = Column(Text)


class Note(Base):
    """Notes table model."""
    __tablename__ = 'notes'

    id = Column(Text, primary_key=True)
    project_id = Column(Text)
    author_id = Column(Text, ForeignKey('actors.id', ondelete='CASCADE'), nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text)
    is_pinned = Column(Boolean, nullable=False, server_default=text('false'))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index('idx_notes_project_id', 'project_id'),
        Index('idx_notes_author_id', 'author_id'),
        Index('idx_notes_is_pinned', 'is_pinned'),
        Index(
            'idx_notes_fts',
            text("to_tsvector('english', coalesce(title,'') || ' ' || coalesce(content,''))"),
            postgresql_using='gin'
        ),
    )


class NoteTag(Base):
    """Note tags table model."""
    __tablename__ = 'note_tags'

    note_id = Column(Text, ForeignKey('notes.id', ondelete='CASCADE'), nullable=False)
    tag = Column(Text, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint('note_id', 'tag'),
        Index('idx_note_tags_tag', 'tag'),
    )


class NoteRevision(Base):
    """Note revisions table model."""
    __tablename__ = 'note_revisions'

    id = Column(Text, primary_key=True)
    note_id = Column(Text, ForeignKey('notes.id', ondelete='CASCADE'), nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    editor_id = Column(Text, ForeignKey('actors.id', ondelete='CASCADE'), nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Attachment(Base):
    """Attachments table model."""
    __tablename__ = 'attachments'

    id = Column(Text, primary_key=True)
    note_id = Column(Text, ForeignKey('notes.id', ondelete='CASCADE'), nullable=False)
    url = Column(Text, nullable=False)
    file_name = Column(Text, nullable=False)
    file_type = Column(Text, nullable=False)
    uploaded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    sha256 = Column(Text)
    size_bytes = Column(BigInteger)


def get_database_url() -> str:
    """Get database URL from settings."""
    return get_settings().database_url


def create_engine_from_env():
    """Create SQLAlchemy engine from environment configuration."""
    return create_engine(get_database_url())
