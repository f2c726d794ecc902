"""Data models for the Notes Service."""

from .notes import (
    Actor,
    Attachment,
    NoteRevision,
    Note,
    CreateNoteRequest,
    UpdateNoteRequest,
    NoteChanges,
    NoteResponse,
    ListNotesResponse,
    DeleteNoteResponse,
    NoteRow,
    UPDATABLE_PATHS,
)

__all__ = [
    "Actor",
    "Attachment",
    "NoteRevision",
    "Note",
    "CreateNoteRequest",
    "UpdateNoteRequest",
    "NoteChanges",
    "NoteResponse",
    "ListNotesResponse",
    "DeleteNoteResponse",
    "NoteRow",
    "UPDATABLE_PATHS",
]
