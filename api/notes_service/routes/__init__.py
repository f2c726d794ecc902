"""API routers for the Notes Service."""

from .notes import notes_router, get_note_repository

__all__ = ["notes_router", "get_note_repository"]
