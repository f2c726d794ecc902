"""Storage layer for the Notes Service."""

from .connection import DatabaseManager
from .notes import NoteRepository

__all__ = ["DatabaseManager", "NoteRepository"]
