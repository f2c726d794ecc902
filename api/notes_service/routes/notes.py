"""Notes API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from ..models.notes import (
    CreateNoteRequest, UpdateNoteRequest, NoteResponse,
    ListNotesResponse, DeleteNoteResponse
)
from ..pagination import ListFilter
from ..db.notes import NoteRepository


logger = logging.getLogger(__name__)


def get_note_repository(request: Request) -> NoteRepository:
    """Return the repository owned by the running application."""
    return request.app.state.note_repository


Repository = Annotated[NoteRepository, Depends(get_note_repository)]


notes_router = APIRouter(
    prefix="/notes",
    tags=["Notes"],
    responses={
        400: {"description": "Bad Request"},
        404: {"description": "Not Found"},
        422: {"description": "Validation Error"}
    }
)


@notes_router.post(
    "",
    response_model=NoteResponse,
    status_code=201,
    summary="Create a note",
    description="Create a note with tags and attachment metadata. The author is created or refreshed.",
    responses={
        201: {"description": "Note created successfully"},
        409: {"description": "A note with this id already exists"}
    }
)
async def create_note(note_data: CreateNoteRequest, repository: Repository) -> NoteResponse:
    """Create a new note."""
    logger.info(f"Creating note '{note_data.title}' for author {note_data.author.id}")

    note = await repository.create_note(note_data)

    return NoteResponse(note=note)


@notes_router.get(
    "",
    response_model=ListNotesResponse,
    summary="List notes",
    description="List notes with keyset pagination and a stable (sort column, id) order."
)
async def list_notes(
    repository: Repository,
    project_id: Annotated[str | None, Query(description="Restrict to one project")] = None,
    user_id: Annotated[str | None, Query(description="Restrict to one author")] = None,
    query: Annotated[str | None, Query(description="Full-text query over title and content")] = None,
    sort_by: Annotated[str, Query(description="updated_at, created_at, title or is_pinned")] = "",
    sort_desc: Annotated[bool | None, Query(description="Sort descending; defaults to true")] = None,
    page_size: Annotated[int, Query(description="Page size, clamped to 10..100")] = 0,
    page_token: Annotated[str, Query(description="Token from a previous page")] = ""
) -> ListNotesResponse:
    """List notes one page at a time.

    Rows are ordered by the sort column with the note id as tiebreaker, so
    paging with ``next_page_token`` returns every note exactly once even when
    many notes share a sort value. A full page always carries a token; the
    page after the last full page may be empty.

    Returns:
        Notes on this page and the token for the next one
    """
    list_filter = ListFilter(
        project_id=project_id,
        user_id=user_id,
        query=query,
        sort_by=sort_by,
        sort_desc=sort_desc,
        page_size=page_size,
        page_token=page_token
    )

    notes, next_page_token = await repository.list_notes(list_filter)

    logger.info(f"Listed {len(notes)} notes")
    return ListNotesResponse(notes=notes, next_page_token=next_page_token)


@notes_router.get(
    "/{note_id}",
    response_model=NoteResponse,
    summary="Get a note",
    responses={404: {"description": "Note not found"}}
)
async def get_note(
    note_id: str,
    repository: Repository,
    include_revisions: bool = False,
    include_attachments: bool = False
) -> NoteResponse:
    """Get a note, optionally with its revisions and attachments."""
    note = await repository.get_note(
        note_id,
        include_revisions=include_revisions,
        include_attachments=include_attachments
    )
    return NoteResponse(note=note)


@notes_router.patch(
    "/{note_id}",
    response_model=NoteResponse,
    summary="Update a note",
    description="Apply the fields named in update_mask. Supports optimistic concurrency and revisions.",
    responses={
        404: {"description": "Note not found"},
        409: {"description": "Note changed since if_match_updated_at"}
    }
)
async def update_note(
    note_id: str,
    update_data: UpdateNoteRequest,
    repository: Repository
) -> NoteResponse:
    """Partially update a note.

    Only paths listed in ``update_mask`` are applied. ``tags`` replaces the
    whole tag set; ``attachments`` adds or replaces by attachment id.

    Raises:
        BadRequestError: If the mask is empty or names an unknown field
        NotFoundError: If the note doesn't exist
        ConflictError: If ``if_match_updated_at`` no longer matches
    """
    changes = update_data.to_changes()
    logger.info(f"Updating note {note_id} ({', '.join(update_data.update_mask)})")

    note = await repository.update_note(note_id, changes)

    return NoteResponse(note=note)


@notes_router.delete(
    "/{note_id}",
    response_model=DeleteNoteResponse,
    summary="Delete a note",
    description="Delete a note together with its tags, attachments and revisions."
)
async def delete_note(note_id: str, repository: Repository) -> DeleteNoteResponse:
    """Delete a note. ``success`` is false when no such note existed."""
    deleted = await repository.delete_note(note_id)

    logger.info(f"Delete note {note_id}: {'deleted' if deleted else 'not found'}")
    return DeleteNoteResponse(success=deleted)


__all__ = ["notes_router", "get_note_repository"]
