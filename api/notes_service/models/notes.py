"""Pydantic models for notes and their related records."""

from datetime import datetime
from typing import Optional, List, Dict, Any
from uuid import uuid4

from pydantic import AwareDatetime, BaseModel, Field, ConfigDict, field_validator

from ..errors.problem_details import BadRequestError


# Field mask paths accepted by UpdateNote
UPDATABLE_PATHS = frozenset({"title", "content", "tags", "is_pinned", "attachments", "user"})


def new_id() -> str:
    """Generate a text identifier for a new record."""
    return str(uuid4())


def nil_if_empty(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


def unique_tags(tags: List[str]) -> List[str]:
    """Drop blank and duplicate tags, keeping first occurrence order."""
    seen = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class Actor(BaseModel):
    """A user who authors or edits notes."""

    id: str = Field(min_length=1, description="Actor identifier")
    display_name: Optional[str] = Field(default=None, description="Human-readable name")
    avatar_url: Optional[str] = Field(default=None, description="Avatar image URL")

    @field_validator("display_name", "avatar_url")
    @classmethod
    def empty_to_none(cls, v):
        return nil_if_empty(v)


class Attachment(BaseModel):
    """Attachment metadata. File contents live elsewhere."""

    id: str = Field(default_factory=new_id, description="Attachment identifier")
    note_id: Optional[str] = Field(default=None, description="Owning note")
    url: str = Field(min_length=1, description="Where the file can be fetched")
    file_name: str = Field(description="Original file name")
    file_type: str = Field(description="MIME type or extension")
    uploaded_at: Optional[datetime] = Field(default=None, description="Upload timestamp")
    sha256: Optional[str] = Field(default=None, description="Hex SHA-256 of the contents")
    size_bytes: Optional[int] = Field(default=None, ge=0, description="Size of the file in bytes")

    @field_validator("sha256")
    @classmethod
    def empty_sha_to_none(cls, v):
        return nil_if_empty(v)


class NoteRevision(BaseModel):
    """Snapshot of a note's title and content before an edit."""

    id: str
    note_id: str
    title: str
    content: str
    editor_id: str
    edited_at: datetime
    editor: Optional[Actor] = None


class Note(BaseModel):
    """Complete note model."""

    id: str = Field(description="Note identifier")
    project_id: Optional[str] = Field(default=None, description="Project the note belongs to")
    author_id: str = Field(description="Author actor id")
    title: str = Field(description="Note title")
    content: Optional[str] = Field(default=None, description="Note body")
    is_pinned: bool = Field(default=False, description="Whether the note is pinned")
    tags: List[str] = Field(default_factory=list, description="Tags, sorted")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")
    author: Optional[Actor] = Field(default=None, description="Author details")
    revisions: List[NoteRevision] = Field(default_factory=list, description="Revisions, newest first")
    attachments: List[Attachment] = Field(default_factory=list, description="Attachments, newest first")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "2f6c1c1e-5b0e-4f7e-9a53-1a0f4f1f2b10",
                "project_id": "proj-123",
                "author_id": "user-1",
                "title": "Standup notes",
                "content": "Discussed release blockers",
                "is_pinned": False,
                "tags": ["meetings", "work"],
                "created_at": "2024-01-01T12:00:00Z",
                "updated_at": "2024-01-01T12:30:00Z",
                "author": {"id": "user-1", "display_name": "Alice"},
                "revisions": [],
                "attachments": []
            }
        }
    )


class CreateNoteRequest(BaseModel):
    """Request body for CreateNote."""

    id: Optional[str] = Field(default=None, description="Client-chosen id; generated when omitted")
    project_id: Optional[str] = Field(default=None, description="Project the note belongs to")
    title: str = Field(min_length=1, description="Note title")
    content: Optional[str] = Field(default=None, description="Note body")
    is_pinned: bool = Field(default=False, description="Pin the note on creation")
    tags: List[str] = Field(default_factory=list, description="Tags to attach")
    author: Actor = Field(description="Author of the note")
    attachments: List[Attachment] = Field(default_factory=list, description="Attachment metadata")
    idempotency_key: Optional[str] = Field(default=None, description="Accepted for compatibility; not stored")

    @field_validator("project_id", "content", "id")
    @classmethod
    def empty_to_none(cls, v):
        return nil_if_empty(v)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "project_id": "proj-123",
                "title": "My first note",
                "content": "hello world",
                "tags": ["python", "notes"],
                "author": {"id": "user-1", "display_name": "Alice"}
            }
        }
    )


class NoteChanges(BaseModel):
    """Changes selected by an update mask. None means "leave unchanged"."""

    title: Optional[str] = None
    content: Optional[str] = None
    tags: Optional[List[str]] = None
    is_pinned: Optional[bool] = None
    attachments: Optional[List[Attachment]] = None
    editor: Optional[Actor] = None
    if_match_updated_at: Optional[AwareDatetime] = None
    create_revision: bool = False


class UpdateNoteRequest(BaseModel):
    """Request body for UpdateNote.

    Only the fields named in ``update_mask`` are applied; the others are
    ignored even when present.
    """

    update_mask: List[str] = Field(description="Paths of the fields to update")
    title: str = Field(default="", description="New title")
    content: str = Field(default="", description="New content")
    tags: List[str] = Field(default_factory=list, description="Replacement tag set")
    is_pinned: bool = Field(default=False, description="New pinned state")
    attachments: List[Attachment] = Field(default_factory=list, description="Attachments to add or replace")
    user: Optional[Actor] = Field(default=None, description="Actor making the edit")
    if_match_updated_at: Optional[AwareDatetime] = Field(
        default=None,
        description="Only apply if the note's updated_at still equals this value; must carry a UTC offset"
    )
    create_revision: bool = Field(default=False, description="Record the previous title and content as a revision")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "update_mask": ["title", "tags"],
                "title": "Renamed note",
                "tags": ["archive"]
            }
        }
    )

    def to_changes(self) -> NoteChanges:
        """Resolve the update mask into a set of changes.

        Raises:
            BadRequestError: If the mask is empty or names an unknown path
        """
        paths = [p.strip() for p in self.update_mask if p.strip()]
        if not paths:
            raise BadRequestError("update_mask is required")
        invalid = [p for p in paths if p not in UPDATABLE_PATHS]
        if invalid:
            raise BadRequestError(f"Invalid update_mask path: {', '.join(invalid)}")

        changes = NoteChanges(
            if_match_updated_at=self.if_match_updated_at,
            create_revision=self.create_revision,
        )
        for path in paths:
            if path == "title":
                if not self.title:
                    raise BadRequestError("title cannot be empty")
                changes.title = self.title
            elif path == "content":
                changes.content = self.content
            elif path == "tags":
                changes.tags = unique_tags(self.tags)
            elif path == "is_pinned":
                changes.is_pinned = self.is_pinned
            elif path == "attachments":
                changes.attachments = list(self.attachments)
            elif path == "user":
                changes.editor = self.user
        return changes


class NoteResponse(BaseModel):
    """Response wrapping a single note."""

    note: Note


class ListNotesResponse(BaseModel):
    """Response model for listing notes."""

    notes: List[Note] = Field(description="Notes on this page")
    next_page_token: str = Field(default="", description="Token for the next page; empty when there is none")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "notes": [],
                "next_page_token": "eyJrZXkiOiIyMDI0LTAxLTAxVDEyOjAwOjAwLjAwMDAwMFoiLCJrZXlfdHlwZSI6InRpbWUiLCJpZCI6Im5vdGUtMSIsInNvcnRfYnkiOiJ1cGRhdGVkX2F0IiwiZGlyZWN0aW9uIjoiREVTQyJ9"
            }
        }
    )


class DeleteNoteResponse(BaseModel):
    """Response model for deleting a note."""

    success: bool = Field(description="Whether a note was deleted")


# Database row model (for internal use)
class NoteRow(BaseModel):
    """A row of the notes listing query joined with its author."""

    id: str
    project_id: Optional[str] = None
    author_id: str
    title: str
    content: Optional[str] = None
    is_pinned: bool = False
    tags: Optional[List[str]] = None
    created_at: datetime
    updated_at: datetime
    author_display_name: Optional[str] = None
    author_avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "NoteRow":
        return cls.model_validate(dict(record))

    def to_note(self) -> Note:
        """Convert to public Note model."""
        return Note(
            id=self.id,
            project_id=self.project_id,
            author_id=self.author_id,
            title=self.title,
            content=self.content,
            is_pinned=self.is_pinned,
            tags=list(self.tags or []),
            created_at=self.created_at,
            updated_at=self.updated_at,
            author=Actor(
                id=self.author_id,
                display_name=self.author_display_name,
                avatar_url=self.author_avatar_url
            ),
        )
