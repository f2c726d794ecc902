"""Database operations for notes."""

import logging
from datetime import datetime, timezone
from typing import List, Dict, Any, Sequence

import asyncpg

from ..models.notes import (
    Actor, Attachment, Note, NoteRevision, NoteRow, NoteChanges,
    CreateNoteRequest, new_id, unique_tags
)
from ..pagination import (
    ListFilter, normalize_filter, build_where_clause, derive_next_page_token
)
from ..errors.problem_details import (
    NotFoundError, ConflictError, BadRequestError, InternalServerError
)
from .connection import DatabaseManager


logger = logging.getLogger(__name__)


UPSERT_ACTOR = """
    INSERT INTO actors (id, display_name, avatar_url)
    VALUES ($1, $2, $3)
    ON CONFLICT (id) DO UPDATE
    SET display_name = EXCLUDED.display_name, avatar_url = EXCLUDED.avatar_url
"""

UPSERT_ATTACHMENT = """
    INSERT INTO attachments (id, note_id, url, file_name, file_type, uploaded_at, sha256, size_bytes)
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
    ON CONFLICT (id) DO UPDATE
    SET url = EXCLUDED.url, file_name = EXCLUDED.file_name, file_type = EXCLUDED.file_type,
        uploaded_at = EXCLUDED.uploaded_at, sha256 = EXCLUDED.sha256, size_bytes = EXCLUDED.size_bytes
    WHERE attachments.note_id = EXCLUDED.note_id
    RETURNING id
"""

INSERT_TAG = """
    INSERT INTO note_tags (note_id, tag)
    VALUES ($1, $2)
    ON CONFLICT DO NOTHING
"""

SELECT_NOTES = """
    SELECT n.id, n.project_id, n.author_id, n.title, n.content, n.is_pinned,
           n.created_at, n.updated_at,
           a.display_name AS author_display_name, a.avatar_url AS author_avatar_url,
           COALESCE(
               (SELECT ARRAY_AGG(t.tag ORDER BY t.tag) FROM note_tags t WHERE t.note_id = n.id),
               '{}'
           ) AS tags
    FROM notes n
    LEFT JOIN actors a ON a.id = n.author_id
"""

# Deleted before the note row itself
CHILD_TABLES = ("note_tags", "attachments", "note_revisions")


async def upsert_actor(conn, actor: Actor) -> None:
    """Insert an actor or refresh its display name and avatar."""
    await conn.execute(UPSERT_ACTOR, actor.id, actor.display_name, actor.avatar_url)


async def insert_attachments(conn, note_id: str, attachments: Sequence[Attachment]) -> List[Attachment]:
    """Insert or replace attachment metadata for a note.

    Args:
        conn: Connection inside the caller's transaction
        note_id: Note the attachments belong to
        attachments: Attachments to write

    Returns:
        The attachments as stored, with ``note_id`` and ``uploaded_at`` filled in

    Raises:
        ConflictError: If an attachment id already belongs to another note
    """
    stored = []
    for attachment in attachments:
        a = attachment.model_copy(update={
            "note_id": note_id,
            "uploaded_at": attachment.uploaded_at or datetime.now(timezone.utc),
        })
        written = await conn.fetchval(
            UPSERT_ATTACHMENT,
            a.id, a.note_id, a.url, a.file_name, a.file_type, a.uploaded_at, a.sha256, a.size_bytes
        )
        if written is None:
            raise ConflictError(f"Attachment '{a.id}' belongs to another note")
        stored.append(a)
    return stored


async def replace_tags(conn, note_id: str, tags: Sequence[str], clear: bool = True) -> None:
    if clear:
        await conn.execute("DELETE FROM note_tags WHERE note_id = $1", note_id)
    if tags:
        await conn.executemany(INSERT_TAG, [(note_id, tag) for tag in tags])


class NoteRepository:
    """Note storage backed by the application's connection pool."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create_note(self, note_data: CreateNoteRequest) -> Note:
        """Create a note with its tags and attachments.

        The author is upserted in the same transaction.

        Args:
            note_data: Note creation data

        Returns:
            Created note

        Raises:
            ConflictError: If a note with the requested id already exists
            InternalServerError: If database operation fails
        """
        pool = await self.db.get_pool()
        note_id = note_data.id or new_id()
        tags = unique_tags(note_data.tags)

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await upsert_actor(conn, note_data.author)

                    row = await conn.fetchrow(
                        """
                        INSERT INTO notes (id, project_id, author_id, title, content, is_pinned)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        RETURNING id, project_id, author_id, title, content, is_pinned, created_at, updated_at
                        """,
                        note_id,
                        note_data.project_id,
                        note_data.author.id,
                        note_data.title,
                        note_data.content,
                        note_data.is_pinned
                    )

                    if not row:
                        raise InternalServerError("Failed to create note")

                    await replace_tags(conn, note_id, tags, clear=False)
                    attachments = await insert_attachments(conn, note_id, note_data.attachments)

            note = Note(
                **dict(row),
                tags=sorted(tags),
                author=note_data.author,
                attachments=attachments
            )
            logger.info(f"Created note {note.id} for author {note.author_id}")
            return note

        except (InternalServerError, ConflictError):
            raise
        except asyncpg.UniqueViolationError as e:
            logger.warning(f"Duplicate note id {note_id}: {e}")
            raise ConflictError(f"Note '{note_id}' already exists")
        except asyncpg.PostgresError as e:
            logger.error(f"Database error creating note: {e}")
            raise InternalServerError(f"Database error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error creating note: {e}")
            raise InternalServerError(f"Unexpected error: {e}")

    async def get_note(
        self,
        note_id: str,
        include_revisions: bool = False,
        include_attachments: bool = False
    ) -> Note:
        """Get a note by id.

        Args:
            note_id: ID of the note
            include_revisions: Also load the note's revisions
            include_attachments: Also load the note's attachments

        Returns:
            The requested note

        Raises:
            NotFoundError: If the note doesn't exist
            InternalServerError: If database operation fails
        """
        pool = await self.db.get_pool()

        try:
            async with pool.acquire() as conn:
                note = await self._fetch_note(conn, note_id, include_revisions, include_attachments)
            logger.debug(f"Retrieved note {note_id}")
            return note

        except NotFoundError:
            raise
        except asyncpg.PostgresError as e:
            logger.error(f"Database error retrieving note: {e}")
            raise InternalServerError(f"Database error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error retrieving note: {e}")
            raise InternalServerError(f"Unexpected error: {e}")

    async def list_notes(self, list_filter: ListFilter) -> tuple[List[Note], str]:
        """List notes one page at a time.

        Args:
            list_filter: Listing filter as supplied by the caller

        Returns:
            Tuple of (notes, next_page_token); the token is empty when no
            further page is expected

        Raises:
            InvalidPageTokenError: If the page token is malformed or belongs to
                a different ordering
            InternalServerError: If database operation fails
        """
        pool = await self.db.get_pool()

        try:
            normalized = normalize_filter(list_filter)
            where_clause, params, predicate = build_where_clause(normalized)

            query = SELECT_NOTES
            if where_clause:
                query += f"    WHERE {where_clause}\n"
            query += f"    {predicate.order_by}\n    LIMIT ${len(params) + 1}"

            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *params, normalized.page_size)

            notes = [NoteRow.from_record(row).to_note() for row in rows]
            next_page_token = derive_next_page_token(notes, normalized)

            logger.debug(
                f"Listed {len(notes)} notes sorted by {normalized.sort_by.value} "
                f"{normalized.direction.value} (more: {bool(next_page_token)})"
            )
            return notes, next_page_token

        except BadRequestError:
            raise
        except asyncpg.PostgresError as e:
            logger.error(f"Database error listing notes: {e}")
            raise InternalServerError(f"Database error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error listing notes: {e}")
            raise InternalServerError(f"Unexpected error: {e}")

    async def update_note(self, note_id: str, changes: NoteChanges) -> Note:
        """Apply field-mask changes to a note.

        Args:
            note_id: ID of the note to update
            changes: Changes resolved from the update mask

        Returns:
            Updated note, with attachments

        Raises:
            NotFoundError: If the note doesn't exist
            ConflictError: If ``if_match_updated_at`` no longer matches
            InternalServerError: If database operation fails
        """
        pool = await self.db.get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    current = await conn.fetchrow(
                        """
                        SELECT id, author_id, title, content, updated_at
                        FROM notes
                        WHERE id = $1
                        FOR UPDATE
                        """,
                        note_id
                    )

                    if not current:
                        raise NotFoundError(f"Note '{note_id}' not found")

                    if (changes.if_match_updated_at is not None
                            and current["updated_at"] != changes.if_match_updated_at):
                        raise ConflictError(f"Note '{note_id}' was modified since {changes.if_match_updated_at.isoformat()}")

                    if changes.editor:
                        await upsert_actor(conn, changes.editor)

                    if changes.create_revision:
                        editor_id = changes.editor.id if changes.editor else current["author_id"]
                        await conn.execute(
                            """
                            INSERT INTO note_revisions (id, note_id, title, content, editor_id)
                            VALUES ($1, $2, $3, $4, $5)
                            """,
                            new_id(),
                            note_id,
                            current["title"],
                            current["content"] or "",
                            editor_id
                        )

                    assignments = ["updated_at = now()"]
                    params: List[Any] = [note_id]
                    for column in ("title", "content", "is_pinned"):
                        value = getattr(changes, column)
                        if value is not None:
                            params.append(value)
                            assignments.append(f"{column} = ${len(params)}")

                    await conn.execute(
                        f"UPDATE notes SET {', '.join(assignments)} WHERE id = $1",
                        *params
                    )

                    if changes.tags is not None:
                        await replace_tags(conn, note_id, changes.tags)

                    if changes.attachments:
                        await insert_attachments(conn, note_id, changes.attachments)

                note = await self._fetch_note(conn, note_id, include_revisions=False, include_attachments=True)

            logger.info(f"Updated note {note_id}")
            return note

        except (NotFoundError, ConflictError):
            raise
        except asyncpg.ForeignKeyViolationError as e:
            logger.error(f"Foreign key violation updating note: {e}")
            raise NotFoundError(f"Note '{note_id}' not found")
        except asyncpg.PostgresError as e:
            logger.error(f"Database error updating note: {e}")
            raise InternalServerError(f"Database error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error updating note: {e}")
            raise InternalServerError(f"Unexpected error: {e}")

    async def delete_note(self, note_id: str) -> bool:
        """Delete a note and everything attached to it.

        Args:
            note_id: ID of the note to delete

        Returns:
            True if the note was deleted, False if not found

        Raises:
            InternalServerError: If database operation fails
        """
        pool = await self.db.get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    for table in CHILD_TABLES:
                        await conn.execute(f"DELETE FROM {table} WHERE note_id = $1", note_id)
                    result = await conn.execute("DELETE FROM notes WHERE id = $1", note_id)

            deleted = result.split()[-1] == "1"  # "DELETE 1" means one row deleted

            if deleted:
                logger.info(f"Deleted note {note_id}")
            else:
                logger.debug(f"Note {note_id} not found")

            return deleted

        except asyncpg.PostgresError as e:
            logger.error(f"Database error deleting note: {e}")
            raise InternalServerError(f"Database error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error deleting note: {e}")
            raise InternalServerError(f"Unexpected error: {e}")

    async def _fetch_note(
        self,
        conn,
        note_id: str,
        include_revisions: bool,
        include_attachments: bool
    ) -> Note:
        row = await conn.fetchrow(SELECT_NOTES + "    WHERE n.id = $1", note_id)
        if not row:
            raise NotFoundError(f"Note '{note_id}' not found")

        note = NoteRow.from_record(row).to_note()

        if include_revisions:
            revision_rows = await conn.fetch(
                """
                SELECT r.id, r.note_id, r.title, r.content, r.editor_id, r.edited_at,
                       e.display_name AS editor_display_name, e.avatar_url AS editor_avatar_url
                FROM note_revisions r
                JOIN actors e ON e.id = r.editor_id
                WHERE r.note_id = $1
                ORDER BY r.edited_at DESC, r.id DESC
                """,
                note_id
            )
            note.revisions = [_revision_from_record(r) for r in revision_rows]

        if include_attachments:
            attachment_rows = await conn.fetch(
                """
                SELECT id, note_id, url, file_name, file_type, uploaded_at, sha256, size_bytes
                FROM attachments
                WHERE note_id = $1
                ORDER BY uploaded_at DESC, id DESC
                """,
                note_id
            )
            note.attachments = [Attachment.model_validate(dict(r)) for r in attachment_rows]

        return note


def _revision_from_record(record: Dict[str, Any]) -> NoteRevision:
    data = dict(record)
    editor = Actor(
        id=data["editor_id"],
        display_name=data.pop("editor_display_name", None),
        avatar_url=data.pop("editor_avatar_url", None)
    )
    return NoteRevision(**data, editor=editor)
