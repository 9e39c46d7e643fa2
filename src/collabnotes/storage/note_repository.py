"""Repository for note storage and retrieval."""

import logging
from typing import Dict, List, Optional, Sequence

from sqlalchemy import or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from collabnotes.exceptions import (AlreadyInDBError, ErrorCode, NotInDBError,
                                    StorageError)
from collabnotes.models.db_models import (DBAuthorColor, DBGroup,
                                          DBHistoryEntry, DBNote,
                                          DBNoteGroupPermission,
                                          DBNoteUserPermission, DBTag, DBUser,
                                          get_session_factory, init_db)
from collabnotes.models.schema import (AuthorColor, Group, HistoryEntry, Note,
                                       NoteGroupPermission, NoteUserPermission,
                                       Revision, Tag, User,
                                       ensure_timezone_aware)
from collabnotes.storage.base import Repository
from collabnotes.storage.revision_repository import add_revision_rows
from collabnotes.storage.user_repository import (db_group_to_model,
                                                 db_user_to_model)

logger = logging.getLogger(__name__)


class NoteRepository(Repository[Note]):
    """Repository for notes and everything a note owns.

    Every read builds new domain objects, so two loads of the same note
    never share mutable lists.
    """

    def __init__(self, engine: Optional[Engine] = None):
        """Initialize the repository.

        Args:
            engine: SQLAlchemy engine. If None, uses default from config.
        """
        self.engine = engine or init_db()
        self.session_factory = get_session_factory(self.engine)
        logger.info("NoteRepository initialized")

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def _with_relations(query, with_history: bool = False):
        options = [
            joinedload(DBNote.owner),
            selectinload(DBNote.user_permissions).joinedload(DBNoteUserPermission.user),
            selectinload(DBNote.group_permissions).joinedload(DBNoteGroupPermission.group),
            selectinload(DBNote.tags),
            selectinload(DBNote.author_colors).joinedload(DBAuthorColor.user),
        ]
        if with_history:
            options.append(
                selectinload(DBNote.history_entries).joinedload(DBHistoryEntry.user)
            )
        return query.options(*options)

    def get(self, id: str, with_history: bool = False) -> Optional[Note]:
        """Get a note by its ID only."""
        with self.session_factory() as session:
            db_note = session.scalar(
                self._with_relations(select(DBNote).where(DBNote.id == id), with_history)
            )
            if not db_note:
                return None
            return self._db_note_to_model(db_note, with_history)

    def find_one(self, id_or_alias: str, with_history: bool = False) -> Optional[Note]:
        """Find a note whose ID or alias equals ``id_or_alias``.

        Args:
            id_or_alias: Note ID or alias.
            with_history: Also load history entries. When False the
                returned note has ``history_entries=None``.

        Returns:
            The note, or None if neither matches.
        """
        with self.session_factory() as session:
            db_note = session.scalar(
                self._with_relations(
                    select(DBNote).where(
                        or_(DBNote.id == id_or_alias, DBNote.alias == id_or_alias)
                    ),
                    with_history,
                )
            )
            if not db_note:
                return None
            return self._db_note_to_model(db_note, with_history)

    def find(self, owner: Optional[User] = None) -> List[Note]:
        """Find notes, optionally only those owned by ``owner``."""
        with self.session_factory() as session:
            query = select(DBNote).order_by(DBNote.created_at, DBNote.id)
            if owner is not None:
                query = query.join(DBUser, DBNote.owner_id == DBUser.id).where(
                    DBUser.user_name == owner.user_name
                )
            db_notes = session.scalars(self._with_relations(query)).unique().all()
            return [self._db_note_to_model(n) for n in db_notes]

    def get_all(self) -> List[Note]:
        return self.find()

    # =========================================================================
    # Writes
    # =========================================================================

    def save(self, note: Note, new_revisions: Sequence[Revision] = ()) -> Note:
        """Insert or update a note and append revisions in one transaction.

        Stored revisions are never touched; ``new_revisions`` are inserted
        after the note row.

        Args:
            note: The note to persist.
            new_revisions: Revisions to append, oldest first.

        Returns:
            The note as stored, freshly loaded.

        Raises:
            AlreadyInDBError: If the alias is already used by another note.
            NotInDBError: If a referenced user is unknown.
            StorageError: For any other database failure.
        """
        with self.session_factory() as session:
            try:
                self._sync_note_to_db(session, note)
                if new_revisions:
                    users = self._resolve_authors(session, new_revisions)
                    for revision in new_revisions:
                        if revision.note_id != note.id:
                            raise ValueError(
                                f"Revision belongs to note '{revision.note_id}', "
                                f"not '{note.id}'"
                            )
                        add_revision_rows(session, revision, users)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                if "notes.alias" in str(e.orig):
                    raise AlreadyInDBError(
                        f"Alias '{note.alias}' is already in use",
                        value=note.alias,
                        code=ErrorCode.ALIAS_ALREADY_TAKEN,
                        original_error=e,
                    ) from e
                raise StorageError(
                    f"Failed to save note {note.id}",
                    operation="save",
                    code=ErrorCode.STORAGE_WRITE_FAILED,
                    original_error=e,
                ) from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Failed to save note {note.id}: {e}")
                raise StorageError(
                    f"Failed to save note {note.id}",
                    operation="save",
                    code=ErrorCode.STORAGE_WRITE_FAILED,
                    original_error=e,
                ) from e

        return self.get(note.id, with_history=note.history_entries is not None)

    def remove(self, note: Note) -> Note:
        """Delete a note together with everything it owns.

        Returns:
            The removed note.

        Raises:
            NotInDBError: If the note is not stored.
        """
        with self.session_factory() as session:
            db_note = session.get(DBNote, note.id)
            if db_note is None:
                raise NotInDBError(
                    f"Note with id '{note.id}' not found.",
                    lookup=note.id,
                    code=ErrorCode.NOTE_NOT_FOUND,
                )
            try:
                session.delete(db_note)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StorageError(
                    f"Failed to delete note {note.id}",
                    operation="remove",
                    code=ErrorCode.STORAGE_DELETE_FAILED,
                    original_error=e,
                ) from e
        logger.info(f"Deleted note {note.id}")
        return note

    # =========================================================================
    # Sync helpers
    # =========================================================================

    def _sync_note_to_db(self, session: Session, note: Note) -> DBNote:
        """Synchronise a Note model into the database within an existing session.

        This is the single write path for a note. Grants are matched to
        existing rows by ID (falling back to the grantee) so that updated
        grants keep their identity; rows missing from the model are deleted.

        The caller controls the session and transaction boundary (commit).
        """
        db_note = session.get(DBNote, note.id)
        if db_note is None:
            db_note = DBNote(id=note.id)
            session.add(db_note)

        db_note.alias = note.alias
        db_note.title = note.title
        db_note.description = note.description
        db_note.view_count = note.view_count
        db_note.owner = self._resolve_user(session, note.owner) if note.owner else None

        # --- Tags: rebuild, keeping first occurrence -------------------------
        seen = set()
        db_tags = []
        for tag in note.tags:
            if tag.name in seen:
                continue
            seen.add(tag.name)
            db_tags.append(self._get_or_create_tag(session, tag.name))
        db_note.tags = db_tags

        self._sync_user_permissions(session, db_note, note.user_permissions)
        self._sync_group_permissions(session, db_note, note.group_permissions)
        self._sync_author_colors(session, db_note, note.author_colors)
        if note.history_entries is not None:
            self._sync_history_entries(session, db_note, note.history_entries)

        session.flush()
        return db_note

    def _sync_user_permissions(
        self,
        session: Session,
        db_note: DBNote,
        permissions: List[NoteUserPermission],
    ) -> None:
        by_id = {p.id: p for p in db_note.user_permissions}
        by_user = {p.user_id: p for p in db_note.user_permissions}
        kept = []
        for permission in permissions:
            db_user = self._resolve_user(session, permission.user)
            db_permission = by_id.get(permission.id) or by_user.get(db_user.id)
            if db_permission is None:
                db_permission = DBNoteUserPermission(user=db_user)
            db_permission.user = db_user
            db_permission.can_edit = permission.can_edit
            kept.append(db_permission)
        db_note.user_permissions = kept

    def _sync_group_permissions(
        self,
        session: Session,
        db_note: DBNote,
        permissions: List[NoteGroupPermission],
    ) -> None:
        by_id = {p.id: p for p in db_note.group_permissions}
        by_group = {
            p.group_id: p for p in db_note.group_permissions if p.group_id is not None
        }
        kept = []
        for permission in permissions:
            db_group = (
                self._resolve_group(session, permission.group)
                if permission.group is not None
                else None
            )
            db_permission = by_id.get(permission.id)
            if db_permission is None and db_group is not None:
                db_permission = by_group.get(db_group.id)
            if db_permission is None:
                db_permission = DBNoteGroupPermission()
            db_permission.group = db_group
            db_permission.can_edit = permission.can_edit
            kept.append(db_permission)
        db_note.group_permissions = kept

    def _sync_author_colors(
        self, session: Session, db_note: DBNote, author_colors: List[AuthorColor]
    ) -> None:
        existing = {c.user_id: c for c in db_note.author_colors}
        kept = []
        for author_color in author_colors:
            db_user = self._resolve_user(session, author_color.user)
            db_color = existing.get(db_user.id)
            if db_color is None:
                db_color = DBAuthorColor(user=db_user)
            db_color.color = author_color.color
            kept.append(db_color)
        db_note.author_colors = kept

    def _sync_history_entries(
        self, session: Session, db_note: DBNote, entries: List[HistoryEntry]
    ) -> None:
        existing = {e.user_id: e for e in db_note.history_entries}
        kept = []
        for entry in entries:
            db_user = self._resolve_user(session, entry.user)
            db_entry = existing.get(db_user.id)
            if db_entry is None:
                db_entry = DBHistoryEntry(user=db_user)
            db_entry.pinned = entry.pinned
            db_entry.updated_at = entry.updated_at
            kept.append(db_entry)
        db_note.history_entries = kept

    def _resolve_authors(
        self, session: Session, revisions: Sequence[Revision]
    ) -> Dict[str, DBUser]:
        users: Dict[str, DBUser] = {}
        for revision in revisions:
            for authorship in revision.authorships:
                if authorship.user.user_name not in users:
                    users[authorship.user.user_name] = self._resolve_user(
                        session, authorship.user
                    )
        return users

    @staticmethod
    def _resolve_user(session: Session, user: User) -> DBUser:
        if user.id is not None:
            db_user = session.get(DBUser, user.id)
        else:
            db_user = session.scalar(
                select(DBUser).where(DBUser.user_name == user.user_name)
            )
        if db_user is None:
            raise NotInDBError(
                f"User with username '{user.user_name}' not found.",
                lookup=user.user_name,
                code=ErrorCode.USER_NOT_FOUND,
            )
        return db_user

    @staticmethod
    def _resolve_group(session: Session, group: Group) -> DBGroup:
        if group.id is not None:
            db_group = session.get(DBGroup, group.id)
        else:
            db_group = session.scalar(select(DBGroup).where(DBGroup.name == group.name))
        if db_group is None:
            raise NotInDBError(
                f"Group with name '{group.name}' not found.",
                lookup=group.name,
                code=ErrorCode.GROUP_NOT_FOUND,
            )
        return db_group

    @staticmethod
    def _get_or_create_tag(session: Session, tag_name: str) -> DBTag:
        """Atomically get or create a tag to handle concurrent creation race.

        Uses INSERT OR IGNORE followed by SELECT to safely handle the case
        where two transactions try to create the same tag simultaneously.
        """
        session.execute(
            text("INSERT OR IGNORE INTO tags (name) VALUES (:name)"), {"name": tag_name}
        )
        return session.scalar(select(DBTag).where(DBTag.name == tag_name))

    @staticmethod
    def _db_note_to_model(db_note: DBNote, with_history: bool = False) -> Note:
        """Convert a DBNote with loaded relations to a fresh domain Note."""
        history_entries = None
        if with_history:
            history_entries = [
                HistoryEntry(
                    id=e.id,
                    user=db_user_to_model(e.user),
                    pinned=bool(e.pinned),
                    updated_at=ensure_timezone_aware(e.updated_at),
                )
                for e in db_note.history_entries
            ]

        return Note(
            id=db_note.id,
            alias=db_note.alias,
            title=db_note.title or "",
            description=db_note.description or "",
            view_count=db_note.view_count or 0,
            owner=db_user_to_model(db_note.owner) if db_note.owner else None,
            user_permissions=[
                NoteUserPermission(
                    id=p.id, user=db_user_to_model(p.user), can_edit=bool(p.can_edit)
                )
                for p in db_note.user_permissions
            ],
            group_permissions=[
                NoteGroupPermission(
                    id=p.id,
                    group=db_group_to_model(p.group) if p.group else None,
                    can_edit=bool(p.can_edit),
                )
                for p in db_note.group_permissions
            ],
            tags=[Tag(name=t.name) for t in db_note.tags],
            author_colors=[
                AuthorColor(user=db_user_to_model(c.user), color=c.color)
                for c in db_note.author_colors
            ],
            history_entries=history_entries,
        )
