"""Service layer for note identity, lifecycle and mutations."""

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy.engine import Engine

from collabnotes.config import config
from collabnotes.exceptions import ClientError, ErrorCode, NotInDBError
from collabnotes.models.db_models import init_db
from collabnotes.models.dto import NotePermissionsUpdate
from collabnotes.models.schema import HistoryEntry, Note, User
from collabnotes.observability import traced
from collabnotes.services.permission_service import PermissionService
from collabnotes.services.revision_service import RevisionService
from collabnotes.services.user_service import UserService
from collabnotes.storage.note_repository import NoteRepository
from collabnotes.storage.revision_repository import RevisionRepository
from collabnotes.storage.user_repository import GroupRepository, UserRepository

logger = logging.getLogger(__name__)


class NoteService:
    """Service for creating, resolving and changing notes.

    Mutations of one note are serialized within the process: each runs
    under a per-note lock and re-reads the note after acquiring it, so
    two concurrent read-modify-write cycles cannot overwrite each other.
    """

    def __init__(
        self,
        repository: Optional[NoteRepository] = None,
        revision_service: Optional[RevisionService] = None,
        permission_service: Optional[PermissionService] = None,
        user_service: Optional[UserService] = None,
        engine: Optional[Engine] = None,
    ):
        """Initialize the service.

        Args:
            repository: Note storage backend.
            revision_service: Revision store for the notes.
            permission_service: Reconciler for permission updates.
            user_service: Identity directory.
            engine: Pre-configured SQLAlchemy engine used for every
                collaborator that is not passed in. Defaults to the
                repository's engine, or a new one from config.
        """
        if engine is None:
            engine = repository.engine if repository is not None else init_db()

        self.repository = repository if repository is not None else NoteRepository(engine=engine)
        self.user_service = (
            user_service
            if user_service is not None
            else UserService(UserRepository(engine=engine), GroupRepository(engine=engine))
        )
        self.revision_service = (
            revision_service
            if revision_service is not None
            else RevisionService(RevisionRepository(engine=engine))
        )
        self.permission_service = (
            permission_service
            if permission_service is not None
            else PermissionService(self.user_service)
        )

        self._note_locks: "weakref.WeakValueDictionary[str, threading.RLock]" = (
            weakref.WeakValueDictionary()
        )
        self._note_locks_lock = threading.Lock()

    # =========================================================================
    # Locking
    # =========================================================================

    def _get_note_lock(self, note_id: str) -> threading.RLock:
        """Get or create the lock for a specific note.

        Locks live in a WeakValueDictionary and are dropped once no caller
        holds them.
        """
        with self._note_locks_lock:
            lock = self._note_locks.get(note_id)
            if lock is None:
                lock = threading.RLock()
                self._note_locks[note_id] = lock
            return lock

    @contextmanager
    def _locked_note(self, id_or_alias: str, with_history: bool = False) -> Iterator[Note]:
        """Resolve a note and yield its current state under the note's lock."""
        note_id = self.get_note_by_id_or_alias(id_or_alias).id
        with self._get_note_lock(note_id):
            note = self.repository.get(note_id, with_history=with_history)
            if note is None:
                # Deleted between resolving and locking
                raise NotInDBError(
                    f"Note with id/alias '{id_or_alias}' not found.",
                    lookup=id_or_alias,
                    code=ErrorCode.NOTE_NOT_FOUND,
                )
            yield note

    def _check_alias(self, alias: str) -> None:
        """Reject aliases that could not be stored or looked up.

        Raises:
            ClientError: If the alias is blank, contains '/' or is too long.
        """
        if not alias.strip():
            raise ClientError("Alias cannot be blank")
        if "/" in alias:
            raise ClientError(f"Alias '{alias}' cannot contain '/'")
        if len(alias) > config.max_alias_length:
            raise ClientError(
                f"Alias is longer than {config.max_alias_length} characters"
            )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @traced("create_note")
    def create_note(
        self,
        content: str,
        alias: Optional[str] = None,
        owner: Optional[User] = None,
    ) -> Note:
        """Create a note with a single revision holding ``content``.

        Args:
            content: Initial content.
            alias: Optional alias. Uniqueness is enforced by the database.
            owner: Optional owner. Gets a history entry, an author color and
                the authorship of the initial content.

        Returns:
            The stored note.

        Raises:
            AlreadyInDBError: If the alias is taken.
        """
        note = Note()
        if alias:
            self._check_alias(alias)
            note.alias = alias
        if owner:
            note.owner = owner
            note.history_entries = [HistoryEntry(user=owner)]
            note.add_author_color(owner)

        revision = self.revision_service.build_revision(note.id, content, author=owner)
        created = self.repository.save(note, [revision])
        logger.info(f"Created note {created.id}")
        return created

    @traced("get_note_by_id_or_alias")
    def get_note_by_id_or_alias(self, id_or_alias: str) -> Note:
        """Resolve a note by ID or alias.

        Raises:
            NotInDBError: If neither matches.
        """
        logger.debug(f"Trying to find note '{id_or_alias}'")
        note = self.repository.find_one(id_or_alias)
        if note is None:
            logger.debug(f"Could not find note '{id_or_alias}'")
            raise NotInDBError(
                f"Note with id/alias '{id_or_alias}' not found.",
                lookup=id_or_alias,
                code=ErrorCode.NOTE_NOT_FOUND,
            )
        logger.debug(f"Found note '{id_or_alias}'")
        return note

    @traced("delete_note")
    def delete_note_by_id_or_alias(self, id_or_alias: str) -> Note:
        """Delete a note and everything it owns. Returns the deleted note."""
        with self._locked_note(id_or_alias) as note:
            return self.repository.remove(note)

    @traced("get_user_notes")
    def get_user_notes(self, user: User) -> List[Note]:
        """All notes owned by ``user``."""
        return self.repository.find(owner=user)

    # =========================================================================
    # Content
    # =========================================================================

    @traced("update_note")
    def update_note_by_id_or_alias(
        self,
        id_or_alias: str,
        content: str,
        author: Optional[User] = None,
    ) -> Note:
        """Append a new full-content revision to a note.

        Args:
            id_or_alias: Note ID or alias.
            content: Complete new content.
            author: User to attribute the new content to, if known.

        Returns:
            The stored note.
        """
        with self._locked_note(id_or_alias) as note:
            previous = self.revision_service.get_latest_revision(note.id)
            revision = self.revision_service.build_revision(
                note.id, content, author=author, previous=previous
            )
            if author is not None:
                note.add_author_color(author)
            return self.repository.save(note, [revision])

    @traced("get_note_content")
    def get_note_content_by_id_or_alias(self, id_or_alias: str) -> str:
        """Content of the latest revision of a note."""
        note = self.get_note_by_id_or_alias(id_or_alias)
        return self.revision_service.get_latest_revision(note.id).content

    # =========================================================================
    # Permissions
    # =========================================================================

    @traced("update_note_permissions")
    def update_note_permissions(
        self, id_or_alias: str, desired: NotePermissionsUpdate
    ) -> Note:
        """Reconcile the grants of a note with ``desired`` and persist them.

        Raises:
            NotInDBError: If the note or a newly granted user does not exist.
            PermissionsUpdateInconsistentError: If a grantee is repeated.
        """
        with self._locked_note(id_or_alias) as note:
            updated = self.permission_service.reconcile(note, desired)
            return self.repository.save(updated)

    # =========================================================================
    # Metadata, alias and tags
    # =========================================================================

    @traced("rename_alias")
    def rename_alias(self, id_or_alias: str, new_alias: Optional[str]) -> Note:
        """Change or clear (``None``/empty) the alias of a note.

        Raises:
            AlreadyInDBError: If another note uses ``new_alias``.
        """
        if new_alias:
            self._check_alias(new_alias)
        with self._locked_note(id_or_alias) as note:
            note.alias = new_alias or None
            return self.repository.save(note)

    @traced("update_note_metadata")
    def update_note_metadata(
        self,
        id_or_alias: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Note:
        with self._locked_note(id_or_alias) as note:
            if title is not None:
                note.title = title
            if description is not None:
                note.description = description
            return self.repository.save(note)

    @traced("add_tag")
    def add_tag_to_note(self, id_or_alias: str, tag: str) -> Note:
        """Add a tag to a note."""
        with self._locked_note(id_or_alias) as note:
            note.add_tag(tag)
            return self.repository.save(note)

    @traced("remove_tag")
    def remove_tag_from_note(self, id_or_alias: str, tag: str) -> Note:
        """Remove a tag from a note."""
        with self._locked_note(id_or_alias) as note:
            note.remove_tag(tag)
            return self.repository.save(note)

    @staticmethod
    def to_tag_list(note: Note) -> List[str]:
        return [tag.name for tag in note.tags]

    @traced("increment_view_count")
    def increment_view_count(self, id_or_alias: str) -> int:
        """Count one view of a note and return the new total."""
        with self._locked_note(id_or_alias) as note:
            note.view_count += 1
            return self.repository.save(note).view_count
