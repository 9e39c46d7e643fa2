"""Service layer for the revision history of notes."""

import datetime
import logging
from typing import List, Optional

from collabnotes.exceptions import ErrorCode, NotInDBError
from collabnotes.models.schema import Authorship, Revision, User, utc_now
from collabnotes.storage.revision_repository import RevisionRepository

logger = logging.getLogger(__name__)

# Smallest step that survives a round trip through the database
_TIMESTAMP_STEP = datetime.timedelta(microseconds=1)


class RevisionService:
    """Ordered, append-only access to the content snapshots of a note."""

    def __init__(self, repository: Optional[RevisionRepository] = None):
        """Initialize the service.

        Args:
            repository: Revision storage backend. Created with defaults if None.
        """
        self.repository = repository if repository is not None else RevisionRepository()

    def get_revisions(self, note_id: str) -> List[Revision]:
        """All revisions of a note, oldest first."""
        return self.repository.list_for_note(note_id)

    def count_revisions(self, note_id: str) -> int:
        return self.repository.count_for_note(note_id)

    def get_latest_revision(self, note_id: str) -> Revision:
        """Get the newest revision of a note.

        Raises:
            NotInDBError: If the note has no revisions.
        """
        revision = self.repository.get_latest(note_id)
        if revision is None:
            raise NotInDBError(
                f"Revision for note {note_id} not found.",
                lookup=note_id,
                code=ErrorCode.REVISION_NOT_FOUND,
            )
        return revision

    def get_first_revision(self, note_id: str) -> Revision:
        """Get the oldest revision of a note.

        Raises:
            NotInDBError: If the note has no revisions.
        """
        revision = self.repository.get_first(note_id)
        if revision is None:
            raise NotInDBError(
                f"Revision for note {note_id} not found.",
                lookup=note_id,
                code=ErrorCode.REVISION_NOT_FOUND,
            )
        return revision

    def build_revision(
        self,
        note_id: str,
        content: str,
        author: Optional[User] = None,
        previous: Optional[Revision] = None,
    ) -> Revision:
        """Build a new, not yet stored, full-content revision.

        The timestamp is strictly later than ``previous.created_at`` so the
        revision sequence of a note stays monotonic even when the clock
        does not advance between two calls.

        Args:
            note_id: ID of the note the revision belongs to.
            content: Complete new content.
            author: User to attribute the whole content to, if any.
            previous: The current latest revision, if any.

        Returns:
            The unsaved Revision.
        """
        created_at = utc_now()
        if previous is not None and created_at <= previous.created_at:
            created_at = previous.created_at + _TIMESTAMP_STEP

        authorships = []
        if author is not None:
            authorships.append(
                Authorship(
                    user=author,
                    start_pos=0,
                    end_pos=len(content),
                    created_at=created_at,
                    updated_at=created_at,
                )
            )

        return Revision(
            note_id=note_id,
            content=content,
            created_at=created_at,
            authorships=authorships,
        )
