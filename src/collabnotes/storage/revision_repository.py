"""Read access to the revision history of notes.

Revisions are written together with their note by ``NoteRepository.save``
and never updated afterwards; this repository only reads them.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, selectinload

from collabnotes.models.db_models import (DBAuthorship, DBRevision,
                                          get_session_factory, init_db)
from collabnotes.models.schema import (Authorship, Revision,
                                       ensure_timezone_aware)
from collabnotes.storage.base import Repository
from collabnotes.storage.user_repository import db_user_to_model

logger = logging.getLogger(__name__)


def db_revision_to_model(db_revision: DBRevision) -> Revision:
    """Convert a DBRevision row (authorships loaded) to a domain Revision."""
    return Revision(
        id=db_revision.id,
        note_id=db_revision.note_id,
        content=db_revision.content,
        created_at=ensure_timezone_aware(db_revision.created_at),
        authorships=[
            Authorship(
                user=db_user_to_model(a.user),
                start_pos=a.start_pos,
                end_pos=a.end_pos,
                created_at=ensure_timezone_aware(a.created_at),
                updated_at=ensure_timezone_aware(a.updated_at),
            )
            for a in db_revision.authorships
        ],
    )


def add_revision_rows(session: Session, revision: Revision, users: dict) -> DBRevision:
    """Stage a new revision row and its authorships in ``session``.

    Args:
        session: Active session (caller commits).
        revision: The revision to insert. Must not have an ID yet.
        users: Mapping of user name to the resolved DBUser row.

    Returns:
        The staged DBRevision.
    """
    if revision.id is not None:
        raise ValueError(f"Revision {revision.id} is already stored")
    db_revision = DBRevision(
        note_id=revision.note_id,
        content=revision.content,
        created_at=revision.created_at,
        authorships=[
            DBAuthorship(
                user=users[a.user.user_name],
                start_pos=a.start_pos,
                end_pos=a.end_pos,
                created_at=a.created_at,
                updated_at=a.updated_at,
            )
            for a in revision.authorships
        ],
    )
    session.add(db_revision)
    return db_revision


class RevisionRepository(Repository[Revision]):
    """Repository giving ordered access to a note's revisions."""

    def __init__(self, engine: Optional[Engine] = None):
        """Initialize the repository.

        Args:
            engine: SQLAlchemy engine. If None, uses default from config.
        """
        self.engine = engine or init_db()
        self.session_factory = get_session_factory(self.engine)

    @staticmethod
    def _with_authorships(query):
        return query.options(
            selectinload(DBRevision.authorships).joinedload(DBAuthorship.user)
        )

    def get(self, id: int) -> Optional[Revision]:
        with self.session_factory() as session:
            db_revision = session.scalar(
                self._with_authorships(select(DBRevision).where(DBRevision.id == id))
            )
            if not db_revision:
                return None
            return db_revision_to_model(db_revision)

    def get_all(self) -> List[Revision]:
        with self.session_factory() as session:
            db_revisions = session.scalars(
                self._with_authorships(select(DBRevision).order_by(DBRevision.id))
            ).all()
            return [db_revision_to_model(r) for r in db_revisions]

    def list_for_note(self, note_id: str) -> List[Revision]:
        """All revisions of a note, oldest first."""
        with self.session_factory() as session:
            db_revisions = session.scalars(
                self._with_authorships(
                    select(DBRevision)
                    .where(DBRevision.note_id == note_id)
                    .order_by(DBRevision.id)
                )
            ).all()
            return [db_revision_to_model(r) for r in db_revisions]

    def get_first(self, note_id: str) -> Optional[Revision]:
        """The oldest revision of a note."""
        return self._get_edge(note_id, DBRevision.id.asc())

    def get_latest(self, note_id: str) -> Optional[Revision]:
        """The newest revision of a note."""
        return self._get_edge(note_id, DBRevision.id.desc())

    def _get_edge(self, note_id: str, ordering) -> Optional[Revision]:
        with self.session_factory() as session:
            db_revision = session.scalar(
                self._with_authorships(
                    select(DBRevision)
                    .where(DBRevision.note_id == note_id)
                    .order_by(ordering)
                    .limit(1)
                )
            )
            if not db_revision:
                return None
            return db_revision_to_model(db_revision)

    def count_for_note(self, note_id: str) -> int:
        with self.session_factory() as session:
            return session.scalar(
                select(func.count(DBRevision.id)).where(DBRevision.note_id == note_id)
            ) or 0
