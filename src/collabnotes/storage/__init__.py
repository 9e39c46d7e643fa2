"""Storage layer for collabnotes."""

from collabnotes.storage.base import Repository
from collabnotes.storage.note_repository import NoteRepository
from collabnotes.storage.revision_repository import RevisionRepository
from collabnotes.storage.user_repository import GroupRepository, UserRepository

__all__ = [
    "Repository",
    "NoteRepository",
    "RevisionRepository",
    "UserRepository",
    "GroupRepository",
]
