"""Read-only projections of notes for external consumers."""

import logging
from typing import Optional

from collabnotes.models.dto import (NoteAuthorshipDto, NoteDto,
                                    NoteGroupPermissionEntryDto,
                                    NoteMetadataDto, NotePermissionsDto,
                                    NoteUserPermissionEntryDto)
from collabnotes.models.schema import Note, Revision, User
from collabnotes.services.note_service import NoteService
from collabnotes.services.revision_service import RevisionService
from collabnotes.services.user_service import UserService

logger = logging.getLogger(__name__)


def find_update_user(revision: Revision) -> Optional[User]:
    """User of the most recently updated authorship of ``revision``.

    On equal timestamps the authorship listed first wins. Returns None
    when the revision carries no authorships.
    """
    if not revision.authorships:
        return None
    return max(revision.authorships, key=lambda a: a.updated_at).user


class MetadataService:
    """Derives summaries of a note without changing any state."""

    def __init__(
        self,
        revision_service: Optional[RevisionService] = None,
        user_service: Optional[UserService] = None,
    ):
        self.revision_service = (
            revision_service if revision_service is not None else RevisionService()
        )
        self.user_service = user_service if user_service is not None else UserService()

    def get_latest_revision(self, note: Note) -> Revision:
        """Raises NotInDBError if the note has no revisions."""
        return self.revision_service.get_latest_revision(note.id)

    def get_first_revision(self, note: Note) -> Revision:
        """Raises NotInDBError if the note has no revisions."""
        return self.revision_service.get_first_revision(note.id)

    def get_note_content_by_note(self, note: Note) -> str:
        """Content of the latest revision."""
        return self.get_latest_revision(note).content

    def to_note_permissions_dto(self, note: Note) -> NotePermissionsDto:
        """Owner plus user and group grants of a note."""
        return NotePermissionsDto(
            owner=self.user_service.to_user_dto(note.owner),
            shared_to_users=[
                NoteUserPermissionEntryDto(
                    user=self.user_service.to_user_dto(permission.user),
                    can_edit=permission.can_edit,
                )
                for permission in note.user_permissions
            ],
            shared_to_groups=[
                NoteGroupPermissionEntryDto(
                    group=permission.group,
                    can_edit=permission.can_edit,
                )
                for permission in note.group_permissions
            ],
        )

    def to_note_metadata_dto(self, note: Note) -> NoteMetadataDto:
        """Summary of a note: identity, timestamps, editors, grants and tags."""
        first_revision = self.get_first_revision(note)
        latest_revision = self.get_latest_revision(note)
        return NoteMetadataDto(
            id=note.id,
            alias=note.alias,
            title=note.title,
            description=note.description,
            create_time=first_revision.created_at,
            update_time=latest_revision.created_at,
            update_user=self.user_service.to_user_dto(find_update_user(latest_revision)),
            edited_by=[author_color.user.user_name for author_color in note.author_colors],
            permissions=self.to_note_permissions_dto(note),
            tags=NoteService.to_tag_list(note),
            view_count=note.view_count,
        )

    def to_note_dto(self, note: Note) -> NoteDto:
        """Content of the latest revision together with the note's metadata."""
        latest_revision = self.get_latest_revision(note)
        return NoteDto(
            content=latest_revision.content,
            metadata=self.to_note_metadata_dto(note),
            edited_by_at_position=[
                NoteAuthorshipDto(
                    user_name=authorship.user.user_name,
                    start_pos=authorship.start_pos,
                    end_pos=authorship.end_pos,
                    created_at=authorship.created_at,
                    updated_at=authorship.updated_at,
                )
                for authorship in latest_revision.authorships
            ],
        )
