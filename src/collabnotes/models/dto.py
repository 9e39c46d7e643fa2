"""Externally consumable data shapes for notes and permissions."""

import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from collabnotes.models.schema import Group


class UserDto(BaseModel):
    """Public projection of a user."""

    user_name: str
    display_name: str = ""
    photo: Optional[str] = None
    email: Optional[str] = None


class NoteUserPermissionUpdate(BaseModel):
    """One desired user grant."""

    username: str = Field(..., min_length=1)
    can_edit: bool = False


class NoteGroupPermissionUpdate(BaseModel):
    """One desired group grant."""

    groupname: str = Field(..., min_length=1)
    can_edit: bool = False


class NotePermissionsUpdate(BaseModel):
    """Desired permission state of a note.

    An empty list clears every grant of that kind; a non-empty list adds
    or updates the named grantees and leaves all others in place.
    """

    shared_to_users: List[NoteUserPermissionUpdate] = Field(default_factory=list)
    shared_to_groups: List[NoteGroupPermissionUpdate] = Field(default_factory=list)


class NoteUserPermissionEntryDto(BaseModel):
    user: Optional[UserDto]
    can_edit: bool


class NoteGroupPermissionEntryDto(BaseModel):
    group: Optional[Group]
    can_edit: bool


class NotePermissionsDto(BaseModel):
    """Owner and grants of a note."""

    owner: Optional[UserDto] = None
    shared_to_users: List[NoteUserPermissionEntryDto] = Field(default_factory=list)
    shared_to_groups: List[NoteGroupPermissionEntryDto] = Field(default_factory=list)


class NoteMetadataDto(BaseModel):
    """Read-only summary of a note."""

    id: str
    alias: Optional[str] = None
    title: str = ""
    description: str = ""
    create_time: datetime.datetime
    update_time: datetime.datetime
    update_user: Optional[UserDto] = None
    edited_by: List[str] = Field(default_factory=list)
    permissions: NotePermissionsDto
    tags: List[str] = Field(default_factory=list)
    view_count: int = 0


class NoteAuthorshipDto(BaseModel):
    """A user's claim on a character range of the current content."""

    user_name: str
    start_pos: int
    end_pos: int
    created_at: datetime.datetime
    updated_at: datetime.datetime


class NoteDto(BaseModel):
    """Content together with metadata."""

    content: str
    metadata: NoteMetadataDto
    edited_by_at_position: List[NoteAuthorshipDto] = Field(default_factory=list)
