"""Domain models for collabnotes."""

import datetime
import uuid
from datetime import timezone
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite hands back naive datetimes, which are assumed to be UTC.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The same datetime with UTC timezone if it was naive, otherwise unchanged.

    Raises:
        ValueError: If ``dt_value`` is None; stored timestamps are never NULL.
    """
    if dt_value is None:
        raise ValueError("Missing timestamp")
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def generate_id() -> str:
    """Generate a globally unique note ID."""
    return str(uuid.uuid4())


class User(BaseModel):
    """A user known to the identity directory."""

    id: Optional[int] = Field(default=None, description="Database ID")
    user_name: str = Field(..., description="Unique login name")
    display_name: str = Field(default="", description="Name shown to other users")
    photo: Optional[str] = Field(default=None, description="Avatar URL")
    email: Optional[str] = Field(default=None, description="Contact address")

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("user_name")
    @classmethod
    def validate_user_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("User name cannot be empty")
        return v


class Group(BaseModel):
    """A named group of users."""

    id: Optional[int] = Field(default=None, description="Database ID")
    name: str = Field(..., description="Unique group name")
    display_name: str = Field(default="", description="Name shown to users")
    special: bool = Field(
        default=False, description="Built-in group such as 'everyone'"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Group name cannot be empty")
        return v


class Tag(BaseModel):
    """A tag for categorizing notes."""

    name: str = Field(..., description="Tag name")

    model_config = {"validate_assignment": True, "frozen": True}

    def __str__(self) -> str:
        """Return string representation of tag."""
        return self.name


class Authorship(BaseModel):
    """Attribution of a character range of a revision to a user."""

    user: User
    start_pos: int = Field(..., ge=0, description="First attributed character")
    end_pos: int = Field(..., ge=0, description="End of the attributed range")
    created_at: datetime.datetime = Field(default_factory=utc_now)
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True, "extra": "forbid"}

    @model_validator(mode="after")
    def _validate_range(self) -> "Authorship":
        if self.end_pos < self.start_pos:
            raise ValueError("end_pos must not be before start_pos")
        return self


class Revision(BaseModel):
    """An immutable content snapshot of a note.

    Content is stored in full; no patch against the previous revision
    is computed.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    note_id: str = Field(..., description="ID of the owning note")
    content: str = Field(..., description="Full note content")
    created_at: datetime.datetime = Field(default_factory=utc_now)
    authorships: List[Authorship] = Field(default_factory=list)

    model_config = {"frozen": True, "extra": "forbid"}


class NoteUserPermission(BaseModel):
    """Edit grant for a single user on a note."""

    id: Optional[int] = Field(default=None, description="Database ID")
    user: User
    can_edit: bool = False

    model_config = {"validate_assignment": True, "extra": "forbid"}


class NoteGroupPermission(BaseModel):
    """Edit grant for a group on a note.

    ``group`` stays ``None`` when the requested group could not be resolved.
    """

    id: Optional[int] = Field(default=None, description="Database ID")
    group: Optional[Group] = None
    can_edit: bool = False

    model_config = {"validate_assignment": True, "extra": "forbid"}


class HistoryEntry(BaseModel):
    """Marks a note as part of a user's history view."""

    id: Optional[int] = Field(default=None, description="Database ID")
    user: User
    pinned: bool = False
    updated_at: datetime.datetime = Field(default_factory=utc_now)

    model_config = {"validate_assignment": True, "extra": "forbid"}


class AuthorColor(BaseModel):
    """The color a contributing user is shown in on a note."""

    user: User
    color: int = Field(default=0, ge=0)

    model_config = {"validate_assignment": True, "extra": "forbid"}


class Note(BaseModel):
    """A collaboratively edited note.

    Revisions are not part of the model; they are reached through the
    revision store by ``Note.id``.
    """

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    alias: Optional[str] = Field(default=None, description="Optional unique alias")
    title: str = Field(default="", description="Title of the note")
    description: str = Field(default="", description="Short description")
    view_count: int = Field(default=0, ge=0, description="Number of views")
    owner: Optional[User] = None
    user_permissions: List[NoteUserPermission] = Field(default_factory=list)
    group_permissions: List[NoteGroupPermission] = Field(default_factory=list)
    tags: List[Tag] = Field(default_factory=list)
    author_colors: List[AuthorColor] = Field(default_factory=list)
    # None means history entries were not populated, treat it like []
    history_entries: Optional[List[HistoryEntry]] = None

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("alias")
    @classmethod
    def validate_alias(cls, v: Optional[str]) -> Optional[str]:
        """Reject aliases that would be ambiguous or unusable in lookups."""
        if v is None:
            return None
        if not v.strip():
            raise ValueError("Alias cannot be blank")
        if "/" in v:
            raise ValueError("Alias cannot contain '/'")
        return v

    def add_tag(self, tag: Union[str, Tag]) -> None:
        """Add a tag to the note."""
        if isinstance(tag, str):
            tag = Tag(name=tag)
        tag_names = {t.name for t in self.tags}
        if tag.name not in tag_names:
            self.tags.append(tag)

    def remove_tag(self, tag: Union[str, Tag]) -> None:
        """Remove a tag from the note."""
        tag_name = tag.name if isinstance(tag, Tag) else tag
        self.tags = [t for t in self.tags if t.name != tag_name]

    def add_author_color(self, user: User) -> AuthorColor:
        """Return the user's author color, assigning the next free one if needed."""
        for author_color in self.author_colors:
            if author_color.user.user_name == user.user_name:
                return author_color
        author_color = AuthorColor(user=user, color=len(self.author_colors))
        self.author_colors.append(author_color)
        return author_color

    def find_user_permission(self, user_name: str) -> Optional[NoteUserPermission]:
        for permission in self.user_permissions:
            if permission.user.user_name == user_name:
                return permission
        return None

    def find_group_permission(self, group_name: str) -> Optional[NoteGroupPermission]:
        for permission in self.group_permissions:
            if permission.group is not None and permission.group.name == group_name:
                return permission
        return None
