"""Tests for the domain models."""
import datetime

import pytest
from pydantic import ValidationError

from collabnotes.models.dto import (NotePermissionsUpdate,
                                    NoteUserPermissionUpdate)
from collabnotes.models.schema import (Authorship, Group, Note,
                                       NoteGroupPermission, NoteUserPermission,
                                       Revision, Tag, User,
                                       ensure_timezone_aware)


class TestNoteModel:
    """Tests for the Note model."""

    def test_note_defaults(self):
        """A fresh note has an ID and no grants, tags or owner."""
        note = Note()
        assert note.id
        assert note.alias is None
        assert note.owner is None
        assert note.view_count == 0
        assert note.user_permissions == []
        assert note.group_permissions == []
        assert note.tags == []
        assert note.author_colors == []
        assert note.history_entries is None

    def test_note_ids_are_unique(self):
        assert Note().id != Note().id

    def test_alias_validation(self):
        """Blank aliases and aliases with a slash are rejected."""
        with pytest.raises(ValidationError):
            Note(alias="   ")
        with pytest.raises(ValidationError):
            Note(alias="a/b")
        assert Note(alias="meeting-notes").alias == "meeting-notes"

    def test_negative_view_count_rejected(self):
        with pytest.raises(ValidationError):
            Note(view_count=-1)

    def test_tag_operations(self):
        """Adding a tag twice keeps one; removing works by name or Tag."""
        note = Note()
        note.add_tag("draft")
        note.add_tag(Tag(name="draft"))
        note.add_tag("team")
        assert [t.name for t in note.tags] == ["draft", "team"]

        note.remove_tag("draft")
        assert [t.name for t in note.tags] == ["team"]
        note.remove_tag(Tag(name="team"))
        assert note.tags == []

    def test_add_author_color_assigns_sequential_colors(self):
        note = Note()
        alice = User(user_name="alice")
        bob = User(user_name="bob")

        assert note.add_author_color(alice).color == 0
        assert note.add_author_color(bob).color == 1
        # Existing contributors keep their color
        assert note.add_author_color(alice).color == 0
        assert len(note.author_colors) == 2

    def test_find_permissions(self):
        note = Note(
            user_permissions=[NoteUserPermission(user=User(user_name="alice"), can_edit=True)],
            group_permissions=[
                NoteGroupPermission(group=None, can_edit=True),
                NoteGroupPermission(group=Group(name="editors"), can_edit=False),
            ],
        )
        assert note.find_user_permission("alice").can_edit is True
        assert note.find_user_permission("bob") is None
        assert note.find_group_permission("editors").can_edit is False
        assert note.find_group_permission("nobody") is None

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            Note(content="not a field")


class TestRevisionModel:
    """Tests for revisions and authorships."""

    def test_revision_is_immutable(self):
        revision = Revision(note_id="n1", content="hello")
        with pytest.raises(ValidationError):
            revision.content = "changed"

    def test_authorship_range_validation(self):
        user = User(user_name="alice")
        with pytest.raises(ValidationError):
            Authorship(user=user, start_pos=5, end_pos=2)
        with pytest.raises(ValidationError):
            Authorship(user=user, start_pos=-1, end_pos=2)
        assert Authorship(user=user, start_pos=3, end_pos=3).end_pos == 3


class TestUserModel:
    def test_blank_user_name_rejected(self):
        with pytest.raises(ValidationError):
            User(user_name=" ")

    def test_blank_group_name_rejected(self):
        with pytest.raises(ValidationError):
            Group(name="")


class TestPermissionUpdateModel:
    def test_defaults_are_empty(self):
        update = NotePermissionsUpdate()
        assert update.shared_to_users == []
        assert update.shared_to_groups == []

    def test_empty_username_rejected(self):
        with pytest.raises(ValidationError):
            NoteUserPermissionUpdate(username="", can_edit=True)


class TestTimezoneHelpers:
    def test_naive_datetime_is_treated_as_utc(self):
        naive = datetime.datetime(2024, 1, 1, 12, 0)
        aware = ensure_timezone_aware(naive)
        assert aware.tzinfo == datetime.timezone.utc
        assert aware.hour == 12

    def test_aware_datetime_is_unchanged(self):
        aware = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        assert ensure_timezone_aware(aware) is aware

    def test_missing_timestamp_is_an_error(self):
        with pytest.raises(ValueError):
            ensure_timezone_aware(None)
