"""Tests for the revision store."""
import datetime

import pytest

from collabnotes.exceptions import ErrorCode, NotInDBError
from collabnotes.models.schema import Revision, User, utc_now


class TestBuildRevision:
    """Tests for building unsaved revisions."""

    def test_without_author(self, revision_service):
        revision = revision_service.build_revision("n1", "hello")
        assert revision.id is None
        assert revision.note_id == "n1"
        assert revision.content == "hello"
        assert revision.authorships == []

    def test_author_owns_whole_content(self, revision_service):
        author = User(user_name="alice")
        revision = revision_service.build_revision("n1", "hello world", author=author)
        assert len(revision.authorships) == 1
        authorship = revision.authorships[0]
        assert authorship.user == author
        assert (authorship.start_pos, authorship.end_pos) == (0, 11)
        assert authorship.created_at == revision.created_at

    def test_timestamp_is_after_previous(self, revision_service):
        """A previous revision in the future still yields a later timestamp."""
        future = utc_now() + datetime.timedelta(hours=1)
        previous = Revision(note_id="n1", content="old", created_at=future)
        revision = revision_service.build_revision("n1", "new", previous=previous)
        assert revision.created_at > previous.created_at


class TestRevisionQueries:
    """Tests for reading stored revisions."""

    def test_unknown_note_has_no_revisions(self, revision_service):
        assert revision_service.get_revisions("missing") == []
        assert revision_service.count_revisions("missing") == 0

    def test_edge_revisions_missing(self, revision_service):
        with pytest.raises(NotInDBError) as exc_info:
            revision_service.get_latest_revision("missing")
        assert exc_info.value.code == ErrorCode.REVISION_NOT_FOUND
        with pytest.raises(NotInDBError):
            revision_service.get_first_revision("missing")

    def test_history_order(self, note_service, revision_service, alice):
        note = note_service.create_note("v1", owner=alice)
        note_service.update_note_by_id_or_alias(note.id, "v2")
        note_service.update_note_by_id_or_alias(note.id, "v3", author=alice)

        revisions = revision_service.get_revisions(note.id)
        assert [r.content for r in revisions] == ["v1", "v2", "v3"]
        assert revision_service.count_revisions(note.id) == 3
        assert revision_service.get_first_revision(note.id).content == "v1"
        assert revision_service.get_latest_revision(note.id).content == "v3"

    def test_timestamps_strictly_increase(self, note_service, revision_service):
        note = note_service.create_note("0")
        for i in range(1, 6):
            note_service.update_note_by_id_or_alias(note.id, str(i))

        timestamps = [r.created_at for r in revision_service.get_revisions(note.id)]
        assert all(a < b for a, b in zip(timestamps, timestamps[1:]))

    def test_authorships_survive_storage(self, note_service, revision_service, alice):
        note = note_service.create_note("abc", owner=alice)
        stored = revision_service.get_latest_revision(note.id)
        assert [a.user.user_name for a in stored.authorships] == ["alice"]
        assert stored.authorships[0].end_pos == 3
        assert stored.created_at.tzinfo is not None

    def test_repository_lookup_by_id(self, note_service, revision_repository):
        note = note_service.create_note("hello")
        latest = revision_repository.get_latest(note.id)
        assert revision_repository.get(latest.id) == latest
        assert revision_repository.get(latest.id + 1000) is None
        assert latest in revision_repository.get_all()
