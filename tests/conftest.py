"""Common test fixtures for the collabnotes engine."""

import tempfile
from pathlib import Path

import pytest

from collabnotes.config import config
from collabnotes.models.db_models import init_db
from collabnotes.observability import metrics
from collabnotes.services.metadata_service import MetadataService
from collabnotes.services.note_service import NoteService
from collabnotes.services.permission_service import PermissionService
from collabnotes.services.revision_service import RevisionService
from collabnotes.services.user_service import UserService
from collabnotes.storage.note_repository import NoteRepository
from collabnotes.storage.revision_repository import RevisionRepository
from collabnotes.storage.user_repository import GroupRepository, UserRepository
from tests.fakes import FakeDirectory


@pytest.fixture
def temp_db_dir():
    """Create a temporary directory for the database."""
    with tempfile.TemporaryDirectory() as db_dir:
        yield Path(db_dir)


@pytest.fixture
def test_config(temp_db_dir, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "base_dir", temp_db_dir)
    monkeypatch.setattr(config, "database_path", temp_db_dir / "test_collabnotes.db")
    yield config


@pytest.fixture
def engine(test_config):
    """Create a file-backed SQLite engine with all tables."""
    engine = init_db()
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def note_repository(engine):
    return NoteRepository(engine=engine)


@pytest.fixture
def revision_repository(engine):
    return RevisionRepository(engine=engine)


@pytest.fixture
def user_service(engine):
    return UserService(UserRepository(engine=engine), GroupRepository(engine=engine))


@pytest.fixture
def revision_service(revision_repository):
    return RevisionService(repository=revision_repository)


@pytest.fixture
def note_service(note_repository, revision_service, user_service):
    """Create a NoteService wired to the test database."""
    return NoteService(
        repository=note_repository,
        revision_service=revision_service,
        permission_service=PermissionService(user_service),
        user_service=user_service,
    )


@pytest.fixture
def metadata_service(revision_service, user_service):
    return MetadataService(revision_service=revision_service, user_service=user_service)


# =============================================================================
# Identities
# =============================================================================


@pytest.fixture
def alice(user_service):
    return user_service.create_user("alice", display_name="Alice", email="alice@example.com")


@pytest.fixture
def bob(user_service):
    return user_service.create_user("bob", display_name="Bob")


@pytest.fixture
def carol(user_service):
    return user_service.create_user("carol")


@pytest.fixture
def editors(user_service):
    return user_service.create_group("editors", display_name="Editors")


@pytest.fixture
def reviewers(user_service):
    return user_service.create_group("reviewers")


@pytest.fixture
def fake_directory():
    """In-memory directory with two users and one group."""
    directory = FakeDirectory()
    directory.add_user("alice")
    directory.add_user("bob")
    directory.add_group("editors")
    return directory
