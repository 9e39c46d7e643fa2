"""SQLAlchemy database models for collabnotes."""
import datetime
from typing import Optional

from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Integer, String,
                        Table, Text, UniqueConstraint, create_engine, event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import QueuePool

from collabnotes.config import config


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# Create base class for SQLAlchemy models
Base = declarative_base()

# Association table for tags and notes
note_tags = Table(
    "note_tags",
    Base.metadata,
    Column("note_id", String(36), ForeignKey("notes.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class DBUser(Base):
    """Database model for a user."""
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_name = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(255), default="", nullable=False)
    photo = Column(Text, nullable=True)
    email = Column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, user_name='{self.user_name}')>"


class DBGroup(Base):
    """Database model for a group."""
    __tablename__ = "groups"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(255), default="", nullable=False)
    special = Column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name='{self.name}')>"


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(String(36), primary_key=True, index=True)
    alias = Column(String(255), unique=True, nullable=True, index=True)
    title = Column(String(255), default="", nullable=False)
    description = Column(Text, default="", nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    # Relationships
    owner = relationship("DBUser")
    tags = relationship("DBTag", secondary=note_tags, back_populates="notes")
    revisions = relationship(
        "DBRevision",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="DBRevision.id",
    )
    user_permissions = relationship(
        "DBNoteUserPermission",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="DBNoteUserPermission.id",
    )
    group_permissions = relationship(
        "DBNoteGroupPermission",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="DBNoteGroupPermission.id",
    )
    history_entries = relationship(
        "DBHistoryEntry",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="DBHistoryEntry.id",
    )
    author_colors = relationship(
        "DBAuthorColor",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="DBAuthorColor.color",
    )

    def __repr__(self) -> str:
        return f"<Note(id='{self.id}', alias='{self.alias}')>"


class DBTag(Base):
    """Database model for a tag."""
    __tablename__ = "tags"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)

    notes = relationship("DBNote", secondary=note_tags, back_populates="tags")

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name='{self.name}')>"


class DBRevision(Base):
    """Database model for a content snapshot.

    Rows are only ever inserted; the insertion order (id) is the revision order.
    """
    __tablename__ = "revisions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    note = relationship("DBNote", back_populates="revisions")
    authorships = relationship(
        "DBAuthorship",
        back_populates="revision",
        cascade="all, delete-orphan",
        order_by="DBAuthorship.id",
    )

    def __repr__(self) -> str:
        return f"<Revision(id={self.id}, note='{self.note_id}')>"


class DBAuthorship(Base):
    """Database model for a user's claim on a range of a revision."""
    __tablename__ = "authorships"
    id = Column(Integer, primary_key=True, autoincrement=True)
    revision_id = Column(
        Integer, ForeignKey("revisions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_pos = Column(Integer, nullable=False)
    end_pos = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, nullable=False)

    revision = relationship("DBRevision", back_populates="authorships")
    user = relationship("DBUser")


class DBNoteUserPermission(Base):
    """Database model for a per-user grant on a note."""
    __tablename__ = "note_user_permissions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    can_edit = Column(Boolean, default=False, nullable=False)

    note = relationship("DBNote", back_populates="user_permissions")
    user = relationship("DBUser")

    # A user is granted at most once per note
    __table_args__ = (
        UniqueConstraint("note_id", "user_id", name="unique_note_user_permission"),
    )


class DBNoteGroupPermission(Base):
    """Database model for a per-group grant on a note."""
    __tablename__ = "note_group_permissions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # NULL when the requested group could not be resolved
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=True)
    can_edit = Column(Boolean, default=False, nullable=False)

    note = relationship("DBNote", back_populates="group_permissions")
    group = relationship("DBGroup")

    __table_args__ = (
        UniqueConstraint("note_id", "group_id", name="unique_note_group_permission"),
    )


class DBHistoryEntry(Base):
    """Database model for a note appearing in a user's history."""
    __tablename__ = "history_entries"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pinned = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, nullable=False)

    note = relationship("DBNote", back_populates="history_entries")
    user = relationship("DBUser")

    __table_args__ = (
        UniqueConstraint("note_id", "user_id", name="unique_history_entry"),
    )


class DBAuthorColor(Base):
    """Database model for the color a contributor is shown in on a note."""
    __tablename__ = "author_colors"
    note_id = Column(
        String(36), ForeignKey("notes.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    color = Column(Integer, nullable=False)

    note = relationship("DBNote", back_populates="author_colors")
    user = relationship("DBUser")


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create the engine and all tables.

    Applies SQLite settings for crash resilience and referential integrity:
    - WAL (Write-Ahead Logging) mode for atomic writes
    - NORMAL synchronous mode
    - foreign key enforcement, which SQLite leaves off by default
    - QueuePool with pre-ping to detect stale connections

    Args:
        db_url: SQLAlchemy URL. Defaults to the configured database path.

    Returns:
        The configured engine.
    """
    engine = create_engine(
        db_url or config.get_db_url(),
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        pool_pre_ping=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Optional[Engine] = None):
    """Get a session factory for the database."""
    if engine is None:
        engine = init_db()
    return sessionmaker(bind=engine, expire_on_commit=False)
