"""Repositories for users and groups (the identity directory)."""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from collabnotes.exceptions import AlreadyInDBError, ErrorCode
from collabnotes.models.db_models import DBGroup, DBUser, get_session_factory, init_db
from collabnotes.models.schema import Group, User
from collabnotes.storage.base import Repository

logger = logging.getLogger(__name__)


def db_user_to_model(db_user: DBUser) -> User:
    """Convert a DBUser row to a fresh domain User."""
    return User(
        id=db_user.id,
        user_name=db_user.user_name,
        display_name=db_user.display_name or "",
        photo=db_user.photo,
        email=db_user.email,
    )


def db_group_to_model(db_group: DBGroup) -> Group:
    """Convert a DBGroup row to a fresh domain Group."""
    return Group(
        id=db_group.id,
        name=db_group.name,
        display_name=db_group.display_name or "",
        special=bool(db_group.special),
    )


class UserRepository(Repository[User]):
    """Repository for users."""

    def __init__(self, engine: Optional[Engine] = None):
        """Initialize the repository.

        Args:
            engine: SQLAlchemy engine. If None, uses default from config.
        """
        self.engine = engine or init_db()
        self.session_factory = get_session_factory(self.engine)

    def create(self, user: User) -> User:
        """Create a new user.

        Raises:
            AlreadyInDBError: If the user name is taken.
        """
        with self.session_factory() as session:
            db_user = DBUser(
                user_name=user.user_name,
                display_name=user.display_name,
                photo=user.photo,
                email=user.email,
            )
            session.add(db_user)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise AlreadyInDBError(
                    f"User '{user.user_name}' already exists",
                    value=user.user_name,
                    code=ErrorCode.USER_ALREADY_EXISTS,
                    original_error=e,
                ) from e
            logger.info(f"Created user: {user.user_name}")
            return db_user_to_model(db_user)

    def get(self, id: int) -> Optional[User]:
        with self.session_factory() as session:
            db_user = session.get(DBUser, id)
            if not db_user:
                return None
            return db_user_to_model(db_user)

    def get_by_username(self, user_name: str) -> Optional[User]:
        """Get a user by login name."""
        with self.session_factory() as session:
            db_user = session.scalar(
                select(DBUser).where(DBUser.user_name == user_name)
            )
            if not db_user:
                return None
            return db_user_to_model(db_user)

    def get_all(self) -> List[User]:
        with self.session_factory() as session:
            db_users = session.scalars(select(DBUser).order_by(DBUser.id)).all()
            return [db_user_to_model(u) for u in db_users]


class GroupRepository(Repository[Group]):
    """Repository for groups."""

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or init_db()
        self.session_factory = get_session_factory(self.engine)

    def create(self, group: Group) -> Group:
        """Create a new group.

        Raises:
            AlreadyInDBError: If the group name is taken.
        """
        with self.session_factory() as session:
            db_group = DBGroup(
                name=group.name,
                display_name=group.display_name,
                special=group.special,
            )
            session.add(db_group)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise AlreadyInDBError(
                    f"Group '{group.name}' already exists",
                    value=group.name,
                    code=ErrorCode.GROUP_ALREADY_EXISTS,
                    original_error=e,
                ) from e
            logger.info(f"Created group: {group.name}")
            return db_group_to_model(db_group)

    def get(self, id: int) -> Optional[Group]:
        with self.session_factory() as session:
            db_group = session.get(DBGroup, id)
            if not db_group:
                return None
            return db_group_to_model(db_group)

    def get_by_name(self, name: str) -> Optional[Group]:
        """Get a group by its unique name."""
        with self.session_factory() as session:
            db_group = session.scalar(select(DBGroup).where(DBGroup.name == name))
            if not db_group:
                return None
            return db_group_to_model(db_group)

    def get_all(self) -> List[Group]:
        with self.session_factory() as session:
            db_groups = session.scalars(select(DBGroup).order_by(DBGroup.id)).all()
            return [db_group_to_model(g) for g in db_groups]
