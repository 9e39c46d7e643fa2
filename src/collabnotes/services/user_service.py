"""Identity directory and user projection."""

import logging
from typing import Optional

from collabnotes.exceptions import ErrorCode, NotInDBError
from collabnotes.models.dto import UserDto
from collabnotes.models.schema import Group, User
from collabnotes.storage.user_repository import GroupRepository, UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Resolves user and group names to identities."""

    def __init__(
        self,
        user_repository: Optional[UserRepository] = None,
        group_repository: Optional[GroupRepository] = None,
    ):
        self.user_repository = (
            user_repository if user_repository is not None else UserRepository()
        )
        self.group_repository = (
            group_repository
            if group_repository is not None
            else GroupRepository(engine=self.user_repository.engine)
        )

    def create_user(
        self,
        user_name: str,
        display_name: str = "",
        email: Optional[str] = None,
        photo: Optional[str] = None,
    ) -> User:
        """Register a new user."""
        return self.user_repository.create(
            User(
                user_name=user_name,
                display_name=display_name or user_name,
                email=email,
                photo=photo,
            )
        )

    def create_group(
        self, name: str, display_name: str = "", special: bool = False
    ) -> Group:
        """Register a new group."""
        return self.group_repository.create(
            Group(name=name, display_name=display_name or name, special=special)
        )

    def get_user_by_username(self, user_name: str) -> User:
        """Get a user by login name.

        Raises:
            NotInDBError: If no such user exists.
        """
        user = self.user_repository.get_by_username(user_name)
        if user is None:
            logger.debug(f"Could not find user '{user_name}'")
            raise NotInDBError(
                f"User with username '{user_name}' not found",
                lookup=user_name,
                code=ErrorCode.USER_NOT_FOUND,
            )
        return user

    def get_group_by_name(self, name: str) -> Optional[Group]:
        """Get a group by name, or None if it does not exist."""
        return self.group_repository.get_by_name(name)

    @staticmethod
    def to_user_dto(user: Optional[User]) -> Optional[UserDto]:
        """Project a user for external consumers."""
        if user is None:
            return None
        return UserDto(
            user_name=user.user_name,
            display_name=user.display_name,
            photo=user.photo,
            email=user.email,
        )
