"""In-memory stand-ins for the identity directory.

FakeDirectory answers the same two lookups PermissionService makes on
UserService, without a database. It counts lookups so tests can assert
which grantees had to be resolved.
"""
from typing import Dict, List, Optional

from collabnotes.exceptions import ErrorCode, NotInDBError
from collabnotes.models.schema import Group, User


class FakeDirectory:
    """Deterministic user/group directory for reconciler tests."""

    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self.groups: Dict[str, Group] = {}
        self.user_lookups: List[str] = []
        self.group_lookups: List[str] = []

    def add_user(self, user_name: str) -> User:
        user = User(id=len(self.users) + 1, user_name=user_name, display_name=user_name)
        self.users[user_name] = user
        return user

    def add_group(self, name: str) -> Group:
        group = Group(id=len(self.groups) + 1, name=name, display_name=name)
        self.groups[name] = group
        return group

    def get_user_by_username(self, user_name: str) -> User:
        self.user_lookups.append(user_name)
        try:
            return self.users[user_name]
        except KeyError:
            raise NotInDBError(
                f"User with username '{user_name}' not found",
                lookup=user_name,
                code=ErrorCode.USER_NOT_FOUND,
            ) from None

    def get_group_by_name(self, name: str) -> Optional[Group]:
        self.group_lookups.append(name)
        return self.groups.get(name)
