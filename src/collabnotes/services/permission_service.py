"""Reconciliation of desired permission state against a note's grants."""

import logging
from collections import Counter
from typing import Optional

from collabnotes.exceptions import PermissionsUpdateInconsistentError
from collabnotes.models.dto import NotePermissionsUpdate
from collabnotes.models.schema import (Note, NoteGroupPermission,
                                       NoteUserPermission)
from collabnotes.services.user_service import UserService

logger = logging.getLogger(__name__)


class PermissionService:
    """Computes the grant set of a note from a desired-state update.

    The rules are:

    - the same user or group may not appear twice in one update;
    - a grantee already present keeps its grant record, only ``can_edit``
      changes;
    - an unknown grantee is resolved through the directory and appended;
    - grantees missing from a non-empty list are left as they are;
    - an empty list removes every grant of that kind.
    """

    def __init__(self, directory: Optional[UserService] = None):
        """Initialize the service.

        Args:
            directory: Resolves user and group names. Created with defaults if None.
        """
        self.directory = directory if directory is not None else UserService()

    @staticmethod
    def validate(desired: NotePermissionsUpdate) -> None:
        """Reject updates that name a user or group more than once.

        Raises:
            PermissionsUpdateInconsistentError: On any repeated grantee.
        """
        user_counts = Counter(p.username for p in desired.shared_to_users)
        group_counts = Counter(p.groupname for p in desired.shared_to_groups)
        duplicate_users = [name for name, n in user_counts.items() if n > 1]
        duplicate_groups = [name for name, n in group_counts.items() if n > 1]
        if duplicate_users or duplicate_groups:
            raise PermissionsUpdateInconsistentError(
                "The PermissionUpdate you requested specifies the same user "
                "or group multiple times.",
                duplicate_users=duplicate_users,
                duplicate_groups=duplicate_groups,
            )

    def reconcile(self, note: Note, desired: NotePermissionsUpdate) -> Note:
        """Apply ``desired`` to the grants of ``note``.

        Works on a copy; ``note`` itself is never modified, so a failed
        validation or lookup leaves the caller's object untouched.

        Args:
            note: The note as currently stored.
            desired: Desired user and group grants.

        Returns:
            A new Note carrying the reconciled grants (not yet persisted).

        Raises:
            PermissionsUpdateInconsistentError: If a grantee is repeated.
            NotInDBError: If a newly granted user does not exist.
        """
        self.validate(desired)
        updated = note.model_copy(deep=True)

        for desired_user in desired.shared_to_users:
            permission = updated.find_user_permission(desired_user.username)
            if permission is not None:
                permission.can_edit = desired_user.can_edit
                continue
            user = self.directory.get_user_by_username(desired_user.username)
            updated.user_permissions.append(
                NoteUserPermission(user=user, can_edit=desired_user.can_edit)
            )

        for desired_group in desired.shared_to_groups:
            permission = updated.find_group_permission(desired_group.groupname)
            if permission is not None:
                permission.can_edit = desired_group.can_edit
                continue
            group = self.directory.get_group_by_name(desired_group.groupname)
            if group is None:
                logger.warning(
                    f"Group '{desired_group.groupname}' not found, "
                    f"granting note {note.id} to an unresolved group"
                )
            updated.group_permissions.append(
                NoteGroupPermission(group=group, can_edit=desired_group.can_edit)
            )

        if not desired.shared_to_users:
            updated.user_permissions = []
        if not desired.shared_to_groups:
            updated.group_permissions = []

        return updated
