"""Custom exceptions for collabnotes.

Provides a structured exception hierarchy with error codes and
machine-readable error information for better error handling.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Lookup errors (1xxx)
    NOT_IN_DB = 1001
    NOTE_NOT_FOUND = 1002
    REVISION_NOT_FOUND = 1003
    USER_NOT_FOUND = 1004
    GROUP_NOT_FOUND = 1005

    # Uniqueness errors (2xxx)
    ALREADY_IN_DB = 2001
    ALIAS_ALREADY_TAKEN = 2002
    USER_ALREADY_EXISTS = 2003
    GROUP_ALREADY_EXISTS = 2004

    # Permission errors (3xxx)
    PERMISSIONS_UPDATE_INCONSISTENT = 3001
    PERMISSION_DENIED = 3002

    # Client / token errors (4xxx)
    CLIENT_ERROR = 4001
    TOKEN_NOT_VALID = 4002
    TOO_MANY_TOKENS = 4003

    # Storage errors (5xxx)
    STORAGE_READ_FAILED = 5001
    STORAGE_WRITE_FAILED = 5002
    STORAGE_DELETE_FAILED = 5003

    # Configuration errors (6xxx)
    CONFIG_INVALID = 6001

    # Validation errors (7xxx)
    VALIDATION_FAILED = 7001


class CollabNotesError(Exception):
    """Base exception for all collabnotes errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class NotInDBError(CollabNotesError):
    """Raised when a requested note, revision, user or group does not exist."""

    def __init__(
        self,
        message: str,
        lookup: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOT_IN_DB
    ):
        details = {}
        if lookup is not None:
            details["lookup"] = lookup[:100]

        super().__init__(message, code=code, details=details)
        self.lookup = lookup


class AlreadyInDBError(CollabNotesError):
    """Raised when a unique value (alias, user name, group name) is taken."""

    def __init__(
        self,
        message: str,
        value: Optional[str] = None,
        code: ErrorCode = ErrorCode.ALREADY_IN_DB,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if value is not None:
            details["value"] = value[:100]
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.value = value
        self.original_error = original_error


class PermissionsUpdateInconsistentError(CollabNotesError):
    """Raised when a permission update names the same user or group twice."""

    def __init__(
        self,
        message: str,
        duplicate_users: Optional[list] = None,
        duplicate_groups: Optional[list] = None
    ):
        details = {}
        if duplicate_users:
            details["duplicate_users"] = sorted(duplicate_users)[:10]
        if duplicate_groups:
            details["duplicate_groups"] = sorted(duplicate_groups)[:10]

        super().__init__(
            message,
            code=ErrorCode.PERMISSIONS_UPDATE_INCONSISTENT,
            details=details
        )
        self.duplicate_users = list(duplicate_users or [])
        self.duplicate_groups = list(duplicate_groups or [])


class ClientError(CollabNotesError):
    """Raised for malformed requests coming from a client."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.CLIENT_ERROR):
        super().__init__(message, code=code)


class PermissionDeniedError(CollabNotesError):
    """Raised when a user is not allowed to perform an operation."""

    def __init__(self, message: str, user_name: Optional[str] = None):
        details = {}
        if user_name:
            details["user_name"] = user_name
        super().__init__(message, code=ErrorCode.PERMISSION_DENIED, details=details)
        self.user_name = user_name


class TokenNotValidError(CollabNotesError):
    """Raised when an access token is unknown, expired or malformed."""

    def __init__(self, message: str):
        super().__init__(message, code=ErrorCode.TOKEN_NOT_VALID)


class TooManyTokensError(CollabNotesError):
    """Raised when a user already holds the maximum number of tokens."""

    def __init__(self, message: str):
        super().__init__(message, code=ErrorCode.TOO_MANY_TOKENS)


class StorageError(CollabNotesError):
    """Raised for storage/persistence errors."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]

        super().__init__(message, code=code, details=details)
        self.operation = operation
        self.original_error = original_error


class ConfigurationError(CollabNotesError):
    """Raised for configuration-related errors."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, code=code, details=details)
        self.config_key = config_key
