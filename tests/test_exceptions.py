"""Tests for the exception hierarchy."""
import pytest

from collabnotes.exceptions import (AlreadyInDBError, ClientError,
                                    CollabNotesError, ConfigurationError,
                                    ErrorCode, NotInDBError,
                                    PermissionDeniedError,
                                    PermissionsUpdateInconsistentError,
                                    StorageError, TokenNotValidError,
                                    TooManyTokensError)


class TestCollabNotesError:
    def test_to_dict(self):
        error = NotInDBError("Note with id/alias 'x' not found.", lookup="x",
                             code=ErrorCode.NOTE_NOT_FOUND)
        assert error.to_dict() == {
            "error": "NotInDBError",
            "code": 1002,
            "code_name": "NOTE_NOT_FOUND",
            "message": "Note with id/alias 'x' not found.",
            "details": {"lookup": "x"},
        }

    def test_str_includes_code_and_details(self):
        error = NotInDBError("missing", lookup="abc")
        assert str(error) == "[NOT_IN_DB] missing (lookup=abc)"

    def test_str_without_details(self):
        assert str(ClientError("bad request")) == "[CLIENT_ERROR] bad request"

    @pytest.mark.parametrize(
        "error",
        [
            NotInDBError("x"),
            AlreadyInDBError("x"),
            PermissionsUpdateInconsistentError("x", duplicate_users=["a"]),
            ClientError("x"),
            PermissionDeniedError("x", user_name="bob"),
            TokenNotValidError("x"),
            TooManyTokensError("x"),
            StorageError("x"),
            ConfigurationError("x"),
        ],
    )
    def test_all_errors_share_the_base(self, error):
        assert isinstance(error, CollabNotesError)


class TestPermissionsUpdateInconsistentError:
    def test_duplicates_are_reported(self):
        error = PermissionsUpdateInconsistentError(
            "dup", duplicate_users=["zed", "amy"], duplicate_groups=["ops"]
        )
        assert error.code == ErrorCode.PERMISSIONS_UPDATE_INCONSISTENT
        assert error.details["duplicate_users"] == ["amy", "zed"]
        assert error.details["duplicate_groups"] == ["ops"]
        assert error.duplicate_users == ["zed", "amy"]

    def test_empty_duplicate_lists_are_omitted(self):
        error = PermissionsUpdateInconsistentError("dup", duplicate_groups=["ops"])
        assert "duplicate_users" not in error.details
        assert error.duplicate_users == []


class TestWrappedErrors:
    def test_original_error_is_kept(self):
        cause = ValueError("disk full")
        error = StorageError("save failed", operation="save",
                             code=ErrorCode.STORAGE_WRITE_FAILED, original_error=cause)
        assert error.original_error is cause
        assert error.details == {"operation": "save", "original_error": "disk full"}

    def test_long_lookup_is_truncated(self):
        error = NotInDBError("missing", lookup="x" * 500)
        assert len(error.details["lookup"]) == 100
        assert len(error.lookup) == 500

    def test_already_in_db_value(self):
        error = AlreadyInDBError("taken", value="my-alias",
                                 code=ErrorCode.ALIAS_ALREADY_TAKEN)
        assert error.code.value == 2002
        assert error.details == {"value": "my-alias"}
