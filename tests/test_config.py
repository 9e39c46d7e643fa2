"""Tests for configuration loading and validation."""
import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from collabnotes.config import CollabNotesConfig, load_config
from collabnotes.exceptions import ConfigurationError, ErrorCode


class TestConfigFromEnvironment:
    """Values are read from COLLABNOTES_* variables at construction."""

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("COLLABNOTES_BASE_DIR", str(tmp_path))
        monkeypatch.setenv("COLLABNOTES_DATABASE_PATH", "db/notes.db")
        monkeypatch.setenv("COLLABNOTES_LOG_LEVEL", "debug")
        monkeypatch.setenv("COLLABNOTES_MAX_ALIAS_LENGTH", "32")

        cfg = CollabNotesConfig()
        assert cfg.base_dir == tmp_path
        assert cfg.database_path == Path("db/notes.db")
        assert cfg.log_level == "DEBUG"
        assert cfg.max_alias_length == 32

    def test_defaults(self, monkeypatch):
        for key in ("COLLABNOTES_DATABASE_PATH", "COLLABNOTES_LOG_LEVEL",
                    "COLLABNOTES_MAX_ALIAS_LENGTH"):
            monkeypatch.delenv(key, raising=False)
        cfg = CollabNotesConfig()
        assert cfg.database_path == Path("data/db/collabnotes.db")
        assert cfg.log_level == "INFO"
        assert cfg.max_alias_length == 255


class TestConfigValidation:
    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            CollabNotesConfig(log_level="LOUD")

    def test_log_level_is_normalized(self):
        cfg = CollabNotesConfig(log_level=" warning ")
        assert cfg.log_level == "WARNING"
        assert cfg.get_log_level() == logging.WARNING

    def test_max_alias_length_must_be_positive(self):
        with pytest.raises(ValidationError):
            CollabNotesConfig(max_alias_length=0)

    def test_assignment_is_validated(self):
        cfg = CollabNotesConfig()
        with pytest.raises(ValidationError):
            cfg.log_level = "verbose"


class TestConfigPaths:
    def test_relative_path_resolves_against_base_dir(self, tmp_path):
        cfg = CollabNotesConfig(base_dir=tmp_path)
        assert cfg.get_absolute_path(Path("a/b.db")) == tmp_path / "a" / "b.db"

    def test_absolute_path_is_unchanged(self, tmp_path):
        cfg = CollabNotesConfig(base_dir=Path("/elsewhere"))
        assert cfg.get_absolute_path(tmp_path) == tmp_path

    def test_db_url_creates_parent_directory(self, tmp_path):
        cfg = CollabNotesConfig(base_dir=tmp_path, database_path=Path("nested/dir/x.db"))
        url = cfg.get_db_url()
        assert url == f"sqlite:///{tmp_path / 'nested' / 'dir' / 'x.db'}"
        assert (tmp_path / "nested" / "dir").is_dir()


class TestLoadConfig:
    """Invalid environment values are rejected when the config is loaded."""

    def test_lowercase_level_from_environment_is_usable(self, monkeypatch):
        monkeypatch.setenv("COLLABNOTES_LOG_LEVEL", "debug")
        cfg = load_config()
        assert cfg.log_level == "DEBUG"
        assert cfg.get_log_level() == logging.DEBUG

    def test_unknown_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("COLLABNOTES_LOG_LEVEL", "LOUD")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config()
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID
        assert exc_info.value.config_key == "log_level"

    def test_zero_alias_length_from_environment(self, monkeypatch):
        monkeypatch.setenv("COLLABNOTES_MAX_ALIAS_LENGTH", "0")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_non_numeric_alias_length_from_environment(self, monkeypatch):
        monkeypatch.setenv("COLLABNOTES_MAX_ALIAS_LENGTH", "many")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config()
        assert exc_info.value.config_key == "max_alias_length"
