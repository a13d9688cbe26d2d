"""Unit tests for connection settings resolution."""

from __future__ import annotations

import os
import tempfile

import pytest
from pydantic import ValidationError

from docstore_adapter.application.settings_resolver import (
    ConnectionSettings,
    default_url,
    parse_bool,
    resolve_connection_settings,
)


@pytest.mark.unit
class TestResolveConnectionSettings:
    """Tests for resolve_connection_settings."""

    def test_defaults(self) -> None:
        settings = resolve_connection_settings({})

        assert settings.url == default_url()
        assert settings.user == "admin"
        assert settings.password == "admin"
        assert settings.fresh_database is False

    def test_default_url_under_temp_dir(self) -> None:
        expected = "plocal:" + os.path.join(tempfile.gettempdir(), "databases", "ycsb")

        assert default_url() == expected

    def test_explicit_properties(self) -> None:
        settings = resolve_connection_settings(
            {
                "url": "memory:bench",
                "database-user": "reader",
                "database-password": "secret",
                "fresh-database": "TRUE",
            }
        )

        assert settings.url == "memory:bench"
        assert settings.user == "reader"
        assert settings.password == "secret"
        assert settings.fresh_database is True

    def test_empty_url_falls_back_to_default(self) -> None:
        assert resolve_connection_settings({"url": ""}).url == default_url()

    def test_password_not_in_repr(self) -> None:
        settings = resolve_connection_settings({"database-password": "hunter2"})

        assert "hunter2" not in repr(settings)

    def test_not_a_mapping(self) -> None:
        with pytest.raises(TypeError):
            resolve_connection_settings(["url"])  # type: ignore[arg-type]

    def test_settings_are_frozen(self) -> None:
        settings = ConnectionSettings(url="memory:x")

        with pytest.raises(ValidationError):
            settings.url = "memory:y"  # type: ignore[misc]


@pytest.mark.unit
class TestParseBool:
    """Tests for parse_bool."""

    @pytest.mark.parametrize("value", ["true", "True", "TRUE", " true "])
    def test_true(self, value: str) -> None:
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["false", "yes", "1", "on", ""])
    def test_anything_else_is_false(self, value: str) -> None:
        assert parse_bool(value) is False

    def test_missing_uses_default(self) -> None:
        assert parse_bool(None) is False
        assert parse_bool(None, default=True) is True
