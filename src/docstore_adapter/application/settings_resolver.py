"""Connection settings resolution from the benchmark property map.

Recognized properties:
    url                 database URL (default: embedded plocal under temp dir)
    database-user       user name (default: admin)
    database-password   password (default: admin)
    fresh-database      drop and recreate the database on init (default: false)
"""

from __future__ import annotations

import os
import sys
import tempfile
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field

URL_PROPERTY = "url"
USER_PROPERTY = "database-user"
PASSWORD_PROPERTY = "database-password"
FRESH_DATABASE_PROPERTY = "fresh-database"

DEFAULT_USER = "admin"
DEFAULT_PASSWORD = "admin"
DEFAULT_DATABASE_NAME = "ycsb"


class ConnectionSettings(BaseModel):
    """Where the database lives and how to log into it."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(min_length=1, description="Database URL, e.g. plocal:/tmp/databases/ycsb")
    user: str = Field(default=DEFAULT_USER, description="Database user")
    password: str = Field(default=DEFAULT_PASSWORD, repr=False, description="Database password")
    fresh_database: bool = Field(
        default=False, description="Drop an existing database before bootstrap"
    )


def _platform_temp_dir() -> str | None:
    try:
        return tempfile.gettempdir()
    except FileNotFoundError:
        return None


def default_url() -> str:
    """Embedded database path under the platform temp directory."""
    temp_dir = _platform_temp_dir()
    if temp_dir is not None:
        return "plocal:" + os.path.join(temp_dir, "databases", DEFAULT_DATABASE_NAME)
    if sys.platform.startswith("win"):
        return f"plocal:C:/temp/databases/{DEFAULT_DATABASE_NAME}"
    return f"plocal:/temp/databases/{DEFAULT_DATABASE_NAME}"


def parse_bool(value: str | None, default: bool = False) -> bool:
    """Only ``true`` (any case) is true; anything else present is false."""
    if value is None:
        return default
    return value.strip().lower() == "true"


def resolve_connection_settings(properties: Mapping[str, str]) -> ConnectionSettings:
    """Derive connection settings from the benchmark property map.

    Raises:
        TypeError: If properties is not a mapping.
    """
    if not isinstance(properties, Mapping):
        raise TypeError(f"Expected a property mapping, got {type(properties).__name__}")

    url = properties.get(URL_PROPERTY) or default_url()
    return ConnectionSettings(
        url=url,
        user=properties.get(USER_PROPERTY, DEFAULT_USER),
        password=properties.get(PASSWORD_PROPERTY, DEFAULT_PASSWORD),
        fresh_database=parse_bool(properties.get(FRESH_DATABASE_PROPERTY)),
    )
