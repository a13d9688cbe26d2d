"""Benchmark binding port.

This inbound port is the contract a benchmark harness drives: one binding
instance per worker thread, ``init`` before the first operation, ``cleanup``
after the last, and five operations that each report a Status.

Record values arrive either as ``str`` or as raw ``bytes`` (decoded as
UTF-8); results are always plain strings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

from docstore_adapter.domain.value_objects import Status


FieldValues = Mapping[str, str | bytes]


class DBError(Exception):
    """Raised by ``init``/``cleanup`` when a worker cannot proceed at all."""


def to_string_map(values: FieldValues) -> dict[str, str]:
    """Normalize field values to strings."""
    result: dict[str, str] = {}
    for name, value in values.items():
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("utf-8")
        result[name] = value
    return result


class DB(ABC):
    """Base class for a benchmark database binding.

    Thread Safety:
        Each worker thread owns its own instance. Anything shared between
        instances (connection pools, storage) must be thread-safe.
    """

    def __init__(self, properties: Mapping[str, str] | None = None) -> None:
        self._properties: Mapping[str, str] = dict(properties or {})

    @property
    def properties(self) -> Mapping[str, str]:
        """The benchmark property map handed to this worker."""
        return self._properties

    def set_properties(self, properties: Mapping[str, str]) -> None:
        """Replace the property map; must be called before ``init``."""
        self._properties = properties

    def init(self) -> None:
        """Initialize any state for this worker. Called once per instance."""

    def cleanup(self) -> None:
        """Release any state for this worker. Called once per instance."""

    @abstractmethod
    def insert(self, table: str, key: str, values: FieldValues) -> Status:
        """Insert a record with the given field/value pairs under key."""
        ...

    @abstractmethod
    def read(
        self,
        table: str,
        key: str,
        fields: set[str] | None,
        result: dict[str, str],
    ) -> Status:
        """Read a record into result.

        Args:
            table: The name of the table.
            key: The record key of the record to read.
            fields: The fields to read, or None for all of them.
            result: Receives the field/value pairs.
        """
        ...

    @abstractmethod
    def update(self, table: str, key: str, values: FieldValues) -> Status:
        """Overwrite the given fields of the record stored under key."""
        ...

    @abstractmethod
    def delete(self, table: str, key: str) -> Status:
        """Delete the record stored under key."""
        ...

    @abstractmethod
    def scan(
        self,
        table: str,
        start_key: str,
        record_count: int,
        fields: set[str] | None,
        result: list[dict[str, str]],
    ) -> Status:
        """Read up to record_count records in key order starting at start_key.

        Args:
            table: The name of the table.
            start_key: The record key of the first record to read.
            record_count: The number of records to read.
            fields: The fields to read.
            result: Receives one field/value mapping per record.
        """
        ...
