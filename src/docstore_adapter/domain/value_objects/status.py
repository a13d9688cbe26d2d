"""Operation outcomes as seen by the benchmark harness, and their causes."""

from __future__ import annotations

from enum import Enum


class Status(Enum):
    """Result of a binding operation.

    The harness only distinguishes success from failure; the specific cause
    is reported through logs and metrics (see ErrorKind).
    """

    OK = "OK"
    ERROR = "ERROR"

    @property
    def is_ok(self) -> bool:
        return self is Status.OK


class ErrorKind(Enum):
    """Internal classification of a failed operation."""

    POOL_UNINITIALIZED = "pool_uninitialized"
    CONNECTION_FAILURE = "connection_failure"
    NOT_FOUND = "not_found"
    INVALID_REQUEST = "invalid_request"
    ENGINE_FAULT = "engine_fault"
