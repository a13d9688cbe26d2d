"""Inbound ports - the contract offered to the benchmark harness."""

from docstore_adapter.ports.inbound.db_binding import DB, DBError, FieldValues, to_string_map

__all__ = [
    "DB",
    "DBError",
    "FieldValues",
    "to_string_map",
]
