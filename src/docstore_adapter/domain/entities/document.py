"""Document entity: a dynamically shaped record tagged with a schema class.

A document is the unit the key dictionary points at. Its field set is not
fixed by the schema; the class only marks which logical table the document
belongs to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from docstore_adapter.domain.value_objects import RecordId


@dataclass
class Document:
    """A document with a class name, string fields and storage identity.

    ``rid`` is ``None`` until the document has been saved. ``version``
    increments on every save so concurrent writers can be told apart in
    diagnostics.

    Attributes:
        class_name: Schema class the document belongs to.
        fields: Field name to value mapping.
        rid: Record identifier assigned by storage on first save.
        version: Number of times this document has been saved.
    """

    class_name: str
    fields: dict[str, str] = field(default_factory=dict)
    rid: RecordId | None = None
    version: int = 0

    @property
    def is_persistent(self) -> bool:
        """True once storage has assigned a record identifier."""
        return self.rid is not None

    def get_field(self, name: str) -> str | None:
        """Return a field value, or None if the field is not set."""
        return self.fields.get(name)

    def set_field(self, name: str, value: str) -> Document:
        """Set a single field; returns self for chaining."""
        self.fields[name] = value
        return self

    def update_fields(self, values: dict[str, str]) -> Document:
        """Overwrite the given fields, leaving all others untouched."""
        self.fields.update(values)
        return self

    def field_names(self) -> list[str]:
        """Return the names of all set fields."""
        return list(self.fields)

    def project(self, names: Iterable[str] | None = None) -> dict[str, str]:
        """Copy the requested fields (all when names is None).

        Requested fields the document does not carry are skipped.
        """
        if names is None:
            return dict(self.fields)
        return {name: self.fields[name] for name in names if name in self.fields}

    def copy(self) -> Document:
        """Return a detached copy sharing no mutable state."""
        return Document(
            class_name=self.class_name,
            fields=dict(self.fields),
            rid=self.rid,
            version=self.version,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage snapshots."""
        return {
            "class": self.class_name,
            "fields": dict(self.fields),
            "rid": str(self.rid) if self.rid is not None else None,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        """Deserialize from a storage snapshot entry."""
        rid = data.get("rid")
        return cls(
            class_name=data["class"],
            fields=dict(data.get("fields", {})),
            rid=RecordId.parse(rid) if rid else None,
            version=int(data.get("version", 0)),
        )
