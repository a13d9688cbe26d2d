"""Unit tests for identifier and status value objects."""

from __future__ import annotations

import pytest

from docstore_adapter.domain.value_objects import (
    INVALID_CLUSTER_ID,
    ClusterId,
    ErrorKind,
    RecordId,
    Status,
)


@pytest.mark.unit
class TestRecordId:
    """Tests for RecordId."""

    def test_string_forms(self) -> None:
        rid = RecordId(ClusterId(9), 3)

        assert str(rid) == "#9:3"
        assert repr(rid) == "RID(9:3)"

    def test_parse(self) -> None:
        assert RecordId.parse("#9:3") == RecordId(ClusterId(9), 3)
        assert RecordId.parse("#-1:0").cluster_id == INVALID_CLUSTER_ID

    @pytest.mark.parametrize("text", ["", "9:3", "#9", "#a:b", "#9:-3"])
    def test_parse_rejects_malformed(self, text: str) -> None:
        with pytest.raises(ValueError):
            RecordId.parse(text)

    def test_negative_position_rejected(self) -> None:
        with pytest.raises(ValueError):
            RecordId(ClusterId(0), -1)

    def test_hashable_and_immutable(self) -> None:
        rid = RecordId(ClusterId(1), 2)

        assert {rid: "x"}[RecordId(ClusterId(1), 2)] == "x"
        with pytest.raises(AttributeError):
            rid.position = 5  # type: ignore[misc]


@pytest.mark.unit
class TestStatus:
    """Tests for Status and ErrorKind."""

    def test_is_ok(self) -> None:
        assert Status.OK.is_ok
        assert not Status.ERROR.is_ok

    def test_error_kinds_are_distinct(self) -> None:
        assert len({kind.value for kind in ErrorKind}) == len(ErrorKind)
