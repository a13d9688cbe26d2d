"""Unit tests for the B+Tree key dictionary."""

from __future__ import annotations

import random
import threading

import pytest

from docstore_adapter.domain.services import BTreeDictionary
from docstore_adapter.domain.value_objects import ClusterId, RecordId


def rid(position: int) -> RecordId:
    return RecordId(ClusterId(1), position)


@pytest.mark.unit
class TestBTreeDictionary:
    """Tests for BTreeDictionary."""

    @pytest.fixture
    def tree(self) -> BTreeDictionary:
        """Small fanout so a few dozen keys force several levels."""
        return BTreeDictionary(name="test_dict", max_keys=4)

    def test_empty_tree(self, tree: BTreeDictionary) -> None:
        assert tree.size == 0
        assert tree.height == 1
        assert tree.search("missing") is None
        assert list(tree.scan_all()) == []

    def test_fanout_lower_bound(self) -> None:
        with pytest.raises(ValueError):
            BTreeDictionary(max_keys=2)

    def test_put_and_search(self, tree: BTreeDictionary) -> None:
        assert tree.put("user1", rid(1)) is True
        assert tree.search("user1") == rid(1)
        assert "user1" in tree
        assert "user2" not in tree

    def test_put_replaces_existing(self, tree: BTreeDictionary) -> None:
        tree.put("user1", rid(1))

        assert tree.put("user1", rid(2)) is False
        assert tree.search("user1") == rid(2)
        assert len(tree) == 1

    def test_splits_keep_every_key(self, tree: BTreeDictionary) -> None:
        keys = [f"user{i:03d}" for i in range(200)]
        shuffled = keys[:]
        random.Random(7).shuffle(shuffled)

        for i, key in enumerate(shuffled):
            tree.put(key, rid(i))

        assert tree.size == 200
        assert tree.height > 2
        assert [k for k, _ in tree.scan_all()] == keys
        for i, key in enumerate(shuffled):
            assert tree.search(key) == rid(i)

    def test_remove(self, tree: BTreeDictionary) -> None:
        for i in range(20):
            tree.put(f"k{i:02d}", rid(i))

        assert tree.remove("k05") == rid(5)
        assert tree.remove("k05") is None
        assert tree.search("k05") is None
        assert tree.size == 19

    def test_remove_everything_then_scan(self, tree: BTreeDictionary) -> None:
        for i in range(30):
            tree.put(f"k{i:02d}", rid(i))
        for i in range(30):
            tree.remove(f"k{i:02d}")

        assert tree.size == 0
        assert list(tree.scan_all()) == []

    def test_range_scan_inclusive_start(self, tree: BTreeDictionary) -> None:
        for i in range(10):
            tree.put(f"user{i}", rid(i))

        keys = [k for k, _ in tree.range_scan(low="user5")]

        assert keys == ["user5", "user6", "user7", "user8", "user9"]

    def test_range_scan_exclusive_start(self, tree: BTreeDictionary) -> None:
        for i in range(10):
            tree.put(f"user{i}", rid(i))

        keys = [k for k, _ in tree.range_scan(low="user5", include_low=False)]

        assert keys == ["user6", "user7", "user8", "user9"]

    def test_range_scan_from_absent_key(self, tree: BTreeDictionary) -> None:
        for key in ["a", "c", "e", "g"]:
            tree.put(key, rid(ord(key)))

        assert [k for k, _ in tree.range_scan(low="d")] == ["e", "g"]
        assert [k for k, _ in tree.range_scan(low="z")] == []

    def test_range_scan_bounded(self, tree: BTreeDictionary) -> None:
        for i in range(10):
            tree.put(f"k{i}", rid(i))

        assert [k for k, _ in tree.range_scan("k2", "k5")] == ["k2", "k3", "k4", "k5"]
        assert [k for k, _ in tree.range_scan("k2", "k5", include_high=False)] == [
            "k2",
            "k3",
            "k4",
        ]

    def test_closing_scan_releases_latch(self, tree: BTreeDictionary) -> None:
        for i in range(10):
            tree.put(f"k{i}", rid(i))

        scan = tree.range_scan(low="k0")
        next(scan)
        scan.close()

        # Writers proceed once the scan is closed.
        done = threading.Event()
        threading.Thread(target=lambda: (tree.put("k99", rid(99)), done.set())).start()
        assert done.wait(timeout=5)

    def test_clear(self, tree: BTreeDictionary) -> None:
        for i in range(10):
            tree.put(f"k{i}", rid(i))

        tree.clear()

        assert tree.size == 0
        assert tree.height == 1
        assert tree.search("k1") is None

    def test_stats(self, tree: BTreeDictionary) -> None:
        tree.put("a", rid(1))
        tree.search("a")
        tree.remove("a")

        stats = tree.get_stats()

        assert stats.name == "test_dict"
        assert stats.num_entries == 0
        assert stats.put_count == 1
        assert stats.search_count >= 1
        assert stats.remove_count == 1
