"""Tests for the destination index and catalog diff."""

import pytest

from steam_catalog_sync.catalog import CatalogDiff, DestinationIndex, compute_diff
from steam_catalog_sync.ingestion.contracts import ItemRow


def row(record_id: str, steam_id: str | None) -> ItemRow:
    return ItemRow.model_validate({"id": record_id, "attributes": {"steam_id": steam_id}})


class TestDestinationIndex:
    """Tests for DestinationIndex."""

    def test_from_rows(self) -> None:
        index = DestinationIndex.from_rows([row("a", "620"), row("b", "570")])

        assert dict(index) == {620: "a", 570: "b"}
        assert len(index) == 2

    def test_duplicate_steam_id_first_wins(self) -> None:
        """Test that the first listed record keeps the key."""
        index = DestinationIndex.from_rows([row("a", "620"), row("b", "620")])
        assert index[620] == "a"

    def test_non_numeric_steam_id_ignored(self) -> None:
        index = DestinationIndex.from_rows([row("a", "abc"), row("b", None), row("c", "10")])
        assert dict(index) == {10: "c"}

    def test_read_only(self) -> None:
        """Test the index cannot be mutated after construction."""
        index = DestinationIndex({1: "a"})

        with pytest.raises(TypeError):
            index[2] = "b"  # type: ignore[index]
        with pytest.raises(TypeError):
            index._entries[2] = "b"  # type: ignore[index]


class TestComputeDiff:
    """Tests for compute_diff."""

    def test_partition(self) -> None:
        """Test keys split by presence in the index."""
        diff = compute_diff([1, 2, 3, 4], DestinationIndex({2: "b", 4: "d"}))

        assert diff == CatalogDiff(to_create=(1, 3), to_update=(2, 4))
        assert diff.total == 4

    def test_disjoint_and_complete(self) -> None:
        """Test every key lands in exactly one sequence."""
        keys = [5, 3, 9, 1, 7]
        diff = compute_diff(keys, {3: "x", 7: "y", 100: "z"})

        assert set(diff.to_create).isdisjoint(diff.to_update)
        assert set(diff.to_create) | set(diff.to_update) == set(keys)

    def test_catalog_order_preserved(self) -> None:
        diff = compute_diff([9, 1, 5, 3], {5: "x", 9: "y"})

        assert diff.to_create == (1, 3)
        assert diff.to_update == (9, 5)

    def test_duplicate_keys_collapsed(self) -> None:
        """Test duplicate catalog keys keep their first position."""
        diff = compute_diff([4, 2, 4, 2, 8], {8: "x"})

        assert diff.to_create == (4, 2)
        assert diff.to_update == (8,)

    def test_index_entries_outside_catalog_ignored(self) -> None:
        diff = compute_diff([1], {1: "a", 2: "b"})
        assert diff.to_update == (1,)
        assert diff.to_create == ()

    def test_empty(self) -> None:
        diff = compute_diff([], DestinationIndex())
        assert diff.total == 0
        assert diff.to_dict() == {"to_create": [], "to_update": []}
