"""Tests for snapshot reconciliation."""

from gallery_sync.domain.models.item import Item, StagingState
from gallery_sync.sync.optimistic_store import DeletionMask
from gallery_sync.sync.reconciler import reconcile


def _server(item_id: str, order: int, client_id: str | None = None) -> Item:
    return Item(id=item_id, order_index=order, client_id=client_id)


def _placeholder(item_id: str, order: int, client_id: str) -> Item:
    return Item(
        id=item_id,
        order_index=order,
        client_id=client_id,
        is_optimistic=True,
        staging_state=StagingState.UPLOADING,
    )


def _ids(items: list[Item]) -> list[str | None]:
    return [item.id for item in items]


class TestReconcile:
    def test_confirmed_create_replaces_placeholder(self):
        local = [_server("p1", 1), _placeholder("temp-1", 2, "c1")]
        snapshot = [_server("p1", 1), _server("p9", 2, client_id="c1")]

        merged = reconcile(local, snapshot, DeletionMask())

        assert _ids(merged) == ["p1", "p9"]
        assert all(not item.is_optimistic for item in merged)

    def test_unconfirmed_placeholder_survives(self):
        local = [_server("p1", 1), _placeholder("temp-1", 2, "c1")]
        merged = reconcile(local, [_server("p1", 1)], DeletionMask())
        assert _ids(merged) == ["p1", "temp-1"]
        assert merged[1].is_optimistic is True
        assert merged[1].staging_state is StagingState.UPLOADING

    def test_placeholder_with_real_id_matched_by_id(self):
        local = [Item(id="p9", order_index=2, is_optimistic=True)]
        merged = reconcile(local, [_server("p9", 2)], DeletionMask())
        assert _ids(merged) == ["p9"]
        assert merged[0].is_optimistic is False

    def test_server_wins_over_confirmed_local_items(self):
        local = [Item(id="p1", order_index=1, title="stale")]
        merged = reconcile(local, [Item(id="p1", order_index=1, title="fresh")], DeletionMask())
        assert merged[0].title == "fresh"

    def test_confirmed_local_items_missing_from_server_disappear(self):
        local = [_server("p1", 1), _server("p2", 2)]
        assert _ids(reconcile(local, [_server("p2", 2)], DeletionMask())) == ["p2"]

    def test_stale_snapshot_cannot_resurrect_deleted_item(self):
        mask = DeletionMask(["p1"])
        merged = reconcile([_server("p9", 2)], [_server("p1", 1), _server("p9", 2)], mask)
        assert _ids(merged) == ["p9"]
        assert "p1" in mask

    def test_mask_cleared_once_server_drops_id(self):
        mask = DeletionMask(["p1"])
        reconcile([_server("p9", 2)], [_server("p9", 2)], mask)
        assert len(mask) == 0

    def test_empty_snapshot_keeps_only_placeholders(self):
        local = [_server("p1", 1), _placeholder("temp-1", 2, "c1")]
        assert _ids(reconcile(local, [], DeletionMask())) == ["temp-1"]

    def test_output_is_sorted_and_stable_on_ties(self):
        local = [_placeholder("temp-1", 1, "c1")]
        snapshot = [_server("b", 3), _server("a", 1), _server("c", 1)]
        assert _ids(reconcile(local, snapshot, DeletionMask())) == ["a", "c", "temp-1", "b"]

    def test_inputs_are_not_mutated(self):
        local = [_placeholder("temp-1", 2, "c1")]
        snapshot = [_server("p1", 1)]
        reconcile(local, snapshot, DeletionMask())
        assert local[0].is_optimistic is True
        assert snapshot[0].is_optimistic is False
