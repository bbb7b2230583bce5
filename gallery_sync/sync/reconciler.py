"""Merge an authoritative server snapshot into the local list."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from gallery_sync.domain.models.item import Item, StagingState
from gallery_sync.sync.optimistic_store import DeletionMask
from gallery_sync.sync.ordering import sort_by_order

logger = logging.getLogger(__name__)


def reconcile(
    local_items: Sequence[Item],
    server_snapshot: Sequence[Item],
    deletion_mask: DeletionMask,
) -> list[Item]:
    """Return the next local list for ``server_snapshot``.

    Server items win. Optimistic local items survive until the snapshot
    contains them (matched by ``client_id`` or ``id``); confirmed local items
    are always replaced by the snapshot. Ids in ``deletion_mask`` are hidden
    even if the server still returns them, and the mask is pruned in place of
    every id the server no longer has.
    """
    server_ids = {item.id for item in server_snapshot}
    released = deletion_mask.prune(server_ids)

    visible = [item for item in server_snapshot if item.id not in deletion_mask]
    optimistic_local = [item for item in local_items if item.is_optimistic]

    added_client_ids = {item.client_id for item in visible if item.client_id}
    added_ids = {item.id for item in visible}

    merged = [
        item.with_changes(is_optimistic=False, staging_state=StagingState.NONE)
        for item in visible
    ]
    for item in optimistic_local:
        if item.client_id and item.client_id in added_client_ids:
            continue
        if item.id in added_ids:
            continue
        merged.append(item)

    result = sort_by_order(merged)
    logger.debug(
        "snapshot_reconciled",
        extra={
            "merged": len(result),
            "optimistic": len(result) - len(visible),
            "masked": len(deletion_mask),
            "released": sorted(released),
        },
    )
    return result
