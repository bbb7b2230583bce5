"""Corrective passes that run once a collection's mutation queue is empty.

Both passes are idempotent, so running them after every drain is harmless.
Their failures are logged here and never reach the UI.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gallery_sync.domain.exceptions.domain_exceptions import DrainHookFailure
from gallery_sync.sync.ordering import dense_assignments

if TYPE_CHECKING:
    from gallery_sync.domain.models.item import CollectionRef
    from gallery_sync.protocols import ItemStore
    from gallery_sync.sync.optimistic_store import OptimisticStore

logger = logging.getLogger(__name__)


class DrainHooks:
    """Dense reindex plus denormalized count repair for one collection."""

    def __init__(
        self,
        collection: CollectionRef,
        store: OptimisticStore,
        items: ItemStore,
        *,
        reindex_enabled: bool = True,
        count_enabled: bool = True,
    ) -> None:
        self._collection = collection
        self._store = store
        self._items = items
        self._reindex_enabled = reindex_enabled
        self._count_enabled = count_enabled

    async def dense_reindex(self) -> list[tuple[str, int]]:
        """Renumber the persisted items ``0..n-1`` in display order.

        Items that only exist locally (temporary ids) are skipped; they get
        their slot on the next drain after the store has confirmed them.

        Raises:
            DrainHookFailure: If the store rejects the batched write.
        """
        assignments = dense_assignments(self._store.items)
        if not assignments:
            return assignments
        try:
            await self._items.reindex(self._collection.key, assignments)
        except Exception as exc:
            raise DrainHookFailure(
                f"Reindex of {self._collection.kind.value} failed",
                details={"collection_key": self._collection.key, "error": str(exc)},
            ) from exc
        self._store.apply_order(assignments)
        logger.info(
            "collection_reindexed",
            extra={"collection_key": self._collection.key, "item_count": len(assignments)},
        )
        return assignments

    async def reconcile_count(self) -> int:
        """Overwrite the owner's stored counter with the real number of rows.

        Raises:
            DrainHookFailure: If counting or the update fails.
        """
        try:
            count = await self._items.reconcile_count(self._collection.key)
        except Exception as exc:
            raise DrainHookFailure(
                f"Count reconciliation of {self._collection.kind.value} failed",
                details={
                    "collection_key": self._collection.key,
                    "error": str(exc),
                },
            ) from exc
        logger.info(
            "collection_count_reconciled",
            extra={"collection_key": self._collection.key, "count": count},
        )
        return count

    async def run(self) -> None:
        """Run every enabled pass; one failing does not stop the other."""
        if self._reindex_enabled:
            try:
                await self.dense_reindex()
            except DrainHookFailure as exc:
                logger.exception(
                    "drain_hook_failed",
                    extra={"hook": "dense_reindex", **exc.details},
                )
        if self._count_enabled:
            try:
                await self.reconcile_count()
            except DrainHookFailure as exc:
                logger.exception(
                    "drain_hook_failed",
                    extra={"hook": "reconcile_count", **exc.details},
                )
