"""One user-facing collection (a user's pages or a page's posts).

The view owns the local state of its collection (``OptimisticStore`` plus
``DeletionMask``) together with the queue that serializes its writes. Every
intent follows the same pattern: patch the store synchronously, then enqueue
a task whose ``compensate`` restores what the intent changed. Snapshots from
the store are merged with :func:`reconcile` whenever they arrive.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from gallery_sync.config.storage import StorageConfig
from gallery_sync.config.sync import SyncConfig
from gallery_sync.core.logging_utils import generate_correlation_id
from gallery_sync.core.slug_utils import temp_slug
from gallery_sync.core.time_utils import utc_now
from gallery_sync.domain.events.sync_events import (
    DomainEvent,
    MutationFailed,
    QueueDrained,
    SnapshotReconciled,
)
from gallery_sync.domain.exceptions.domain_exceptions import (
    DomainException,
    PersistFailure,
    ResourceNotFoundError,
)
from gallery_sync.domain.models.item import CollectionKind, Item, StagingState
from gallery_sync.sync.correlation import new_client_id, new_temp_id
from gallery_sync.sync.drain_hooks import DrainHooks
from gallery_sync.sync.mutation_queue import MutationQueue, MutationTask
from gallery_sync.sync.optimistic_store import DeletionMask, OptimisticStore
from gallery_sync.sync.ordering import apply_reorder, clamp_order, next_order, swap_with_neighbour
from gallery_sync.sync.preview_coordinator import PreviewCoordinator
from gallery_sync.sync.reconciler import reconcile

if TYPE_CHECKING:
    from gallery_sync.domain.models.item import CollectionRef, ItemDraft
    from gallery_sync.infrastructure.messaging.event_bus import EventBus
    from gallery_sync.protocols import AssetStorage, ItemStore, PreviewService, Unsubscribe

logger = logging.getLogger(__name__)


def failure_notice(operation: str, label: str) -> str:
    """User-facing message shown once when a mutation is rolled back."""
    if operation == "create":
        return f"Failed to create {label}."
    if operation == "edit":
        return f"Failed to update {label}."
    if operation == "delete":
        return f"Something went wrong. The {label} could not be deleted."
    if operation == "move":
        return f"Failed to reorder {label}s."
    return f"Failed to save {label}."


class CollectionView:
    """Optimistic, reconciled view of one collection.

    Usage::

        view = CollectionView(ref, item_store, asset_storage, previews, event_bus=bus)
        view.attach()
        placeholder = view.create(ItemDraft(title="Holiday"))  # shown immediately
        await view.join()  # actions, drain hooks and refresh done
    """

    def __init__(
        self,
        collection: CollectionRef,
        items: ItemStore,
        assets: AssetStorage,
        previews: PreviewService | None = None,
        *,
        event_bus: EventBus | None = None,
        storage: StorageConfig | None = None,
        sync: SyncConfig | None = None,
        initial_items: Iterable[Item] = (),
        include_private: bool = True,
    ) -> None:
        storage = storage or StorageConfig()
        sync = sync or SyncConfig()

        self.collection = collection
        self._items = items
        self._event_bus = event_bus
        self._include_private = include_private
        self._refresh_on_drain = sync.refresh_on_drain

        self._store = OptimisticStore(initial_items)
        self._mask = DeletionMask()
        self._hooks = DrainHooks(
            collection,
            self._store,
            items,
            reindex_enabled=sync.reindex_on_drain,
            count_enabled=sync.reconcile_count_on_drain,
        )
        folder_template = (
            storage.page_thumbnail_folder
            if collection.kind is CollectionKind.PAGES
            else storage.post_thumbnail_folder
        )
        self._coordinator = PreviewCoordinator(
            collection,
            self._store,
            items,
            assets,
            previews,
            upload_folder=folder_template.format(owner_id=collection.owner_id),
        )
        self._queue = MutationQueue(
            on_drain=self._on_drain,
            on_failure=self._on_failure,
            name=f"{collection.kind.value}:{collection.key}",
        )
        self._unsubscribe: Unsubscribe | None = None
        self._background: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def items(self) -> list[Item]:
        return self._store.items

    @property
    def store(self) -> OptimisticStore:
        return self._store

    @property
    def deletion_mask(self) -> DeletionMask:
        return self._mask

    @property
    def busy(self) -> bool:
        """True while any write or drain pass of this collection is running."""
        return self._queue.busy

    async def join(self) -> None:
        """Wait until every queued mutation, drain pass and event has finished."""
        await self._queue.join()
        while self._background:
            await asyncio.gather(*list(self._background))

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def create(self, draft: ItemDraft) -> Item:
        """Show a placeholder right away and queue upload, preview and insert."""
        client_id = new_client_id()
        placeholder = self._store.insert_optimistic(
            Item(
                id=new_temp_id(client_id),
                order_index=next_order(self._store.items),
                client_id=client_id,
                is_optimistic=True,
                staging_state=(
                    StagingState.UPLOADING if draft.pending_asset else StagingState.NONE
                ),
                collection_key=self.collection.key,
                slug=temp_slug(draft.title),
                created_at=utc_now(),
                **draft.payload(),
            )
        )

        async def _action() -> None:
            await self._coordinator.run_create(placeholder, draft)

        def _compensate() -> None:
            for item in self._store.find_by_client_id(client_id):
                if item.is_optimistic:
                    self._store.remove_by_id(str(item.id))

        self._submit("create", _action, _compensate, correlation_id=client_id)
        return placeholder

    def create_many(self, drafts: Sequence[ItemDraft]) -> list[Item]:
        """Bulk create; each placeholder takes the next consecutive order."""
        return [self.create(draft) for draft in drafts]

    def edit(self, item_id: str, draft: ItemDraft) -> Item:
        """Apply an edit optimistically, shifting neighbours if the order moves.

        Raises:
            ResourceNotFoundError: If ``item_id`` is not in the view.
        """
        current = self._require(item_id)
        previous = self._store.snapshot()

        if draft.pending_asset is None:
            draft = replace(
                draft,
                thumbnail=draft.thumbnail or current.thumbnail,
                blur_data_url=draft.blur_data_url or current.blur_data_url,
            )

        items = self._store.items
        if draft.order_index is not None and draft.order_index != current.order_index:
            target = clamp_order(items, draft.order_index)
            draft = replace(draft, order_index=target)
            items = apply_reorder(items, item_id, target)
        else:
            draft = replace(draft, order_index=None)

        changes: dict[str, Any] = draft.payload()
        changes["thumbnail"] = draft.thumbnail or current.thumbnail
        changes["staging_state"] = (
            StagingState.UPLOADING if draft.pending_asset else StagingState.NONE
        )
        self._store.replace_all(
            item.with_changes(**changes) if item.id == item_id else item for item in items
        )

        client_id = current.client_id
        persisted = current.is_persisted
        resolved: list[str] = []

        async def _action() -> None:
            # A placeholder edited before its create ran is addressed by the id
            # the create assigned.
            target_id = item_id if persisted else self._confirmed_id(client_id)
            if target_id is None:
                logger.info(
                    "edit_dropped_unconfirmed",
                    extra={"collection_key": self.collection.key, "item_id": item_id},
                )
                return
            resolved.append(target_id)
            await self._coordinator.run_edit(target_id, draft)

        def _compensate() -> None:
            restored = previous
            if resolved and resolved[0] != item_id:
                restored = [
                    item.with_changes(id=resolved[0]) if item.id == item_id else item
                    for item in previous
                ]
            self._store.replace_all(restored)

        self._submit("edit", _action, _compensate)
        return self._require(item_id)

    def delete(self, item_id: str) -> None:
        """Hide an item immediately and queue its deletion.

        A placeholder that the store has not confirmed yet is only removed
        locally.

        Raises:
            ResourceNotFoundError: If ``item_id`` is not in the view.
        """
        current = self._require(item_id)
        if not current.is_persisted:
            self._store.remove_by_id(item_id)
            logger.info(
                "placeholder_discarded",
                extra={"collection_key": self.collection.key, "item_id": item_id},
            )
            return

        previous = self._store.snapshot()
        self._mask.add(item_id)
        self._store.remove_by_id(item_id)

        async def _action() -> None:
            await self._persist(self._items.delete_item(item_id), operation="delete")

        def _compensate() -> None:
            self._mask.discard(item_id)
            self._store.replace_all(previous)

        self._submit("delete", _action, _compensate)

    def move(self, item_id: str, offset: int) -> bool:
        """Swap an item with the neighbour ``offset`` slots away in display order.

        Returns:
            False when there is nothing to swap with, or either item is not
            persisted yet.
        """
        swapped = swap_with_neighbour(self._store.items, item_id, offset)
        if swapped is None:
            return False
        new_items, moved, neighbour = swapped
        if not (moved.is_persisted and neighbour.is_persisted):
            logger.debug(
                "move_skipped_unpersisted",
                extra={"collection_key": self.collection.key, "item_id": item_id},
            )
            return False

        previous = self._store.snapshot()
        self._store.replace_all(new_items)

        async def _action() -> None:
            await self._persist(
                self._items.update_item(str(moved.id), {"order_index": moved.order_index}),
                operation="move",
            )
            await self._persist(
                self._items.update_item(
                    str(neighbour.id), {"order_index": neighbour.order_index}
                ),
                operation="move",
            )

        def _compensate() -> None:
            self._store.replace_all(previous)

        self._submit("move", _action, _compensate)
        return True

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def on_snapshot_received(self, snapshot: Sequence[Item]) -> list[Item]:
        """Merge an authoritative snapshot into the local list."""
        merged = reconcile(self._store.items, snapshot, self._mask)
        self._store.replace_all(merged)
        optimistic = sum(1 for item in merged if item.is_optimistic)
        self._publish_soon(
            SnapshotReconciled(
                occurred_at=utc_now(),
                aggregate_id=self.collection.key,
                collection_key=self.collection.key,
                item_count=len(merged),
                optimistic_count=optimistic,
            )
        )
        return merged

    async def refresh(self) -> list[Item]:
        """Fetch a fresh snapshot from the store and reconcile it."""
        snapshot = await self._items.fetch_snapshot(
            self.collection.key, include_private=self._include_private
        )
        return self.on_snapshot_received(snapshot)

    def attach(self) -> None:
        """Start receiving pushed snapshots from the store."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._items.subscribe(
            self.collection.key,
            self.on_snapshot_received,
            include_private=self._include_private,
        )

    def detach(self) -> None:
        if self._unsubscribe is None:
            return
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        unsubscribe()

    # ------------------------------------------------------------------
    # Queue plumbing
    # ------------------------------------------------------------------

    def _submit(
        self,
        operation: str,
        action: Callable[[], Awaitable[None]],
        compensate: Callable[[], None],
        *,
        correlation_id: str | None = None,
    ) -> None:
        """Queue ``action``; undo the optimistic patch if it cannot be queued."""
        task = MutationTask(
            action=action,
            compensate=compensate,
            name=f"{operation}_{self.collection.label}",
            correlation_id=correlation_id or generate_correlation_id(),
            failure_notice=failure_notice(operation, self.collection.label),
        )
        try:
            self._queue.enqueue(task)
        except RuntimeError:
            compensate()
            raise

    def _require(self, item_id: str) -> Item:
        item = self._store.get(item_id)
        if item is None:
            raise ResourceNotFoundError(
                f"{self.collection.label.capitalize()} {item_id} is not in this view",
                details={"collection_key": self.collection.key, "item_id": item_id},
            )
        return item

    def _confirmed_id(self, client_id: str | None) -> str | None:
        """Store id of the row a placeholder was confirmed as, if any yet."""
        if client_id is None:
            return None
        for item in self._store.find_by_client_id(client_id):
            if item.is_persisted:
                return str(item.id)
        return None

    async def _persist(self, call: Awaitable[None], *, operation: str) -> None:
        try:
            await call
        except DomainException:
            raise
        except Exception as exc:
            raise PersistFailure(
                f"Store rejected {self.collection.label} {operation}",
                details={"collection_key": self.collection.key, "error": str(exc)},
            ) from exc

    async def _on_drain(self) -> None:
        await self._hooks.run()
        if self._refresh_on_drain:
            try:
                await self.refresh()
            except Exception:
                logger.exception(
                    "refresh_after_drain_failed",
                    extra={"collection_key": self.collection.key},
                )
        await self._publish(
            QueueDrained(
                occurred_at=utc_now(),
                aggregate_id=self.collection.key,
                collection_key=self.collection.key,
            )
        )

    async def _on_failure(self, task: MutationTask, exc: Exception) -> None:
        await self._publish(
            MutationFailed(
                occurred_at=utc_now(),
                aggregate_id=self.collection.key,
                collection_key=self.collection.key,
                operation=task.name,
                notice=task.failure_notice or failure_notice("", self.collection.label),
                error=str(exc),
            )
        )

    async def _publish(self, event: DomainEvent) -> None:
        if self._event_bus is not None:
            await self._event_bus.publish(event)

    def _publish_soon(self, event: DomainEvent) -> None:
        """Publish from synchronous code; skipped when no loop is running."""
        if self._event_bus is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("event_dropped_no_loop", extra={"event_type": type(event).__name__})
            return
        task = loop.create_task(self._event_bus.publish(event))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
