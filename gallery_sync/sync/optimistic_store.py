"""Local, UI-facing state of one collection.

The store is the only writer of the local item list. Intents, task steps,
compensations and the reconciler all go through its methods, and every
method leaves the list sorted by ``order_index``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from typing import Any

from gallery_sync.domain.models.item import Item
from gallery_sync.sync.ordering import sort_by_order

logger = logging.getLogger(__name__)

StoreListener = Callable[[list[Item]], None]


class DeletionMask:
    """Ids deleted locally whose removal no snapshot has confirmed yet."""

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: set[str] = set(ids)

    def add(self, item_id: str) -> None:
        self._ids.add(item_id)

    def discard(self, item_id: str) -> None:
        self._ids.discard(item_id)

    def prune(self, server_ids: set[str | None]) -> set[str]:
        """Forget ids the server no longer returns.

        Returns:
            The ids that were released.
        """
        released = {item_id for item_id in self._ids if item_id not in server_ids}
        self._ids -= released
        return released

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"DeletionMask({sorted(self._ids)!r})"


class OptimisticStore:
    """Ordered list of confirmed and optimistic items for one collection view."""

    def __init__(self, items: Iterable[Item] = ()) -> None:
        self._items: list[Item] = sort_by_order(items)
        self._listeners: list[StoreListener] = []

    @property
    def items(self) -> list[Item]:
        """A copy of the current list, in display order."""
        return list(self._items)

    def snapshot(self) -> list[Item]:
        """Copy of the list to restore from if a mutation has to be rolled back."""
        return list(self._items)

    def get(self, item_id: str) -> Item | None:
        return next((item for item in self._items if item.id == item_id), None)

    def find_by_client_id(self, client_id: str) -> list[Item]:
        return [item for item in self._items if item.client_id == client_id]

    def __len__(self) -> int:
        return len(self._items)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert_optimistic(self, item: Item) -> Item:
        """Append a placeholder and re-sort. The item is forced optimistic."""
        placeholder = item if item.is_optimistic else item.with_changes(is_optimistic=True)
        self._set([*self._items, placeholder])
        return placeholder

    def patch(self, match_id: str, **fields: Any) -> bool:
        """Shallow-merge ``fields`` into the item with id ``match_id``.

        Returns:
            False when no item has that id (e.g. it was rolled back meanwhile).

        Raises:
            ValueError: If ``fields`` names an unknown item attribute.
        """
        found = False
        updated: list[Item] = []
        for item in self._items:
            if item.id == match_id:
                item = item.with_changes(**fields)
                found = True
            updated.append(item)
        if not found:
            logger.debug("store_patch_missed", extra={"item_id": match_id})
            return False
        self._set(updated)
        return True

    def replace_all(self, items: Iterable[Item]) -> None:
        self._set(list(items))

    def remove_by_id(self, item_id: str) -> bool:
        remaining = [item for item in self._items if item.id != item_id]
        if len(remaining) == len(self._items):
            return False
        self._set(remaining)
        return True

    def apply_order(self, assignments: Sequence[tuple[str, int]]) -> None:
        """Mirror a persisted reindex locally."""
        positions = dict(assignments)
        self._set(
            [
                item.with_changes(order_index=positions[item.id])
                if item.id in positions
                else item
                for item in self._items
            ]
        )

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Call ``listener`` with the new list after every change."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, items: list[Item]) -> None:
        self._items = sort_by_order(items)
        for listener in list(self._listeners):
            try:
                listener(list(self._items))
            except Exception:
                logger.exception("store_listener_failed")
