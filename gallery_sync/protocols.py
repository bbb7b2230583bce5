"""Protocol definitions for the collaborators of the sync core.

The sync core only talks to these contracts, so a SQLite store, an HTTP
storage service or an in-memory fake can be swapped in freely.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from gallery_sync.domain.models.item import Item, PendingAsset

SnapshotListener = Callable[[list["Item"]], None]
Unsubscribe = Callable[[], None]


class ItemStore(Protocol):
    """Persistence of one kind of item (pages or posts)."""

    async def create_item(self, collection_key: str, payload: Mapping[str, Any]) -> Item:
        """Persist a new row.

        ``payload`` carries ``client_id`` and ``order_index`` along with the
        item fields; the stored row must keep the caller's ``client_id``.

        Returns:
            The stored item with its store-assigned id.
        """
        ...

    async def update_item(self, item_id: str, payload: Mapping[str, Any]) -> None:
        """Update an existing row, shifting neighbours when the order changes."""
        ...

    async def delete_item(self, item_id: str) -> None:
        """Delete a row together with everything that hangs off it."""
        ...

    async def fetch_snapshot(
        self, collection_key: str, *, include_private: bool = True
    ) -> list[Item]:
        """Return the authoritative, ordered list of items in a collection."""
        ...

    def subscribe(
        self, collection_key: str, on_snapshot: SnapshotListener, *, include_private: bool = True
    ) -> Unsubscribe:
        """Push a fresh snapshot to ``on_snapshot`` whenever the collection changes.

        ``include_private`` filters pushed snapshots the same way it filters
        ``fetch_snapshot``.
        """
        ...

    async def reindex(self, collection_key: str, assignments: Sequence[tuple[str, int]]) -> None:
        """Persist ``(item_id, order_index)`` pairs in one batched write."""
        ...

    async def reconcile_count(self, owner_id: str) -> int:
        """Recount the children of ``owner_id`` and fix its stored counter if it drifted.

        The owner is the collection key: a user for pages, a page for posts.

        Returns:
            The real count.
        """
        ...


class AssetStorage(Protocol):
    """Binary asset storage returning stable public URLs."""

    async def upload_asset(self, asset: PendingAsset, folder: str) -> str: ...

    async def delete_asset(self, url: str) -> None: ...


class PreviewService(Protocol):
    """Derives a placeholder image for an uploaded asset."""

    async def derive_preview(self, url: str) -> str | None: ...
