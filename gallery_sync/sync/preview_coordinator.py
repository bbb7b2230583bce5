"""Multi-step bodies of create and edit actions.

A create uploads the picked file, optionally asks the CDN for a blur
placeholder, then persists the record. After every step the optimistic item
is patched so the view can show progress (uploading, deriving preview, done).
Any step raising aborts the action; undoing the placeholder is the job of the
compensation the caller enqueued alongside it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any, TypeVar

from gallery_sync.domain.exceptions.domain_exceptions import (
    DomainException,
    PersistFailure,
    UploadFailure,
)
from gallery_sync.domain.models.item import StagingState

if TYPE_CHECKING:
    from gallery_sync.domain.models.item import CollectionRef, Item, ItemDraft, PendingAsset
    from gallery_sync.protocols import AssetStorage, ItemStore, PreviewService
    from gallery_sync.sync.optimistic_store import OptimisticStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PreviewCoordinator:
    """Runs upload -> preview -> persist for one collection view."""

    def __init__(
        self,
        collection: CollectionRef,
        store: OptimisticStore,
        items: ItemStore,
        assets: AssetStorage,
        previews: PreviewService | None,
        *,
        upload_folder: str,
    ) -> None:
        self._collection = collection
        self._store = store
        self._items = items
        self._assets = assets
        self._previews = previews
        self._upload_folder = upload_folder

    async def run_create(self, placeholder: Item, draft: ItemDraft) -> Item:
        """Upload, derive the preview if needed, and insert the record.

        The placeholder keeps ``is_optimistic`` after this returns; only a
        reconciled snapshot confirms it. It does get the real id so later
        tasks and the reindex can address it.

        Raises:
            UploadFailure: The asset upload or preview derivation failed.
            PersistFailure: The store rejected the insert.
        """
        temp_id = str(placeholder.id)
        thumbnail = draft.thumbnail
        blur_data_url = draft.blur_data_url

        if draft.pending_asset is not None:
            thumbnail = await self._upload(draft.pending_asset)
            blur_data_url = await self._resolve_preview(temp_id, thumbnail, draft)

        current = self._store.get(temp_id) or placeholder
        payload: dict[str, Any] = {
            **draft.payload(),
            "thumbnail": thumbnail,
            "blur_data_url": blur_data_url or "",
            "client_id": placeholder.client_id,
            "order_index": current.order_index,
        }
        created = await self._persist(
            self._items.create_item(self._collection.key, payload), operation="create"
        )

        self._store.patch(
            temp_id,
            id=created.id,
            slug=created.slug,
            thumbnail=created.thumbnail,
            blur_data_url=created.blur_data_url,
            created_at=created.created_at,
            staging_state=StagingState.NONE,
        )
        logger.info(
            "item_created",
            extra={
                "collection_key": self._collection.key,
                "item_id": created.id,
                "client_id": placeholder.client_id,
            },
        )
        return created

    async def run_edit(self, item_id: str, draft: ItemDraft) -> None:
        """Upload a replacement asset if one was picked, then update the record.

        Raises:
            UploadFailure: The asset upload or preview derivation failed.
            PersistFailure: The store rejected the update.
        """
        thumbnail = draft.thumbnail
        blur_data_url = draft.blur_data_url

        if draft.pending_asset is not None:
            thumbnail = await self._upload(draft.pending_asset)
            blur_data_url = await self._resolve_preview(item_id, thumbnail, draft)

        payload: dict[str, Any] = {
            **draft.payload(),
            "thumbnail": thumbnail,
            "blur_data_url": blur_data_url or "",
        }
        if draft.order_index is not None:
            payload["order_index"] = draft.order_index

        await self._persist(self._items.update_item(item_id, payload), operation="update")
        self._store.patch(item_id, staging_state=StagingState.NONE)
        logger.info(
            "item_updated",
            extra={"collection_key": self._collection.key, "item_id": item_id},
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _upload(self, asset: PendingAsset) -> str:
        try:
            return await self._assets.upload_asset(asset, self._upload_folder)
        except UploadFailure:
            raise
        except Exception as exc:
            raise UploadFailure(
                f"Upload of {asset.filename} failed",
                details={"folder": self._upload_folder, "error": str(exc)},
            ) from exc

    async def _resolve_preview(self, item_id: str, url: str, draft: ItemDraft) -> str:
        """Return the placeholder to persist, patching progress into the store."""
        if not draft.needs_server_preview or self._previews is None:
            self._store.patch(item_id, thumbnail=url, staging_state=StagingState.NONE)
            return draft.blur_data_url

        self._store.patch(item_id, thumbnail=url, staging_state=StagingState.DERIVING_PREVIEW)
        try:
            blur_data_url = await self._previews.derive_preview(url)
        except Exception as exc:
            raise UploadFailure(
                "Preview derivation failed", details={"url": url, "error": str(exc)}
            ) from exc
        self._store.patch(
            item_id, blur_data_url=blur_data_url or "", staging_state=StagingState.NONE
        )
        return blur_data_url or ""

    async def _persist(self, call: Awaitable[T], *, operation: str) -> T:
        try:
            return await call
        except DomainException:
            raise
        except Exception as exc:
            raise PersistFailure(
                f"Store rejected {self._collection.label} {operation}",
                details={"collection_key": self._collection.key, "error": str(exc)},
            ) from exc
