"""SQLite implementation of the item store.

One adapter instance serves one kind of item: pages (children of a user) or
posts (children of a page). Every write commits in a single transaction,
then removes assets the write orphaned and pushes a fresh snapshot to
subscribers of the affected collection.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from gallery_sync.core.slug_utils import slugify, unique_slug
from gallery_sync.db.models import Page, Post, User
from gallery_sync.domain.exceptions.domain_exceptions import PersistFailure
from gallery_sync.domain.models.item import CollectionKind, Item
from gallery_sync.infrastructure.persistence.sqlite.base import SqliteBaseRepository
from gallery_sync.sync.ordering import clamp_order

if TYPE_CHECKING:
    from gallery_sync.db.session import DatabaseSessionManager
    from gallery_sync.protocols import AssetStorage, SnapshotListener, Unsubscribe

logger = logging.getLogger(__name__)

FILE_CONTENT_TYPE = "file"


class SqliteItemRepository(SqliteBaseRepository):
    """Pages or posts stored with peewee; implements ``ItemStore``."""

    def __init__(
        self,
        session_manager: DatabaseSessionManager,
        kind: CollectionKind,
        *,
        assets: AssetStorage | None = None,
    ) -> None:
        super().__init__(session_manager)
        self._kind = kind
        self._assets = assets
        self._listeners: dict[str, list[tuple[SnapshotListener, bool]]] = defaultdict(list)
        if kind is CollectionKind.PAGES:
            self._model: type[Page] | type[Post] = Page
            self._parent = Page.user
        else:
            self._model = Post
            self._parent = Post.page
        self._columns = frozenset(self._model._meta.fields) - {"id", "created_at", "updated_at"}

    @property
    def kind(self) -> CollectionKind:
        return self._kind

    # ------------------------------------------------------------------
    # ItemStore
    # ------------------------------------------------------------------

    async def create_item(self, collection_key: str, payload: Mapping[str, Any]) -> Item:
        """Insert a row with a slug unique within its collection."""
        model = self._model
        fields = self._fields(payload)

        def _create() -> Item:
            base = slugify(str(payload.get("title") or "")) or "untitled"
            taken = {
                row.slug
                for row in model.select(model.slug).where(
                    (self._parent == collection_key) & model.slug.startswith(base)
                )
            }
            record = model.create(
                **{self._parent.name: collection_key},
                slug=unique_slug(base, taken),
                **fields,
            )
            return self._to_item(record)

        created = await self._write(_create, operation_name=f"create_{self._label}")
        logger.info(
            "item_row_created",
            extra={
                "collection_key": collection_key,
                "item_id": created.id,
                "client_id": created.client_id,
                "slug": created.slug,
            },
        )
        await self._notify(collection_key)
        return created

    async def update_item(self, item_id: str, payload: Mapping[str, Any]) -> None:
        """Update a row; a changed ``order_index`` shifts the items in between."""
        model = self._model
        fields = self._fields(payload)

        def _update() -> tuple[str, list[str]]:
            record = self._get_or_fail(item_id)
            collection_key = self._collection_key_of(record)
            stale_assets = self._replaced_assets(record, fields)

            target = fields.get("order_index")
            if target is not None and target != record.order_index:
                siblings = [
                    self._to_item(row)
                    for row in model.select().where(self._parent == collection_key)
                ]
                target = clamp_order(siblings, target)
                fields["order_index"] = target
                old = record.order_index
                in_collection = (self._parent == collection_key) & (model.id != item_id)
                if old > target:
                    model.update(order_index=model.order_index + 1).where(
                        in_collection
                        & (model.order_index >= target)
                        & (model.order_index < old)
                    ).execute()
                elif old < target:
                    model.update(order_index=model.order_index - 1).where(
                        in_collection
                        & (model.order_index > old)
                        & (model.order_index <= target)
                    ).execute()

            for name, value in fields.items():
                setattr(record, name, value)
            record.save()
            return collection_key, stale_assets

        collection_key, stale_assets = await self._write(
            _update, operation_name=f"update_{self._label}"
        )
        logger.info(
            "item_row_updated",
            extra={"collection_key": collection_key, "item_id": item_id, "fields": sorted(fields)},
        )
        await self._delete_assets(stale_assets)
        await self._notify(collection_key)

    async def delete_item(self, item_id: str) -> None:
        """Delete a row, its children and their assets; later items move up.

        Deleting an id that no longer exists is a no-op.
        """
        model = self._model

        def _delete() -> tuple[str, list[str]] | None:
            record = model.get_or_none(model.id == item_id)
            if record is None:
                return None
            collection_key = self._collection_key_of(record)
            urls = self._asset_urls(record)

            if isinstance(record, Page):
                children = list(Post.select().where(Post.page == record.id))
                for post in children:
                    urls.extend(self._asset_urls(post))
                Post.delete().where(Post.page == record.id).execute()

            deleted_index = record.order_index
            record.delete_instance()
            model.update(order_index=model.order_index - 1).where(
                (self._parent == collection_key) & (model.order_index > deleted_index)
            ).execute()
            return collection_key, urls

        result = await self._write(_delete, operation_name=f"delete_{self._label}")
        if result is None:
            logger.warning("item_row_missing_on_delete", extra={"item_id": item_id})
            return
        collection_key, urls = result
        logger.info(
            "item_row_deleted",
            extra={"collection_key": collection_key, "item_id": item_id, "assets": len(urls)},
        )
        await self._delete_assets(urls)
        await self._notify(collection_key)

    async def fetch_snapshot(
        self, collection_key: str, *, include_private: bool = True
    ) -> list[Item]:
        model = self._model

        def _fetch() -> list[Item]:
            query = model.select().where(self._parent == collection_key)
            if not include_private and model is Page:
                query = query.where(Page.is_private == False)  # noqa: E712
            query = query.order_by(model.order_index, model.created_at)
            return [self._to_item(row) for row in query]

        return await self._execute(
            _fetch, operation_name=f"fetch_{self._label}_snapshot", read_only=True
        )

    def subscribe(
        self, collection_key: str, on_snapshot: SnapshotListener, *, include_private: bool = True
    ) -> Unsubscribe:
        """Call ``on_snapshot`` with a fresh snapshot after every committed write."""
        entry = (on_snapshot, include_private)
        self._listeners[collection_key].append(entry)

        def _unsubscribe() -> None:
            listeners = self._listeners.get(collection_key, [])
            if entry in listeners:
                listeners.remove(entry)

        return _unsubscribe

    async def reindex(self, collection_key: str, assignments: Sequence[tuple[str, int]]) -> None:
        """Write every ``(id, order_index)`` pair in one transaction."""
        model = self._model

        def _reindex() -> int:
            changed = 0
            for item_id, order_index in assignments:
                changed += (
                    model.update(order_index=order_index)
                    .where(
                        (model.id == item_id)
                        & (self._parent == collection_key)
                        & (model.order_index != order_index)
                    )
                    .execute()
                )
            return changed

        changed = await self._write(_reindex, operation_name=f"reindex_{self._label}s")
        logger.debug(
            "collection_rows_reindexed",
            extra={"collection_key": collection_key, "changed": changed},
        )
        if changed:
            await self._notify(collection_key)

    async def reconcile_count(self, owner_id: str) -> int:
        """Overwrite ``User.page_count`` / ``Page.post_count`` with the real row count."""
        model = self._model
        owner_model: type[User] | type[Page] = User if model is Page else Page
        counter = "page_count" if model is Page else "post_count"

        def _reconcile() -> tuple[int, int]:
            owner = owner_model.get_or_none(owner_model.id == owner_id)
            if owner is None:
                raise PersistFailure(
                    f"Owner {owner_id} not found",
                    details={"owner_id": owner_id, "counter": counter},
                )
            real = model.select().where(self._parent == owner_id).count()
            stored = getattr(owner, counter)
            if stored != real:
                owner_model.update(**{counter: real}).where(owner_model.id == owner_id).execute()
            return stored, real

        stored, real = await self._write(_reconcile, operation_name=f"reconcile_{counter}")
        if stored != real:
            logger.info(
                "owner_count_repaired",
                extra={"owner_id": owner_id, "counter": counter, "stored": stored, "real": real},
            )
        return real

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _label(self) -> str:
        return "page" if self._kind is CollectionKind.PAGES else "post"

    async def _write(self, operation: Any, *, operation_name: str) -> Any:
        try:
            return await self._transaction(operation, operation_name=operation_name)
        except PersistFailure:
            raise
        except Exception as exc:
            raise PersistFailure(
                f"{operation_name} failed", details={"error": str(exc)}
            ) from exc

    def _fields(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Keep only payload keys that are columns of this kind."""
        fields = {name: value for name, value in payload.items() if name in self._columns}
        fields.pop(self._parent.name, None)
        fields.pop("slug", None)
        if "order_index" in fields:
            if fields["order_index"] is None:
                del fields["order_index"]
            else:
                fields["order_index"] = int(fields["order_index"])
        return fields

    def _get_or_fail(self, item_id: str) -> Page | Post:
        record = self._model.get_or_none(self._model.id == item_id)
        if record is None:
            raise PersistFailure(
                f"{self._label.capitalize()} {item_id} not found",
                details={"item_id": item_id},
            )
        return record

    def _collection_key_of(self, record: Page | Post) -> str:
        return str(getattr(record, self._parent.object_id_name))

    def _to_item(self, record: Page | Post) -> Item:
        return Item(
            id=str(record.id),
            order_index=record.order_index,
            client_id=record.client_id,
            collection_key=self._collection_key_of(record),
            title=record.title,
            description=record.description or "",
            thumbnail=record.thumbnail or "",
            blur_data_url=record.blur_data_url or "",
            slug=record.slug,
            is_private=bool(getattr(record, "is_private", False)),
            is_public=bool(getattr(record, "is_public", False)),
            content_type=getattr(record, "content_type", None),
            content=getattr(record, "content", None),
            created_at=record.created_at,
        )

    @staticmethod
    def _asset_urls(record: Page | Post) -> list[str]:
        urls = [record.thumbnail] if record.thumbnail else []
        if getattr(record, "content_type", None) == FILE_CONTENT_TYPE and record.content:
            urls.append(record.content)
        return urls

    @staticmethod
    def _replaced_assets(record: Page | Post, fields: Mapping[str, Any]) -> list[str]:
        stale: list[str] = []
        new_thumbnail = fields.get("thumbnail")
        if record.thumbnail and new_thumbnail and new_thumbnail != record.thumbnail:
            stale.append(record.thumbnail)
        new_content = fields.get("content")
        if (
            getattr(record, "content_type", None) == FILE_CONTENT_TYPE
            and record.content
            and new_content
            and new_content != record.content
        ):
            stale.append(record.content)
        return stale

    async def _delete_assets(self, urls: Sequence[str]) -> None:
        """Best-effort removal; the rows are already gone or updated."""
        if self._assets is None or not urls:
            return
        results = await asyncio.gather(
            *(self._assets.delete_asset(url) for url in urls), return_exceptions=True
        )
        for url, result in zip(urls, results, strict=True):
            if isinstance(result, Exception):
                logger.warning("asset_delete_failed", extra={"url": url, "error": str(result)})

    async def _notify(self, collection_key: str) -> None:
        listeners = list(self._listeners.get(collection_key, []))
        if not listeners:
            return
        snapshots: dict[bool, list[Item]] = {}
        for listener, include_private in listeners:
            if include_private not in snapshots:
                snapshots[include_private] = await self.fetch_snapshot(
                    collection_key, include_private=include_private
                )
            try:
                listener(list(snapshots[include_private]))
            except Exception:
                logger.exception(
                    "snapshot_listener_failed", extra={"collection_key": collection_key}
                )
