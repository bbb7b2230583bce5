"""Tests for the SQLite item store."""

from __future__ import annotations

import pytest

from gallery_sync.db.models import Page, User
from gallery_sync.domain.exceptions.domain_exceptions import PersistFailure
from gallery_sync.domain.models.item import CollectionKind
from gallery_sync.infrastructure.persistence.sqlite.repositories.item_repository import (
    SqliteItemRepository,
)
from tests.fakes import FakeAssetStorage

CDN = "https://files.example.com"


@pytest.fixture
def user(db_session):
    with db_session.connection_context():
        User.create(id="user-1", username="ada", page_count=7)
    return "user-1"


@pytest.fixture
def assets() -> FakeAssetStorage:
    return FakeAssetStorage()


@pytest.fixture
def pages(db_session, assets) -> SqliteItemRepository:
    return SqliteItemRepository(db_session, CollectionKind.PAGES, assets=assets)


@pytest.fixture
def posts(db_session, assets) -> SqliteItemRepository:
    return SqliteItemRepository(db_session, CollectionKind.POSTS, assets=assets)


async def _seed(repo: SqliteItemRepository, key: str, *titles: str) -> list[str]:
    ids = []
    for order, title in enumerate(titles, start=1):
        created = await repo.create_item(key, {"title": title, "order_index": order})
        ids.append(str(created.id))
    return ids


async def _titles(repo: SqliteItemRepository, key: str) -> list[tuple[str, int]]:
    return [(item.title, item.order_index) for item in await repo.fetch_snapshot(key)]


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_keeps_client_id_and_assigns_real_id(self, pages, user):
        created = await pages.create_item(
            user,
            {
                "title": "Summer Trip",
                "order_index": 3,
                "client_id": "c-1",
                "thumbnail": f"{CDN}/a.jpg",
                "content": "ignored for pages",
            },
        )

        assert created.is_persisted
        assert created.client_id == "c-1"
        assert created.slug == "summer-trip"
        assert created.order_index == 3
        assert created.collection_key == user
        assert created.is_optimistic is False

    @pytest.mark.asyncio
    async def test_slugs_are_unique_within_collection(self, pages, user):
        first = await pages.create_item(user, {"title": "Holiday"})
        second = await pages.create_item(user, {"title": "Holiday"})
        untitled = await pages.create_item(user, {"title": "  "})

        assert (first.slug, second.slug, untitled.slug) == ("holiday", "holiday-2", "untitled")

    @pytest.mark.asyncio
    async def test_post_slugs_are_scoped_per_page(self, pages, posts, user):
        page_a, page_b = await _seed(pages, user, "A", "B")

        on_a = await posts.create_item(page_a, {"title": "Intro"})
        on_b = await posts.create_item(page_b, {"title": "Intro"})

        assert on_a.slug == on_b.slug == "intro"
        assert on_a.collection_key == page_a

    @pytest.mark.asyncio
    async def test_unknown_parent_is_a_persist_failure(self, pages, db_session):
        with pytest.raises(PersistFailure):
            await pages.create_item("nobody", {"title": "Orphan"})


class TestUpdate:
    @pytest.mark.asyncio
    async def test_moving_up_shifts_items_in_between_down(self, pages, user):
        ids = await _seed(pages, user, "A", "B", "C", "D")

        await pages.update_item(ids[3], {"order_index": 2})

        assert await _titles(pages, user) == [("A", 1), ("D", 2), ("B", 3), ("C", 4)]

    @pytest.mark.asyncio
    async def test_moving_down_shifts_items_in_between_up(self, pages, user):
        ids = await _seed(pages, user, "A", "B", "C", "D")

        await pages.update_item(ids[0], {"order_index": 3})

        assert await _titles(pages, user) == [("B", 1), ("C", 2), ("A", 3), ("D", 4)]

    @pytest.mark.asyncio
    async def test_target_is_clamped_to_collection_range(self, pages, user):
        ids = await _seed(pages, user, "A", "B", "C")

        await pages.update_item(ids[0], {"order_index": 99})

        assert await _titles(pages, user) == [("B", 1), ("C", 2), ("A", 3)]

    @pytest.mark.asyncio
    async def test_none_order_leaves_position_alone(self, pages, user):
        ids = await _seed(pages, user, "A", "B")

        await pages.update_item(ids[0], {"title": "A2", "order_index": None, "slug": "x"})

        assert await _titles(pages, user) == [("A2", 1), ("B", 2)]
        snapshot = await pages.fetch_snapshot(user)
        assert snapshot[0].slug == "a"

    @pytest.mark.asyncio
    async def test_replaced_thumbnail_is_deleted_from_storage(self, pages, user, assets):
        created = await pages.create_item(user, {"title": "A", "thumbnail": f"{CDN}/old.jpg"})

        await pages.update_item(str(created.id), {"thumbnail": f"{CDN}/new.jpg"})
        await pages.update_item(str(created.id), {"thumbnail": f"{CDN}/new.jpg"})

        assert assets.deleted == [f"{CDN}/old.jpg"]

    @pytest.mark.asyncio
    async def test_missing_row(self, pages, user):
        with pytest.raises(PersistFailure) as exc_info:
            await pages.update_item("missing", {"title": "x"})
        assert exc_info.value.details == {"item_id": "missing"}


class TestDelete:
    @pytest.mark.asyncio
    async def test_later_items_move_up(self, pages, user):
        ids = await _seed(pages, user, "A", "B", "C")

        await pages.delete_item(ids[0])

        assert await _titles(pages, user) == [("B", 1), ("C", 2)]

    @pytest.mark.asyncio
    async def test_page_delete_removes_posts_and_all_assets(self, pages, posts, user, assets):
        page = await pages.create_item(user, {"title": "A", "thumbnail": f"{CDN}/page.jpg"})
        page_id = str(page.id)
        await posts.create_item(page_id, {"title": "p", "thumbnail": f"{CDN}/post.jpg"})
        await posts.create_item(
            page_id, {"title": "f", "content_type": "file", "content": f"{CDN}/doc.pdf"}
        )

        await pages.delete_item(page_id)

        assert await posts.fetch_snapshot(page_id) == []
        assert sorted(assets.deleted) == sorted(
            [f"{CDN}/page.jpg", f"{CDN}/post.jpg", f"{CDN}/doc.pdf"]
        )

    @pytest.mark.asyncio
    async def test_deleting_missing_row_is_a_noop(self, pages, user, assets):
        await pages.delete_item("gone")
        assert assets.deleted == []


class TestSnapshots:
    @pytest.mark.asyncio
    async def test_private_pages_can_be_hidden(self, pages, user):
        await pages.create_item(user, {"title": "Open", "order_index": 1})
        await pages.create_item(user, {"title": "Hidden", "order_index": 2, "is_private": True})

        public = await pages.fetch_snapshot(user, include_private=False)
        everything = await pages.fetch_snapshot(user)

        assert [item.title for item in public] == ["Open"]
        assert [item.title for item in everything] == ["Open", "Hidden"]

    @pytest.mark.asyncio
    async def test_subscribers_get_snapshot_after_each_write(self, pages, user):
        seen: list[list[str]] = []
        unsubscribe = pages.subscribe(user, lambda items: seen.append([i.title for i in items]))

        created = await pages.create_item(user, {"title": "A", "order_index": 1})
        await pages.update_item(str(created.id), {"title": "A2"})
        unsubscribe()
        await pages.delete_item(str(created.id))

        assert seen == [["A"], ["A2"]]

    @pytest.mark.asyncio
    async def test_public_subscribers_never_see_private_rows(self, pages, user):
        public: list[list[str]] = []
        everything: list[list[str]] = []
        pages.subscribe(
            user, lambda items: public.append([i.title for i in items]), include_private=False
        )
        pages.subscribe(user, lambda items: everything.append([i.title for i in items]))

        await pages.create_item(user, {"title": "Secret", "order_index": 1, "is_private": True})
        await pages.create_item(user, {"title": "Open", "order_index": 2})

        assert public == [[], ["Open"]]
        assert everything == [["Secret"], ["Secret", "Open"]]

    @pytest.mark.asyncio
    async def test_other_collections_are_not_notified(self, pages, posts, user):
        page_a, page_b = await _seed(pages, user, "A", "B")
        seen: list[int] = []
        posts.subscribe(page_b, lambda items: seen.append(len(items)))

        await posts.create_item(page_a, {"title": "x"})

        assert seen == []


class TestDrainSupport:
    @pytest.mark.asyncio
    async def test_reindex_writes_dense_positions(self, pages, user):
        ids = await _seed(pages, user, "A", "B", "C")
        notified: list[int] = []
        pages.subscribe(user, lambda items: notified.append(len(items)))

        await pages.reindex(user, [(ids[0], 0), (ids[1], 1), (ids[2], 2)])
        await pages.reindex(user, [(ids[0], 0), (ids[1], 1), (ids[2], 2)])

        assert await _titles(pages, user) == [("A", 0), ("B", 1), ("C", 2)]
        assert notified == [3]

    @pytest.mark.asyncio
    async def test_reindex_ignores_ids_from_other_collections(self, pages, posts, user):
        page_a, page_b = await _seed(pages, user, "A", "B")
        post = await posts.create_item(page_a, {"title": "x", "order_index": 5})

        await posts.reindex(page_b, [(str(post.id), 0)])

        assert (await posts.fetch_snapshot(page_a))[0].order_index == 5

    @pytest.mark.asyncio
    async def test_reconcile_page_count(self, pages, user, db_session):
        await _seed(pages, user, "A", "B")

        assert await pages.reconcile_count(user) == 2

        with db_session.connection_context():
            assert User.get_by_id(user).page_count == 2

    @pytest.mark.asyncio
    async def test_reconcile_post_count(self, pages, posts, user, db_session):
        (page_id,) = await _seed(pages, user, "A")
        await _seed(posts, page_id, "x", "y", "z")

        assert await posts.reconcile_count(page_id) == 3

        with db_session.connection_context():
            assert Page.get_by_id(page_id).post_count == 3

    @pytest.mark.asyncio
    async def test_reconcile_unknown_owner(self, pages, db_session):
        with pytest.raises(PersistFailure):
            await pages.reconcile_count("nobody")
