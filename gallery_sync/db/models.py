"""Peewee ORM models for the gallery database."""

from __future__ import annotations

import datetime as _dt
import uuid
from typing import Any

import peewee

from gallery_sync.core.time_utils import utc_now

# A proxy that will be initialised with the concrete database instance at runtime.
database_proxy: peewee.Database = peewee.DatabaseProxy()


def _utcnow() -> _dt.datetime:
    return utc_now()


def _new_id() -> str:
    """Opaque store-assigned id, never starting with the temporary prefix."""
    return uuid.uuid4().hex


class BaseModel(peewee.Model):
    """Base Peewee model bound to the lazily initialised database proxy."""

    def save(self, *args: Any, **kwargs: Any) -> int:
        if hasattr(self, "updated_at"):
            self.updated_at = _utcnow()
        return super().save(*args, **kwargs)

    class Meta:
        database = database_proxy
        legacy_table_names = False


class User(BaseModel):
    id = peewee.TextField(primary_key=True)
    username = peewee.TextField(null=True)
    page_count = peewee.IntegerField(default=0)  # denormalized, repaired on drain
    created_at = peewee.DateTimeField(default=_utcnow)
    updated_at = peewee.DateTimeField(default=_utcnow)

    class Meta:
        table_name = "users"


class Page(BaseModel):
    """A titled gallery page owned by a user."""

    id = peewee.TextField(primary_key=True, default=_new_id)
    user = peewee.ForeignKeyField(User, backref="pages", on_delete="CASCADE")
    title = peewee.TextField()
    description = peewee.TextField(default="")
    thumbnail = peewee.TextField(default="")
    blur_data_url = peewee.TextField(default="")
    slug = peewee.TextField()
    order_index = peewee.IntegerField(default=0)
    client_id = peewee.TextField(null=True)
    is_private = peewee.BooleanField(default=False)
    is_public = peewee.BooleanField(default=False)
    post_count = peewee.IntegerField(default=0)  # denormalized, repaired on drain
    created_at = peewee.DateTimeField(default=_utcnow)
    updated_at = peewee.DateTimeField(default=_utcnow)

    class Meta:
        table_name = "pages"
        indexes = (
            (("user", "slug"), True),  # Unique slug per user
            (("user", "order_index"), False),
            (("client_id",), False),
        )


class Post(BaseModel):
    """One entry on a page; ``content`` holds a file URL when ``content_type`` is "file"."""

    id = peewee.TextField(primary_key=True, default=_new_id)
    page = peewee.ForeignKeyField(Page, backref="posts", on_delete="CASCADE")
    title = peewee.TextField()
    description = peewee.TextField(default="")
    thumbnail = peewee.TextField(default="")
    blur_data_url = peewee.TextField(default="")
    slug = peewee.TextField()
    order_index = peewee.IntegerField(default=0)
    client_id = peewee.TextField(null=True)
    content_type = peewee.TextField(null=True)
    content = peewee.TextField(null=True)
    created_at = peewee.DateTimeField(default=_utcnow)
    updated_at = peewee.DateTimeField(default=_utcnow)

    class Meta:
        table_name = "posts"
        indexes = (
            (("page", "slug"), True),  # Unique slug per page
            (("page", "order_index"), False),
            (("client_id",), False),
        )


ALL_MODELS: tuple[type[BaseModel], ...] = (User, Page, Post)
