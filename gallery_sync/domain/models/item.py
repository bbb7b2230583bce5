"""Item domain model.

Pages and posts share one shape as far as syncing is concerned: an ordered
record with an optional client-side correlation id and an opaque payload.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

TEMP_ID_PREFIX = "temp-"

# Payload fields a draft may carry to the store; everything else is sync state.
PAYLOAD_FIELDS = (
    "title",
    "description",
    "thumbnail",
    "blur_data_url",
    "is_private",
    "is_public",
    "content_type",
    "content",
)

_SERVER_HEIC_TYPES = frozenset({"image/heic", "image/heif"})
_SERVER_HEIC_SUFFIXES = (".heic", ".heif")


class CollectionKind(str, Enum):
    """What a collection holds."""

    PAGES = "pages"
    POSTS = "posts"


class StagingState(str, Enum):
    """Progress of a multi-step create/edit, for UI feedback only."""

    NONE = "none"
    UPLOADING = "uploading"
    DERIVING_PREVIEW = "deriving_preview"


@dataclass(frozen=True)
class CollectionRef:
    """Identifies one collection view.

    ``key`` is the parent the items live in (a user id for pages, a page id
    for posts); its denormalized child counter is what the drain hook
    repairs. ``owner_id`` is the user whose asset folder uploads go to.
    """

    kind: CollectionKind
    key: str
    owner_id: str

    @property
    def label(self) -> str:
        return "page" if self.kind is CollectionKind.PAGES else "post"


@dataclass(frozen=True)
class PendingAsset:
    """A file picked by the user that still has to be uploaded."""

    filename: str
    content_type: str
    data: bytes

    @property
    def needs_server_preview(self) -> bool:
        """HEIC/HEIF cannot be decoded client-side, so the CDN derives the blur."""
        if self.content_type.lower() in _SERVER_HEIC_TYPES:
            return True
        return self.filename.lower().endswith(_SERVER_HEIC_SUFFIXES)


@dataclass
class Item:
    """A page or a post as seen by the local view."""

    id: str | None
    order_index: int = 0
    client_id: str | None = None
    is_optimistic: bool = False
    staging_state: StagingState = StagingState.NONE
    collection_key: str | None = None
    title: str = ""
    description: str = ""
    thumbnail: str = ""
    blur_data_url: str = ""
    slug: str | None = None
    is_private: bool = False
    is_public: bool = False
    content_type: str | None = None
    content: str | None = None
    created_at: datetime | None = None

    @property
    def is_persisted(self) -> bool:
        """True once the store has assigned a real id."""
        return bool(self.id) and not str(self.id).startswith(TEMP_ID_PREFIX)

    def with_changes(self, **changes: Any) -> Item:
        """Return a shallow copy with ``changes`` applied.

        Raises:
            ValueError: If a change names a field Item does not have.
        """
        unknown = set(changes) - _ITEM_FIELD_NAMES
        if unknown:
            raise ValueError(f"Unknown item fields: {sorted(unknown)}")
        return dataclasses.replace(self, **changes)

    def payload(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in PAYLOAD_FIELDS}


_ITEM_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(Item))


@dataclass
class ItemDraft:
    """What the UI submits for a create or an edit.

    ``order_index`` is only used by edits (the reorder target); creates always
    get the next free position. ``blur_data_url`` is the client-derived
    placeholder, used unless the asset needs a server-side preview.
    """

    title: str
    description: str = ""
    thumbnail: str = ""
    blur_data_url: str = ""
    is_private: bool = False
    is_public: bool = False
    content_type: str | None = None
    content: str | None = None
    order_index: int | None = None
    pending_asset: PendingAsset | None = field(default=None, repr=False)

    @property
    def needs_server_preview(self) -> bool:
        return self.pending_asset is not None and self.pending_asset.needs_server_preview

    def payload(self) -> dict[str, Any]:
        """Serializable fields only; the pending file never reaches the store."""
        return {name: getattr(self, name) for name in PAYLOAD_FIELDS}
