from gallery_sync.domain.models.item import (
    CollectionKind,
    CollectionRef,
    Item,
    ItemDraft,
    PendingAsset,
    StagingState,
)

__all__ = [
    "CollectionKind",
    "CollectionRef",
    "Item",
    "ItemDraft",
    "PendingAsset",
    "StagingState",
]
