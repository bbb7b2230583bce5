"""Asset storage adapter (presigned uploads)."""

from gallery_sync.adapters.storage.client import HttpAssetStorage

__all__ = ["HttpAssetStorage"]
