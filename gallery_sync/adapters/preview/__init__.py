"""Preview (blur placeholder) adapter."""

from gallery_sync.adapters.preview.cdn_blur import CdnBlurPreviewService

__all__ = ["CdnBlurPreviewService"]
