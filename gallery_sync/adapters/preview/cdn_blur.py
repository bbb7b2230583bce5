"""Blur placeholders derived by the CDN image transform."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx

from gallery_sync.core.logging_utils import truncate_log_content

if TYPE_CHECKING:
    from typing import Self

    from gallery_sync.config import PreviewConfig

logger = logging.getLogger(__name__)


class CdnBlurPreviewService:
    """Fetches a tiny blurred JPEG of an uploaded image as a data URL.

    Used for formats the client cannot decode itself (HEIC). The transform is
    requested from ``cdn_base_url`` when set, otherwise from the asset's own
    origin.
    """

    def __init__(
        self,
        *,
        cdn_base_url: str = "",
        width: int = 70,
        quality: int = 70,
        blur: int = 3,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cdn_base_url = cdn_base_url.rstrip("/")
        self.width = width
        self.quality = quality
        self.blur = blur
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(
        cls, config: PreviewConfig, *, client: httpx.AsyncClient | None = None
    ) -> CdnBlurPreviewService:
        return cls(
            cdn_base_url=config.cdn_base_url,
            width=config.width,
            quality=config.quality,
            blur=config.blur,
            timeout=config.timeout,
            client=client,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def transform_url(self, url: str) -> str | None:
        """CDN URL of the blurred variant of ``url``, or None if ``url`` is not absolute."""
        parsed = urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            return None
        base = self.cdn_base_url or f"{parsed.scheme}://{parsed.netloc}"
        options = f"width={self.width},quality={self.quality},blur={self.blur},format=jpeg"
        return f"{base}/cdn-cgi/image/{options}{parsed.path}"

    async def derive_preview(self, url: str) -> str | None:
        """Return ``data:image/jpeg;base64,...`` or None when anything goes wrong."""
        if not url:
            return None
        blur_url = self.transform_url(url)
        if blur_url is None:
            logger.warning("preview_source_not_absolute", extra={"url": url})
            return None
        try:
            response = await self.client.get(blur_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("preview_derivation_failed", extra={"url": url, "error": str(exc)})
            return None

        encoded = base64.b64encode(response.content).decode("ascii")
        logger.debug(
            "preview_derived",
            extra={"url": truncate_log_content(url, max_length=120), "bytes": len(response.content)},
        )
        return f"data:image/jpeg;base64,{encoded}"
