"""Asset storage client using presigned upload URLs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx
from pydantic import ValidationError

from gallery_sync.adapters.storage.models import (
    DeleteAssetRequest,
    UploadUrlRequest,
    UploadUrlResponse,
)
from gallery_sync.domain.exceptions.domain_exceptions import UploadFailure

if TYPE_CHECKING:
    from typing import Self

    from gallery_sync.config import StorageConfig
    from gallery_sync.domain.models.item import PendingAsset

logger = logging.getLogger(__name__)

UPLOAD_URL_PATH = "/api/storage/upload"
DELETE_PATH = "/api/storage/delete"


class HttpAssetStorage:
    """Async HTTP client for the storage API.

    An upload asks the API for a presigned URL, PUTs the bytes there and
    returns the public URL. Deletes are best-effort and only ever target
    assets served from ``public_domain``.
    """

    def __init__(
        self,
        api_base_url: str,
        *,
        public_domain: str = "",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the storage client.

        Args:
            api_base_url: Base URL of the service issuing presigned URLs
            public_domain: Host of public asset URLs
            timeout: Request timeout in seconds (uploads can be large)
            client: Pre-built client, e.g. one with a mock transport
        """
        self.api_base_url = api_base_url.rstrip("/")
        self.public_domain = public_domain.lower()
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @classmethod
    def from_config(
        cls, config: StorageConfig, *, client: httpx.AsyncClient | None = None
    ) -> HttpAssetStorage:
        return cls(
            config.api_base_url,
            public_domain=config.public_domain,
            timeout=config.upload_timeout,
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
        """The HTTP client, created on first use when none was injected."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.api_base_url, timeout=self.timeout)
        return self._client

    async def upload_asset(self, asset: PendingAsset, folder: str) -> str:
        """Upload ``asset`` into ``folder`` and return its public URL.

        Raises:
            UploadFailure: The file is empty, the API refused to sign, or the
                PUT did not succeed.
        """
        if not asset.data:
            raise UploadFailure("No file provided for upload.", details={"folder": folder})

        request = UploadUrlRequest(
            filename=asset.filename, content_type=asset.content_type, folder=folder
        )
        try:
            response = await self.client.post(
                UPLOAD_URL_PATH, json=request.model_dump(by_alias=True)
            )
            response.raise_for_status()
            urls = UploadUrlResponse.model_validate(response.json())
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            raise UploadFailure(
                "Failed to get upload URL",
                details={"filename": asset.filename, "folder": folder, "error": str(exc)},
            ) from exc

        try:
            put = await self.client.put(
                urls.signed_url,
                content=asset.data,
                headers={"Content-Type": asset.content_type},
            )
            put.raise_for_status()
        except httpx.HTTPError as exc:
            raise UploadFailure(
                "Upload to storage failed",
                details={"filename": asset.filename, "folder": folder, "error": str(exc)},
            ) from exc

        logger.info(
            "asset_uploaded",
            extra={"folder": folder, "bytes": len(asset.data), "url": urls.public_url},
        )
        return urls.public_url

    async def delete_asset(self, url: str) -> None:
        """Ask the API to delete ``url``; failures are logged, never raised."""
        if not url:
            return
        if not self._is_own_asset(url):
            logger.warning("asset_delete_skipped_foreign_url", extra={"url": url})
            return

        request = DeleteAssetRequest(file_url=url)
        try:
            response = await self.client.post(DELETE_PATH, json=request.model_dump(by_alias=True))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("asset_delete_failed", extra={"url": url, "error": str(exc)})
            return
        logger.info("asset_deleted", extra={"url": url})

    def _is_own_asset(self, url: str) -> bool:
        if not self.public_domain:
            return False
        host = (urlparse(url).hostname or "").lower()
        return host == self.public_domain or host.endswith(f".{self.public_domain}")
