from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ._validators import parse_positive_float, validate_base_url, validate_folder_template


class StorageConfig(BaseModel):
    """Asset storage (presigned upload) configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_base_url: str = Field(
        default="http://localhost:3000",
        validation_alias="STORAGE_API_BASE_URL",
        description="Base URL of the service issuing presigned upload URLs",
    )
    public_domain: str = Field(
        default="",
        validation_alias="STORAGE_PUBLIC_DOMAIN",
        description="Host of public asset URLs; only these are ever deleted",
    )
    upload_timeout: float = Field(default=120.0, validation_alias="STORAGE_UPLOAD_TIMEOUT")
    page_thumbnail_folder: str = Field(
        default="users/{owner_id}/page-thumbnails", validation_alias="PAGE_THUMBNAIL_FOLDER"
    )
    post_thumbnail_folder: str = Field(
        default="users/{owner_id}/post-thumbnails", validation_alias="POST_THUMBNAIL_FOLDER"
    )

    @field_validator("api_base_url", mode="before")
    @classmethod
    def _validate_api_base_url(cls, value: Any) -> str:
        url = validate_base_url(value, name="Storage API base URL")
        if not url:
            msg = "Storage API base URL is required"
            raise ValueError(msg)
        return url

    @field_validator("public_domain", mode="before")
    @classmethod
    def _validate_public_domain(cls, value: Any) -> str:
        domain = str(value or "").strip().lower()
        if "/" in domain or " " in domain:
            msg = "Storage public domain must be a bare host name"
            raise ValueError(msg)
        return domain

    @field_validator("upload_timeout", mode="before")
    @classmethod
    def _validate_upload_timeout(cls, value: Any) -> float:
        return parse_positive_float(value, default=120.0, name="Upload timeout", maximum=3600)

    @field_validator("page_thumbnail_folder", "post_thumbnail_folder", mode="before")
    @classmethod
    def _validate_folder(cls, value: Any, info: ValidationInfo) -> str:
        return validate_folder_template(value, name=info.field_name.replace("_", " "))
