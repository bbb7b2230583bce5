"""Pydantic models for the storage API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class UploadUrlRequest(BaseModel):
    """Request for a presigned upload URL."""

    filename: str
    content_type: str = Field(alias="contentType")
    folder: str

    model_config = {"populate_by_name": True}


class UploadUrlResponse(BaseModel):
    """Where to PUT the bytes, and the URL the asset will be served from."""

    signed_url: str = Field(alias="signedUrl")
    public_url: str = Field(alias="publicUrl")

    model_config = {"populate_by_name": True, "extra": "ignore"}


class DeleteAssetRequest(BaseModel):
    file_url: str = Field(alias="fileUrl")

    model_config = {"populate_by_name": True}
