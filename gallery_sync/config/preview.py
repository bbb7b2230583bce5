from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ._validators import parse_positive_float, validate_base_url


class PreviewConfig(BaseModel):
    """Blur placeholder derivation through the CDN image transform."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cdn_base_url: str = Field(default="", validation_alias="PREVIEW_CDN_BASE_URL")
    width: int = Field(default=70, validation_alias="PREVIEW_WIDTH")
    quality: int = Field(default=70, validation_alias="PREVIEW_QUALITY")
    blur: int = Field(default=3, validation_alias="PREVIEW_BLUR")
    timeout: float = Field(default=15.0, validation_alias="PREVIEW_TIMEOUT")

    @field_validator("cdn_base_url", mode="before")
    @classmethod
    def _validate_cdn_base_url(cls, value: Any) -> str:
        return validate_base_url(value, name="Preview CDN base URL")

    @field_validator("width", "quality", "blur", mode="before")
    @classmethod
    def _validate_transform_int(cls, value: Any, info: ValidationInfo) -> int:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = int(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"Preview {info.field_name} must be a valid integer"
            raise ValueError(msg) from exc
        upper = 250 if info.field_name == "blur" else 100 if info.field_name == "quality" else 2000
        if parsed <= 0 or parsed > upper:
            msg = f"Preview {info.field_name} must be between 1 and {upper}"
            raise ValueError(msg)
        return parsed

    @field_validator("timeout", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        return parse_positive_float(value, default=15.0, name="Preview timeout", maximum=300)
