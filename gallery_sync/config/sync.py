from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ._validators import parse_bool


class SyncConfig(BaseModel):
    """Which corrective passes run when a mutation queue drains."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    reindex_on_drain: bool = Field(default=True, validation_alias="SYNC_REINDEX_ON_DRAIN")
    reconcile_count_on_drain: bool = Field(
        default=True, validation_alias="SYNC_RECONCILE_COUNT_ON_DRAIN"
    )
    refresh_on_drain: bool = Field(default=True, validation_alias="SYNC_REFRESH_ON_DRAIN")

    @field_validator(
        "reindex_on_drain", "reconcile_count_on_drain", "refresh_on_drain", mode="before"
    )
    @classmethod
    def _validate_flag(cls, value: Any, info: ValidationInfo) -> bool:
        return parse_bool(value, default=cls.model_fields[info.field_name].default)
