"""Client-side correlation ids for optimistic creates."""

from __future__ import annotations

import uuid

from gallery_sync.core.time_utils import epoch_millis
from gallery_sync.domain.models.item import TEMP_ID_PREFIX


def new_client_id() -> str:
    """A random id that follows an item from placeholder to confirmed row."""
    return str(uuid.uuid4())


def new_temp_id(client_id: str) -> str:
    """Placeholder id, unique even for several creates in the same millisecond."""
    return f"{TEMP_ID_PREFIX}{epoch_millis()}-{client_id}"
