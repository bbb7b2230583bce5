from __future__ import annotations

from typing import Any
from urllib.parse import urlparse


def parse_positive_float(value: Any, *, default: float, name: str, maximum: float) -> float:
    if value in (None, ""):
        return default
    try:
        parsed = float(str(value))
    except ValueError as exc:
        msg = f"{name} must be a valid number"
        raise ValueError(msg) from exc
    if parsed <= 0:
        msg = f"{name} must be positive"
        raise ValueError(msg)
    if parsed > maximum:
        msg = f"{name} must be {maximum:g} or less"
        raise ValueError(msg)
    return parsed


def parse_bool(value: Any, *, default: bool) -> bool:
    if value in (None, ""):
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    msg = f"Invalid boolean value: {value!r}"
    raise ValueError(msg)


def validate_base_url(value: Any, *, name: str) -> str:
    url = str(value or "").strip().rstrip("/")
    if not url:
        return ""
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        msg = f"{name} must be an absolute http(s) URL"
        raise ValueError(msg)
    return url


def validate_folder_template(value: Any, *, name: str) -> str:
    template = str(value or "").strip().strip("/")
    if "{owner_id}" not in template:
        msg = f"{name} must contain the {{owner_id}} placeholder"
        raise ValueError(msg)
    if ".." in template or "\\" in template:
        msg = f"{name} contains invalid characters"
        raise ValueError(msg)
    return template
