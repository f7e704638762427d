import hashlib
import json
from typing import Any, Optional


def generate_etag(data: Any) -> str:
    """Content hash of a resource, ignoring its volatile ``meta`` block."""
    if hasattr(data, "model_dump"):
        payload = data.model_dump(mode="json", by_alias=True, exclude={"meta"}, exclude_none=True)
    elif isinstance(data, dict):
        payload = {k: v for k, v in data.items() if k != "meta"}
    else:
        payload = str(data)

    json_str = json.dumps(payload, sort_keys=True, default=str)
    return f'W/"{hashlib.md5(json_str.encode()).hexdigest()}"'


def _strip(tag: str) -> str:
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    return tag.strip('"')


def validate_etag(
    request_etag: Optional[str],
    resource_etag: Optional[str],
    if_match: bool = True
) -> bool:
    if not request_etag or not resource_etag:
        return True

    resource_tag = _strip(resource_etag)
    candidates = [_strip(tag) for tag in request_etag.split(",")]

    if if_match:
        # If-Match: proceed only if one of the ETags matches
        return "*" in candidates or resource_tag in candidates
    else:
        # If-None-Match: proceed only if none of the ETags match
        return "*" not in candidates and resource_tag not in candidates
