"""In-memory object URLs for finalized recordings."""

import logging
import uuid
from typing import Dict, Optional

from ..models.capture import MediaPayload

logger = logging.getLogger(__name__)

OBJECT_URL_PREFIX = "blob:recordrtc/"

_object_urls: Dict[str, MediaPayload] = {}


def create_object_url(payload: MediaPayload) -> str:
    """Register a payload and return a URL that resolves to it."""
    url = f"{OBJECT_URL_PREFIX}{uuid.uuid4()}"
    _object_urls[url] = payload
    logger.debug(f"Created object URL {url} ({payload.size} bytes)")
    return url


def resolve_object_url(url: str) -> Optional[MediaPayload]:
    return _object_urls.get(url)


def revoke_object_url(url: str) -> None:
    if _object_urls.pop(url, None) is not None:
        logger.debug(f"Revoked object URL {url}")


def is_object_url(url: str) -> bool:
    return url.startswith(OBJECT_URL_PREFIX)
