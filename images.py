import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx

import http_client
from config import settings

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"


class FetchError(Exception):
    """An image reference could not be turned into base64 data."""


@dataclass(frozen=True)
class ImagePayload:
    data: str  # base64, no data-URI prefix
    content_type: str


def is_data_uri(ref: str) -> bool:
    return ref.startswith("data:")


def parse_data_uri(ref: str) -> ImagePayload:
    """Splits 'data:<mime>;base64,<payload>' without decoding the payload."""
    header, sep, data = ref.partition(",")
    if not sep:
        raise FetchError("Malformed data URI: missing ',' separator")
    mime = header[len("data:"):].split(";", 1)[0]
    return ImagePayload(data=data, content_type=mime or DEFAULT_CONTENT_TYPE)


async def fetch_image_as_base64(url: str) -> ImagePayload:
    """Downloads url and base64-encodes its body."""
    logger.info(f"Fetching image from {url}")
    try:
        async with http_client.upstream_client(timeout=settings.IMAGE_FETCH_TIMEOUT) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise FetchError(f"Image download returned {e.response.status_code}") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise FetchError(f"Image download failed: {e}") from e

    content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
    encoded = base64.b64encode(response.content).decode("ascii")
    logger.debug(f"Fetched {len(response.content)} bytes ({content_type}) from {url}")
    return ImagePayload(data=encoded, content_type=content_type)


async def resolve_image(ref: Any) -> ImagePayload:
    """Data URIs are used as is; anything else is fetched over HTTP."""
    if not isinstance(ref, str):
        raise FetchError(f"Image reference must be a string, got {type(ref).__name__}")
    if is_data_uri(ref):
        return parse_data_uri(ref)
    return await fetch_image_as_base64(ref)
