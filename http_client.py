import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from config import settings

logger = logging.getLogger(__name__)


def upstream_client(timeout: Optional[float] = None) -> httpx.AsyncClient:
    """Creates the short-lived client used for a single outbound call."""
    return httpx.AsyncClient(timeout=settings.UPSTREAM_TIMEOUT if timeout is None else timeout)


def describe_status_error(error: httpx.HTTPStatusError) -> str:
    body = error.response.text
    if len(body) > 500:
        body = body[:500] + "..."
    return f"Upstream returned {error.response.status_code}: {body}"


async def post_json(url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Any:
    """POSTs payload and returns the decoded JSON reply. Raises on non-2xx or invalid JSON."""
    logger.info(f"Forwarding request to {url}")
    logger.debug(f"Payload for {url}: {payload}")
    async with upstream_client() as client:
        response = await client.post(url, json=payload, headers=headers)
        logger.info(f"Response status from {url}: {response.status_code}")
        response.raise_for_status()
        response_data = response.json()
        logger.debug(f"Response data from {url}: {response_data}")
        return response_data


async def post_text(url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> str:
    """POSTs payload and returns the whole reply body as text. Raises on non-2xx."""
    logger.info(f"Forwarding request to {url}")
    logger.debug(f"Payload for {url}: {payload}")
    async with upstream_client() as client:
        response = await client.post(url, json=payload, headers=headers)
        logger.info(f"Response status from {url}: {response.status_code}")
        response.raise_for_status()
        return response.text


async def open_stream(
    url: str, payload: Dict[str, Any], headers: Dict[str, str]
) -> Tuple[httpx.AsyncClient, httpx.Response]:
    """
    Sends the request and returns as soon as the upstream headers arrive.

    The caller owns both returned objects and must close them once the body
    has been relayed. A non-2xx upstream status is raised here, after the
    error body has been read and everything has been closed.
    """
    logger.info(f"Opening stream to {url}")
    logger.debug(f"Payload for {url}: {payload}")
    client = upstream_client()
    try:
        request = client.build_request("POST", url, json=payload, headers=headers)
        response = await client.send(request, stream=True)
    except Exception:
        await client.aclose()
        raise

    logger.info(f"Stream connection established to {url}. Status: {response.status_code}")
    if response.status_code >= 400:
        try:
            await response.aread()
            response.raise_for_status()
        finally:
            await response.aclose()
            await client.aclose()
    return client, response
