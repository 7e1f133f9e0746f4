"""
Helpers for the buffered event stream returned by the Qwen web API.

The body is a sequence of lines; the interesting ones look like
``data: {"contents": [...]}`` and the stream ends with ``data: [DONE]``.
``iter_data_events`` is the only place that scans lines, the extractors
below consume its output.
"""

import json
import logging
import re
from typing import Any, Dict, Iterator, List
from urllib.parse import urlsplit, urlunsplit

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

URL_PATTERN = re.compile(
    r"https?://[-a-zA-Z0-9@:%._\+~#=]{2,256}\.[a-z]{2,6}\b([-a-zA-Z0-9@:%_\+.~#?&/=,]*)",
    re.IGNORECASE,
)


def iter_data_events(text: str) -> Iterator[Dict[str, Any]]:
    """Yields every JSON object carried by a data line, in stream order."""
    for line in text.splitlines():
        if not line.startswith(DATA_PREFIX):
            continue
        payload = line[len(DATA_PREFIX):].strip()
        if not payload or payload == DONE_SENTINEL:
            continue
        try:
            event = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Skipping malformed SSE line ({e}): {line[:200]}")
            continue
        if isinstance(event, dict):
            yield event
        else:
            logger.debug(f"Ignoring non-object SSE payload: {payload[:200]}")


def _contents(event: Dict[str, Any]) -> List[Dict[str, Any]]:
    contents = event.get("contents")
    if not isinstance(contents, list):
        return []
    return [c for c in contents if isinstance(c, dict)]


def extract_assistant_text(text: str) -> str:
    """Concatenates every assistant-authored content fragment, without separator."""
    result = ""
    for event in iter_data_events(text):
        for content in _contents(event):
            fragment = content.get("content")
            if content.get("role") == "assistant" and isinstance(fragment, str):
                result += fragment
    return result


def strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", parts.fragment))


def extract_image_urls(text: str, domain: str) -> List[str]:
    """
    Finds image URLs hosted under ``domain`` in the stream.

    Query strings are removed and duplicates dropped, first occurrence wins.
    """
    urls: List[str] = []
    for event in iter_data_events(text):
        joined = " ".join(
            c["content"] if isinstance(c.get("content"), str) else ""
            for c in _contents(event)
        )
        for match in URL_PATTERN.finditer(joined):
            candidate = match.group(0)
            try:
                host = urlsplit(candidate).hostname or ""
            except ValueError:
                logger.debug(f"Unparseable URL in stream: {candidate}")
                continue
            if domain not in host:
                continue
            url = strip_query(candidate)
            if url not in urls:
                urls.append(url)
    return urls
