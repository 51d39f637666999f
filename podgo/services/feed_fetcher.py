"""Feed fetching and parsing.

Downloads a feed with httpx, parses it with feedparser in a worker thread
and maps the result onto the value objects in ``podgo.models.feeds``.

feedparser folds ``itunes:summary``, ``itunes:subtitle`` and ``itunes:author``
into the same keys as plain RSS elements, so iTunes fields are read from the
raw XML when it is well-formed. Malformed feeds that feedparser still accepts
fall back to the feedparser keys.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional
from xml.etree.ElementTree import Element, ParseError

import feedparser  # type: ignore[import-untyped]
import httpx
from defusedxml.ElementTree import fromstring as safe_fromstring

from podgo.config import settings
from podgo.models.errors import FetchError
from podgo.models.feeds import (
    FeedEnclosure,
    FeedOwner,
    ItunesFeedExtension,
    ItunesItemExtension,
    ParsedFeed,
    ParsedItem,
)

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 10.0

ITUNES_NAMESPACES = frozenset(
    {
        "http://www.itunes.com/dtds/podcast-1.0.dtd",
        "http://example.com/dtds/podcast-1.0.dtd",
    }
)


async def fetch_feed(
    url: str,
    *,
    timeout: float = DEFAULT_FETCH_TIMEOUT,
    client: Optional[httpx.AsyncClient] = None,
) -> ParsedFeed:
    """Fetch and parse one feed under an absolute timeout.

    Args:
        url: Feed URL to fetch
        timeout: Seconds allowed for download and parse together
        client: Optional shared HTTP client; a short-lived one is created otherwise

    Returns:
        ParsedFeed whose ``self_link`` falls back to ``url``

    Raises:
        FetchError: On non-http(s) URLs, HTTP/transport errors, timeout, or
            content that is not a recognisable feed
    """
    if not url.startswith(("http://", "https://")):
        raise FetchError(url, "not an http(s) URL")

    try:
        return await asyncio.wait_for(_download_and_parse(url, client), timeout=timeout)
    except TimeoutError as exc:
        raise FetchError(url, f"timed out after {timeout:g}s") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(url, exc) from exc


async def _download_and_parse(url: str, client: Optional[httpx.AsyncClient]) -> ParsedFeed:
    if client is None:
        async with httpx.AsyncClient(
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
        ) as owned_client:
            content = await _download(owned_client, url)
    else:
        content = await _download(client, url)

    return await asyncio.to_thread(parse_feed, content, url)


async def _download(client: httpx.AsyncClient, url: str) -> bytes:
    response = await client.get(url)
    response.raise_for_status()
    return response.content


def parse_feed(content: bytes | str, url: str) -> ParsedFeed:
    """Parse raw feed content into a ParsedFeed.

    Args:
        content: Raw XML
        url: The URL the content was fetched from

    Returns:
        ParsedFeed

    Raises:
        FetchError: If feedparser does not recognise the content as a feed
    """
    parsed = feedparser.parse(content)

    if not parsed.get("version"):
        cause = parsed.get("bozo_exception") or "unrecognised feed format"
        raise FetchError(url, cause)

    if parsed.bozo:
        logger.warning(f"Feed parse warning for {url}: {parsed.bozo_exception}")

    channel = parsed.feed
    scan = _scan_itunes_elements(content, expected_items=len(parsed.entries))
    if scan is None:
        has_itunes = _declares_itunes(parsed.get("namespaces", {})) or _has_itunes_keys(channel)
        feed_itunes = _feed_itunes(channel) if has_itunes else None
        items = tuple(_parse_item(entry, _item_itunes(entry, has_itunes)) for entry in parsed.entries)
    else:
        channel_elements, item_elements = scan
        has_itunes = _declares_itunes(parsed.get("namespaces", {})) or bool(channel_elements)
        feed_itunes = _feed_itunes_from_elements(channel_elements) if has_itunes else None
        items = tuple(
            _parse_item(entry, _item_itunes_from_elements(elements))
            for entry, elements in zip(parsed.entries, item_elements)
        )

    return ParsedFeed(
        url=url,
        self_link=_self_link(channel) or url,
        title=channel.get("title", ""),
        link=channel.get("link", ""),
        description=channel.get("description", ""),
        categories=_categories(channel),
        published=_parse_struct_time(channel.get("published_parsed")),
        items=items,
        itunes=feed_itunes,
    )


def _declares_itunes(namespaces: dict[str, str]) -> bool:
    return any(uri.lower() in ITUNES_NAMESPACES for uri in namespaces.values())


def _has_itunes_keys(node: dict[str, Any]) -> bool:
    return any(key.startswith("itunes_") for key in node.keys())


def _self_link(channel: dict[str, Any]) -> str:
    """Return the atom:link rel="self" href, or an empty string."""
    for link in channel.get("links", []):
        if link.get("rel") == "self" and link.get("href"):
            return link["href"]
    return ""


def _categories(channel: dict[str, Any]) -> tuple[str, ...]:
    """Collect category terms (RSS and iTunes) without duplicates, in feed order."""
    seen: dict[str, None] = {}
    for tag in channel.get("tags", []):
        term = (tag.get("term") or "").strip()
        if term:
            seen.setdefault(term, None)
    return tuple(seen)


def _parse_struct_time(value: Any) -> Optional[datetime]:
    """Convert feedparser's UTC struct_time into a naive UTC datetime."""
    if not value:
        return None
    try:
        return datetime(*value[:6])
    except (TypeError, ValueError):
        return None


def _image_href(node: dict[str, Any]) -> str:
    image = node.get("image")
    if isinstance(image, dict):
        return image.get("href", "") or ""
    return ""


def _scan_itunes_elements(
    content: bytes | str, expected_items: int
) -> Optional[tuple[dict[str, str], list[dict[str, str]]]]:
    """Collect iTunes elements of the channel and of each item from the raw XML.

    Returns None when the XML is not well-formed or its items do not line up
    with feedparser's entries.
    """
    try:
        root = safe_fromstring(content)
    except (ParseError, ValueError) as exc:
        logger.debug(f"Raw XML scan unavailable, using feedparser keys: {exc}")
        return None

    channel = next((node for node in root.iter() if _local_name(node) == "channel"), root)
    items = [node for node in root.iter() if _local_name(node) in ("item", "entry")]
    if len(items) != expected_items:
        return None
    return _itunes_children(channel), [_itunes_children(item) for item in items]


def _split_tag(node: Element) -> tuple[str, str]:
    tag = node.tag
    if not isinstance(tag, str):
        return "", ""
    if tag.startswith("{"):
        uri, _, local = tag[1:].partition("}")
        return uri, local
    return "", tag


def _local_name(node: Element) -> str:
    return _split_tag(node)[1]


def _is_itunes(node: Element) -> bool:
    return _split_tag(node)[0].lower() in ITUNES_NAMESPACES


def _itunes_children(node: Element) -> dict[str, str]:
    """Map iTunes child element names to their text (``href`` for images).

    Owner name and email are flattened to ``owner_name`` and ``owner_email``.
    """
    found: dict[str, str] = {}
    for child in node:
        if not _is_itunes(child):
            continue
        name = _local_name(child)
        if name == "image":
            found.setdefault("image", (child.get("href") or "").strip())
        elif name == "owner":
            found.setdefault("owner", "")
            for part in child:
                if _is_itunes(part):
                    found.setdefault(f"owner_{_local_name(part)}", (part.text or "").strip())
        else:
            found.setdefault(name, (child.text or "").strip())
    return found


def _feed_itunes_from_elements(elements: dict[str, str]) -> ItunesFeedExtension:
    owner = None
    if elements.get("owner_name") or elements.get("owner_email"):
        owner = FeedOwner(
            name=elements.get("owner_name", ""),
            email=elements.get("owner_email", ""),
        )
    return ItunesFeedExtension(
        author=elements.get("author", ""),
        subtitle=elements.get("subtitle", ""),
        image=elements.get("image", ""),
        owner=owner,
    )


def _item_itunes_from_elements(elements: dict[str, str]) -> Optional[ItunesItemExtension]:
    if not elements:
        return None
    return ItunesItemExtension(
        duration=elements.get("duration", ""),
        summary=elements.get("summary", ""),
        subtitle=elements.get("subtitle", ""),
        image=elements.get("image", ""),
    )


def _feed_itunes(channel: dict[str, Any]) -> ItunesFeedExtension:
    """Channel iTunes block from feedparser keys, for feeds that are not well-formed XML."""
    publisher = channel.get("publisher_detail")
    owner = None
    if isinstance(publisher, dict) and (publisher.get("name") or publisher.get("email")):
        owner = FeedOwner(name=publisher.get("name", ""), email=publisher.get("email", ""))

    # RSS <description> also lands in "subtitle"
    subtitle = channel.get("subtitle", "")
    if subtitle == channel.get("description", ""):
        subtitle = ""

    return ItunesFeedExtension(
        author=channel.get("author", ""),
        subtitle=subtitle,
        image=_image_href(channel),
        owner=owner,
    )


def _item_itunes(entry: dict[str, Any], feed_has_itunes: bool) -> Optional[ItunesItemExtension]:
    """Item iTunes block from feedparser keys.

    ``summary`` is left empty: feedparser stores ``itunes:summary`` and RSS
    ``<description>`` under the same key.
    """
    has_block = _has_itunes_keys(entry) or (
        feed_has_itunes
        and bool(entry.get("subtitle") or entry.get("author") or _image_href(entry))
    )
    if not has_block:
        return None
    return ItunesItemExtension(
        duration=str(entry.get("itunes_duration", "") or ""),
        subtitle=entry.get("subtitle", ""),
        image=_image_href(entry),
    )


def _parse_item(entry: dict[str, Any], itunes: Optional[ItunesItemExtension]) -> ParsedItem:
    content = ""
    if entry.get("content"):
        content = entry["content"][0].get("value", "")

    return ParsedItem(
        guid=entry.get("id", entry.get("link", "")),
        title=entry.get("title", ""),
        published=_parse_struct_time(entry.get("published_parsed")),
        description=entry.get("description", ""),
        content=content,
        enclosures=tuple(
            FeedEnclosure(
                url=enclosure.get("href", enclosure.get("url", "")),
                length=str(enclosure.get("length", "") or ""),
                type=enclosure.get("type", ""),
            )
            for enclosure in entry.get("enclosures", [])
        ),
        itunes=itunes,
    )
