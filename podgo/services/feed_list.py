"""Loading the input list of feed URLs."""

import json
import logging
from pathlib import Path

from podgo.models.errors import FeedListError

logger = logging.getLogger(__name__)


def load_feed_urls(path: str | Path) -> list[str]:
    """Read a JSON array of feed URL strings.

    Blank entries are dropped, as are exact duplicates (first occurrence wins).

    Args:
        path: Path to the JSON file

    Returns:
        Feed URLs in file order

    Raises:
        FeedListError: If the file cannot be read or is not a JSON array of strings
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise FeedListError(f"Cannot read feed list {path}: {exc}") from exc

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise FeedListError(f"Feed list {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise FeedListError(f"Feed list {path} must be a JSON array of URLs")

    urls: list[str] = []
    seen: set[str] = set()
    for position, value in enumerate(data):
        if not isinstance(value, str):
            raise FeedListError(
                f"Feed list {path} entry {position} is not a string: {value!r}"
            )
        url = value.strip()
        if not url:
            continue
        if url in seen:
            logger.debug(f"Dropping duplicate feed URL: {url}")
            continue
        seen.add(url)
        urls.append(url)

    dropped = len(data) - len(urls)
    if dropped:
        logger.info(f"Ignored {dropped} blank or duplicate feed URL(s)")
    return urls
