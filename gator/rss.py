"""Fetching and parsing RSS feeds."""

from __future__ import annotations

import html
import urllib.error
import urllib.parse
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

USER_AGENT = "gator"

_ITEM_FIELDS = {"title", "link", "description", "pubDate"}
_CHANNEL_FIELDS = {"title", "link", "description"}


class FeedFetchError(Exception):
    """A feed could not be downloaded or parsed."""


@dataclass
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""


@dataclass
class RSSFeed:
    """The channel of an RSS document and its items."""

    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


def _local_name(tag: object) -> str:
    return tag.rpartition("}")[2] if isinstance(tag, str) else ""


def _direct_text(element: ET.Element) -> str:
    return "".join([element.text or ""] + [child.tail or "" for child in element])


def _fields(element: ET.Element, wanted: set[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for child in element:
        name = _local_name(child.tag)
        if name in wanted:
            values[name] = _direct_text(child)
    return values


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document, unescaping HTML entities in titles and descriptions."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise FeedFetchError(f"error in unmarshaling: {exc}") from exc

    feed = RSSFeed()
    for channel in (c for c in root if _local_name(c.tag) == "channel"):
        values = _fields(channel, _CHANNEL_FIELDS)
        feed.title = values.get("title", feed.title)
        feed.link = values.get("link", feed.link)
        feed.description = values.get("description", feed.description)
        for element in (c for c in channel if _local_name(c.tag) == "item"):
            item_values = _fields(element, _ITEM_FIELDS)
            feed.items.append(
                RSSItem(
                    title=html.unescape(item_values.get("title", "")),
                    link=item_values.get("link", ""),
                    description=html.unescape(item_values.get("description", "")),
                    pub_date=item_values.get("pubDate", ""),
                )
            )

    feed.title = html.unescape(feed.title)
    feed.description = html.unescape(feed.description)
    return feed


def fetch_feed(feed_url: str, timeout: float | None = None) -> RSSFeed:
    """Download the feed at ``feed_url`` and parse it."""
    if not feed_url:
        raise FeedFetchError("Missing URL in fetch feed")

    scheme = urllib.parse.urlsplit(feed_url).scheme.lower()
    if scheme not in ("http", "https"):
        raise FeedFetchError(f"unsupported protocol scheme {scheme!r}")
    try:
        request = urllib.request.Request(feed_url, headers={"User-Agent": USER_AGENT})
    except ValueError as exc:
        raise FeedFetchError(f"error creating request: {exc}") from exc

    options = {} if timeout is None else {"timeout": timeout}
    try:
        with urllib.request.urlopen(request, **options) as response:
            if response.status != 200:
                raise FeedFetchError(f"http status code: {response.status}")
            try:
                data = response.read()
            except OSError as exc:
                raise FeedFetchError(f"error in reading body: {exc}") from exc
    except urllib.error.HTTPError as exc:
        exc.close()
        raise FeedFetchError(f"http status code: {exc.code}") from exc
    except OSError as exc:
        raise FeedFetchError(str(exc)) from exc

    return parse_feed(data)