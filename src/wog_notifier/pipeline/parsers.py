from __future__ import annotations

import html
import io
import json
import logging
from typing import List, Optional, Tuple, Union

import feedparser

from wog_notifier.errors import SourceParseError
from wog_notifier.models import FeedKind, JsonItem, RawPayload, XmlItem

RawItem = Union[XmlItem, JsonItem]

# Known top-level arrays of JSON search APIs, most specific first.
JSON_COLLECTION_FIELDS = ("opportunitiesData", "data")


def detect_kind(body: str, content_type: Optional[str]) -> FeedKind:
    if "json" in (content_type or "").lower():
        return "json"
    if (body or "").strip().startswith("{"):
        return "json"
    return "xml"


def _entry_link(entry) -> str:
    # feedparser only promotes rel="alternate" hrefs (or an RSS permalink guid) to `link`
    link = (entry.get("link") or "").strip()
    if link:
        return link
    for candidate in entry.get("links") or []:
        href = (candidate.get("href") or "").strip()
        if href:
            return href
    return ""


def _entry_content(entry) -> str:
    for block in entry.get("content") or []:
        value = (block.get("value") or "").strip()
        if value:
            return value
    return ""


def _item_from_entry(entry) -> XmlItem:
    values = {
        "title": entry.get("title"),
        "link": _entry_link(entry),
        "id": entry.get("id"),
        # sanitized markup comes back entity-escaped
        "summary": html.unescape(entry.get("summary") or ""),
        "content": html.unescape(_entry_content(entry)),
        "published": entry.get("published"),
        "updated": entry.get("updated"),
    }
    fields = {}
    for name, value in values.items():
        text = (value or "").strip()
        if text:
            fields[name] = text
    return XmlItem(fields=fields)


def parse_xml_items(
    data: Union[bytes, str],
    source_id: str = "",
    logger: Optional[logging.Logger] = None,
) -> List[XmlItem]:
    """Parse an RSS or Atom document into XmlItems.

    Bytes are decoded by feedparser from the BOM / XML declaration. A document
    that is malformed and yields no entries raises SourceParseError; one that
    is malformed but still recoverable keeps its entries with a warning.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    parsed = feedparser.parse(io.BytesIO(data))
    entries = parsed.get("entries") or []

    if parsed.get("bozo"):
        reason = parsed.get("bozo_exception")
        if not entries:
            raise SourceParseError(source_id, f"invalid feed ({reason})")
        if logger:
            logger.warning(
                "Malformed feed from %s; keeping %d entries (%s)", source_id, len(entries), reason
            )
    return [_item_from_entry(e) for e in entries]


def parse_json_items(
    body: str,
    source_id: str = "",
    logger: Optional[logging.Logger] = None,
) -> List[JsonItem]:
    try:
        data = json.loads(body)
    except (TypeError, ValueError) as exc:
        if logger:
            logger.warning("Invalid JSON from %s; treating as empty (%s)", source_id, exc)
        return []
    if not isinstance(data, dict):
        return []

    collection = None
    for key in JSON_COLLECTION_FIELDS:
        if data.get(key) is not None:
            collection = data[key]
            break
    if not isinstance(collection, list):
        return []
    return [JsonItem(data=x) for x in collection if isinstance(x, dict)]


def parse_feed(
    payload: RawPayload,
    logger: Optional[logging.Logger] = None,
) -> Tuple[FeedKind, List[RawItem]]:
    kind = detect_kind(payload.body, payload.content_type)
    if kind == "json":
        return kind, list(parse_json_items(payload.body, payload.source_id, logger=logger))
    raw = payload.content if payload.content is not None else payload.body
    return kind, list(parse_xml_items(raw, payload.source_id, logger=logger))
