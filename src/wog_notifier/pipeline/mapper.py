from __future__ import annotations

import re
from typing import Any, Iterable

from wog_notifier.models import DEFAULT_TITLE, CanonicalRecord, JsonItem, XmlItem

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_URL_IN_TEXT = re.compile(r"https?://\S+")


def _scalar(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    if value is None:
        return ""
    if isinstance(value, dict):
        # SAM.gov nests country as {"code": "POL", "name": "Poland"}
        return _scalar(value.get("name") or value.get("code"))
    return str(value).strip()


def _first_nonempty(item, candidates: Iterable[str]) -> str:
    for name in candidates:
        value = _scalar(item.get(name))
        if value:
            return value
    return ""


def safe_link(candidate: str, summary: str) -> str:
    if candidate and _ABSOLUTE_URL.match(candidate):
        return candidate
    match = _URL_IN_TEXT.search(summary or "")
    return match.group(0) if match else ""


def _country(item: JsonItem) -> str:
    place = item.get("placeOfPerformance")
    if not isinstance(place, dict):
        return ""
    return _scalar(place.get("country"))


def xml_item_to_record(item: XmlItem, source_id: str) -> CanonicalRecord:
    summary = _first_nonempty(item, XmlItem.SUMMARY)
    return CanonicalRecord(
        title=_first_nonempty(item, XmlItem.TITLE) or DEFAULT_TITLE,
        link=safe_link(_first_nonempty(item, XmlItem.LINK), summary),
        summary=summary,
        published_at=_first_nonempty(item, XmlItem.PUBLISHED),
        source_id=source_id,
    )


def json_item_to_record(item: JsonItem, source_id: str) -> CanonicalRecord:
    summary = " ".join([_first_nonempty(item, JsonItem.DESCRIPTION), _country(item)]).strip()
    return CanonicalRecord(
        title=_first_nonempty(item, JsonItem.TITLE) or DEFAULT_TITLE,
        link=safe_link(_first_nonempty(item, JsonItem.LINK), summary),
        summary=summary,
        published_at=_first_nonempty(item, JsonItem.PUBLISHED),
        source_id=source_id,
    )


def to_record(item, source_id: str) -> CanonicalRecord:
    if isinstance(item, JsonItem):
        return json_item_to_record(item, source_id)
    if isinstance(item, XmlItem):
        return xml_item_to_record(item, source_id)
    raise TypeError(f"Unsupported raw item: {type(item).__name__}")
