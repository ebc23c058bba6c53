from __future__ import annotations

"""
WOG Notifier - Filtering

A record is reported only when it is both on-topic and new:

- on-topic: title + summary contains at least one configured keyword, compared
  after normalize_text() on both sides (plain substring containment, so
  "tent" also hits "tents" and "contentious")
- new: the publish timestamp parses and lies inside the trailing freshness
  window that ends at the run's reference instant (both ends inclusive)

Unparsable or missing timestamps are never fresh. Future timestamps are never
fresh either.
"""

from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Iterable, Optional, Sequence  # noqa: E402

from dateutil import parser as dtparser  # noqa: E402

from wog_notifier.models import CanonicalRecord, FilterContext  # noqa: E402
from wog_notifier.pipeline.normalize import normalize_text  # noqa: E402


def parse_published(value: Optional[str]) -> Optional[datetime]:
    if not value or not str(value).strip():
        return None
    try:
        dt = dtparser.parse(str(value).strip())
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


def compile_keywords(keywords: Iterable[str]) -> list[str]:
    out: list[str] = []
    for k in keywords or []:
        norm = normalize_text(k)
        if norm.strip():
            out.append(norm)
    return out


def matches_keywords(text: Optional[str], keywords: Sequence[str]) -> bool:
    if not text:
        return False
    patterns = compile_keywords(keywords)
    if not patterns:
        return False
    haystack = normalize_text(text)
    return any(p in haystack for p in patterns)


def is_fresh(published_raw: Optional[str], context: FilterContext) -> bool:
    dt = parse_published(published_raw)
    if dt is None:
        return False
    end = context.reference_instant
    start = end - timedelta(minutes=context.fresh_window_min)
    return start <= dt <= end


def keep_record(record: CanonicalRecord, context: FilterContext) -> bool:
    return is_fresh(record.published_at, context) and matches_keywords(
        record.match_text, context.keywords
    )


def filter_records(
    records: Iterable[CanonicalRecord],
    context: FilterContext,
) -> list[CanonicalRecord]:
    return [r for r in records if keep_record(r, context)]
