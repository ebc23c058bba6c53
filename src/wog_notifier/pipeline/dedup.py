from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from wog_notifier.models import CanonicalRecord
from wog_notifier.pipeline.filter import parse_published

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def dedupe_records(records: Iterable[CanonicalRecord]) -> list[CanonicalRecord]:
    """Keep the first record seen for each dedup key, in input order."""
    seen: set[str] = set()
    out: list[CanonicalRecord] = []
    for r in records:
        key = r.dedup_key
        if key in seen:
            continue
        seen.add(key)
        out.append(r)
    return out


def _published_sort_key(record: CanonicalRecord) -> datetime:
    return parse_published(record.published_at) or _OLDEST


def dedup_and_sort(records: Iterable[CanonicalRecord]) -> list[CanonicalRecord]:
    unique = dedupe_records(records)
    # sorted() is stable with reverse=True, so ties keep post-dedup order
    return sorted(unique, key=_published_sort_key, reverse=True)
