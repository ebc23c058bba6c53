from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional, Sequence

from wog_notifier.models import (
    CanonicalRecord,
    FeedSource,
    FilterContext,
    RawPayload,
    RunResult,
    SourceReport,
)
from wog_notifier.pipeline.dedup import dedup_and_sort
from wog_notifier.pipeline.filter import keep_record
from wog_notifier.pipeline.mapper import to_record
from wog_notifier.pipeline.parsers import parse_feed


def process_payload(
    payload: RawPayload,
    context: FilterContext,
    report: Optional[SourceReport] = None,
    logger: Optional[logging.Logger] = None,
) -> List[CanonicalRecord]:
    kind, items = parse_feed(payload, logger=logger)
    records = [to_record(item, payload.source_id) for item in items]
    kept = [r for r in records if keep_record(r, context)]
    if report is not None:
        report.item_count = len(records)
        report.kept_count = len(kept)
    if logger:
        logger.info(
            "Source %s (%s): %s items, %s kept",
            payload.source_id,
            kind,
            len(records),
            len(kept),
        )
    return kept


def _process_isolated(
    payload: RawPayload,
    context: FilterContext,
    logger: Optional[logging.Logger] = None,
) -> tuple[List[CanonicalRecord], SourceReport]:
    report = SourceReport(source_id=payload.source_id)
    try:
        return process_payload(payload, context, report=report, logger=logger), report
    except Exception as exc:
        report.ok = False
        report.error = str(exc)
        if logger:
            logger.warning("Source %s skipped: %s", payload.source_id, exc)
        return [], report


def _finish(
    merged: Iterable[CanonicalRecord],
    reports: List[SourceReport],
    context: FilterContext,
    logger: Optional[logging.Logger] = None,
) -> RunResult:
    merged = list(merged)
    records = dedup_and_sort(merged)
    if logger:
        failed = sum(1 for r in reports if not r.ok)
        logger.info(
            "Run: %s sources (%s failed), %s kept, %s after dedup",
            len(reports),
            failed,
            len(merged),
            len(records),
        )
    return RunResult(
        generated_at=context.reference_instant,
        records=records,
        reports=reports,
    )


def run(
    payloads: Sequence[RawPayload],
    context: FilterContext,
    logger: Optional[logging.Logger] = None,
) -> RunResult:
    merged: List[CanonicalRecord] = []
    reports: List[SourceReport] = []
    for payload in payloads:
        kept, report = _process_isolated(payload, context, logger=logger)
        merged.extend(kept)
        reports.append(report)
    return _finish(merged, reports, context, logger=logger)


def run_sources(
    sources: Sequence[FeedSource],
    context: FilterContext,
    max_workers: int = 4,
    logger: Optional[logging.Logger] = None,
) -> RunResult:
    """
    Fetch every source concurrently, then process them in configured order.

    A source whose fetch raises contributes nothing; the rest of the run is
    unaffected. Output order follows `sources`, never fetch completion order.
    """
    merged: List[CanonicalRecord] = []
    reports: List[SourceReport] = []
    if not sources:
        return _finish(merged, reports, context, logger=logger)

    workers = max(1, min(max_workers, len(sources)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(src.fetch) for src in sources]

        for src, future in zip(sources, futures):
            try:
                payload = future.result()
            except Exception as exc:
                if logger:
                    logger.warning("Source %s skipped: %s", src.source_id, exc)
                reports.append(SourceReport(source_id=src.source_id, ok=False, error=str(exc)))
                continue
            kept, report = _process_isolated(payload, context, logger=logger)
            merged.extend(kept)
            reports.append(report)

    return _finish(merged, reports, context, logger=logger)
