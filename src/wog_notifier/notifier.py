from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence
from zoneinfo import ZoneInfo

from wog_notifier.config import AppConfig, NotificationsConfig, load_config
from wog_notifier.errors import ConfigurationError, UnrecoverableRunError
from wog_notifier.models import FeedSource, FilterContext, RunOutcome, RunResult
from wog_notifier.pipeline.ingest import ingest_sources
from wog_notifier.pipeline.notify_email import (
    build_subject,
    render_notification_html,
    send_notification_email,
)
from wog_notifier.pipeline.orchestrator import run_sources

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

Sender = Callable[[str, str, NotificationsConfig], None]


def _now_local(tz_name: str) -> datetime:
    try:
        return datetime.now(ZoneInfo(tz_name))
    except Exception:
        return datetime.now()


def setup_logging(log_dir: Path, tz_name: str) -> logging.Logger:
    log_dir.mkdir(parents=True, exist_ok=True)
    now_local = _now_local(tz_name)
    log_path = log_dir / f"run_{now_local:%Y%m%d}.log"

    logger = logging.getLogger("wog_notifier")
    logger.setLevel(logging.INFO)

    if not logger.handlers:
        fmt = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setFormatter(fmt)
        sh = logging.StreamHandler()
        sh.setFormatter(fmt)
        logger.addHandler(fh)
        logger.addHandler(sh)

    logger.info("Logging to %s", log_path)
    return logger


def build_context(config: AppConfig, now: Optional[datetime] = None) -> FilterContext:
    reference = now or datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return FilterContext(
        keywords=tuple(config.filter.keywords),
        fresh_window_min=config.filter.fresh_window_min,
        reference_instant=reference.astimezone(timezone.utc),
    )


def render_json(result: RunResult) -> str:
    return json.dumps(result.to_dict(), ensure_ascii=False)


def _collect(
    config: AppConfig,
    context: FilterContext,
    sources: Optional[Sequence[FeedSource]],
    logger: logging.Logger,
) -> RunResult:
    try:
        sources = list(sources) if sources is not None else ingest_sources(config)
        return run_sources(
            sources,
            context,
            max_workers=config.http.max_workers,
            logger=logger,
        )
    except Exception as exc:
        raise UnrecoverableRunError(f"Run failed: {exc}") from exc


def execute(
    config: AppConfig,
    *,
    want_json: bool = False,
    dry_run: bool = False,
    sources: Optional[Sequence[FeedSource]] = None,
    now: Optional[datetime] = None,
    sender: Optional[Sender] = None,
    logger: Optional[logging.Logger] = None,
) -> RunOutcome:
    """
    One stateless notifier run.

    JSON mode returns the structured result and never sends. Otherwise the
    ordered records are rendered to HTML and mailed unless `dry_run` is set.
    Configuration problems and unexpected faults come back as status 500;
    an empty result is still a 200.
    """
    logger = logger or logging.getLogger("wog_notifier")
    sender = sender or send_notification_email
    context = build_context(config, now)

    try:
        logger.info(
            "Run start: reference=%s window=%smin keywords=%s",
            context.reference_instant.isoformat(),
            context.fresh_window_min,
            len(context.keywords),
        )
        result = _collect(config, context, sources, logger)

        if want_json:
            return RunOutcome(status=200, body=render_json(result), content_type=JSON_CONTENT_TYPE)

        if result.count == 0:
            logger.info("No fresh items.")
            return RunOutcome(status=200, body="No fresh items.")

        html_body = render_notification_html(
            result.records,
            tz_name=config.timezone,
            locale_format=config.locale_format,
        )

        if dry_run:
            logger.info("Dry-run: %s items, email not sent.", result.count)
            return RunOutcome(status=200, body=f"Dry run OK. {result.count} items.")

        subject = build_subject(result.count, config.notifications.subject_prefix)
        sender(subject, html_body, config.notifications)
        logger.info("Email sent: %s items", result.count)
        return RunOutcome(status=200, body=f"Sent {result.count} items")
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return RunOutcome(status=500, body=str(exc))
    except Exception as exc:
        logger.exception("Run failed")
        return RunOutcome(status=500, body=str(exc))


def _load_settings(config_path: Optional[str]) -> AppConfig:
    path = Path(config_path).expanduser().resolve() if config_path else None
    return load_config(path)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="wog-notifier")
    parser.add_argument("--config", help="Path to YAML config.")
    parser.add_argument(
        "--format",
        choices=["html", "json"],
        default="html",
        help="json prints the structured result and never sends email.",
    )
    parser.add_argument("--dry-run", action="store_true", help="Don't send email.")
    parser.add_argument("--feeds", help="Comma-separated feed URLs (overrides config).")
    parser.add_argument("--keywords", help="Comma-separated keywords (overrides config).")
    parser.add_argument(
        "--fresh-window-min",
        type=int,
        help="Freshness window in minutes (overrides config).",
    )
    args = parser.parse_args(argv)

    settings = _load_settings(args.config)
    if args.feeds:
        settings.feeds.urls = [v.strip() for v in args.feeds.split(",") if v.strip()]
    if args.keywords:
        settings.filter.keywords = [v.strip() for v in args.keywords.split(",") if v.strip()]
    if args.fresh_window_min and args.fresh_window_min > 0:
        settings.filter.fresh_window_min = args.fresh_window_min

    logger = setup_logging(settings.paths.log_dir, settings.timezone)
    outcome = execute(
        settings,
        want_json=args.format == "json",
        dry_run=args.dry_run,
        logger=logger,
    )
    print(outcome.body)
    return 0 if outcome.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
