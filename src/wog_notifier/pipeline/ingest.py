from __future__ import annotations

from functools import partial
from typing import Iterable, List, Optional

from wog_notifier.config import AppConfig, load_config
from wog_notifier.connectors.feed_http import FeedHttpClient
from wog_notifier.models import FeedSource


def build_sources(
    urls: Iterable[str],
    client: FeedHttpClient,
) -> List[FeedSource]:
    return [FeedSource(source_id=url, fetch=partial(client.fetch, url)) for url in urls]


def ingest_sources(
    config: AppConfig | None = None,
    client: Optional[FeedHttpClient] = None,
) -> List[FeedSource]:
    settings = config or load_config()
    client = client or FeedHttpClient(
        user_agent=settings.http.user_agent,
        timeout_s=settings.http.timeout_s,
    )
    return build_sources(settings.feeds.urls, client)
