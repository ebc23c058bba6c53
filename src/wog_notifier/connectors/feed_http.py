from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import requests

from wog_notifier.errors import SourceFetchError
from wog_notifier.models import RawPayload


@dataclass
class FeedHttpClient:
    user_agent: str = "wog-notifier/1.3 (+https://github.com/wog-notifier)"
    timeout_s: int = 30
    session: Any = field(default_factory=requests.Session)

    def fetch(self, url: str) -> RawPayload:
        headers = {"User-Agent": self.user_agent}
        try:
            r = self.session.get(url, headers=headers, timeout=self.timeout_s)
        except requests.RequestException as exc:
            raise SourceFetchError(url, str(exc)) from exc

        if not r.ok:
            raise SourceFetchError(url, f"HTTP {r.status_code}")

        return RawPayload(
            source_id=url,
            body=r.text,
            content=r.content,
            content_type=r.headers.get("content-type"),
        )
