from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Literal, Optional, Tuple

FeedKind = Literal["xml", "json"]

DEFAULT_TITLE = "(bez tytułu)"


@dataclass(frozen=True)
class RawPayload:
    source_id: str
    body: str
    content_type: Optional[str] = None
    # undecoded response bytes; XML parsing prefers these over `body`
    content: Optional[bytes] = None


@dataclass(frozen=True)
class FeedSource:
    """A configured feed plus the capability that fetches it."""

    source_id: str
    fetch: Callable[[], RawPayload]


@dataclass(frozen=True)
class XmlItem:
    """One RSS <item> or Atom <entry>, keyed by feedparser entry field.

    Values are already reduced to a single scalar string by the parser.
    RSS <description> arrives as `summary`, <pubDate> as `published` and
    dc:date as `updated`.
    """

    fields: Dict[str, str]

    TITLE = ("title",)
    LINK = ("link", "id")
    SUMMARY = ("summary", "content")
    PUBLISHED = ("published", "updated")

    def get(self, name: str) -> str:
        return self.fields.get(name, "")


@dataclass(frozen=True)
class JsonItem:
    """One object from a JSON search result (SAM.gov style)."""

    data: Dict[str, Any]

    TITLE = ("title",)
    LINK = ("uiLink", "url")
    DESCRIPTION = ("description",)
    PUBLISHED = ("publishDate", "postedDate", "modifiedDate")

    def get(self, name: str) -> Any:
        return self.data.get(name)


@dataclass(frozen=True)
class CanonicalRecord:
    title: str
    link: str
    summary: str
    published_at: str
    source_id: str

    @property
    def dedup_key(self) -> str:
        if self.link:
            return self.link
        return f"{self.title}|{self.published_at}"

    @property
    def match_text(self) -> str:
        return f"{self.title} {self.summary}"

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "link": self.link,
            "summary": self.summary,
            "publishedAt": self.published_at,
            "sourceId": self.source_id,
        }


@dataclass(frozen=True)
class FilterContext:
    keywords: Tuple[str, ...]
    fresh_window_min: int
    reference_instant: datetime


@dataclass
class SourceReport:
    source_id: str
    ok: bool = True
    error: str = ""
    item_count: int = 0
    kept_count: int = 0


@dataclass
class RunResult:
    generated_at: datetime
    records: list[CanonicalRecord] = field(default_factory=list)
    reports: list[SourceReport] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict:
        return {
            "generatedAt": self.generated_at.replace(microsecond=0).isoformat(),
            "count": self.count,
            "items": [r.to_dict() for r in self.records],
        }


@dataclass(frozen=True)
class RunOutcome:
    status: int
    body: str
    content_type: str = "text/plain; charset=utf-8"

    @property
    def ok(self) -> bool:
        return self.status == 200
