import logging

import pytest

from wog_notifier.errors import SourceParseError
from wog_notifier.models import DEFAULT_TITLE, JsonItem, RawPayload, XmlItem
from wog_notifier.pipeline.mapper import to_record
from wog_notifier.pipeline.parsers import (
    detect_kind,
    parse_feed,
    parse_json_items,
    parse_xml_items,
)

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>TED</title>
    <item>
      <title>Namioty dla wojska</title>
      <link>https://ted.europa.eu/notice/1</link>
      <description>Dostawa namiotów &amp; kontenerów</description>
      <pubDate>Mon, 19 Oct 2026 11:00:00 GMT</pubDate>
    </item>
    <item>
      <title></title>
      <link>notice-2</link>
      <description>See https://ted.europa.eu/notice/2 for details</description>
      <dc:date>2026-10-19T10:00:00Z</dc:date>
    </item>
  </channel>
</rss>
"""

ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Tenders</title>
  <entry>
    <title>Container HVAC</title>
    <link rel="self" href="https://example.com/self/1"/>
    <link rel="alternate" href="https://example.com/tender/1"/>
    <id>urn:uuid:1</id>
    <summary>Air conditioning for containers</summary>
    <updated>2026-10-19T11:15:00Z</updated>
  </entry>
  <entry>
    <title>Heater supply</title>
    <id>https://example.com/tender/2</id>
    <published>2026-10-19T11:20:00Z</published>
    <updated>2026-10-19T11:40:00Z</updated>
  </entry>
</feed>
"""


def test_detect_kind_by_hint_or_body():
    assert detect_kind("<rss/>", "application/json; charset=utf-8") == "json"
    assert detect_kind('  {"data": []}', None) == "json"
    assert detect_kind('  {"data": []}', "text/xml") == "json"
    assert detect_kind("<rss/>", "application/rss+xml") == "xml"
    assert detect_kind("[1, 2]", None) == "xml"


def test_parse_rss_items():
    items = parse_xml_items(RSS)
    assert len(items) == 2
    assert items[0].get("title") == "Namioty dla wojska"
    assert items[0].get("summary") == "Dostawa namiotów & kontenerów"
    assert items[0].get("published") == "Mon, 19 Oct 2026 11:00:00 GMT"
    assert items[1].get("title") == ""
    assert items[1].get("updated") == "2026-10-19T10:00:00Z"


def test_parse_atom_entries_prefers_alternate_link():
    items = parse_xml_items(ATOM)
    assert len(items) == 2
    assert items[0].get("link") == "https://example.com/tender/1"
    assert items[0].get("id") == "urn:uuid:1"
    assert items[1].get("id") == "https://example.com/tender/2"


def test_unknown_xml_root_yields_no_items():
    assert parse_xml_items("<html><body>maintenance</body></html>") == []
    assert parse_xml_items("<rss version='2.0'></rss>") == []


def test_malformed_xml_raises_parse_error():
    with pytest.raises(SourceParseError):
        parse_xml_items("<rss><channel>", "https://feed")


def test_truncated_feed_keeps_recovered_entries(caplog):
    logger = logging.getLogger("test_parsers")
    with caplog.at_level(logging.WARNING, logger="test_parsers"):
        items = parse_xml_items(
            "<rss><channel><item><title>Tent supply</title></item><item>", "https://feed", logger=logger
        )
    assert items[0].get("title") == "Tent supply"
    assert "Malformed feed from https://feed" in caplog.text


def test_parse_json_collection_fields():
    assert len(parse_json_items('{"opportunitiesData": [{"title": "a"}], "data": []}')) == 1
    assert len(parse_json_items('{"data": [{"title": "a"}, {"title": "b"}, 3]}')) == 2
    assert parse_json_items('{"totalRecords": 0}') == []
    assert parse_json_items('{"data": {"title": "a"}}') == []


def test_invalid_json_degrades_to_no_items():
    assert parse_json_items("{not json") == []
    kind, items = parse_feed(RawPayload("sam", "{broken", "application/json"))
    assert kind == "json"
    assert items == []


def test_rss_record_mapping():
    first, second = [to_record(i, "ted") for i in parse_xml_items(RSS)]
    assert first.title == "Namioty dla wojska"
    assert first.link == "https://ted.europa.eu/notice/1"
    assert first.published_at == "Mon, 19 Oct 2026 11:00:00 GMT"
    assert first.source_id == "ted"

    assert second.title == DEFAULT_TITLE
    assert second.link == "https://ted.europa.eu/notice/2"
    assert second.published_at == "2026-10-19T10:00:00Z"


def test_atom_record_mapping_uses_id_and_published_chain():
    first, second = [to_record(i, "atom") for i in parse_xml_items(ATOM)]
    assert first.link == "https://example.com/tender/1"
    assert first.summary == "Air conditioning for containers"
    assert first.published_at == "2026-10-19T11:15:00Z"
    assert second.link == "https://example.com/tender/2"
    assert second.published_at == "2026-10-19T11:20:00Z"


def test_xml_link_falls_back_to_empty():
    record = to_record(XmlItem(fields={"title": "x", "id": "abc-123"}), "s")
    assert record.link == ""


def test_json_record_mapping():
    item = JsonItem(
        data={
            "title": "Tent procurement",
            "uiLink": "https://sam.gov/opp/1/view",
            "description": "container HVAC",
            "placeOfPerformance": {"country": {"code": "POL", "name": "Poland"}},
            "postedDate": "2026-10-19",
        }
    )
    record = to_record(item, "sam")
    assert record.link == "https://sam.gov/opp/1/view"
    assert record.summary == "container HVAC Poland"
    assert record.published_at == "2026-10-19"


def test_json_record_mapping_fallbacks():
    item = JsonItem(
        data={
            "url": "sam.gov/opp/2",
            "description": "Details at HTTPS://sam.gov/opp/2 now",
            "placeOfPerformance": {"country": "DE"},
            "publishDate": "",
            "modifiedDate": "2026-10-19T11:00:00Z",
        }
    )
    record = to_record(item, "sam")
    assert record.title == DEFAULT_TITLE
    assert record.link == ""
    assert record.summary == "Details at HTTPS://sam.gov/opp/2 now DE"
    assert record.published_at == "2026-10-19T11:00:00Z"


def test_scheme_check_is_case_insensitive():
    record = to_record(JsonItem(data={"title": "t", "uiLink": "HTTP://Example.com/x"}), "s")
    assert record.link == "HTTP://Example.com/x"


MEDIA_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <item>
      <media:title>thumbnail caption</media:title>
      <title>Tent procurement</title>
      <link>https://ted.europa.eu/notice/3</link>
      <pubDate>Mon, 19 Oct 2026 11:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""


def test_namespaced_media_title_does_not_replace_item_title():
    items = parse_xml_items(MEDIA_RSS)
    assert len(items) == 1
    record = to_record(items[0], "ted")
    assert record.title == "Tent procurement"
    assert record.link == "https://ted.europa.eu/notice/3"


def test_xml_bytes_follow_their_encoding_declaration():
    body = MEDIA_RSS.replace("UTF-8", "ISO-8859-2").replace("Tent procurement", "Maszt oświetleniowy")
    items = parse_xml_items(body.encode("iso-8859-2"))
    assert items[0].get("title") == "Maszt oświetleniowy"
