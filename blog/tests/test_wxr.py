from __future__ import annotations

import datetime as _dt
from pathlib import Path

import pytest

from blog.schemas import CategorySource, ExportError
from blog.wxr import clean_summary, load_wxr

WXR_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
  xmlns:content="http://purl.org/rss/1.0/modules/content/"
  xmlns:wp="http://wordpress.org/export/{version}/">
<channel>
  <title>Futarigurashi</title>
  <wp:category>
    <wp:term_id>1</wp:term_id>
    <wp:category_nicename>travel</wp:category_nicename>
    <wp:category_parent></wp:category_parent>
    <wp:cat_name><![CDATA[Travel]]></wp:cat_name>
  </wp:category>
  <wp:category>
    <wp:term_id>2</wp:term_id>
    <wp:category_nicename>brazil</wp:category_nicename>
    <wp:category_parent>travel</wp:category_parent>
    <wp:cat_name><![CDATA[Brazil]]></wp:cat_name>
  </wp:category>
  <item>
    <title>Rio &amp; beaches</title>
    <content:encoded><![CDATA[<p>Sun <strong>and</strong> sand.</p><script>track()</script>]]></content:encoded>
    <wp:post_date>2013-06-01 10:00:00</wp:post_date>
    <wp:post_name>%e3%83%aa%e3%82%aa</wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>post</wp:post_type>
    <category domain="category" nicename="brazil"><![CDATA[Brazil]]></category>
    <category domain="post_tag" nicename="beach"><![CDATA[beach]]></category>
  </item>
  <item>
    <title>Rio again</title>
    <content:encoded><![CDATA[<p>Second visit</p>]]></content:encoded>
    <wp:post_date>2012-01-01 09:00:00</wp:post_date>
    <wp:post_name>%e3%83%aa%e3%82%aa</wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>post</wp:post_type>
  </item>
  <item>
    <title>Untitled slug</title>
    <content:encoded><![CDATA[]]></content:encoded>
    <wp:post_date>2014-02-02 08:00:00</wp:post_date>
    <wp:post_name></wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>post</wp:post_type>
  </item>
  <item>
    <title>Draft post</title>
    <wp:post_date>2015-01-01 00:00:00</wp:post_date>
    <wp:post_name>draft-post</wp:post_name>
    <wp:status>draft</wp:status>
    <wp:post_type>post</wp:post_type>
  </item>
  <item>
    <title>About page</title>
    <wp:post_date>2015-01-01 00:00:00</wp:post_date>
    <wp:post_name>about</wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>page</wp:post_type>
  </item>
  <item>
    <title>Broken date</title>
    <wp:post_date>0000-00-00 00:00:00</wp:post_date>
    <wp:post_name>broken-date</wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>post</wp:post_type>
  </item>
</channel>
</rss>
"""


def _write_export(tmp_path: Path, version: str = "1.2") -> Path:
    path = tmp_path / "export.xml"
    path.write_text(WXR_TEMPLATE.format(version=version), encoding="utf-8")
    return path


def test_load_wxr_reads_category_hierarchy(tmp_path: Path) -> None:
    export = load_wxr(_write_export(tmp_path))

    assert export.categories == [
        CategorySource(source_id="travel", display_name="Travel"),
        CategorySource(source_id="brazil", display_name="Brazil", parent_source_id="travel"),
    ]


def test_load_wxr_keeps_published_posts_newest_first(tmp_path: Path) -> None:
    export = load_wxr(_write_export(tmp_path))

    assert [document.title for document in export.documents] == ["Untitled slug", "Rio & beaches", "Rio again"]
    assert [document.published_at for document in export.documents] == [
        _dt.date(2014, 2, 2),
        _dt.date(2013, 6, 1),
        _dt.date(2012, 1, 1),
    ]
    assert [issue.code for issue in export.issues] == ["invalid_date"]


def test_load_wxr_identifiers_are_decoded_and_unique(tmp_path: Path) -> None:
    export = load_wxr(_write_export(tmp_path))

    assert [document.identifier for document in export.documents] == ["Untitled-slug", "リオ", "リオ-3"]


def test_load_wxr_document_fields(tmp_path: Path) -> None:
    rio = load_wxr(_write_export(tmp_path)).documents[1]

    assert rio.categories == ["Brazil"]
    assert rio.summary == "Sun and sand."
    assert rio.body_format == "html"
    assert rio.body.startswith("<p>Sun")


def test_load_wxr_accepts_older_export_versions(tmp_path: Path) -> None:
    export = load_wxr(_write_export(tmp_path, version="1.1"))

    assert len(export.categories) == 2
    assert len(export.documents) == 3


def test_load_wxr_rejects_malformed_xml(tmp_path: Path) -> None:
    path = tmp_path / "export.xml"
    path.write_text("<rss><channel>", encoding="utf-8")

    with pytest.raises(ExportError, match="XML parse error"):
        load_wxr(path)


def test_load_wxr_rejects_non_rss_documents(tmp_path: Path) -> None:
    path = tmp_path / "export.xml"
    path.write_text("<feed></feed>", encoding="utf-8")

    with pytest.raises(ExportError, match="no rss/channel element"):
        load_wxr(path)


def test_clean_summary_truncates_with_ellipsis() -> None:
    summary = clean_summary("<p>" + "word " * 100 + "</p>", max_length=20)

    assert summary == "word word word word…"
    assert clean_summary("<div>a&nbsp;&amp;&nbsp;b</div>") == "a & b"
