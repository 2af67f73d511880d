from __future__ import annotations

import datetime as _dt
import re
from collections.abc import Sequence
from html import escape

import markdown as md_lib

from blog.config import SiteConfig
from blog.reconcile import SourceDocument
from blog.schemas import PostRecord

MARKDOWN_EXTENSIONS = ["extra", "sane_lists"]
WHITESPACE_RE = re.compile(r"\s+")
TRAILING_WORD_RE = re.compile(r"\s+\S*$")
FEED_SUMMARY_LENGTH = 200


def render_body(document: SourceDocument) -> str:
    if document.body_format == "html":
        return document.body
    return md_lib.markdown(document.body, extensions=MARKDOWN_EXTENSIONS, output_format="html")


def meta_description(text: str | None, max_length: int) -> str:
    stripped = WHITESPACE_RE.sub(" ", text or "").strip()
    if len(stripped) <= max_length:
        return stripped
    return TRAILING_WORD_RE.sub("", stripped[:max_length].strip()) + "…"


def page_url(number: int, base_url: str = "") -> str:
    if number == 1:
        return f"{base_url}index.html"
    return f"{base_url}page/{number}.html"


def category_page_url(path_identifier: str, number: int, base_url: str = "") -> str:
    if number == 1:
        return f"{base_url}category/{path_identifier}.html"
    return f"{base_url}category/{path_identifier}-{number}.html"


def post_url(identifier: str, base_url: str = "") -> str:
    return f"{base_url}posts/{identifier}.html"


def render_sitemap(
    config: SiteConfig,
    posts: Sequence[PostRecord],
    *,
    listing_urls: Sequence[str],
    today: _dt.date,
    featured: bool = False,
) -> str:
    entries: list[tuple[str, str, str]] = [("", "1.0", today.isoformat())]
    if featured:
        entries.append(("top.html", "0.9", today.isoformat()))
    entries.append(("profile.html", "0.8", today.isoformat()))
    entries.append(("archive.html", "0.8", today.isoformat()))
    for url in listing_urls:
        if url == "index.html":
            continue
        entries.append((url, "0.7", today.isoformat()))
    for post in posts:
        entries.append((post_url(post.identifier), "0.6", post.published_at.isoformat()))

    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for location, priority, lastmod in entries:
        url = f"{config.site_url}/{location}"
        lines.append(
            f"  <url><loc>{escape(url)}</loc><lastmod>{lastmod}</lastmod><priority>{priority}</priority></url>"
        )
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"


def render_feed(config: SiteConfig, posts: Sequence[PostRecord], *, today: _dt.date) -> str:
    site_url = escape(config.site_url)
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<feed xmlns="http://www.w3.org/2005/Atom">',
        f"  <title>{escape(config.site_name)}</title>",
        f'  <link href="{site_url}/"/>',
        f'  <link href="{site_url}/feed.xml" rel="self" type="application/atom+xml"/>',
        f"  <updated>{today.isoformat()}T00:00:00Z</updated>",
        f"  <id>{site_url}/</id>",
    ]
    for post in posts[: config.feed_limit]:
        link = escape(f"{config.site_url}/{post_url(post.identifier)}")
        summary = escape(meta_description(post.summary, FEED_SUMMARY_LENGTH))
        lines.append(
            f"  <entry><title>{escape(post.title)}</title><link href=\"{link}\"/>"
            f"<id>urn:post:{escape(post.identifier)}</id>"
            f"<updated>{post.published_at.isoformat()}T00:00:00Z</updated>"
            f"<summary>{summary}</summary></entry>"
        )
    lines.append("</feed>")
    return "\n".join(lines) + "\n"
