"""Read a WordPress WXR export into category sources and source documents."""

from __future__ import annotations

import datetime as _dt
import html
import io
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

from blog.reconcile import SourceDocument
from blog.schemas import BuildIssue, CategorySource, ExportError, parse_publish_date
from blog.slugs import identifier_from_post_name, normalize_identifier

WXR_NAMESPACES = {
    "wp": "http://wordpress.org/export/1.2/",
    "content": "http://purl.org/rss/1.0/modules/content/",
}
WP_NAMESPACE_RE = re.compile(r"^http://wordpress\.org/export/\d+\.\d+/$")
SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
WHITESPACE_RE = re.compile(r"\s+")
SUMMARY_LENGTH = 220


@dataclass(frozen=True)
class WxrExport:
    categories: list[CategorySource]
    documents: list[SourceDocument]
    issues: list[BuildIssue]


def _text(element: ET.Element | None) -> str:
    if element is None or element.text is None:
        return ""
    return element.text.strip()


def clean_summary(markup: str, max_length: int = SUMMARY_LENGTH) -> str:
    text = SCRIPT_RE.sub("", markup)
    text = TAG_RE.sub(" ", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = WHITESPACE_RE.sub(" ", text).strip()
    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "…"


def _detect_namespaces(raw: bytes) -> dict[str, str]:
    """WXR versions differ only in the ``wp`` namespace URI; use the one declared."""
    namespaces = dict(WXR_NAMESPACES)
    for _event, (prefix, uri) in ET.iterparse(io.BytesIO(raw), events=("start-ns",)):
        if prefix == "wp" and WP_NAMESPACE_RE.match(uri):
            namespaces["wp"] = uri
    return namespaces


def parse_categories(channel: ET.Element, namespaces: dict[str, str]) -> list[CategorySource]:
    categories: list[CategorySource] = []
    for element in channel.findall("wp:category", namespaces):
        nicename = _text(element.find("wp:category_nicename", namespaces))
        name = html.unescape(_text(element.find("wp:cat_name", namespaces)))
        parent = _text(element.find("wp:category_parent", namespaces))
        if not nicename or not name:
            continue
        categories.append(
            CategorySource(source_id=nicename, display_name=name, parent_source_id=parent or None)
        )
    return categories


def _item_categories(item: ET.Element) -> list[str]:
    names: list[str] = []
    for element in item.findall("category"):
        if (element.get("domain") or "").lower() != "category":
            continue
        name = html.unescape(_text(element))
        if name and name not in names:
            names.append(name)
    return names


def parse_documents(channel: ET.Element, namespaces: dict[str, str]) -> tuple[list[SourceDocument], list[BuildIssue]]:
    published: list[tuple[ET.Element, str]] = []
    issues: list[BuildIssue] = []
    for item in channel.findall("item"):
        post_type = _text(item.find("wp:post_type", namespaces))
        status = _text(item.find("wp:status", namespaces))
        title = html.unescape(_text(item.find("title")))
        if post_type != "post" or status != "publish" or not title:
            continue
        published.append((item, title))

    dated: list[tuple[ET.Element, str, _dt.date]] = []
    for item, title in published:
        raw_date = _text(item.find("wp:post_date", namespaces))
        try:
            published_at = parse_publish_date(raw_date)
        except ValueError as exc:
            issues.append(BuildIssue(code="invalid_date", path=title, message=str(exc)))
            continue
        dated.append((item, title, published_at))
    dated.sort(key=lambda entry: entry[2], reverse=True)

    documents: list[SourceDocument] = []
    used: set[str] = set()
    for position, (item, title, published_at) in enumerate(dated, start=1):
        identifier = identifier_from_post_name(_text(item.find("wp:post_name", namespaces)))
        if identifier is None:
            identifier = normalize_identifier(title)
        while identifier in used:
            identifier = f"{identifier}-{position}"
        used.add(identifier)

        body = _text(item.find("content:encoded", namespaces))
        documents.append(
            SourceDocument(
                identifier=identifier,
                title=title,
                published_at=published_at,
                categories=_item_categories(item),
                summary=clean_summary(body),
                body=body,
                body_format="html",
                path=f"wxr:{identifier}",
            )
        )
    return documents, issues


def load_wxr(path: Path) -> WxrExport:
    try:
        raw = path.read_bytes()
        namespaces = _detect_namespaces(raw)
        root = ET.fromstring(raw)
    except OSError as exc:
        raise ExportError(path=path.as_posix(), details=str(exc)) from exc
    except ET.ParseError as exc:
        raise ExportError(path=path.as_posix(), details=f"XML parse error: {exc}") from exc

    channel = root.find("channel")
    if root.tag != "rss" or channel is None:
        raise ExportError(path=path.as_posix(), details="no rss/channel element")

    documents, issues = parse_documents(channel, namespaces)
    return WxrExport(
        categories=parse_categories(channel, namespaces),
        documents=documents,
        issues=issues,
    )
