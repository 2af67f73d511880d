from __future__ import annotations

import datetime as _dt
import json
import logging
import os
import re
import tempfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from blog.schemas import BuildIssue, CatalogError, PostRecord, parse_publish_date
from blog.slugs import normalize_identifier

logger = logging.getLogger(__name__)

FRONTMATTER_RE = re.compile(r"\A---\s*\r?\n(.*?)\r?\n---\s*(?:\r?\n|\Z)", re.DOTALL)
DAYS_PER_MONTH = 30


@dataclass(frozen=True)
class SourceDocument:
    identifier: str | None
    title: str | None
    published_at: Any = None
    categories: list[str] = field(default_factory=list)
    summary: str | None = None
    draft: bool = False
    body: str = ""
    body_format: str = "markdown"
    path: str = ""


@dataclass(frozen=True)
class ReconcileResult:
    posts: list[PostRecord]
    documents: dict[str, SourceDocument]
    issues: list[BuildIssue]
    drafts: list[str]


def split_frontmatter(markdown: str) -> tuple[dict[str, Any], str]:
    match = FRONTMATTER_RE.match(markdown)
    if not match:
        return {}, markdown
    metadata = yaml.safe_load(match.group(1)) or {}
    if not isinstance(metadata, dict):
        raise ValueError("frontmatter must be a mapping")
    body = markdown[match.end() :].lstrip("\n")
    return metadata, body.rstrip()


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _categories_from_metadata(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    return [str(value).strip()]


def _is_draft(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def document_from_markdown(markdown: str, *, stem: str, path: str = "") -> SourceDocument:
    metadata, body = split_frontmatter(markdown)
    identifier = _optional_text(metadata.get("slug")) or _optional_text(stem)
    return SourceDocument(
        identifier=identifier,
        title=_optional_text(metadata.get("title")) or identifier,
        published_at=metadata.get("date"),
        categories=_categories_from_metadata(metadata.get("categories")),
        summary=_optional_text(metadata.get("excerpt") or metadata.get("summary")),
        draft=_is_draft(metadata.get("draft")),
        body=body,
        path=path,
    )


def read_documents(content_dir: Path) -> tuple[list[SourceDocument], list[BuildIssue]]:
    documents: list[SourceDocument] = []
    issues: list[BuildIssue] = []
    if not content_dir.exists():
        return documents, issues

    for path in sorted(content_dir.glob("*.md")):
        try:
            markdown = path.read_text(encoding="utf-8")
            documents.append(document_from_markdown(markdown, stem=path.stem, path=path.as_posix()))
        except (OSError, UnicodeDecodeError, yaml.YAMLError, ValueError) as exc:
            issues.append(BuildIssue(code="invalid_frontmatter", path=path.as_posix(), message=str(exc)))
            logger.warning("skipping unreadable document %s: %s", path, exc)
    return documents, issues


def load_catalog(path: Path) -> list[PostRecord]:
    if not path.exists():
        return []

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise CatalogError(path=path.as_posix(), details=str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise CatalogError(path=path.as_posix(), details=f"JSON parse error: {exc.msg}") from exc
    if not isinstance(payload, list):
        raise CatalogError(path=path.as_posix(), details="expected a JSON list of posts")

    posts: list[PostRecord] = []
    for index, entry in enumerate(payload):
        try:
            posts.append(PostRecord.model_validate(entry))
        except ValidationError as exc:
            raise CatalogError(
                path=path.as_posix(),
                details=f"entry {index}: {exc.errors()[0]['msg']}",
            ) from exc
    return posts


def format_relative_date(published_at: _dt.date, as_of: _dt.date) -> str:
    months = (as_of - published_at).days // DAYS_PER_MONTH
    if months < 1:
        return "recently"
    if months < 12:
        return f"{months} months ago"
    years = months // 12
    return f"{years} year{'s' if years > 1 else ''} ago"


def write_catalog(path: Path, posts: Sequence[PostRecord], *, as_of: _dt.date) -> None:
    rows = [
        post.model_copy(update={"relative_date": format_relative_date(post.published_at, as_of)}).as_catalog_entry()
        for post in posts
    ]
    path.parent.mkdir(parents=True, exist_ok=True)
    handle, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(json.dumps(rows, ensure_ascii=False, indent=2))
            stream.write("\n")
        os.replace(temp_name, path)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


def post_from_document(
    document: SourceDocument,
    *,
    identifier: str,
    default_date: _dt.date,
) -> PostRecord:
    published_at = default_date if document.published_at in (None, "") else document.published_at
    return PostRecord(
        identifier=identifier,
        title=document.title or identifier,
        published_at=parse_publish_date(published_at),
        categories=list(document.categories),
        summary=document.summary,
    )


def reconcile_posts(
    persisted: Iterable[PostRecord],
    documents: Iterable[SourceDocument],
    *,
    as_of: _dt.date | None = None,
) -> ReconcileResult:
    """Merge fresh documents into the persisted catalog.

    A fresh document replaces the persisted entry with the same identifier
    outright; a draft removes it. The result is ordered newest first, and
    posts sharing a date keep their catalog order.
    """
    today = as_of or _dt.date.today()
    by_identifier: dict[str, PostRecord] = {post.identifier: post for post in persisted}
    accepted: dict[str, SourceDocument] = {}
    issues: list[BuildIssue] = []
    drafts: list[str] = []

    for document in documents:
        identifier = normalize_identifier(document.identifier) if document.identifier else None
        if not identifier:
            if not document.title:
                issues.append(
                    BuildIssue(
                        code="missing_identifier",
                        path=document.path,
                        message="document has neither an identifier nor a title",
                    )
                )
                logger.warning("skipping document without identifier or title: %s", document.path)
                continue
            identifier = normalize_identifier(document.title)

        if document.draft:
            by_identifier.pop(identifier, None)
            accepted.pop(identifier, None)
            drafts.append(identifier)
            continue

        try:
            post = post_from_document(document, identifier=identifier, default_date=today)
        except ValueError as exc:
            issues.append(BuildIssue(code="invalid_date", path=document.path or identifier, message=str(exc)))
            logger.warning("skipping document %s: %s", document.path or identifier, exc)
            continue
        by_identifier[identifier] = post
        accepted[identifier] = document

    posts = sorted(by_identifier.values(), key=lambda post: post.published_at, reverse=True)
    return ReconcileResult(posts=posts, documents=accepted, issues=issues, drafts=drafts)


ENTRY_CONTENT_TAG = '<div class="entry-content">'
DIV_OPEN = "<div"
DIV_CLOSE = "</div>"


def extract_entry_content(html: str) -> str:
    """Inner markup of the ``entry-content`` div of a full post page.

    Body fragments written by the build carry no wrapper and are returned
    whole.
    """
    index = html.find(ENTRY_CONTENT_TAG)
    if index == -1:
        return html.strip()
    start = index + len(ENTRY_CONTENT_TAG)
    depth = 1
    position = start
    while position < len(html):
        next_open = html.find(DIV_OPEN, position)
        next_close = html.find(DIV_CLOSE, position)
        if next_close == -1:
            break
        if next_open != -1 and next_open < next_close:
            depth += 1
            position = next_open + len(DIV_OPEN)
            continue
        depth -= 1
        if depth == 0:
            return html[start:next_close].strip()
        position = next_close + len(DIV_CLOSE)
    return ""


def render_frontmatter(metadata: dict[str, Any]) -> str:
    dumped = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True).rstrip()
    return f"---\n{dumped}\n---\n"


def markdown_from_post(post: PostRecord, body: str) -> str:
    metadata: dict[str, Any] = {
        "slug": post.identifier,
        "title": post.title,
        "date": post.published_at,
    }
    if post.categories:
        metadata["categories"] = list(post.categories)
    if post.summary:
        metadata["excerpt"] = " ".join(post.summary.split())
    return f"{render_frontmatter(metadata)}\n{body.strip()}\n"


@dataclass(frozen=True)
class MigrationResult:
    written: list[str]
    skipped: list[str]
    issues: list[BuildIssue]


def migrate_catalog_to_content(
    posts: Sequence[PostRecord],
    *,
    posts_dir: Path,
    content_dir: Path,
    dry_run: bool = False,
) -> MigrationResult:
    """Write ``content/<identifier>.md`` for every catalog post with a rendered page.

    Existing documents are never overwritten. With ``dry_run`` nothing is
    written and ``written`` lists the files that would be created.
    """
    written: list[str] = []
    skipped: list[str] = []
    issues: list[BuildIssue] = []

    for post in posts:
        if normalize_identifier(post.identifier) != post.identifier:
            issues.append(
                BuildIssue(
                    code="invalid_identifier",
                    path=post.identifier,
                    message="catalog identifier is not a normalized identifier",
                )
            )
            logger.warning("skipping catalog entry with unsafe identifier %r", post.identifier)
            continue

        target = content_dir / f"{post.identifier}.md"
        if target.exists():
            skipped.append(target.name)
            continue

        page = posts_dir / f"{post.identifier}.html"
        try:
            html = page.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            issues.append(BuildIssue(code="missing_rendered_post", path=page.as_posix(), message=str(exc)))
            logger.warning("no rendered page for %s: %s", post.identifier, exc)
            continue

        content = markdown_from_post(post, extract_entry_content(html))
        if not dry_run:
            content_dir.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        written.append(target.name)

    return MigrationResult(written=written, skipped=skipped, issues=issues)
