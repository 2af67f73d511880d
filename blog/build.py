"""Reconcile posts, derive listings and write the site data for one build."""

from __future__ import annotations

import datetime as _dt
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from blog.categories import (
    CategoryNode,
    CategoryTree,
    build_category_tree,
    load_category_sources,
    navigation_tree,
    write_category_sources,
)
from blog.config import SiteConfig
from blog.pagination import Page, page_window, paginate
from blog.reconcile import (
    SourceDocument,
    load_catalog,
    migrate_catalog_to_content,
    read_documents,
    reconcile_posts,
    write_catalog,
)
from blog.render import (
    category_page_url,
    page_url,
    post_url,
    render_body,
    render_feed,
    render_sitemap,
)
from blog.schemas import BuildIssue, CategorySource, PostRecord
from blog.wxr import load_wxr


@dataclass(frozen=True)
class CategoryListing:
    node: CategoryNode
    posts: list[PostRecord]
    pages: list[Page[PostRecord]]


def listing_entry(post: PostRecord, base_url: str) -> dict[str, Any]:
    return {
        "slug": post.identifier,
        "title": post.title,
        "date": post.published_at.isoformat(),
        "categories": list(post.categories),
        "excerpt": post.summary or "",
        "href": post_url(post.identifier, base_url),
    }


def render_page_payload(
    page: Page[PostRecord],
    *,
    url_for: Callable[[int], str],
    base_url: str,
) -> dict[str, Any]:
    return {
        "number": page.number,
        "total_pages": page.total_pages,
        "url": url_for(page.number),
        "previous": url_for(page.number - 1) if page.has_previous else None,
        "next": url_for(page.number + 1) if page.has_next else None,
        "window": page_window(page.number, page.total_pages),
        "posts": [listing_entry(post, base_url) for post in page.items],
    }


def category_listings(
    tree: CategoryTree,
    posts: Sequence[PostRecord],
    *,
    hidden_names: Sequence[str],
) -> list[CategoryListing]:
    listings: list[CategoryListing] = []
    hidden = set(hidden_names)
    for node in tree.walk(tree.navigation_roots(hidden_names=hidden_names)):
        if node.display_name == tree.profile_name or node.display_name in hidden:
            continue
        members = tree.posts_in(node.source_id, posts)
        listings.append(CategoryListing(node=node, posts=members, pages=paginate(members)))
    return listings


def load_featured_identifiers(path: Path) -> tuple[list[str], list[BuildIssue]]:
    if not path.exists():
        return [], []
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        return [], [BuildIssue(code="invalid_featured", path=path.as_posix(), message=str(exc))]
    if not isinstance(payload, list):
        return [], [BuildIssue(code="invalid_featured", path=path.as_posix(), message="expected a JSON list of slugs")]
    return [str(item) for item in payload if isinstance(item, str) and item], []


def featured_posts(identifiers: Sequence[str], posts: Sequence[PostRecord]) -> list[PostRecord]:
    """Featured posts in the listed order; identifiers not in the catalog are dropped."""
    by_identifier = {post.identifier: post for post in posts}
    return [by_identifier[identifier] for identifier in identifiers if identifier in by_identifier]


def build_manifest(
    config: SiteConfig,
    posts: Sequence[PostRecord],
    tree: CategoryTree,
    listings: Sequence[CategoryListing],
    featured: Sequence[PostRecord] = (),
) -> dict[str, Any]:
    main_pages = paginate(posts)
    categories: list[dict[str, Any]] = []
    for listing in listings:
        path_id = listing.node.path_identifier or ""
        categories.append(
            {
                "name": listing.node.display_name,
                "path_id": path_id,
                "post_count": len(listing.posts),
                "pages": [
                    render_page_payload(
                        page,
                        url_for=lambda number, path_id=path_id: category_page_url(path_id, number),
                        base_url="../",
                    )
                    for page in listing.pages
                ],
            }
        )
    return {
        "site": {"name": config.site_name, "url": config.site_url},
        "post_count": len(posts),
        "pages": [
            render_page_payload(page, url_for=page_url, base_url="" if page.number == 1 else "../")
            for page in main_pages
        ],
        "categories": categories,
        "featured": {
            "url": "top.html" if featured else None,
            "posts": [listing_entry(post, "") for post in featured],
        },
        "navigation": navigation_tree(tree, hidden_names=config.hidden_categories),
        "archive": [
            {
                "number": page.number,
                "url": page_url(page.number),
                "posts": [{"slug": post.identifier, "title": post.title} for post in page.items],
            }
            for page in main_pages
        ],
    }


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def render_post_bodies(documents: dict[str, SourceDocument]) -> dict[str, str]:
    return {post_url(identifier): render_body(document) for identifier, document in documents.items()}


def run_build(
    *,
    project_root: Path,
    config: SiteConfig,
    as_of: _dt.date | None = None,
    extra_documents: Sequence[SourceDocument] = (),
    category_sources: Sequence[CategorySource] | None = None,
) -> dict[str, Any]:
    """Run the whole pipeline.

    Every output is rendered before the first write, and the catalog is
    replaced last, so a failure never leaves a new catalog beside stale
    output. When ``category_sources`` is given it replaces the stored
    category file.
    """
    today = as_of or _dt.date.today()
    project_root = project_root.resolve()
    catalog_path = config.resolve(project_root, config.catalog_path)
    categories_path = config.resolve(project_root, config.categories_path)
    output_root = config.resolve(project_root, config.output_root)

    persisted = load_catalog(catalog_path)
    documents, issues = read_documents(config.resolve(project_root, config.content_dir))
    result = reconcile_posts(persisted, [*extra_documents, *documents], as_of=today)
    issues.extend(result.issues)

    if category_sources is None:
        sources, category_issues = load_category_sources(categories_path)
        issues.extend(category_issues)
    else:
        sources = list(category_sources)
    tree = build_category_tree(sources, profile_name=config.profile_category)
    issues.extend(tree.issues)

    featured_ids, featured_issues = load_featured_identifiers(config.resolve(project_root, config.featured_path))
    issues.extend(featured_issues)
    featured = featured_posts(featured_ids, result.posts)

    listings = category_listings(tree, result.posts, hidden_names=config.hidden_categories)
    manifest = build_manifest(config, result.posts, tree, listings, featured)

    listing_urls = [page["url"] for page in manifest["pages"]]
    for category in manifest["categories"]:
        listing_urls.extend(page["url"] for page in category["pages"])

    outputs: dict[str, str] = {"site.json": json.dumps(manifest, ensure_ascii=False, indent=2) + "\n"}
    bodies = render_post_bodies(result.documents)
    outputs.update(bodies)
    outputs["sitemap.xml"] = render_sitemap(
        config,
        result.posts,
        listing_urls=listing_urls,
        today=today,
        featured=bool(featured),
    )
    outputs["feed.xml"] = render_feed(config, result.posts, today=today)

    for relative, content in outputs.items():
        write_text(output_root / relative, content)
    if category_sources is not None:
        write_category_sources(categories_path, sources)
    write_catalog(catalog_path, result.posts, as_of=today)

    return {
        "ok": True,
        "as_of": today.isoformat(),
        "catalog": catalog_path.relative_to(project_root).as_posix(),
        "output_root": output_root.relative_to(project_root).as_posix(),
        "posts": len(result.posts),
        "documents_rendered": len(bodies),
        "drafts_skipped": len(result.drafts),
        "pages": len(manifest["pages"]),
        "categories": len(listings),
        "featured": len(featured),
        "warning_count": len(issues),
        "warnings": [issue.as_dict() for issue in issues],
    }


def import_wxr(
    *,
    project_root: Path,
    config: SiteConfig,
    export_path: Path,
    as_of: _dt.date | None = None,
) -> dict[str, Any]:
    """Merge a WordPress export into the catalog and rebuild.

    Markdown documents in the content directory still take precedence over
    the export for the same identifier.
    """
    export = load_wxr(export_path)
    report = run_build(
        project_root=project_root,
        config=config,
        as_of=as_of,
        extra_documents=export.documents,
        category_sources=export.categories,
    )
    issues: list[BuildIssue] = list(export.issues)
    report["export"] = {
        "path": export_path.as_posix(),
        "categories": len(export.categories),
        "posts": len(export.documents),
    }
    report["warnings"] = [issue.as_dict() for issue in issues] + report["warnings"]
    report["warning_count"] = len(report["warnings"])
    return report


def migrate_to_content(
    *,
    project_root: Path,
    config: SiteConfig,
    posts_dir: Path | None = None,
    dry_run: bool = False,
    as_of: _dt.date | None = None,
) -> dict[str, Any]:
    """Turn catalog entries into Markdown documents, then rebuild from them.

    Bodies come from the rendered ``posts/<identifier>.html`` pages, by
    default the ones under the output root.
    """
    project_root = project_root.resolve()
    catalog_path = config.resolve(project_root, config.catalog_path)
    posts = load_catalog(catalog_path)
    if posts_dir is None:
        source_dir = config.resolve(project_root, config.output_root) / "posts"
    else:
        source_dir = (project_root / posts_dir).resolve()

    migration = migrate_catalog_to_content(
        posts,
        posts_dir=source_dir,
        content_dir=config.resolve(project_root, config.content_dir),
        dry_run=dry_run,
    )
    report: dict[str, Any] = {
        "ok": True,
        "dry_run": dry_run,
        "catalog": catalog_path.relative_to(project_root).as_posix(),
        "written": migration.written,
        "skipped": migration.skipped,
        "warning_count": len(migration.issues),
        "warnings": [issue.as_dict() for issue in migration.issues],
        "build": None,
    }
    if not dry_run and (migration.written or migration.skipped):
        report["build"] = run_build(project_root=project_root, config=config, as_of=as_of)
    return report
