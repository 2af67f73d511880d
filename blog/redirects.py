"""Rewrite links to legacy permalinks and emit a redirect map."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from blog.legacy import LegacyResolution, resolve_historical_paths

logger = logging.getLogger(__name__)

LISTING_DIRS = ("posts", "page", "category")
ROOT_PAGES = ("index.html", "archive.html", "category.html", "top.html")
REDIRECT_HEADER = [
    "# Redirect map: legacy permalink -> static path",
    "# Use with Netlify _redirects, Cloudflare, or nginx rules",
    "# Format: old_path new_path 301",
    "",
]


@dataclass(frozen=True)
class HtmlFile:
    path: Path
    rel_dir: str


def legacy_href_pattern(hosts: Sequence[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(host) for host in hosts)
    return re.compile(
        rf"""href=(["'])(https?://(?:www\.)?(?:{alternatives})/(\d{{4}}/\d{{2}}(?:/\d{{2}})?/[^"']+))\1"""
    )


def gather_html_files(output_root: Path) -> list[HtmlFile]:
    files: list[HtmlFile] = []
    for dir_name in LISTING_DIRS:
        directory = output_root / dir_name
        if not directory.exists():
            continue
        for path in sorted(directory.glob("*.html")):
            files.append(HtmlFile(path=path, rel_dir=dir_name))
    for name in ROOT_PAGES:
        path = output_root / name
        if path.exists():
            files.append(HtmlFile(path=path, rel_dir=""))
    return files


def collect_legacy_urls(files: Iterable[HtmlFile], pattern: re.Pattern[str]) -> dict[str, str]:
    """Map each legacy URL found in ``files`` to its ``YYYY/MM/...`` path."""
    url_to_path: dict[str, str] = {}
    for html_file in files:
        content = html_file.path.read_text(encoding="utf-8")
        for match in pattern.finditer(content):
            url_to_path[match.group(2)] = match.group(3)
    return url_to_path


def link_to_post(rel_dir: str, target: str) -> str:
    basename = target.rsplit("/", 1)[-1]
    if rel_dir == "posts":
        return basename
    if rel_dir in ("page", "category"):
        return f"../posts/{basename}"
    return f"posts/{basename}"


def rewrite_links(content: str, *, rel_dir: str, url_targets: Mapping[str, str], pattern: re.Pattern[str]) -> str:
    def replace(match: re.Match[str]) -> str:
        target = url_targets.get(match.group(2))
        if target is None:
            return match.group(0)
        quote = match.group(1)
        return f"href={quote}{link_to_post(rel_dir, target)}{quote}"

    return pattern.sub(replace, content)


def render_redirects(url_targets: Mapping[str, str]) -> str:
    lines = list(REDIRECT_HEADER)
    seen: set[str] = set()
    for url, target in url_targets.items():
        parts = urlsplit(url)
        old_path = parts.path.rstrip("/") or "/"
        key = f"{parts.netloc.removeprefix('www.')}{old_path}"
        if key in seen:
            continue
        seen.add(key)
        lines.append(f"{old_path}  /{target}  301")
    return "\n".join(lines) + "\n"


def rewrite_legacy_links(
    *,
    output_root: Path,
    identifiers: Sequence[str],
    hosts: Sequence[str],
    dry_run: bool = False,
) -> dict[str, Any]:
    pattern = legacy_href_pattern(hosts)
    files = gather_html_files(output_root)
    url_to_path = collect_legacy_urls(files, pattern)

    resolution: LegacyResolution = resolve_historical_paths(url_to_path.values(), identifiers)
    targets_by_path = resolution.redirect_targets()
    url_targets = {
        url: targets_by_path[path] for url, path in url_to_path.items() if path in targets_by_path
    }
    unresolved_urls = sorted(url for url, path in url_to_path.items() if path not in targets_by_path)
    for url in unresolved_urls:
        logger.info("unmapped legacy link %s", url)

    rewritten: list[str] = []
    redirects_path = output_root / "redirects.txt"
    if not dry_run:
        for html_file in files:
            content = html_file.path.read_text(encoding="utf-8")
            updated = rewrite_links(content, rel_dir=html_file.rel_dir, url_targets=url_targets, pattern=pattern)
            if updated != content:
                html_file.path.write_text(updated, encoding="utf-8")
                rewritten.append(html_file.path.relative_to(output_root).as_posix())
        if url_targets:
            redirects_path.write_text(render_redirects(url_targets), encoding="utf-8")

    return {
        "ok": True,
        "dry_run": dry_run,
        "files_scanned": len(files),
        "legacy_urls": len(url_to_path),
        "mapped": len(url_targets),
        "unmapped": unresolved_urls,
        "files_rewritten": rewritten,
        "redirects": redirects_path.name if url_targets and not dry_run else None,
        "warnings": [issue.as_dict() for issue in resolution.issues],
    }
