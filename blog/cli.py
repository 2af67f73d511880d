from __future__ import annotations

import argparse
import datetime as _dt
import json
import logging
import sys
from pathlib import Path
from typing import Any

from blog.build import import_wxr, migrate_to_content, run_build
from blog.config import load_site_config_from_env
from blog.legacy import resolve_historical_path
from blog.redirects import rewrite_legacy_links
from blog.reconcile import load_catalog
from blog.schemas import BuildError


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--project-root",
        type=Path,
        default=Path(__file__).resolve().parents[1],
        help="Repository root path.",
    )
    parser.add_argument("--pretty", action="store_true", help="Pretty-print JSON output.")
    parser.add_argument("--verbose", action="store_true", help="Log progress at INFO level on stderr.")


def _add_as_of_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--as-of",
        type=_dt.date.fromisoformat,
        default=None,
        help="Build date (YYYY-MM-DD). Defaults to today.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Static blog build pipeline")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_cmd = subparsers.add_parser(
        "build",
        help="Reconcile posts and write the catalog, site manifest, bodies, sitemap and feed.",
    )
    _add_common_arguments(build_cmd)
    _add_as_of_argument(build_cmd)

    import_cmd = subparsers.add_parser(
        "import-wxr",
        help="Import categories and published posts from a WordPress WXR export, then build.",
    )
    import_cmd.add_argument("export_path", type=Path, help="Path to the WXR export file.")
    _add_common_arguments(import_cmd)
    _add_as_of_argument(import_cmd)

    rewrite_cmd = subparsers.add_parser(
        "rewrite-legacy-links",
        help="Rewrite links to legacy permalinks in the built output and write redirects.txt.",
    )
    _add_common_arguments(rewrite_cmd)
    rewrite_cmd.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing any file.",
    )

    migrate_cmd = subparsers.add_parser(
        "migrate-to-content",
        help="Write content/<slug>.md for catalog posts from their rendered pages, then build.",
    )
    _add_common_arguments(migrate_cmd)
    _add_as_of_argument(migrate_cmd)
    migrate_cmd.add_argument(
        "--posts-dir",
        type=Path,
        default=None,
        help="Directory of rendered posts/<slug>.html pages, relative to the project root (default: output root).",
    )
    migrate_cmd.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be written without writing or building.",
    )

    resolve_cmd = subparsers.add_parser(
        "resolve-legacy",
        help="Resolve historical YYYY/MM[/DD]/<slug> paths against the catalog.",
    )
    resolve_cmd.add_argument("paths", nargs="+", help="Historical paths to resolve.")
    _add_common_arguments(resolve_cmd)

    return parser


def _print_json(payload: dict[str, Any], *, pretty: bool, stream: Any = None) -> None:
    if pretty:
        print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False), file=stream)
    else:
        print(json.dumps(payload, sort_keys=True, ensure_ascii=False), file=stream)


def _print_error(exc: Exception, *, pretty: bool) -> int:
    payload: dict[str, Any] = {
        "ok": False,
        "error_type": exc.__class__.__name__,
        "message": str(exc),
    }
    if isinstance(exc, BuildError):
        payload["path"] = exc.path
        payload["details"] = exc.details
    _print_json(payload, pretty=pretty, stream=sys.stderr)
    return 1


def run_build_command(args: argparse.Namespace) -> int:
    try:
        config = load_site_config_from_env()
        result = run_build(project_root=args.project_root.resolve(), config=config, as_of=args.as_of)
    except (BuildError, ValueError) as exc:
        return _print_error(exc, pretty=args.pretty)
    _print_json(result, pretty=args.pretty)
    return 0 if result["ok"] else 1


def run_import_wxr(args: argparse.Namespace) -> int:
    try:
        config = load_site_config_from_env()
        result = import_wxr(
            project_root=args.project_root.resolve(),
            config=config,
            export_path=args.export_path,
            as_of=args.as_of,
        )
    except (BuildError, ValueError) as exc:
        return _print_error(exc, pretty=args.pretty)
    _print_json(result, pretty=args.pretty)
    return 0 if result["ok"] else 1


def run_rewrite_legacy_links(args: argparse.Namespace) -> int:
    project_root = args.project_root.resolve()
    try:
        config = load_site_config_from_env()
        posts = load_catalog(config.resolve(project_root, config.catalog_path))
    except (BuildError, ValueError) as exc:
        return _print_error(exc, pretty=args.pretty)

    result = rewrite_legacy_links(
        output_root=config.resolve(project_root, config.output_root),
        identifiers=[post.identifier for post in posts],
        hosts=config.legacy_hosts,
        dry_run=args.dry_run,
    )
    _print_json(result, pretty=args.pretty)
    return 0 if result["ok"] else 1


def run_migrate_to_content(args: argparse.Namespace) -> int:
    try:
        config = load_site_config_from_env()
        result = migrate_to_content(
            project_root=args.project_root.resolve(),
            config=config,
            posts_dir=args.posts_dir,
            dry_run=args.dry_run,
            as_of=args.as_of,
        )
    except (BuildError, ValueError) as exc:
        return _print_error(exc, pretty=args.pretty)
    _print_json(result, pretty=args.pretty)
    return 0 if result["ok"] else 1


def run_resolve_legacy(args: argparse.Namespace) -> int:
    project_root = args.project_root.resolve()
    try:
        config = load_site_config_from_env()
        posts = load_catalog(config.resolve(project_root, config.catalog_path))
    except (BuildError, ValueError) as exc:
        return _print_error(exc, pretty=args.pretty)

    identifiers = [post.identifier for post in posts]
    mappings = [resolve_historical_path(path, identifiers) for path in args.paths]
    payload = {
        "ok": all(mapping.resolved for mapping in mappings),
        "mappings": [mapping.model_dump(mode="json") for mapping in mappings],
    }
    _print_json(payload, pretty=args.pretty)
    return 0 if payload["ok"] else 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "build":
        return run_build_command(args)
    if args.command == "import-wxr":
        return run_import_wxr(args)
    if args.command == "rewrite-legacy-links":
        return run_rewrite_legacy_links(args)
    if args.command == "migrate-to-content":
        return run_migrate_to_content(args)
    if args.command == "resolve-legacy":
        return run_resolve_legacy(args)
    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
