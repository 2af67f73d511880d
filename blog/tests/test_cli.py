from __future__ import annotations

import json
from pathlib import Path

import pytest

from blog import cli


@pytest.fixture(autouse=True)
def _clear_blog_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BLOG_SITE_URL",
        "BLOG_SITE_NAME",
        "BLOG_CATALOG_PATH",
        "BLOG_CATEGORIES_PATH",
        "BLOG_CONTENT_DIR",
        "BLOG_OUTPUT_ROOT",
        "BLOG_PROFILE_CATEGORY",
        "BLOG_HIDDEN_CATEGORIES",
        "BLOG_LEGACY_HOSTS",
        "BLOG_FEED_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_build_command_prints_json_report(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write(tmp_path / "content" / "hello.md", "---\ntitle: Hello\ndate: 2024-01-01\n---\nHi\n")

    exit_code = cli.main(["build", "--project-root", str(tmp_path), "--as-of", "2024-03-01"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["ok"] is True
    assert payload["as_of"] == "2024-03-01"
    assert payload["posts"] == 1
    assert (tmp_path / ".build" / "site" / "posts" / "hello.html").exists()


def test_build_command_pretty_output_is_indented(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["build", "--project-root", str(tmp_path), "--as-of", "2024-03-01", "--pretty"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert out.startswith("{\n  ")
    assert json.loads(out)["posts"] == 0


def test_build_command_reports_fatal_catalog_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write(tmp_path / "data" / "posts.json", "[{")

    exit_code = cli.main(["build", "--project-root", str(tmp_path)])

    assert exit_code == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    payload = json.loads(captured.err.strip().splitlines()[-1])
    assert payload["ok"] is False
    assert payload["error_type"] == "CatalogError"
    assert payload["path"].endswith("posts.json")


def test_build_command_reports_invalid_configuration(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("BLOG_FEED_LIMIT", "lots")

    exit_code = cli.main(["build", "--project-root", str(tmp_path)])

    assert exit_code == 1
    assert "BLOG_FEED_LIMIT must be an integer" in capsys.readouterr().err


def test_import_wxr_command_reports_missing_export(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["import-wxr", str(tmp_path / "missing.xml"), "--project-root", str(tmp_path)])

    assert exit_code == 1
    assert '"error_type": "ExportError"' in capsys.readouterr().err


def test_resolve_legacy_command(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write(
        tmp_path / "data" / "posts.json",
        json.dumps([{"slug": "sample-post", "title": "Sample", "date": "2013-06-01"}]),
    )

    exit_code = cli.main(
        ["resolve-legacy", "2013/06/sample-post", "2013/06/missing-entry", "--project-root", str(tmp_path)]
    )

    assert exit_code == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload["mappings"] == [
        {
            "historical_path": "2013/06/sample-post",
            "resolved_identifier": "sample-post",
            "strategy": "exact",
            "malformed": False,
        },
        {
            "historical_path": "2013/06/missing-entry",
            "resolved_identifier": None,
            "strategy": None,
            "malformed": False,
        },
    ]


def test_rewrite_legacy_links_command_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write(
        tmp_path / "data" / "posts.json",
        json.dumps([{"slug": "sample-post", "title": "Sample", "date": "2013-06-01"}]),
    )
    page = tmp_path / ".build" / "site" / "posts" / "other.html"
    _write(page, '<a href="https://futarigurashi.com/2013/06/sample-post/">x</a>')

    exit_code = cli.main(["rewrite-legacy-links", "--dry-run", "--project-root", str(tmp_path)])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["dry_run"] is True
    assert payload["mapped"] == 1
    assert "futarigurashi.com" in page.read_text(encoding="utf-8")


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        cli.main([])


def test_parsed_arguments_drive_the_run_function(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    args = cli.build_parser().parse_args(["resolve-legacy", "2013/06/x", "--project-root", str(tmp_path), "--pretty"])

    assert args.command == "resolve-legacy"
    assert args.paths == ["2013/06/x"]
    assert cli.run_resolve_legacy(args) == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload == {
        "ok": False,
        "mappings": [
            {"historical_path": "2013/06/x", "resolved_identifier": None, "strategy": None, "malformed": False}
        ],
    }


def test_migrate_to_content_command_dry_run(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _write(
        tmp_path / "data" / "posts.json",
        json.dumps([{"slug": "sample-post", "title": "Sample", "date": "2013-06-01"}]),
    )
    _write(tmp_path / "rendered" / "sample-post.html", "<p>Old body</p>")

    exit_code = cli.main(
        ["migrate-to-content", "--dry-run", "--posts-dir", "rendered", "--project-root", str(tmp_path)]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["dry_run"] is True
    assert payload["written"] == ["sample-post.md"]
    assert payload["build"] is None
    assert not (tmp_path / "content").exists()
