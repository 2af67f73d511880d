from __future__ import annotations

import pytest

from blog.slugs import (
    FALLBACK_IDENTIFIER,
    MAX_IDENTIFIER_LENGTH,
    identifier_from_post_name,
    normalize_identifier,
    path_identifier,
)


def test_normalize_identifier_replaces_whitespace_and_drops_disallowed() -> None:
    assert normalize_identifier("Hello World!") == "Hello-World"
    assert normalize_identifier("  東京 旅行 2024 ") == "東京-旅行-2024"
    assert normalize_identifier("ソウル旅行（後編）") == "ソウル旅行後編"
    assert normalize_identifier("a -- b") == "a-b"


def test_normalize_identifier_falls_back_when_nothing_survives() -> None:
    assert normalize_identifier("") == FALLBACK_IDENTIFIER
    assert normalize_identifier("!!!") == FALLBACK_IDENTIFIER


def test_normalize_identifier_truncates_long_titles() -> None:
    result = normalize_identifier("あ" * 120)

    assert len(result) == MAX_IDENTIFIER_LENGTH
    assert result == "あ" * MAX_IDENTIFIER_LENGTH


@pytest.mark.parametrize(
    "value",
    ["Hello World!", "  spaced   out  ", "--a---b--", "記事名 その２", "x" * 200, "", "?"],
)
def test_normalize_identifier_is_idempotent(value: str) -> None:
    once = normalize_identifier(value)

    assert once
    assert normalize_identifier(once) == once


def test_identifier_from_post_name_decodes_and_keeps_word_boundaries() -> None:
    assert identifier_from_post_name("%E6%9D%B1%E4%BA%AC-trip") == "東京-trip"
    assert identifier_from_post_name("hello.world") == "hello-world"
    assert identifier_from_post_name("a%20%20b") == "a-b"


def test_identifier_from_post_name_rejects_empty_or_undecodable_names() -> None:
    assert identifier_from_post_name("") is None
    assert identifier_from_post_name("   ") is None
    assert identifier_from_post_name("%E6%9D") is None


def test_path_identifier_joins_lowercased_segments() -> None:
    assert path_identifier(["Travel", "Brazil"]) == "travel-brazil"
    assert path_identifier(["旅行", "New York"]) == "旅行-new-york"
