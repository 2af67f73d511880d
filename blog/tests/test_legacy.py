from __future__ import annotations

import pytest

from blog.legacy import (
    STRATEGIES,
    extract_candidate_slug,
    match_prefix,
    match_script_normalized,
    match_substring,
    match_without_digits,
    match_without_punctuation,
    resolve_historical_path,
    resolve_historical_paths,
    resolve_legacy_identifier,
    script_normalize,
)


def test_extract_candidate_slug_handles_both_date_forms() -> None:
    assert extract_candidate_slug("2013/06/sample-post") == "sample-post"
    assert extract_candidate_slug("2012/06/17/記事名") == "記事名"
    assert extract_candidate_slug(["2012", "06", "17", "記事名", "amp"]) == "記事名"
    assert extract_candidate_slug("/2014/01/%E6%9D%B1%E4%BA%AC/") == "東京"
    assert extract_candidate_slug("2014/01/long title～part 2") == "long-title-part-2"


@pytest.mark.parametrize(
    "path",
    ["sample-post", "2013/06", "13/06/sample-post", "2013/6/sample-post", "2013/06/17", ""],
)
def test_extract_candidate_slug_rejects_malformed_paths(path: str) -> None:
    assert extract_candidate_slug(path) is None


def test_script_normalize_folds_fullwidth_and_circled_forms() -> None:
    assert script_normalize("ｋｙｏｔｏ　ｔｒｉｐ") == "kyoto-trip"
    assert script_normalize("旅行～その①") == "旅行-その1"
    assert script_normalize("ソウル、釜山〜大邱") == "ソウル-釜山-大邱"


def test_exact_match_wins() -> None:
    mapping = resolve_historical_path("2013/06/sample-post", ["sample-post-2", "sample-post"])

    assert mapping.resolved_identifier == "sample-post"
    assert mapping.strategy == "exact"


def test_day_form_resolves_to_renumbered_identifier() -> None:
    assert resolve_legacy_identifier("2012/06/17/記事名", ["他の記事", "記事名-2"]) == "記事名-2"


def test_unresolved_path_returns_absent_result() -> None:
    mapping = resolve_historical_path("2013/06/nothing-like-it", ["sample-post"])

    assert mapping.resolved is False
    assert mapping.resolved_identifier is None
    assert mapping.historical_path == "2013/06/nothing-like-it"


def test_script_normalized_strategy() -> None:
    assert match_script_normalized("ソウル旅行〜その１", ["other", "ソウル旅行-その1"]) == "ソウル旅行-その1"
    assert resolve_historical_path("2015/02/ｋｙｏｔｏ", ["kyoto"]).strategy == "script_normalized"


def test_prefix_strategy_matches_in_either_direction() -> None:
    assert match_prefix("trip-to-kyoto", ["trip-to-kyoto-part-2"]) == "trip-to-kyoto-part-2"
    assert match_prefix("trip-to-kyoto-part-2", ["trip-to-kyoto"]) == "trip-to-kyoto"
    assert match_prefix("osaka", ["trip-to-kyoto"]) is None


def test_substring_strategy_requires_a_long_candidate() -> None:
    assert match_substring("my-long-title", ["2013-my-long-title-edit"]) == "2013-my-long-title-edit"
    assert match_substring("title", ["2013-title-edit"]) is None
    assert resolve_historical_path("2013/05/my-long-title", ["2013-my-long-title-edit"]).strategy == "substring"


def test_without_digits_strategy() -> None:
    assert match_without_digits("trip-2013-kyoto", ["trip-2014-kyoto"]) == "trip-2014-kyoto"
    assert resolve_historical_path("2013/05/trip-2013-kyoto", ["trip-2014-kyoto"]).strategy == "without_digits"


def test_without_punctuation_strategy() -> None:
    assert match_without_punctuation("wow!!-kyoto", ["wow-kyoto"]) == "wow-kyoto"
    mapping = resolve_historical_path("2013/05/wow！！-kyoto", ["wow-kyoto"])
    assert mapping.resolved_identifier == "wow-kyoto"
    assert mapping.strategy == "without_punctuation"


def test_digit_only_slug_never_matches_everything() -> None:
    assert resolve_historical_path("2013/05/2013", ["abc", "def"]).resolved is False


def test_strategies_run_strictest_first() -> None:
    assert [strategy.name for strategy in STRATEGIES] == [
        "exact",
        "script_normalized",
        "prefix",
        "substring",
        "without_digits",
        "without_punctuation",
    ]


def test_resolve_historical_paths_collects_mappings_and_issues() -> None:
    resolution = resolve_historical_paths(
        ["2013/06/sample-post/", "2013/06/unknown-entry", "not/a/date"],
        ["sample-post", "sample-post"],
    )

    assert list(resolution.resolved) == ["2013/06/sample-post/"]
    assert [mapping.historical_path for mapping in resolution.unresolved] == [
        "2013/06/unknown-entry",
        "not/a/date",
    ]
    assert [issue.code for issue in resolution.issues] == ["malformed_legacy_path"]
    assert resolution.redirect_targets() == {"2013/06/sample-post/": "posts/sample-post.html"}


def test_malformed_paths_are_flagged_on_the_mapping() -> None:
    malformed = resolve_historical_path("2013/6/sample-post", ["sample-post"])
    unmatched = resolve_historical_path("2013/06/nothing-like-it", ["sample-post"])

    assert malformed.malformed is True
    assert malformed.resolved is False
    assert unmatched.malformed is False
    assert unmatched.resolved is False
