"""Resolve old permalinks to current post identifiers.

A historical path looks like ``YYYY/MM/<slug>`` or ``YYYY/MM/DD/<slug>``,
optionally followed by more segments. The slug is matched against the current
identifiers through ``STRATEGIES``, strictest first; the first strategy that
finds a match decides the result.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from urllib.parse import unquote

from blog.schemas import BuildIssue, LegacyMapping

logger = logging.getLogger(__name__)

YEAR_RE = re.compile(r"^\d{4}$")
TWO_DIGIT_RE = re.compile(r"^\d{2}$")
WHITESPACE_RE = re.compile(r"\s+")
HYPHEN_RUN_RE = re.compile(r"-+")
DIGITS_RE = re.compile(r"[0-9]+")
QUESTION_RUN_RE = re.compile(r"\?+")
EXCLAMATION_RUN_RE = re.compile(r"!+")

MIN_SUBSTRING_LENGTH = 8

WAVE_DASHES = ("～", "〜", "、")
CIRCLED_DIGITS = {"①": "1", "②": "2", "③": "3", "④": "4", "⑤": "5"}
FULLWIDTH_OFFSET = 0xFEE0


def split_historical_path(path: str | Sequence[str]) -> list[str]:
    if isinstance(path, str):
        return [segment for segment in path.split("/") if segment]
    return [segment for segment in path if segment]


def extract_candidate_slug(path: str | Sequence[str]) -> str | None:
    """The slug segment of a historical path, or None when the path is malformed."""
    segments = split_historical_path(path)
    if len(segments) < 3:
        return None
    year, month, third = segments[0], segments[1], segments[2]
    if not YEAR_RE.match(year) or not TWO_DIGIT_RE.match(month):
        return None
    index = 3 if TWO_DIGIT_RE.match(third) else 2
    if index >= len(segments):
        return None

    raw = segments[index]
    try:
        decoded = unquote(raw, errors="strict")
    except UnicodeDecodeError:
        decoded = raw
    text = decoded.replace("～", "-")
    return WHITESPACE_RE.sub("-", text).strip() or None


def script_normalize(value: str) -> str:
    text = value
    for dash in WAVE_DASHES:
        text = text.replace(dash, "-")
    text = "".join(
        chr(ord(char) - FULLWIDTH_OFFSET) if "\uff01" <= char <= "\uff5e" else char for char in text
    )
    for circled, digit in CIRCLED_DIGITS.items():
        text = text.replace(circled, digit)
    text = WHITESPACE_RE.sub("-", text)
    text = HYPHEN_RUN_RE.sub("-", text)
    return text.strip()


def strip_digits(value: str) -> str:
    return DIGITS_RE.sub("", script_normalize(value))


def strip_punctuation(value: str) -> str:
    text = strip_digits(value)
    text = QUESTION_RUN_RE.sub("", text)
    text = EXCLAMATION_RUN_RE.sub("", text)
    return HYPHEN_RUN_RE.sub("-", text)


def _prefix_related(left: str, right: str) -> bool:
    # An empty form would be a prefix of everything.
    if not left or not right:
        return False
    return left.startswith(right) or right.startswith(left)


def _contains_either(left: str, right: str) -> bool:
    if not left or not right:
        return False
    return left in right or right in left


def match_exact(candidate: str, identifiers: Sequence[str]) -> str | None:
    return candidate if candidate in identifiers else None


def match_script_normalized(candidate: str, identifiers: Sequence[str]) -> str | None:
    normalized = script_normalize(candidate)
    for identifier in identifiers:
        if script_normalize(identifier) == normalized:
            return identifier
    return None


def match_prefix(candidate: str, identifiers: Sequence[str]) -> str | None:
    normalized = script_normalize(candidate)
    for identifier in identifiers:
        if _prefix_related(script_normalize(identifier), normalized):
            return identifier
    return None


def match_substring(candidate: str, identifiers: Sequence[str]) -> str | None:
    if len(candidate) < MIN_SUBSTRING_LENGTH:
        return None
    normalized = script_normalize(candidate)
    for identifier in identifiers:
        if _contains_either(identifier, candidate):
            return identifier
        if _contains_either(script_normalize(identifier), normalized):
            return identifier
    return None


def match_without_digits(candidate: str, identifiers: Sequence[str]) -> str | None:
    stripped = strip_digits(candidate)
    for identifier in identifiers:
        if _prefix_related(strip_digits(identifier), stripped):
            return identifier
    return None


def match_without_punctuation(candidate: str, identifiers: Sequence[str]) -> str | None:
    stripped = strip_punctuation(candidate)
    for identifier in identifiers:
        if _prefix_related(strip_punctuation(identifier), stripped):
            return identifier
    return None


def unique_identifiers(identifiers: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(identifier for identifier in identifiers if identifier))


@dataclass(frozen=True)
class MatchStrategy:
    name: str
    match: Callable[[str, Sequence[str]], str | None]


STRATEGIES: tuple[MatchStrategy, ...] = (
    MatchStrategy("exact", match_exact),
    MatchStrategy("script_normalized", match_script_normalized),
    MatchStrategy("prefix", match_prefix),
    MatchStrategy("substring", match_substring),
    MatchStrategy("without_digits", match_without_digits),
    MatchStrategy("without_punctuation", match_without_punctuation),
)


def match_candidate(candidate: str, identifiers: Sequence[str]) -> tuple[str, str] | None:
    """Run the cascade for an already-extracted slug; returns (identifier, strategy name)."""
    for strategy in STRATEGIES:
        identifier = strategy.match(candidate, identifiers)
        if identifier is not None:
            return identifier, strategy.name
    return None


def resolve_historical_path(
    path: str | Sequence[str],
    identifiers: Iterable[str],
) -> LegacyMapping:
    historical_path = path if isinstance(path, str) else "/".join(path)
    index = identifiers if isinstance(identifiers, list) else unique_identifiers(identifiers)
    candidate = extract_candidate_slug(path)
    if candidate is None:
        return LegacyMapping(historical_path=historical_path, malformed=True)

    matched = match_candidate(candidate, index)
    if matched is None:
        logger.info("no current post matches legacy path %s", historical_path)
        return LegacyMapping(historical_path=historical_path)
    identifier, strategy = matched
    return LegacyMapping(historical_path=historical_path, resolved_identifier=identifier, strategy=strategy)


def resolve_legacy_identifier(path: str | Sequence[str], identifiers: Iterable[str]) -> str | None:
    return resolve_historical_path(path, identifiers).resolved_identifier


@dataclass(frozen=True)
class LegacyResolution:
    resolved: dict[str, LegacyMapping]
    unresolved: list[LegacyMapping]
    issues: list[BuildIssue]

    def redirect_targets(self) -> dict[str, str]:
        return {
            path: f"posts/{mapping.resolved_identifier}.html" for path, mapping in self.resolved.items()
        }


def resolve_historical_paths(
    paths: Iterable[str | Sequence[str]],
    identifiers: Iterable[str],
) -> LegacyResolution:
    index = unique_identifiers(identifiers)
    resolved: dict[str, LegacyMapping] = {}
    unresolved: list[LegacyMapping] = []
    issues: list[BuildIssue] = []
    for path in paths:
        mapping = resolve_historical_path(path, index)
        if mapping.resolved:
            resolved[mapping.historical_path] = mapping
            continue
        if mapping.malformed:
            issues.append(
                BuildIssue(
                    code="malformed_legacy_path",
                    path=mapping.historical_path,
                    message="expected YYYY/MM[/DD]/<slug>",
                )
            )
            logger.warning("skipping malformed legacy path %s", mapping.historical_path)
        unresolved.append(mapping)
    return LegacyResolution(resolved=resolved, unresolved=unresolved, issues=issues)
