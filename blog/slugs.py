from __future__ import annotations

import re
from urllib.parse import unquote

FALLBACK_IDENTIFIER = "post"
MAX_IDENTIFIER_LENGTH = 80

# ASCII word characters, hyphen, Hiragana, Katakana and CJK Unified Ideographs.
ALLOWED_CHARS = r"A-Za-z0-9_\u3040-\u309f\u30a0-\u30ff\u4e00-\u9faf\-"
WHITESPACE_RE = re.compile(r"\s+")
DISALLOWED_RE = re.compile(rf"[^{ALLOWED_CHARS}]")
HYPHEN_RUN_RE = re.compile(r"-+")


def normalize_identifier(value: str) -> str:
    """Turn a title or path segment into a URL-safe identifier.

    The result only contains characters from ``ALLOWED_CHARS``, is at most
    ``MAX_IDENTIFIER_LENGTH`` characters long and is never empty. Applying the
    function to its own output returns the output unchanged.
    """
    text = WHITESPACE_RE.sub("-", value.strip())
    text = DISALLOWED_RE.sub("", text)
    text = HYPHEN_RUN_RE.sub("-", text)
    text = text[:MAX_IDENTIFIER_LENGTH]
    return text or FALLBACK_IDENTIFIER


def identifier_from_post_name(post_name: str) -> str | None:
    """Identifier for an export item that carries a percent-encoded post name.

    Disallowed characters become hyphens rather than being dropped, so word
    boundaries inside the original permalink survive.
    """
    name = post_name.strip()
    if not name:
        return None
    try:
        decoded = unquote(name, errors="strict")
    except UnicodeDecodeError:
        return None
    text = DISALLOWED_RE.sub("-", decoded)
    text = HYPHEN_RUN_RE.sub("-", text)
    text = text[:MAX_IDENTIFIER_LENGTH]
    return text or FALLBACK_IDENTIFIER


def path_identifier(names: list[str]) -> str:
    parts = [normalize_identifier(name).lower() for name in names]
    return normalize_identifier("-".join(parts))
