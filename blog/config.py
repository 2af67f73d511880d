from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import Field, field_validator

from blog.categories import DEFAULT_PROFILE_CATEGORY
from blog.schemas import BlogBaseModel

DEFAULT_SITE_URL = "https://thejoseplatero.github.io/futarigurashi"
DEFAULT_SITE_NAME = "FUTARIGURASHI"
DEFAULT_CATALOG_PATH = "data/posts.json"
DEFAULT_CATEGORIES_PATH = "data/categories.json"
DEFAULT_FEATURED_PATH = "data/top-posts.json"
DEFAULT_CONTENT_DIR = "content"
DEFAULT_OUTPUT_ROOT = ".build/site"
DEFAULT_LEGACY_HOSTS = ("futarigurashi.com",)
DEFAULT_HIDDEN_CATEGORIES = ("Uncategorized",)
DEFAULT_FEED_LIMIT = 50


def _validate_relative_path(value: str) -> str:
    path = value.strip()
    if not path:
        raise ValueError("path must be non-empty")
    if path.startswith("/"):
        raise ValueError("path must be relative")
    if ".." in path.split("/"):
        raise ValueError("path cannot contain '..'")
    return path


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class SiteConfig(BlogBaseModel):
    site_url: str = DEFAULT_SITE_URL
    site_name: str = DEFAULT_SITE_NAME
    catalog_path: str = DEFAULT_CATALOG_PATH
    categories_path: str = DEFAULT_CATEGORIES_PATH
    featured_path: str = DEFAULT_FEATURED_PATH
    content_dir: str = DEFAULT_CONTENT_DIR
    output_root: str = DEFAULT_OUTPUT_ROOT
    profile_category: str = DEFAULT_PROFILE_CATEGORY
    hidden_categories: list[str] = Field(default_factory=lambda: list(DEFAULT_HIDDEN_CATEGORIES))
    legacy_hosts: list[str] = Field(default_factory=lambda: list(DEFAULT_LEGACY_HOSTS))
    feed_limit: int = Field(default=DEFAULT_FEED_LIMIT, ge=1)

    @field_validator("site_url")
    @classmethod
    def validate_site_url(cls, value: str) -> str:
        text = value.strip().rstrip("/")
        if not text.startswith(("http://", "https://")):
            raise ValueError("site_url must be an http(s) URL")
        return text

    @field_validator("site_name", "profile_category")
    @classmethod
    def validate_non_empty(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("value must be non-empty")
        return text

    @field_validator("catalog_path", "categories_path", "featured_path", "content_dir", "output_root")
    @classmethod
    def validate_paths(cls, value: str) -> str:
        return _validate_relative_path(value)

    @field_validator("legacy_hosts")
    @classmethod
    def validate_legacy_hosts(cls, value: list[str]) -> list[str]:
        hosts: list[str] = []
        for host in value:
            text = host.strip().lower()
            if text.startswith("www."):
                text = text[len("www.") :]
            if text and text not in hosts:
                hosts.append(text)
        return hosts

    def resolve(self, project_root: Path, relative: str) -> Path:
        return (project_root / relative).resolve()


def load_site_config_from_env(
    environ: Mapping[str, str] | None = None,
    *,
    base_config: SiteConfig | None = None,
) -> SiteConfig:
    env = dict(os.environ if environ is None else environ)
    config = base_config or SiteConfig()
    payload = config.model_dump(mode="python")

    scalar_env = {
        "site_url": "BLOG_SITE_URL",
        "site_name": "BLOG_SITE_NAME",
        "catalog_path": "BLOG_CATALOG_PATH",
        "categories_path": "BLOG_CATEGORIES_PATH",
        "featured_path": "BLOG_FEATURED_PATH",
        "content_dir": "BLOG_CONTENT_DIR",
        "output_root": "BLOG_OUTPUT_ROOT",
        "profile_category": "BLOG_PROFILE_CATEGORY",
    }
    for field_name, env_var in scalar_env.items():
        if env_var in env:
            payload[field_name] = env[env_var]

    if "BLOG_HIDDEN_CATEGORIES" in env:
        payload["hidden_categories"] = _split_list(env["BLOG_HIDDEN_CATEGORIES"])
    if "BLOG_LEGACY_HOSTS" in env:
        payload["legacy_hosts"] = _split_list(env["BLOG_LEGACY_HOSTS"])
    if "BLOG_FEED_LIMIT" in env:
        raw = env["BLOG_FEED_LIMIT"].strip()
        try:
            payload["feed_limit"] = int(raw)
        except ValueError as exc:
            raise ValueError("BLOG_FEED_LIMIT must be an integer") from exc

    return SiteConfig.model_validate(payload)
