from __future__ import annotations

import datetime as _dt
import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DATE_TIME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})[ T]\d{2}:\d{2}(?::\d{2})?(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?$")


class BlogBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def parse_publish_date(value: Any) -> _dt.date:
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise ValueError("date must be a string in YYYY-MM-DD form")

    text = value.strip()
    match = DATE_TIME_RE.match(text)
    if match:
        text = match.group(1)
    if not DATE_ONLY_RE.match(text):
        raise ValueError(f"date must match YYYY-MM-DD (got {value!r})")
    try:
        return _dt.date.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(str(exc)) from exc


class PostRecord(BlogBaseModel):
    identifier: str = Field(alias="slug", min_length=1)
    title: str
    published_at: _dt.date = Field(alias="date")
    categories: list[str] = Field(default_factory=list)
    summary: str | None = Field(default=None, alias="excerpt")
    relative_date: str | None = Field(default=None, alias="dateRel")

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("identifier must be non-empty")
        return text

    @field_validator("published_at", mode="before")
    @classmethod
    def validate_published_at(cls, value: Any) -> _dt.date:
        return parse_publish_date(value)

    @field_validator("categories", mode="before")
    @classmethod
    def validate_categories(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        names: list[str] = []
        for item in value:
            text = str(item).strip()
            if text:
                names.append(text)
        return names

    def as_catalog_entry(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CategorySource(BlogBaseModel):
    source_id: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    parent_source_id: str | None = None

    @field_validator("parent_source_id", mode="before")
    @classmethod
    def normalize_parent(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


class LegacyMapping(BlogBaseModel):
    historical_path: str
    resolved_identifier: str | None = None
    strategy: str | None = None
    malformed: bool = False

    @property
    def resolved(self) -> bool:
        return self.resolved_identifier is not None


@dataclass(frozen=True)
class BuildIssue:
    code: str
    path: str
    message: str
    line: int | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "path": self.path,
            "message": self.message,
        }
        if self.line is not None:
            payload["line"] = self.line
        return payload


class BuildError(RuntimeError):
    """Base class for failures that abort a run before anything is written."""

    path: str
    details: str | None

    def __init__(self, *, path: str, message: str, details: str | None = None) -> None:
        self.path = path
        self.details = details
        full_message = f"{message}: {path}"
        if details:
            full_message = f"{full_message} ({details})"
        super().__init__(full_message)


class CatalogError(BuildError):
    def __init__(self, *, path: str, details: str | None = None) -> None:
        super().__init__(path=path, message="persisted catalog is unreadable", details=details)


class ExportError(BuildError):
    def __init__(self, *, path: str, details: str | None = None) -> None:
        super().__init__(path=path, message="legacy export is unreadable", details=details)
