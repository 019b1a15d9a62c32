from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, field_validator


class ShortenIn(BaseModel):
    # Validated in crud.shorten so a missing url is a 400 like any other bad url
    url: str | None = None
    preferredCode: Any = None


class ShortenOut(BaseModel):
    short_code: str
    short_url: str
    original_url: str


class LinkRow(BaseModel):
    id: str
    short_code: str
    short_url: str
    original_url: str
    visits: int
    createdAt: datetime

    @field_validator("createdAt")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive timestamps; they are stored in UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class PaginatedLinks(BaseModel):
    page: int
    limit: int
    total: int
    rows: list[LinkRow]


class SummaryOut(BaseModel):
    total_links: int
    total_visits: int


class BulkDeleteIn(BaseModel):
    ids: list[str] | None = None


class DeletedOut(BaseModel):
    ok: bool = True
    deleted: str


class BulkDeletedOut(BaseModel):
    ok: bool = True
    deletedCount: int


class HealthOut(BaseModel):
    ok: bool = True


class DbInfoOut(BaseModel):
    connected: bool
    dialect: str
    name: str | None = None


class CountOut(BaseModel):
    links_count: int
