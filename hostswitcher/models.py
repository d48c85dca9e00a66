"""Records persisted by the stores, and their JSON document shape."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

SOURCE_LOCAL = "local"
SOURCE_REMOTE = "remote"

FREQ_MANUAL = "manual"
FREQ_STARTUP = "startup"
UPDATE_FREQUENCIES = (FREQ_MANUAL, FREQ_STARTUP)

STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

# Older documents carry naive or space-separated timestamps.
_FALLBACK_TIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S")


# ----------------------------- Helpers ---------------------------------------
def now() -> datetime:
    return datetime.now(timezone.utc).astimezone()


def new_id() -> str:
    return str(uuid.uuid4())


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def format_time(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.isoformat()


def parse_time(value) -> datetime | None:
    """Parses an RFC 3339 timestamp, tolerating the legacy formats. Empty means unset."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
        for fmt in _FALLBACK_TIME_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            raise ValueError(f"Unrecognized timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


# ----------------------------- Records ---------------------------------------
@dataclass
class Config:
    id: str
    name: str
    description: str
    content: str
    is_active: bool = False
    source: str = SOURCE_LOCAL
    remote_url: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "content": self.content,
            "is_active": self.is_active,
            "source": self.source,
            "created_at": format_time(self.created_at),
            "updated_at": format_time(self.updated_at),
        }
        if self.remote_url:
            data["remoteUrl"] = self.remote_url
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            content=data.get("content", ""),
            is_active=bool(data.get("is_active", False)),
            source=data.get("source") or SOURCE_LOCAL,
            remote_url=data.get("remoteUrl", ""),
            created_at=parse_time(data.get("created_at")),
            updated_at=parse_time(data.get("updated_at")),
        )


@dataclass
class RemoteSource:
    id: str
    name: str
    url: str
    update_freq: str = FREQ_MANUAL
    last_updated_at: datetime | None = None
    last_content: str = ""
    status: str = STATUS_PENDING

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "updateFreq": self.update_freq,
            "lastUpdatedAt": format_time(self.last_updated_at),
            "status": self.status,
        }
        if self.last_content:
            data["lastContent"] = self.last_content
        return data

    @classmethod
    def from_dict(cls, data: dict) -> RemoteSource:
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            url=data.get("url", ""),
            update_freq=data.get("updateFreq", ""),
            last_updated_at=parse_time(data.get("lastUpdatedAt")),
            last_content=data.get("lastContent", ""),
            status=data.get("status", ""),
        )


@dataclass
class Backup:
    id: str
    timestamp: datetime
    description: str
    content: str
    size: int
    is_automatic: bool
    hash: str
    tags: list[str] = field(default_factory=list)

    @classmethod
    def snapshot(cls, content: str, description: str, is_automatic: bool, tags=None) -> Backup:
        return cls(
            id=new_id(),
            timestamp=now(),
            description=description,
            content=content,
            size=len(content.encode("utf-8")),
            is_automatic=is_automatic,
            hash=content_hash(content),
            tags=unique_tags(tags),
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "timestamp": format_time(self.timestamp),
            "description": self.description,
            "content": self.content,
            "size": self.size,
            "isAutomatic": self.is_automatic,
            "hash": self.hash,
        }
        if self.tags:
            data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Backup:
        content = data.get("content", "")
        return cls(
            id=data.get("id", ""),
            timestamp=parse_time(data.get("timestamp")) or now(),
            description=data.get("description", ""),
            content=content,
            size=int(data.get("size", len(content.encode("utf-8")))),
            is_automatic=bool(data.get("isAutomatic", False)),
            hash=data.get("hash") or content_hash(content),
            tags=unique_tags(data.get("tags")),
        )


def unique_tags(tags) -> list[str]:
    """Tags behave like a set but keep their first-seen order."""
    seen = []
    for tag in tags or []:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen
