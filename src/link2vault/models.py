"""Data models for link2vault.

Records are serialized with camelCase keys so persisted batch state and
history keep the same shape as the extraction-agent wire format.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class UrlStatus(str, Enum):
    """Per-URL status inside a batch."""

    QUEUED = "queued"
    EXTRACTING = "extracting"
    SUMMARIZING = "summarizing"
    CATEGORIZING = "categorizing"
    CREATING = "creating"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"
    REVIEW = "review"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    UrlStatus.DONE,
    UrlStatus.FAILED,
    UrlStatus.SKIPPED,
    UrlStatus.REVIEW,
    UrlStatus.TIMEOUT,
    UrlStatus.CANCELLED,
})


class QualityReason(str, Enum):
    LOGIN_WALL = "login-wall"
    BOT_PROTECTION = "bot-protection"
    SOFT_404 = "soft-404"
    DELETED_CONTENT = "deleted-content"
    INSUFFICIENT_CONTENT = "insufficient-content"
    ERROR_PAGE = "error-page"


@dataclass(frozen=True)
class ExtractedContent:
    """Content pulled from a URL. Immutable once produced."""

    url: str
    title: str
    content: str
    author: Optional[str] = None
    date_published: Optional[str] = None
    word_count: int = 0
    type: str = "article"  # article, social-media
    platform: str = "web"  # web, x, linkedin, reddit
    status: str = "success"  # success, failed
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict:
        data = {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "author": self.author,
            "datePublished": self.date_published,
            "wordCount": self.word_count,
            "type": self.type,
            "platform": self.platform,
            "status": self.status,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractedContent":
        content = data.get("content") or ""
        word_count = data.get("wordCount")
        if not isinstance(word_count, int):
            word_count = len(content.split())
        return cls(
            url=data.get("url", ""),
            title=data.get("title") or "",
            content=content,
            author=data.get("author"),
            date_published=data.get("datePublished"),
            word_count=word_count,
            type=data.get("type") or "article",
            platform=data.get("platform") or "web",
            status=data.get("status") or "failed",
            error=data.get("error"),
        )


@dataclass
class ContentQuality:
    is_low_quality: bool
    reason: Optional[QualityReason] = None
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict = {"isLowQuality": self.is_low_quality}
        if self.reason is not None:
            data["reason"] = self.reason.value
        if self.detail is not None:
            data["detail"] = self.detail
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ContentQuality":
        reason = data.get("reason")
        return cls(
            is_low_quality=bool(data.get("isLowQuality")),
            reason=QualityReason(reason) if reason else None,
            detail=data.get("detail"),
        )


@dataclass
class NotePreview:
    """A note sampled from the vault, used as a categorization example."""

    folder: str
    title: str
    tags: list[str] = field(default_factory=list)


@dataclass
class TagGroup:
    """A user-defined vocabulary of related tags."""

    name: str
    tags: list[str] = field(default_factory=list)


@dataclass
class VaultContext:
    """Vault sample shared read-only by every generation call in a batch."""

    folders: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    recent_notes: list[NotePreview] = field(default_factory=list)
    tag_groups: list[TagGroup] = field(default_factory=list)
    organization: str = "custom"  # para, custom


@dataclass
class ProcessedNote:
    title: str
    summary: str
    key_takeaways: list[str]
    suggested_folder: str
    suggested_tags: list[str]
    type: str
    platform: str
    source: ExtractedContent

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "summary": self.summary,
            "keyTakeaways": list(self.key_takeaways),
            "suggestedFolder": self.suggested_folder,
            "suggestedTags": list(self.suggested_tags),
            "type": self.type,
            "platform": self.platform,
            "source": self.source.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ProcessedNote":
        return cls(
            title=data.get("title", ""),
            summary=data.get("summary", ""),
            key_takeaways=list(data.get("keyTakeaways") or []),
            suggested_folder=data.get("suggestedFolder", ""),
            suggested_tags=list(data.get("suggestedTags") or []),
            type=data.get("type", "article"),
            platform=data.get("platform", "web"),
            source=ExtractedContent.from_dict(data.get("source") or {}),
        )


@dataclass
class ProcessingResult:
    """Durable outcome for one URL."""

    url: str
    status: str  # success, failed, skipped, review, timeout, cancelled
    folder: Optional[str] = None
    note: Optional[ProcessedNote] = None
    error: Optional[str] = None
    error_category: Optional[str] = None
    content_quality: Optional[ContentQuality] = None
    skip_reason: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict = {"url": self.url, "status": self.status}
        if self.folder is not None:
            data["folder"] = self.folder
        if self.note is not None:
            data["note"] = self.note.to_dict()
        if self.error is not None:
            data["error"] = self.error
        if self.error_category is not None:
            data["errorCategory"] = self.error_category
        if self.content_quality is not None:
            data["contentQuality"] = self.content_quality.to_dict()
        if self.skip_reason is not None:
            data["skipReason"] = self.skip_reason
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ProcessingResult":
        note = data.get("note")
        quality = data.get("contentQuality")
        return cls(
            url=data["url"],
            status=data["status"],
            folder=data.get("folder"),
            note=ProcessedNote.from_dict(note) if note else None,
            error=data.get("error"),
            error_category=data.get("errorCategory"),
            content_quality=ContentQuality.from_dict(quality) if quality else None,
            skip_reason=data.get("skipReason"),
        )


@dataclass(frozen=True)
class BatchState:
    """Snapshot of one in-flight batch.

    Frozen: the orchestrator publishes a new instance for every transition
    instead of mutating the one observers may be reading.
    """

    active: bool
    urls: tuple[str, ...]
    results: tuple[ProcessingResult, ...] = ()
    url_statuses: dict = field(default_factory=dict)
    started_at: int = field(default_factory=lambda: int(time.time() * 1000))
    cancelled: bool = False
    error: Optional[str] = None

    @classmethod
    def start(cls, urls: list[str]) -> "BatchState":
        return cls(
            active=True,
            urls=tuple(urls),
            url_statuses={url: UrlStatus.QUEUED for url in urls},
        )

    def to_dict(self) -> dict:
        data = {
            "active": self.active,
            "urls": list(self.urls),
            "results": [r.to_dict() for r in self.results],
            "urlStatuses": {url: UrlStatus(s).value for url, s in self.url_statuses.items()},
            "startedAt": self.started_at,
            "cancelled": self.cancelled,
        }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BatchState":
        return cls(
            active=bool(data.get("active")),
            urls=tuple(data.get("urls") or []),
            results=tuple(ProcessingResult.from_dict(r) for r in data.get("results") or []),
            url_statuses={
                url: UrlStatus(s) for url, s in (data.get("urlStatuses") or {}).items()
            },
            started_at=int(data.get("startedAt") or 0),
            cancelled=bool(data.get("cancelled")),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class PreloadedTab:
    url: str
    tab_id: int
    created_at: float = field(default_factory=time.monotonic)
