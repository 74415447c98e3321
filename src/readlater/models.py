from __future__ import annotations

from dataclasses import dataclass, field

EXTRACT_ARTICLE = "extract-article"

STATUS_PENDING = "pending"
STATUS_EXTRACTING = "extracting"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

EXTRACTION_STATUSES = (STATUS_PENDING, STATUS_EXTRACTING, STATUS_COMPLETED, STATUS_FAILED)

UNTITLED_ARTICLE = "Untitled Article"
PLACEHOLDER_TITLE = "Extracting..."
FAILED_TITLE = "Failed to extract"


class ReadLaterError(Exception):
    pass


class FetchError(ReadLaterError):
    pass


class QueueNotStartedError(ReadLaterError):
    pass


class ArticleNotFoundError(ReadLaterError):
    pass


@dataclass(frozen=True)
class Job:
    id: str
    kind: str
    payload: dict[str, object]
    requested_at: str
    attempts: int = 0
    max_attempts: int = 3
    last_error: str | None = None

    @property
    def article_id(self) -> str | None:
        value = self.payload.get("articleId")
        return str(value) if value is not None else None


@dataclass(frozen=True)
class Article:
    id: str
    url: str
    user_id: str
    title: str
    author: str | None
    excerpt: str | None
    content: str | None
    original_html: str | None
    word_count: int | None
    reading_time: int | None
    published_at: str | None
    favicon: str | None
    image: str | None
    extraction_status: str
    extraction_error: str | None
    created_at: str
    updated_at: str


@dataclass(frozen=True)
class ReadabilityResult:
    title: str | None = None
    byline: str | None = None
    excerpt: str | None = None
    content: str | None = None
    text_content: str | None = None


@dataclass(frozen=True)
class ExtractedArticle:
    title: str
    content: str
    original_html: str
    word_count: int
    reading_time: int
    author: str | None = None
    excerpt: str | None = None
    published_at: str | None = None
    favicon: str | None = None
    image: str | None = None
    content_images: list[str] = field(default_factory=list)
