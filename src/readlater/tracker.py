from __future__ import annotations

import logging
from html import escape

from .db import connect_db
from .models import (
    FAILED_TITLE,
    STATUS_EXTRACTING,
    STATUS_PENDING,
    Article,
    ArticleNotFoundError,
    ExtractedArticle,
)
from .storage import (
    count_articles_by_status,
    create_article,
    find_article_by_url,
    get_article,
    list_articles_by_status,
    set_article_extracting,
    write_extraction_failure,
    write_extraction_result,
)
from .utils import log_event, utc_now_iso_offset


class ExtractionStateTracker:
    """Persists per-article extraction status.

    Each call opens its own connection so worker threads never share one.
    """

    def __init__(self, db_path: str, logger: logging.Logger | None = None) -> None:
        self.db_path = db_path
        self.logger = logger or logging.getLogger("readlater.tracker")

    def create_article(self, url: str, user_id: str) -> str:
        with connect_db(self.db_path) as conn:
            return create_article(conn, url, user_id)

    def get_article(self, article_id: str) -> Article:
        with connect_db(self.db_path) as conn:
            article = get_article(conn, article_id)
        if article is None:
            raise ArticleNotFoundError(f"Article not found: {article_id}")
        return article

    def find_article(self, url: str, user_id: str) -> Article | None:
        with connect_db(self.db_path) as conn:
            return find_article_by_url(conn, url, user_id)

    def mark_extracting(self, article_id: str) -> None:
        with connect_db(self.db_path) as conn:
            updated = set_article_extracting(conn, article_id)
        self._require(updated, article_id)
        log_event(self.logger, logging.INFO, "extraction_started", article_id=article_id)

    def mark_completed(self, article_id: str, extracted: ExtractedArticle) -> None:
        with connect_db(self.db_path) as conn:
            updated = write_extraction_result(conn, article_id, extracted)
        self._require(updated, article_id)
        log_event(
            self.logger,
            logging.INFO,
            "extraction_completed",
            article_id=article_id,
            title=extracted.title,
            word_count=extracted.word_count,
        )

    def mark_failed(self, article_id: str, url: str, error_message: str) -> None:
        content = (
            f"<p>Failed to extract content from URL: {escape(url)}</p>"
            f"<p>Error: {escape(error_message)}</p>"
        )
        with connect_db(self.db_path) as conn:
            updated = write_extraction_failure(
                conn,
                article_id,
                title=FAILED_TITLE,
                content=content,
                error=error_message,
            )
        self._require(updated, article_id)
        log_event(self.logger, logging.WARNING, "extraction_failed", article_id=article_id, error=error_message)

    def mark_stuck(self, article_id: str, error_message: str) -> None:
        with connect_db(self.db_path) as conn:
            updated = write_extraction_failure(
                conn, article_id, title=None, content=None, error=error_message
            )
        self._require(updated, article_id)

    def list_stuck(self, older_than_seconds: int) -> list[Article]:
        cutoff = utc_now_iso_offset(seconds=-older_than_seconds)
        with connect_db(self.db_path) as conn:
            return list_articles_by_status(conn, STATUS_EXTRACTING, updated_before=cutoff)

    def list_pending(self, limit: int | None = None) -> list[Article]:
        with connect_db(self.db_path) as conn:
            return list_articles_by_status(conn, STATUS_PENDING, limit=limit)

    def status_counts(self, user_id: str | None = None) -> dict[str, int]:
        with connect_db(self.db_path) as conn:
            return count_articles_by_status(conn, user_id)

    def _require(self, updated: bool, article_id: str) -> None:
        if not updated:
            log_event(self.logger, logging.WARNING, "article_missing", article_id=article_id)
            raise ArticleNotFoundError(f"Article not found: {article_id}")
