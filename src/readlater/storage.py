from __future__ import annotations

import json
import uuid
from typing import Any

from .db import DBConn, connect_db
from .models import (
    EXTRACTION_STATUSES,
    PLACEHOLDER_TITLE,
    STATUS_COMPLETED,
    STATUS_EXTRACTING,
    STATUS_FAILED,
    STATUS_PENDING,
    Article,
    ExtractedArticle,
)
from .utils import json_dumps, utc_now_iso

_ARTICLE_COLUMNS = """
    id, url, user_id, title, author, excerpt, content, original_html, word_count,
    reading_time, published_at, favicon, image, extraction_status, extraction_error,
    created_at, updated_at
"""


def init_db(path: str) -> DBConn:
    return connect_db(path)


def get_setting(conn: Any, key: str, default: object) -> object:
    cursor = conn.execute("SELECT value FROM settings WHERE key = ?", (key,))
    row = cursor.fetchone()
    if not row:
        return default
    try:
        return json.loads(row[0])
    except json.JSONDecodeError:
        return default


def set_setting(conn: Any, key: str, value: object) -> None:
    payload = json_dumps(value)
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO settings (key, value, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
        """,
        (key, payload, now),
    )
    conn.commit()


def create_article(conn: Any, url: str, user_id: str) -> str:
    article_id = _new_article_id()
    now = utc_now_iso()
    conn.execute(
        """
        INSERT INTO articles
            (id, url, user_id, title, extraction_status, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (article_id, url, user_id, PLACEHOLDER_TITLE, STATUS_PENDING, now, now),
    )
    conn.commit()
    return article_id


def get_article(conn: Any, article_id: str) -> Article | None:
    cursor = conn.execute(
        f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE id = ?",
        (article_id,),
    )
    row = cursor.fetchone()
    return _row_to_article(row) if row else None


def find_article_by_url(conn: Any, url: str, user_id: str) -> Article | None:
    cursor = conn.execute(
        f"SELECT {_ARTICLE_COLUMNS} FROM articles WHERE url = ? AND user_id = ? LIMIT 1",
        (url, user_id),
    )
    row = cursor.fetchone()
    return _row_to_article(row) if row else None


def set_article_extracting(conn: Any, article_id: str) -> bool:
    cursor = conn.execute(
        """
        UPDATE articles
        SET extraction_status = ?, extraction_error = NULL, updated_at = ?
        WHERE id = ?
        """,
        (STATUS_EXTRACTING, utc_now_iso(), article_id),
    )
    conn.commit()
    return cursor.rowcount == 1


def write_extraction_result(conn: Any, article_id: str, extracted: ExtractedArticle) -> bool:
    cursor = conn.execute(
        """
        UPDATE articles
        SET title = ?, author = ?, content = ?, excerpt = ?, word_count = ?,
            reading_time = ?, published_at = ?, favicon = ?, image = ?,
            original_html = ?, extraction_status = ?, extraction_error = NULL,
            updated_at = ?
        WHERE id = ?
        """,
        (
            extracted.title,
            extracted.author,
            extracted.content,
            extracted.excerpt,
            extracted.word_count,
            extracted.reading_time,
            extracted.published_at,
            extracted.favicon,
            extracted.image,
            extracted.original_html,
            STATUS_COMPLETED,
            utc_now_iso(),
            article_id,
        ),
    )
    conn.commit()
    return cursor.rowcount == 1


def write_extraction_failure(
    conn: Any,
    article_id: str,
    *,
    title: str | None,
    content: str | None,
    error: str,
) -> bool:
    if title is None and content is None:
        cursor = conn.execute(
            """
            UPDATE articles
            SET extraction_status = ?, extraction_error = ?, updated_at = ?
            WHERE id = ?
            """,
            (STATUS_FAILED, error, utc_now_iso(), article_id),
        )
    else:
        cursor = conn.execute(
            """
            UPDATE articles
            SET title = ?, content = ?, extraction_status = ?, extraction_error = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (title, content, STATUS_FAILED, error, utc_now_iso(), article_id),
        )
    conn.commit()
    return cursor.rowcount == 1


def list_articles_by_status(
    conn: Any,
    status: str,
    *,
    updated_before: str | None = None,
    limit: int | None = None,
) -> list[Article]:
    params: list[object] = [status]
    clause = ""
    if updated_before is not None:
        clause = " AND updated_at < ?"
        params.append(updated_before)
    limit_clause = ""
    if limit is not None:
        limit_clause = " LIMIT ?"
        params.append(limit)
    cursor = conn.execute(
        f"""
        SELECT {_ARTICLE_COLUMNS}
        FROM articles
        WHERE extraction_status = ?{clause}
        ORDER BY updated_at ASC{limit_clause}
        """,
        tuple(params),
    )
    return [_row_to_article(row) for row in cursor.fetchall()]


def count_articles_by_status(conn: Any, user_id: str | None = None) -> dict[str, int]:
    if user_id is None:
        cursor = conn.execute(
            "SELECT extraction_status, COUNT(*) FROM articles GROUP BY extraction_status"
        )
    else:
        cursor = conn.execute(
            """
            SELECT extraction_status, COUNT(*)
            FROM articles
            WHERE user_id = ?
            GROUP BY extraction_status
            """,
            (user_id,),
        )
    counts = {status: 0 for status in EXTRACTION_STATUSES}
    for status, count in cursor.fetchall():
        counts[str(status)] = int(count)
    return counts


def _row_to_article(row: tuple) -> Article:
    (
        article_id,
        url,
        user_id,
        title,
        author,
        excerpt,
        content,
        original_html,
        word_count,
        reading_time,
        published_at,
        favicon,
        image,
        extraction_status,
        extraction_error,
        created_at,
        updated_at,
    ) = row
    return Article(
        id=article_id,
        url=url,
        user_id=user_id,
        title=title,
        author=author,
        excerpt=excerpt,
        content=content,
        original_html=original_html,
        word_count=word_count,
        reading_time=reading_time,
        published_at=published_at,
        favicon=favicon,
        image=image,
        extraction_status=extraction_status,
        extraction_error=extraction_error,
        created_at=created_at,
        updated_at=updated_at,
    )


def _new_article_id() -> str:
    return uuid.uuid4().hex
