from __future__ import annotations

import logging
import sqlite3
from typing import Callable

from .utils import utc_now_iso

Migration = Callable[[sqlite3.Connection], None]


def apply_migrations(conn: sqlite3.Connection) -> None:
    logger = logging.getLogger("readlater.migrations")
    conn.execute("BEGIN IMMEDIATE")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
        """
    )
    applied = {
        row[0]
        for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
    }
    try:
        for version, migration in _get_migrations():
            if version in applied:
                logger.debug("migration_skipped version=%s", version)
                continue
            migration(conn)
            conn.execute(
                "INSERT OR IGNORE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                (version, utc_now_iso()),
            )
            logger.info("migration_applied version=%s", version)
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def _migration_initial_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS articles (
            id TEXT PRIMARY KEY,
            url TEXT NOT NULL,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            author TEXT NULL,
            excerpt TEXT NULL,
            content TEXT NULL,
            original_html TEXT NULL,
            word_count INTEGER NULL,
            reading_time INTEGER NULL,
            published_at TEXT NULL,
            favicon TEXT NULL,
            image TEXT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_articles_user ON articles(user_id)")


def _migration_extraction_status(conn: sqlite3.Connection) -> None:
    conn.execute(
        "ALTER TABLE articles ADD COLUMN extraction_status TEXT NOT NULL DEFAULT 'pending'"
    )
    conn.execute("ALTER TABLE articles ADD COLUMN extraction_error TEXT NULL")
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_articles_extraction
        ON articles(extraction_status, updated_at)
        """
    )


def _get_migrations() -> list[tuple[str, Migration]]:
    return [
        ("001_initial_schema", _migration_initial_schema),
        ("002_extraction_status", _migration_extraction_status),
    ]
