from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os

from .config import (
    ConfigError,
    get_runtime_config,
    get_state_db_path,
    import_config_file,
)
from .models import ArticleNotFoundError, QueueNotStartedError
from .storage import init_db
from .utils import configure_logging, json_dumps, log_event
from .worker import build_service


def _setup_logging() -> logging.Logger:
    return configure_logging("readlater")


def _print_json(value: object) -> None:
    print(json.dumps(json.loads(json_dumps(value)), indent=2, sort_keys=True))


def _cmd_db_migrate(args: argparse.Namespace, logger: logging.Logger) -> int:
    path = get_state_db_path()
    init_db(path).close()
    log_event(logger, logging.INFO, "db_migrated", path=path)
    return 0


def _cmd_config_show(args: argparse.Namespace, logger: logging.Logger) -> int:
    conn = init_db(get_state_db_path())
    try:
        cfg = get_runtime_config(conn)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    finally:
        conn.close()
    _print_json(cfg)
    return 0


def _cmd_config_import(args: argparse.Namespace, logger: logging.Logger) -> int:
    conn = init_db(get_state_db_path())
    try:
        import_config_file(conn, args.path)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    finally:
        conn.close()
    log_event(logger, logging.INFO, "config_imported", path=args.path)
    return 0


def _run_and_wait(service, action, timeout: float, logger: logging.Logger) -> int:
    service.start(cleanup=False)
    try:
        action()
        if not service.queue.wait_idle(timeout):
            log_event(logger, logging.WARNING, "wait_timeout", timeout=timeout, **service.queue_stats())
            return 1
    finally:
        service.stop(wait=False)
    return 0


def _cmd_articles_add(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        service = build_service(get_state_db_path(), logger)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    created: dict[str, str] = {}

    def _submit() -> None:
        article_id, job_id = service.submit_article(args.url, args.user_id)
        created["article_id"] = article_id
        log_event(logger, logging.INFO, "article_added", article_id=article_id, job_id=job_id)

    try:
        code = _run_and_wait(service, _submit, args.timeout, logger)
    except ValueError as exc:
        log_event(logger, logging.ERROR, "article_add_failed", url=args.url, error=str(exc))
        return 1
    if "article_id" in created:
        _print_article(service.tracker.get_article(created["article_id"]), include_html=False)
    return code


def _cmd_articles_show(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        service = build_service(get_state_db_path(), logger)
        article = service.tracker.get_article(args.article_id)
    except (ConfigError, ArticleNotFoundError) as exc:
        log_event(logger, logging.ERROR, "article_show_failed", article_id=args.article_id, error=str(exc))
        return 1
    _print_article(article, include_html=args.html)
    return 0


def _cmd_articles_retry(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        service = build_service(get_state_db_path(), logger)
        code = _run_and_wait(
            service,
            lambda: service.retry_extraction_job(args.article_id),
            args.timeout,
            logger,
        )
    except (ConfigError, ArticleNotFoundError, QueueNotStartedError) as exc:
        log_event(logger, logging.ERROR, "retry_failed", article_id=args.article_id, error=str(exc))
        return 1
    _print_article(service.tracker.get_article(args.article_id), include_html=False)
    return code


def _cmd_articles_status(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        service = build_service(get_state_db_path(), logger)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    _print_json(service.extraction_status(args.user_id))
    return 0


def _cmd_cleanup_stuck(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        service = build_service(get_state_db_path(), logger)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    result: dict[str, int] = {}
    code = _run_and_wait(
        service,
        lambda: result.update(service.cleanup_stuck_extractions()),
        args.timeout,
        logger,
    )
    log_event(logger, logging.INFO, "cleanup_stuck_done", **result)
    _print_json(result)
    return code


def _cmd_serve(args: argparse.Namespace, logger: logging.Logger) -> int:
    try:
        service = build_service(get_state_db_path(), logger)
    except ConfigError as exc:
        log_event(logger, logging.ERROR, "config_error", error=str(exc))
        return 1
    log_event(logger, logging.INFO, "serve_started", poll_seconds=args.poll_seconds)
    try:
        service.serve(args.poll_seconds)
    except KeyboardInterrupt:
        log_event(logger, logging.INFO, "serve_interrupted")
    return 0


def _print_article(article, include_html: bool) -> None:
    data = dataclasses.asdict(article)
    if not include_html:
        data.pop("original_html", None)
    _print_json(data)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="readlater", description="readlater extraction pipeline")
    parser.add_argument(
        "--data-dir",
        dest="data_dir",
        default=None,
        help="Data directory holding state.sqlite3 and assets (defaults to RL_DATA_DIR or ./data)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    db_parser = subparsers.add_parser("db", help="Database maintenance")
    db_subparsers = db_parser.add_subparsers(dest="db_command", required=True)
    db_migrate = db_subparsers.add_parser("migrate", help="Apply database migrations")
    db_migrate.set_defaults(func=_cmd_db_migrate)

    config_parser = subparsers.add_parser("config", help="Runtime configuration")
    config_subparsers = config_parser.add_subparsers(dest="config_command", required=True)
    config_show = config_subparsers.add_parser("show", help="Print the runtime config")
    config_show.set_defaults(func=_cmd_config_show)
    config_import = config_subparsers.add_parser("import", help="Merge a YAML file into the runtime config")
    config_import.add_argument("path", help="Path to a YAML overlay")
    config_import.set_defaults(func=_cmd_config_import)

    articles_parser = subparsers.add_parser("articles", help="Article extraction commands")
    articles_subparsers = articles_parser.add_subparsers(dest="articles_command", required=True)

    articles_add = articles_subparsers.add_parser("add", help="Save a URL and extract it")
    articles_add.add_argument("url", help="Article URL")
    articles_add.add_argument("--user-id", default="local", help="Owner of the article")
    articles_add.add_argument("--timeout", type=float, default=120.0, help="Seconds to wait for extraction")
    articles_add.set_defaults(func=_cmd_articles_add)

    articles_show = articles_subparsers.add_parser("show", help="Show an article")
    articles_show.add_argument("article_id", help="Article id")
    articles_show.add_argument("--html", action="store_true", help="Include the fetched HTML")
    articles_show.set_defaults(func=_cmd_articles_show)

    articles_retry = articles_subparsers.add_parser("retry", help="Re-run extraction for an article")
    articles_retry.add_argument("article_id", help="Article id")
    articles_retry.add_argument("--timeout", type=float, default=120.0, help="Seconds to wait for extraction")
    articles_retry.set_defaults(func=_cmd_articles_retry)

    articles_status = articles_subparsers.add_parser("status", help="Count articles per extraction status")
    articles_status.add_argument("--user-id", default=None, help="Restrict to one user")
    articles_status.set_defaults(func=_cmd_articles_status)

    extraction_parser = subparsers.add_parser("extraction", help="Extraction maintenance")
    extraction_subparsers = extraction_parser.add_subparsers(dest="extraction_command", required=True)
    cleanup = extraction_subparsers.add_parser(
        "cleanup-stuck", help="Fail and reschedule extractions stuck past the timeout"
    )
    cleanup.add_argument("--timeout", type=float, default=300.0, help="Seconds to wait for rescheduled jobs")
    cleanup.set_defaults(func=_cmd_cleanup_stuck)

    serve_parser = subparsers.add_parser("serve", help="Run the worker pool and pick up pending articles")
    serve_parser.add_argument("--poll-seconds", type=float, default=5.0, help="Pending-article poll interval")
    serve_parser.set_defaults(func=_cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.data_dir:
        os.environ["RL_DATA_DIR"] = args.data_dir
    logger = _setup_logging()
    return args.func(args, logger)


if __name__ == "__main__":
    raise SystemExit(main())
