from __future__ import annotations

import logging
import threading

from .config import Config, load_runtime_config
from .job_queue import TASK_FAILED, TASK_FINISH, JobQueue
from .models import EXTRACT_ARTICLE, Job
from .pipelines.extractor import ContentExtractor, HtmlFetcher
from .pipelines.images import ByteFetcher, ImagePipeline
from .pipelines.readability import ReadabilityParser
from .reaper import cleanup_stuck_extractions
from .storage import init_db
from .tracker import ExtractionStateTracker
from .utils import configure_logging, log_event


class ExtractionService:
    """Wires the queue, the state tracker and the extractor together.

    Built once at startup; every collaborator is passed in explicitly.
    """

    def __init__(
        self,
        config: Config,
        tracker: ExtractionStateTracker,
        job_queue: JobQueue,
        extractor: ContentExtractor,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.tracker = tracker
        self.queue = job_queue
        self.extractor = extractor
        self.logger = logger or logging.getLogger("readlater.worker")
        self.queue.register(EXTRACT_ARTICLE, self.handle_extract_article)
        self.queue.add_listener(TASK_FINISH, self._log_task_finish)
        self.queue.add_listener(TASK_FAILED, self._log_task_failed)

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        readability: ReadabilityParser | None = None,
        html_fetcher: HtmlFetcher | None = None,
        image_fetcher: ByteFetcher | None = None,
        logger: logging.Logger | None = None,
    ) -> "ExtractionService":
        logger = logger or logging.getLogger("readlater.worker")
        if image_fetcher is None:
            images = ImagePipeline.from_http(
                config.paths.assets_dir,
                config.images,
                timeout_seconds=config.http.timeout_seconds,
                user_agent=config.http.user_agent,
            )
        else:
            images = ImagePipeline(config.paths.assets_dir, config.images, fetcher=image_fetcher)
        extractor = ContentExtractor(
            config,
            images,
            readability=readability,
            html_fetcher=html_fetcher,
        )
        job_queue = JobQueue(
            concurrency=config.queue.concurrency,
            max_attempts=config.queue.max_attempts,
            retry_delay_seconds=config.queue.retry_delay_seconds,
        )
        tracker = ExtractionStateTracker(config.paths.state_db)
        return cls(config, tracker, job_queue, extractor, logger=logger)

    def handle_extract_article(self, job: Job) -> dict[str, object]:
        article_id = str(job.payload["articleId"])
        url = str(job.payload["url"])
        self.tracker.mark_extracting(article_id)
        try:
            extracted = self.extractor.extract_from_url(url)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            log_event(
                self.logger,
                logging.WARNING,
                "extraction_attempt_failed",
                article_id=article_id,
                attempt=job.attempts,
                error=message,
            )
            try:
                self.tracker.mark_failed(article_id, url, message)
            except Exception as mark_exc:  # noqa: BLE001
                log_event(
                    self.logger,
                    logging.ERROR,
                    "extraction_failure_not_recorded",
                    article_id=article_id,
                    error=str(mark_exc),
                )
            raise
        self.tracker.mark_completed(article_id, extracted)
        return {
            "article_id": article_id,
            "title": extracted.title,
            "word_count": extracted.word_count,
        }

    def start(self, *, cleanup: bool = True) -> None:
        self.queue.start()
        if cleanup:
            self.cleanup_stuck_extractions()

    def stop(self, wait: bool = True) -> None:
        self.queue.stop(wait=wait)

    def enqueue_extraction(self, article_id: str, url: str, user_id: str) -> str:
        return self.queue.enqueue(
            EXTRACT_ARTICLE,
            {"articleId": article_id, "url": url, "userId": user_id},
        )

    def submit_article(self, url: str, user_id: str) -> tuple[str, str]:
        if self.tracker.find_article(url, user_id) is not None:
            raise ValueError("article_exists")
        article_id = self.tracker.create_article(url, user_id)
        job_id = self.enqueue_extraction(article_id, url, user_id)
        return article_id, job_id

    def retry_extraction_job(self, article_id: str) -> str:
        article = self.tracker.get_article(article_id)
        job_id = self.enqueue_extraction(article.id, article.url, article.user_id)
        log_event(self.logger, logging.INFO, "extraction_retry_queued", article_id=article.id, job_id=job_id)
        return job_id

    def cleanup_stuck_extractions(self) -> dict[str, int]:
        return cleanup_stuck_extractions(
            self.tracker,
            self.enqueue_extraction,
            timeout_seconds=self.config.extraction.stuck_timeout_seconds,
            logger=self.logger,
        )

    def enqueue_pending(self) -> int:
        queued = 0
        for article in self.tracker.list_pending():
            if self.queue.is_active(article.id):
                continue
            self.enqueue_extraction(article.id, article.url, article.user_id)
            queued += 1
        return queued

    def extraction_status(self, user_id: str | None = None) -> dict[str, int]:
        return self.tracker.status_counts(user_id)

    def queue_stats(self) -> dict[str, int]:
        return self.queue.stats()

    def serve(self, poll_seconds: float, stop_event: threading.Event | None = None) -> None:
        stop_event = stop_event or threading.Event()
        self.start()
        try:
            while not stop_event.is_set():
                queued = self.enqueue_pending()
                if queued:
                    log_event(self.logger, logging.INFO, "pending_articles_queued", count=queued)
                stop_event.wait(poll_seconds)
        finally:
            self.stop()

    def _log_task_finish(self, job: Job, result: object) -> None:
        log_event(self.logger, logging.INFO, "task_finish", job_id=job.id, result=result)

    def _log_task_failed(self, job: Job, error: object) -> None:
        log_event(self.logger, logging.ERROR, "task_failed", job_id=job.id, error=error)


def build_service(db_path: str, logger: logging.Logger | None = None) -> ExtractionService:
    logger = logger or configure_logging("readlater.worker")
    conn = init_db(db_path)
    try:
        config = load_runtime_config(conn)
    finally:
        conn.close()
    return ExtractionService.from_config(config, logger=logger)
