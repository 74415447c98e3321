from __future__ import annotations

import logging
from typing import Callable

from .tracker import ExtractionStateTracker
from .utils import log_event

STUCK_ERROR = "Extraction timeout - job was stuck"
DEFAULT_STUCK_TIMEOUT_SECONDS = 600

Rescheduler = Callable[[str, str, str], object]


def cleanup_stuck_extractions(
    tracker: ExtractionStateTracker,
    reschedule: Rescheduler,
    *,
    timeout_seconds: int = DEFAULT_STUCK_TIMEOUT_SECONDS,
    logger: logging.Logger | None = None,
) -> dict[str, int]:
    """Fail and re-enqueue articles left in ``extracting`` past the timeout.

    ``reschedule`` is called as ``reschedule(article_id, url, user_id)``.
    """
    logger = logger or logging.getLogger("readlater.reaper")
    stuck = tracker.list_stuck(timeout_seconds)
    log_event(logger, logging.INFO, "stuck_extractions_found", count=len(stuck), timeout_seconds=timeout_seconds)
    rescheduled = 0
    for article in stuck:
        try:
            tracker.mark_stuck(article.id, STUCK_ERROR)
            reschedule(article.id, article.url, article.user_id)
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.ERROR, "stuck_reschedule_failed", article_id=article.id, error=str(exc))
            continue
        rescheduled += 1
        log_event(logger, logging.INFO, "stuck_rescheduled", article_id=article.id)
    return {"cleaned": len(stuck), "rescheduled": rescheduled}
