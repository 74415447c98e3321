from readlater.db import connect_db
from readlater.reaper import STUCK_ERROR, cleanup_stuck_extractions
from readlater.tracker import ExtractionStateTracker
from readlater.utils import utc_now_iso_offset


def _age(db_path, article_id, seconds):
    with connect_db(db_path) as conn:
        conn.execute(
            "UPDATE articles SET updated_at = ? WHERE id = ?",
            (utc_now_iso_offset(seconds=-seconds), article_id),
        )


def test_stuck_article_is_failed_and_rescheduled(config):
    db_path = config.paths.state_db
    tracker = ExtractionStateTracker(db_path)
    stuck = tracker.create_article("https://example.com/stuck", "u1")
    fresh = tracker.create_article("https://example.com/fresh", "u1")
    old_pending = tracker.create_article("https://example.com/pending", "u1")
    tracker.mark_extracting(stuck)
    tracker.mark_extracting(fresh)
    _age(db_path, stuck, 11 * 60)
    _age(db_path, old_pending, 60 * 60)

    calls = []
    result = cleanup_stuck_extractions(tracker, lambda *args: calls.append(args), timeout_seconds=600)

    assert result == {"cleaned": 1, "rescheduled": 1}
    assert calls == [(stuck, "https://example.com/stuck", "u1")]
    article = tracker.get_article(stuck)
    assert article.extraction_status == "failed"
    assert article.extraction_error == STUCK_ERROR
    assert tracker.get_article(fresh).extraction_status == "extracting"
    assert tracker.get_article(old_pending).extraction_status == "pending"


def test_reschedule_errors_are_counted_and_skipped(config):
    db_path = config.paths.state_db
    tracker = ExtractionStateTracker(db_path)
    ids = [tracker.create_article(f"https://example.com/{n}", "u1") for n in range(2)]
    for article_id in ids:
        tracker.mark_extracting(article_id)
        _age(db_path, article_id, 20 * 60)

    seen = []

    def reschedule(article_id, url, user_id):
        seen.append(article_id)
        if len(seen) == 1:
            raise RuntimeError("queue down")

    result = cleanup_stuck_extractions(tracker, reschedule, timeout_seconds=600)
    assert result == {"cleaned": 2, "rescheduled": 1}
    assert len(seen) == 2
    assert all(tracker.get_article(a).extraction_status == "failed" for a in ids)


def test_nothing_stuck(config):
    tracker = ExtractionStateTracker(config.paths.state_db)
    result = cleanup_stuck_extractions(tracker, lambda *args: None)
    assert result == {"cleaned": 0, "rescheduled": 0}
