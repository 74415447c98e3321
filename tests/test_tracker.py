import pytest

from readlater.models import ArticleNotFoundError, ExtractedArticle
from readlater.tracker import ExtractionStateTracker


def _extracted(**overrides):
    values = {
        "title": "A Title",
        "content": "<p>Body text</p>",
        "original_html": "<html><body><p>Body text</p></body></html>",
        "word_count": 2,
        "reading_time": 1,
        "author": "Jo Writer",
        "excerpt": "Body text",
        "published_at": "2024-01-02T10:00:00+00:00",
        "favicon": "https://example.com/favicon.ico",
        "image": "abc.webp",
    }
    values.update(overrides)
    return ExtractedArticle(**values)


def test_new_article_is_pending_with_placeholder(config):
    tracker = ExtractionStateTracker(config.paths.state_db)
    article_id = tracker.create_article("https://example.com/a", "u1")
    article = tracker.get_article(article_id)
    assert article.extraction_status == "pending"
    assert article.title == "Extracting..."
    assert article.content is None
    assert tracker.find_article("https://example.com/a", "u1").id == article_id
    assert tracker.find_article("https://example.com/a", "u2") is None


def test_extracting_then_completed(config):
    tracker = ExtractionStateTracker(config.paths.state_db)
    article_id = tracker.create_article("https://example.com/a", "u1")

    tracker.mark_extracting(article_id)
    assert tracker.get_article(article_id).extraction_status == "extracting"

    tracker.mark_completed(article_id, _extracted())
    article = tracker.get_article(article_id)
    assert article.extraction_status == "completed"
    assert article.extraction_error is None
    assert article.title == "A Title"
    assert article.author == "Jo Writer"
    assert article.word_count == 2
    assert article.reading_time == 1
    assert article.image == "abc.webp"
    assert article.original_html.startswith("<html>")


def test_failed_article_shows_url_and_error(config):
    tracker = ExtractionStateTracker(config.paths.state_db)
    url = "https://example.com/a?x=1&y=<2>"
    article_id = tracker.create_article(url, "u1")
    tracker.mark_extracting(article_id)
    tracker.mark_failed(article_id, url, "Failed to fetch URL: 404 Not Found")

    article = tracker.get_article(article_id)
    assert article.extraction_status == "failed"
    assert article.extraction_error == "Failed to fetch URL: 404 Not Found"
    assert article.title == "Failed to extract"
    assert "Failed to extract content from URL: https://example.com/a?x=1&amp;y=&lt;2&gt;" in article.content
    assert "Error: Failed to fetch URL: 404 Not Found" in article.content


def test_retry_clears_previous_error(config):
    tracker = ExtractionStateTracker(config.paths.state_db)
    article_id = tracker.create_article("https://example.com/a", "u1")
    tracker.mark_failed(article_id, "https://example.com/a", "boom")
    tracker.mark_extracting(article_id)
    article = tracker.get_article(article_id)
    assert article.extraction_status == "extracting"
    assert article.extraction_error is None


def test_missing_article_raises(config):
    tracker = ExtractionStateTracker(config.paths.state_db)
    with pytest.raises(ArticleNotFoundError):
        tracker.get_article("missing")
    with pytest.raises(ArticleNotFoundError):
        tracker.mark_extracting("missing")
    with pytest.raises(ArticleNotFoundError):
        tracker.mark_failed("missing", "https://example.com", "boom")


def test_status_counts(config):
    tracker = ExtractionStateTracker(config.paths.state_db)
    first = tracker.create_article("https://example.com/1", "u1")
    tracker.create_article("https://example.com/2", "u1")
    tracker.create_article("https://example.com/3", "u2")
    tracker.mark_extracting(first)

    assert tracker.status_counts("u1") == {"pending": 1, "extracting": 1, "completed": 0, "failed": 0}
    assert tracker.status_counts() == {"pending": 2, "extracting": 1, "completed": 0, "failed": 0}
    assert [article.url for article in tracker.list_pending()] == [
        "https://example.com/2",
        "https://example.com/3",
    ]
