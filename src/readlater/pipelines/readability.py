"""Main-content extraction as a swappable capability.

Any callable with the signature ``(document, base_url) -> ReadabilityResult | None``
can be handed to :class:`~readlater.pipelines.extractor.ContentExtractor`. A
``None`` result means "no article body found" and is not an error; the
extractor falls back to metadata-only content.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from bs4 import BeautifulSoup
from lxml import html as lxml_html
from lxml.etree import ParserError
from readability import Document
from readability.readability import Unparseable

from ..models import ReadabilityResult
from ..utils import log_event

ReadabilityParser = Callable[[BeautifulSoup, Optional[str]], Optional[ReadabilityResult]]


class LxmlReadability:
    def __init__(self, min_text_length: int = 1, logger: logging.Logger | None = None) -> None:
        self.min_text_length = min_text_length
        self.logger = logger or logging.getLogger("readlater.readability")

    def __call__(self, document: BeautifulSoup, base_url: str | None = None) -> ReadabilityResult | None:
        markup = str(document)
        if not markup.strip():
            return None
        try:
            doc = Document(markup, url=base_url)
            content = doc.summary(html_partial=True)
            title = doc.short_title()
        except Unparseable as exc:
            log_event(self.logger, logging.DEBUG, "readability_unparseable", url=base_url, error=str(exc))
            return None
        text_content = _text_content(content)
        if len(text_content.strip()) < max(1, self.min_text_length):
            return None
        return ReadabilityResult(
            title=title.strip() if title and title.strip() != "[no-title]" else None,
            byline=None,
            excerpt=None,
            content=content,
            text_content=text_content,
        )


def _text_content(content: str) -> str:
    if not content or not content.strip():
        return ""
    try:
        tree = lxml_html.fromstring(content)
    except (ParserError, ValueError):
        return ""
    lines = [line.strip() for line in tree.text_content().splitlines() if line.strip()]
    return "\n".join(lines)
