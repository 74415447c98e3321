from __future__ import annotations

import logging
from typing import Callable

from bs4 import BeautifulSoup

from ..config import Config
from ..models import ExtractedArticle
from ..utils import count_words, log_event, reading_time_minutes, resolve_url, strip_html
from .content_fetch import fetch_html
from .fallback import build_fallback_content
from .images import ImagePipeline
from .metadata import (
    extract_author,
    extract_description,
    extract_excerpt,
    extract_favicon,
    extract_published_date,
    extract_title,
    lead_image_candidates,
    parse_document,
)
from .readability import LxmlReadability, ReadabilityParser

HtmlFetcher = Callable[[str], str]


class ContentExtractor:
    def __init__(
        self,
        config: Config,
        image_pipeline: ImagePipeline,
        *,
        readability: ReadabilityParser | None = None,
        html_fetcher: HtmlFetcher | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.images = image_pipeline
        self.logger = logger or logging.getLogger("readlater.extractor")
        self.readability = readability or LxmlReadability(
            min_text_length=config.extraction.readability_min_text_length,
            logger=self.logger,
        )
        self.html_fetcher = html_fetcher or self._fetch_html

    def _fetch_html(self, url: str) -> str:
        return fetch_html(
            url,
            timeout_seconds=self.config.http.timeout_seconds,
            user_agent=self.config.http.user_agent,
            logger=self.logger,
        )

    def extract_from_url(self, url: str) -> ExtractedArticle:
        html = self.html_fetcher(url)
        return self.extract_from_html(html, url)

    def extract_from_html(self, html: str, base_url: str | None = None) -> ExtractedArticle:
        try:
            document = parse_document(html)
            parsed = self.readability(document, base_url)
        except Exception as exc:
            log_event(self.logger, logging.ERROR, "extract_parse_failed", url=base_url, error=str(exc))
            raise

        excerpt_length = self.config.extraction.excerpt_length
        if parsed is not None:
            title = parsed.title or extract_title(document)
            author = parsed.byline or extract_author(document)
            content = parsed.content or ""
            excerpt = parsed.excerpt or (extract_excerpt(content, excerpt_length) if content else None)
        else:
            log_event(self.logger, logging.INFO, "extract_fallback", url=base_url)
            title = extract_title(document)
            author = extract_author(document)
            description = extract_description(document)
            excerpt = description
            content = build_fallback_content(title, description, base_url)

        published_at = extract_published_date(document)
        favicon = extract_favicon(document, base_url)
        image = self._cache_lead_image(document, base_url)

        if parsed is not None and parsed.text_content:
            text = parsed.text_content
        else:
            text = strip_html(content)
        word_count = count_words(text)
        reading_time = reading_time_minutes(word_count, self.config.extraction.words_per_minute)

        content, cached = self._rewrite_content_images(content, base_url)

        log_event(
            self.logger,
            logging.INFO,
            "extract_succeeded",
            url=base_url,
            fallback=parsed is None,
            word_count=word_count,
            images=len(cached),
        )
        return ExtractedArticle(
            title=title,
            author=author,
            content=content,
            excerpt=excerpt,
            word_count=word_count,
            reading_time=reading_time,
            published_at=published_at,
            favicon=favicon,
            image=image,
            original_html=html,
            content_images=cached,
        )

    def _cache_lead_image(self, document: BeautifulSoup, base_url: str | None) -> str | None:
        for candidate in lead_image_candidates(document, base_url):
            filename = self.images.download_and_optimize(candidate)
            if filename:
                return filename
        return None

    def _rewrite_content_images(self, content: str, base_url: str | None) -> tuple[str, list[str]]:
        if not content or "<img" not in content.lower():
            return content, []
        fragment = BeautifulSoup(content, "html.parser")
        resolved: dict[str, str | None] = {}
        cached: list[str] = []
        for img in fragment.find_all("img", src=True):
            src = str(img["src"]).strip()
            if not src or src.startswith("data:"):
                continue
            remote = resolve_url(src, base_url)
            if remote not in resolved:
                resolved[remote] = self.images.download_and_optimize(remote)
            filename = resolved[remote]
            if not filename:
                continue
            img["src"] = self.images.public_path(filename)
            if img.has_attr("srcset"):
                del img["srcset"]
            if filename not in cached:
                cached.append(filename)
        if not cached:
            return content, []
        return str(fragment), cached
