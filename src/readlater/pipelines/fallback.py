from __future__ import annotations

from html import escape

from ..utils import display_domain, is_exact_domain

VIDEO_DOMAINS = ("youtube.com", "youtu.be")
SOCIAL_DOMAINS = ("twitter.com", "x.com")

VIDEO_NOTE = (
    "<strong>This is a YouTube video.</strong> Visit the link to watch the video."
)
SOCIAL_NOTE = (
    "<strong>This is a social media post.</strong> "
    "Visit the link to see the full post and comments."
)
GENERIC_NOTE = (
    "<strong>Content could not be extracted automatically.</strong> "
    "This might be a dynamic page, video, or other media. "
    "Visit the link to view the full content."
)


def content_note(url: str | None) -> str:
    if url and any(is_exact_domain(url, domain) for domain in VIDEO_DOMAINS):
        return VIDEO_NOTE
    if url and any(is_exact_domain(url, domain) for domain in SOCIAL_DOMAINS):
        return SOCIAL_NOTE
    return GENERIC_NOTE


def build_fallback_content(title: str, description: str | None, url: str | None) -> str:
    domain = display_domain(url) if url else "this page"
    parts = ['<div class="fallback-content">', f"<h1>{escape(title)}</h1>"]
    if description:
        parts.append(f'<p class="description">{escape(description)}</p>')
    parts.append(f'<p class="content-note">{content_note(url)}</p>')
    href = escape(url or "", quote=True)
    parts.append(
        f'<p class="source">Source: <a href="{href}" target="_blank" '
        f'rel="noopener noreferrer">{escape(domain)}</a></p>'
    )
    parts.append("</div>")
    return "".join(parts)
