from __future__ import annotations

import logging
import urllib.request
from urllib.error import HTTPError, URLError

from ..models import FetchError
from ..utils import log_event


def fetch_html(
    url: str,
    *,
    timeout_seconds: int,
    user_agent: str,
    logger: logging.Logger,
) -> str:
    raw, charset = _fetch(
        url,
        timeout_seconds=timeout_seconds,
        user_agent=user_agent,
        accept="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        max_bytes=None,
        logger=logger,
    )
    try:
        return raw.decode(charset or "utf-8", errors="replace")
    except LookupError:
        log_event(logger, logging.DEBUG, "content_charset_unknown", url=url, charset=charset)
        return raw.decode("utf-8", errors="replace")


def fetch_bytes(
    url: str,
    *,
    timeout_seconds: int,
    user_agent: str,
    max_bytes: int | None,
    logger: logging.Logger,
) -> bytes:
    raw, _ = _fetch(
        url,
        timeout_seconds=timeout_seconds,
        user_agent=user_agent,
        accept="image/*,*/*;q=0.8",
        max_bytes=max_bytes,
        logger=logger,
    )
    return raw


def _fetch(
    url: str,
    *,
    timeout_seconds: int,
    user_agent: str,
    accept: str,
    max_bytes: int | None,
    logger: logging.Logger,
) -> tuple[bytes, str | None]:
    request = urllib.request.Request(url, headers={"User-Agent": user_agent, "Accept": accept})
    try:
        with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
            status = getattr(response, "status", 200)
            if status < 200 or status >= 300:
                raise FetchError(f"Failed to fetch URL: {status} {getattr(response, 'reason', '')}".strip())
            if max_bytes is not None:
                raw = response.read(max_bytes + 1)
                if len(raw) > max_bytes:
                    raise FetchError(f"Response too large: more than {max_bytes} bytes")
            else:
                raw = response.read()
            charset = response.headers.get_content_charset()
    except HTTPError as exc:
        log_event(logger, logging.WARNING, "content_fetch_failed", url=url, status=exc.code)
        raise FetchError(f"Failed to fetch URL: {exc.code} {exc.reason}") from exc
    except FetchError as exc:
        log_event(logger, logging.WARNING, "content_fetch_failed", url=url, error=str(exc))
        raise
    except (URLError, OSError, ValueError) as exc:
        reason = getattr(exc, "reason", None) or exc
        log_event(logger, logging.WARNING, "content_fetch_failed", url=url, error=str(reason))
        raise FetchError(f"Failed to fetch URL: {reason}") from exc
    return raw, charset
