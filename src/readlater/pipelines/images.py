from __future__ import annotations

import io
import logging
import os
import threading
from typing import Callable

from PIL import Image, ImageOps

from ..config import ImagesConfig
from ..utils import log_event, url_hash
from .content_fetch import fetch_bytes

ByteFetcher = Callable[[str], bytes]


class ImagePipeline:
    """Caches remote images as resized WebP files named by the hash of their URL.

    The same remote URL always maps to the same file, so re-extracting an
    article reuses what is already on disk. Failures never propagate:
    :meth:`download_and_optimize` logs and returns ``None``.
    """

    def __init__(
        self,
        assets_dir: str,
        config: ImagesConfig,
        *,
        fetcher: ByteFetcher,
        logger: logging.Logger | None = None,
    ) -> None:
        self.assets_dir = assets_dir
        self.config = config
        self.fetcher = fetcher
        self.logger = logger or logging.getLogger("readlater.images")

    @classmethod
    def from_http(
        cls,
        assets_dir: str,
        config: ImagesConfig,
        *,
        timeout_seconds: int,
        user_agent: str,
        logger: logging.Logger | None = None,
    ) -> "ImagePipeline":
        logger = logger or logging.getLogger("readlater.images")

        def _fetch(url: str) -> bytes:
            return fetch_bytes(
                url,
                timeout_seconds=timeout_seconds,
                user_agent=user_agent,
                max_bytes=config.max_bytes,
                logger=logger,
            )

        return cls(assets_dir, config, fetcher=_fetch, logger=logger)

    def asset_filename(self, remote_url: str) -> str:
        return f"{url_hash(remote_url)}.{self.config.format.lower()}"

    def asset_path(self, filename: str) -> str:
        return os.path.join(self.assets_dir, filename)

    def public_path(self, filename: str) -> str:
        return f"{self.config.public_prefix}/{filename}"

    def download_and_optimize(self, remote_url: str) -> str | None:
        if not remote_url or not remote_url.startswith(("http://", "https://")):
            log_event(self.logger, logging.DEBUG, "image_skipped", url=remote_url, reason="unsupported_url")
            return None
        filename = self.asset_filename(remote_url)
        path = self.asset_path(filename)
        if self.config.reuse_cached and os.path.exists(path):
            log_event(self.logger, logging.DEBUG, "image_cache_hit", url=remote_url, filename=filename)
            return filename
        try:
            raw = self.fetcher(remote_url)
            encoded = self.optimize(raw)
            self._write(path, encoded)
        except Exception as exc:  # noqa: BLE001
            log_event(self.logger, logging.WARNING, "image_cache_failed", url=remote_url, error=str(exc))
            return None
        log_event(self.logger, logging.INFO, "image_cached", url=remote_url, filename=filename, bytes=len(encoded))
        return filename

    def optimize(self, raw: bytes) -> bytes:
        with Image.open(io.BytesIO(raw)) as source:
            image = ImageOps.exif_transpose(source)
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA" if "transparency" in image.info else "RGB")
            # thumbnail() only ever shrinks, smaller images keep their size
            image.thumbnail((self.config.max_width, self.config.max_height), Image.LANCZOS)
            buffer = io.BytesIO()
            image.save(buffer, format=self.config.format.upper(), quality=self.config.quality)
        return buffer.getvalue()

    def _write(self, path: str, data: bytes) -> None:
        os.makedirs(self.assets_dir, exist_ok=True)
        tmp_path = f"{path}.{os.getpid()}.{threading.get_ident()}.tmp"
        with open(tmp_path, "wb") as handle:
            handle.write(data)
        os.replace(tmp_path, path)
