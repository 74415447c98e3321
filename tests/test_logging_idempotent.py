import logging
import os
import sys

from readlater.utils import configure_logging


def test_configure_logging_idempotent(tmp_path, monkeypatch):
    log_file = tmp_path / "app.log"
    monkeypatch.setenv("RL_LOG_LEVEL", "INFO")
    monkeypatch.setenv("RL_LOG_FILE", str(log_file))
    monkeypatch.setenv("RL_LOG_LEVELS", "readlater.images=DEBUG")

    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    images_logger = logging.getLogger("readlater.images")
    original_images_level = images_logger.level
    try:
        root.handlers = []
        configure_logging("readlater.worker")
        configure_logging("readlater.worker")

        stream_handlers = [
            handler
            for handler in root.handlers
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler)
        ]
        file_handlers = [
            handler for handler in root.handlers if isinstance(handler, logging.FileHandler)
        ]

        assert len([h for h in stream_handlers if h.stream is sys.stdout]) == 1
        assert len(file_handlers) == 1
        assert os.path.abspath(file_handlers[0].baseFilename) == os.path.abspath(
            str(log_file)
        )
        assert images_logger.level == logging.DEBUG
    finally:
        for handler in root.handlers:
            if handler not in original_handlers:
                handler.close()
        root.handlers = original_handlers
        root.setLevel(original_level)
        images_logger.setLevel(original_images_level)
