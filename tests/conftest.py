from __future__ import annotations

import dataclasses
import io

import pytest
from PIL import Image

from readlater.config import QueueConfig, default_config


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    path = tmp_path / "data"
    monkeypatch.setenv("RL_DATA_DIR", str(path))
    monkeypatch.delenv("RL_ASSETS_PATH", raising=False)
    return path


@pytest.fixture
def config(data_dir):
    cfg = default_config()
    return dataclasses.replace(
        cfg,
        queue=QueueConfig(concurrency=2, max_attempts=3, retry_delay_seconds=0.0),
    )


@pytest.fixture
def image_bytes():
    def _make(size=(1600, 1200), fmt="PNG", color=(200, 30, 30)) -> bytes:
        buffer = io.BytesIO()
        Image.new("RGB", size, color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make
