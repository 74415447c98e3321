from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any

import yaml
from PIL import Image

from .storage import get_setting, set_setting


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class AppConfig:
    name: str


@dataclass(frozen=True)
class PathsConfig:
    data_dir: str
    state_db: str
    assets_dir: str


@dataclass(frozen=True)
class HttpConfig:
    timeout_seconds: int
    user_agent: str


@dataclass(frozen=True)
class QueueConfig:
    concurrency: int
    max_attempts: int
    retry_delay_seconds: float


@dataclass(frozen=True)
class ImagesConfig:
    max_width: int
    max_height: int
    quality: int
    format: str
    public_prefix: str
    reuse_cached: bool
    max_bytes: int


@dataclass(frozen=True)
class ExtractionConfig:
    words_per_minute: int
    excerpt_length: int
    stuck_timeout_seconds: int
    readability_min_text_length: int


@dataclass(frozen=True)
class Config:
    app: AppConfig
    paths: PathsConfig
    http: HttpConfig
    queue: QueueConfig
    images: ImagesConfig
    extraction: ExtractionConfig


DEFAULT_CONFIG: dict[str, Any] = {
    "app": {
        "name": "readlater",
    },
    "http": {
        "timeout_seconds": 30,
        "user_agent": "Mozilla/5.0 (compatible; readlater/0.1)",
    },
    "queue": {
        "concurrency": 2,
        "max_attempts": 3,
        "retry_delay_seconds": 5.0,
    },
    "images": {
        "max_width": 800,
        "max_height": 600,
        "quality": 80,
        "format": "webp",
        "public_prefix": "/assets",
        "reuse_cached": True,
        "max_bytes": 15_000_000,
    },
    "extraction": {
        "words_per_minute": 200,
        "excerpt_length": 200,
        "stuck_timeout_seconds": 600,
        "readability_min_text_length": 1,
    },
}

CONFIG_KEY = "config.runtime"


def get_data_dir() -> str:
    return os.environ.get("RL_DATA_DIR", os.path.join(os.getcwd(), "data"))


def get_state_db_path() -> str:
    return os.path.join(get_data_dir(), "state.sqlite3")


def resolve_paths() -> PathsConfig:
    data_dir = get_data_dir()
    assets_dir = os.environ.get("RL_ASSETS_PATH") or os.path.join(data_dir, "assets")
    return PathsConfig(
        data_dir=data_dir,
        state_db=os.path.join(data_dir, "state.sqlite3"),
        assets_dir=assets_dir,
    )


def bootstrap_runtime_config(conn) -> dict[str, Any]:
    cfg = get_setting(conn, CONFIG_KEY, None)
    if cfg is None:
        set_setting(conn, CONFIG_KEY, _deep_copy(DEFAULT_CONFIG))
        cfg = get_setting(conn, CONFIG_KEY, None)
    if not isinstance(cfg, dict):
        raise ConfigError("config.runtime must be a JSON object")
    return cfg


def get_runtime_config(conn) -> dict[str, Any]:
    cfg = bootstrap_runtime_config(conn)
    errors = validate_runtime_config(cfg)
    if errors:
        raise ConfigError("Invalid config.runtime: " + "; ".join(errors))
    return cfg


def set_runtime_config(conn, cfg: dict[str, Any]) -> None:
    errors = validate_runtime_config(cfg)
    if errors:
        raise ConfigError("Invalid config.runtime: " + "; ".join(errors))
    set_setting(conn, CONFIG_KEY, _deep_copy(cfg))


def load_runtime_config(conn) -> Config:
    cfg = get_runtime_config(conn)
    return _build_config(cfg)


def import_config_file(conn, path: str) -> dict[str, Any]:
    """Merge a YAML overlay onto the stored runtime config and persist it."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            overlay = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Unable to read config file {path}: {exc}") from exc
    if not isinstance(overlay, dict):
        raise ConfigError(f"{path} must contain a mapping")
    merged = _deep_merge(get_runtime_config(conn), overlay)
    set_runtime_config(conn, merged)
    return merged


def validate_runtime_config(cfg: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    _validate_dict(cfg, DEFAULT_CONFIG, "config.runtime", errors)
    if not errors:
        _validate_ranges(cfg, errors)
    return errors


def _validate_ranges(cfg: dict[str, Any], errors: list[str]) -> None:
    if cfg["queue"]["concurrency"] < 1:
        errors.append("config.runtime.queue.concurrency must be >= 1")
    if cfg["queue"]["max_attempts"] < 1:
        errors.append("config.runtime.queue.max_attempts must be >= 1")
    if cfg["queue"]["retry_delay_seconds"] < 0:
        errors.append("config.runtime.queue.retry_delay_seconds must be >= 0")
    if not 1 <= cfg["images"]["quality"] <= 100:
        errors.append("config.runtime.images.quality must be between 1 and 100")
    if cfg["extraction"]["words_per_minute"] < 1:
        errors.append("config.runtime.extraction.words_per_minute must be >= 1")
    if not _is_writable_image_format(cfg["images"]["format"]):
        errors.append(
            f"config.runtime.images.format {cfg['images']['format']!r} is not an image format Pillow can write"
        )


def _is_writable_image_format(name: str) -> bool:
    Image.init()
    return name.upper() in Image.SAVE


def _validate_dict(value: dict[str, Any], schema: dict[str, Any], path: str, errors: list[str]) -> None:
    if not isinstance(value, dict):
        errors.append(f"{path} must be an object")
        return
    for key in schema.keys():
        if key not in value:
            errors.append(f"missing {path}.{key}")
    for key in value.keys():
        if key not in schema:
            errors.append(f"unknown {path}.{key}")
    for key, default in schema.items():
        if key not in value:
            continue
        _validate_value(value[key], default, f"{path}.{key}", errors)


def _validate_value(value: Any, default: Any, path: str, errors: list[str]) -> None:
    if isinstance(default, dict):
        if not isinstance(value, dict):
            errors.append(f"{path} must be an object")
            return
        _validate_dict(value, default, path, errors)
        return
    if isinstance(default, bool):
        if not isinstance(value, bool):
            errors.append(f"{path} must be a boolean")
        return
    if isinstance(default, int):
        if not isinstance(value, int) or isinstance(value, bool):
            errors.append(f"{path} must be an integer")
        return
    if isinstance(default, float):
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            errors.append(f"{path} must be a number")
        return
    if isinstance(default, str):
        if not isinstance(value, str):
            errors.append(f"{path} must be a string")
        return


def _build_config(cfg: dict[str, Any]) -> Config:
    app_cfg = cfg.get("app") or {}
    http_cfg = cfg.get("http") or {}
    queue_cfg = cfg.get("queue") or {}
    images_cfg = cfg.get("images") or {}
    extraction_cfg = cfg.get("extraction") or {}

    app = AppConfig(name=str(app_cfg.get("name")))

    http = HttpConfig(
        timeout_seconds=int(http_cfg.get("timeout_seconds")),
        user_agent=str(http_cfg.get("user_agent")),
    )

    queue = QueueConfig(
        concurrency=int(queue_cfg.get("concurrency")),
        max_attempts=int(queue_cfg.get("max_attempts")),
        retry_delay_seconds=float(queue_cfg.get("retry_delay_seconds")),
    )

    images = ImagesConfig(
        max_width=int(images_cfg.get("max_width")),
        max_height=int(images_cfg.get("max_height")),
        quality=int(images_cfg.get("quality")),
        format=str(images_cfg.get("format")),
        public_prefix=str(images_cfg.get("public_prefix")).rstrip("/"),
        reuse_cached=bool(images_cfg.get("reuse_cached")),
        max_bytes=int(images_cfg.get("max_bytes")),
    )

    extraction = ExtractionConfig(
        words_per_minute=int(extraction_cfg.get("words_per_minute")),
        excerpt_length=int(extraction_cfg.get("excerpt_length")),
        stuck_timeout_seconds=int(extraction_cfg.get("stuck_timeout_seconds")),
        readability_min_text_length=int(extraction_cfg.get("readability_min_text_length")),
    )

    return Config(
        app=app,
        paths=resolve_paths(),
        http=http,
        queue=queue,
        images=images,
        extraction=extraction,
    )


def default_config() -> Config:
    return _build_config(_deep_copy(DEFAULT_CONFIG))


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = _deep_copy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _deep_copy(value: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(value))
