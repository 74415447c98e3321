from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from pathlib import Path
from uuid import UUID

import json

from readlater.models import ExtractedArticle
from readlater.storage import get_setting, init_db, set_setting
from readlater.utils import json_dumps


class Color(Enum):
    RED = "red"


@dataclass
class Payload:
    value: str


def test_json_dumps_handles_supported_types():
    payload = {
        "dataclass": Payload(value="ok"),
        "article": ExtractedArticle(
            title="T", content="<p>x</p>", original_html="<p>x</p>", word_count=1, reading_time=1
        ),
        "enum": Color.RED,
        "datetime": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "date": date(2025, 1, 2),
        "path": Path("/tmp/readlater"),
        "uuid": UUID("12345678-1234-5678-1234-567812345678"),
        "set": {"a", "b"},
        "tuple": ("x", "y"),
    }
    encoded = json_dumps(payload)
    decoded = json.loads(encoded)
    assert decoded["dataclass"]["value"] == "ok"
    assert decoded["article"]["content_images"] == []
    assert decoded["enum"] == "red"
    assert decoded["datetime"].startswith("2025-01-01T00:00:00")
    assert decoded["date"] == "2025-01-02"
    assert decoded["path"] == "/tmp/readlater"
    assert decoded["uuid"] == "12345678-1234-5678-1234-567812345678"
    assert sorted(decoded["set"]) == ["a", "b"]
    assert decoded["tuple"] == ["x", "y"]


def test_settings_round_trip_complex_values(tmp_path):
    conn = init_db(str(tmp_path / "state.sqlite3"))
    set_setting(conn, "last_run", {"when": datetime(2025, 1, 1, tzinfo=timezone.utc), "status": Color.RED})
    assert get_setting(conn, "last_run", None) == {
        "when": "2025-01-01T00:00:00+00:00",
        "status": "red",
    }
    assert get_setting(conn, "missing", "fallback") == "fallback"
