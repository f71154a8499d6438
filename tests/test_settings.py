from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from core.config import DEFAULT_SOURCE_TAGS
from core.errors import ConfigError
from settings import SINK_CSV, SINK_SHEETS, ActiveHours, load_settings


def _write_config(tmp_path: Path, config: dict[str, Any]) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config, ensure_ascii=False), encoding="utf-8")
    return path


def test_minimal_config_uses_defaults(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"source": {"channel": "News"}})

    settings = load_settings(path, env={})

    assert settings.source.channel == "News"
    assert settings.source.page_size == 100
    assert settings.source.paginate_delta is True
    assert settings.parser.source_tags == DEFAULT_SOURCE_TAGS
    assert settings.output.sink == SINK_CSV
    assert settings.output.csv_path == tmp_path.resolve() / "data" / "output" / "news_chat_data.csv"
    assert settings.state.path == tmp_path.resolve() / "data" / "state.json"
    assert settings.destination == str(settings.output.csv_path)
    assert settings.active_hours.contains(3)


def test_ingest_config_projection(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {"source": {"channel": "News", "page_size": 25, "recent_limit": 10, "paginate_delta": False}},
    )

    ingest = load_settings(path, env={}).ingest_config()

    assert ingest.channel == "News"
    assert ingest.page_size == 25
    assert ingest.recent_limit == 10
    assert ingest.paginate_delta is False


def test_env_overrides_channel(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"source": {"channel": "News"}})

    settings = load_settings(path, env={"CHAT_NAME": "צ'אט הכתבים"})

    assert settings.source.channel == "צ'אט הכתבים"


def test_missing_channel_is_config_error(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"source": {}})

    with pytest.raises(ConfigError):
        load_settings(path, env={})


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "absent.json", env={})


def test_invalid_json_is_config_error(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_settings(path, env={})


def test_invalid_numbers_are_config_errors(tmp_path: Path) -> None:
    for source in (
        {"channel": "News", "page_size": 0},
        {"channel": "News", "page_size": "many"},
        {"channel": "News", "recent_limit": True},
    ):
        path = _write_config(tmp_path, {"source": source})
        with pytest.raises(ConfigError):
            load_settings(path, env={})


def test_sheet_id_selects_sheets_sink(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"source": {"channel": "News"}})

    settings = load_settings(
        path,
        env={"GOOGLE_SHEET_ID": "sheet-123", "GOOGLE_CREDENTIALS_PATH": "keys/service.json"},
    )

    assert settings.output.sink == SINK_SHEETS
    assert settings.destination == "sheet-123"
    assert settings.output.credentials_path == tmp_path.resolve() / "keys" / "service.json"


def test_explicit_csv_sink_wins_over_sheet_id(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"source": {"channel": "News"}, "output": {"sink": "csv"}})

    settings = load_settings(path, env={"GOOGLE_SHEET_ID": "sheet-123"})

    assert settings.output.sink == SINK_CSV


def test_sheets_sink_without_id_is_config_error(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"source": {"channel": "News"}, "output": {"sink": "sheets"}})

    with pytest.raises(ConfigError):
        load_settings(path, env={})


def test_unknown_sink_is_config_error(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"source": {"channel": "News"}, "output": {"sink": "xlsx"}})

    with pytest.raises(ConfigError):
        load_settings(path, env={})


def test_source_tags_must_be_strings(tmp_path: Path) -> None:
    path = _write_config(tmp_path, {"source": {"channel": "News"}, "parser": {"source_tags": [1]}})

    with pytest.raises(ConfigError):
        load_settings(path, env={})


def test_active_hours_window(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {
            "source": {"channel": "News"},
            "schedule": {"active_hours": {"enabled": True, "start_hour": 6, "end_hour": 21}},
        },
    )

    hours = load_settings(path, env={}).active_hours

    assert hours == ActiveHours(enabled=True, start_hour=6, end_hour=21)
    assert hours.contains(6)
    assert hours.contains(20)
    assert not hours.contains(21)
    assert not hours.contains(5)


def test_bundled_config_loads(tmp_path: Path) -> None:
    bundled = Path(__file__).resolve().parent.parent / "config.json"
    path = tmp_path / "config.json"
    path.write_text(bundled.read_text(encoding="utf-8"), encoding="utf-8")

    settings = load_settings(path, env={})

    assert settings.source.channel == "צ'אט הכתבים N12"
    assert settings.logging["enabled"] is True


def test_bundled_config_switches_to_sheets_with_sheet_id(tmp_path: Path) -> None:
    bundled = Path(__file__).resolve().parent.parent / "config.json"
    path = tmp_path / "config.json"
    path.write_text(bundled.read_text(encoding="utf-8"), encoding="utf-8")

    settings = load_settings(path, env={"GOOGLE_SHEET_ID": "sheet-123"})

    assert settings.output.sink == SINK_SHEETS
    assert settings.destination == "sheet-123"
    assert load_settings(path, env={}).output.sink == SINK_CSV


def test_flags_must_be_booleans(tmp_path: Path) -> None:
    for config in (
        {"source": {"channel": "News", "paginate_delta": "false"}},
        {"source": {"channel": "News"}, "schedule": {"active_hours": {"enabled": "yes"}}},
        {"source": {"channel": "News", "paginate_delta": 0}},
    ):
        path = _write_config(tmp_path, config)
        with pytest.raises(ConfigError):
            load_settings(path, env={})


def test_overnight_active_hours_wrap_midnight(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {
            "source": {"channel": "News"},
            "schedule": {"active_hours": {"enabled": True, "start_hour": 22, "end_hour": 6}},
        },
    )

    hours = load_settings(path, env={}).active_hours

    assert hours.contains(23)
    assert hours.contains(0)
    assert hours.contains(5)
    assert not hours.contains(6)
    assert not hours.contains(12)
    assert hours.contains(22)


def test_empty_active_hours_window_is_config_error(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        {
            "source": {"channel": "News"},
            "schedule": {"active_hours": {"enabled": True, "start_hour": 8, "end_hour": 8}},
        },
    )

    with pytest.raises(ConfigError):
        load_settings(path, env={})
