"""Static configuration for chatledger.

All user-editable settings (channel, output, state, schedule, logging) live
in a single JSON file for quick edits without touching Python. Secrets and
per-machine overrides come from the environment, populated from ``.env``.

Nothing is loaded at import time: the entry point calls ``load_settings``
and passes the result down explicitly.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from dotenv import load_dotenv

from core.config import DEFAULT_SOURCE_TAGS, IngestConfig, ParserConfig
from core.errors import ConfigError

PROJECT_ROOT = Path(__file__).resolve().parent.parent

CONFIG_PATH = PROJECT_ROOT / "config.json"

SINK_CSV = "csv"
SINK_SHEETS = "sheets"
SUPPORTED_SINKS = (SINK_CSV, SINK_SHEETS)


@dataclass(frozen=True)
class SourceSettings:
    channel: str
    page_size: int = 100
    recent_limit: int = 100
    paginate_delta: bool = True


@dataclass(frozen=True)
class OutputSettings:
    sink: str = SINK_CSV
    csv_path: Path = PROJECT_ROOT / "data" / "output" / "news_chat_data.csv"
    spreadsheet_id: Optional[str] = None
    credentials_path: Path = PROJECT_ROOT / "credentials.json"


@dataclass(frozen=True)
class StateSettings:
    path: Path = PROJECT_ROOT / "data" / "state.json"
    lock_path: Path = PROJECT_ROOT / "data" / "run.lock"


@dataclass(frozen=True)
class ActiveHours:
    """Daily window in which scheduled runs do any work."""

    enabled: bool = False
    start_hour: int = 0
    end_hour: int = 24

    def contains(self, hour: int) -> bool:
        """Check ``hour`` against the window; ``start_hour > end_hour`` spans midnight."""

        if not self.enabled:
            return True
        if self.start_hour > self.end_hour:
            return hour >= self.start_hour or hour < self.end_hour
        return self.start_hour <= hour < self.end_hour


@dataclass(frozen=True)
class Settings:
    project_root: Path
    source: SourceSettings
    parser: ParserConfig
    output: OutputSettings
    state: StateSettings
    active_hours: ActiveHours
    logging: dict[str, Any] = field(default_factory=dict)

    @property
    def destination(self) -> str:
        if self.output.sink == SINK_SHEETS:
            return self.output.spreadsheet_id or ""
        return str(self.output.csv_path)

    def ingest_config(self) -> IngestConfig:
        """Project the settings onto what the coordinator needs."""

        return IngestConfig(
            channel=self.source.channel,
            destination=self.destination,
            page_size=self.source.page_size,
            recent_limit=self.source.recent_limit,
            paginate_delta=self.source.paginate_delta,
        )


def _load_json_config(config_path: Path) -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as error:
            raise ConfigError(f"Invalid JSON in {config_path}: {error}") from error
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")
    return data


def _section(config: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = config.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be an object")
    return value


def _int(section: Mapping[str, Any], name: str, key: str, default: int, minimum: int, maximum: Optional[int] = None) -> int:
    raw = section.get(key, default)
    if isinstance(raw, bool):
        raise ConfigError(f"{name}.{key} must be an integer, got {raw!r}")
    try:
        value = int(raw)
    except (TypeError, ValueError) as error:
        raise ConfigError(f"{name}.{key} must be an integer, got {raw!r}") from error
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        raise ConfigError(f"{name}.{key} must be {bound}, got {value}")
    return value


def _bool(section: Mapping[str, Any], name: str, key: str, default: bool) -> bool:
    raw = section.get(key, default)
    if not isinstance(raw, bool):
        raise ConfigError(f"{name}.{key} must be true or false, got {raw!r}")
    return raw


def _path(project_root: Path, raw: Union[str, Path]) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = project_root / path
    return path


def load_settings(config_path: Union[str, Path] = CONFIG_PATH, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build validated settings from config.json and the environment.

    Relative paths in the config are resolved against the directory holding
    the config file. When ``env`` is omitted, ``.env`` next to the config is
    loaded into the process environment first.
    """

    config_path = Path(config_path).resolve()
    project_root = config_path.parent
    if env is None:
        load_dotenv(project_root / ".env")
        env = os.environ

    config = _load_json_config(config_path)

    source_cfg = _section(config, "source")
    channel = env.get("CHAT_NAME") or source_cfg.get("channel")
    if not isinstance(channel, str) or not channel.strip():
        raise ConfigError("source.channel is required (or set CHAT_NAME)")
    source = SourceSettings(
        channel=channel.strip(),
        page_size=_int(source_cfg, "source", "page_size", 100, minimum=1),
        recent_limit=_int(source_cfg, "source", "recent_limit", 100, minimum=1),
        paginate_delta=_bool(source_cfg, "source", "paginate_delta", True),
    )

    parser_cfg = _section(config, "parser")
    source_tags = parser_cfg.get("source_tags", list(DEFAULT_SOURCE_TAGS))
    if not isinstance(source_tags, list) or not all(isinstance(tag, str) for tag in source_tags):
        raise ConfigError("parser.source_tags must be a list of strings")

    output_cfg = _section(config, "output")
    spreadsheet_id = env.get("GOOGLE_SHEET_ID") or output_cfg.get("spreadsheet_id")
    # A null or missing sink means auto: a configured sheet id selects sheets.
    sink = output_cfg.get("sink") or (SINK_SHEETS if spreadsheet_id else SINK_CSV)
    if sink not in SUPPORTED_SINKS:
        raise ConfigError(f"output.sink must be one of {', '.join(SUPPORTED_SINKS)}, got {sink!r}")
    if sink == SINK_SHEETS and not spreadsheet_id:
        raise ConfigError("output.spreadsheet_id (or GOOGLE_SHEET_ID) is required for the sheets sink")
    output = OutputSettings(
        sink=sink,
        csv_path=_path(project_root, output_cfg.get("csv_path", "data/output/news_chat_data.csv")),
        spreadsheet_id=spreadsheet_id,
        credentials_path=_path(
            project_root,
            env.get("GOOGLE_CREDENTIALS_PATH") or output_cfg.get("credentials_path", "credentials.json"),
        ),
    )

    state_cfg = _section(config, "state")
    state = StateSettings(
        path=_path(project_root, state_cfg.get("path", "data/state.json")),
        lock_path=_path(project_root, state_cfg.get("lock_path", "data/run.lock")),
    )

    hours_cfg = _section(_section(config, "schedule"), "active_hours")
    active_hours = ActiveHours(
        enabled=_bool(hours_cfg, "schedule.active_hours", "enabled", False),
        start_hour=_int(hours_cfg, "schedule.active_hours", "start_hour", 0, minimum=0, maximum=24),
        end_hour=_int(hours_cfg, "schedule.active_hours", "end_hour", 24, minimum=0, maximum=24),
    )
    if active_hours.enabled and active_hours.start_hour == active_hours.end_hour:
        raise ConfigError("schedule.active_hours start_hour and end_hour must differ")

    return Settings(
        project_root=project_root,
        source=source,
        parser=ParserConfig(source_tags=tuple(source_tags)),
        output=output,
        state=state,
        active_hours=active_hours,
        logging=dict(_section(config, "logging")),
    )
