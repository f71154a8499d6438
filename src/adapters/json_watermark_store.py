"""JSON file watermark store adapter.

Implements the core WatermarkStorePort with a single JSON document. Saves go
through a temporary file and an atomic rename, so a reader sees either the
old snapshot or the new one, never a mix.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any, Optional, Union

from core.errors import WatermarkPersistError
from core.models import Watermark

LOGGER = logging.getLogger(__name__)

_OPTIONAL_TEXT_FIELDS = ("source_id", "source_name", "last_run_at")
_FIELD_NAMES = {field.name for field in fields(Watermark)}


def _watermark_from_payload(payload: Any) -> Optional[Watermark]:
    """Build a Watermark from decoded JSON, or None if any field is malformed.

    Missing keys fall back to defaults; unknown keys are ignored.
    """

    if not isinstance(payload, dict):
        return None

    for name in _OPTIONAL_TEXT_FIELDS:
        value = payload.get(name)
        if value is not None and not isinstance(value, str):
            return None

    last_ts = payload.get("last_processed_timestamp")
    if last_ts is not None and (isinstance(last_ts, bool) or not isinstance(last_ts, int) or last_ts < 0):
        return None

    total = payload.get("total_records_processed", 0)
    if isinstance(total, bool) or not isinstance(total, int) or total < 0:
        return None

    return Watermark(
        source_id=payload.get("source_id"),
        source_name=payload.get("source_name"),
        last_processed_timestamp=last_ts,
        last_run_at=payload.get("last_run_at"),
        total_records_processed=total,
    )


class JsonWatermarkStore:
    """File-backed watermark for one message source."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Watermark:
        """Return the persisted watermark, or the default one.

        A missing or unreadable file is not an error: the worst case is a
        redundant backfill, which is preferable to a crashed run.
        """

        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Watermark()
        except (OSError, UnicodeDecodeError) as error:
            LOGGER.warning("Cannot read watermark at %s (%s); using defaults", self._path, error)
            return Watermark()

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as error:
            LOGGER.warning("Corrupted watermark at %s (%s); using defaults", self._path, error)
            return Watermark()

        watermark = _watermark_from_payload(payload)
        if watermark is None:
            LOGGER.warning("Invalid watermark contents at %s; using defaults", self._path)
            return Watermark()
        return watermark

    def save(self, watermark: Watermark) -> None:
        """Atomically persist the full watermark snapshot."""

        document = json.dumps(asdict(watermark), indent=2, ensure_ascii=False) + "\n"
        temp_path: Optional[str] = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(document)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, self._path)
            temp_path = None
        except OSError as error:
            raise WatermarkPersistError(f"Failed to save watermark to {self._path}: {error}") from error
        finally:
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)

    def update(self, **changes: Any) -> Watermark:
        """Merge the given fields over the current watermark and save it."""

        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise TypeError(f"Unknown watermark fields: {', '.join(sorted(unknown))}")
        watermark = replace(self.load(), **changes)
        self.save(watermark)
        return watermark
