"""CSV file sink adapter.

Implements the core TabularSinkPort on a local UTF-8 CSV file. Quoting
follows the csv module's rules, so separators, quotes and embedded newlines
survive a round trip through csv.reader.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Sequence, Union

from adapters.row_formatting import HEADER, record_to_row
from core.errors import SinkWriteError
from core.models import ParsedRecord

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]


class CsvSink:
    """Thin CSV writer that satisfies the TabularSinkPort contract."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def write(self, records: Sequence[ParsedRecord], destination: PathLike, append: bool = False) -> None:
        """Write records, appending when possible and creating otherwise.

        The header row is written only when the file is (re)created, so
        repeated appends never add a second header. An empty file counts as
        missing.
        """

        path = Path(destination)
        should_append = append and path.is_file() and path.stat().st_size > 0
        mode = "a" if should_append else "w"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open(mode, newline="", encoding=self._encoding) as handle:
                writer = csv.writer(handle)
                if not should_append:
                    writer.writerow(HEADER)
                writer.writerows(record_to_row(record) for record in records)
        except OSError as error:
            raise SinkWriteError(f"Cannot write CSV to {path}: {error}") from error

        LOGGER.debug("%s %s rows to %s", "Appended" if should_append else "Wrote", len(records), path)

    def read_rows(self, destination: PathLike) -> list[dict[str, str]]:
        """Read data rows back as dicts keyed by header name."""

        path = Path(destination)
        with path.open("r", newline="", encoding=self._encoding) as handle:
            return list(csv.DictReader(handle))
