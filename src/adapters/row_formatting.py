"""Shared row formatting helpers.

Keeping the column contract here prevents drift between sinks: the CSV file
and the spreadsheet carry the same header and the same cell values.
"""

from __future__ import annotations

from typing import Sequence

from core.models import ParsedRecord

HEADER: tuple[str, ...] = ("Date", "Time", "Sender", "Reporter", "Message", "Has_Media", "Links")

# Links share one cell; a bare comma would collide with the CSV separator.
LINK_SEPARATOR = "; "


def format_links(links: Sequence[str]) -> str:
    return LINK_SEPARATOR.join(links)


def format_has_media(has_media: bool) -> str:
    return "true" if has_media else "false"


def record_to_row(record: ParsedRecord) -> list[str]:
    """Return the cells for one record in HEADER order."""

    return [
        record.date,
        record.time,
        record.sender,
        record.reporter,
        record.content,
        format_has_media(record.has_media),
        format_links(record.links),
    ]
