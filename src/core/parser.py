"""Record parsing (core domain).

Turns the free-form text of a chat message into a fixed-schema record:
the first non-blank line names the reporter, the rest is the message body,
and trailer lines that only restate the channel are dropped.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from core.config import DEFAULT_SOURCE_TAGS
from core.models import ParsedRecord

LINK_PATTERN = re.compile(r"https?://\S+")


def build_source_tag_pattern(source_tags: Iterable[str]) -> Optional[re.Pattern]:
    """Compile the case-insensitive source-tag matcher, or None if no tags."""

    tags = [tag for tag in source_tags if tag]
    if not tags:
        return None
    return re.compile("|".join(re.escape(tag) for tag in tags), re.IGNORECASE)


_DEFAULT_TAG_PATTERN = build_source_tag_pattern(DEFAULT_SOURCE_TAGS)


def _utc_datetime(timestamp: object) -> Optional[datetime]:
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def format_date(timestamp: object) -> str:
    """Format a unix timestamp as DD/MM/YYYY in UTC ("" if unusable)."""

    moment = _utc_datetime(timestamp)
    if moment is None:
        return ""
    return f"{moment.day:02d}/{moment.month:02d}/{moment.year:04d}"


def format_time(timestamp: object) -> str:
    """Format a unix timestamp as 24-hour HH:MM in UTC ("" if unusable)."""

    moment = _utc_datetime(timestamp)
    if moment is None:
        return ""
    return f"{moment.hour:02d}:{moment.minute:02d}"


def extract_links(text: str) -> tuple[str, ...]:
    """Return every URL in order of appearance, duplicates included."""

    return tuple(LINK_PATTERN.findall(text))


def parse_message(
    text: object,
    timestamp: object,
    has_media: bool = False,
    sender: str = "",
    tag_pattern: Optional[re.Pattern] = _DEFAULT_TAG_PATTERN,
) -> ParsedRecord:
    """Parse one raw message body into a ParsedRecord.

    Never raises: unusable text yields empty reporter/content and an
    unusable timestamp yields empty date/time.
    """

    date = format_date(timestamp)
    time = format_time(timestamp)
    has_media = bool(has_media)
    sender = sender if isinstance(sender, str) else ""

    if not isinstance(text, str) or not text.strip():
        return ParsedRecord(
            reporter="",
            content="",
            date=date,
            time=time,
            links=(),
            has_media=has_media,
            sender=sender,
        )

    # Blank lines carry no meaning anywhere in the message, interior ones included.
    lines = [line for line in text.strip().splitlines() if line.strip()]
    reporter = lines[0].strip()

    body_lines = lines[1:]
    if tag_pattern is not None:
        body_lines = [line for line in body_lines if not tag_pattern.search(line)]
    content = "\n".join(body_lines).strip()

    return ParsedRecord(
        reporter=reporter,
        content=content,
        date=date,
        time=time,
        links=extract_links(content),
        has_media=has_media,
        sender=sender,
    )
